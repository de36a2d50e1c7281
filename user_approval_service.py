"""
Staff onboarding

Admins approve entries in `pendingUsers`; a polling job then creates the
Firebase Auth account and the `users` profile for every approved entry and
removes the pending request. New staff set their password through the
password-reset flow.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from firebase_admin import auth as firebase_auth
from google.cloud.firestore import FieldFilter

from errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

PENDING_USERS = "pendingUsers"
USERS = "users"


@dataclass
class ProcessResult:
    processed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def to_dict(self):
        return {"processed": self.processed, "failed": self.failed}


def approve_request(db, request_id: Optional[str]) -> None:
    if not request_id:
        raise ValidationError("Request ID is missing")

    ref = db.collection(PENDING_USERS).document(request_id)
    if not ref.get().exists:
        raise NotFoundError(f"Pending request {request_id} not found")
    ref.update({"status": "approved"})
    logger.info("[Approvals] Request %s marked as approved", request_id)


def build_profile(uid: str, email: str, role: str, language: Optional[str]) -> dict:
    return {
        "uid": uid,
        "email": email,
        "role": role,
        "createdAt": datetime.utcnow(),
        "isOnline": False,
        "displayName": email.split("@")[0] or "New Staff",
        "firstName": "",
        "lastName": "",
        "gender": "",
        "image": "",
        "mobile": 0,
        "profileCompleted": 0,
        "language": language or "English",
    }


def process_approved_users(db, create_auth_user=None, on_created: Optional[Callable[[str, str], None]] = None) -> ProcessResult:
    """
    Create accounts for every approved pending user.

    A failure on one entry marks that entry `failed` and moves on, so a bad
    email never blocks the rest of the batch.
    """
    create_auth_user = create_auth_user or firebase_auth.create_user
    result = ProcessResult()

    logger.info("[Approvals] Checking for approved users...")
    docs = list(db.collection(PENDING_USERS).where(filter=FieldFilter("status", "==", "approved")).stream())
    if not docs:
        logger.info("[Approvals] No approved users to process.")
        return result

    for doc in docs:
        pending = doc.to_dict() or {}
        email = pending.get("email")
        try:
            if not email:
                raise ValueError("pending request has no email")

            logger.info("[Approvals] Creating user in Auth for: %s", email)
            user_record = create_auth_user(email=email, email_verified=True)
            uid = user_record.uid

            db.collection(USERS).document(uid).set(
                build_profile(uid, email, pending.get("role"), pending.get("language"))
            )
            doc.reference.delete()
            logger.info("[Approvals] Processed and deleted request for %s (uid %s)", email, uid)
            result.processed.append(email)

            if on_created is not None:
                try:
                    on_created(uid, email)
                except Exception as e:
                    logger.warning("[Approvals] Post-create hook failed for %s: %s", email, e)
        except Exception as e:
            logger.error("[Approvals] Failed to process user %s with doc ID %s: %s", email, doc.id, e)
            doc.reference.update({"status": "failed", "error": str(e)})
            result.failed.append(doc.id)

    logger.info("[Approvals] Finished processing batch of approved users.")
    return result
