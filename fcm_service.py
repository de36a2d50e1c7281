import json
import logging

import firebase_admin
from firebase_admin import messaging

logger = logging.getLogger(__name__)


def firebase_ready() -> bool:
    return bool(firebase_admin._apps)


def send_fcm_to_token(token, title, body, data=None):
    """
    Low-level helper: send a push to a single FCM token.
    Safe: will not crash the app if Firebase isn't configured.
    """
    if not token:
        return False

    if not firebase_ready():
        logger.info("[FCM] Skipping send_fcm_to_token: Firebase not initialized")
        return False

    try:
        msg = messaging.Message(
            notification=messaging.Notification(title=title, body=body),
            data={k: str(v) for k, v in (data or {}).items()},
            token=token,
            android=messaging.AndroidConfig(priority="high"),
            apns=messaging.APNSConfig(headers={"apns-priority": "10"}),
        )
        resp = messaging.send(msg)
        logger.info("[FCM] Sent message: %s", resp)
        return True
    except Exception as e:
        logger.error("[FCM] ERROR sending FCM: %s", e)
        return False


def build_task_assignment_message(alert_id, alert):
    location = alert.get("location") or {}
    address = location.get("address") or "specified location"
    emergency_type = alert.get("emergencyType", "")
    title = "🚨 New Emergency Task Assigned"
    body = f"Respond to {emergency_type} at {address}"
    data = {
        "alertId": alert_id,
        "type": "task_assigned",
        "emergencyType": emergency_type,
        "location": json.dumps(location, default=str),
    }
    return title, body, data


def send_task_assignment_notification(db, alert_id, alert):
    """Push the new task to the assigned driver's device, if one is registered."""
    team = alert.get("assignedTeam") or {}
    driver_id = team.get("driverId")
    if not driver_id:
        return False

    try:
        snap = db.collection("users").document(driver_id).get()
        user_data = snap.to_dict() if snap.exists else {}
        token = (user_data or {}).get("fcmToken")
        if not token:
            logger.warning("[FCM] No FCM token found for driver %s", driver_id)
            return False

        title, body, data = build_task_assignment_message(alert_id, alert)
        sent = send_fcm_to_token(token, title, body, data)
        if sent:
            logger.info("[FCM] Push notification sent to driver %s for task assignment", driver_id)
        return sent
    except Exception as e:
        logger.error("[FCM] Error sending push notification to driver %s: %s", driver_id, e)
        return False
