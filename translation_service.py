import logging
import os
from typing import Any, Dict, Optional

import requests

import config

logger = logging.getLogger(__name__)

TRANSLATE_URL = "https://translation.googleapis.com/language/translate/v2"

# Language code mappings (full name to ISO)
LANGUAGE_CODES = {
    "English": "en",
    "Yoruba": "yo",
    "Hausa": "ha",
    "Igbo": "ig",
    "Tiv": "tiv",
    "Kanuri": "kr",
    "en": "en",
    "yo": "yo",
    "ha": "ha",
    "ig": "ig",
    "tiv": "tiv",
    "kr": "kr",
}

SUPPORT_AGENT_ROLE = "support agent"


def language_code(language: Optional[str]) -> str:
    if not language:
        return "en"
    return LANGUAGE_CODES.get(language, LANGUAGE_CODES.get(language.strip().title(), language.strip()))


def is_english(language: Optional[str]) -> bool:
    return language_code(language) == "en"


def translate_text(text: str, target_language: str, source_language: str = "en") -> str:
    """
    Translate via Google Translate v2. If anything goes wrong (missing key,
    network, API error) the input text is returned so callers never fail.
    """
    if not text or not target_language:
        return text

    target = language_code(target_language)
    source = language_code(source_language) if source_language else None
    if source and source == target:
        return text

    key = os.getenv("GOOGLE_TRANSLATE_API_KEY", config.GOOGLE_TRANSLATE_API_KEY)
    if not key:
        logger.error("[Translate] GOOGLE_TRANSLATE_API_KEY not configured")
        return text

    body = {"q": text, "target": target, "format": "text"}
    if source:
        body["source"] = source

    try:
        resp = requests.post(TRANSLATE_URL, params={"key": key}, json=body, timeout=config.HTTP_TIMEOUT_SECONDS)
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.error("[Translate] Google Translate API error: %s", e)
        return text

    if not isinstance(data, dict):
        logger.error("[Translate] Unexpected response shape: %s", data)
        return text
    if not resp.ok or data.get("error"):
        logger.error("[Translate] Google Translate API error %s: %s", resp.status_code, data.get("error"))
        return text

    try:
        return data["data"]["translations"][0]["translatedText"]
    except (KeyError, IndexError, TypeError):
        logger.error("[Translate] Unexpected response shape: %s", data)
        return text


def _user_profile(db, uid):
    if not uid:
        return {}
    snap = db.collection("users").document(uid).get()
    return (snap.to_dict() or {}) if snap.exists else {}


def _user_language(profile):
    return (profile.get("settings") or {}).get("language") or profile.get("language") or "en"


def translate_chat_message(db, message: Dict[str, Any]) -> Dict[str, Any]:
    """
    Work out the translated fields for a new chat message.

    Each non-English participant gets the content in their language; support
    agents read `agentTranslatedText`, everyone else `userTranslatedText`.
    Returns the fields to write, or {} when nothing needs translating.
    """
    content = message.get("content")
    sender_id = message.get("senderId")
    receiver_id = message.get("receiverId")

    if not content:
        logger.info("[Translate] No message content to translate")
        return {}
    if not receiver_id:
        logger.warning("[Translate] No receiver ID found for message translation")
        return {}
    if sender_id == receiver_id:
        return {}

    sender = _user_profile(db, sender_id)
    receiver = _user_profile(db, receiver_id)
    sender_lang = _user_language(sender)
    receiver_lang = _user_language(receiver)

    if is_english(sender_lang) and is_english(receiver_lang):
        return {}

    update = {}
    for profile, lang in ((sender, sender_lang), (receiver, receiver_lang)):
        if is_english(lang):
            continue
        translated = translate_text(content, lang, source_language=None)
        if not translated or translated == content:
            continue
        field = "agentTranslatedText" if profile.get("role") == SUPPORT_AGENT_ROLE else "userTranslatedText"
        update[field] = translated

    return update
