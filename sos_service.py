"""
SOS alert flow

Saves distress signals to `sosAlerts`, opens a displaced-person record for
displacement-type emergencies and handles dispatch of drivers to alerts.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from google.cloud.firestore import FieldFilter

from errors import NotFoundError, ValidationError
from fcm_service import send_task_assignment_notification
from geo_service import alert_matches_state, extract_coordinates, haversine_distance_km, states_for_point

logger = logging.getLogger(__name__)

SOS_ALERTS = "sosAlerts"
DISPLACED_PERSONS = "displacedPersons"
USERS = "users"

SOS_STATUSES = ("Active", "Investigating", "Responding", "In Transit", "False Alarm", "Resolved")

DISPLACEMENT_EMERGENCY_TYPES = [
    "flood",
    "earthquake",
    "hurricane",
    "tornado",
    "tsunami",
    "volcanic eruption",
    "war",
    "conflict",
    "evacuation",
    "disaster",
    "fire",
    "landslide",
    "mudslide",
]


def is_displacement_emergency(emergency_type: Optional[str]) -> bool:
    return (emergency_type or "").strip().lower() in DISPLACEMENT_EMERGENCY_TYPES


def _optional_str(payload, key):
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value


def validate_sos_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Check the shape of an incoming SOS and return a clean copy."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid SOS payload")

    emergency_type = payload.get("emergencyType")
    if not isinstance(emergency_type, str) or not emergency_type.strip():
        raise ValidationError("emergencyType is required")

    location = payload.get("location")
    if not isinstance(location, dict):
        raise ValidationError("location is required")

    try:
        lat = float(location.get("latitude"))
        lng = float(location.get("longitude"))
    except (TypeError, ValueError):
        raise ValidationError("location.latitude and location.longitude must be numbers")
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValidationError("location is out of range")

    clean_location = {"latitude": lat, "longitude": lng}
    for key in ("address", "state", "localGovernment"):
        value = _optional_str(location, key)
        if value:
            clean_location[key] = value

    clean = {"emergencyType": emergency_type.strip(), "location": clean_location}
    for key in ("additionalInfo", "userId", "userEmail"):
        value = _optional_str(payload, key)
        if value:
            clean[key] = value
    return clean


def _display_name(user_data, user_email):
    user_data = user_data or {}
    if user_data.get("displayName"):
        return user_data["displayName"]
    if user_data.get("firstName") and user_data.get("lastName"):
        return f"{user_data['firstName']} {user_data['lastName']}"
    return user_email or "Unknown Person"


def create_displaced_person_for_sos(db, sos: Dict[str, Any]) -> Optional[str]:
    """
    Open a displaced-person record for the SOS sender unless one exists.
    Anonymous senders are skipped because there is nothing to dedupe on.
    """
    user_id = sos.get("userId")
    if not user_id:
        logger.info("[SOS] No userId provided, skipping displaced person record for anonymous SOS")
        return None

    user_data = None
    try:
        snap = db.collection(USERS).document(user_id).get()
        if snap.exists:
            user_data = snap.to_dict()
        else:
            logger.info("[SOS] User document does not exist for userId %s", user_id)
    except Exception as e:
        logger.warning("[SOS] Could not fetch user data: %s", e)

    same_user = FieldFilter("userId", "==", user_id)
    existing = list(db.collection(DISPLACED_PERSONS).where(filter=same_user).limit(1).stream())
    if existing:
        logger.info("[SOS] Displaced person record already exists for %s", user_id)
        return None

    location = sos["location"]
    record = {
        "name": _display_name(user_data, sos.get("userEmail")),
        "details": (user_data or {}).get("email") or sos.get("userEmail") or "",
        "userId": user_id,
        "status": "Emergency",
        "currentLocation": location.get("address") or f"{location['latitude']}, {location['longitude']}",
        "destination": "",
        "vulnerabilities": [],
        "medicalNeeds": [],
        "assistanceRequested": sos.get("additionalInfo") or f"Displacement emergency: {sos['emergencyType']}",
        "priority": "High Priority",
        "lastUpdate": datetime.utcnow(),
        "latitude": location["latitude"],
        "longitude": location["longitude"],
    }
    if location.get("state"):
        record["state"] = location["state"]

    _, ref = db.collection(DISPLACED_PERSONS).add(record)
    logger.info("[SOS] Displaced person record %s created", ref.id)
    return ref.id


def send_sos(db, payload: Dict[str, Any]) -> Dict[str, Any]:
    sos = validate_sos_payload(payload)

    location = sos["location"]
    if not location.get("state"):
        matches = states_for_point(location["latitude"], location["longitude"])
        if len(matches) == 1:
            location["state"] = matches[0]

    try:
        doc = dict(sos)
        doc.update(
            {
                "status": "Active",
                "timestamp": datetime.utcnow(),
                "readByAdmin": False,
                "readBySuperAdmin": False,
            }
        )
        _, ref = db.collection(SOS_ALERTS).add(doc)
        logger.info("[SOS] Alert saved with ID %s", ref.id)

        if is_displacement_emergency(sos["emergencyType"]):
            logger.info("[SOS] Displacement emergency detected for alert %s", ref.id)
            create_displaced_person_for_sos(db, sos)
            ref.update({"isDisplacementRelated": True})

        return {"success": True, "alertId": ref.id}
    except Exception as e:
        logger.error("[SOS] Error in send_sos: %s", e)
        return {"success": False, "alertId": ""}


def get_alert(db, alert_id: str) -> Dict[str, Any]:
    snap = db.collection(SOS_ALERTS).document(alert_id).get()
    if not snap.exists:
        raise NotFoundError(f"SOS alert {alert_id} not found")
    data = snap.to_dict() or {}
    data["id"] = snap.id
    return data


def _timestamp_key(alert):
    ts = alert.get("timestamp")
    if isinstance(ts, datetime):
        # Firestore hands back tz-aware values, locally written ones are naive
        return ts.replace(tzinfo=None)
    return datetime.min


def list_alerts(db, state: Optional[str] = None, status: Optional[str] = None) -> List[Dict[str, Any]]:
    query = db.collection(SOS_ALERTS)
    if status:
        query = query.where(filter=FieldFilter("status", "==", status))

    alerts = []
    for snap in query.stream():
        data = snap.to_dict() or {}
        data["id"] = snap.id
        if state and not alert_matches_state(data, state):
            continue
        alerts.append(data)

    alerts.sort(key=_timestamp_key, reverse=True)
    return alerts


def assign_driver(db, alert_id: str, driver_id: str) -> Dict[str, Any]:
    alert = get_alert(db, alert_id)

    driver_snap = db.collection(USERS).document(driver_id).get()
    if not driver_snap.exists:
        raise NotFoundError(f"Driver {driver_id} not found")
    driver = driver_snap.to_dict() or {}

    had_team = bool(alert.get("assignedTeam"))
    team = {
        "driverId": driver_id,
        "driverName": driver.get("displayName") or driver.get("name") or driver.get("email") or driver_id,
        "vehicle": driver.get("vehicle", ""),
    }
    address = (alert.get("location") or {}).get("address") or "specified location"
    now = datetime.utcnow()

    batch = db.batch()
    batch.update(
        db.collection(SOS_ALERTS).document(alert_id),
        {"status": "Responding", "assignedTeam": team, "assignedAt": now},
    )
    batch.update(
        db.collection(USERS).document(driver_id),
        {"status": "En Route", "task": f"Respond to {alert.get('emergencyType')} at {address}"},
    )
    batch.commit()

    alert.update({"status": "Responding", "assignedTeam": team, "assignedAt": now})
    if not had_team:
        send_task_assignment_notification(db, alert_id, alert)
    return alert


def update_alert_status(db, alert_id: str, status: str) -> Dict[str, Any]:
    if status not in SOS_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(SOS_STATUSES)}")

    get_alert(db, alert_id)
    changes = {"status": status}
    if status == "Resolved":
        changes["resolvedAt"] = datetime.utcnow()
    db.collection(SOS_ALERTS).document(alert_id).update(changes)
    return changes


def mark_alert_read(db, alert_id: str, super_admin: bool = False) -> None:
    get_alert(db, alert_id)
    field = "readBySuperAdmin" if super_admin else "readByAdmin"
    db.collection(SOS_ALERTS).document(alert_id).update({field: True})


def append_tracking_point(db, alert_id: str, lat: float, lng: float, timestamp: Optional[int] = None) -> int:
    """Append a driver position to the alert's trip log; returns the point count."""
    alert = get_alert(db, alert_id)
    tracking = dict(alert.get("trackingData") or {})
    coordinates = list(tracking.get("coordinates") or [])

    if timestamp is None:
        timestamp = int(datetime.utcnow().timestamp() * 1000)
    coordinates.append({"lat": lat, "lng": lng, "timestamp": timestamp})

    tracking["coordinates"] = coordinates
    tracking.setdefault("startTime", datetime.utcnow().isoformat())
    if alert.get("status") == "Resolved":
        tracking["endTime"] = datetime.utcnow().isoformat()

    db.collection(SOS_ALERTS).document(alert_id).update({"trackingData": tracking})
    return len(coordinates)


def trip_distance_km(coordinates: List[Dict[str, Any]]) -> float:
    points = [c for c in (extract_coordinates(p) for p in coordinates or []) if c]
    total = 0.0
    for (lat1, lng1), (lat2, lng2) in zip(points, points[1:]):
        total += haversine_distance_km(lat1, lng1, lat2, lng2)
    return total
