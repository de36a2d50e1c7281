"""Situation-room aggregates: national KPIs, per-state load and the alert feed."""

from datetime import datetime
from typing import Any, Dict, List

from geo_service import extract_coordinates, is_address_in_state, round_half_up

# Label positions on the situation-room map (0-800 x 0-650 SVG space)
STATE_COORDINATES = {
    # North West
    "Sokoto": (160, 78),
    "Kebbi": (120, 156),
    "Zamfara": (220, 117),
    "Katsina": (320, 78),
    "Kano": (400, 130),
    "Jigawa": (480, 104),
    "Kaduna": (340, 208),
    # North East
    "Yobe": (600, 117),
    "Borno": (700, 156),
    "Bauchi": (520, 208),
    "Gombe": (620, 234),
    "Adamawa": (700, 286),
    "Taraba": (600, 364),
    # North Central
    "Niger": (240, 260),
    "Kwara": (160, 338),
    "Kogi": (320, 390),
    "Abuja": (400, 312),
    "Nasarawa": (420, 351),
    "Plateau": (500, 299),
    "Benue": (460, 429),
    # South West
    "Oyo": (120, 416),
    "Osun": (180, 429),
    "Ekiti": (220, 429),
    "Ondo": (240, 468),
    "Ogun": (120, 468),
    "Lagos": (100, 494),
    # South East
    "Enugu": (420, 481),
    "Ebonyi": (460, 481),
    "Anambra": (380, 494),
    "Abia": (420, 520),
    "Imo": (380, 520),
    # South South
    "Edo": (280, 455),
    "Delta": (280, 507),
    "Bayelsa": (300, 559),
    "Rivers": (380, 559),
    "Akwa Ibom": (460, 559),
    "Cross River": (520, 520),
}

ACTIVE_ALERT_STATUSES = ("Active", "transmitting")
DEFAULT_STATE = "Abuja"


def _find_state(text):
    if not text:
        return None
    for state in STATE_COORDINATES:
        if is_address_in_state(text, state):
            return state
    return None


def _occupied(shelter):
    return (shelter.get("capacity") or 0) - (shelter.get("availableCapacity") or 0)


def compute_kpis(shelters, persons, alerts) -> Dict[str, Any]:
    total_capacity = sum(s.get("capacity") or 0 for s in shelters)
    total_occupied = sum(_occupied(s) for s in shelters)
    occupancy_rate = round_half_up(total_occupied / total_capacity * 100) if total_capacity > 0 else 0
    return {
        "totalDisplaced": len(persons),
        "occupancyRate": occupancy_rate,
        "activeAlerts": sum(1 for a in alerts if a.get("status") in ACTIVE_ALERT_STATUSES),
        "availableCapacity": total_capacity - total_occupied,
    }


def risk_level(state: Dict[str, Any]) -> str:
    occ_rate = state["occupiedCapacity"] / state["totalCapacity"] if state["totalCapacity"] > 0 else 0
    if occ_rate > 0.8 or state["displacedCount"] > 100 or state["criticalAlerts"] > 0:
        return "high"
    if occ_rate > 0.5 or state["displacedCount"] > 50:
        return "medium"
    return "low"


def aggregate_by_state(shelters, persons, alerts) -> List[Dict[str, Any]]:
    states = {
        name: {
            "name": name,
            "displacedCount": 0,
            "shelterCount": 0,
            "totalCapacity": 0,
            "occupiedCapacity": 0,
            "criticalAlerts": 0,
            "coordinates": {"x": x, "y": y},
            "riskLevel": "low",
        }
        for name, (x, y) in STATE_COORDINATES.items()
    }

    for shelter in shelters:
        entry = states[_find_state(shelter.get("location")) or DEFAULT_STATE]
        entry["shelterCount"] += 1
        entry["totalCapacity"] += shelter.get("capacity") or 0
        entry["occupiedCapacity"] += _occupied(shelter)

    for person in persons:
        states[_find_state(person.get("currentLocation")) or DEFAULT_STATE]["displacedCount"] += 1

    # alerts without a recognisable address are not attributed anywhere
    for alert in alerts:
        state = _find_state((alert.get("location") or {}).get("address"))
        if state:
            states[state]["criticalAlerts"] += 1

    result = []
    for entry in states.values():
        entry["riskLevel"] = risk_level(entry)
        if entry["displacedCount"] or entry["shelterCount"] or entry["criticalAlerts"]:
            result.append(entry)
    return result


def _sort_key(item):
    ts = item.get("timestamp")
    if isinstance(ts, datetime):
        return ts.replace(tzinfo=None)
    return datetime.min


def recent_activity(alerts, limit=20) -> List[Dict[str, Any]]:
    items = []
    for alert in alerts:
        critical = alert.get("status") == "Active" or alert.get("type") == "Critical"
        coords = extract_coordinates(alert.get("location"))
        items.append(
            {
                "id": alert.get("id"),
                "type": "alert",
                "title": "Critical SOS Alert" if critical else "Emergency Signal",
                "description": alert.get("additionalInfo")
                or alert.get("details")
                or f"{alert.get('emergencyType') or 'Alert'} signal received",
                "location": (alert.get("location") or {}).get("address") or "Unknown Location",
                "coordinates": {"latitude": coords[0], "longitude": coords[1]} if coords else None,
                "severity": "critical" if critical else "warning",
                "timestamp": alert.get("timestamp"),
            }
        )
    items.sort(key=_sort_key, reverse=True)
    return items[:limit]


def _load(db, name):
    rows = []
    for snap in db.collection(name).stream():
        data = snap.to_dict() or {}
        data["id"] = snap.id
        rows.append(data)
    return rows


def build_situation(db) -> Dict[str, Any]:
    shelters = _load(db, "shelters")
    persons = _load(db, "displacedPersons")
    alerts = _load(db, "sosAlerts")
    return {
        "kpis": compute_kpis(shelters, persons, alerts),
        "stateData": aggregate_by_state(shelters, persons, alerts),
        "recentActivity": recent_activity(alerts),
    }
