from datetime import datetime

from situation_service import aggregate_by_state, build_situation, compute_kpis, recent_activity, risk_level


SHELTERS = [
    {"name": "Ikeja Camp", "location": "Ikeja, Lagos", "capacity": 100, "availableCapacity": 10},
    {"name": "Minna Hall", "location": "Minna, Niger", "capacity": 50, "availableCapacity": 50},
    {"name": "Unknown", "location": "", "capacity": 10, "availableCapacity": 5},
]
PERSONS = [
    {"name": "Ada", "currentLocation": "Yaba, Lagos"},
    {"name": "Bala", "currentLocation": "Somewhere in Nigeria"},
]
ALERTS = [
    {"id": "a1", "status": "Active", "emergencyType": "Flood",
     "location": {"address": "Lekki, Lagos", "latitude": 6.44, "longitude": 3.47},
     "timestamp": datetime(2024, 6, 1, 9, 0)},
    {"id": "a2", "status": "Resolved", "emergencyType": "Fire",
     "location": {"latitude": 9.6, "longitude": 6.5},
     "timestamp": datetime(2024, 6, 1, 10, 0)},
]


def test_kpis():
    kpis = compute_kpis(SHELTERS, PERSONS, ALERTS)
    assert kpis == {
        "totalDisplaced": 2,
        "occupancyRate": 59,  # 95 of 160
        "activeAlerts": 1,
        "availableCapacity": 65,
    }


def test_occupancy_rate_rounds_halves_up():
    shelters = [{"location": "Ikeja, Lagos", "capacity": 8, "availableCapacity": 7}]
    assert compute_kpis(shelters, [], [])["occupancyRate"] == 13  # 12.5


def test_kpis_with_no_capacity():
    assert compute_kpis([], [], [])["occupancyRate"] == 0


def test_risk_levels():
    base = {"occupiedCapacity": 0, "totalCapacity": 100, "displacedCount": 0, "criticalAlerts": 0}
    assert risk_level(base) == "low"
    assert risk_level(dict(base, occupiedCapacity=60)) == "medium"
    assert risk_level(dict(base, displacedCount=101)) == "high"
    assert risk_level(dict(base, criticalAlerts=1)) == "high"


def test_aggregate_by_state():
    states = {s["name"]: s for s in aggregate_by_state(SHELTERS, PERSONS, ALERTS)}

    lagos = states["Lagos"]
    assert lagos["shelterCount"] == 1
    assert lagos["occupiedCapacity"] == 90
    assert lagos["displacedCount"] == 1
    assert lagos["criticalAlerts"] == 1
    assert lagos["riskLevel"] == "high"

    # "Nigeria" is not the Niger state; unplaced records go to the capital
    assert states["Niger"]["displacedCount"] == 0
    assert states["Abuja"]["displacedCount"] == 1
    assert states["Abuja"]["shelterCount"] == 1
    assert "Kano" not in states


def test_recent_activity_newest_first():
    items = recent_activity(ALERTS)
    assert [i["id"] for i in items] == ["a2", "a1"]
    assert items[1]["title"] == "Critical SOS Alert"
    assert items[1]["severity"] == "critical"
    assert items[1]["location"] == "Lekki, Lagos"
    assert items[0]["location"] == "Unknown Location"
    assert items[0]["description"] == "Fire signal received"
    assert recent_activity(ALERTS, limit=1)[0]["id"] == "a2"


def test_build_situation_reads_collections(db):
    for i, shelter in enumerate(SHELTERS):
        db.seed("shelters", f"s{i}", shelter)
    db.seed("sosAlerts", "a1", ALERTS[0])

    situation = build_situation(db)
    assert situation["kpis"]["activeAlerts"] == 1
    assert situation["recentActivity"][0]["id"] == "a1"
    assert {s["name"] for s in situation["stateData"]} == {"Lagos", "Niger", "Abuja"}
