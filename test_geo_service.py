import pytest

from geo_service import (
    NIGERIA_STATE_BOUNDS, NIGERIA_STATES, alert_matches_state, calculate_eta, calculate_eta_minutes,
    extract_coordinates, format_eta, geo_to_svg, haversine_distance_km, is_address_in_state,
    is_point_in_state, normalize_state_name, round_half_up, sort_by_distance, states_for_point,
)

LAGOS = (6.5244, 3.3792)
ABUJA = (9.0765, 7.3986)


def test_haversine_zero_and_symmetric():
    assert haversine_distance_km(*LAGOS, *LAGOS) == 0
    there = haversine_distance_km(*LAGOS, *ABUJA)
    back = haversine_distance_km(*ABUJA, *LAGOS)
    assert there == pytest.approx(back)
    # Lagos to Abuja is roughly 525 km as the crow flies
    assert 500 < there < 550


def test_one_degree_of_latitude():
    assert haversine_distance_km(0, 0, 1, 0) == pytest.approx(111.19, abs=0.01)


@pytest.mark.parametrize(
    "minutes, expected",
    [
        (0, "Less than 1 minute"),
        (1, "1 minute"),
        (45, "45 minutes"),
        (60, "1 hour"),
        (61, "1 hour 1 minute"),
        (120, "2 hours"),
        (135, "2 hours 15 minutes"),
    ],
)
def test_format_eta(minutes, expected):
    assert format_eta(minutes) == expected


def test_eta_minutes_uses_speed():
    assert calculate_eta_minutes(15, 30) == 30
    assert calculate_eta_minutes(15, 60) == 15
    with pytest.raises(ValueError):
        calculate_eta_minutes(10, 0)


@pytest.mark.parametrize("distance_km, minutes", [(0.25, 1), (1.25, 3), (2.25, 5)])
def test_eta_minutes_round_halves_up(distance_km, minutes):
    # 0.5, 2.5 and 4.5 minutes at 30 km/h
    assert calculate_eta_minutes(distance_km, 30) == minutes


def test_round_half_up():
    assert [round_half_up(x) for x in (0.5, 1.5, 2.5, 2.49, -0.5)] == [1, 2, 3, 2, 0]


@pytest.mark.parametrize("speed", [float("nan"), float("inf"), -5.0])
def test_eta_minutes_rejects_unusable_speed(speed):
    with pytest.raises(ValueError):
        calculate_eta_minutes(10, speed)


def test_calculate_eta_same_point():
    assert calculate_eta(*LAGOS, *LAGOS) == "Less than 1 minute"


def test_every_state_and_fct_has_bounds():
    assert len(NIGERIA_STATE_BOUNDS) == 37
    assert "Abuja" in NIGERIA_STATES
    assert NIGERIA_STATES == sorted(NIGERIA_STATES)


def test_bounding_box_edges_are_inclusive():
    box = NIGERIA_STATE_BOUNDS["Lagos"]
    assert box.contains(box.min_lat, box.min_lng)
    assert box.contains(box.max_lat, box.max_lng)
    assert not box.contains(box.max_lat + 0.001, box.max_lng)


def test_point_in_state():
    assert is_point_in_state(*LAGOS, "Lagos")
    assert is_point_in_state(*LAGOS, "lagos")
    assert not is_point_in_state(*LAGOS, "Kano")
    assert not is_point_in_state(*LAGOS, "Atlantis")
    assert is_point_in_state(*ABUJA, "FCT")


def test_states_for_point_can_overlap():
    assert "Lagos" in states_for_point(*LAGOS)
    assert states_for_point(51.5, -0.12) == []


@pytest.mark.parametrize(
    "alias", ["Abuja", "FCT", "Federal Capital Territory", "abuja municipal"]
)
def test_normalize_abuja_aliases(alias):
    assert normalize_state_name(alias) == "Abuja"


def test_normalize_keeps_unknown_names():
    assert normalize_state_name(" cross river ") == "Cross River"
    assert normalize_state_name("Atlantis") == "Atlantis"
    assert normalize_state_name(None) is None


def test_address_match_uses_word_boundaries():
    assert is_address_in_state("12 Broad Street, Lagos", "Lagos")
    assert is_address_in_state("Minna, Niger State", "Niger")
    assert not is_address_in_state("Somewhere in Nigeria", "Niger")
    assert is_address_in_state("Garki, FCT", "Abuja")
    assert not is_address_in_state(None, "Lagos")


def test_extract_coordinates_shapes():
    class GeoPoint:
        latitude = 6.5
        longitude = 3.3

    assert extract_coordinates({"latitude": 6.5, "longitude": 3.3}) == (6.5, 3.3)
    assert extract_coordinates({"lat": "6.5", "lng": "3.3"}) == (6.5, 3.3)
    assert extract_coordinates({"_lat": 6.5, "_long": 3.3}) == (6.5, 3.3)
    assert extract_coordinates(GeoPoint()) == (6.5, 3.3)
    assert extract_coordinates({"lat": "north", "lng": 3}) is None
    assert extract_coordinates({}) is None


def test_alert_matches_state_falls_back_to_address_and_state_field():
    by_point = {"location": {"latitude": LAGOS[0], "longitude": LAGOS[1]}}
    by_address = {"location": {"address": "Ikeja, Lagos"}}
    by_field = {"location": {"state": "lagos"}}
    elsewhere = {"location": {"latitude": 12.0, "longitude": 8.5, "address": "Kano"}}

    assert alert_matches_state(by_point, "Lagos")
    assert alert_matches_state(by_address, "Lagos")
    assert alert_matches_state(by_field, "Lagos")
    assert not alert_matches_state(elsewhere, "Lagos")


def test_geo_to_svg_corners():
    x, y = geo_to_svg(13.892750, 2.667421)
    assert x == pytest.approx(0.96)
    assert y == pytest.approx(0.23)
    x, y = geo_to_svg(4.269658, 14.680752)
    assert x == pytest.approx(682.64)
    assert y == pytest.approx(585.32)


def test_sort_by_distance_puts_unlocated_last():
    shelters = [
        {"name": "far", "latitude": ABUJA[0], "longitude": ABUJA[1]},
        {"name": "nowhere"},
        {"name": "near", "latitude": 6.53, "longitude": 3.38},
    ]
    result = sort_by_distance(shelters, *LAGOS)
    assert [s["name"] for s in result] == ["near", "far", "nowhere"]
    assert result[0]["distance_km"] < 2
    assert result[2]["distance_km"] is None
    assert "distance_km" not in shelters[0]
