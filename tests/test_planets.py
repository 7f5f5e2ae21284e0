"""Tests de normalisation des positions planétaires."""

from __future__ import annotations

import pytest

from cuspcore.domain.planets import (
    LastGoodPositionCache,
    is_calculated_source,
    longitude_to_sign,
    normalize_planet_name,
    normalize_planetary_positions,
)

MARS_DEGREE = 12.5
VENUS_DEGREE = 3.25


@pytest.fixture
def positions() -> LastGoodPositionCache:
    return LastGoodPositionCache()


def test_longitude_wraps_below_360(positions) -> None:
    [mars] = normalize_planetary_positions([{"name": "Mars", "longitude": 359.9}], positions)
    assert mars.sign == "Pisces"
    assert mars.degree == pytest.approx(29.9)


def test_longitude_wraps_above_360(positions) -> None:
    [mars] = normalize_planetary_positions([{"name": "Mars", "longitude": 360.1}], positions)
    assert mars.sign == "Aries"
    assert mars.degree == pytest.approx(0.1)


@pytest.mark.parametrize(
    ("longitude", "sign", "degree"),
    [
        (0.0, "Aries", 0.0),
        (-0.5, "Pisces", 29.5),
        (45.0, "Taurus", 15.0),
        (29.999, "Aries", 29.99),
        (725.25, "Aries", 5.25),
    ],
)
def test_longitude_to_sign(longitude: float, sign: str, degree: float) -> None:
    assert longitude_to_sign(longitude) == (sign, pytest.approx(degree))


def test_explicit_position_is_used_and_remembered(positions) -> None:
    raw = {"name": "mars", "sign": "leo", "degree": MARS_DEGREE, "longitude": 200.0}
    [mars] = normalize_planetary_positions([raw], positions)
    assert (mars.planet, mars.sign, mars.degree) == ("Mars", "Leo", MARS_DEGREE)
    assert positions.get("Mars") == mars


def test_zero_degree_from_calculated_feed_is_recomputed(positions) -> None:
    raw = {"name": "Venus", "sign": "Aries", "degree": 0, "longitude": 123.25, "source": "calc-v2"}
    [venus] = normalize_planetary_positions([raw], positions)
    assert (venus.sign, venus.degree) == ("Leo", VENUS_DEGREE)
    assert "Venus" in positions


def test_zero_degree_from_live_feed_keeps_last_good_over_longitude(positions) -> None:
    normalize_planetary_positions(
        [{"name": "Mars", "sign": "Leo", "degree": MARS_DEGREE}], positions
    )
    [mars] = normalize_planetary_positions(
        [{"name": "Mars", "sign": "Aries", "degree": 0, "longitude": 5.0, "source": "live-api"}],
        positions,
    )
    assert (mars.sign, mars.degree) == ("Leo", MARS_DEGREE)
    assert positions.get("Mars").degree == MARS_DEGREE


def test_zero_degree_without_longitude_prefers_last_good(positions) -> None:
    normalize_planetary_positions(
        [{"name": "Mars", "sign": "Leo", "degree": MARS_DEGREE}], positions
    )
    [mars] = normalize_planetary_positions(
        [{"name": "Mars", "sign": "Aries", "degree": 0, "source": "mock"}], positions
    )
    assert (mars.sign, mars.degree) == ("Leo", MARS_DEGREE)


def test_zero_degree_without_any_fallback_is_kept_but_not_remembered(positions) -> None:
    [mars] = normalize_planetary_positions(
        [{"name": "Mars", "sign": "Aries", "degree": 0}], positions
    )
    assert (mars.sign, mars.degree) == ("Aries", 0.0)
    assert len(positions) == 0


def test_missing_data_uses_last_good_then_drops(positions) -> None:
    normalize_planetary_positions([{"name": "Saturn", "longitude": 350.0}], positions)
    [saturn] = normalize_planetary_positions([{"name": "Saturn"}], positions)
    assert saturn.sign == "Pisces"

    assert normalize_planetary_positions([{"name": "Neptune"}], positions) == []


def test_order_is_preserved_and_unusable_planets_are_omitted(positions) -> None:
    result = normalize_planetary_positions(
        [
            {"name": "Sun", "lon": 10.0},
            {"name": "Pluto", "source": "approx"},
            {"name": "Moon", "lng": 95.0},
        ],
        positions,
    )
    assert [p.planet for p in result] == ["Sun", "Moon"]


def test_retrograde_detection(positions) -> None:
    result = normalize_planetary_positions(
        [
            {"name": "Mercury", "longitude": 100.0, "speed": -0.4},
            {"name": "Jupiter", "longitude": 100.0, "velocity": 0.1},
            {"name": "Saturn", "longitude": 100.0, "speed": 0.2, "retrograde": True},
        ],
        positions,
    )
    assert [p.retrograde for p in result] == [True, False, True]


def test_longitude_key_priority(positions) -> None:
    [moon] = normalize_planetary_positions(
        [{"name": "Moon", "ecliptic_longitude": 40.0, "longitude": 100.0, "lon": 200.0}], positions
    )
    assert moon.sign == "Taurus"


def test_invalid_explicit_values_fall_through_to_longitude(positions) -> None:
    result = normalize_planetary_positions(
        [
            {"name": "Mars", "sign": "Ophiuchus", "degree": 10.0, "longitude": 15.0},
            {"name": "Venus", "sign": "Leo", "degree": 42.0, "longitude": 130.0},
            {"name": "Sun", "sign": "Leo", "degree": True, "longitude": 140.0},
        ],
        positions,
    )
    assert [(p.sign, p.degree) for p in result] == [
        ("Aries", 15.0),
        ("Leo", 10.0),
        ("Leo", 20.0),
    ]


def test_planet_names() -> None:
    assert normalize_planet_name("north_node") == "North node"
    assert normalize_planet_name("MARS") == "Mars"
    assert normalize_planet_name(None) == ""


def test_unnamed_record_is_labelled(positions) -> None:
    [planet] = normalize_planetary_positions([{"longitude": 1.0}], positions)
    assert planet.planet == "Planet"


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("calc", True),
        ("MockFeed", True),
        ("approx-ephem", True),
        ("nasa-jpl", False),
        (None, False),
    ],
)
def test_calculated_sources(source, expected: bool) -> None:
    assert is_calculated_source(source) is expected
