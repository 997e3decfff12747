"""
Tests for the single-day route optimizer.
"""

import random

import pytest

from therapyscheduler.config import RouteConfig
from therapyscheduler.domain.models import Coordinate
from therapyscheduler.domain.route_optimizer import (
    nearest_neighbor_order,
    optimize_route,
    tour_distance_km,
)

SOUTH_WEST = Coordinate(latitude=34.0, longitude=-118.0, address="SW")
SOUTH_EAST = Coordinate(latitude=34.0, longitude=-117.9, address="SE")
NORTH_EAST = Coordinate(latitude=34.1, longitude=-117.9, address="NE")
NORTH_WEST = Coordinate(latitude=34.1, longitude=-118.0, address="NW")


def _key(location: Coordinate):
    return (location.latitude, location.longitude)


class TestOptimizeRoute:
    """Tests for optimize_route."""

    def test_empty_input(self):
        assert optimize_route([], SOUTH_WEST) == []

    def test_single_location(self):
        assert optimize_route([NORTH_EAST], SOUTH_WEST) == [NORTH_EAST]

    def test_quadrilateral(self):
        """Four corners, starting at one of them, are visited along the perimeter."""
        locations = [NORTH_EAST, SOUTH_WEST, NORTH_WEST, SOUTH_EAST]
        crossing = [SOUTH_WEST, NORTH_EAST, SOUTH_EAST, NORTH_WEST]

        order = optimize_route(locations, SOUTH_WEST, rng=random.Random(7))

        assert sorted(order, key=_key) == sorted(locations, key=_key)
        assert tour_distance_km(SOUTH_WEST, order) <= tour_distance_km(SOUTH_WEST, crossing)

    def test_never_worse_than_nearest_neighbor(self):
        locations = [
            Coordinate(latitude=34.0 + 0.013 * n, longitude=-118.0 + 0.021 * ((n * 7) % 5))
            for n in range(8)
        ]
        start = Coordinate(latitude=34.05, longitude=-117.95)

        order = optimize_route(locations, start, rng=random.Random(3))

        seed = nearest_neighbor_order(locations, start)
        assert sorted(order, key=_key) == sorted(locations, key=_key)
        assert tour_distance_km(start, order) <= tour_distance_km(start, seed) + 1e-9

    def test_seeded_runs_are_reproducible(self):
        locations = [NORTH_EAST, NORTH_WEST, SOUTH_EAST]
        config = RouteConfig(seed=11)

        assert optimize_route(locations, SOUTH_WEST, route_config=config) == optimize_route(
            locations, SOUTH_WEST, route_config=config
        )

    def test_start_is_not_part_of_result(self):
        order = optimize_route([NORTH_EAST, SOUTH_EAST], SOUTH_WEST, rng=random.Random(1))

        assert SOUTH_WEST not in order
        assert len(order) == 2


class TestTourDistance:
    """Tests for the closed tour length."""

    def test_round_trip(self):
        one_way = tour_distance_km(SOUTH_WEST, [NORTH_WEST]) / 2

        assert one_way == pytest.approx(11.12, abs=0.01)

    def test_empty_tour(self):
        assert tour_distance_km(SOUTH_WEST, []) == 0
