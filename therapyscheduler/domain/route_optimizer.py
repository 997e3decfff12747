"""
Single-day visiting order for one therapist.

Travelling-salesman heuristic: a nearest-neighbour tour refined by
simulated annealing. No optimality guarantee; the cooling schedule bounds
the number of iterations.
"""

from __future__ import annotations

import logging
import math
import random
from typing import List, Optional, Sequence

from ..config import RouteConfig
from .geo import haversine_km
from .models import Coordinate

logger = logging.getLogger(__name__)


def tour_distance_km(start: Coordinate, order: Sequence[Coordinate]) -> float:
    """Length of the closed tour start -> order... -> start."""
    if not order:
        return 0.0
    total = haversine_km(start, order[0])
    for origin, destination in zip(order, order[1:]):
        total += haversine_km(origin, destination)
    return total + haversine_km(order[-1], start)


def nearest_neighbor_order(locations: Sequence[Coordinate], start: Coordinate) -> List[Coordinate]:
    """Greedy tour: always drive to the closest unvisited location."""
    unvisited = list(locations)
    order: List[Coordinate] = []
    current = start

    while unvisited:
        nearest = min(unvisited, key=lambda location: haversine_km(current, location))
        order.append(nearest)
        unvisited.remove(nearest)
        current = nearest

    return order


def optimize_route(
    locations: Sequence[Coordinate],
    start_location: Coordinate,
    rng: Optional[random.Random] = None,
    route_config: Optional[RouteConfig] = None,
) -> List[Coordinate]:
    """
    Order locations to keep the closed tour from start_location short.

    Args:
        locations: Stops to visit, in any order
        start_location: Fixed departure and return point (not included in the result)
        rng: Random source for the annealing walk; seeded from the config when omitted
        route_config: Annealing schedule

    Returns:
        A permutation of locations, never longer than the nearest-neighbour tour
    """
    settings = route_config or RouteConfig()
    if not locations:
        return []

    rng = rng or random.Random(settings.seed)
    current = nearest_neighbor_order(locations, start_location)
    current_distance = tour_distance_km(start_location, current)
    best, best_distance = list(current), current_distance
    seed_distance = current_distance

    if len(current) < 2:
        return best

    temperature = settings.initial_temperature
    iterations = 0
    while temperature > settings.min_temperature:
        i, j = rng.sample(range(len(current)), 2)
        candidate = list(current)
        candidate[i], candidate[j] = candidate[j], candidate[i]
        candidate_distance = tour_distance_km(start_location, candidate)

        if candidate_distance < current_distance or rng.random() < math.exp(
            (current_distance - candidate_distance) / temperature
        ):
            current, current_distance = candidate, candidate_distance
            if current_distance < best_distance:
                best, best_distance = list(current), current_distance

        temperature *= 1 - settings.cooling_rate
        iterations += 1

    logger.debug(
        "Route over %d stops: %.2f km -> %.2f km in %d iterations",
        len(best),
        seed_distance,
        best_distance,
        iterations,
    )
    return best
