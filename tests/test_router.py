"""
Test Suite: Router

This test bench validates shortest-hop routing over the junction grid:
- BFS shortest paths and the fixed neighbour-order tie-break
- Not-found results for missing or disconnected junctions
- Boundary and exit helpers
- Random route construction
"""

import random

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.config import GridConfig
from core.directions import Direction
from core.errors import RouteNotFound
from routing.router import Route, Router


# =============================================================================
# Fixtures
# =============================================================================

def make_router(make_grid, rows, cols, cells=None, **config):
    junctions = make_grid(rows, cols, config=GridConfig(**config), cells=cells)
    return Router(rows, cols, junctions)


@pytest.fixture
def router_2x2(make_grid) -> Router:
    return make_router(make_grid, 2, 2)


@pytest.fixture
def router_3x3(make_grid) -> Router:
    return make_router(make_grid, 3, 3)


def assert_valid_route(router: Router, route: Route):
    assert len(route.moves) == len(route.nodes)
    for a, b, move in zip(route.nodes, route.nodes[1:], route.moves):
        assert router.direction_between(a, b) == move
    assert route.entry_from in router.outside_directions(route.nodes[0])
    assert route.final_exit in router.enabled_exit_directions(route.nodes[-1])


# =============================================================================
# Test Class: BFS
# =============================================================================

class TestBfsPath:
    """Test shortest-path search"""

    def test_tie_break_reference_case(self, router_2x2):
        """(0,0) -> (1,1) goes through (1,0): S is visited before E"""
        assert router_2x2.bfs_path((0, 0), (1, 1)) == [(0, 0), (1, 0), (1, 1)]

    def test_tie_break_is_stable(self, router_2x2):
        paths = {tuple(router_2x2.bfs_path((0, 0), (1, 1))) for _ in range(10)}
        assert len(paths) == 1

    def test_reverse_direction_tie_break(self, router_2x2):
        """From (1,1), N is visited first"""
        assert router_2x2.bfs_path((1, 1), (0, 0)) == [(1, 1), (0, 1), (0, 0)]

    def test_start_equals_end(self, router_2x2):
        assert router_2x2.bfs_path((0, 1), (0, 1)) == [(0, 1)]

    @pytest.mark.parametrize("start,goal", [
        ((0, 0), (2, 2)),
        ((2, 0), (0, 2)),
        ((1, 1), (0, 0)),
        ((0, 1), (2, 1)),
    ])
    def test_length_is_grid_distance(self, router_3x3, start, goal):
        path = router_3x3.bfs_path(start, goal)
        hops = abs(start[0] - goal[0]) + abs(start[1] - goal[1])

        assert len(path) == hops + 1
        assert path[0] == start
        assert path[-1] == goal

    def test_detour_around_missing_junction(self, make_grid):
        cells = [(r, c) for r in range(3) for c in range(3) if (r, c) != (1, 1)]
        router = make_router(make_grid, 3, 3, cells=cells)

        assert router.bfs_path((1, 0), (1, 2)) == [(1, 0), (0, 0), (0, 1), (0, 2), (1, 2)]

    def test_disconnected_returns_none(self, make_grid):
        router = make_router(make_grid, 1, 3, cells=[(0, 0), (0, 2)])
        assert router.bfs_path((0, 0), (0, 2)) is None

    def test_missing_endpoint_returns_none(self, router_2x2):
        assert router_2x2.bfs_path((0, 0), (5, 5)) is None

    def test_sees_removed_junction(self, router_2x2):
        del router_2x2.junctions[(1, 0)]
        assert router_2x2.bfs_path((0, 0), (1, 1)) == [(0, 0), (0, 1), (1, 1)]


# =============================================================================
# Test Class: Adjacency Helpers
# =============================================================================

class TestAdjacency:
    """Test neighbour, boundary and exit helpers"""

    def test_neighbors_in_fixed_order(self, router_3x3):
        assert router_3x3.neighbors((1, 1)) == [(0, 1), (2, 1), (1, 0), (1, 2)]

    def test_neighbor_in_direction(self, router_2x2):
        assert router_2x2.neighbor_in_direction((0, 0), Direction.E) == (0, 1)
        assert router_2x2.neighbor_in_direction((0, 0), "N") is None

    def test_direction_between(self):
        assert Router.direction_between((0, 0), (0, 1)) == Direction.E
        assert Router.direction_between((1, 0), (0, 0)) == Direction.N
        assert Router.direction_between((0, 0), (1, 1)) is None

    def test_outside_directions(self, router_2x2, router_3x3):
        assert router_2x2.outside_directions((0, 0)) == [Direction.N, Direction.W]
        assert router_2x2.outside_directions((1, 1)) == [Direction.S, Direction.E]
        assert router_3x3.outside_directions((1, 1)) == []

    def test_connected_road(self, make_grid):
        router = make_router(make_grid, 1, 3, cells=[(0, 0), (0, 1)])
        assert router.has_connected_road((0, 0))

        lonely = make_router(make_grid, 1, 3, cells=[(0, 0), (0, 2)])
        assert not lonely.has_connected_road((0, 0))

    def test_boundary_junctions_exclude_interior(self, router_3x3):
        boundary = router_3x3.boundary_junctions()

        assert (1, 1) not in boundary
        assert len(boundary) == 8

    def test_enabled_exit_directions_follow_flags(self, router_2x2):
        router_2x2.junctions[(0, 0)].set_exit(Direction.N, False)
        assert router_2x2.enabled_exit_directions((0, 0)) == [Direction.W]


# =============================================================================
# Test Class: Route Construction
# =============================================================================

class TestRouteConstruction:
    """Test translating paths into routes"""

    def test_route_from_path_moves(self, make_grid):
        router = make_router(make_grid, 1, 2)
        route = router.route_from_path([(0, 0), (0, 1)], Direction.W, random.Random(1))

        assert route.moves[0] == Direction.E
        assert route.final_exit in (Direction.N, Direction.S, Direction.E)
        assert_valid_route(router, route)

    def test_final_exit_only_enabled(self, make_grid):
        router = make_router(make_grid, 1, 2)
        router.junctions[(0, 1)].set_exit(Direction.N, False)
        router.junctions[(0, 1)].set_exit(Direction.S, False)

        route = router.route_from_path([(0, 0), (0, 1)], Direction.W)
        assert route.moves == [Direction.E, Direction.E]

    def test_u_turn_only_when_no_alternative(self, make_grid):
        router = make_router(make_grid, 1, 2)
        router.junctions[(0, 0)].set_exit(Direction.N, False)
        router.junctions[(0, 0)].set_exit(Direction.S, False)

        route = router.route_from_path([(0, 0)], Direction.W)
        assert route.moves == [Direction.W]

    def test_u_turn_avoided(self, make_grid):
        router = make_router(make_grid, 1, 2)
        for seed in range(20):
            route = router.route_from_path([(0, 0)], Direction.W, random.Random(seed))
            assert route.final_exit != Direction.W

    def test_no_enabled_exit(self, make_grid):
        router = make_router(make_grid, 1, 2, exits_enabled=False)
        with pytest.raises(RouteNotFound):
            router.route_from_path([(0, 0), (0, 1)], Direction.W)

    def test_non_adjacent_path_rejected(self, router_2x2):
        with pytest.raises(RouteNotFound):
            router_2x2.route_from_path([(0, 0), (1, 1)], Direction.W)

    def test_route_validation(self):
        with pytest.raises(RouteNotFound):
            Route(nodes=[], entry_from=Direction.W, moves=[])
        with pytest.raises(ValueError):
            Route(nodes=[(0, 0)], entry_from="W", moves=[])

    def test_route_to_dict(self):
        route = Route(nodes=[(0, 0), (0, 1)], entry_from="W", moves=["E", "N"])

        assert route.to_dict() == {'nodes': ['0,0', '0,1'], 'entry_from': 'W', 'moves': ['E', 'N']}
        assert route.approach_at(0) == Direction.W
        assert route.approach_at(1) == Direction.W


# =============================================================================
# Test Class: Random Routes
# =============================================================================

class TestRandomRoutes:
    """Test boundary-to-boundary random trips"""

    def test_routes_are_valid(self, router_3x3):
        rng = random.Random(7)
        for _ in range(50):
            assert_valid_route(router_3x3, router_3x3.build_random_route(rng))

    def test_start_differs_from_end(self, router_3x3):
        rng = random.Random(3)
        for _ in range(50):
            route = router_3x3.build_random_route(rng)
            assert len(route.nodes) >= 2

    def test_same_seed_same_routes(self, make_grid):
        a = make_router(make_grid, 3, 4)
        b = make_router(make_grid, 3, 4)
        rng_a, rng_b = random.Random(42), random.Random(42)

        for _ in range(20):
            assert a.build_random_route(rng_a).to_dict() == b.build_random_route(rng_b).to_dict()

    def test_routes_are_shortest(self, router_3x3):
        rng = random.Random(11)
        for _ in range(30):
            route = router_3x3.build_random_route(rng)
            start, end = route.nodes[0], route.nodes[-1]
            hops = abs(start[0] - end[0]) + abs(start[1] - end[1])
            assert len(route.nodes) == hops + 1

    def test_single_junction_has_no_route(self, make_grid):
        router = make_router(make_grid, 1, 1)
        with pytest.raises(RouteNotFound):
            router.build_random_route(random.Random(0))

    def test_all_exits_disabled(self, make_grid):
        router = make_router(make_grid, 2, 2, exits_enabled=False)
        with pytest.raises(RouteNotFound):
            router.build_random_route(random.Random(0))

    def test_disconnected_boundary_exhausts_attempts(self, make_grid):
        """Two separate islands: every draw must pick start and end in the same island"""
        router = make_router(make_grid, 1, 5, cells=[(0, 0), (0, 1), (0, 3), (0, 4)])
        rng = random.Random(5)
        for _ in range(20):
            try:
                route = router.build_random_route(rng)
            except RouteNotFound:
                continue
            assert_valid_route(router, route)
