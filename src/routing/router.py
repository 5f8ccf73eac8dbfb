"""
Shortest-Hop Routing over the Junction Grid

Junctions are nodes; two junctions are adjacent when they are grid
neighbours (sharing a row or column, one cell apart) and both exist.
Every road has the same cost, so breadth-first search yields shortest
routes by hop count.

Determinism:
------------
Neighbours are always visited in the order N, S, W, E. Among several
shortest paths BFS returns the one through the first-discovered
neighbour, so the same grid always yields the same path:

    2x2 grid, (0,0) -> (1,1):  (0,0) -> (1,0) -> (1,1)

Route planning:
---------------
A trip enters the grid at a boundary junction from outside, follows the
BFS path and leaves the grid from the last junction through an enabled
boundary exit, avoiding an immediate U-turn when another exit exists.
Random choices come from an injected random.Random, so a seeded
generator reproduces the same trips.
"""

import random
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, TypeVar

from core.directions import DIRECTIONS, NEIGHBOR_ORDER, Direction
from core.errors import RouteNotFound

from traffic_models.junction import JunctionId, junction_key


T = TypeVar('T')


@dataclass
class Route:
    """
    A planned trip through the grid

    Attributes:
        nodes: Junction ids visited, in order
        entry_from: Side of the first junction the trip enters from
        moves: Direction taken out of each junction; the last one leaves
               the grid, so len(moves) == len(nodes)
    """
    nodes: List[JunctionId]
    entry_from: Direction
    moves: List[Direction] = field(default_factory=list)

    def __post_init__(self):
        self.nodes = [tuple(n) for n in self.nodes]
        self.entry_from = Direction.parse(self.entry_from)
        self.moves = [Direction.parse(m) for m in self.moves]
        if not self.nodes:
            raise RouteNotFound("Route has no junctions")
        if len(self.moves) != len(self.nodes):
            raise ValueError(f"Route needs one move per junction, "
                             f"got {len(self.moves)} moves for {len(self.nodes)} junctions")

    def approach_at(self, index: int) -> Direction:
        """Side from which the trip arrives at nodes[index]"""
        if index == 0:
            return self.entry_from
        return self.moves[index - 1].opposite

    @property
    def final_exit(self) -> Direction:
        return self.moves[-1]

    def to_dict(self) -> Dict:
        return {
            'nodes': [junction_key(n) for n in self.nodes],
            'entry_from': self.entry_from.value,
            'moves': [m.value for m in self.moves],
        }


class Router:
    """
    BFS router over a live junction mapping

    The mapping is read on every query, so junctions added or removed
    between ticks are seen immediately.

    Usage:
        router = Router(rows=3, cols=3, junctions=junction_map)
        path = router.bfs_path((0, 0), (2, 2))
        route = router.build_random_route(random.Random(42))
    """

    MAX_ATTEMPTS = 20

    def __init__(self, rows: int, cols: int, junctions: Mapping[JunctionId, object]):
        self.rows = rows
        self.cols = cols
        self.junctions = junctions

    # -------------------------------------------------------------------------
    # Adjacency
    # -------------------------------------------------------------------------

    def in_grid(self, r: int, c: int) -> bool:
        return 0 <= r < self.rows and 0 <= c < self.cols

    def neighbor_in_direction(self, junction_id: JunctionId, direction: Direction) -> Optional[JunctionId]:
        """Adjacent existing junction in `direction`, or None"""
        direction = Direction.parse(direction)
        dr, dc = direction.delta
        nr, nc = junction_id[0] + dr, junction_id[1] + dc
        if not self.in_grid(nr, nc):
            return None
        nid = (nr, nc)
        return nid if nid in self.junctions else None

    def neighbors(self, junction_id: JunctionId) -> List[JunctionId]:
        """Existing neighbours in fixed N, S, W, E order"""
        out = []
        for direction in NEIGHBOR_ORDER:
            nid = self.neighbor_in_direction(junction_id, direction)
            if nid is not None:
                out.append(nid)
        return out

    def has_connected_road(self, junction_id: JunctionId) -> bool:
        return any(self.neighbor_in_direction(junction_id, d) is not None for d in DIRECTIONS)

    def outside_directions(self, junction_id: JunctionId) -> List[Direction]:
        """Sides of a junction that face outside the grid"""
        r, c = junction_id
        dirs = []
        if r == 0:
            dirs.append(Direction.N)
        if r == self.rows - 1:
            dirs.append(Direction.S)
        if c == 0:
            dirs.append(Direction.W)
        if c == self.cols - 1:
            dirs.append(Direction.E)
        return dirs

    def enabled_exit_directions(self, junction_id: JunctionId) -> List[Direction]:
        """Outside-facing sides whose exit flag is enabled"""
        junction = self.junctions[junction_id]
        return [d for d in self.outside_directions(junction_id) if junction.is_exit_enabled(d)]

    @staticmethod
    def direction_between(a: JunctionId, b: JunctionId) -> Optional[Direction]:
        """Direction of travel from `a` to adjacent `b` (None if not adjacent)"""
        for direction in DIRECTIONS:
            dr, dc = direction.delta
            if (a[0] + dr, a[1] + dc) == tuple(b):
                return direction
        return None

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def bfs_path(self, start: JunctionId, goal: JunctionId) -> Optional[List[JunctionId]]:
        """
        Shortest path by hop count

        Returns:
            Junction ids from start to goal inclusive ([start] when they
            are equal), or None when goal is unreachable
        """
        start, goal = tuple(start), tuple(goal)
        if start not in self.junctions or goal not in self.junctions:
            return None
        if start == goal:
            return [start]

        queue = deque([start])
        prev: Dict[JunctionId, Optional[JunctionId]] = {start: None}

        while queue:
            cur = queue.popleft()
            for nb in self.neighbors(cur):
                if nb in prev:
                    continue
                prev[nb] = cur
                if nb == goal:
                    path = []
                    node: Optional[JunctionId] = nb
                    while node is not None:
                        path.append(node)
                        node = prev[node]
                    path.reverse()
                    return path
                queue.append(nb)

        return None

    # -------------------------------------------------------------------------
    # Route planning
    # -------------------------------------------------------------------------

    def boundary_junctions(self) -> List[JunctionId]:
        """Junctions that can be entered from outside and have a road"""
        return [
            jid for jid in self.junctions
            if self.outside_directions(jid) and self.has_connected_road(jid)
        ]

    def route_from_path(self,
                        path: Sequence[JunctionId],
                        entry_from: Direction,
                        rng: Optional[random.Random] = None) -> Route:
        """
        Turn a path into a Route, appending a forced exit from the grid

        The final exit is chosen among enabled outside exits of the last
        junction, excluding the side just arrived from when possible.

        Raises:
            RouteNotFound: the path is not contiguous or has no usable exit
        """
        rng = rng or random.Random(0)
        entry_from = Direction.parse(entry_from)
        nodes = [tuple(n) for n in path]
        if not nodes:
            raise RouteNotFound("Empty path")

        moves: List[Direction] = []
        for a, b in zip(nodes, nodes[1:]):
            d = self.direction_between(a, b)
            if d is None:
                raise RouteNotFound(f"{junction_key(a)} and {junction_key(b)} are not adjacent")
            moves.append(d)

        last = nodes[-1]
        arrived_from = entry_from if len(nodes) == 1 else moves[-1].opposite
        exits = self.enabled_exit_directions(last)

        candidates = [d for d in exits if d != arrived_from]
        if not candidates:
            candidates = exits
        if not candidates:
            raise RouteNotFound(f"Junction {junction_key(last)} has no enabled exit")

        moves.append(_choice(rng, candidates))
        return Route(nodes=nodes, entry_from=entry_from, moves=moves)

    def build_random_route(self, rng: random.Random, max_attempts: int = MAX_ATTEMPTS) -> Route:
        """
        Plan a random boundary-to-boundary trip

        Start and end are drawn uniformly from boundary junctions; the end
        must also have an enabled exit. Draws with start == end are retried
        while more than one boundary junction exists.

        Raises:
            RouteNotFound: no usable start/end pair within max_attempts
        """
        boundary = self.boundary_junctions()
        if not boundary:
            raise RouteNotFound("No boundary junction with a connected road")
        sinks = [jid for jid in boundary if self.enabled_exit_directions(jid)]
        if not sinks:
            raise RouteNotFound("No boundary junction has an enabled exit")

        path = None
        start = None
        for _ in range(max_attempts):
            start = _choice(rng, boundary)
            end = _choice(rng, sinks)
            if len(boundary) > 1 and end == start:
                continue
            path = self.bfs_path(start, end)
            if path:
                break

        if not path:
            raise RouteNotFound(f"No path found after {max_attempts} attempts")

        entry_from = _choice(rng, self.outside_directions(start))
        return self.route_from_path(path, entry_from, rng)


def _choice(rng: random.Random, items: Sequence[T]) -> T:
    """Uniform pick by index so results depend only on the rng state"""
    return items[int(rng.random() * len(items))]
