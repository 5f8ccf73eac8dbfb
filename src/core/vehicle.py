"""
Vehicle Motion Contract

A vehicle follows a polyline of waypoints built from its Route and the
lane geometry of every junction on it:

    spawn -> [stop_i -> (pivot_i) -> exit_i]* -> end

- spawn: SPAWN_PAD outside the first stop line, on the same lane line
- stop_i: stop-line point of the approach lane at junction i
- pivot_i: intersection of the approach and exit lane lines (turns only)
- exit_i: where the vehicle leaves junction i's inner box
- end: SPAWN_PAD outside the final exit

Position is a single arc-length scalar `s` measured from the spawn point
to the vehicle front. Each junction on the route is a hop carrying the
arc positions of its stop line (stop_s) and exit point (exit_s). The
engine owns all stop/go decisions; the vehicle only stores progress and
derives its position, heading and waiting time from it.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .config import GridConfig
from .directions import Axis, Direction
from .errors import RouteNotFound
from .geometry import Point


class VehicleState(Enum):
    """Motion state of a vehicle"""
    APPROACHING = "approaching"     # Moving toward the next stop line
    QUEUED = "queued"               # Halted by a signal, a leader or downstream capacity
    CROSSING = "crossing"           # Inside a junction box
    EXITING = "exiting"             # Past the last junction, leaving the grid
    DONE = "done"                   # End point reached


@dataclass(frozen=True)
class Waypoint:
    x: float
    y: float
    junction_id: Optional[Tuple[int, int]] = None   # Set on stop-line points only

    @property
    def point(self) -> Point:
        return Point(self.x, self.y)


@dataclass(frozen=True)
class PlanHop:
    """One junction on a vehicle's route"""
    junction_id: Tuple[int, int]
    approach: Direction
    move: Direction
    stop_s: float           # Arc position of the stop line [px]
    exit_s: float           # Arc position of the exit point [px]


@dataclass
class VehiclePlan:
    """
    Route plan in arc-length form

    Attributes:
        route: The Route the plan was built from
        waypoints: Polyline from spawn to end
        arc: Cumulative arc length at each waypoint
        hops: One entry per junction on the route
        done: Set by the engine once the end point is reached
    """
    route: Any
    waypoints: List[Waypoint]
    arc: List[float]
    hops: List[PlanHop]
    done: bool = False

    @property
    def total_length(self) -> float:
        return self.arc[-1]

    def segment_index(self, s: float) -> int:
        """Index i of the waypoint segment [i, i+1] containing s"""
        for i in range(len(self.arc) - 1):
            if s < self.arc[i + 1]:
                return i
        return max(0, len(self.arc) - 2)

    def point_at(self, s: float) -> Point:
        """Position at arc length s (clamped to the polyline)"""
        if len(self.waypoints) == 1:
            return self.waypoints[0].point
        s = min(max(s, 0.0), self.total_length)
        i = self.segment_index(s)
        p0, p1 = self.waypoints[i], self.waypoints[i + 1]
        seg = self.arc[i + 1] - self.arc[i]
        t = (s - self.arc[i]) / seg if seg > 0 else 0.0
        return Point(p0.x + (p1.x - p0.x) * t, p0.y + (p1.y - p0.y) * t)

    def heading_at(self, s: float) -> Tuple[Axis, int]:
        """(axis, sign) of travel at arc length s"""
        if len(self.waypoints) == 1:
            return Axis.HORIZONTAL, 1
        i = self.segment_index(min(max(s, 0.0), self.total_length))
        p0, p1 = self.waypoints[i], self.waypoints[i + 1]
        dx, dy = p1.x - p0.x, p1.y - p0.y
        if abs(dx) > abs(dy):
            return Axis.HORIZONTAL, 1 if dx > 0 else -1
        return Axis.VERTICAL, 1 if dy > 0 else -1


def build_vehicle_plan(route, junctions: Mapping, config: GridConfig) -> VehiclePlan:
    """
    Build the waypoint polyline and hop table for a route

    Args:
        route: Route with nodes, entry_from and moves
        junctions: Mapping of junction id to Junction
        config: Grid configuration (spawn_pad)

    Raises:
        RouteNotFound: a junction on the route does not exist
    """
    for node in route.nodes:
        if node not in junctions:
            raise RouteNotFound(f"Junction {node[0]},{node[1]} on route does not exist")

    # (waypoint, hop tag) where the tag marks the stop/exit point of hop i
    raw: List[Tuple[Waypoint, Optional[Tuple[str, int]]]] = []

    first = junctions[route.nodes[0]].lane_point_for_approach(route.entry_from)
    if first.axis == Axis.HORIZONTAL:
        spawn = Waypoint(first.x - first.sign * config.spawn_pad, first.y)
    else:
        spawn = Waypoint(first.x, first.y - first.sign * config.spawn_pad)
    raw.append((spawn, None))

    last_exit = None
    for i, node in enumerate(route.nodes):
        junction = junctions[node]
        entry = junction.lane_point_for_approach(route.approach_at(i))
        exit_pt = junction.lane_point_for_exit(route.moves[i])

        raw.append((Waypoint(entry.x, entry.y, junction_id=node), ('stop', i)))
        if entry.axis != exit_pt.axis:
            if entry.axis == Axis.HORIZONTAL:
                pivot = Waypoint(exit_pt.x, entry.y)
            else:
                pivot = Waypoint(entry.x, exit_pt.y)
            raw.append((pivot, None))
        raw.append((Waypoint(exit_pt.x, exit_pt.y), ('exit', i)))
        last_exit = exit_pt

    if last_exit.axis == Axis.HORIZONTAL:
        end = Waypoint(last_exit.x + last_exit.sign * config.spawn_pad, last_exit.y)
    else:
        end = Waypoint(last_exit.x, last_exit.y + last_exit.sign * config.spawn_pad)
    raw.append((end, None))

    # Drop consecutive duplicates, remembering where each tagged point landed
    waypoints: List[Waypoint] = []
    tag_index: Dict[Tuple[str, int], int] = {}
    for wp, tag in raw:
        prev = waypoints[-1] if waypoints else None
        if (prev is None
                or abs(prev.x - wp.x) > 0.01
                or abs(prev.y - wp.y) > 0.01
                or prev.junction_id != wp.junction_id):
            waypoints.append(wp)
        if tag is not None:
            tag_index[tag] = len(waypoints) - 1

    arc = [0.0]
    for p0, p1 in zip(waypoints, waypoints[1:]):
        arc.append(arc[-1] + math.hypot(p1.x - p0.x, p1.y - p0.y))

    hops = [
        PlanHop(
            junction_id=node,
            approach=route.approach_at(i),
            move=route.moves[i],
            stop_s=arc[tag_index[('stop', i)]],
            exit_s=arc[tag_index[('exit', i)]],
        )
        for i, node in enumerate(route.nodes)
    ]

    return VehiclePlan(route=route, waypoints=waypoints, arc=arc, hops=hops)


class Vehicle:
    """
    A single vehicle travelling along its plan

    Attributes:
        id: Engine-assigned identifier
        plan: VehiclePlan built from the route
        s: Arc-length progress of the vehicle front [px]
        hop_index: Index of the hop whose lane currently holds the vehicle;
                   equals len(plan.hops) once past the last stop line
        state: Current VehicleState
    """

    def __init__(self, vehicle_id: str, plan: VehiclePlan, config: GridConfig):
        self.id = vehicle_id
        self.plan = plan
        self.length = config.car_len
        self.max_speed = config.car_speed

        self.s = 0.0
        self.speed = 0.0                # px per frame over the last step
        self.hop_index = 0
        self.state = VehicleState.APPROACHING

        # Waiting accounting
        self.total_waiting_ms = 0.0
        self.is_waiting = False
        self.stopped_at: Optional[float] = None

    # -------------------------------------------------------------------------
    # Plan queries
    # -------------------------------------------------------------------------

    @property
    def done(self) -> bool:
        return self.plan.done

    @property
    def current_hop(self) -> Optional[PlanHop]:
        if self.hop_index < len(self.plan.hops):
            return self.plan.hops[self.hop_index]
        return None

    @property
    def next_hop(self) -> Optional[PlanHop]:
        if self.hop_index + 1 < len(self.plan.hops):
            return self.plan.hops[self.hop_index + 1]
        return None

    def distance_to_stop(self) -> float:
        """Arc distance from the front to the current stop line (0 once past the last)"""
        hop = self.current_hop
        if hop is None:
            return 0.0
        return max(0.0, hop.stop_s - self.s)

    def is_inside_junction(self) -> bool:
        """True between a stop line and that junction's exit point"""
        if self.hop_index == 0:
            return False
        prev = self.plan.hops[self.hop_index - 1]
        return prev.stop_s < self.s < prev.exit_s

    def depends_on(self, junction_id) -> bool:
        """True if the vehicle is inside or still has to pass `junction_id`"""
        start = self.hop_index - 1 if self.is_inside_junction() else self.hop_index
        return any(h.junction_id == junction_id for h in self.plan.hops[start:])

    # -------------------------------------------------------------------------
    # Kinematics
    # -------------------------------------------------------------------------

    @property
    def position(self) -> Point:
        return self.plan.point_at(self.s)

    @property
    def heading(self) -> Tuple[Axis, int]:
        return self.plan.heading_at(self.s)

    def update_waiting(self, blocked: bool, now: float) -> None:
        if blocked and not self.is_waiting:
            self.is_waiting = True
            self.stopped_at = now
        elif not blocked and self.is_waiting:
            if self.stopped_at is not None:
                self.total_waiting_ms += now - self.stopped_at
            self.is_waiting = False
            self.stopped_at = None

    def get_waiting_time(self, current_time: Optional[float] = None) -> float:
        """Total waiting time including the current stop [ms]"""
        total = self.total_waiting_ms
        if self.is_waiting and self.stopped_at is not None and current_time is not None:
            total += current_time - self.stopped_at
        return total

    def get_state(self, current_time: Optional[float] = None) -> Dict[str, Any]:
        pos = self.position
        axis, sign = self.heading
        hop = self.current_hop
        return {
            'id': self.id,
            'position': {'x': pos.x, 'y': pos.y},
            'axis': axis.value,
            'sign': sign,
            'speed': self.speed,
            'state': self.state.value,
            'progress': self.s,
            'total_length': self.plan.total_length,
            'hop_index': self.hop_index,
            'total_hops': len(self.plan.hops),
            'current_junction': f"{hop.junction_id[0]},{hop.junction_id[1]}" if hop else None,
            'waiting_time_ms': self.get_waiting_time(current_time),
            'is_waiting': self.is_waiting,
            'route_completed': self.plan.done,
        }

    def __repr__(self) -> str:
        return f"Vehicle({self.id!r}, s={self.s:.1f}, state={self.state.value})"
