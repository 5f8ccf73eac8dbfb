"""
Signalized Grid Junction

A junction sits at grid cell (row, col) and composes:
- four approach Lanes (one per side, always present)
- one SignalController, started on construction
- four exit-enabled flags toggled by an external control surface

Lane geometry:
--------------
Roads carry one lane per direction, each centred o = round(ROAD_THICK / 4)
from the road centreline. With (cx, cy) the junction centre and the inner
box edges as stop lines:

    approach W (moving east)  -> (inner_left,  cy - o)
    approach E (moving west)  -> (inner_right, cy + o)
    approach N (moving south) -> (cx + o, inner_top)
    approach S (moving north) -> (cx - o, inner_bottom)

    exit E (eastbound)  -> (inner_right, cy - o)
    exit W (westbound)  -> (inner_left,  cy + o)
    exit S (southbound) -> (cx + o, inner_bottom)
    exit N (northbound) -> (cx - o, inner_top)

so the arriving and departing streams on a road never share a lane line,
and a straight-through exit lies on the same line as its approach.

Exit toggles publish an ExitToggled event to subscribers in subscription
order; `mirror_exits_of` uses this to keep one junction's flags in step
with another's.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from core.config import GridConfig
from core.directions import DIRECTIONS, Axis, Direction
from core.geometry import JunctionBox, LanePoint, Point, lane_offset

from .lane import Lane
from .signal_controller import SignalController, SignalPhase, SignalTimings


JunctionId = Tuple[int, int]


def junction_key(junction_id: JunctionId) -> str:
    """String form "r,c" of a junction id"""
    return f"{junction_id[0]},{junction_id[1]}"


@dataclass(frozen=True)
class ExitToggled:
    """Published when a junction's exit flag changes"""
    junction_id: JunctionId
    direction: Direction
    enabled: bool


ExitListener = Callable[[ExitToggled], None]


class Junction:
    """
    Signal-controlled junction with four single-lane approaches

    Usage:
        geom = GridGeometry(config, rows=2, cols=2)
        junction = Junction(0, 1, config, geom)
        lane = junction.lane(Direction.W)
        junction.set_exit(Direction.N, True)
    """

    def __init__(self,
                 row: int,
                 col: int,
                 config: GridConfig,
                 geometry,
                 on_phase_change: Optional[Callable[['Junction', SignalPhase], None]] = None):
        """
        Args:
            row, col: Grid position
            config: Grid configuration (road thickness, capacity, timings)
            geometry: Provider with junction_box_at(row, col) -> JunctionBox
            on_phase_change: Optional render callback for phase changes
        """
        self.row = row
        self.col = col
        self.id: JunctionId = (row, col)
        self.key = junction_key(self.id)
        self.config = config
        self.box: JunctionBox = geometry.junction_box_at(row, col)
        self._lane_offset = lane_offset(config.road_thick)

        self.lanes: Dict[Direction, Lane] = {
            d: Lane(
                junction_id=self.id,
                approach=d,
                entry=self.lane_point_for_approach(d),
                exit_point=self.lane_point_for_exit(d.opposite).point,
                capacity=config.lane_capacity,
            )
            for d in DIRECTIONS
        }

        self.exits: Dict[Direction, bool] = {d: bool(config.exits_enabled) for d in DIRECTIONS}
        self._exit_listeners: List[ExitListener] = []
        self._mirror_sources: List['Junction'] = []

        self._render_callback = on_phase_change
        self.signal = SignalController(SignalTimings(
            green_ms=config.green_ms,
            yellow_ms=config.yellow_ms,
            all_red_ms=config.allred_ms,
        ))
        self.signal.on_change(self._forward_phase)
        self.signal.start()

    def _forward_phase(self, phase: SignalPhase) -> None:
        if self._render_callback is not None:
            self._render_callback(self, phase)

    def destroy(self) -> None:
        """Stop the signal and detach every subscriber"""
        self.signal.stop()
        self.signal.clear_listeners()
        for source in self._mirror_sources:
            source.unsubscribe_exit_changes(self._on_mirrored_exit)
        self._mirror_sources.clear()
        self._exit_listeners.clear()

    # -------------------------------------------------------------------------
    # Geometry
    # -------------------------------------------------------------------------

    def center(self) -> Point:
        return self.box.center

    def lane_offset(self) -> int:
        return self._lane_offset

    def lane_point_for_approach(self, approach: Union[Direction, str]) -> LanePoint:
        """Stop-line point of the lane arriving from `approach`"""
        approach = Direction.parse(approach)
        b = self.box
        o = self._lane_offset

        if approach == Direction.W:
            return LanePoint(b.inner_left, b.cy - o, Axis.HORIZONTAL, +1, stop=b.inner_left)
        if approach == Direction.E:
            return LanePoint(b.inner_right, b.cy + o, Axis.HORIZONTAL, -1, stop=b.inner_right)
        if approach == Direction.N:
            return LanePoint(b.cx + o, b.inner_top, Axis.VERTICAL, +1, stop=b.inner_top)
        return LanePoint(b.cx - o, b.inner_bottom, Axis.VERTICAL, -1, stop=b.inner_bottom)

    def lane_point_for_exit(self, exit_dir: Union[Direction, str]) -> LanePoint:
        """Point where the lane leaving towards `exit_dir` starts"""
        exit_dir = Direction.parse(exit_dir)
        b = self.box
        o = self._lane_offset

        if exit_dir == Direction.E:
            return LanePoint(b.inner_right, b.cy - o, Axis.HORIZONTAL, +1)
        if exit_dir == Direction.W:
            return LanePoint(b.inner_left, b.cy + o, Axis.HORIZONTAL, -1)
        if exit_dir == Direction.S:
            return LanePoint(b.cx + o, b.inner_bottom, Axis.VERTICAL, +1)
        return LanePoint(b.cx - o, b.inner_top, Axis.VERTICAL, -1)

    # -------------------------------------------------------------------------
    # Lanes
    # -------------------------------------------------------------------------

    def lane(self, approach: Union[Direction, str]) -> Lane:
        return self.lanes[Direction.parse(approach)]

    def get_lanes(self) -> Dict[Direction, Lane]:
        return dict(self.lanes)

    def total_queued(self) -> int:
        return sum(len(lane) for lane in self.lanes.values())

    # -------------------------------------------------------------------------
    # Exit enablement
    # -------------------------------------------------------------------------

    def is_exit_enabled(self, direction: Union[Direction, str]) -> bool:
        return self.exits[Direction.parse(direction)]

    def set_exit(self, direction: Union[Direction, str], enabled: bool) -> None:
        direction = Direction.parse(direction)
        if self.exits[direction] == bool(enabled):
            return
        self.exits[direction] = bool(enabled)
        event = ExitToggled(self.id, direction, bool(enabled))
        for listener in list(self._exit_listeners):
            listener(event)

    def toggle_exit(self, direction: Union[Direction, str]) -> bool:
        direction = Direction.parse(direction)
        self.set_exit(direction, not self.exits[direction])
        return self.exits[direction]

    def subscribe_exit_changes(self, listener: ExitListener) -> None:
        self._exit_listeners.append(listener)

    def unsubscribe_exit_changes(self, listener: ExitListener) -> bool:
        if listener in self._exit_listeners:
            self._exit_listeners.remove(listener)
            return True
        return False

    def mirror_exits_of(self, source: 'Junction') -> None:
        """Copy `source`'s exit flags now and follow its future toggles"""
        for d in DIRECTIONS:
            self.set_exit(d, source.exits[d])
        source.subscribe_exit_changes(self._on_mirrored_exit)
        self._mirror_sources.append(source)

    def _on_mirrored_exit(self, event: ExitToggled) -> None:
        self.set_exit(event.direction, event.enabled)

    # -------------------------------------------------------------------------
    # Observability
    # -------------------------------------------------------------------------

    def get_state(self, current_time: float) -> Dict[str, Any]:
        return {
            'id': self.key,
            'position': {'row': self.row, 'col': self.col},
            'center': {'x': self.box.cx, 'y': self.box.cy},
            'signal': self.signal.get_state_snapshot(),
            'lanes': {d.value: lane.get_state(current_time) for d, lane in self.lanes.items()},
            'exits': {d.value: enabled for d, enabled in self.exits.items()},
            'total_queued': self.total_queued(),
        }

    def get_metrics(self) -> Dict[str, float]:
        total_vehicles = self.total_queued()
        total_capacity = sum(lane.capacity for lane in self.lanes.values())
        occupancies = [lane.get_occupancy_rate() for lane in self.lanes.values()]
        return {
            'total_vehicles': total_vehicles,
            'total_capacity': total_capacity,
            'average_occupancy': sum(occupancies) / len(occupancies),
            'utilization': total_vehicles / total_capacity if total_capacity else 0.0,
        }
