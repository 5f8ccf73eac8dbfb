"""
Grid Simulation Engine

Tick-driven update loop over every junction and vehicle of the grid.

Each update(dt, elapsed_ms) is one synchronous pass:
1. Advance sim time and every junction's SignalController by elapsed_ms
2. Move queued vehicles lane by lane (junctions in insertion order, lanes
   in N/E/S/W order, front of queue first), so a leader always moves
   before its followers
3. Move vehicles that have passed their last stop line
4. Mark vehicles that reached their end point as done
5. Accumulate trip telemetry (distance, idle time, CO2 estimate)

Movement rules for a vehicle in lane L at junction J:

    step  = car_speed * dt
    limit = stop_s                                     (front of queue)
    limit = stop_s - (leader_remaining + spacing)      (behind a leader)

A vehicle may pass its stop line only when J's signal is green for L's
axis, it is at the front of L, and the next lane on its route is neither
full nor occupied up to its entry. On passing it leaves L and joins the
next lane in the same tick. A vehicle never moves backward.

A tick with elapsed_ms == 0 changes nothing, whatever dt is.

Completed vehicles stay registered until the caller disposes them with
remove_vehicle(), which also finalizes their trip record.
"""

import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, MutableMapping, Optional, Set

from .config import GridConfig
from .directions import DIRECTIONS
from .errors import CapacityExceeded, RouteNotFound
from .vehicle import Vehicle, VehicleState, build_vehicle_plan


@dataclass
class TripRecord:
    """Per-vehicle telemetry, kept from spawn until disposal"""
    spawn_sim_ms: float = 0.0
    distance_px: float = 0.0
    idle_ms: float = 0.0
    moving_ms: float = 0.0
    co2_g: float = 0.0


@dataclass
class TripStatistics:
    """Aggregate trip statistics across the run"""
    total_spawned: int = 0
    total_completed: int = 0
    total_removed: int = 0
    total_trip_ms: float = 0.0

    total_distance_px: float = 0.0
    total_idle_ms: float = 0.0
    total_moving_ms: float = 0.0
    total_co2_g: float = 0.0

    completed_distance_px: float = 0.0
    completed_idle_ms: float = 0.0
    completed_co2_g: float = 0.0

    last_tick_sim_delta_ms: float = 0.0
    last_tick_distance_px: float = 0.0
    last_tick_co2_g: float = 0.0
    co2_rate_g_per_min: float = 0.0

    @property
    def average_trip_ms(self) -> float:
        if self.total_completed > 0:
            return self.total_trip_ms / self.total_completed
        return 0.0


@dataclass
class PerformanceMetrics:
    """Wall-clock cost of update() calls"""
    total_steps: int = 0
    average_step_ms: float = 0.0
    last_step_ms: float = 0.0


class SimulationEngine:
    """
    Deterministic grid traffic engine

    Usage:
        engine = SimulationEngine(config)
        engine.initialize(junctions)
        vehicle = engine.spawn_vehicle(route)
        engine.update(dt=1.0, elapsed_ms=16.7)
    """

    MOTION_EPS = 1e-9

    def __init__(self, config: Optional[GridConfig] = None):
        self.config = config or GridConfig()
        self.sim_time_ms = 0.0
        self.is_running = False
        self.is_paused = False

        self.junctions: MutableMapping = {}
        self.vehicles: Dict[str, Vehicle] = {}

        self._trips: Dict[str, TripRecord] = {}
        self.stats = TripStatistics()
        self.metrics = PerformanceMetrics()

        self._vehicle_counter = 0
        self._newly_completed: List[Vehicle] = []

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def initialize(self, junctions: MutableMapping, vehicles: Iterable[Vehicle] = ()) -> None:
        """
        Attach the junction mapping and any pre-built vehicles

        The mapping is shared, not copied: junctions added to it later are
        picked up on the next tick.
        """
        self.junctions = junctions
        for vehicle in vehicles:
            self.add_vehicle(vehicle)
        self.is_running = True

    def pause(self) -> None:
        self.is_paused = True

    def resume(self) -> None:
        self.is_paused = False

    def stop(self) -> None:
        self.is_running = False

    # -------------------------------------------------------------------------
    # Vehicles
    # -------------------------------------------------------------------------

    @property
    def spacing(self) -> float:
        return self.config.vehicle_spacing

    def _lane_for(self, hop):
        return self.junctions[hop.junction_id].lane(hop.approach)

    def _entry_limit(self, lane, hop) -> float:
        """Furthest arc position allowed in `lane` for a vehicle whose hop is `hop`"""
        tail = lane.tail()
        if tail is None:
            return hop.stop_s
        return hop.stop_s - (tail.distance_to_stop() + self.spacing)

    def add_vehicle(self, vehicle: Vehicle) -> Vehicle:
        """
        Register a vehicle and queue it in its first lane

        Raises:
            RouteNotFound: a junction on its route no longer exists
            CapacityExceeded: the first lane is full or has no room at its entry
        """
        hop = vehicle.current_hop
        if hop is None or hop.junction_id not in self.junctions:
            raise RouteNotFound(f"Vehicle {vehicle.id} has no lane to enter")
        lane = self._lane_for(hop)
        if not lane.is_full() and self._entry_limit(lane, hop) < vehicle.s:
            raise CapacityExceeded(lane.lane_id, lane.capacity, "no room at lane entry")
        lane.enqueue(vehicle, self.sim_time_ms)

        self.vehicles[vehicle.id] = vehicle
        self._trips[vehicle.id] = TripRecord(spawn_sim_ms=self.sim_time_ms)
        self.stats.total_spawned += 1
        return vehicle

    def spawn_vehicle(self, route) -> Optional[Vehicle]:
        """
        Create a vehicle for `route` at its spawn point

        Returns:
            The new vehicle, or None when the route is stale or its first
            lane cannot take another vehicle
        """
        try:
            plan = build_vehicle_plan(route, self.junctions, self.config)
            vehicle = Vehicle(f"v{self._vehicle_counter + 1}", plan, self.config)
            self.add_vehicle(vehicle)
        except (CapacityExceeded, RouteNotFound):
            return None
        self._vehicle_counter += 1
        return vehicle

    def remove_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        """
        Dispose of a vehicle, releasing any lane slot it holds

        Completed vehicles have their trip folded into the statistics
        before the trip record is dropped.
        """
        vehicle = self.vehicles.pop(vehicle_id, None)
        if vehicle is None:
            return None

        hop = vehicle.current_hop
        if hop is not None and hop.junction_id in self.junctions:
            self._lane_for(hop).remove(vehicle)

        trip = self._trips.pop(vehicle_id, None)
        if vehicle.plan.done:
            self._record_completion(trip)
        else:
            self.stats.total_removed += 1
        return vehicle

    def remove_junction(self, junction_id) -> List[Vehicle]:
        """
        Remove a junction and every vehicle still routed through it

        Returns:
            The vehicles that were removed
        """
        junction_id = tuple(junction_id)
        junction = self.junctions.get(junction_id)
        if junction is None:
            return []

        affected = [v for v in self.vehicles.values() if not v.plan.done and v.depends_on(junction_id)]
        for vehicle in affected:
            self.remove_vehicle(vehicle.id)

        junction.destroy()
        del self.junctions[junction_id]
        return affected

    def completed_vehicles(self) -> List[Vehicle]:
        """Registered vehicles whose plan is done, in registration order"""
        return [v for v in self.vehicles.values() if v.plan.done]

    def last_completed(self) -> List[Vehicle]:
        """Vehicles that became done during the most recent tick"""
        return list(self._newly_completed)

    def get_trip(self, vehicle_id: str) -> Optional[TripRecord]:
        return self._trips.get(vehicle_id)

    def _record_completion(self, trip: Optional[TripRecord]) -> None:
        self.stats.total_completed += 1
        if trip is None:
            return
        self.stats.total_trip_ms += max(0.0, self.sim_time_ms - trip.spawn_sim_ms)
        self.stats.completed_distance_px += trip.distance_px
        self.stats.completed_idle_ms += trip.idle_ms
        self.stats.completed_co2_g += trip.co2_g

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    def update(self, dt: float, elapsed_ms: float) -> None:
        """
        Advance the whole grid by one tick

        Args:
            dt: Motion frames to advance (distance = car_speed * dt)
            elapsed_ms: Signal time to advance [ms]
        """
        if not self.is_running or self.is_paused:
            return

        step_start = time.perf_counter()
        self._newly_completed = []

        self.sim_time_ms += elapsed_ms
        self._update_signals(elapsed_ms)

        previous = {vid: v.s for vid, v in self.vehicles.items()}
        # A tick that advances no time moves nothing
        step = self.config.car_speed * dt if elapsed_ms > 0 else 0.0
        if step > 0:
            self._move_vehicles(step)
            self._mark_completed()

        self._update_telemetry(previous, elapsed_ms)

        elapsed = (time.perf_counter() - step_start) * 1000.0
        m = self.metrics
        m.last_step_ms = elapsed
        m.total_steps += 1
        m.average_step_ms = (m.average_step_ms * (m.total_steps - 1) + elapsed) / m.total_steps

    def _update_signals(self, elapsed_ms: float) -> None:
        for junction in self.junctions.values():
            junction.signal.update(elapsed_ms)

    def _move_vehicles(self, step: float) -> None:
        processed: Set[str] = set()

        for junction in list(self.junctions.values()):
            for direction in DIRECTIONS:
                for vehicle in junction.lane(direction).vehicles():
                    if vehicle.id in processed:
                        continue
                    processed.add(vehicle.id)
                    self._advance(vehicle, step)

        for vehicle in list(self.vehicles.values()):
            if vehicle.id in processed or vehicle.plan.done:
                continue
            processed.add(vehicle.id)
            self._advance(vehicle, step)

    def _advance(self, vehicle: Vehicle, step: float) -> None:
        start = vehicle.s
        target = start + step
        blocked = False

        while True:
            hop = vehicle.current_hop
            if hop is None:
                vehicle.s = min(target, vehicle.plan.total_length)
                break

            lane = self._lane_for(hop)
            leader = lane.vehicle_ahead_of(vehicle)
            if leader is not None:
                bound = hop.stop_s - (leader.distance_to_stop() + self.spacing)
            else:
                bound = hop.stop_s

            if target <= bound:
                vehicle.s = max(vehicle.s, target)
                break

            if leader is not None or not self._may_cross(vehicle, lane):
                vehicle.s = max(vehicle.s, bound)
                blocked = True
                break

            lane.dequeue_front(self.sim_time_ms)
            vehicle.hop_index += 1
            nxt = vehicle.current_hop
            if nxt is not None:
                self._lane_for(nxt).enqueue(vehicle, self.sim_time_ms)

        moved = vehicle.s - start
        vehicle.speed = moved / (step / self.config.car_speed) if step > 0 else 0.0
        vehicle.update_waiting(blocked and moved < step - self.MOTION_EPS, self.sim_time_ms)
        vehicle.state = self._derive_state(vehicle, blocked)

    def _may_cross(self, vehicle: Vehicle, lane) -> bool:
        junction = self.junctions[lane.junction_id]
        if not junction.signal.is_green(lane.axis):
            return False
        if not lane.is_front(vehicle):
            return False

        hop = vehicle.current_hop
        nxt = vehicle.next_hop
        if nxt is None:
            return True
        if nxt.junction_id not in self.junctions:
            return False
        next_lane = self._lane_for(nxt)
        if next_lane.is_full():
            return False
        return self._entry_limit(next_lane, nxt) > hop.stop_s

    def _derive_state(self, vehicle: Vehicle, blocked: bool) -> VehicleState:
        if vehicle.plan.done:
            return VehicleState.DONE
        if blocked:
            return VehicleState.QUEUED
        if vehicle.is_inside_junction():
            return VehicleState.CROSSING
        if vehicle.current_hop is None:
            return VehicleState.EXITING
        return VehicleState.APPROACHING

    def _mark_completed(self) -> None:
        for vehicle in self.vehicles.values():
            if vehicle.plan.done:
                continue
            if vehicle.current_hop is None and vehicle.s >= vehicle.plan.total_length - self.MOTION_EPS:
                vehicle.plan.done = True
                vehicle.state = VehicleState.DONE
                vehicle.update_waiting(False, self.sim_time_ms)
                self._newly_completed.append(vehicle)

    def _update_telemetry(self, previous: Dict[str, float], elapsed_ms: float) -> None:
        cfg = self.config
        minutes = elapsed_ms / 60000.0
        idle_g_per_min = (cfg.idle_gal_per_hr * cfg.co2_g_per_gal) / 60.0

        tick_co2 = 0.0
        tick_dist = 0.0

        if minutes > 0:
            for vid, vehicle in self.vehicles.items():
                if vid not in previous:
                    continue
                if vehicle.plan.done and vehicle not in self._newly_completed:
                    continue
                trip = self._trips.setdefault(vid, TripRecord(spawn_sim_ms=self.sim_time_ms))
                moved = vehicle.s - previous[vid]

                if moved < 0.01:
                    trip.idle_ms += elapsed_ms
                    self.stats.total_idle_ms += elapsed_ms
                    g = idle_g_per_min * minutes
                else:
                    trip.moving_ms += elapsed_ms
                    trip.distance_px += moved
                    self.stats.total_moving_ms += elapsed_ms
                    self.stats.total_distance_px += moved
                    tick_dist += moved
                    g = (moved / cfg.px_per_m) / 1000.0 * cfg.co2_per_km

                trip.co2_g += g
                self.stats.total_co2_g += g
                tick_co2 += g

        s = self.stats
        s.last_tick_sim_delta_ms = elapsed_ms
        s.last_tick_distance_px = tick_dist
        s.last_tick_co2_g = tick_co2
        s.co2_rate_g_per_min = tick_co2 / minutes if minutes > 0 else 0.0

    # -------------------------------------------------------------------------
    # Observability
    # -------------------------------------------------------------------------

    def get_state(self) -> Dict[str, Any]:
        return {
            'sim_time_ms': self.sim_time_ms,
            'is_running': self.is_running,
            'is_paused': self.is_paused,
            'junctions': [j.get_state(self.sim_time_ms) for j in self.junctions.values()],
            'vehicles': [v.get_state(self.sim_time_ms) for v in self.vehicles.values()],
            'vehicle_count': len(self.vehicles),
            'junction_count': len(self.junctions),
            'metrics': asdict(self.metrics),
        }

    def get_stats_snapshot(self) -> Dict[str, Any]:
        snapshot = {
            'sim_time_ms': self.sim_time_ms,
            'car_count': len(self.vehicles),
        }
        snapshot.update(asdict(self.stats))
        snapshot['average_trip_ms'] = self.stats.average_trip_ms
        return snapshot

    def get_performance_metrics(self) -> Dict[str, float]:
        result = asdict(self.metrics)
        result['sim_time_ms'] = self.sim_time_ms
        result['fps'] = 1000.0 / self.metrics.last_step_ms if self.metrics.last_step_ms > 0 else 0.0
        return result

    def reset_metrics(self) -> None:
        self.metrics = PerformanceMetrics()
