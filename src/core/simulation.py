"""
Simulation Driver for the Junction Grid

This module wires the core components into a runnable world:
- Grid geometry and junction creation/removal
- Exit toggles (the external control surface)
- Random trip spawning with a sim-time cooldown
- Tick loop over the SimulationEngine
- Disposal of completed vehicles and results export
"""

import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from traffic_models.junction import Junction, JunctionId, junction_key
from traffic_models.signal_controller import SignalPhase
from routing.router import Router

from .config import GridConfig
from .directions import Direction
from .engine import SimulationEngine
from .errors import RouteNotFound
from .geometry import GridGeometry
from .vehicle import Vehicle


@dataclass
class SimulationSettings:
    """Configuration for simulation execution"""
    # Time settings
    duration: float = 60.0                  # Total simulation duration [seconds]
    tick_ms: float = 1000.0 / 60.0          # Sim time per tick [ms]

    # Spawning
    spawn_enabled: bool = True              # Spawn random trips every tick (cooldown permitting)

    # Verbosity
    verbose: bool = True                    # Print progress

    # Random seed
    random_seed: Optional[int] = None       # For reproducibility


class GridSimulation:
    """
    Main driver for a rows x cols junction grid

    Usage:
        sim = GridSimulation(rows=3, cols=3)
        sim.add_junction(0, 0)
        ...
        sim.initialize()
        results = sim.run(duration=120)
    """

    def __init__(self,
                 rows: int,
                 cols: int,
                 config: Optional[GridConfig] = None,
                 settings: Optional[SimulationSettings] = None,
                 on_phase_change: Optional[Callable[[Junction, SignalPhase], None]] = None):
        """
        Args:
            rows, cols: Grid size
            config: Grid configuration
            settings: Execution settings
            on_phase_change: Render callback forwarded to every junction
        """
        self.config = config or GridConfig()
        self.settings = settings or SimulationSettings()
        self.rows = rows
        self.cols = cols
        self.geometry = GridGeometry(self.config, rows, cols)

        self.junctions: Dict[JunctionId, Junction] = {}
        self.router = Router(rows, cols, self.junctions)
        self.engine = SimulationEngine(self.config)

        self.rng = random.Random(self.settings.random_seed)
        self._on_phase_change = on_phase_change
        self._last_spawn_ms: Optional[float] = None
        self._steps = 0
        self._initialized = False
        self._results: Dict[str, Any] = {}

    # -------------------------------------------------------------------------
    # World editing
    # -------------------------------------------------------------------------

    def add_junction(self, row: int, col: int) -> Junction:
        """Create a junction at (row, col); an existing one is returned as is"""
        if not self.geometry.contains(row, col):
            raise ValueError(f"Junction ({row}, {col}) is outside the {self.rows}x{self.cols} grid")
        existing = self.junctions.get((row, col))
        if existing is not None:
            return existing

        junction = Junction(row, col, self.config, self.geometry, on_phase_change=self._on_phase_change)
        self.junctions[junction.id] = junction
        return junction

    def remove_junction(self, row: int, col: int) -> List[Vehicle]:
        """Remove a junction and the vehicles routed through it"""
        return self.engine.remove_junction((row, col)) if self._initialized else self._drop_junction((row, col))

    def _drop_junction(self, junction_id: JunctionId) -> List[Vehicle]:
        junction = self.junctions.pop(junction_id, None)
        if junction is not None:
            junction.destroy()
        return []

    def set_exit(self, row: int, col: int, direction, enabled: bool) -> None:
        self.junctions[(row, col)].set_exit(Direction.parse(direction), enabled)

    def toggle_exit(self, row: int, col: int, direction) -> bool:
        return self.junctions[(row, col)].toggle_exit(Direction.parse(direction))

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def initialize(self):
        """Hand the junction grid to the engine"""
        if not self.junctions:
            raise RuntimeError("No junctions. Call add_junction() first.")

        self.engine.initialize(self.junctions)
        self._initialized = True

        if self.settings.verbose:
            print(f"Loaded grid: {self.rows}x{self.cols}, "
                  f"{len(self.junctions)} junctions, "
                  f"{len(self.router.boundary_junctions())} boundary junctions")

    @property
    def sim_time_ms(self) -> float:
        return self.engine.sim_time_ms

    def spawn_random(self) -> Optional[Vehicle]:
        """
        Spawn one random trip if the spawn cooldown has elapsed

        Returns:
            The new vehicle, or None (cooldown, no route, or no room)
        """
        now = self.engine.sim_time_ms
        if self._last_spawn_ms is not None and now - self._last_spawn_ms < self.config.spawn_cooldown_ms:
            return None
        self._last_spawn_ms = now

        try:
            route = self.router.build_random_route(self.rng)
        except RouteNotFound:
            return None
        return self.engine.spawn_vehicle(route)

    def step(self, elapsed_ms: Optional[float] = None) -> List[Vehicle]:
        """
        Advance one tick

        Args:
            elapsed_ms: Sim time to advance (defaults to settings.tick_ms)

        Returns:
            Vehicles that completed their trip and were disposed this tick
        """
        if not self._initialized:
            raise RuntimeError("Simulation not initialized. Call initialize() first.")

        if elapsed_ms is None:
            elapsed_ms = self.settings.tick_ms
        dt = elapsed_ms / self.config.frame_ms

        if self.settings.spawn_enabled:
            self.spawn_random()

        self.engine.update(dt, elapsed_ms)
        self._steps += 1

        disposed = []
        for vehicle in self.engine.completed_vehicles():
            self.engine.remove_vehicle(vehicle.id)
            disposed.append(vehicle)
        return disposed

    def run(self, duration: Optional[float] = None) -> Dict[str, Any]:
        """
        Run the simulation

        Args:
            duration: Optional override for simulation duration [seconds]

        Returns:
            Results dictionary
        """
        if not self._initialized:
            raise RuntimeError("Simulation not initialized. Call initialize() first.")

        if duration is None:
            duration = self.settings.duration
        steps = int(duration * 1000.0 / self.settings.tick_ms)

        if self.settings.verbose:
            print(f"Starting simulation for {duration}s ({steps} ticks)...")
            start_time = time.time()

        for _ in range(steps):
            self.step()

        if self.settings.verbose:
            elapsed = time.time() - start_time
            rate = duration / elapsed if elapsed > 0 else float('inf')
            print(f"Simulation completed in {elapsed:.2f}s "
                  f"({rate:.1f}x real-time)")

        self._collect_results(duration)
        return self._results

    def _collect_results(self, duration: float):
        stats = self.engine.get_stats_snapshot()
        self._results = {
            "duration": duration,
            "steps": self._steps,
            "sim_time_ms": self.engine.sim_time_ms,
            "grid": {"rows": self.rows, "cols": self.cols},
            "junction_count": len(self.junctions),
            "vehicles_active": len(self.engine.vehicles),
            "vehicles_queued": sum(j.total_queued() for j in self.junctions.values()),
            "stats": stats,
            "performance": self.engine.get_performance_metrics(),
        }

        junction_stats = []
        for junction in self.junctions.values():
            entry = {"id": junction_key(junction.id)}
            entry.update(junction.get_metrics())
            entry["signal"] = junction.signal.get_cycle_statistics()
            junction_stats.append(entry)

        self._results["junction_stats"] = junction_stats

    def get_results(self) -> Dict[str, Any]:
        """Get simulation results"""
        return self._results

    def get_state(self) -> Dict[str, Any]:
        return self.engine.get_state()

    def export_results(self, filepath: str):
        """
        Export results to file

        Args:
            filepath: Output file path
        """
        import json

        with open(filepath, 'w') as f:
            json.dump(self._results, f, indent=2)

        if self.settings.verbose:
            print(f"Results exported to {filepath}")


# =============================================================================
# Helper Functions
# =============================================================================

def create_full_grid(rows: int,
                     cols: int,
                     config: Optional[GridConfig] = None,
                     settings: Optional[SimulationSettings] = None) -> GridSimulation:
    """
    Create an initialized simulation with a junction in every cell

    Args:
        rows, cols: Grid size
        config: Grid configuration
        settings: Execution settings

    Returns:
        GridSimulation ready to step
    """
    sim = GridSimulation(rows, cols, config=config, settings=settings)
    for r in range(rows):
        for c in range(cols):
            sim.add_junction(r, c)
    sim.initialize()
    return sim
