"""
Integration Test Suite: Grid Simulation

This test bench validates the driver wiring junctions, router and engine:
- World editing (junctions, exits) before and after initialization
- Random trip spawning with the sim-time cooldown
- Tick loop, disposal of completed vehicles and vehicle conservation
- Reproducibility under a fixed seed
- Results collection and export

Test Categories:
1. World Editing
2. Spawning and Disposal
3. Whole-Run Properties
4. Results
"""

import json

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.config import GridConfig
from core.directions import DIRECTIONS, Direction
from core.simulation import GridSimulation, SimulationSettings, create_full_grid
from traffic_models.signal_controller import SignalPhase


# =============================================================================
# Fixtures
# =============================================================================

def quiet(seed=42, **kwargs) -> SimulationSettings:
    return SimulationSettings(verbose=False, random_seed=seed, **kwargs)


@pytest.fixture
def sim_2x2() -> GridSimulation:
    return create_full_grid(2, 2, settings=quiet())


def vehicle_snapshot(sim):
    return [
        (v['id'], round(v['progress'], 6), v['hop_index'], v['state'])
        for v in sim.get_state()['vehicles']
    ]


def assert_lanes_consistent(sim):
    """Every lane within capacity, no vehicle in two lanes"""
    seen = []
    for junction in sim.junctions.values():
        for lane in junction.get_lanes().values():
            assert len(lane) <= lane.capacity
            seen.extend(v.id for v in lane.vehicles())
    assert len(seen) == len(set(seen))
    assert set(seen) <= set(sim.engine.vehicles)


# =============================================================================
# Test Class: World Editing
# =============================================================================

@pytest.mark.integration
class TestWorldEditing:
    """Test junction and exit editing through the driver"""

    def test_add_junction_outside_grid(self):
        sim = GridSimulation(2, 2, settings=quiet())
        with pytest.raises(ValueError):
            sim.add_junction(2, 0)

    def test_add_existing_junction_returns_it(self):
        sim = GridSimulation(2, 2, settings=quiet())
        first = sim.add_junction(0, 1)

        assert sim.add_junction(0, 1) is first
        assert len(sim.junctions) == 1

    def test_initialize_requires_junctions(self):
        sim = GridSimulation(2, 2, settings=quiet())
        with pytest.raises(RuntimeError):
            sim.initialize()

    def test_step_requires_initialize(self):
        sim = GridSimulation(2, 2, settings=quiet())
        sim.add_junction(0, 0)

        with pytest.raises(RuntimeError):
            sim.step()
        with pytest.raises(RuntimeError):
            sim.run(duration=1)

    def test_remove_junction_before_initialize(self):
        sim = GridSimulation(1, 2, settings=quiet())
        junction = sim.add_junction(0, 0)
        sim.add_junction(0, 1)

        assert sim.remove_junction(0, 0) == []
        assert (0, 0) not in sim.junctions
        assert not junction.signal.running

    def test_remove_junction_shared_with_router(self, sim_2x2):
        sim_2x2.remove_junction(1, 0)

        assert (1, 0) not in sim_2x2.engine.junctions
        assert sim_2x2.router.bfs_path((0, 0), (1, 1)) == [(0, 0), (0, 1), (1, 1)]

    def test_remove_junction_while_running(self, sim_2x2):
        for _ in range(300):
            sim_2x2.step()

        removed = sim_2x2.remove_junction(0, 0)

        for vehicle in removed:
            assert vehicle.id not in sim_2x2.engine.vehicles
        for vehicle in sim_2x2.engine.vehicles.values():
            assert not vehicle.depends_on((0, 0)) or vehicle.plan.done
        assert_lanes_consistent(sim_2x2)

        for _ in range(100):
            sim_2x2.step()
        assert_lanes_consistent(sim_2x2)

    def test_toggle_and_set_exit(self, sim_2x2):
        assert sim_2x2.toggle_exit(0, 0, "N") is False
        sim_2x2.set_exit(0, 0, Direction.N, True)

        assert sim_2x2.junctions[(0, 0)].is_exit_enabled(Direction.N)

    def test_phase_callback_reaches_driver(self):
        calls = []
        sim = GridSimulation(1, 1, settings=quiet(),
                             on_phase_change=lambda j, p: calls.append((j.id, p)))
        sim.add_junction(0, 0)
        sim.initialize()
        sim.step(elapsed_ms=3000)

        assert calls == [((0, 0), SignalPhase.EW_GREEN), ((0, 0), SignalPhase.EW_YELLOW)]

    def test_initialize_reports_grid(self, capsys):
        sim = GridSimulation(2, 3, settings=SimulationSettings(random_seed=1))
        sim.add_junction(0, 0)
        sim.add_junction(0, 1)
        sim.initialize()

        assert "Loaded grid: 2x3, 2 junctions" in capsys.readouterr().out


# =============================================================================
# Test Class: Spawning and Disposal
# =============================================================================

@pytest.mark.integration
class TestSpawningAndDisposal:
    """Test random trips and their disposal"""

    def test_cooldown_blocks_second_spawn(self, sim_2x2):
        assert sim_2x2.spawn_random() is not None
        assert sim_2x2.spawn_random() is None

    def test_spawn_after_cooldown(self):
        sim = create_full_grid(2, 2, settings=quiet(spawn_enabled=False))
        assert sim.spawn_random() is not None

        sim.step(elapsed_ms=500)
        assert sim.spawn_random() is not None
        assert sorted(sim.engine.vehicles) == ["v1", "v2"]

    def test_no_enabled_exits_no_spawns(self):
        sim = create_full_grid(2, 2, config=GridConfig(exits_enabled=False), settings=quiet())
        for _ in range(60):
            sim.step()

        assert sim.engine.vehicles == {}
        assert sim.engine.stats.total_spawned == 0

    def test_single_junction_never_spawns(self):
        sim = create_full_grid(1, 1, settings=quiet())
        for _ in range(60):
            sim.step()

        assert sim.engine.stats.total_spawned == 0

    def test_completed_vehicles_are_disposed(self):
        sim = create_full_grid(1, 2, settings=quiet(seed=3))
        disposed = []
        for _ in range(3000):
            disposed.extend(sim.step())
            if disposed:
                break

        assert disposed
        for vehicle in disposed:
            assert vehicle.plan.done
            assert vehicle.id not in sim.engine.vehicles
        assert sim.engine.stats.total_completed == len(disposed)
        assert sim.engine.completed_vehicles() == []


# =============================================================================
# Test Class: Whole-Run Properties
# =============================================================================

@pytest.mark.integration
@pytest.mark.slow
class TestWholeRun:
    """Test properties that hold over long runs"""

    def test_same_seed_same_run(self):
        a = create_full_grid(3, 3, settings=quiet(seed=7))
        b = create_full_grid(3, 3, settings=quiet(seed=7))

        for _ in range(600):
            a.step()
            b.step()

        assert vehicle_snapshot(a) == vehicle_snapshot(b)
        assert a.engine.get_stats_snapshot() == b.engine.get_stats_snapshot()

    def test_vehicles_conserved(self):
        sim = create_full_grid(3, 3, settings=quiet(seed=11))
        for _ in range(1200):
            sim.step()
            stats = sim.engine.stats
            assert stats.total_spawned == (
                len(sim.engine.vehicles) + stats.total_completed + stats.total_removed)

    def test_lanes_stay_consistent(self):
        sim = create_full_grid(3, 3, config=GridConfig(lane_capacity=3), settings=quiet(seed=5))
        for _ in range(1200):
            sim.step()
            assert_lanes_consistent(sim)

    def test_signals_never_green_on_both_axes(self):
        sim = create_full_grid(2, 2, settings=quiet())
        for _ in range(1000):
            sim.step()
            for junction in sim.junctions.values():
                greens = [junction.signal.is_green(a) for a in ("H", "V")]
                assert greens.count(True) <= 1

    def test_queued_vehicles_sit_behind_their_stop_line(self):
        sim = create_full_grid(2, 2, settings=quiet(seed=9))
        for _ in range(900):
            sim.step()
            for junction in sim.junctions.values():
                for d in DIRECTIONS:
                    for vehicle in junction.lane(d).vehicles():
                        assert vehicle.s <= vehicle.current_hop.stop_s + 1e-6


# =============================================================================
# Test Class: Results
# =============================================================================

@pytest.mark.integration
class TestResults:
    """Test results collection and export"""

    def test_run_collects_results(self, sim_2x2):
        results = sim_2x2.run(duration=2.0)

        assert results is sim_2x2.get_results()
        assert results['duration'] == 2.0
        assert results['grid'] == {'rows': 2, 'cols': 2}
        assert results['junction_count'] == 4
        assert results['steps'] > 0
        assert results['stats']['total_spawned'] >= 1
        assert len(results['junction_stats']) == 4
        assert results['junction_stats'][0]['id'] == "0,0"
        assert 'cycles_completed' in results['junction_stats'][0]['signal']

    def test_export_results(self, sim_2x2, tmp_path):
        sim_2x2.run(duration=1.0)
        path = tmp_path / "results.json"
        sim_2x2.export_results(str(path))

        with open(path) as f:
            data = json.load(f)

        assert data['junction_count'] == 4
        assert data['stats']['sim_time_ms'] == pytest.approx(sim_2x2.sim_time_ms)

    def test_verbose_run_prints_progress(self, capsys):
        sim = create_full_grid(1, 2, settings=SimulationSettings(random_seed=1))
        sim.run(duration=0.5)

        out = capsys.readouterr().out
        assert "Starting simulation for 0.5s" in out
        assert "Simulation completed" in out
