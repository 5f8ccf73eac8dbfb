#!/usr/bin/env python3
"""
Run a Grid Traffic Simulation

Usage:
    python run_grid_simulation.py <rows> <cols> [duration] [config.xml]

Example:
    python run_grid_simulation.py 3 3
    python run_grid_simulation.py 4 6 300
    python run_grid_simulation.py 4 6 300 grid_config.xml
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from core.config import GridConfig, GridConfigParser
from core.simulation import SimulationSettings, create_full_grid


def print_grid_config(config: GridConfig):
    """Print grid configuration parameters"""
    print("\n  Signal Timings:")
    print(f"    Green: {config.green_ms:.0f}ms, Yellow: {config.yellow_ms:.0f}ms, All-red: {config.allred_ms:.0f}ms")

    print("\n  Vehicles:")
    print(f"    Length: {config.car_len}px, Gap: {config.car_gap}px, Speed: {config.car_speed}px/frame")
    print(f"    Lane capacity: {config.lane_capacity}")
    print(f"    Spawn cooldown: {config.spawn_cooldown_ms:.0f}ms")

    print("\n  Layout:")
    print(f"    Cell: {config.cell_w}x{config.cell_h}px, Road: {config.road_thick}px, Junction: {config.junc_size}px")
    print(f"    Exits enabled: {config.exits_enabled}")


def main():
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)

    try:
        rows = int(sys.argv[1])
        cols = int(sys.argv[2])
    except ValueError:
        print("Error: rows and cols must be integers")
        print(__doc__)
        sys.exit(1)

    duration = float(sys.argv[3]) if len(sys.argv) > 3 else 60.0

    print("=" * 60)
    print("Grid Traffic Simulation")
    print("=" * 60)

    if len(sys.argv) > 4:
        config_file = sys.argv[4]
        print(f"\nParsing grid config: {config_file}")
        config = GridConfigParser().parse(config_file)
    else:
        config = GridConfig()
    print_grid_config(config)

    settings = SimulationSettings(duration=duration, verbose=True)

    print(f"\nInitializing {rows}x{cols} grid for {duration}s...")
    sim = create_full_grid(rows, cols, config=config, settings=settings)

    print("\nRunning simulation...")
    results = sim.run()

    # Print results
    stats = results['stats']
    print("\n" + "=" * 60)
    print("Simulation Results")
    print("=" * 60)
    print(f"  Simulation steps: {results['steps']}")
    print(f"  Vehicles spawned: {stats['total_spawned']}")
    print(f"  Vehicles completed: {stats['total_completed']}")
    print(f"  Vehicles on grid: {results['vehicles_active']}")
    print(f"  Vehicles queued: {results['vehicles_queued']}")
    print(f"  Average trip: {stats['average_trip_ms'] / 1000.0:.1f}s")
    print(f"  Total CO2: {stats['total_co2_g']:.1f}g")

    busiest = max(results['junction_stats'], key=lambda j: j['utilization'], default=None)
    if busiest is not None:
        print(f"  Busiest junction: {busiest['id']} "
              f"({busiest['utilization'] * 100:.0f}% lane utilization)")

    # Export results
    output_file = "simulation_results.json"
    sim.export_results(output_file)

    return results


if __name__ == "__main__":
    main()
