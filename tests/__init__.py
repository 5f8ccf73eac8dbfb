"""
Test Suite for the Grid Traffic Simulation

Tests for:
- Signal phase sequencing and timing
- Lane queues and junction geometry
- Shortest-hop routing
- Engine motion, queueing and removal
- Driver integration scenarios
"""
