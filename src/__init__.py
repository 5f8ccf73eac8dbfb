"""
Grid Traffic Simulation

A deterministic, tick-driven simulator of vehicles crossing a rectangular
grid of signal-controlled junctions.
"""

__version__ = "0.1.0"
__author__ = "Traffic Simulation Team"
