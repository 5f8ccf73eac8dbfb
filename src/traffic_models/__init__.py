"""
Traffic Models Module

This module contains the per-junction building blocks of the grid:
- Signal phase state machine
- Capacity-bounded approach lane queues
- Signalized junctions composing four lanes and one signal
"""

from .signal_controller import (
    SignalController,
    SignalPhase,
    SignalTimings,
    LightColor,
)

from .lane import (
    Lane,
)

from .junction import (
    Junction,
    ExitToggled,
    junction_key,
)

__all__ = [
    # Signals
    'SignalController',
    'SignalPhase',
    'SignalTimings',
    'LightColor',
    # Queues
    'Lane',
    # Junctions
    'Junction',
    'ExitToggled',
    'junction_key',
]
