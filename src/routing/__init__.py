"""
Routing Module

Shortest-hop routing over the junction grid and random trip planning.
"""

from .router import (
    Route,
    Router,
)

__all__ = [
    'Route',
    'Router',
]
