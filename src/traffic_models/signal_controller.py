"""
Signal Phase Controller for Grid Junctions

Each junction runs a two-axis fixed-time signal: the horizontal (E/W) and
vertical (N/S) streams take turns, separated by a yellow and an all-red
clearance interval.

Phase cycle:
------------
    EW_GREEN -> EW_YELLOW -> ALL_RED -> NS_GREEN -> NS_YELLOW -> ALL_RED -> EW_GREEN ...

The axis served after ALL_RED is always the one *not* served before it,
so the two greens alternate and are never active together.

Timing model:
-------------
The controller is tick driven. `update(elapsed_ms)` consumes elapsed time;
when it exceeds what is left of the current phase, the excess carries into
the following phase, so a single coarse tick may step through several
phases:

    remaining = 4000 (EW_GREEN), update(9000)
      4000 consumed -> EW_YELLOW (1000)
      1000 consumed -> ALL_RED   (1000)
      1000 consumed -> NS_GREEN  (4000), 3000 left to consume
      -> NS_GREEN with remaining = 1000

Timing changes (`update_timings`) apply from the next phase entered; time
already left in the current phase is not rescaled.
"""

from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Union

from core.directions import Axis
from core.errors import ConfigurationError


class SignalPhase(Enum):
    """Junction signal phases"""
    EW_GREEN = "EW_GREEN"
    EW_YELLOW = "EW_YELLOW"
    NS_GREEN = "NS_GREEN"
    NS_YELLOW = "NS_YELLOW"
    ALL_RED = "ALL_RED"

    @property
    def is_green(self) -> bool:
        return self in (SignalPhase.EW_GREEN, SignalPhase.NS_GREEN)

    @property
    def is_yellow(self) -> bool:
        return self in (SignalPhase.EW_YELLOW, SignalPhase.NS_YELLOW)


class LightColor(Enum):
    """Light shown to one axis"""
    GREEN = "GREEN"
    YELLOW = "YELLOW"
    RED = "RED"


@dataclass(frozen=True)
class SignalTimings:
    """Phase durations [ms]; all strictly positive"""
    green_ms: float = 3000.0
    yellow_ms: float = 400.0
    all_red_ms: float = 3000.0

    def __post_init__(self):
        for name in ('green_ms', 'yellow_ms', 'all_red_ms'):
            value = getattr(self, name)
            if value is None or value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")

    @property
    def cycle_length(self) -> float:
        """Nominal length of a full two-axis cycle [ms]"""
        return 2 * (self.green_ms + self.yellow_ms + self.all_red_ms)

    def duration_for(self, phase: SignalPhase) -> float:
        if phase.is_green:
            return self.green_ms
        if phase.is_yellow:
            return self.yellow_ms
        return self.all_red_ms

    def to_dict(self) -> Dict[str, float]:
        return {
            'green_ms': self.green_ms,
            'yellow_ms': self.yellow_ms,
            'all_red_ms': self.all_red_ms,
        }


@dataclass
class PhaseRecord:
    """A completed phase as kept in the controller history"""
    phase: SignalPhase
    entered_at_ms: float
    duration_ms: float


PhaseListener = Callable[[SignalPhase], None]


class SignalController:
    """
    Two-axis traffic signal state machine

    Exactly one phase is active at any instant and `remaining_ms` never
    goes negative between updates. Observers registered with `on_change`
    are notified synchronously, in registration order, on every phase
    transition.

    Usage:
        signal = SignalController(SignalTimings(green_ms=4000))
        signal.start()
        signal.update(250)
        if signal.is_green(Axis.HORIZONTAL):
            ...
    """

    HISTORY_LENGTH = 32

    def __init__(self, timings: Optional[SignalTimings] = None):
        """
        Args:
            timings: Phase durations (defaults to SignalTimings())
        """
        self._timings = timings or SignalTimings()
        self.phase = SignalPhase.EW_GREEN
        self._remaining_ms = 0.0
        self._running = False
        self._entered_any = False
        # Which axis was left when the last ALL_RED began
        self._last_all_red_from_ns = False
        self._listeners: List[PhaseListener] = []

        # Controller-local clock [ms] advanced by consumed update time
        self._clock_ms = 0.0
        self._phase_entered_ms = 0.0
        self._cycle_started_ms: Optional[float] = None

        # Statistics
        self._cycles_completed = 0
        self._total_cycle_ms = 0.0
        self._greens_completed = 0
        self._total_green_ms = 0.0
        self._history: Deque[PhaseRecord] = deque(maxlen=self.HISTORY_LENGTH)

    # -------------------------------------------------------------------------
    # Observers
    # -------------------------------------------------------------------------

    def on_change(self, listener: PhaseListener) -> None:
        """Register a phase-change listener (called with the new phase)"""
        self._listeners.append(listener)

    def remove_listener(self, listener: PhaseListener) -> bool:
        if listener in self._listeners:
            self._listeners.remove(listener)
            return True
        return False

    def clear_listeners(self) -> None:
        self._listeners.clear()

    def _emit(self) -> None:
        for listener in list(self._listeners):
            listener(self.phase)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def remaining_ms(self) -> float:
        return self._remaining_ms

    def start(self) -> None:
        """Begin (or restart) the cycle at EW_GREEN with a full green"""
        self._running = True
        self._enter_phase(SignalPhase.EW_GREEN)

    def stop(self) -> None:
        """Stop advancing; the current phase is kept"""
        self._running = False

    def resume(self) -> None:
        """Resume advancing from the current phase"""
        if self._remaining_ms <= 0:
            self._remaining_ms = self._timings.duration_for(self.phase)
        self._running = True

    # -------------------------------------------------------------------------
    # Phase advancement
    # -------------------------------------------------------------------------

    def _next_phase(self) -> SignalPhase:
        if self.phase == SignalPhase.EW_GREEN:
            return SignalPhase.EW_YELLOW
        if self.phase == SignalPhase.NS_GREEN:
            return SignalPhase.NS_YELLOW
        if self.phase in (SignalPhase.EW_YELLOW, SignalPhase.NS_YELLOW):
            return SignalPhase.ALL_RED
        # ALL_RED: serve the axis that was not served before it
        return SignalPhase.EW_GREEN if self._last_all_red_from_ns else SignalPhase.NS_GREEN

    def _enter_phase(self, phase: SignalPhase) -> None:
        """Close the current phase, enter `phase` with its full duration, notify"""
        previous = self.phase
        elapsed_in_previous = self._clock_ms - self._phase_entered_ms
        if self._entered_any:
            self._history.append(PhaseRecord(previous, self._phase_entered_ms, elapsed_in_previous))
            if previous.is_green and elapsed_in_previous > 0:
                self._greens_completed += 1
                self._total_green_ms += elapsed_in_previous

        if phase == SignalPhase.ALL_RED and self._entered_any:
            if previous in (SignalPhase.EW_GREEN, SignalPhase.EW_YELLOW):
                self._last_all_red_from_ns = False
            elif previous in (SignalPhase.NS_GREEN, SignalPhase.NS_YELLOW):
                self._last_all_red_from_ns = True

        if phase == SignalPhase.EW_GREEN:
            if self._cycle_started_ms is not None and self._clock_ms > self._cycle_started_ms:
                self._cycles_completed += 1
                self._total_cycle_ms += self._clock_ms - self._cycle_started_ms
            self._cycle_started_ms = self._clock_ms

        self.phase = phase
        self._entered_any = True
        self._phase_entered_ms = self._clock_ms
        self._remaining_ms = self._timings.duration_for(phase)
        self._emit()

    def update(self, elapsed_ms: float) -> None:
        """
        Consume elapsed time, stepping through as many phases as it covers

        No-op while stopped or for non-positive elapsed time.
        """
        if not self._running:
            return
        if not elapsed_ms or elapsed_ms <= 0:
            return

        left = float(elapsed_ms)
        while left > 0:
            if left < self._remaining_ms:
                self._remaining_ms -= left
                self._clock_ms += left
                break
            left -= self._remaining_ms
            self._clock_ms += self._remaining_ms
            self._remaining_ms = 0.0
            self._enter_phase(self._next_phase())

    def is_green(self, axis: Union[Axis, str]) -> bool:
        """Whether `axis` may cross now; yellow and red always forbid crossing"""
        axis = Axis.parse(axis)
        if axis == Axis.HORIZONTAL:
            return self.phase == SignalPhase.EW_GREEN
        return self.phase == SignalPhase.NS_GREEN

    def light_for(self, axis: Union[Axis, str]) -> LightColor:
        axis = Axis.parse(axis)
        green, yellow = (
            (SignalPhase.EW_GREEN, SignalPhase.EW_YELLOW)
            if axis == Axis.HORIZONTAL
            else (SignalPhase.NS_GREEN, SignalPhase.NS_YELLOW)
        )
        if self.phase == green:
            return LightColor.GREEN
        if self.phase == yellow:
            return LightColor.YELLOW
        return LightColor.RED

    # -------------------------------------------------------------------------
    # Manual control
    # -------------------------------------------------------------------------

    def advance_to_next_phase(self) -> SignalPhase:
        """Skip the rest of the current phase"""
        self._enter_phase(self._next_phase())
        return self.phase

    def set_phase(self, phase: Union[SignalPhase, str]) -> None:
        """Force `phase` immediately with its full configured duration"""
        if not isinstance(phase, SignalPhase):
            try:
                phase = SignalPhase(phase)
            except ValueError:
                raise ConfigurationError(
                    f"Unknown phase: {phase!r}. Available: {[p.value for p in SignalPhase]}")
        self._enter_phase(phase)

    def extend_current_phase(self, delta_ms: float) -> float:
        """
        Add `delta_ms` to the time left in the current phase

        Negative deltas shorten the phase; the result is clamped at 0 so
        the phase ends on the next update.

        Returns:
            New remaining time [ms]
        """
        self._remaining_ms = max(0.0, self._remaining_ms + delta_ms)
        return self._remaining_ms

    def get_remaining_time(self) -> float:
        return self._remaining_ms

    # -------------------------------------------------------------------------
    # Timing configuration
    # -------------------------------------------------------------------------

    def get_timings(self) -> Dict[str, float]:
        return self._timings.to_dict()

    @property
    def timings(self) -> SignalTimings:
        return self._timings

    def update_timings(self, green_ms: Optional[float] = None,
                       yellow_ms: Optional[float] = None,
                       all_red_ms: Optional[float] = None) -> Dict[str, float]:
        """
        Change some phase durations

        The new values are used from the next phase entered. If any value
        is not positive nothing is changed.

        Raises:
            ConfigurationError: a duration is not positive

        Returns:
            The timings now in effect
        """
        changes = {}
        if green_ms is not None:
            changes['green_ms'] = green_ms
        if yellow_ms is not None:
            changes['yellow_ms'] = yellow_ms
        if all_red_ms is not None:
            changes['all_red_ms'] = all_red_ms

        # Validation happens in SignalTimings before anything is swapped in
        self._timings = replace(self._timings, **changes)
        return self.get_timings()

    # -------------------------------------------------------------------------
    # Observability
    # -------------------------------------------------------------------------

    def get_state_snapshot(self) -> Dict[str, Any]:
        return {
            'phase': self.phase.value,
            'remaining_ms': self._remaining_ms,
            'running': self._running,
            'horizontal_state': self.light_for(Axis.HORIZONTAL).value,
            'vertical_state': self.light_for(Axis.VERTICAL).value,
            'timings': self.get_timings(),
            'cycle_history': [
                {'phase': r.phase.value, 'entered_at_ms': r.entered_at_ms, 'duration_ms': r.duration_ms}
                for r in self._history
            ],
        }

    def get_cycle_statistics(self) -> Dict[str, float]:
        """
        Cumulative cycle statistics

        A cycle is counted each time EW_GREEN is re-entered; lengths are
        measured on the controller clock, so forced phases and extensions
        show up in the averages.
        """
        return {
            'cycles_completed': self._cycles_completed,
            'average_cycle_ms': (self._total_cycle_ms / self._cycles_completed
                                 if self._cycles_completed else 0.0),
            'average_green_ms': (self._total_green_ms / self._greens_completed
                                 if self._greens_completed else 0.0),
            'nominal_cycle_ms': self._timings.cycle_length,
        }
