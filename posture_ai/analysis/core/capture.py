"""
Capture Module for Posture AI.

Finite State Machine sequencing one assessment: a front measurement pass
and, for full/seated sessions, a side pass.

FSM:
    idle ──► loading ──► ready ──► readiness ──► countdown ──► measuring ──► done
                │                                                             │
                ▼                                            (continue_to_side)
              error                                                           ▼
                        side-done ◄── side-measuring ◄── side-countdown ◄── side-readiness

    Any phase except idle ──(cancel)──► idle

Timers (countdown tick, measurement poll, readiness confirmation) are
cancellable callbacks behind the Scheduler interface, so the same machine
runs on an asyncio loop or on a virtual clock.

Author: Posture AI Team
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Union
import asyncio
import heapq
import itertools
import logging

from ...helpers.enums import SessionType, ViewType
from ...helpers.exceptions import CaptureTransitionError
from ..modules.scoring import PostureMetrics, Session, build_session, compute_front_metrics
from .data_types import FrameRecord
from .smoothing import MetricSmoother

logger = logging.getLogger(__name__)


class CapturePhase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    READINESS = "readiness"
    COUNTDOWN = "countdown"
    MEASURING = "measuring"
    DONE = "done"
    SIDE_READINESS = "side-readiness"
    SIDE_COUNTDOWN = "side-countdown"
    SIDE_MEASURING = "side-measuring"
    SIDE_DONE = "side-done"
    ERROR = "error"


class CaptureEvent(str, Enum):
    LOAD = "load"
    MODEL_READY = "model_ready"
    MODEL_ERROR = "model_error"
    START_READINESS = "start_readiness"
    READINESS_CONFIRMED = "readiness_confirmed"
    COUNTDOWN_FINISHED = "countdown_finished"
    MEASURE_FINISHED = "measure_finished"
    CONTINUE_TO_SIDE = "continue_to_side"
    CANCEL = "cancel"


TRANSITIONS: Dict[CapturePhase, Dict[CaptureEvent, CapturePhase]] = {
    CapturePhase.IDLE: {
        CaptureEvent.LOAD: CapturePhase.LOADING,
    },
    CapturePhase.LOADING: {
        CaptureEvent.MODEL_READY: CapturePhase.READY,
        CaptureEvent.MODEL_ERROR: CapturePhase.ERROR,
    },
    CapturePhase.READY: {
        CaptureEvent.START_READINESS: CapturePhase.READINESS,
    },
    CapturePhase.READINESS: {
        CaptureEvent.READINESS_CONFIRMED: CapturePhase.COUNTDOWN,
    },
    CapturePhase.COUNTDOWN: {
        CaptureEvent.COUNTDOWN_FINISHED: CapturePhase.MEASURING,
    },
    CapturePhase.MEASURING: {
        CaptureEvent.MEASURE_FINISHED: CapturePhase.DONE,
    },
    CapturePhase.DONE: {
        CaptureEvent.CONTINUE_TO_SIDE: CapturePhase.SIDE_READINESS,
    },
    CapturePhase.SIDE_READINESS: {
        CaptureEvent.READINESS_CONFIRMED: CapturePhase.SIDE_COUNTDOWN,
    },
    CapturePhase.SIDE_COUNTDOWN: {
        CaptureEvent.COUNTDOWN_FINISHED: CapturePhase.SIDE_MEASURING,
    },
    CapturePhase.SIDE_MEASURING: {
        CaptureEvent.MEASURE_FINISHED: CapturePhase.SIDE_DONE,
    },
    CapturePhase.SIDE_DONE: {},
    CapturePhase.ERROR: {
        CaptureEvent.LOAD: CapturePhase.LOADING,
    },
}

for _phase, _events in TRANSITIONS.items():
    if _phase != CapturePhase.IDLE:
        _events[CaptureEvent.CANCEL] = CapturePhase.IDLE

READINESS_PHASES = (CapturePhase.READINESS, CapturePhase.SIDE_READINESS)
COUNTDOWN_PHASES = (CapturePhase.COUNTDOWN, CapturePhase.SIDE_COUNTDOWN)
MEASURING_PHASES = (CapturePhase.MEASURING, CapturePhase.SIDE_MEASURING)

# Phases in which the front / side analyzer runs on incoming frames
FRONT_ANALYSIS_PHASES = (
    CapturePhase.READY, CapturePhase.READINESS, CapturePhase.COUNTDOWN,
    CapturePhase.MEASURING, CapturePhase.DONE,
)
SIDE_ANALYSIS_PHASES = (
    CapturePhase.SIDE_READINESS, CapturePhase.SIDE_COUNTDOWN, CapturePhase.SIDE_MEASURING,
)


def next_phase(phase: Union[CapturePhase, str], event: Union[CaptureEvent, str]) -> CapturePhase:
    """
    Pure transition function.

    Raises:
        CaptureTransitionError: If ``event`` is not allowed in ``phase``.
    """
    phase = CapturePhase(phase)
    event = CaptureEvent(event)
    target = TRANSITIONS[phase].get(event)
    if target is None:
        raise CaptureTransitionError(phase.value, event.value)
    return target


def view_of(phase: CapturePhase) -> Optional[ViewType]:
    """View analyzed in ``phase``, None when frames are not analyzed."""
    if phase in FRONT_ANALYSIS_PHASES:
        return ViewType.FRONT
    if phase in SIDE_ANALYSIS_PHASES:
        return ViewType.SIDE
    return None


# ==================== SCHEDULERS ====================

class TimerHandle(ABC):
    @abstractmethod
    def cancel(self) -> None:
        ...


class Scheduler(ABC):
    """Clock plus cancellable delayed callbacks (times in seconds)."""

    @abstractmethod
    def now(self) -> float:
        ...

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class _ManualTimer(TimerHandle):
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """
    Deterministic scheduler driven by a virtual clock.

    Used by tests and offline replay: nothing fires until ``advance``.

    Example:
        >>> clock = ManualScheduler()
        >>> fired = []
        >>> _ = clock.call_later(1.0, lambda: fired.append(clock.now()))
        >>> clock.advance(2.0)
        >>> fired
        [1.0]
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: list = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = _ManualTimer(self._now + max(0.0, delay), callback)
        heapq.heappush(self._queue, (timer.due, next(self._seq), timer))
        return timer

    @property
    def pending(self) -> int:
        """Number of scheduled, not cancelled callbacks."""
        return sum(1 for _, _, t in self._queue if not t.cancelled)

    def advance(self, seconds: float) -> None:
        """
        Move the clock forward, firing due callbacks in time order.

        Callbacks scheduled while advancing fire too if they fall due
        before the target time.
        """
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target + 1e-9:
            due, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = max(self._now, due)
            timer.callback()
        self._now = target

    def advance_to(self, when: float) -> None:
        """Advance to an absolute time; earlier times are ignored."""
        if when > self._now:
            self.advance(when - self._now)


class _AsyncioTimer(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()


class AsyncioScheduler(Scheduler):
    """Scheduler backed by ``loop.call_later``."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_running_loop()

    def now(self) -> float:
        return self._loop.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return _AsyncioTimer(self._loop.call_later(delay, callback))


# ==================== STATE MACHINE ====================

@dataclass
class CaptureConfig:
    """
    Timing of the capture sequence.

    Attributes:
        measure_duration: Length of one measurement pass (seconds).
        countdown_seconds: Countdown start value, ticked at 1 Hz.
        readiness_frames_needed: Consecutive passing frames before confirmation.
        readiness_confirm_delay: Delay between confirmation and countdown (seconds).
        poll_interval: Measurement poll period (seconds).
    """
    measure_duration: float = 15.0
    countdown_seconds: int = 3
    readiness_frames_needed: int = 3
    readiness_confirm_delay: float = 0.6
    poll_interval: float = 0.1


@dataclass
class CaptureState:
    """Mutable state of one capture attempt."""
    phase: CapturePhase = CapturePhase.IDLE
    readiness_streak: int = 0
    readiness_results: List[bool] = field(default_factory=list)
    confirmation_pending: bool = False
    countdown: int = 0
    pass_start: Optional[float] = None
    elapsed: float = 0.0
    front_frames: List[FrameRecord] = field(default_factory=list)
    side_frames: List[FrameRecord] = field(default_factory=list)
    front_metrics: Optional[PostureMetrics] = None
    error_message: str = ""


PhaseListener = Callable[[CapturePhase, CapturePhase], None]
SessionListener = Callable[[Session], None]


class CaptureStateMachine:
    """
    Sequences one assessment and owns its frame buffers.

    The machine never analyzes frames itself: the caller feeds readiness
    results and smoothed metric values, and the machine decides whether
    they count. A Session is produced exactly once, when a quick session's
    front pass ends or when ``finish`` is called after the side pass.

    Example:
        machine = CaptureStateMachine(SessionType.QUICK, "profile-1", ManualScheduler())
        machine.begin()
        machine.model_ready()
        machine.start_readiness()
        for _ in range(3):
            machine.feed_readiness([True, True, True, True])
    """

    def __init__(
        self,
        session_type: Union[SessionType, str],
        profile_id: str,
        scheduler: Scheduler,
        smoother: Optional[MetricSmoother] = None,
        config: Optional[CaptureConfig] = None,
    ):
        self._session_type = SessionType(session_type)
        self._profile_id = profile_id
        self._scheduler = scheduler
        self._smoother = smoother if smoother is not None else MetricSmoother()
        self._config = config or CaptureConfig()

        self._state = CaptureState()
        self._session: Optional[Session] = None
        self._timers: Dict[str, TimerHandle] = {}

        self._phase_listeners: List[PhaseListener] = []
        self._session_listeners: List[SessionListener] = []

    # ==================== PROPERTIES ====================

    @property
    def current_phase(self) -> CapturePhase:
        return self._state.phase

    @property
    def session_type(self) -> SessionType:
        return self._session_type

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def config(self) -> CaptureConfig:
        return self._config

    @property
    def smoother(self) -> MetricSmoother:
        return self._smoother

    @property
    def session(self) -> Optional[Session]:
        """Finalized Session, None until the sequence completes."""
        return self._session

    @property
    def countdown(self) -> int:
        return self._state.countdown

    @property
    def elapsed(self) -> float:
        """Seconds measured in the current pass, capped at the pass duration."""
        return self._state.elapsed

    @property
    def readiness_streak(self) -> int:
        return self._state.readiness_streak

    @property
    def front_frames(self) -> List[FrameRecord]:
        return list(self._state.front_frames)

    @property
    def side_frames(self) -> List[FrameRecord]:
        return list(self._state.side_frames)

    @property
    def front_metrics(self) -> Optional[PostureMetrics]:
        """Front-pass metrics cached when moving on to the side pass."""
        return self._state.front_metrics

    @property
    def is_finalized(self) -> bool:
        return self._session is not None

    # ==================== LISTENERS ====================

    def add_phase_listener(self, callback: PhaseListener) -> None:
        """Register a callback receiving (old_phase, new_phase)."""
        self._phase_listeners.append(callback)

    def add_session_listener(self, callback: SessionListener) -> None:
        """Register a callback receiving the finalized Session."""
        self._session_listeners.append(callback)

    # ==================== TRANSITIONS ====================

    def transition(self, event: Union[CaptureEvent, str]) -> CapturePhase:
        """
        Apply one event.

        Raises:
            CaptureTransitionError: If the event is illegal; state is unchanged.
        """
        old = self._state.phase
        new = next_phase(old, event)
        self._state.phase = new
        logger.info(f"Capture phase {old.value} -> {new.value}")
        for callback in self._phase_listeners:
            callback(old, new)
        return new

    def begin(self) -> None:
        """Start loading the detection model."""
        self._smoother.reset()
        self.transition(CaptureEvent.LOAD)

    def model_ready(self) -> None:
        self.transition(CaptureEvent.MODEL_READY)

    def model_failed(self, message: str = "") -> None:
        self._state.error_message = message
        self.transition(CaptureEvent.MODEL_ERROR)

    def start_readiness(self) -> None:
        """User asked to start: enter the front readiness gate."""
        self.transition(CaptureEvent.START_READINESS)
        self._reset_readiness()

    def continue_to_side(self) -> None:
        """
        Move from the finished front pass to the side readiness gate.

        Raises:
            CaptureTransitionError: For quick sessions or outside ``done``.
        """
        if self._session_type == SessionType.QUICK or self.is_finalized:
            raise CaptureTransitionError(self._state.phase.value, CaptureEvent.CONTINUE_TO_SIDE.value)

        self.transition(CaptureEvent.CONTINUE_TO_SIDE)
        self._state.front_metrics = compute_front_metrics(self._state.front_frames)
        self._smoother.reset()
        self._reset_readiness()
        self._state.elapsed = 0.0
        self._state.pass_start = None

    def finish(self) -> Session:
        """
        Merge the front and side buffers into the final Session.

        Raises:
            CaptureTransitionError: Outside ``side-done`` or if already finalized.
        """
        if self._state.phase != CapturePhase.SIDE_DONE or self.is_finalized:
            raise CaptureTransitionError(self._state.phase.value, "finish")
        return self._finalize()

    def cancel(self) -> None:
        """
        Abort the attempt: timers, buffers and smoothing are cleared and the
        machine returns to idle without producing a Session.

        Raises:
            CaptureTransitionError: If the attempt was already finalized.
        """
        if self.is_finalized:
            raise CaptureTransitionError(self._state.phase.value, CaptureEvent.CANCEL.value)
        self._cancel_timers()
        self._smoother.reset()
        if self._state.phase == CapturePhase.IDLE:
            self._state = CaptureState()
            return
        self.transition(CaptureEvent.CANCEL)
        self._state = CaptureState(phase=CapturePhase.IDLE)

    def close(self) -> None:
        """Teardown: cancel every scheduled callback."""
        self._cancel_timers()

    # ==================== READINESS ====================

    def feed_readiness(self, results: Optional[Sequence[bool]]) -> int:
        """
        Feed the readiness checks of one frame.

        Args:
            results: Check results, None for a frame without a person.

        Returns:
            Current streak of consecutive passing frames.
        """
        if self._state.phase not in READINESS_PHASES:
            return self._state.readiness_streak

        if results is None:
            self._state.readiness_results = []
            self._state.readiness_streak = 0
            self._abort_confirmation()
            return 0

        self._state.readiness_results = list(results)
        if results and all(results):
            self._state.readiness_streak += 1
        else:
            self._state.readiness_streak = 0
            self._abort_confirmation()

        if (self._state.readiness_streak >= self._config.readiness_frames_needed
                and not self._state.confirmation_pending):
            self._state.confirmation_pending = True
            logger.debug("Readiness reached, confirmation scheduled")
            self._schedule(
                "confirm", self._config.readiness_confirm_delay, self._on_readiness_confirmed
            )

        return self._state.readiness_streak

    @property
    def all_passed(self) -> bool:
        """True while a readiness confirmation is pending."""
        return self._state.confirmation_pending

    @property
    def readiness_results(self) -> List[bool]:
        return list(self._state.readiness_results)

    def _reset_readiness(self) -> None:
        self._state.readiness_streak = 0
        self._state.readiness_results = []
        self._state.confirmation_pending = False

    def _abort_confirmation(self) -> None:
        # A failing frame withdraws a pending confirmation
        if self._state.confirmation_pending:
            handle = self._timers.pop("confirm", None)
            if handle is not None:
                handle.cancel()
            self._state.confirmation_pending = False
            logger.debug("Readiness lost, confirmation withdrawn")

    def _on_readiness_confirmed(self) -> None:
        self._timers.pop("confirm", None)
        self._state.confirmation_pending = False
        self.transition(CaptureEvent.READINESS_CONFIRMED)
        self._state.countdown = self._config.countdown_seconds
        self._schedule("countdown", 1.0, self._on_countdown_tick)

    # ==================== COUNTDOWN / MEASURING ====================

    def _on_countdown_tick(self) -> None:
        self._state.countdown -= 1
        if self._state.countdown > 0:
            self._schedule("countdown", 1.0, self._on_countdown_tick)
            return

        self._timers.pop("countdown", None)
        self._state.countdown = 0
        self.transition(CaptureEvent.COUNTDOWN_FINISHED)
        self._state.pass_start = self._scheduler.now()
        self._state.elapsed = 0.0
        self._schedule("poll", self._config.poll_interval, self._on_measure_poll)

    def _on_measure_poll(self) -> None:
        elapsed = self._scheduler.now() - self._state.pass_start
        self._state.elapsed = min(elapsed, self._config.measure_duration)
        if elapsed < self._config.measure_duration - 1e-9:
            self._schedule("poll", self._config.poll_interval, self._on_measure_poll)
            return

        self._timers.pop("poll", None)
        self._state.elapsed = self._config.measure_duration
        self.transition(CaptureEvent.MEASURE_FINISHED)
        self._smoother.reset()

        if self._state.phase == CapturePhase.DONE and self._session_type == SessionType.QUICK:
            self._finalize()

    def record_frame(self, metrics: Mapping[str, float]) -> Optional[FrameRecord]:
        """
        Append one frame of smoothed metric values to the active buffer.

        Returns:
            The FrameRecord, or None outside a measuring phase.
        """
        phase = self._state.phase
        if phase not in MEASURING_PHASES:
            return None

        record = FrameRecord(
            time=(self._scheduler.now() - self._state.pass_start) * 1000.0,
            metrics=dict(metrics),
        )
        if phase == CapturePhase.MEASURING:
            self._state.front_frames.append(record)
        else:
            self._state.side_frames.append(record)
        return record

    # ==================== INTERNAL ====================

    def _finalize(self) -> Session:
        if self._session_type == SessionType.QUICK:
            session = build_session(
                self._session_type, self._profile_id, self._state.front_frames,
                duration=self._config.measure_duration,
            )
        else:
            session = build_session(
                self._session_type, self._profile_id,
                self._state.front_frames, self._state.side_frames,
                duration=self._config.measure_duration,
            )
        self._session = session
        logger.info(f"Session {session.id} finalized, score {session.overall_score}")
        for callback in self._session_listeners:
            callback(session)
        return session

    def _schedule(self, name: str, delay: float, callback: Callable[[], None]) -> None:
        previous = self._timers.pop(name, None)
        if previous is not None:
            previous.cancel()
        self._timers[name] = self._scheduler.call_later(delay, callback)

    def _cancel_timers(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
