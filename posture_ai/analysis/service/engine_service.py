"""
Posture AI Engine Service - Stateful assessment facade

Class PostureEngine wires one capture attempt together: detector output
goes through the geometry extractor and the smoother, then either into
the readiness gate or into the measurement buffers, depending on the
current capture phase. Every call returns a JSON-serializable
EngineOutput for the rendering collaborator.

Design:
1. STATEFUL: one instance per capture attempt, nothing shared
2. HANDS-FREE: readiness, countdown and measurement advance on their own
3. JSON-ONLY OUTPUT: no detector or numpy objects leave the engine

Usage:
    engine = PostureEngine.create_instance(
        config=EngineConfig(session_type="full", profile_id="profile-1")
    )
    engine.start()
    engine.on_model_status("ready")
    engine.start_readiness()

    # For each camera frame (detector runs outside the core)
    output = engine.process_detection(landmarks, width, height, timestamp_ms)
    send(output.to_dict())

Timers run on the scheduler passed in. Without one, the engine keeps a
virtual clock that follows the frame timestamps, which suits offline
replay and synchronous callers.

Author: Posture AI Team
Version: 1.0.0
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Union

from posture_ai.core.config import settings
from posture_ai.helpers.enums import ModelStatus, SessionType
from posture_ai.schemas.sche_posture import AssessmentSchema, SessionSchema

from ..core.capture import (
    CaptureConfig, CapturePhase, CaptureStateMachine, ManualScheduler, Scheduler,
    COUNTDOWN_PHASES, MEASURING_PHASES, READINESS_PHASES, view_of,
)
from ..core.data_types import DetectionResult, LandmarkSet, RawMetricBundle
from ..core.metrics import analyze_view
from ..core.readiness import check_readiness, readiness_checks_for
from ..core.smoothing import MetricSmoother
from ..modules.advice import Assessment, assess_session
from ..modules.scoring import Session
from ..utils.logger import SessionLogger
from .schemas import CountdownOutput, EngineOutput, MeasuringOutput, ReadinessOutput

logger = logging.getLogger(__name__)


# ==================== ENGINE CONFIG ====================

@dataclass
class EngineConfig:
    """
    Per-instance engine configuration, defaulting from settings.

    Attributes:
        session_type: quick / full / seated.
        profile_id: Profile the session is recorded for.
        measure_duration: Length of one measurement pass (seconds).
        countdown_seconds: Countdown start value.
        readiness_frames_needed: Consecutive passing frames before confirmation.
        readiness_confirm_delay_ms: Confirmation delay (milliseconds).
        poll_interval: Measurement poll period (seconds).
        ema_alpha: Smoothing factor.
        log_dir: Directory of the session logs.
        session_log_enabled: Write a SessionLogger report per session.
    """
    session_type: str = SessionType.QUICK.value
    profile_id: str = "default"
    measure_duration: float = settings.MEASURE_DURATION_SECONDS
    countdown_seconds: int = settings.COUNTDOWN_SECONDS
    readiness_frames_needed: int = settings.READINESS_FRAMES_NEEDED
    readiness_confirm_delay_ms: int = settings.READINESS_CONFIRM_DELAY_MS
    poll_interval: float = settings.MEASURE_POLL_INTERVAL_SECONDS
    ema_alpha: float = settings.EMA_ALPHA
    log_dir: str = settings.POSTURE_LOG_DIR
    session_log_enabled: bool = settings.SESSION_LOG_ENABLED

    def to_capture_config(self) -> CaptureConfig:
        return CaptureConfig(
            measure_duration=self.measure_duration,
            countdown_seconds=self.countdown_seconds,
            readiness_frames_needed=self.readiness_frames_needed,
            readiness_confirm_delay=self.readiness_confirm_delay_ms / 1000.0,
            poll_interval=self.poll_interval,
        )


# ==================== POSTURE ENGINE ====================

class PostureEngine:
    """
    Posture AI Engine - stateful frame processor.

    Example:
        engine = PostureEngine(EngineConfig(session_type="quick"))
        engine.start()
        engine.on_model_status(ModelStatus.READY)
        engine.start_readiness()
        output = engine.process_detection(landmarks, 640, 480, 1000)
        output.to_dict()["phase"]  # "readiness"
    """

    @classmethod
    def create_instance(
        cls,
        config: Optional[EngineConfig] = None,
        instance_id: Optional[str] = None,
        scheduler: Optional[Scheduler] = None,
        session_logger: Optional[SessionLogger] = None,
    ) -> "PostureEngine":
        """
        Factory method: new engine with a unique id.

        Args:
            config: Engine configuration (None = defaults from settings).
            instance_id: Custom id (None = generated UUID).
            scheduler: Timer backend (None = frame-timestamp clock).
            session_logger: Injected session logger.
        """
        engine = cls(config, scheduler=scheduler, session_logger=session_logger)
        engine._instance_id = instance_id or str(uuid.uuid4())
        return engine

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        scheduler: Optional[Scheduler] = None,
        session_logger: Optional[SessionLogger] = None,
    ):
        self._config = config or EngineConfig()
        self._instance_id = str(uuid.uuid4())

        # Without a scheduler the clock follows frame timestamps
        self._owns_clock = scheduler is None
        self._scheduler = scheduler if scheduler is not None else ManualScheduler()

        self._smoother = MetricSmoother(self._config.ema_alpha)
        self._machine = CaptureStateMachine(
            session_type=self._config.session_type,
            profile_id=self._config.profile_id,
            scheduler=self._scheduler,
            smoother=self._smoother,
            config=self._config.to_capture_config(),
        )
        self._machine.add_phase_listener(self._on_phase_change)
        self._machine.add_session_listener(self._on_session_finalized)

        self._session_logger = session_logger
        if self._session_logger is None and self._config.session_log_enabled:
            self._session_logger = SessionLogger(self._config.log_dir)

        self._model_status: Optional[ModelStatus] = None
        self._model_message: str = ""
        self._assessment: Optional[Assessment] = None

    # ==================== PROPERTIES ====================

    @property
    def instance_id(self) -> str:
        return self._instance_id

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def machine(self) -> CaptureStateMachine:
        return self._machine

    @property
    def current_phase(self) -> CapturePhase:
        return self._machine.current_phase

    @property
    def model_status(self) -> Optional[ModelStatus]:
        return self._model_status

    @property
    def session(self) -> Optional[Session]:
        return self._machine.session

    @property
    def assessment(self) -> Optional[Assessment]:
        """Derived assessment of the finalized session."""
        return self._assessment

    def add_session_listener(self, callback: Callable[[Session], None]) -> None:
        self._machine.add_session_listener(callback)

    def add_phase_listener(self, callback: Callable[[CapturePhase, CapturePhase], None]) -> None:
        self._machine.add_phase_listener(callback)

    # ==================== CONTROL ====================

    def start(self) -> None:
        """Begin the attempt; the model is now loading."""
        if self._session_logger is not None:
            self._session_logger.start_session(
                self._instance_id, self._machine.session_type.value, self._config.profile_id
            )
        self._machine.begin()

    def on_model_status(self, status: Union[ModelStatus, str], message: str = "") -> None:
        """
        Forward a status signal of the detection model.

        Args:
            status: loading, loading-cpu, ready or error.
            message: Error detail for the error status.
        """
        status = ModelStatus(status)
        self._model_status = status
        self._model_message = message

        if status == ModelStatus.READY:
            self._machine.model_ready()
        elif status == ModelStatus.ERROR:
            logger.error(f"Pose model failed to load: {message}")
            if self._session_logger is not None:
                self._session_logger.log_system(f"Model error: {message}", error=True)
            self._machine.model_failed(message)
        elif self._session_logger is not None:
            self._session_logger.log_system(f"Model status: {status.value}")

    def start_readiness(self) -> None:
        self._machine.start_readiness()

    def continue_to_side(self) -> None:
        self._machine.continue_to_side()

    def finish(self) -> Session:
        return self._machine.finish()

    def cancel(self) -> None:
        """Abort the attempt; no session is produced."""
        self._machine.cancel()
        self._assessment = None
        if self._session_logger is not None and self._session_logger.session_id:
            self._session_logger.log_system("Session cancelled")
            self._session_logger.end_session()

    def close(self) -> None:
        """Teardown: cancel every pending timer."""
        self._machine.close()

    def advance_clock(self, timestamp_ms: float) -> None:
        """Move the frame-timestamp clock forward (no-op with an external scheduler)."""
        if self._owns_clock:
            self._scheduler.advance_to(timestamp_ms / 1000.0)

    # ==================== MAIN ENTRY POINT ====================

    def process_detection(
        self,
        landmarks: Optional[Union[LandmarkSet, Sequence[Any]]],
        width: float,
        height: float,
        timestamp_ms: int = 0,
    ) -> EngineOutput:
        """
        Process the detector result of one frame.

        Args:
            landmarks: Landmarks of the detected person (LandmarkSet, detector
                points or dicts), None if nobody was detected.
            width: Frame width (pixels).
            height: Frame height (pixels).
            timestamp_ms: Frame timestamp (milliseconds).

        Returns:
            EngineOutput for the phase the frame was processed in.
        """
        self.advance_clock(timestamp_ms)

        landmark_set = self._to_landmark_set(landmarks, timestamp_ms)
        phase = self._machine.current_phase

        if landmark_set is None:
            # No person: readiness streak resets, nothing is buffered
            self._machine.feed_readiness(None)
            return self._build_output(phase, timestamp_ms, person_detected=False)

        bundle = None
        view = view_of(phase)
        if view is not None:
            raw = analyze_view(view, landmark_set, width, height)
            bundle = self._smoother.smooth_bundle(raw)

            if phase in MEASURING_PHASES:
                self._machine.record_frame(bundle.numeric_values())

            if phase in READINESS_PHASES:
                results = check_readiness(landmark_set, readiness_checks_for(view))
                streak = self._machine.feed_readiness(results)
                if self._session_logger is not None:
                    self._session_logger.log_readiness(view.value, results, streak)

        return self._build_output(phase, timestamp_ms, person_detected=True, bundle=bundle)

    def process_result(self, result: DetectionResult) -> EngineOutput:
        """Process a DetectionResult produced by a detector wrapper."""
        return self.process_detection(
            result.pose_landmarks if result.has_pose() else None,
            result.frame_width,
            result.frame_height,
            result.timestamp_ms,
        )

    def tick(self, timestamp_ms: int) -> EngineOutput:
        """Output for a moment without a new frame (timers only)."""
        self.advance_clock(timestamp_ms)
        return self._build_output(self._machine.current_phase, timestamp_ms, person_detected=False)

    # ==================== RECORDS ====================

    def session_record(self) -> Optional[SessionSchema]:
        """Validated session record for the persistence collaborator."""
        session = self._machine.session
        return SessionSchema.from_session(session) if session is not None else None

    def assessment_record(self) -> Optional[AssessmentSchema]:
        if self._assessment is None:
            return None
        session = self._machine.session
        return AssessmentSchema.from_assessment(
            self._assessment, session_id=session.id if session else None
        )

    def get_state_snapshot(self) -> Dict[str, Any]:
        """JSON-serializable snapshot of the engine (debug/monitoring)."""
        state = self._machine.state
        return {
            "instance_id": self._instance_id,
            "phase": state.phase.value,
            "session_type": self._machine.session_type.value,
            "model_status": self._model_status.value if self._model_status else None,
            "readiness_streak": state.readiness_streak,
            "countdown": state.countdown,
            "elapsed": round(state.elapsed, 2),
            "front_frames": len(state.front_frames),
            "side_frames": len(state.side_frames),
            "finalized": self._machine.is_finalized,
        }

    # ==================== INTERNAL ====================

    @staticmethod
    def _to_landmark_set(
        landmarks: Optional[Union[LandmarkSet, Sequence[Any]]],
        timestamp_ms: int
    ) -> Optional[LandmarkSet]:
        if landmarks is None:
            return None
        if not isinstance(landmarks, LandmarkSet):
            landmarks = LandmarkSet.from_points(landmarks, timestamp_ms)
        return landmarks if len(landmarks) > 0 else None

    def _build_output(
        self,
        phase: CapturePhase,
        timestamp_ms: int,
        person_detected: bool,
        bundle: Optional[RawMetricBundle] = None,
    ) -> EngineOutput:
        # Report the phase after any transition the frame caused
        current = self._machine.current_phase
        view = bundle.view if bundle is not None else None

        output = EngineOutput(
            phase=current.value,
            person_detected=person_detected,
            view=view.value if view is not None else None,
            statuses=bundle.status_dict() if bundle is not None else {},
            metrics=bundle.numeric_values() if bundle is not None else {},
            timestamp_ms=timestamp_ms,
        )

        if current == CapturePhase.ERROR:
            output.error = self._model_message or "Pose model failed to load"

        current_view = view_of(current)
        if current in READINESS_PHASES:
            checks = readiness_checks_for(current_view)
            output.readiness = ReadinessOutput(
                view=current_view.value,
                checks=[c.label_key for c in checks],
                results=self._machine.readiness_results,
                streak=self._machine.readiness_streak,
                frames_needed=self._machine.config.readiness_frames_needed,
                all_passed=self._machine.all_passed,
            ).to_dict()
        elif current in COUNTDOWN_PHASES:
            output.countdown = CountdownOutput(
                view=current_view.value, remaining=self._machine.countdown
            ).to_dict()
        elif current in MEASURING_PHASES:
            frames = (self._machine.state.front_frames if current == CapturePhase.MEASURING
                      else self._machine.state.side_frames)
            output.measuring = MeasuringOutput(
                view=current_view.value,
                elapsed=self._machine.elapsed,
                duration=self._machine.config.measure_duration,
                frame_count=len(frames),
            ).to_dict()

        session = self._machine.session
        if session is not None:
            output.session = session.to_dict()
            if self._assessment is not None:
                output.assessment = self._assessment.to_dict()

        return output

    def _on_phase_change(self, old: CapturePhase, new: CapturePhase) -> None:
        if self._session_logger is None:
            return
        self._session_logger.log_phase_change(old.value, new.value)
        if new in (CapturePhase.DONE, CapturePhase.SIDE_DONE):
            state = self._machine.state
            frames = state.front_frames if new == CapturePhase.DONE else state.side_frames
            self._session_logger.log_pass_complete(
                "front" if new == CapturePhase.DONE else "side",
                len(frames),
                self._machine.config.measure_duration,
            )

    def _on_session_finalized(self, session: Session) -> None:
        self._assessment = assess_session(session)
        logger.info(
            f"Assessment {session.id}: {self._assessment.posture_type.value}, "
            f"score {session.overall_score} ({self._assessment.score_tier.value})"
        )
        if self._session_logger is not None:
            self._session_logger.log_session_finalized(
                session.overall_score,
                {k: m.to_dict() for k, m in session.metrics.items()},
            )
            self._session_logger.end_session({
                "session": session.to_dict(),
                "assessment": self._assessment.to_dict(),
            })


# ==================== FACTORY FUNCTIONS ====================

def create_engine_for_profile(
    profile_id: str,
    session_type: Union[SessionType, str] = SessionType.QUICK,
    scheduler: Optional[Scheduler] = None,
) -> PostureEngine:
    """
    Factory function: engine for one profile and session type.

    Example:
        engines = {}

        def handle_frame(profile_id, landmarks, w, h, ts):
            if profile_id not in engines:
                engines[profile_id] = create_engine_for_profile(profile_id)
            return engines[profile_id].process_detection(landmarks, w, h, ts)
    """
    config = EngineConfig(session_type=SessionType(session_type).value, profile_id=profile_id)
    return PostureEngine.create_instance(
        config=config,
        instance_id=f"engine_{profile_id}",
        scheduler=scheduler,
    )
