"""
Posture AI Engine Schemas - JSON-serializable per-frame outputs

Every class only carries basic types so the rendering collaborator can
consume ``to_dict()`` / ``to_json()`` directly.

Author: Posture AI Team
Version: 1.0.0
"""

import json
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class ReadinessOutput:
    """
    Output of the readiness phases.

    Attributes:
        view: front / side.
        checks: Label keys of the checks, in order.
        results: One boolean per check.
        streak: Consecutive passing frames.
        frames_needed: Streak length that triggers confirmation.
        all_passed: True while the confirmation is pending.
    """
    view: str
    checks: List[str] = field(default_factory=list)
    results: List[bool] = field(default_factory=list)
    streak: int = 0
    frames_needed: int = 3
    all_passed: bool = False

    @property
    def progress(self) -> float:
        if self.frames_needed <= 0:
            return 1.0
        return min(1.0, self.streak / self.frames_needed)

    def to_dict(self) -> Dict:
        return {
            "view": self.view,
            "checks": [
                {"label": label, "passed": passed}
                for label, passed in zip(self.checks, self.results)
            ],
            "streak": self.streak,
            "frames_needed": self.frames_needed,
            "progress": round(self.progress, 2),
            "all_passed": self.all_passed,
        }


@dataclass
class CountdownOutput:
    view: str
    remaining: int = 0

    def to_dict(self) -> Dict:
        return {"view": self.view, "remaining": self.remaining}


@dataclass
class MeasuringOutput:
    """
    Output of the measuring phases.

    Attributes:
        view: front / side.
        elapsed: Seconds measured so far.
        duration: Pass length (seconds).
        frame_count: Frames buffered in the pass.
    """
    view: str
    elapsed: float = 0.0
    duration: float = 15.0
    frame_count: int = 0

    @property
    def remaining(self) -> float:
        return max(0.0, self.duration - self.elapsed)

    def to_dict(self) -> Dict:
        return {
            "view": self.view,
            "elapsed": round(self.elapsed, 1),
            "remaining": round(self.remaining, 1),
            "progress": round(self.elapsed / self.duration, 2) if self.duration > 0 else 1.0,
            "frame_count": self.frame_count,
        }


@dataclass
class EngineOutput:
    """
    Combined engine output for one frame.

    Only the block matching the current phase is filled.

    Attributes:
        phase: Capture phase value.
        person_detected: False for frames without a person.
        view: View analyzed on this frame, None if none.
        metrics: Smoothed metric values of the frame.
        statuses: Instantaneous metric statuses of the frame.
        readiness: Readiness block.
        countdown: Countdown block.
        measuring: Measuring block.
        session: Finalized session record, once available.
        assessment: Derived assessment, once available.
        timestamp_ms: Timestamp of the frame.
        error: Error message, if any.
    """
    phase: str = "idle"
    person_detected: bool = False
    view: Optional[str] = None
    metrics: Dict[str, float] = field(default_factory=dict)
    statuses: Dict[str, str] = field(default_factory=dict)
    readiness: Optional[Dict] = None
    countdown: Optional[Dict] = None
    measuring: Optional[Dict] = None
    session: Optional[Dict] = None
    assessment: Optional[Dict] = None
    timestamp_ms: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        result = {
            "phase": self.phase,
            "person_detected": self.person_detected,
            "view": self.view,
            "metrics": {k: round(v, 1) for k, v in self.metrics.items()},
            "statuses": dict(self.statuses),
            "error": self.error,
        }

        if self.timestamp_ms is not None:
            result["timestamp_ms"] = self.timestamp_ms

        if self.readiness:
            result["readiness"] = self.readiness
        if self.countdown:
            result["countdown"] = self.countdown
        if self.measuring:
            result["measuring"] = self.measuring
        if self.session:
            result["session"] = self.session
        if self.assessment:
            result["assessment"] = self.assessment

        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)
