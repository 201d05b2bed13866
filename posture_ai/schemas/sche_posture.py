"""
Posture Assessment Schemas - Records handed to collaborators.

Pydantic models of the finalized session and its derived assessment,
validated before they leave the core (persistence, report rendering).

Author: Posture AI Team
Version: 1.0.0
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from posture_ai.helpers.enums import MetricStatus, SessionAngle, SessionType


class MetricResultSchema(BaseModel):
    """Aggregate of one metric over a capture pass."""
    value: float = Field(..., description="Mean value rounded to one decimal")
    unit: str = Field("°", description="Display unit")
    status: MetricStatus = Field(..., description="Status of the mean value")
    stability: int = Field(..., ge=0, le=100, description="Stability score (0-100)")
    mean: float = Field(..., description="Mean value rounded to one decimal")
    min: float = Field(..., description="Minimum value rounded to one decimal")
    max: float = Field(..., description="Maximum value rounded to one decimal")

    @classmethod
    def from_result(cls, result) -> "MetricResultSchema":
        return cls(
            value=result.value,
            unit=result.unit,
            status=result.status,
            stability=result.stability,
            mean=result.mean,
            min=result.min,
            max=result.max,
        )


class SessionSchema(BaseModel):
    """Finalized session record, as persisted."""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "0b7c9a3e-6c1f-4e52-9a57-2f3d8f1d2b10",
                "profileId": "profile-1",
                "type": "quick",
                "angle": "front",
                "timestamp": "2026-01-01T09:00:00",
                "duration": 15,
                "metrics": {
                    "cva": {
                        "value": 52.4, "unit": "°", "status": "warning",
                        "stability": 94, "mean": 52.4, "min": 50.1, "max": 54.0
                    }
                },
                "overallScore": 78
            }
        }
    )

    id: str = Field(..., description="Session identifier (UUID4)")
    profile_id: str = Field(..., alias="profileId", description="Assessed profile")
    type: SessionType = Field(..., description="quick, full or seated")
    angle: SessionAngle = Field(..., description="front for quick sessions, both otherwise")
    timestamp: datetime = Field(..., description="Finalization time")
    duration: float = Field(..., description="Capture duration of one pass (seconds)")
    metrics: Dict[str, MetricResultSchema] = Field(default_factory=dict, description="Metric results by key")
    overall_score: int = Field(..., alias="overallScore", ge=0, le=100, description="Weighted overall score")

    @classmethod
    def from_session(cls, session) -> "SessionSchema":
        return cls(
            id=session.id,
            profile_id=session.profile_id,
            type=session.type,
            angle=session.angle,
            timestamp=session.timestamp,
            duration=session.duration,
            metrics={k: MetricResultSchema.from_result(m) for k, m in session.metrics.items()},
            overall_score=session.overall_score,
        )


class AssessmentSchema(BaseModel):
    """Derived diagnosis of a session, for report renderers."""
    session_id: Optional[str] = Field(None, description="Session the assessment belongs to")
    posture_type: str = Field(..., description="Posture type label")
    posture_emoji: str = Field("", description="Display emoji of the posture type")
    score_tier: str = Field(..., description="excellent, good, average, needsWork or rescue")
    stability_average: int = Field(..., ge=0, le=100, description="Rounded average stability")
    stability_grade: str = Field(..., description="A, B, C or D")
    exercises: List[str] = Field(default_factory=list, description="Recommended exercise keys")

    @classmethod
    def from_assessment(cls, assessment, session_id: Optional[str] = None) -> "AssessmentSchema":
        return cls(
            session_id=session_id,
            posture_type=assessment.posture_type.value,
            posture_emoji=assessment.posture_emoji,
            score_tier=assessment.score_tier.value,
            stability_average=assessment.stability_average,
            stability_grade=assessment.stability_grade.value,
            exercises=list(assessment.exercises),
        )
