"""
Posture AI Service Layer

Provides:
- PostureEngine: stateful per-attempt frame processor
- EngineConfig: engine configuration
- Schemas: JSON-serializable per-frame outputs

Usage:
    from posture_ai.analysis.service import PostureEngine, EngineConfig

    engine = PostureEngine.create_instance(
        config=EngineConfig(session_type="full", profile_id="profile-1")
    )
    output = engine.process_detection(landmarks, width, height, timestamp_ms)
    json_output = output.to_dict()
"""

from .schemas import (
    ReadinessOutput,
    CountdownOutput,
    MeasuringOutput,
    EngineOutput,
)

from .engine_service import (
    PostureEngine,
    EngineConfig,
    create_engine_for_profile,
)

__all__ = [
    # ===== MAIN ENGINE =====
    'PostureEngine',
    'EngineConfig',
    'create_engine_for_profile',

    # ===== SCHEMAS =====
    'ReadinessOutput',
    'CountdownOutput',
    'MeasuringOutput',
    'EngineOutput',
]
