# Posture Analysis Package
# Landmark geometry, capture sequencing and scoring for Posture AI

from .core import CaptureStateMachine, ManualScheduler, AsyncioScheduler
from .modules import build_session, assess_session
from .service import PostureEngine, EngineConfig
from .utils import SessionLogger

__all__ = [
    'CaptureStateMachine',
    'ManualScheduler',
    'AsyncioScheduler',
    'build_session',
    'assess_session',
    'PostureEngine',
    'EngineConfig',
    'SessionLogger'
]
