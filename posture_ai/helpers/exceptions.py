from typing import Optional


class PostureEngineException(Exception):
    code = '000'
    message = 'Posture engine error'

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        if message:
            self.message = message
        if code:
            self.code = code
        super().__init__(self.message)


class CaptureTransitionError(PostureEngineException, ValueError):
    code = '001'
    message = 'Capture transition is not allowed from the current phase'

    def __init__(self, phase: str, event: str):
        self.phase = phase
        self.event = event
        super().__init__(f"Event '{event}' is not allowed in phase '{phase}'")


class InvalidSessionTypeError(PostureEngineException, ValueError):
    code = '002'
    message = 'Unknown session type'
