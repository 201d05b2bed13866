import enum


class MetricStatus(str, enum.Enum):
    GOOD = 'good'
    WARNING = 'warning'
    BAD = 'bad'


class SessionType(str, enum.Enum):
    QUICK = 'quick'
    FULL = 'full'
    SEATED = 'seated'


class SessionAngle(str, enum.Enum):
    FRONT = 'front'
    SIDE = 'side'
    BOTH = 'both'


class ViewType(str, enum.Enum):
    FRONT = 'front'
    SIDE = 'side'


class ModelStatus(str, enum.Enum):
    LOADING = 'loading'
    LOADING_CPU = 'loading-cpu'
    READY = 'ready'
    ERROR = 'error'
