import logging
import logging.config
import os
from typing import Optional
from dotenv import load_dotenv
from pydantic_settings import BaseSettings

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '../../'))
load_dotenv(os.path.join(BASE_DIR, '.env'))


class Settings(BaseSettings):
    PROJECT_NAME: str = os.getenv('PROJECT_NAME', 'POSTURE AI')
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')
    LOGGING_CONFIG_FILE: str = os.getenv('LOGGING_CONFIG_FILE', os.path.join(BASE_DIR, 'logging.ini'))

    # Capture timing
    MEASURE_DURATION_SECONDS: float = float(os.getenv('MEASURE_DURATION_SECONDS', '15'))
    COUNTDOWN_SECONDS: int = int(os.getenv('COUNTDOWN_SECONDS', '3'))
    READINESS_FRAMES_NEEDED: int = int(os.getenv('READINESS_FRAMES_NEEDED', '3'))
    READINESS_CONFIRM_DELAY_MS: int = int(os.getenv('READINESS_CONFIRM_DELAY_MS', '600'))
    MEASURE_POLL_INTERVAL_SECONDS: float = float(os.getenv('MEASURE_POLL_INTERVAL_SECONDS', '0.1'))

    # Smoothing
    EMA_ALPHA: float = float(os.getenv('EMA_ALPHA', '0.3'))

    # Session logs
    POSTURE_LOG_DIR: str = os.getenv(
        'POSTURE_LOG_DIR',
        os.path.join(BASE_DIR, 'data', 'logs')
    )
    SESSION_LOG_ENABLED: bool = os.getenv('SESSION_LOG_ENABLED', 'false').lower() == 'true'


settings = Settings()


def configure_logging(config_file: Optional[str] = None) -> None:
    """Load the logging.ini config, or fall back to LOG_LEVEL on the root logger."""
    config_file = config_file or settings.LOGGING_CONFIG_FILE
    if os.path.isfile(config_file):
        logging.config.fileConfig(config_file, disable_existing_loggers=False)
    else:
        logging.basicConfig(
            level=settings.LOG_LEVEL.upper(),
            format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        )
    logging.getLogger(__name__).debug(f"{settings.PROJECT_NAME} logging configured")
