"""
Logger Module for Posture AI.

Structured session log for one assessment:
- Phase changes of the capture sequence
- Readiness gate progress
- Measurement passes and the final score

Output formats:
- JSON: full structured report, written when the session ends
- CSV: one row per entry, streamed while the session runs
- Console: real-time monitoring through the POSTURE_AI logger

Author: Posture AI Team
Version: 1.0.0
"""

import csv
import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from queue import Empty, Queue
from typing import Dict, List, Optional

CONSOLE_LOGGER_NAME = "POSTURE_AI"

logger = logging.getLogger(__name__)


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogCategory(Enum):
    SESSION = "session"        # Session start / end
    PHASE = "phase"            # Capture phase transitions
    READINESS = "readiness"    # Readiness gate progress
    MEASURING = "measuring"    # Measurement passes
    SCORING = "scoring"        # Final metrics and score
    SYSTEM = "system"          # Model status, errors


@dataclass
class LogEntry:
    """
    One log entry.

    Attributes:
        timestamp: ISO time of the entry.
        level: LogLevel value.
        category: LogCategory value.
        message: Human readable text.
        data: Extra structured data.
        session_id: Session the entry belongs to.
    """
    timestamp: str
    level: str
    category: str
    message: str
    data: Optional[Dict] = None
    session_id: str = ""

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "level": self.level,
            "category": self.category,
            "message": self.message,
            "data": self.data or {},
            "session_id": self.session_id,
        }

    def to_csv_row(self) -> List[str]:
        return [
            self.timestamp,
            self.level,
            self.category,
            self.message,
            json.dumps(self.data or {}, ensure_ascii=False),
            self.session_id,
        ]


class SessionLogger:
    """
    Logger for one assessment session.

    Example:
        >>> session_logger = SessionLogger("./logs")
        >>> session_logger.start_session("session_001", "quick", profile_id="p1")
        >>> session_logger.log_phase_change("ready", "readiness")
        >>> session_logger.end_session(session.to_dict())
    """

    CSV_HEADERS = [
        "timestamp", "level", "category", "message", "data", "session_id"
    ]

    def __init__(
        self,
        log_dir: str = "./data/logs",
        console_output: bool = True,
        async_write: bool = False
    ):
        """
        Args:
            log_dir: Root directory of the log files.
            console_output: Echo entries to the console logger.
            async_write: Write CSV rows from a background thread.
        """
        self._log_dir = Path(log_dir)
        self._log_dir.mkdir(parents=True, exist_ok=True)

        self._console_output = console_output
        self._async_write = async_write

        self._session_id: Optional[str] = None
        self._session_start: Optional[datetime] = None
        self._entries: List[LogEntry] = []

        self._json_file: Optional[Path] = None
        self._csv_file: Optional[Path] = None
        self._csv_writer = None
        self._file_handle = None

        self._write_queue: Queue = Queue()
        self._writer_thread: Optional[threading.Thread] = None
        self._stop_writer = threading.Event()

        self._setup_console_logger()

    def _setup_console_logger(self) -> None:
        self._console_logger = logging.getLogger(CONSOLE_LOGGER_NAME)
        self._console_logger.setLevel(logging.DEBUG)

        if not self._console_logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(logging.INFO)
            formatter = logging.Formatter(
                '%(asctime)s [%(levelname)s] %(message)s',
                datefmt='%H:%M:%S'
            )
            handler.setFormatter(formatter)
            self._console_logger.addHandler(handler)

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def json_file(self) -> Optional[Path]:
        return self._json_file

    @property
    def csv_file(self) -> Optional[Path]:
        return self._csv_file

    def start_session(
        self,
        session_id: str,
        session_type: str,
        profile_id: Optional[str] = None
    ) -> None:
        """
        Start logging one session.

        Args:
            session_id: Id used for the file names.
            session_type: quick / full / seated.
            profile_id: Profile being assessed.
        """
        self._session_id = session_id
        self._session_start = datetime.now()
        self._entries = []

        date_str = self._session_start.strftime("%Y%m%d")
        time_str = self._session_start.strftime("%H%M%S")

        session_dir = self._log_dir / date_str
        session_dir.mkdir(parents=True, exist_ok=True)

        self._json_file = session_dir / f"{session_id}_{time_str}.json"
        self._csv_file = session_dir / f"{session_id}_{time_str}.csv"

        self._init_csv_file()

        if self._async_write:
            self._start_async_writer()

        self.log(
            LogLevel.INFO,
            LogCategory.SESSION,
            f"Session started: {session_type}",
            {
                "session_id": session_id,
                "session_type": session_type,
                "profile_id": profile_id or "anonymous",
                "start_time": self._session_start.isoformat(),
            }
        )

    def _init_csv_file(self) -> None:
        if self._csv_file is None:
            return

        self._file_handle = open(self._csv_file, 'w', newline='', encoding='utf-8')
        self._csv_writer = csv.writer(self._file_handle)
        self._csv_writer.writerow(self.CSV_HEADERS)
        self._file_handle.flush()

    def _start_async_writer(self) -> None:
        self._stop_writer.clear()
        self._writer_thread = threading.Thread(target=self._async_write_loop, daemon=True)
        self._writer_thread.start()

    def _async_write_loop(self) -> None:
        # Drain the queue even after stop is requested
        while not (self._stop_writer.is_set() and self._write_queue.empty()):
            try:
                entry = self._write_queue.get(timeout=0.1)
            except Empty:
                continue
            self._write_entry(entry)

    def _write_entry(self, entry: LogEntry) -> None:
        if self._csv_writer is None:
            return
        try:
            self._csv_writer.writerow(entry.to_csv_row())
            self._file_handle.flush()
        except (OSError, ValueError) as e:
            logger.warning(f"Cannot write log entry to {self._csv_file}: {e}")

    def log(
        self,
        level: LogLevel,
        category: LogCategory,
        message: str,
        data: Optional[Dict] = None
    ) -> LogEntry:
        """
        Record one entry.

        Args:
            level: Log level.
            category: Log category.
            message: Text of the entry.
            data: Extra structured data.

        Returns:
            The recorded LogEntry.
        """
        entry = LogEntry(
            timestamp=datetime.now().isoformat(),
            level=level.value,
            category=category.value,
            message=message,
            data=data,
            session_id=self._session_id or "",
        )

        self._entries.append(entry)

        if self._console_output:
            log_method = getattr(self._console_logger, level.value.lower(), self._console_logger.info)
            log_method(f"[{category.value}] {message}")

        if self._async_write and self._writer_thread is not None:
            self._write_queue.put(entry)
        else:
            self._write_entry(entry)

        return entry

    def log_phase_change(self, old_phase: str, new_phase: str) -> None:
        self.log(
            LogLevel.INFO,
            LogCategory.PHASE,
            f"Phase {old_phase} -> {new_phase}",
            {"from": old_phase, "to": new_phase}
        )

    def log_readiness(self, view: str, results: List[bool], streak: int) -> None:
        """Log one readiness frame (DEBUG, written to file only by default)."""
        self.log(
            LogLevel.DEBUG,
            LogCategory.READINESS,
            f"Readiness {view}: {sum(results)}/{len(results)} checks, streak={streak}",
            {"view": view, "results": list(results), "streak": streak}
        )

    def log_pass_complete(self, view: str, frame_count: int, duration: float) -> None:
        """
        Log the end of a measurement pass.

        Args:
            view: front / side.
            frame_count: Frames buffered during the pass.
            duration: Pass length (seconds).
        """
        level = LogLevel.INFO if frame_count > 0 else LogLevel.WARNING
        self.log(
            level,
            LogCategory.MEASURING,
            f"{view.capitalize()} pass complete: {frame_count} frames in {duration:.1f}s",
            {"view": view, "frame_count": frame_count, "duration": duration}
        )

    def log_session_finalized(self, overall_score: int, metrics: Dict) -> None:
        self.log(
            LogLevel.INFO,
            LogCategory.SCORING,
            f"Overall score: {overall_score}/100",
            {"overall_score": overall_score, "metrics": metrics}
        )

    def log_system(self, message: str, data: Optional[Dict] = None, error: bool = False) -> None:
        self.log(
            LogLevel.ERROR if error else LogLevel.INFO,
            LogCategory.SYSTEM,
            message,
            data
        )

    def end_session(self, report: Optional[Dict] = None) -> str:
        """
        Close the session and write the JSON report.

        Args:
            report: Finalized session record (Session.to_dict()), if any.

        Returns:
            str: Path of the JSON report, "" if no session was started.
        """
        self.log(
            LogLevel.INFO,
            LogCategory.SESSION,
            "Session ended",
            {
                "end_time": datetime.now().isoformat(),
                "total_entries": len(self._entries),
            }
        )

        if self._writer_thread is not None:
            self._stop_writer.set()
            self._writer_thread.join(timeout=2.0)
            self._writer_thread = None

        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None
            self._csv_writer = None

        if self._json_file:
            full_report = {
                "session_id": self._session_id,
                "session_start": self._session_start.isoformat() if self._session_start else "",
                "session_end": datetime.now().isoformat(),
                "entries": [e.to_dict() for e in self._entries],
                "report": report or {},
            }

            with open(self._json_file, 'w', encoding='utf-8') as f:
                json.dump(full_report, f, ensure_ascii=False, indent=2)

            if self._console_output:
                self._console_logger.info(f"Report saved: {self._json_file}")

            return str(self._json_file)

        return ""

    def get_entries(
        self,
        category: Optional[LogCategory] = None,
        level: Optional[LogLevel] = None
    ) -> List[LogEntry]:
        """
        Entries recorded so far, optionally filtered.

        Args:
            category: Keep only this category.
            level: Keep only this level.
        """
        entries = self._entries

        if category:
            entries = [e for e in entries if e.category == category.value]

        if level:
            entries = [e for e in entries if e.level == level.value]

        return entries

    def get_summary(self) -> Dict:
        phase_entries = self.get_entries(LogCategory.PHASE)
        pass_entries = self.get_entries(LogCategory.MEASURING)
        error_entries = self.get_entries(level=LogLevel.ERROR)

        return {
            "session_id": self._session_id,
            "total_entries": len(self._entries),
            "phase_changes": len(phase_entries),
            "passes_completed": len(pass_entries),
            "errors": len(error_entries),
            "files": {
                "json": str(self._json_file) if self._json_file else "",
                "csv": str(self._csv_file) if self._csv_file else "",
            }
        }


def create_session_logger(
    log_dir: str = "./data/logs",
    console: bool = True
) -> SessionLogger:
    """
    Factory function for a SessionLogger.

    Args:
        log_dir: Root directory of the log files.
        console: Echo entries to the console.
    """
    return SessionLogger(log_dir=log_dir, console_output=console)
