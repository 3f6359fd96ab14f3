"""Core configuration and event types."""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..exceptions import AnalysisCancelledError

DEFAULT_MAX_WORKERS = 4
DEFAULT_PROGRESS_INTERVAL = 1000
DEFAULT_SHORT_ID_LENGTH = 25


@dataclass(frozen=True)
class AnalyzerConfig:
    """Settings for one image analysis run."""

    timeout: Optional[float] = None
    max_workers: int = DEFAULT_MAX_WORKERS
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL
    short_id_length: int = DEFAULT_SHORT_ID_LENGTH

    def __post_init__(self) -> None:
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.progress_interval < 1:
            raise ValueError(
                f"progress_interval must be >= 1, got {self.progress_interval}"
            )
        if self.short_id_length < 1:
            raise ValueError(
                f"short_id_length must be >= 1, got {self.short_id_length}"
            )


class EventKind(str, Enum):
    """Milestones reported while an image is analyzed."""

    SCAN_STARTED = "scan_started"
    LAYER_SCANNED = "layer_scanned"
    LAYER_STARTED = "layer_started"
    LAYER_PROGRESS = "layer_progress"
    LAYER_DONE = "layer_done"
    ANALYSIS_DONE = "analysis_done"


@dataclass(frozen=True)
class AnalysisEvent:
    """Progress notification passed to the caller's callback."""

    kind: EventKind
    layer_name: str = ""
    layer_number: int = 0
    records: int = 0


# Invoked from executor threads while layers are scanned and built
ProgressCallback = Callable[[AnalysisEvent], None]


def emit(callback: Optional[ProgressCallback], event: AnalysisEvent) -> None:
    """Invoke the progress callback if one was given."""
    if callback is not None:
        callback(event)


def check_cancelled(cancel_event: Optional[threading.Event], what: str) -> None:
    """Stop worker-thread work once the owning analysis has been abandoned.

    Raises:
        AnalysisCancelledError: If ``cancel_event`` is set
    """
    if cancel_event is not None and cancel_event.is_set():
        raise AnalysisCancelledError(f"{what} cancelled")
