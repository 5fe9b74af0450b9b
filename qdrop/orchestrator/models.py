"""Orchestrator data models."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..models import Session

# Progress partition (percent reached at the end of each step)
IDENTITY_CHECKED = 5
AUTHORIZED = 10
TRANSFER_DONE = 80
PERSISTED = 100


class UploadPhase(Enum):
    """Submit workflow states."""
    IDLE = "idle"
    VALIDATING = "validating"
    CHECKING_IDENTITY = "checking_identity"
    RESOLVING_TARGET = "resolving_target"
    TRANSFERRING = "transferring"
    PERSISTING = "persisting"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (UploadPhase.COMPLETE, UploadPhase.FAILED)


@dataclass(frozen=True)
class ProgressUpdate:
    """One progress notification delivered to the caller."""
    phase: UploadPhase
    percent: int
    message: str
    bytes_sent: Optional[int] = None
    bytes_total: Optional[int] = None


@dataclass
class UploadSession:
    """
    State of a single submit attempt.

    Owned by the orchestrator for the duration of one submit call.
    """
    session: Session
    replace_previous: bool = False
    phase: UploadPhase = UploadPhase.IDLE
    percent: int = 0
    status_text: str = ""

    def advance(
        self,
        phase: UploadPhase,
        percent: Optional[int] = None,
        message: Optional[str] = None,
        bytes_sent: Optional[int] = None,
        bytes_total: Optional[int] = None,
    ) -> ProgressUpdate:
        """Move to a phase. Percent never goes backwards within a session."""
        if self.phase.terminal:
            raise RuntimeError(f"Session already finished ({self.phase.value})")
        self.phase = phase
        if percent is not None:
            self.percent = max(self.percent, min(100, int(percent)))
        if message is not None:
            self.status_text = message
        return ProgressUpdate(
            phase=self.phase,
            percent=self.percent,
            message=self.status_text,
            bytes_sent=bytes_sent,
            bytes_total=bytes_total,
        )
