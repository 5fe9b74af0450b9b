"""Progress reporting for a single submit."""
import inspect
import logging
from typing import Any, Callable, Optional

from ..utils.events import EventEmitter
from .models import ProgressUpdate, UploadPhase, UploadSession

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressUpdate], Any]


class ProgressReporter:
    """
    Pushes session state to the caller's progress callback and to event listeners.

    Callback errors are logged and never abort the upload.
    """

    def __init__(
        self,
        upload: UploadSession,
        on_progress: Optional[ProgressCallback] = None,
        events: Optional[EventEmitter] = None,
    ):
        self._upload = upload
        self._on_progress = on_progress
        self._events = events

    async def report(
        self,
        phase: UploadPhase,
        percent: Optional[int] = None,
        message: Optional[str] = None,
        bytes_sent: Optional[int] = None,
        bytes_total: Optional[int] = None,
    ) -> ProgressUpdate:
        previous = self._upload.phase
        update = self._upload.advance(phase, percent, message, bytes_sent, bytes_total)

        if phase != previous:
            logger.debug("Submit phase %s -> %s", previous.value, phase.value)
            if self._events is not None:
                await self._events.emit("phase", update)

        if self._on_progress is not None:
            try:
                result = self._on_progress(update)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error("Error in progress callback: %s", e)
        return update
