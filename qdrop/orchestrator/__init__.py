"""Orchestrator package - coordinates the submit workflow."""
from .core import UploadOrchestrator
from .models import ProgressUpdate, UploadPhase, UploadSession
from .submit import SubmitHandler

__all__ = ["UploadOrchestrator", "ProgressUpdate", "UploadPhase", "UploadSession", "SubmitHandler"]
