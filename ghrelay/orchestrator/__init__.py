"""Orchestrator package - coordinates the upload workflow."""
from .core import UploadOrchestrator
from .single_upload import SingleUploadHandler

__all__ = ["UploadOrchestrator", "SingleUploadHandler"]
