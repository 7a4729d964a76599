"""Application use cases for the upload pipeline."""

from .commit import ContentCommitter, commit_message, encode_file
from .deduplication import DedupChecker

__all__ = [
    "ContentCommitter",
    "DedupChecker",
    "commit_message",
    "encode_file",
]
