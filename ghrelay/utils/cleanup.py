"""Best-effort removal of per-request temporary files."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


def remove_quietly(path: Optional[Union[str, Path]], label: str = "file") -> bool:
    """
    Delete ``path`` if it exists.

    Failures are logged and swallowed: cleanup must never replace the error
    (or result) the caller is about to report.

    Returns:
        True if the file was removed by this call
    """
    if not path:
        return False
    target = Path(path)
    try:
        target.unlink()
    except FileNotFoundError:
        logger.debug("Cleanup skipped, %s already gone: %s", label, target)
        return False
    except OSError as exc:
        logger.warning("Failed to clean up %s %s: %s", label, target, exc)
        return False
    logger.debug("Cleaned up %s: %s", label, target)
    return True
