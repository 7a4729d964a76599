"""
Metadata providers - Single Responsibility: describe a file's properties.

Two implementations of IMetadataProvider:

- ShellMetadataProvider: generates a PowerShell script that asks the Windows
  shell (Shell.Application) for the file's detail columns and parses its
  sentinel-delimited JSON output.
- ExifMetadataProvider: reads the same fields from the image's EXIF block
  with Pillow, no external process.
"""
from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from PIL import Image, UnidentifiedImageError

from ..errors import ConfigurationError, ExtractionError, ParseError, ProcessError
from ..models import Metadata, RelaySettings, new_request_id
from ..protocols import IMetadataProvider, IShellRunner
from ..utils.cleanup import remove_quietly
from .metadata_script import metadata_from_payload, parse_output, render_script
from .shell import ShellRunner

logger = logging.getLogger(__name__)

# EXIF tags written by Windows Explorer's "Details" tab
TAG_IMAGE_DESCRIPTION = 0x010E
TAG_XP_TITLE = 0x9C9B
TAG_XP_COMMENT = 0x9C9C
TAG_XP_KEYWORDS = 0x9C9E


class ShellMetadataProvider(IMetadataProvider):
    """
    Subprocess adapter for the shell property inspector.

    One script and one process per call; the script is deleted as soon as
    the process exits.
    """

    def __init__(
        self,
        runner: Optional[IShellRunner] = None,
        shell: str = "powershell",
        script_dir: Optional[Path] = None,
        settings: Optional[RelaySettings] = None,
    ):
        settings = settings or RelaySettings()
        self._runner = runner or ShellRunner(
            max_output_bytes=settings.max_output_bytes,
            timeout=settings.extraction_timeout,
        )
        self._shell = shell
        self._script_dir = Path(script_dir or settings.script_dir)

    def script_path(self, request_id: str) -> Path:
        return self._script_dir / f"metadata-{request_id}.ps1"

    def command(self, script_path: Path) -> list:
        return [
            self._shell,
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy",
            "Bypass",
            "-File",
            str(script_path),
        ]

    async def extract(self, local_path: Path, request_id: Optional[str] = None) -> Metadata:
        local_path = Path(local_path)
        script_path = self.script_path(request_id or new_request_id())

        try:
            self._script_dir.mkdir(parents=True, exist_ok=True)
            # BOM so Windows PowerShell reads non-ASCII paths correctly
            script_path.write_text(render_script(local_path), encoding="utf-8-sig")
        except OSError as exc:
            remove_quietly(script_path, "inspection script")
            raise ProcessError(f"Could not write inspection script: {exc}") from exc

        logger.info("Extracting metadata from %s", local_path.name)
        try:
            result = await self._runner.run(self.command(script_path))
        finally:
            remove_quietly(script_path, "inspection script")

        logger.debug("Inspection exit code: %s", result.returncode)
        logger.debug("Inspection stdout: %s", result.stdout)
        if result.stderr:
            logger.debug("Inspection stderr: %s", result.stderr)

        if not result.stdout or not result.stdout.strip():
            if result.returncode != 0:
                raise ProcessError(
                    f"Inspection process failed with exit code {result.returncode}: "
                    f"{result.stderr.strip() or 'no output'}"
                )
            raise ProcessError("Inspection process produced no output")

        try:
            payload = parse_output(result.stdout)
        except ParseError:
            if result.returncode != 0:
                raise ProcessError(
                    f"Inspection process failed with exit code {result.returncode}: "
                    f"{result.stderr.strip() or 'no usable output'}"
                ) from None
            raise

        metadata = metadata_from_payload(payload)
        logger.debug("Parsed metadata for %s: %s", local_path.name, metadata.as_dict())
        return metadata


def _decode_xp(value: Any) -> str:
    """XP* tags are UTF-16LE, NUL-terminated; older Pillow hands back int tuples."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.rstrip("\x00")
    raw = bytes(value)
    return raw.decode("utf-16-le", errors="replace").rstrip("\x00")


def _decode_ascii(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return str(value).rstrip("\x00").strip()


class ExifMetadataProvider(IMetadataProvider):
    """Embedded tag reader (Pillow); portable replacement for the shell."""

    def read(self, local_path: Path) -> Metadata:
        try:
            with Image.open(local_path) as image:
                exif = image.getexif()
        except UnidentifiedImageError:
            # Not an image: no embedded tags, same as the shell inspector
            logger.debug("No image tags in %s", local_path.name)
            return Metadata.empty()
        except OSError as exc:
            reason = exc.strerror or type(exc).__name__
            raise ExtractionError(f"Failed to read metadata: {reason}") from exc

        return Metadata(
            description=_decode_ascii(exif.get(TAG_IMAGE_DESCRIPTION)),
            title=_decode_xp(exif.get(TAG_XP_TITLE)),
            comments=_decode_xp(exif.get(TAG_XP_COMMENT)),
            tags=_decode_xp(exif.get(TAG_XP_KEYWORDS)),
        )

    async def extract(self, local_path: Path, request_id: Optional[str] = None) -> Metadata:
        logger.info("Extracting metadata from %s", Path(local_path).name)
        return await asyncio.to_thread(self.read, Path(local_path))


def default_metadata_provider(settings: Optional[RelaySettings] = None) -> IMetadataProvider:
    """Shell inspector on Windows, EXIF reader elsewhere, unless configured."""
    settings = settings or RelaySettings()
    kind = (settings.metadata_provider or "").lower()
    if not kind:
        kind = "shell" if sys.platform == "win32" else "exif"

    if kind == "shell":
        return ShellMetadataProvider(shell=settings.shell, settings=settings)
    if kind == "exif":
        return ExifMetadataProvider()
    raise ConfigurationError(f"Unknown metadata provider: {settings.metadata_provider}")
