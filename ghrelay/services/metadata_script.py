"""
Inspection script protocol.

The generated PowerShell script prints free-form progress lines and then a
single JSON line wrapped between two sentinel lines:

    JSON_OUTPUT_START
    {"success": true, "error": "", "metadata": {...}}
    JSON_OUTPUT_END
"""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Mapping

from ..errors import ExtractionError, ParseError
from ..models import METADATA_FIELDS, Metadata

logger = logging.getLogger(__name__)

START_MARKER = "JSON_OUTPUT_START"
END_MARKER = "JSON_OUTPUT_END"

_SENTINEL_RE = re.compile(rf"{START_MARKER}\r?\n(.*)\r?\n{END_MARKER}")
_BRACES_RE = re.compile(r"\{.*\}")

_SCRIPT_HEADER = """\
$ErrorActionPreference = 'Stop'
[Console]::OutputEncoding = [System.Text.Encoding]::UTF8

function Write-Result($success, $message, $metadata) {
    $json = @{
        success = $success
        error = $message
        metadata = $metadata
    } | ConvertTo-Json -Compress
    Write-Output "JSON_OUTPUT_START"
    Write-Output $json
    Write-Output "JSON_OUTPUT_END"
}

Write-Output "Script starting..."
try {
    $shell = New-Object -ComObject Shell.Application
    Write-Output "Created Shell.Application"

    $filePath = {file_path}
    Write-Output "File path: $filePath"

    $folder = [System.IO.Path]::GetFullPath([System.IO.Path]::GetDirectoryName($filePath))
    $filename = [System.IO.Path]::GetFileName($filePath)
    Write-Output "Folder: $folder"
    Write-Output "Filename: $filename"

    $shellFolder = $shell.Namespace($folder)
    if (-not $shellFolder) {
        Write-Result $false "Failed to access folder" $null
        exit 1
    }

    $shellFile = $shellFolder.ParseName($filename)
    if (-not $shellFile) {
        Write-Result $false "Failed to access file" $null
        exit 1
    }

    Write-Output "=== Property Details ==="
    $metadata = @{}
"""

_SCRIPT_FIELD = """\
    $value = $shellFolder.GetDetailsOf($shellFile, {index})
    Write-Output "{label}: $value"
    $metadata['{name}'] = [string]$value
"""

_SCRIPT_FOOTER = """\
    Write-Output "=== End Property Details ==="

    Write-Result $true "" $metadata
}
catch {
    Write-Output "Error occurred: $_"
    Write-Output $_.ScriptStackTrace
    Write-Result $false ("PowerShell error: " + $_.Exception.Message) $null
}
"""


def quote_powershell(value: str) -> str:
    """Single-quoted PowerShell literal; nothing inside it is expanded."""
    return "'" + value.replace("'", "''") + "'"


def render_script(file_path: Path) -> str:
    """Render the inspection script for one file."""
    absolute = str(Path(file_path).resolve())
    parts = [_SCRIPT_HEADER.replace("{file_path}", quote_powershell(absolute))]
    for name, index in METADATA_FIELDS.items():
        parts.append(
            _SCRIPT_FIELD
            .replace("{index}", str(index))
            .replace("{label}", name.capitalize())
            .replace("{name}", name)
        )
    parts.append(_SCRIPT_FOOTER)
    return "".join(parts)


def parse_output(stdout: str) -> Dict[str, Any]:
    """
    Recover the JSON payload from script output.

    Falls back to the first brace-delimited substring when the sentinels are
    missing (e.g. the script died before printing them).

    Raises:
        ParseError: no JSON found, invalid JSON, or not an object
    """
    match = _SENTINEL_RE.search(stdout)
    if match:
        candidate = match.group(1).strip()
    else:
        logger.warning("No JSON markers found in inspection output")
        logger.debug("Full stdout: %s", stdout)
        fallback = _BRACES_RE.search(stdout)
        if not fallback:
            raise ParseError("No valid JSON found in inspection output")
        candidate = fallback.group(0)
        logger.debug("Found JSON without markers: %s", candidate)

    try:
        payload = json.loads(candidate)
    except ValueError as exc:
        raise ParseError(f"Failed to parse inspection output: {exc}") from exc

    if not isinstance(payload, dict):
        raise ParseError("Failed to parse inspection output: expected a JSON object")
    return payload


def metadata_from_payload(payload: Mapping[str, Any]) -> Metadata:
    """
    Turn a parsed payload into Metadata.

    Raises:
        ExtractionError: the payload reports ``success: false``
    """
    if not payload.get("success"):
        raise ExtractionError(payload.get("error") or "Failed to read metadata")
    metadata = payload.get("metadata")
    if metadata is not None and not isinstance(metadata, Mapping):
        raise ParseError("Inspection payload metadata is not an object")
    return Metadata.from_mapping(metadata)
