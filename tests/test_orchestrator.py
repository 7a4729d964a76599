"""End-to-end tests for the upload orchestrator with an in-memory host."""
import base64
import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from ghrelay.errors import ExtractionError, HostAuthError, HostError, HostNotFoundError
from ghrelay.models import Metadata, RelaySettings, UploadStatus
from ghrelay.orchestrator import UploadOrchestrator
from ghrelay.services.metadata import ExifMetadataProvider, ShellMetadataProvider
from ghrelay.services.shell import ShellResult

CONFIG = {"token": "t", "username": "u", "repo": "r", "branch": "main", "folder": "images"}
SCENARIO_METADATA = Metadata(description="d", title="t", comments="", tags="")


class FakeHost:
    """In-memory repository host; records every call."""

    def __init__(self):
        self.files = {}
        self.gets = []
        self.writes = []
        self.repo_checks = []
        self.tokens = []
        self.lookup_error = None
        self.write_error = None

    def __call__(self, token):
        self.tokens.append(token)
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return None

    @property
    def calls(self):
        return len(self.gets) + len(self.writes) + len(self.repo_checks)

    async def get_content(self, owner, repo, path, branch):
        self.gets.append((owner, repo, path, branch))
        if self.lookup_error:
            raise self.lookup_error
        key = (owner, repo, branch, path)
        if key not in self.files:
            raise HostNotFoundError("Not Found", status_code=404)
        return {"type": "file", "path": path, "sha": "sha-1"}

    async def create_or_update_content(self, owner, repo, path, message, content, branch):
        self.writes.append((owner, repo, path, message, content, branch))
        if self.write_error:
            raise self.write_error
        self.files[(owner, repo, branch, path)] = base64.b64decode(content)
        return {"content": {"path": path}}

    async def get_repository(self, owner, repo):
        self.repo_checks.append((owner, repo))
        if self.lookup_error:
            raise self.lookup_error
        return {"full_name": f"{owner}/{repo}"}


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def provider():
    provider = AsyncMock()
    provider.extract = AsyncMock(return_value=SCENARIO_METADATA)
    return provider


@pytest.fixture
def staged(tmp_path):
    path = tmp_path / "0f3a-a.jpg"
    path.write_bytes(b"\xff\xd8jpeg-bytes")
    return path


def _orchestrator(host, provider, **settings):
    return UploadOrchestrator(
        settings=RelaySettings(**settings),
        host_factory=host,
        metadata_provider=provider,
    )


@pytest.mark.asyncio
async def test_scenario_a_upload_when_absent(host, provider, staged):
    async with _orchestrator(host, provider) as relay:
        outcome = await relay.upload(staged, "a.jpg", json.dumps(CONFIG))

    assert outcome.success is True
    result = outcome.result
    assert result.remote_url == "https://raw.githubusercontent.com/u/r/main/images/a.jpg"
    assert result.status == UploadStatus.UPLOADED
    assert result.as_dict()["metadata"] == {"description": "d", "title": "t", "comments": "", "tags": ""}
    assert host.gets == [("u", "r", "images/a.jpg", "main")]
    assert len(host.writes) == 1
    assert host.writes[0][3] == "Upload a.jpg"
    assert host.files[("u", "r", "main", "images/a.jpg")] == b"\xff\xd8jpeg-bytes"
    assert host.tokens == ["t"]
    assert not staged.exists()


@pytest.mark.asyncio
async def test_scenario_b_existing_file_is_not_rewritten(host, provider, staged):
    host.files[("u", "r", "main", "images/a.jpg")] = b"old"

    async with _orchestrator(host, provider) as relay:
        outcome = await relay.upload(staged, "a.jpg", CONFIG)

    assert outcome.success is True
    assert "already exists" in outcome.result.message
    assert outcome.result.status == UploadStatus.EXISTING
    assert host.writes == []
    provider.extract.assert_awaited_once()
    assert not staged.exists()


@pytest.mark.asyncio
async def test_second_upload_is_idempotent(host, provider, tmp_path):
    first = tmp_path / "1-a.jpg"
    second = tmp_path / "2-a.jpg"
    first.write_bytes(b"same")
    second.write_bytes(b"same")

    async with _orchestrator(host, provider) as relay:
        one = await relay.upload(first, "a.jpg", CONFIG)
        two = await relay.upload(second, "a.jpg", CONFIG)

    assert one.result.remote_url == two.result.remote_url
    assert len(host.writes) == 1
    assert two.result.status == UploadStatus.EXISTING


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["token", "username", "repo"])
async def test_missing_required_field_touches_nothing(host, provider, staged, missing):
    config = dict(CONFIG)
    del config[missing]

    async with _orchestrator(host, provider) as relay:
        outcome = await relay.upload(staged, "a.jpg", config)

    assert outcome.success is False
    assert outcome.failure.details == "Missing required fields"
    assert host.calls == 0
    assert host.tokens == []
    provider.extract.assert_not_awaited()
    assert not staged.exists()


@pytest.mark.asyncio
async def test_unparseable_config(host, provider, staged):
    async with _orchestrator(host, provider) as relay:
        outcome = await relay.upload(staged, "a.jpg", "{broken")

    assert outcome.success is False
    assert "Invalid GitHub configuration" in outcome.failure.details
    assert host.calls == 0
    assert not staged.exists()


@pytest.mark.asyncio
async def test_missing_file(host, provider, tmp_path):
    async with _orchestrator(host, provider) as relay:
        outcome = await relay.upload(None, None, CONFIG)
        missing = await relay.upload(tmp_path / "nope.jpg", "nope.jpg", CONFIG)

    assert outcome.failure.details == "No file uploaded"
    assert "No file uploaded" in missing.failure.details
    assert host.calls == 0


@pytest.mark.asyncio
async def test_extraction_failure_reports_message_and_cleans_up(host, provider, staged):
    provider.extract = AsyncMock(side_effect=ExtractionError("X"))

    async with _orchestrator(host, provider) as relay:
        outcome = await relay.upload(staged, "a.jpg", CONFIG)

    assert outcome.as_dict() == {"error": "Failed to process file", "details": "X"}
    assert host.writes == []
    assert not staged.exists()


@pytest.mark.asyncio
async def test_commit_failure_cleans_up(host, provider, staged):
    host.write_error = HostError("Server Error", status_code=500)

    async with _orchestrator(host, provider) as relay:
        outcome = await relay.upload(staged, "a.jpg", CONFIG)

    assert outcome.success is False
    assert outcome.failure.details == "Server Error"
    assert len(host.writes) == 1
    assert host.files == {}
    assert not staged.exists()


@pytest.mark.asyncio
async def test_lookup_failure_is_not_treated_as_absent(host, provider, staged):
    host.lookup_error = HostAuthError("Bad credentials", status_code=401)

    async with _orchestrator(host, provider) as relay:
        outcome = await relay.upload(staged, "a.jpg", CONFIG)

    assert outcome.success is False
    assert "Bad credentials" in outcome.failure.details
    assert host.writes == []
    assert not staged.exists()


@pytest.mark.asyncio
async def test_unexpected_error_is_reported(host, provider, staged):
    provider.extract = AsyncMock(side_effect=KeyError("boom"))

    async with _orchestrator(host, provider) as relay:
        outcome = await relay.upload(staged, "a.jpg", CONFIG)

    assert outcome.success is False
    assert "boom" in outcome.failure.details
    assert not staged.exists()


@pytest.mark.asyncio
async def test_shell_provider_end_to_end_removes_script(host, staged, tmp_path):
    script_dir = tmp_path / "scripts"
    payload = {"success": True, "error": "", "metadata": {"description": "", "title": "", "comments": "", "tags": ""}}
    runner = AsyncMock()
    runner.run = AsyncMock(
        return_value=ShellResult(
            0,
            "Script starting...\nJSON_OUTPUT_START\n" + json.dumps(payload) + "\nJSON_OUTPUT_END\n",
            "",
        )
    )
    provider = ShellMetadataProvider(runner=runner, script_dir=script_dir)

    async with _orchestrator(host, provider) as relay:
        outcome = await relay.upload(staged, "a.jpg", CONFIG, request_id="r1")

    assert outcome.success is True
    assert outcome.result.as_dict()["metadata"] == {"description": "", "title": "", "comments": "", "tags": ""}
    assert Path(runner.run.await_args.args[0][-1]).name == "metadata-r1.ps1"
    assert list(script_dir.iterdir()) == []
    assert not staged.exists()


@pytest.mark.asyncio
async def test_verify_access(host, provider):
    async with _orchestrator(host, provider) as relay:
        response = await relay.verify_access(CONFIG)

    assert response == {"success": True, "message": "GitHub configuration successful"}
    assert host.repo_checks == [("u", "r")]


@pytest.mark.asyncio
async def test_verify_access_rejected(host, provider):
    host.lookup_error = HostAuthError("Bad credentials", status_code=401)

    async with _orchestrator(host, provider) as relay:
        with pytest.raises(HostAuthError):
            await relay.verify_access(CONFIG)


@pytest.mark.asyncio
async def test_non_image_upload_with_exif_provider_is_committed(host, tmp_path):
    staged = tmp_path / "0f3a-notes.txt"
    staged.write_text("hello")

    async with _orchestrator(host, ExifMetadataProvider()) as relay:
        outcome = await relay.upload(staged, "notes.txt", CONFIG)

    assert outcome.success is True
    assert outcome.result.status == UploadStatus.UPLOADED
    assert outcome.result.as_dict()["metadata"] == {"description": "", "title": "", "comments": "", "tags": ""}
    assert host.files[("u", "r", "main", "images/notes.txt")] == b"hello"
    assert not staged.exists()


@pytest.mark.asyncio
async def test_directory_at_target_path_is_not_reported_as_existing(host, provider, staged):
    async def listing(owner, repo, path, branch):
        host.gets.append((owner, repo, path, branch))
        return [{"type": "file", "name": "inner.jpg"}]

    host.get_content = listing

    async with _orchestrator(host, provider) as relay:
        outcome = await relay.upload(staged, "a.jpg", CONFIG)

    assert outcome.success is False
    assert "not a file" in outcome.failure.details
    assert host.writes == []
    assert not staged.exists()
