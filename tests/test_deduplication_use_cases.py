"""Tests for the dedup check and content commit use cases."""
import base64
from unittest.mock import AsyncMock

import pytest

from ghrelay.errors import CommitError, HostAuthError, HostError, HostNotFoundError
from ghrelay.models import DedupStatus
from ghrelay.use_cases.commit import ContentCommitter, commit_message, encode_file
from ghrelay.use_cases.deduplication import DedupChecker


@pytest.mark.asyncio
async def test_dedup_hit():
    host = AsyncMock()
    host.get_content = AsyncMock(return_value={"type": "file", "sha": "abc"})

    result = await DedupChecker(host).check("u", "r", "images/a.jpg", "main")

    assert result.status == DedupStatus.FOUND
    assert result.content == {"type": "file", "sha": "abc"}
    host.get_content.assert_awaited_once_with("u", "r", "images/a.jpg", "main")


@pytest.mark.asyncio
async def test_dedup_not_found():
    host = AsyncMock()
    host.get_content = AsyncMock(side_effect=HostNotFoundError("Not Found", status_code=404))

    result = await DedupChecker(host).check("u", "r", "images/a.jpg", "main")

    assert result.status == DedupStatus.NOT_FOUND
    assert result.found is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [HostAuthError("Bad credentials", status_code=401), HostError("GET failed: timeout")],
)
async def test_dedup_failure_is_not_absence(error):
    host = AsyncMock()
    host.get_content = AsyncMock(side_effect=error)

    result = await DedupChecker(host).check("u", "r", "images/a.jpg", "main")

    assert result.status == DedupStatus.ERROR
    assert result.detail == str(error)


def test_commit_message():
    assert commit_message("a.jpg") == "Upload a.jpg"


def test_encode_file(tmp_path):
    path = tmp_path / "a.bin"
    path.write_bytes(b"\x00\x01binary")
    assert base64.b64decode(encode_file(path)) == b"\x00\x01binary"


@pytest.mark.asyncio
async def test_commit_sends_base64_content(tmp_path):
    path = tmp_path / "staged-a.jpg"
    path.write_bytes(b"pixels")
    host = AsyncMock()
    host.create_or_update_content = AsyncMock(return_value={"commit": {"sha": "c1"}})

    ack = await ContentCommitter(host).commit("u", "r", "images/a.jpg", "a.jpg", path, "main")

    assert ack == {"commit": {"sha": "c1"}}
    host.create_or_update_content.assert_awaited_once_with(
        "u",
        "r",
        "images/a.jpg",
        "Upload a.jpg",
        base64.b64encode(b"pixels").decode("ascii"),
        "main",
    )


@pytest.mark.asyncio
async def test_commit_failure_carries_host_detail(tmp_path):
    path = tmp_path / "a.jpg"
    path.write_bytes(b"pixels")
    host = AsyncMock()
    host.create_or_update_content = AsyncMock(
        side_effect=HostError("Invalid request. \"sha\" wasn't supplied.", status_code=422)
    )

    with pytest.raises(CommitError, match="wasn't supplied"):
        await ContentCommitter(host).commit("u", "r", "images/a.jpg", "a.jpg", path, "main")
    host.create_or_update_content.assert_awaited_once()


@pytest.mark.asyncio
async def test_commit_unreadable_file(tmp_path):
    host = AsyncMock()

    with pytest.raises(CommitError, match="Could not read"):
        await ContentCommitter(host).commit(
            "u", "r", "images/a.jpg", "a.jpg", tmp_path / "missing.jpg", "main"
        )
    host.create_or_update_content.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content",
    [
        [{"type": "file", "name": "x.jpg"}],
        {"type": "dir", "path": "images/a.jpg"},
        {"type": "symlink", "path": "images/a.jpg"},
    ],
)
async def test_dedup_non_file_path_is_error(content):
    host = AsyncMock()
    host.get_content = AsyncMock(return_value=content)

    result = await DedupChecker(host).check("u", "r", "images/a.jpg", "main")

    assert result.status == DedupStatus.ERROR
    assert result.found is False
    assert "not a file" in result.detail
