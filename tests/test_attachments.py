"""
Tests for Ephemeral Attachments

BlobStore storage and delayed deletion, and AttachmentNotifier routing.
"""

import asyncio
import io

import pytest

from relay import (
    AttachmentNotifier,
    BlobDescriptor,
    BlobStore,
    RoomKind,
    UploadTooLargeError,
)
from relay.attachments import UNKNOWN_SENDER_NAME, safe_filename


class FakeUpload:
    """Async file-like object standing in for an uploaded file."""

    def __init__(self, content: bytes):
        self._buffer = io.BytesIO(content)

    async def read(self, size=-1):
        return self._buffer.read(size)


def make_descriptor(filename="1-notes.txt"):
    return BlobDescriptor(
        filename=filename,
        originalname="notes.txt",
        mimetype="text/plain",
        size=5,
        path=f"/uploads/{filename}",
    )


def test_safe_filename():
    assert safe_filename("../../etc/passwd") == "passwd"
    assert safe_filename("my report (1).pdf") == "my_report_1_.pdf"
    assert safe_filename("") == "file"


@pytest.mark.asyncio
async def test_save_stores_file(tmp_path):
    store = BlobStore(str(tmp_path), max_upload_bytes=1024)

    descriptor = await store.save(FakeUpload(b"hello"), "notes.txt", "text/plain")

    assert descriptor.originalname == "notes.txt"
    assert descriptor.mimetype == "text/plain"
    assert descriptor.size == 5
    assert descriptor.filename.endswith("-notes.txt")
    assert descriptor.path == f"/uploads/{descriptor.filename}"
    assert (tmp_path / descriptor.filename).read_bytes() == b"hello"


@pytest.mark.asyncio
async def test_save_defaults_mimetype(tmp_path):
    store = BlobStore(str(tmp_path), max_upload_bytes=1024)
    descriptor = await store.save(FakeUpload(b"x"), "blob")
    assert descriptor.mimetype == "application/octet-stream"


@pytest.mark.asyncio
async def test_save_rejects_oversized_file(tmp_path):
    store = BlobStore(str(tmp_path), max_upload_bytes=4)

    with pytest.raises(UploadTooLargeError):
        await store.save(FakeUpload(b"too large"), "big.bin")

    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_scheduled_deletion_removes_file(tmp_path):
    store = BlobStore(str(tmp_path), max_upload_bytes=1024, retention_seconds=0.01)
    descriptor = await store.save(FakeUpload(b"hello"), "notes.txt")

    task = store.schedule_deletion(descriptor.filename)
    assert store.pending_deletions() == [descriptor.filename]
    await task

    assert not (tmp_path / descriptor.filename).exists()
    assert store.pending_deletions() == []


@pytest.mark.asyncio
async def test_cancel_deletion_keeps_file(tmp_path):
    store = BlobStore(str(tmp_path), max_upload_bytes=1024)
    descriptor = await store.save(FakeUpload(b"hello"), "notes.txt")
    task = store.schedule_deletion(descriptor.filename, delay=60)

    assert store.cancel_deletion(descriptor.filename) is True
    await asyncio.sleep(0)

    assert task.cancelled()
    assert (tmp_path / descriptor.filename).exists()
    assert store.cancel_deletion(descriptor.filename) is False


@pytest.mark.asyncio
async def test_deletion_failure_is_swallowed(tmp_path, caplog):
    store = BlobStore(str(tmp_path), max_upload_bytes=1024)

    await store.schedule_deletion("never-stored.txt", delay=0)

    assert "Error deleting file" in caplog.text


@pytest.mark.asyncio
async def test_close_cancels_pending_deletions(tmp_path):
    store = BlobStore(str(tmp_path), max_upload_bytes=1024)
    task = store.schedule_deletion("a.txt", delay=60)

    await store.close()

    assert task.cancelled()
    assert store.pending_deletions() == []


@pytest.mark.asyncio
async def test_notify_shares_file_with_whole_room(directory, registry, router, connect):
    ws_x = connect("X")
    ws_y = connect("Y")
    directory.register("room", RoomKind.GROUP, "X")
    for connection_id, name in (("X", "alice"), ("Y", "bob")):
        registry.add_membership(connection_id, "room")
        registry.set_display_name(connection_id, name)
    notifier = AttachmentNotifier(directory, registry, router)

    delivered = await notifier.notify(make_descriptor(), "room", "X", temp_id="t1")

    assert delivered == 2
    event = ws_y.events()[0]
    assert event["type"] == "file-shared"
    assert event["data"] == {
        "filename": "1-notes.txt",
        "originalname": "notes.txt",
        "mimetype": "text/plain",
        "size": 5,
        "path": "/uploads/1-notes.txt",
        "senderId": "X",
        "senderName": "alice",
        "tempId": "t1",
    }
    assert ws_x.types() == ["file-shared"]


@pytest.mark.asyncio
async def test_notify_falls_back_when_sender_gone(directory, registry, router, connect):
    ws_y = connect("Y")
    directory.register("room", RoomKind.GROUP, "Y")
    registry.add_membership("Y", "room")
    notifier = AttachmentNotifier(directory, registry, router)

    await notifier.notify(make_descriptor(), "room", "departed")

    assert ws_y.events()[0]["data"]["senderName"] == UNKNOWN_SENDER_NAME


@pytest.mark.asyncio
async def test_notify_unknown_room_sends_nothing(directory, registry, router):
    notifier = AttachmentNotifier(directory, registry, router)
    assert await notifier.notify(make_descriptor(), "ghost", "X") == 0
