"""
Ephemeral Attachments

BlobStore keeps uploaded files on disk for a fixed retention window and
deletes them afterwards. AttachmentNotifier announces a stored file to a
room as a file-shared event.
"""

import asyncio
import logging
import os
import re
import time
import unicodedata
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .config import DEFAULT_RETENTION_SECONDS
from .errors import UploadError, UploadTooLargeError
from .registry import ConnectionRegistry
from .room_state import RoomDirectory
from .router import EventRouter

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
UNKNOWN_SENDER_NAME = "A user"


def safe_filename(name: str) -> str:
    name = os.path.basename(name or "")
    name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode()
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", name)
    return name or "file"


@dataclass(frozen=True)
class BlobDescriptor:
    """
    Description of a stored upload.

    Attributes:
        filename: Name the file is stored under
        originalname: Name it was uploaded with
        mimetype: Media type reported by the uploader
        size: Size in bytes
        path: URL path the file is served from
    """

    filename: str
    originalname: str
    mimetype: str
    size: int
    path: str

    def to_dict(self) -> Dict:
        return asdict(self)


class BlobStore:
    """
    Disk-backed store for uploaded files with delayed deletion.

    Each stored file gets a deletion task keyed by its filename. The task
    can be cancelled (e.g. to keep a file longer); failures to delete are
    logged and not retried.
    """

    def __init__(
        self,
        upload_dir: str,
        max_upload_bytes: int,
        retention_seconds: int = DEFAULT_RETENTION_SECONDS,
        url_prefix: str = "/uploads",
    ):
        self.upload_dir = Path(upload_dir)
        self.max_upload_bytes = max_upload_bytes
        self.retention_seconds = retention_seconds
        self.url_prefix = url_prefix.rstrip("/")
        self._deletions: Dict[str, asyncio.Task] = {}
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, filename: str) -> Path:
        return self.upload_dir / filename

    async def save(
        self, upload, originalname: str, mimetype: Optional[str] = None
    ) -> BlobDescriptor:
        """
        Stream an upload to disk.

        Args:
            upload: Object with an async read(size) method
            originalname: Name the client uploaded the file as
            mimetype: Media type reported by the client

        Returns:
            Descriptor of the stored file

        Raises:
            UploadTooLargeError: If the file exceeds max_upload_bytes
            UploadError: If the file could not be written
        """
        filename = self._stored_name(originalname)
        target = self.path_for(filename)

        size = 0
        try:
            with open(target, "wb") as f:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.max_upload_bytes:
                        raise UploadTooLargeError(self.max_upload_bytes, originalname)
                    f.write(chunk)
        except UploadTooLargeError:
            target.unlink(missing_ok=True)
            raise
        except OSError as e:
            target.unlink(missing_ok=True)
            raise UploadError(f"Could not store {originalname}: {e}") from e

        logger.info(f"Stored upload {filename} ({size} bytes)")
        return BlobDescriptor(
            filename=filename,
            originalname=originalname,
            mimetype=mimetype or "application/octet-stream",
            size=size,
            path=f"{self.url_prefix}/{filename}",
        )

    def schedule_deletion(
        self, filename: str, delay: Optional[float] = None
    ) -> asyncio.Task:
        """
        Schedule a stored file for deletion.

        Args:
            filename: Stored file name
            delay: Seconds to wait; defaults to the retention window

        Returns:
            The deletion task. Rescheduling replaces an earlier task.
        """
        self.cancel_deletion(filename)
        delay = self.retention_seconds if delay is None else delay
        task = asyncio.create_task(self._delete_after(filename, delay))
        self._deletions[filename] = task
        logger.debug(f"Scheduled deletion of {filename} in {delay}s")
        return task

    def cancel_deletion(self, filename: str) -> bool:
        """
        Cancel a pending deletion.

        Returns:
            True if a pending deletion was cancelled
        """
        task = self._deletions.pop(filename, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug(f"Cancelled deletion of {filename}")
        return True

    def pending_deletions(self) -> List[str]:
        return [name for name, task in self._deletions.items() if not task.done()]

    async def close(self):
        """Cancel every pending deletion task."""
        tasks = list(self._deletions.values())
        self._deletions.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _delete_after(self, filename: str, delay: float):
        await asyncio.sleep(delay)
        path = self.path_for(filename)
        try:
            path.unlink()
            logger.info(f"Successfully deleted file: {path}")
        except OSError as e:
            logger.error(f"Error deleting file {path}: {e}")
        finally:
            if self._deletions.get(filename) is asyncio.current_task():
                del self._deletions[filename]

    def _stored_name(self, originalname: str) -> str:
        base = safe_filename(originalname)
        filename = f"{int(time.time() * 1000)}-{base}"
        counter = 1
        while self.path_for(filename).exists():
            filename = f"{int(time.time() * 1000)}-{counter}-{base}"
            counter += 1
        return filename


class AttachmentNotifier:
    """Routes file-shared events for stored uploads into rooms."""

    def __init__(
        self,
        directory: RoomDirectory,
        registry: ConnectionRegistry,
        router: EventRouter,
    ):
        self.directory = directory
        self.registry = registry
        self.router = router

    def sender_name(self, sender_id: Optional[str]) -> str:
        """Resolve the uploader's name, falling back to a placeholder."""
        name = self.registry.display_name_of(sender_id) if sender_id else None
        return name or UNKNOWN_SENDER_NAME

    async def notify(
        self,
        descriptor: BlobDescriptor,
        room_id: str,
        sender_id: Optional[str],
        temp_id: Optional[str] = None,
        include_sender: bool = True,
    ) -> int:
        """
        Announce a stored file to a room.

        The uploader may have disconnected between upload and
        notification; the file is then attributed to a placeholder name.

        Returns:
            Number of connections notified (0 if the room no longer exists)
        """
        if not self.directory.exists(room_id):
            logger.warning(
                f"Not announcing {descriptor.filename}: room {room_id} not found"
            )
            return 0

        delivered = await self.router.share_file(
            sender_id=sender_id,
            sender_name=self.sender_name(sender_id),
            room_id=room_id,
            descriptor=descriptor,
            temp_id=temp_id,
            include_sender=include_sender,
        )
        logger.info(
            f"Shared {descriptor.filename} in room {room_id} "
            f"with {delivered} connections"
        )
        return delivered
