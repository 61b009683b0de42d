"""
HTTP Server for the Relay

Serves the upload endpoint and the uploaded files themselves:

    POST /upload          multipart: file, roomId, senderId, tempId (optional)
    GET  /uploads/<name>  the stored file, until its retention window ends
    GET  /health          liveness and room/connection counts
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.staticfiles import StaticFiles

from .attachments import AttachmentNotifier, BlobStore
from .errors import UploadError, UploadTooLargeError
from .registry import ConnectionRegistry
from .room_state import RoomDirectory

logger = logging.getLogger(__name__)

# Allowance for multipart boundaries and the small form fields
MULTIPART_OVERHEAD = 64 * 1024


def create_app(
    blob_store: BlobStore,
    notifier: AttachmentNotifier,
    directory: RoomDirectory,
    registry: ConnectionRegistry,
) -> FastAPI:
    """
    Create the HTTP application.

    Args:
        blob_store: Store that keeps uploads and schedules their deletion
        notifier: Announces stored uploads to rooms
        directory: Room directory (for /health)
        registry: Connection registry (for /health)

    Returns:
        The FastAPI application
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await blob_store.close()

    app = FastAPI(title="Ephemeral Room Relay", lifespan=lifespan)
    app.state.blob_store = blob_store
    app.state.notifier = notifier

    @app.middleware("http")
    async def limit_upload_size(request: Request, call_next):
        # Refuse oversized bodies before the form is parsed and spooled
        if request.method == "POST" and request.url.path == "/upload":
            length = request.headers.get("content-length", "")
            limit = blob_store.max_upload_bytes + MULTIPART_OVERHEAD
            if length.isdigit() and int(length) > limit:
                error = UploadTooLargeError(blob_store.max_upload_bytes)
                logger.warning(f"Rejected upload of {length} bytes: {error}")
                return JSONResponse(status_code=500, content={"error": str(error)})
        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.post("/upload")
    async def upload(
        file: Optional[UploadFile] = File(None),
        room_id: Optional[str] = Form(None, alias="roomId"),
        sender_id: Optional[str] = Form(None, alias="senderId"),
        temp_id: Optional[str] = Form(None, alias="tempId"),
    ):
        if file is None or not file.filename:
            return JSONResponse(status_code=400, content={"error": "No file uploaded."})

        try:
            descriptor = await blob_store.save(
                file, file.filename, file.content_type
            )
        except UploadTooLargeError as e:
            logger.warning(f"Rejected upload {file.filename}: {e}")
            return JSONResponse(status_code=500, content={"error": str(e)})
        except UploadError as e:
            logger.error(f"Upload failed: {e}")
            return JSONResponse(status_code=500, content={"error": str(e)})
        finally:
            await file.close()

        blob_store.schedule_deletion(descriptor.filename)

        if room_id:
            # The file is stored and expiring either way
            try:
                await notifier.notify(descriptor, room_id, sender_id, temp_id)
            except Exception as e:
                logger.error(
                    f"Failed to announce {descriptor.filename} in room {room_id}: {e}"
                )

        return JSONResponse(status_code=200, content=descriptor.to_dict())

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "rooms": directory.get_room_count(),
            "connections": registry.connection_count(),
        }

    app.mount(
        blob_store.url_prefix,
        StaticFiles(directory=str(blob_store.upload_dir)),
        name="uploads",
    )

    return app


class HTTPServer:
    """Runs the HTTP application on the relay's event loop."""

    def __init__(self, app: FastAPI, host: str, port: int, log_level: str = "info"):
        self.app = app
        self.host = host
        self.port = port
        self._server = uvicorn.Server(
            uvicorn.Config(
                app,
                host=host,
                port=port,
                log_level=log_level.lower(),
                log_config=None,
            )
        )

    async def serve(self):
        """Serve until stop() is called."""
        logger.info(f"HTTP server starting on http://{self.host}:{self.port}")
        await self._server.serve()

    def stop(self):
        self._server.should_exit = True
