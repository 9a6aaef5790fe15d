"""One-shot temp media served back to the messaging platform."""

from __future__ import annotations

import mimetypes

from fastapi import APIRouter
from fastapi.responses import FileResponse, JSONResponse, Response
from starlette.background import BackgroundTask

from chatpilot.api.routes.deps import EngineDep

router = APIRouter()


@router.get("/files/{name}")
async def get_file(name: str, engine: EngineDep) -> Response:
    store = engine.dispatcher.temp_files
    path = store.claim(name) if store is not None else None
    if path is None:
        return JSONResponse({"message": "File not found"}, status_code=404)
    media_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
    return FileResponse(path, media_type=media_type, background=BackgroundTask(store.release, path))
