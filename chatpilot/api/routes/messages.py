"""Service index and on-demand message sending."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from chatpilot import __version__
from chatpilot.api.routes.deps import EngineDep

router = APIRouter()

SAMPLE_MESSAGE = "Hello World from Wassenger!"


class SendMessageRequest(BaseModel):
    phone: str
    message: str
    device: str | None = None


@router.get("/")
async def index(request: Request) -> dict:
    return {
        "name": request.app.title,
        "version": __version__,
        "description": "WhatsApp AI chatbot for Wassenger",
        "endpoints": {
            "webhook": {"path": "/webhook", "method": "POST"},
            "sendMessage": {"path": "/message", "method": "POST"},
            "sample": {"path": "/sample", "method": "GET"},
        },
    }


@router.post("/message")
async def send_message(body: SendMessageRequest, request: Request, engine: EngineDep) -> JSONResponse:
    device_id = body.device or _device(request).get("id", "")
    if not device_id:
        return JSONResponse({"message": "No device available"}, status_code=503)
    sent = await engine.client.send_message(body.phone, device_id, message=body.message)
    if sent is None:
        return JSONResponse({"message": "Failed to send message"}, status_code=502)
    return JSONResponse(sent)


@router.get("/sample")
async def send_sample(
    request: Request,
    engine: EngineDep,
    phone: str | None = None,
    message: str | None = None,
) -> JSONResponse:
    device = _device(request)
    phone = phone or device.get("phone")
    if not device.get("id") or not phone:
        return JSONResponse({"message": "No device available"}, status_code=503)
    sent = await engine.client.send_message(phone, device["id"], message=message or SAMPLE_MESSAGE)
    if sent is None:
        return JSONResponse({"message": "Failed to send sample message"}, status_code=502)
    return JSONResponse(sent)


def _device(request: Request) -> dict:
    return getattr(request.app.state, "device", None) or {}
