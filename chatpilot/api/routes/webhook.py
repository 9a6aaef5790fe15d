"""Wassenger webhook endpoint.

Acknowledges ``message:in:new`` events immediately and processes them in a
background task; any other event is accepted and ignored.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from loguru import logger

from chatpilot.api.routes.deps import EngineDep
from chatpilot.bus.events import InboundEvent

router = APIRouter()

ACCEPTED_EVENT = "message:in:new"


@router.post("/webhook")
async def webhook(request: Request, engine: EngineDep) -> JSONResponse:
    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict) or not body.get("event"):
        return _invalid()
    data = body.get("data")
    if not data or not isinstance(data, dict):
        return _invalid()
    if body["event"] != ACCEPTED_EVENT:
        return JSONResponse(
            {"message": f"Ignore webhook event: only {ACCEPTED_EVENT} is accepted"},
            status_code=202,
        )

    try:
        event = InboundEvent.from_webhook(body)
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning(f"Malformed webhook message payload: {e}")
        return _invalid()

    task = asyncio.create_task(engine.process_message(event))
    tasks: set[asyncio.Task] = request.app.state.tasks
    tasks.add(task)
    task.add_done_callback(lambda t: _on_done(t, tasks, event))
    return JSONResponse({"ok": True})


def _invalid() -> JSONResponse:
    return JSONResponse({"message": "Invalid payload body"}, status_code=400)


def _on_done(task: asyncio.Task, tasks: set[asyncio.Task], event: InboundEvent) -> None:
    tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.opt(exception=exc).error(
            f"Failed to process inbound message: {event.id} {event.sender_number} {event.body[:80]}"
        )
