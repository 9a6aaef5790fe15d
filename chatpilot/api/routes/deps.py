"""Shared route dependencies."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from chatpilot.agent.loop import AgentLoop


def get_engine(request: Request) -> AgentLoop:
    return request.app.state.engine


EngineDep = Annotated[AgentLoop, Depends(get_engine)]
