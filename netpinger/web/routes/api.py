"""Status API routes."""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

router = APIRouter()


class HostStatus(BaseModel):
    address: str
    state: str
    streak: int
    last_outcome: Optional[str] = None


class GroupStatus(BaseModel):
    running: bool
    identifier: int
    sequence: int
    rounds_completed: int
    verdict: str
    up_count: int
    total_hosts: int
    alive_threshold: int
    dead_threshold: int
    hosts: List[HostStatus]


@router.get("/status", response_model=GroupStatus)
async def get_status(request: Request):
    """Current group verdict and per-host states."""
    engine = request.app.state.engine
    if engine is None:
        raise HTTPException(status_code=503, detail="Engine not available")
    return engine.snapshot()


@router.get("/hosts/{address}", response_model=HostStatus)
async def get_host(address: str, request: Request):
    """State of a single monitored host."""
    engine = request.app.state.engine
    if engine is None:
        raise HTTPException(status_code=503, detail="Engine not available")

    host = engine.hosts.get(address)
    if host is None:
        raise HTTPException(status_code=404, detail=f"Host {address} is not monitored")
    return host.snapshot()
