"""
Admin API endpoints - Session inspection, admin-triggered turns, prompt reload,
business statistics and customer memory. Guarded by the admin bearer token.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from ..container import Container
from ..core.errors import UnknownSession
from ..models.session import SessionSummary
from ..utils.auth import require_admin
from .deps import get_container

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


class AdminMessage(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)


def _session_or_404(container: Container, session_id: str):
    try:
        return container.registry.require(session_id)
    except UnknownSession:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {session_id} not found"
        )


@router.get("/sessions")
async def list_sessions(container: Container = Depends(get_container)) -> List[Dict[str, Any]]:
    """All known sessions, most recently active first."""
    sessions = sorted(container.registry.all(), key=lambda s: s.last_active_at, reverse=True)
    return [
        SessionSummary.from_session(s).model_dump(mode="json", by_alias=True)
        for s in sessions
    ]


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, container: Container = Depends(get_container)) -> Dict[str, Any]:
    """Full message log of one session."""
    session = _session_or_404(container, session_id)
    return session.model_dump(mode="json", exclude_none=True)


@router.post("/sessions/{session_id}/messages")
async def send_admin_message(
    session_id: str,
    body: AdminMessage,
    container: Container = Depends(get_container)
) -> Dict[str, Any]:
    """
    Run a turn on an existing session as the owner and wait for the reply.
    """
    _session_or_404(container, session_id)
    logger.info(f"Admin message for session {session_id}")
    reply = await container.gateway.inject_admin_message(session_id, body.message)
    return {"session_id": session_id, "reply": reply}


@router.post("/reload-prompt")
async def reload_prompt(container: Container = Depends(get_container)) -> Dict[str, Any]:
    """Re-read business.json, SOUL.md, AGENTS.md and skills.json."""
    prompt = await container.orchestrator.reload_prompt()
    return {
        "status": "reloaded",
        "business": container.config.profile.name,
        "prompt_length": len(prompt),
    }


@router.get("/stats")
async def get_stats(container: Container = Depends(get_container)) -> Dict[str, Any]:
    stats = await container.ledger.get_stats()
    provider = container.orchestrator.llm_provider
    return {
        **stats,
        "active_sessions": len(container.registry),
        "observers": container.gateway.observer_count,
        "llm_usage": dict(provider.total_usage) if provider else {},
    }


@router.get("/orders")
async def recent_orders(
    limit: int = Query(10, ge=1, le=100),
    container: Container = Depends(get_container)
) -> List[Dict[str, Any]]:
    return await container.ledger.recent_orders(limit)


@router.get("/bookings")
async def recent_bookings(
    limit: int = Query(10, ge=1, le=100),
    container: Container = Depends(get_container)
) -> List[Dict[str, Any]]:
    return await container.ledger.recent_bookings(limit)


@router.get("/customers")
async def list_customers(container: Container = Depends(get_container)) -> List[Dict[str, Any]]:
    """Remembered customers, most recently seen first."""
    customers = await container.memory.all_customers()
    return sorted(customers, key=lambda c: c.get("last_seen") or "", reverse=True)


@router.delete("/customers/{customer_id}")
async def forget_customer(customer_id: str, container: Container = Depends(get_container)) -> Dict[str, Any]:
    """Delete everything remembered about one customer."""
    if not await container.memory.forget_customer(customer_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Customer {customer_id} not found"
        )
    logger.info("Admin deleted a customer record")
    return {"status": "deleted", "customer_id": customer_id}
