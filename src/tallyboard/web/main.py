"""
FastAPI application for Tallyboard.

Endpoints:
    POST /webhook          Inbound chat events (one result per event)
    GET  /api/scoreboard   Per-inning scoreboard for every match
    GET  /api/schedule     Matches with teams, status and bracket edges
    GET  /api/teams        Registered teams and the matches they appear in
    GET  /api/history      Audit log of applied commands
    GET  /health           Liveness check

The webhook answers each event with the CommandResult the transport should
relay, or {"status": "duplicate"} for an event that was already applied.
Scoreboard and schedule reads never take the tournament lock.
"""

import logging
import threading
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ValidationError

from tallyboard import __version__
from tallyboard.config import Settings, get_settings
from tallyboard.services.scoring import ScoringService
from tallyboard.web.signature import SIGNATURE_HEADER, verify_signature

logger = logging.getLogger(__name__)

app = FastAPI(title="Tallyboard", version=__version__)


class WebhookEvent(BaseModel):
    """One chat message delivered by the transport."""

    event_id: Optional[str] = None
    text: str
    sender_id: Optional[str] = None


class WebhookPayload(BaseModel):
    events: List[WebhookEvent] = []


_service: Optional[ScoringService] = None
_service_guard = threading.Lock()


def get_service() -> ScoringService:
    """Return the process-wide scoring service, creating tables on first use."""
    global _service
    if _service is None:
        # Concurrent first requests must share one service.
        with _service_guard:
            if _service is None:
                from tallyboard.db import Base, get_engine

                settings = get_settings()
                engine = get_engine(settings.database_url)
                Base.metadata.create_all(engine)
                _service = ScoringService.from_settings(settings=settings, engine=engine)
    return _service


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}


@app.post("/webhook")
async def webhook(
    request: Request,
    service: ScoringService = Depends(get_service),
    settings: Settings = Depends(get_settings),
):
    body = await request.body()

    if not verify_signature(body, request.headers.get(SIGNATURE_HEADER), settings.channel_secret):
        logger.warning("Rejected webhook delivery with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = WebhookPayload.model_validate_json(body or b"{}")
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors()) from exc

    results = []
    for event in payload.events:
        # handle_event may block on the tournament lock; keep it off the event loop.
        result = await run_in_threadpool(
            service.handle_event, event.event_id, event.text, event.sender_id
        )
        if result is None:
            results.append({"event_id": event.event_id, "status": "duplicate"})
            continue
        entry = result.to_dict()
        entry["event_id"] = event.event_id
        results.append(entry)

    return {"status": "ok", "results": results}


@app.get("/api/scoreboard")
async def api_scoreboard(
    status: Optional[List[str]] = Query(None),
    service: ScoringService = Depends(get_service),
):
    return {"games": service.scoreboard(status)}


@app.get("/api/schedule")
async def api_schedule(service: ScoringService = Depends(get_service)):
    return {"schedule": service.schedule()}


@app.get("/api/teams")
async def api_teams(service: ScoringService = Depends(get_service)):
    return {"teams": service.teams()}


@app.get("/api/history")
async def api_history(
    court: Optional[str] = None,
    game_number: Optional[int] = None,
    service: ScoringService = Depends(get_service),
):
    return {"history": service.history(court=court, game_number=game_number)}


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format=settings.log_format)
    uvicorn.run("tallyboard.web.main:app", host=settings.api_host, port=settings.api_port)
