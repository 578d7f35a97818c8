from __future__ import annotations

from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Query

from . import schemas
from .core.config import settings
from .db import get_db, init_db
from .services.query_service import IndexerQueryService

app = FastAPI(title="Predictron Indexer API", version="0.1.0", debug=settings.debug)


@app.on_event("startup")
def on_startup() -> None:
    """Create indexer tables when the API boots."""

    init_db()


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness check consumed by infrastructure monitors."""

    return {"status": "ok"}


def _query_service(db=Depends(get_db)) -> IndexerQueryService:
    return IndexerQueryService(db)


@app.get("/chains/{chain_id}/rounds", response_model=schemas.RoundList, tags=["rounds"])
def list_rounds(
    chain_id: int,
    *,
    ended: Annotated[bool | None, Query(description="Only ended (true) or open (false) rounds")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
    service: IndexerQueryService = Depends(_query_service),
):
    """List rounds newest first."""

    result = service.list_rounds(chain_id, ended=ended, limit=limit, offset=offset)
    return schemas.RoundList(total=result.total, items=list(result.rounds))


@app.get("/chains/{chain_id}/rounds/{round_id}", response_model=schemas.Round, tags=["rounds"])
def get_round(chain_id: int, round_id: int, service: IndexerQueryService = Depends(_query_service)):
    round_ = service.get_round(chain_id, round_id)
    if not round_:
        raise HTTPException(status_code=404, detail="Round not found")
    return round_


@app.get("/chains/{chain_id}/users/{user}/stats", response_model=schemas.UserStats, tags=["users"])
def get_user_stats(chain_id: int, user: str, service: IndexerQueryService = Depends(_query_service)):
    stats = service.get_user_stats(chain_id, user)
    if not stats:
        raise HTTPException(status_code=404, detail="User stats not found")
    return stats


@app.get("/chains/{chain_id}/users/{user}/rounds", response_model=list[schemas.UserRound], tags=["users"])
def list_user_rounds(
    chain_id: int,
    user: str,
    limit: Annotated[int, Query(ge=1, le=500)] = 20,
    service: IndexerQueryService = Depends(_query_service),
):
    """Return a user's betting history, most recent round first."""

    return service.list_user_rounds(chain_id, user, limit=limit)


@app.get("/chains/{chain_id}/activity", response_model=list[schemas.UserRound], tags=["users"])
def recent_activity(
    chain_id: int,
    limit: Annotated[int, Query(ge=1, le=500)] = 20,
    service: IndexerQueryService = Depends(_query_service),
):
    return service.list_recent_activity(chain_id, limit=limit)


@app.get("/chains/{chain_id}/leaderboard", response_model=list[schemas.LeaderboardRow], tags=["stats"])
def leaderboard(
    chain_id: int,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
    service: IndexerQueryService = Depends(_query_service),
):
    """Users ranked by lifetime net P&L."""

    return service.leaderboard(chain_id, limit=limit)


@app.get("/chains/{chain_id}/ai-stats", response_model=schemas.AiStats, tags=["stats"])
def get_ai_stats(chain_id: int, service: IndexerQueryService = Depends(_query_service)):
    stats = service.get_ai_stats(chain_id)
    if not stats:
        raise HTTPException(status_code=404, detail="AI stats not found")
    return stats
