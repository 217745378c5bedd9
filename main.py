# app/main.py
import logging
from contextlib import asynccontextmanager
from typing import List, Optional, Union

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

import config
from cache import NAMESPACES
from chain.poll_reader import PollReader, get_poll_reader
from errors import RpcError
from leaderboard import build_leaderboard, leaderboard_from_chain, profile_lookup
from metadata_views import router as metadata_router
from resolver import MetadataResolver, get_resolver

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app):
    config.log_summary()
    yield


app = FastAPI(title="Profile Resolver API", version="0.1.0", lifespan=lifespan)
app.include_router(metadata_router)


@app.get("/healthz")
def healthz():
    return {"ok": "true"}


class ScoreIn(BaseModel):
    address: str
    score: Union[int, float] = Field(..., ge=0)


class LeaderboardRequest(BaseModel):
    entries: List[ScoreIn] = Field(default_factory=list)


@app.post("/api/leaderboard")
def post_leaderboard(req: LeaderboardRequest, resolver: MetadataResolver = Depends(get_resolver)):
    try:
        rows = build_leaderboard(
            [{"address": e.address, "score": e.score} for e in req.entries],
            profile_lookup(resolver),
        )
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"rows": rows}


@app.get("/api/leaderboard")
def get_leaderboard(
    resolver: MetadataResolver = Depends(get_resolver),
    poll_reader: PollReader = Depends(get_poll_reader),
):
    try:
        rows = leaderboard_from_chain(poll_reader, resolver)
    except RpcError as e:
        logger.warning("Leaderboard read failed: %s", e)
        raise HTTPException(503, f"RPC unavailable: {e}")
    return {"rows": rows}


@app.delete("/api/cache")
def clear_cache(namespace: Optional[str] = None, resolver: MetadataResolver = Depends(get_resolver)):
    if namespace is not None and namespace not in NAMESPACES:
        raise HTTPException(400, f"Unknown namespace: {namespace}")
    removed = resolver.clear_cache(namespace)
    return {"cleared": removed, "namespace": namespace}
