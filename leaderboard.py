# app/leaderboard.py
"""
Ranked leaderboard with profiles attached.

Ranks come from scores alone (stable sort, ties keep input order) before any
profile is fetched; profiles are then resolved with bounded fan-out and
attached by position, so completion order never affects the output.
"""
from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, List, Optional

from config import LEADERBOARD_MAX_IN_FLIGHT
from models import LeaderboardRow, ProfileView, ScoreEntry, canonical_address

logger = logging.getLogger(__name__)

ProfileLookup = Callable[[str], Optional[ProfileView]]


def _coerce(entry: Any) -> ScoreEntry:
    if isinstance(entry, ScoreEntry):
        address, score = entry.address, entry.score
    elif isinstance(entry, dict):
        address, score = entry["address"], entry["score"]
    else:
        address, score = entry
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ValueError(f"score for {address} is not a number: {score!r}")
    if isinstance(score, float) and not math.isfinite(score):
        raise ValueError(f"score for {address} is not finite: {score!r}")
    return ScoreEntry(canonical_address(address), score)


def rank_entries(entries: Iterable[Any]) -> List[ScoreEntry]:
    """Score descending; equal scores keep their input order."""
    indexed = list(enumerate(_coerce(e) for e in entries))
    indexed.sort(key=lambda pair: (-pair[1].score, pair[0]))
    return [entry for _, entry in indexed]


def build_leaderboard(
    entries: Iterable[Any],
    lookup: ProfileLookup,
    max_in_flight: int = LEADERBOARD_MAX_IN_FLIGHT,
) -> List[LeaderboardRow]:
    ranked = rank_entries(entries)
    if not ranked:
        return []

    def _profile(address: str) -> Optional[ProfileView]:
        try:
            return lookup(address)
        except Exception as e:
            logger.warning("[Leaderboard] Profile lookup failed for %s: %s", address, e)
            return None

    with ThreadPoolExecutor(max_workers=max(1, min(max_in_flight, len(ranked)))) as pool:
        profiles = list(pool.map(_profile, [e.address for e in ranked]))

    return [
        LeaderboardRow(rank=i, address=entry.address, score=entry.score, profile=profile)
        for i, (entry, profile) in enumerate(zip(ranked, profiles), start=1)
    ]


def profile_lookup(resolver) -> ProfileLookup:
    """Lookup returning a view only for addresses that actually have a profile."""

    def _lookup(address: str) -> Optional[ProfileView]:
        record = resolver.resolve_profile(address)
        if record is None:
            return None
        return resolver.profile_view(address, record)

    return _lookup


def leaderboard_from_chain(poll_reader, resolver, max_in_flight: int = LEADERBOARD_MAX_IN_FLIGHT) -> List[LeaderboardRow]:
    scores = poll_reader.ranked_scores(max_workers=max_in_flight)
    logger.info("[Leaderboard] %d ranked users", len(scores))
    return build_leaderboard(scores, profile_lookup(resolver), max_in_flight=max_in_flight)
