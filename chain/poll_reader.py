# app/chain/poll_reader.py
"""
Read-only queries against the poll contract: ranked users and their points.
Writes (create poll, vote, follow) go straight from the wallet and never pass
through here.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from web3 import Web3

from config import POLL_CONTRACT_ADDRESS
from errors import RpcError
from models import ScoreEntry
from .abi import POLL_ABI
from .storage_client import get_w3

logger = logging.getLogger(__name__)


class PollReader:
    def __init__(self, w3: Optional[Web3] = None, address: str = POLL_CONTRACT_ADDRESS):
        if not address:
            raise ValueError("POLL_CONTRACT_ADDRESS not set")
        self.w3 = w3 or get_w3()
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=POLL_ABI,
        )

    def ranked_users(self) -> List[str]:
        try:
            users = self.contract.functions.getAllRankedUsers().call()
        except Exception as e:
            raise RpcError(f"getAllRankedUsers failed: {e}") from e
        return [u.lower() for u in users]

    def user_points(self, user: str) -> int:
        """Points for one user; 0 when the read fails."""
        try:
            return int(self.contract.functions.getUserPoints(Web3.to_checksum_address(user)).call())
        except Exception as e:
            logger.warning("Failed to read points for %s: %s", user, e)
            return 0

    def ranked_scores(self, max_workers: int = 8) -> List[ScoreEntry]:
        users = self.ranked_users()
        if not users:
            return []
        with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(users)))) as pool:
            points = list(pool.map(self.user_points, users))
        return [ScoreEntry(u, p) for u, p in zip(users, points)]


_poll_reader = None


def get_poll_reader() -> PollReader:
    global _poll_reader
    if _poll_reader is None:
        _poll_reader = PollReader()
    return _poll_reader
