# app/chain/abi.py
"""
Contract ABIs used by the resolver.

If ABI_DIR points at a Foundry/Hardhat build output the artifact ABI is used;
otherwise the minimal inline fragments below cover every call we make.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from config import ABI_DIR

logger = logging.getLogger(__name__)


def load_abi(contract_name: str, fallback: Optional[List[Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
    """
    Load ABI for a contract from build artifacts.

    Args:
        contract_name: e.g. "LuksoPoll"
        fallback: ABI returned when no artifact is available

    Raises:
        FileNotFoundError if there is neither an artifact nor a fallback.
    """
    if ABI_DIR:
        artifact = Path(ABI_DIR) / f"{contract_name}.sol" / f"{contract_name}.json"
        if artifact.exists():
            with artifact.open() as f:
                data = json.load(f)
            abi = data.get("abi")
            if abi:
                return abi
            logger.warning("No 'abi' key in %s, using inline ABI", artifact)

    if fallback is None:
        raise FileNotFoundError(f"ABI artifact not found for {contract_name}")
    return fallback


ERC725Y_ABI = [
    {
        "type": "function",
        "name": "getData",
        "inputs": [{"name": "dataKey", "type": "bytes32"}],
        "outputs": [{"name": "dataValue", "type": "bytes"}],
        "stateMutability": "view",
    },
]

ERC165_ABI = [
    {
        "type": "function",
        "name": "supportsInterface",
        "inputs": [{"name": "interfaceId", "type": "bytes4"}],
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "view",
    },
]

LSP7_BALANCE_ABI = [
    {
        "type": "function",
        "name": "balanceOf",
        "inputs": [{"name": "tokenOwner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
    },
]

POLL_ABI = load_abi("LuksoPoll", [
    {
        "type": "function",
        "name": "getAllRankedUsers",
        "inputs": [],
        "outputs": [{"name": "", "type": "address[]"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "getUserPoints",
        "inputs": [{"name": "_user", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
    },
])

ASSET_ABI = ERC725Y_ABI + ERC165_ABI + LSP7_BALANCE_ABI
