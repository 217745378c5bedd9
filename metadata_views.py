# app/metadata_views.py
"""
Read-only endpoints for profile and asset metadata.

Lookups never return raw errors: the caller gets either the resolved record
or an "available: false" sentinel. Only node connectivity problems surface,
as 503, so the UI can retry.
"""
from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from errors import RpcError
from models import canonical_address, short_address
from resolver import MetadataResolver, get_resolver

logger = logging.getLogger(__name__)

router = APIRouter(tags=["metadata"])


def _address(value: str) -> str:
    try:
        return canonical_address(value)
    except ValueError:
        raise HTTPException(400, f"Invalid address: {value}")


@router.get("/api/profiles/{address}")
def get_profile(address: str, refresh: bool = False, resolver: MetadataResolver = Depends(get_resolver)):
    addr = _address(address)
    try:
        return resolver.resolve_profile_view(addr, refresh=refresh)
    except RpcError as e:
        logger.warning("get_profile(%s) failed: %s", addr, e)
        raise HTTPException(503, f"RPC unavailable: {e}")


@router.get("/api/profiles/{address}/assets")
def get_received_assets(address: str, resolver: MetadataResolver = Depends(get_resolver)):
    addr = _address(address)
    try:
        assets = resolver.resolve_received_assets(addr)
    except RpcError as e:
        logger.warning("get_received_assets(%s) failed: %s", addr, e)
        raise HTTPException(503, f"RPC unavailable: {e}")
    return {"address": addr, "assets": assets}


@router.get("/api/assets/{address}")
def get_asset(address: str, refresh: bool = False, resolver: MetadataResolver = Depends(get_resolver)) -> Dict[str, Any]:
    addr = _address(address)
    try:
        asset = resolver.resolve_asset(addr, refresh=refresh)
    except RpcError as e:
        logger.warning("get_asset(%s) failed: %s", addr, e)
        raise HTTPException(503, f"RPC unavailable: {e}")

    if asset is None:
        return {"address": addr, "available": False, "display_name": short_address(addr)}
    return {"available": True, **asset.model_dump(mode="json")}


@router.get("/api/assets/{address}/balance")
def get_asset_balance(address: str, holder: str, resolver: MetadataResolver = Depends(get_resolver)):
    addr = _address(address)
    owner = _address(holder)
    try:
        balance = resolver.get_balance(addr, owner)
    except RpcError as e:
        logger.warning("get_asset_balance(%s, %s) failed: %s", addr, owner, e)
        raise HTTPException(503, f"RPC unavailable: {e}")
    return {"address": addr, "holder": owner, "balance": balance}
