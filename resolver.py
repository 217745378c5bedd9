# app/resolver.py
"""
Profile and asset resolution for one address.

Pattern: cache -> single-flight -> chain read -> decode -> gateway fetch ->
parse -> cache write. "No usable data" (decode, fetch or parse failure, unset
key) is cached as confirmed-absent; transport failures are raised and not
cached so a later call can succeed.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from cache import ASSET_NAMESPACE, PROFILE_NAMESPACE, ResolutionCache
from capability import CapabilityDetector
from chain.storage_client import StorageClient
from config import LEADERBOARD_MAX_IN_FLIGHT, MAX_RECEIVED_ASSETS
from errors import DecodeError, FetchError, ParseError, RpcError, UnsupportedContractError
from models import (
    AssetDescriptor,
    AssetKind,
    CacheEntry,
    ImageRef,
    ProfileRecord,
    ProfileView,
    canonical_address,
    parse_asset_document,
    parse_profile_document,
    short_address,
)
from schema import RecordKind, decode
from singleflight import SingleFlight
from uri_resolver import UriResolver

logger = logging.getLogger(__name__)

NO_DATA = (DecodeError, FetchError, ParseError, UnsupportedContractError)


@dataclass(frozen=True)
class Uncached:
    """A loaded payload that is served but not written to the cache."""

    payload: Dict[str, Any]


UNKNOWN_TOKEN_NAME = "Unknown Token"
UNKNOWN_TOKEN_SYMBOL = "???"


def _first_url(refs: List[ImageRef]) -> Optional[str]:
    if refs and refs[0].url:
        return refs[0].url
    return None


class MetadataResolver:
    def __init__(
        self,
        storage: Optional[StorageClient] = None,
        uri_resolver: Optional[UriResolver] = None,
        cache: Optional[ResolutionCache] = None,
        detector: Optional[CapabilityDetector] = None,
        max_in_flight: int = LEADERBOARD_MAX_IN_FLIGHT,
    ):
        self.storage = storage or StorageClient()
        self.uri_resolver = uri_resolver or UriResolver()
        self.cache = cache or ResolutionCache()
        self.detector = detector or CapabilityDetector(self.storage)
        self.max_in_flight = max_in_flight
        self._flights = SingleFlight()

    # ────────────────────────────────────────────────────────────
    # Cache / single-flight discipline
    # ────────────────────────────────────────────────────────────

    def _resolve(
        self,
        namespace: str,
        address: str,
        refresh: bool,
        load: Callable[[str], Union[Dict[str, Any], Uncached, None]],
    ) -> CacheEntry:
        addr = canonical_address(address)

        if not refresh:
            entry = self.cache.get(namespace, addr)
            if not entry.is_unknown:
                return entry

        def work() -> CacheEntry:
            if not refresh:
                # another flight may have finished between our read and now
                cached = self.cache.get(namespace, addr)
                if not cached.is_unknown:
                    return cached
            try:
                payload = load(addr)
            except NO_DATA as e:
                logger.info("No %s data for %s: %s", namespace, addr, e)
                payload = None
            except RpcError:
                # transient, leave the cache alone
                raise

            if isinstance(payload, Uncached):
                logger.info("Serving uncached %s result for %s", namespace, addr)
                return CacheEntry.present(payload.payload)

            result = CacheEntry.present(payload) if payload is not None else CacheEntry.absent()
            self.cache.put(namespace, addr, result)
            return result

        return self._flights.do((namespace, addr), work)

    def clear_cache(self, namespace: Optional[str] = None) -> int:
        return self.cache.clear(namespace)

    # ────────────────────────────────────────────────────────────
    # Profiles
    # ────────────────────────────────────────────────────────────

    def _load_profile(self, address: str) -> Optional[Dict[str, Any]]:
        raw = self.storage.read_key(address, "profile")
        if not raw:
            return None
        pointer = decode(RecordKind.POINTER, raw)
        body = self.uri_resolver.fetch(pointer)
        return parse_profile_document(body).to_payload()

    def resolve_profile(self, address: str, refresh: bool = False) -> Optional[ProfileRecord]:
        """ProfileRecord, or None when the address has no usable profile.

        Raises RpcError when the node can't be reached.
        """
        entry = self._resolve(PROFILE_NAMESPACE, address, refresh, self._load_profile)
        if entry.is_present:
            return ProfileRecord.model_validate(entry.value)
        return None

    def profile_view(self, address: str, record: Optional[ProfileRecord]) -> ProfileView:
        addr = canonical_address(address)
        if record is None:
            return ProfileView(address=addr, display_name=short_address(addr), available=False)

        image = _first_url(record.avatar) or _first_url(record.profile_image)
        return ProfileView(
            address=addr,
            display_name=record.name or short_address(addr),
            image_url=self.uri_resolver.display_url(image),
            background_image_url=self.uri_resolver.display_url(_first_url(record.background_image)),
            profile=record,
        )

    def resolve_profile_view(self, address: str, refresh: bool = False) -> ProfileView:
        return self.profile_view(address, self.resolve_profile(address, refresh=refresh))

    # ────────────────────────────────────────────────────────────
    # Assets
    # ────────────────────────────────────────────────────────────

    def _read_optional(self, address: str, key_id: str, kind: RecordKind):
        try:
            raw = self.storage.read_key(address, key_id)
            return decode(kind, raw) if raw else None
        except (DecodeError, UnsupportedContractError) as e:
            logger.warning("%s unreadable for %s: %s", key_id, address, e)
            return None

    def _asset_icon(self, address: str, prefer_image: bool) -> Optional[str]:
        try:
            raw = self.storage.read_key(address, "asset_metadata")
            if not raw:
                return None
            body = self.uri_resolver.fetch(decode(RecordKind.POINTER, raw))
            metadata = parse_asset_document(body)
        except NO_DATA as e:
            logger.warning("Could not process metadata for %s: %s", address, e)
            return None

        icon = _first_url(metadata.icon)
        image = _first_url(metadata.images)
        chosen = (image or icon) if prefer_image else (icon or image)
        return self.uri_resolver.display_url(chosen)

    def _load_asset(self, address: str) -> Union[Dict[str, Any], Uncached, None]:
        name = self._read_optional(address, "asset_name", RecordKind.STRING)
        symbol = self._read_optional(address, "asset_symbol", RecordKind.STRING)
        type_tag = self._read_optional(address, "asset_type", RecordKind.UINT)

        capability = self.detector.detect(address, type_tag=type_tag)
        if capability.kind is AssetKind.UNKNOWN and name is None and symbol is None:
            if capability.provisional:
                raise RpcError(f"interface probes for {address} failed")
            return None

        prefer_image = capability.nft_like or capability.kind is AssetKind.NON_FUNGIBLE
        payload = AssetDescriptor(
            address=address,
            name=name or UNKNOWN_TOKEN_NAME,
            symbol=symbol or UNKNOWN_TOKEN_SYMBOL,
            kind=capability.kind,
            nft_like=capability.nft_like,
            icon_url=self._asset_icon(address, prefer_image),
        ).to_payload()
        return Uncached(payload) if capability.provisional else payload

    def resolve_asset(self, address: str, refresh: bool = False) -> Optional[AssetDescriptor]:
        """AssetDescriptor without balance, or None when the address is not a readable asset."""
        entry = self._resolve(ASSET_NAMESPACE, address, refresh, self._load_asset)
        if entry.is_present:
            return AssetDescriptor.model_validate(entry.value)
        return None

    def get_balance(self, asset: str, holder: str) -> Optional[str]:
        """Live balance as a decimal string; never cached."""
        try:
            return str(self.storage.balance_of(canonical_address(asset), canonical_address(holder)))
        except UnsupportedContractError as e:
            logger.warning("balanceOf unsupported: %s", e)
            return None

    def resolve_received_assets(self, address: str) -> List[AssetDescriptor]:
        """Assets listed in LSP5ReceivedAssets[]; unreadable ones are skipped."""
        addr = canonical_address(address)
        try:
            raw = self.storage.read_key(addr, "received_assets")
            assets = decode(RecordKind.ADDRESS_LIST, raw) if raw else []
        except (DecodeError, UnsupportedContractError) as e:
            logger.warning("Could not read received assets for %s: %s", addr, e)
            return []

        if len(assets) > MAX_RECEIVED_ASSETS:
            logger.info("%s lists %d assets, resolving the first %d", addr, len(assets), MAX_RECEIVED_ASSETS)
            assets = assets[:MAX_RECEIVED_ASSETS]
        if not assets:
            return []

        def _one(asset: str) -> Optional[AssetDescriptor]:
            try:
                return self.resolve_asset(asset)
            except RpcError as e:
                logger.warning("Skipping asset %s: %s", asset, e)
                return None

        with ThreadPoolExecutor(max_workers=min(self.max_in_flight, len(assets))) as pool:
            resolved = list(pool.map(_one, assets))
        return [a for a in resolved if a is not None]


_resolver = None


def get_resolver() -> MetadataResolver:
    global _resolver
    if _resolver is None:
        _resolver = MetadataResolver()
    return _resolver
