# app/capability.py
"""
Asset classification without a type registry.

No single signal is reliable: older assets don't answer ERC165 probes and the
LSP4TokenType tag is sometimes missing or wrong. Detection runs an ordered
list of strategies; the first one that returns a Capability wins.

  1. LSP8 interface probe            -> non-fungible
  2. LSP7 interface probe            -> fungible, corrected by the type tag
  3. LSP4TokenType tag on its own    -> 0 token, 1 NFT-like token, 2 collection
  4. nothing answered                -> unknown
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Optional, Sequence

from chain.keys import (
    LSP7_INTERFACE_IDS,
    LSP8_INTERFACE_IDS,
    TOKEN_TYPE_COLLECTION,
    TOKEN_TYPE_NFT,
    TOKEN_TYPE_TOKEN,
)
from errors import DecodeError, RpcError, UnsupportedContractError
from models import AssetKind
from schema import RecordKind, decode

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass(frozen=True)
class Capability:
    kind: AssetKind
    nft_like: bool = False
    source: str = "none"
    # a node failure hid a signal; the answer must not be cached
    provisional: bool = False


UNKNOWN = Capability(AssetKind.UNKNOWN)


class ProbeContext:
    """Signals for one address, each read at most once."""

    def __init__(self, storage, address: str, type_tag=_UNSET):
        self.storage = storage
        self.address = address
        self._type_tag = type_tag
        # node failures, kept apart from reverts (a revert is a plain "no")
        self.probe_error: Optional[RpcError] = None
        self.tag_error: Optional[RpcError] = None
        self.interface_confirmed = False

    def supports_any(self, interface_ids: Iterable[str]) -> bool:
        for iid in interface_ids:
            try:
                if self.storage.supports_interface(self.address, iid):
                    self.interface_confirmed = True
                    return True
            except UnsupportedContractError as e:
                logger.info("Interface %s not supported by %s: %s", iid, self.address, e)
            except RpcError as e:
                logger.warning("Interface %s check failed for %s: %s", iid, self.address, e)
                self.probe_error = e
        return False

    @property
    def type_tag(self) -> Optional[int]:
        if self._type_tag is _UNSET:
            self._type_tag = None
            try:
                raw = self.storage.read_key(self.address, "asset_type")
                if raw:
                    self._type_tag = decode(RecordKind.UINT, raw)
            except (UnsupportedContractError, DecodeError) as e:
                logger.warning("LSP4TokenType unreadable for %s: %s", self.address, e)
            except RpcError as e:
                logger.warning("LSP4TokenType read failed for %s: %s", self.address, e)
                self.tag_error = e
        return self._type_tag

    @property
    def degraded(self) -> bool:
        """True when a node failure may have changed the answer."""
        if self.tag_error is not None:
            return True
        return self.probe_error is not None and not self.interface_confirmed


Strategy = Callable[[ProbeContext], Optional[Capability]]


def probe_non_fungible(ctx: ProbeContext) -> Optional[Capability]:
    if ctx.supports_any(LSP8_INTERFACE_IDS):
        return Capability(AssetKind.NON_FUNGIBLE, True, "lsp8-interface")
    return None


def probe_fungible(ctx: ProbeContext) -> Optional[Capability]:
    if not ctx.supports_any(LSP7_INTERFACE_IDS):
        return None
    tag = ctx.type_tag
    if tag == TOKEN_TYPE_COLLECTION:
        return Capability(AssetKind.NON_FUNGIBLE, True, "lsp7-interface+type-tag")
    return Capability(AssetKind.FUNGIBLE, tag == TOKEN_TYPE_NFT, "lsp7-interface")


def probe_type_tag(ctx: ProbeContext) -> Optional[Capability]:
    tag = ctx.type_tag
    if tag == TOKEN_TYPE_TOKEN:
        return Capability(AssetKind.FUNGIBLE, False, "type-tag")
    if tag == TOKEN_TYPE_NFT:
        return Capability(AssetKind.FUNGIBLE, True, "type-tag")
    if tag == TOKEN_TYPE_COLLECTION:
        return Capability(AssetKind.NON_FUNGIBLE, True, "type-tag")
    return None


DEFAULT_STRATEGIES: Sequence[Strategy] = (
    probe_non_fungible,
    probe_fungible,
    probe_type_tag,
)


class CapabilityDetector:
    def __init__(self, storage, strategies: Sequence[Strategy] = DEFAULT_STRATEGIES):
        self.storage = storage
        self.strategies = tuple(strategies)

    def detect(self, address: str, type_tag=_UNSET) -> Capability:
        """Classify address; UNKNOWN when no signal answers.

        Reverts count as "not supported". Node failures fall through to the
        next signal like a "no", but the result comes back provisional.

        Pass type_tag when the caller already read LSP4TokenType (None if unset).
        """
        ctx = ProbeContext(self.storage, address, type_tag)
        found = UNKNOWN
        for strategy in self.strategies:
            answer = strategy(ctx)
            if answer is not None:
                found = answer
                break
        if ctx.degraded:
            return replace(found, provisional=True)
        return found
