# app/uri_resolver.py
"""
Fetch pointed-to content through IPFS HTTP gateways.

ipfs:// URIs (and bare CIDs) are tried against each configured gateway in
order; the first 200 wins. http(s) URIs are fetched directly. Bodies larger
than max_bytes are rejected while streaming.
"""
from __future__ import annotations

import logging
import re
import time
from typing import List, Optional, Sequence

import requests
from web3 import Web3

from config import HTTP_TIMEOUT, IPFS_GATEWAYS, MAX_CONTENT_BYTES, VERIFY_CONTENT_HASH
from errors import FetchError
from models import ContentPointer, HashAlgorithm

logger = logging.getLogger(__name__)

IPFS_SCHEME = "ipfs://"
_CID_RE = re.compile(r"^(Qm[1-9A-HJ-NP-Za-km-z]{44}|b[a-z2-7]{58,})(/.*)?$")
_CHUNK = 64 * 1024


def ipfs_path(uri: str) -> Optional[str]:
    """CID (plus any sub-path) for an ipfs:// URI or bare CID, else None."""
    if not uri:
        return None
    if uri.startswith(IPFS_SCHEME):
        path = uri[len(IPFS_SCHEME):].lstrip("/")
        return path or None
    if _CID_RE.match(uri):
        return uri
    return None


class UriResolver:
    def __init__(
        self,
        gateways: Sequence[str] = IPFS_GATEWAYS,
        timeout: float = HTTP_TIMEOUT,
        max_bytes: int = MAX_CONTENT_BYTES,
        verify_hash: bool = VERIFY_CONTENT_HASH,
        session: Optional[requests.Session] = None,
    ):
        if not gateways:
            raise ValueError("at least one gateway is required")
        self.gateways = tuple(g.rstrip("/") + "/" for g in gateways)
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.verify_hash = verify_hash
        self.session = session or requests.Session()

    def candidate_urls(self, uri: str) -> List[str]:
        path = ipfs_path(uri)
        if path is not None:
            return [f"{gw}{path}" for gw in self.gateways]
        if uri.startswith("http://") or uri.startswith("https://"):
            return [uri]
        raise FetchError(f"unsupported uri scheme: {uri[:32]}")

    def display_url(self, uri: Optional[str]) -> Optional[str]:
        """Browser-usable URL for an image reference, using the primary gateway."""
        if not uri or not isinstance(uri, str):
            return None
        if uri.startswith(("http://", "https://", "data:")):
            return uri
        path = ipfs_path(uri)
        if uri.startswith(IPFS_SCHEME) and (path is None or not _CID_RE.match(path)):
            logger.warning("Invalid IPFS hash in image url: %s", uri[:64])
            return None
        if path is not None:
            return f"{self.gateways[0]}{path}"
        return uri

    def _get(self, url: str) -> bytes:
        # requests only bounds each socket read; this bounds the whole download
        deadline = time.monotonic() + self.timeout
        try:
            with self.session.get(url, timeout=self.timeout, stream=True) as r:
                if r.status_code != 200:
                    raise FetchError(f"HTTP {r.status_code}")

                declared = r.headers.get("Content-Length")
                if declared and declared.isdigit() and int(declared) > self.max_bytes:
                    raise FetchError(f"content length {declared} exceeds {self.max_bytes}")

                buf = bytearray()
                for chunk in r.iter_content(chunk_size=_CHUNK):
                    buf.extend(chunk)
                    if len(buf) > self.max_bytes:
                        raise FetchError(f"body exceeds {self.max_bytes} bytes")
                    if time.monotonic() > deadline:
                        raise FetchError(f"timed out after {self.timeout}s")
                return bytes(buf)
        except requests.RequestException as e:
            raise FetchError(str(e)) from e

    def _verify(self, pointer: ContentPointer, body: bytes):
        if not self.verify_hash or pointer.algorithm is HashAlgorithm.NONE:
            return
        digest = bytes(Web3.keccak(body))
        if digest != pointer.expected_hash:
            raise FetchError(
                f"hash mismatch: expected 0x{pointer.expected_hash.hex()}, got 0x{digest.hex()}"
            )

    def fetch(self, pointer: ContentPointer) -> bytes:
        """Raises FetchError once every candidate URL has failed."""
        urls = self.candidate_urls(pointer.uri)
        errors = []
        for url in urls:
            try:
                body = self._get(url)
                self._verify(pointer, body)
                return body
            except FetchError as e:
                logger.warning("Gateway fetch failed for %s: %s", url, e)
                errors.append(f"{url}: {e}")

        raise FetchError(f"all {len(urls)} sources failed for {pointer.uri}: " + "; ".join(errors))
