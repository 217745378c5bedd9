"""
Shared fakes: an in-memory ERC725Y store, a scripted HTTP session, and an
in-memory SQLite cache. Nothing here touches the network.
"""
import json
import threading
from typing import Dict, List, Tuple

import pytest
import requests
from web3 import Web3

from cache import ResolutionCache
from db import make_engine
from errors import RpcError
from uri_resolver import UriResolver

KECCAK_UTF8 = bytes.fromhex("6f357c6a")

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20
TOKEN = "0x" + "d4" * 20

CID = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"
CID2 = "QmT78zSuBmuS4z925WZfrqQ1qHaJ56DQaTfyMUF7F8ff5o"
GATEWAYS = ("https://gw-one.test/ipfs/", "https://gw-two.test/ipfs/")


def pointer_bytes(uri: str, body: bytes = b"", legacy: bool = True) -> bytes:
    digest = bytes(Web3.keccak(body))
    if legacy:
        return KECCAK_UTF8 + digest + uri.encode()
    return b"\x00\x00" + KECCAK_UTF8 + (32).to_bytes(2, "big") + digest + uri.encode()


def list_bytes(addresses: List[str]) -> bytes:
    return len(addresses).to_bytes(16, "big") + b"".join(bytes.fromhex(a[2:]) for a in addresses)


class FakeStorage:
    """Dict-backed stand-in for StorageClient that counts every call."""

    def __init__(self):
        self.data: Dict[Tuple[str, str], bytes] = {}
        self.interfaces: Dict[str, set] = {}
        self.balances: Dict[Tuple[str, str], int] = {}
        self.fail_reads: Dict[str, Exception] = {}
        self.fail_probes: Dict[str, Exception] = {}
        self.reads: List[Tuple[str, str]] = []
        self.probes: List[Tuple[str, str]] = []
        self.read_delay = None  # threading.Event to block reads on
        self._lock = threading.Lock()

    def set(self, address: str, key_id: str, value: bytes):
        self.data[(address.lower(), key_id)] = value

    def read_key(self, address, key_id):
        with self._lock:
            self.reads.append((address, key_id))
        if self.read_delay is not None:
            self.read_delay.wait(5)
        if address in self.fail_reads:
            raise self.fail_reads[address]
        return self.data.get((address.lower(), key_id), b"")

    def supports_interface(self, address, interface_id):
        with self._lock:
            self.probes.append((address, interface_id))
        if address in self.fail_probes:
            raise self.fail_probes[address]
        return interface_id in self.interfaces.get(address.lower(), set())

    def balance_of(self, asset, holder):
        if asset in self.fail_reads:
            raise self.fail_reads[asset]
        return self.balances.get((asset.lower(), holder.lower()), 0)

    def reads_for(self, address, key_id=None):
        return [r for r in self.reads if r[0] == address and (key_id is None or r[1] == key_id)]


class FakeResponse:
    def __init__(self, status_code: int, body: bytes = b"", headers=None):
        self.status_code = status_code
        self._body = body
        self.headers = headers or {}

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self._body), chunk_size):
            yield self._body[i:i + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeSession:
    """Scripted requests.Session: url -> (status, body) or an exception."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def get(self, url, timeout=None, stream=False):
        assert timeout is not None, "every fetch must carry a timeout"
        with self._lock:
            self.calls.append(url)
        route = self.routes.get(url)
        if route is None:
            raise requests.ConnectionError(f"no route to {url}")
        if isinstance(route, Exception):
            raise route
        status, body = route
        return FakeResponse(status, body)


def profile_json(**fields) -> bytes:
    return json.dumps({"LSP3Profile": fields}).encode()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def uri_resolver(session):
    return UriResolver(gateways=GATEWAYS, timeout=1.0, max_bytes=64 * 1024, session=session)


@pytest.fixture
def cache():
    return ResolutionCache(make_engine("sqlite://"), ttl_seconds=0)


@pytest.fixture
def rpc_down():
    return RpcError("connection refused")
