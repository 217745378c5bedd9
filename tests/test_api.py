import pytest
from fastapi.testclient import TestClient

from chain.poll_reader import get_poll_reader
from conftest import ALICE, BOB, CID, CID2, GATEWAYS, TOKEN, pointer_bytes, profile_json
from errors import RpcError
from main import app
from models import ScoreEntry
from resolver import MetadataResolver, get_resolver

client = TestClient(app)

BODY = profile_json(name="alice", profileImage=[{"url": f"ipfs://{CID2}"}])


@pytest.fixture(autouse=True)
def resolver(storage, uri_resolver, cache, session):
    storage.set(ALICE, "profile", pointer_bytes(f"ipfs://{CID}", BODY))
    session.routes[GATEWAYS[0] + CID] = (200, BODY)
    r = MetadataResolver(storage=storage, uri_resolver=uri_resolver, cache=cache, max_in_flight=2)
    app.dependency_overrides[get_resolver] = lambda: r
    yield r
    app.dependency_overrides.clear()


class FakePoll:
    def __init__(self, scores=None, error=None):
        self.scores = scores or []
        self.error = error

    def ranked_scores(self, max_workers=8):
        if self.error:
            raise self.error
        return self.scores


def test_healthz():
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json()["ok"] == "true"


def test_get_profile():
    r = client.get(f"/api/profiles/{ALICE}")
    assert r.status_code == 200
    j = r.json()
    assert j["available"] is True
    assert j["display_name"] == "alice"
    assert j["image_url"] == GATEWAYS[0] + CID2
    assert j["profile"]["name"] == "alice"


def test_get_missing_profile():
    r = client.get(f"/api/profiles/{BOB}")
    assert r.status_code == 200
    assert r.json()["available"] is False
    assert r.json()["display_name"] == "0xb2b2...b2b2"


def test_invalid_address():
    r = client.get("/api/profiles/not-an-address")
    assert r.status_code == 400


def test_rpc_down_is_503(storage):
    storage.fail_reads[BOB] = RpcError("refused")
    r = client.get(f"/api/profiles/{BOB}")
    assert r.status_code == 503


def test_refresh_refetches(session):
    client.get(f"/api/profiles/{ALICE}")
    client.get(f"/api/profiles/{ALICE}")
    client.get(f"/api/profiles/{ALICE}?refresh=true")
    assert len(session.calls) == 2


def test_get_asset_unavailable():
    r = client.get(f"/api/assets/{TOKEN}")
    assert r.status_code == 200
    assert r.json() == {"address": TOKEN, "available": False, "display_name": "0xd4d4...d4d4"}


def test_get_asset(storage):
    storage.set(TOKEN, "asset_name", b"Token")
    storage.set(TOKEN, "asset_symbol", b"TKN")
    j = client.get(f"/api/assets/{TOKEN}").json()
    assert j["available"] is True
    assert j["name"] == "Token"
    assert j["kind"] == "unknown"


def test_asset_balance(storage):
    storage.balances[(TOKEN, ALICE)] = 12
    r = client.get(f"/api/assets/{TOKEN}/balance", params={"holder": ALICE})
    assert r.status_code == 200
    assert r.json() == {"address": TOKEN, "holder": ALICE, "balance": "12"}


def test_received_assets_empty():
    r = client.get(f"/api/profiles/{ALICE}/assets")
    assert r.status_code == 200
    assert r.json() == {"address": ALICE, "assets": []}


def test_post_leaderboard():
    r = client.post("/api/leaderboard", json={"entries": [
        {"address": BOB, "score": 50},
        {"address": ALICE, "score": 100},
    ]})
    assert r.status_code == 200
    rows = r.json()["rows"]
    assert [(row["rank"], row["address"]) for row in rows] == [(1, ALICE), (2, BOB)]
    assert rows[0]["profile"]["display_name"] == "alice"
    assert rows[1]["profile"] is None


def test_post_leaderboard_bad_address():
    r = client.post("/api/leaderboard", json={"entries": [{"address": "nope", "score": 1}]})
    assert r.status_code == 400


def test_post_leaderboard_negative_score():
    r = client.post("/api/leaderboard", json={"entries": [{"address": ALICE, "score": -1}]})
    assert r.status_code == 422


def test_get_leaderboard_from_chain():
    app.dependency_overrides[get_poll_reader] = lambda: FakePoll([ScoreEntry(ALICE, 3), ScoreEntry(BOB, 8)])
    r = client.get("/api/leaderboard")
    assert r.status_code == 200
    assert [row["address"] for row in r.json()["rows"]] == [BOB, ALICE]


def test_get_leaderboard_rpc_down():
    app.dependency_overrides[get_poll_reader] = lambda: FakePoll(error=RpcError("refused"))
    assert client.get("/api/leaderboard").status_code == 503


def test_clear_cache(session):
    client.get(f"/api/profiles/{ALICE}")
    r = client.delete("/api/cache", params={"namespace": "profile"})
    assert r.json() == {"cleared": 1, "namespace": "profile"}
    client.get(f"/api/profiles/{ALICE}")
    assert len(session.calls) == 2


def test_clear_cache_bad_namespace():
    assert client.delete("/api/cache", params={"namespace": "balances"}).status_code == 400
