# tests/test_capability.py
"""
Asset classification from interface probes and the LSP4TokenType tag.
"""
from capability import (
    UNKNOWN,
    Capability,
    CapabilityDetector,
    ProbeContext,
    probe_type_tag,
)
from chain.keys import LSP7_INTERFACE_IDS, LSP8_INTERFACE_IDS
from conftest import TOKEN
from errors import RpcError, UnsupportedContractError
from models import AssetKind


def _tag(value: int) -> bytes:
    return value.to_bytes(32, "big")


class TestInterfaceProbes:
    def test_lsp8_is_non_fungible(self, storage):
        storage.interfaces[TOKEN] = {LSP8_INTERFACE_IDS[0]}
        cap = CapabilityDetector(storage).detect(TOKEN)
        assert cap.kind is AssetKind.NON_FUNGIBLE
        assert cap.nft_like

    def test_lsp8_wins_regardless_of_tag(self, storage):
        storage.interfaces[TOKEN] = {LSP8_INTERFACE_IDS[1], LSP7_INTERFACE_IDS[0]}
        cap = CapabilityDetector(storage).detect(TOKEN, type_tag=0)
        assert cap.kind is AssetKind.NON_FUNGIBLE
        assert cap.source == "lsp8-interface"

    def test_older_lsp7_id_is_recognised(self, storage):
        storage.interfaces[TOKEN] = {LSP7_INTERFACE_IDS[1]}
        cap = CapabilityDetector(storage).detect(TOKEN, type_tag=None)
        assert cap == Capability(AssetKind.FUNGIBLE, False, "lsp7-interface")

    def test_lsp7_with_nft_tag_is_nft_like(self, storage):
        storage.interfaces[TOKEN] = {LSP7_INTERFACE_IDS[0]}
        cap = CapabilityDetector(storage).detect(TOKEN, type_tag=1)
        assert cap.kind is AssetKind.FUNGIBLE
        assert cap.nft_like

    def test_lsp7_with_collection_tag_is_non_fungible(self, storage):
        storage.interfaces[TOKEN] = {LSP7_INTERFACE_IDS[0]}
        cap = CapabilityDetector(storage).detect(TOKEN, type_tag=2)
        assert cap.kind is AssetKind.NON_FUNGIBLE


class TestTypeTagFallback:
    def test_collection_tag_with_reverted_probes(self, storage):
        storage.fail_probes[TOKEN] = UnsupportedContractError("execution reverted")
        storage.set(TOKEN, "asset_type", _tag(2))
        cap = CapabilityDetector(storage).detect(TOKEN)
        assert cap.kind is AssetKind.NON_FUNGIBLE
        assert cap.source == "type-tag"

    def test_token_tag(self, storage):
        storage.set(TOKEN, "asset_type", _tag(0))
        assert CapabilityDetector(storage).detect(TOKEN).kind is AssetKind.FUNGIBLE

    def test_nothing_answers(self, storage):
        assert CapabilityDetector(storage).detect(TOKEN) is UNKNOWN

    def test_unrecognised_tag(self, storage):
        assert CapabilityDetector(storage).detect(TOKEN, type_tag=7) is UNKNOWN

    def test_tag_read_once(self, storage):
        storage.set(TOKEN, "asset_type", _tag(1))
        ctx = ProbeContext(storage, TOKEN)
        assert ctx.type_tag == 1
        assert ctx.type_tag == 1
        assert len(storage.reads_for(TOKEN, "asset_type")) == 1

    def test_unsupported_tag_read_is_none(self, storage):
        storage.fail_reads[TOKEN] = UnsupportedContractError("not a contract")
        assert ProbeContext(storage, TOKEN).type_tag is None
        assert probe_type_tag(ProbeContext(storage, TOKEN)) is None

    def test_failed_tag_read_is_none_and_degraded(self, storage):
        storage.fail_reads[TOKEN] = RpcError("timeout")
        ctx = ProbeContext(storage, TOKEN)
        assert ctx.type_tag is None
        assert ctx.degraded


# ────────────────────────────────────────────────────────────
# Node failures during detection
# ────────────────────────────────────────────────────────────

class TestNodeFailures:
    def test_timeout_with_no_answer_is_provisional(self, storage):
        storage.fail_probes[TOKEN] = RpcError("read timeout")
        cap = CapabilityDetector(storage).detect(TOKEN, type_tag=None)
        assert cap.kind is AssetKind.UNKNOWN
        assert cap.provisional

    def test_timeout_falls_back_to_type_tag_provisionally(self, storage):
        storage.fail_probes[TOKEN] = RpcError("read timeout")
        cap = CapabilityDetector(storage).detect(TOKEN, type_tag=2)
        assert cap.kind is AssetKind.NON_FUNGIBLE
        assert cap.source == "type-tag"
        assert cap.provisional

    def test_failed_tag_read_after_lsp7_is_provisional(self, storage):
        storage.interfaces[TOKEN] = {LSP7_INTERFACE_IDS[0]}
        storage.fail_reads[TOKEN] = RpcError("timeout")
        cap = CapabilityDetector(storage).detect(TOKEN)
        assert cap.kind is AssetKind.FUNGIBLE
        assert cap.provisional

    def test_confirmed_interface_survives_earlier_timeout(self, storage):
        calls = []

        def flaky_lsp8_then_lsp7(address, iid):
            calls.append(iid)
            if iid in LSP8_INTERFACE_IDS:
                raise RpcError("read timeout")
            return iid == LSP7_INTERFACE_IDS[0]

        storage.supports_interface = flaky_lsp8_then_lsp7
        cap = CapabilityDetector(storage).detect(TOKEN, type_tag=0)
        assert cap.kind is AssetKind.FUNGIBLE
        assert not cap.provisional
        assert calls[:2] == list(LSP8_INTERFACE_IDS)

    def test_reverted_probes_mean_unknown(self, storage):
        storage.fail_probes[TOKEN] = UnsupportedContractError("execution reverted")
        assert CapabilityDetector(storage).detect(TOKEN, type_tag=None) is UNKNOWN


class TestCustomStrategies:
    def test_first_answer_wins(self, storage):
        calls = []

        def first(ctx):
            calls.append("first")
            return Capability(AssetKind.FUNGIBLE, source="custom")

        def second(ctx):
            calls.append("second")
            return None

        cap = CapabilityDetector(storage, strategies=[first, second]).detect(TOKEN)
        assert cap.source == "custom"
        assert calls == ["first"]
