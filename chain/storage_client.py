# app/chain/storage_client.py
"""
Read-only access to the ERC725Y key/value store and ERC165 probes.

One call per method, no retries: the resolver decides what a failure means.
Timeouts come from the HTTP provider's request_kwargs.
"""
from __future__ import annotations

import logging
from typing import Optional, Union

from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from config import RPC_URL, RPC_TIMEOUT
from errors import RpcError, UnsupportedContractError
from .abi import ASSET_ABI
from .keys import KEY_IDS

logger = logging.getLogger(__name__)

_w3 = None


def get_w3():
    global _w3
    if _w3 is None:
        _w3 = Web3(Web3.HTTPProvider(RPC_URL, request_kwargs={"timeout": RPC_TIMEOUT}))
    return _w3


def _key_bytes(key_id: Union[str, bytes]) -> bytes:
    if isinstance(key_id, (bytes, bytearray)):
        if len(key_id) != 32:
            raise ValueError("data key must be 32 bytes")
        return bytes(key_id)
    try:
        return KEY_IDS[key_id]
    except KeyError:
        raise ValueError(f"unknown data key: {key_id}") from None


class StorageClient:
    def __init__(self, w3: Optional[Web3] = None):
        self.w3 = w3 or get_w3()

    def _contract(self, address: str):
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=ASSET_ABI,
        )

    def _unsupported_or_rpc(self, address: str, what: str, e: Exception) -> RpcError:
        """A revert or empty return means the address can't answer; tell that apart from transport errors."""
        if isinstance(e, (ContractLogicError, BadFunctionCallOutput)):
            try:
                code = self.w3.eth.get_code(Web3.to_checksum_address(address))
            except Exception as code_err:
                return RpcError(f"{what} failed for {address}: {code_err}")
            if not code:
                return UnsupportedContractError(f"{address} is not a contract")
            return UnsupportedContractError(f"{address} does not support {what}: {e}")
        return RpcError(f"{what} failed for {address}: {e}")

    def read_key(self, address: str, key_id: Union[str, bytes]) -> bytes:
        """Raw value stored under key_id; b"" when the key is not set."""
        key = _key_bytes(key_id)
        try:
            value = self._contract(address).functions.getData(key).call()
        except Exception as e:
            err = self._unsupported_or_rpc(address, "getData", e)
            logger.warning("read_key(%s, %s): %s", address, key_id, err)
            raise err from e

        if value is None:
            return b""
        if not isinstance(value, (bytes, bytearray)):
            raise RpcError(f"getData returned {type(value).__name__} for {address}")
        return bytes(value)

    def supports_interface(self, address: str, interface_id: str) -> bool:
        try:
            iid = bytes.fromhex(interface_id[2:] if interface_id.startswith("0x") else interface_id)
        except ValueError:
            raise ValueError(f"bad interface id: {interface_id}") from None
        if len(iid) != 4:
            raise ValueError(f"interface id must be 4 bytes: {interface_id}")

        try:
            return bool(self._contract(address).functions.supportsInterface(iid).call())
        except Exception as e:
            raise self._unsupported_or_rpc(address, f"supportsInterface({interface_id})", e) from e

    def balance_of(self, asset: str, holder: str) -> int:
        try:
            return int(
                self._contract(asset).functions.balanceOf(
                    Web3.to_checksum_address(holder)
                ).call()
            )
        except Exception as e:
            raise self._unsupported_or_rpc(asset, "balanceOf", e) from e
