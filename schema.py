# app/schema.py
"""
Decoders for the few ERC725Y value layouts this service reads.

Every decoder is total over its input: anything truncated, empty, or carrying
an unexpected discriminator raises DecodeError. Callers treat that the same as
a key that was never set.
"""
from __future__ import annotations

import enum
from typing import Any, List

from errors import DecodeError
from models import ContentPointer, HashAlgorithm

VERIFIABLE_URI_PREFIX = b"\x00\x00"
METHOD_LENGTH = 4
HASH_LENGTH = 32
ADDRESS_LENGTH = 20
LIST_COUNT_LENGTH = 16  # uint128, as for LSP2 array lengths

# legacy JSONURL: method + hash + at least one byte of uri
MIN_POINTER_LENGTH = METHOD_LENGTH + HASH_LENGTH + 1

_METHODS = {bytes.fromhex(m.value[2:]): m for m in HashAlgorithm}


class RecordKind(str, enum.Enum):
    POINTER = "pointer"
    ADDRESS_LIST = "address_list"
    STRING = "string"
    UINT = "uint"


def _as_bytes(raw) -> bytes:
    if raw is None:
        raise DecodeError("no value")
    if isinstance(raw, str):
        try:
            return bytes.fromhex(raw[2:] if raw.startswith("0x") else raw)
        except ValueError as e:
            raise DecodeError(f"not a hex string: {e}") from e
    return bytes(raw)


def _decode_uri(raw: bytes) -> str:
    try:
        uri = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError("pointer uri is not valid utf-8") from e
    if not uri or "\x00" in uri or uri != uri.strip():
        raise DecodeError("pointer uri is empty or malformed")
    return uri


def decode_pointer(raw) -> ContentPointer:
    data = _as_bytes(raw)

    if data[:2] == VERIFIABLE_URI_PREFIX:
        # 0x0000 | method(4) | hash length(2) | hash | uri
        header = 2 + METHOD_LENGTH + 2
        if len(data) < header + 1:
            raise DecodeError(f"verifiable uri too short ({len(data)} bytes)")
        method = _METHODS.get(data[2:6])
        if method is None:
            raise DecodeError(f"unknown verification method 0x{data[2:6].hex()}")
        hash_length = int.from_bytes(data[6:8], "big")
        expected = 0 if method is HashAlgorithm.NONE else HASH_LENGTH
        if hash_length != expected:
            raise DecodeError(f"hash length {hash_length} does not match {method.name}")
        if len(data) < header + hash_length + 1:
            raise DecodeError("verifiable uri truncated")
        digest = data[header:header + hash_length]
        return ContentPointer(method, digest, _decode_uri(data[header + hash_length:]))

    # legacy JSONURL: method(4) | hash(32) | uri
    if len(data) < MIN_POINTER_LENGTH:
        raise DecodeError(f"pointer record too short ({len(data)} bytes)")
    method = _METHODS.get(data[:METHOD_LENGTH])
    if method is None or method is HashAlgorithm.NONE:
        raise DecodeError(f"unknown pointer discriminator 0x{data[:METHOD_LENGTH].hex()}")
    digest = data[METHOD_LENGTH:METHOD_LENGTH + HASH_LENGTH]
    return ContentPointer(method, digest, _decode_uri(data[METHOD_LENGTH + HASH_LENGTH:]))


def decode_address_list(raw) -> List[str]:
    data = _as_bytes(raw)
    if len(data) < LIST_COUNT_LENGTH:
        raise DecodeError(f"list record too short ({len(data)} bytes)")

    count = int.from_bytes(data[:LIST_COUNT_LENGTH], "big")
    body = data[LIST_COUNT_LENGTH:]
    if len(body) != count * ADDRESS_LENGTH:
        raise DecodeError(f"list record declares {count} entries but carries {len(body)} bytes")

    return [
        "0x" + body[i:i + ADDRESS_LENGTH].hex()
        for i in range(0, len(body), ADDRESS_LENGTH)
    ]


def decode_string(raw) -> str:
    data = _as_bytes(raw)
    if not data:
        raise DecodeError("empty string value")
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError("string value is not valid utf-8") from e


def decode_uint(raw) -> int:
    data = _as_bytes(raw)
    if not data or len(data) > 32:
        raise DecodeError(f"uint value has {len(data)} bytes")
    return int.from_bytes(data, "big")


_DECODERS = {
    RecordKind.POINTER: decode_pointer,
    RecordKind.ADDRESS_LIST: decode_address_list,
    RecordKind.STRING: decode_string,
    RecordKind.UINT: decode_uint,
}


def decode(kind: RecordKind, raw) -> Any:
    return _DECODERS[RecordKind(kind)](raw)
