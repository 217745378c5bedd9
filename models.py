# app/models.py
"""
Data model shared by the resolution pipeline.

Fetched JSON documents are parsed into strict pydantic models; anything that
does not fit raises ParseError instead of producing a half-filled record.
"""
from __future__ import annotations

import enum
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from errors import ParseError

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def canonical_address(address: str) -> str:
    """Lowercase hex form used for every cache key and comparison."""
    if not isinstance(address, str) or not _ADDRESS_RE.match(address.strip()):
        raise ValueError(f"invalid address: {address!r}")
    return address.strip().lower()


def short_address(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"


# ────────────────────────────────────────────────────────────
# On-chain records
# ────────────────────────────────────────────────────────────

class HashAlgorithm(str, enum.Enum):
    NONE = "0x00000000"
    KECCAK256_UTF8 = "0x6f357c6a"
    KECCAK256_BYTES = "0x8019f9b1"


@dataclass(frozen=True)
class ContentPointer:
    algorithm: HashAlgorithm
    expected_hash: bytes
    uri: str


class AssetKind(str, enum.Enum):
    FUNGIBLE = "fungible"
    NON_FUNGIBLE = "non_fungible"
    UNKNOWN = "unknown"


# ────────────────────────────────────────────────────────────
# Fetched documents
# ────────────────────────────────────────────────────────────

class ImageRef(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    url: Optional[str] = None
    file_type: Optional[str] = Field(default=None, alias="fileType")
    verification: Optional[Dict[str, Any]] = None
    # NFT-backed images point at an asset instead of a url
    address: Optional[str] = None
    token_id: Optional[str] = Field(default=None, alias="tokenId")


def _image_list(value: Any) -> List[Any]:
    """Accept a single image, a list of images, or a list of image lists."""
    if value is None:
        return []
    if isinstance(value, (str, dict)):
        value = [value]
    if not isinstance(value, list):
        raise ValueError("expected an image or a list of images")
    out = []
    for item in value:
        if isinstance(item, list):
            # LSP4 "images" groups several sizes of one image
            item = item[0] if item else None
        if item is None:
            continue
        out.append({"url": item} if isinstance(item, str) else item)
    return out


class Link(BaseModel):
    title: str = ""
    url: str = ""


class ProfileRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    links: List[Link] = Field(default_factory=list)
    avatar: List[ImageRef] = Field(default_factory=list)
    profile_image: List[ImageRef] = Field(default_factory=list, alias="profileImage")
    background_image: List[ImageRef] = Field(default_factory=list, alias="backgroundImage")

    @field_validator("tags", "links", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        return [] if v is None else v

    @field_validator("avatar", "profile_image", "background_image", mode="before")
    @classmethod
    def _images(cls, v):
        return _image_list(v)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AssetMetadataRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    description: Optional[str] = None
    icon: List[ImageRef] = Field(default_factory=list)
    images: List[ImageRef] = Field(default_factory=list)

    @field_validator("icon", "images", mode="before")
    @classmethod
    def _images(cls, v):
        return _image_list(v)


_PROFILE_FIELDS = ("name", "description", "tags", "links", "avatar", "profileImage", "backgroundImage")
_ASSET_FIELDS = ("description", "icon", "images", "image")


def _load_document(body: bytes, envelope: str, fields) -> Dict[str, Any]:
    try:
        doc = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise ParseError(f"content is not valid JSON: {e}") from e

    if not isinstance(doc, dict):
        raise ParseError("JSON document is not an object")

    inner = doc.get(envelope, doc)
    if not isinstance(inner, dict):
        raise ParseError(f"{envelope} is not an object")
    if envelope not in doc and not any(k in inner for k in fields):
        raise ParseError(f"document has no {envelope} fields")
    return inner


def parse_profile_document(body: bytes) -> ProfileRecord:
    """Parse an LSP3 profile JSON document (enveloped or bare)."""
    inner = _load_document(body, "LSP3Profile", _PROFILE_FIELDS)
    try:
        return ProfileRecord.model_validate(inner)
    except ValidationError as e:
        raise ParseError(f"malformed profile document: {e.error_count()} errors") from e


def parse_asset_document(body: bytes) -> AssetMetadataRecord:
    inner = _load_document(body, "LSP4Metadata", _ASSET_FIELDS)
    if "images" not in inner and "image" in inner:
        inner = dict(inner, images=inner["image"])
    try:
        return AssetMetadataRecord.model_validate(inner)
    except ValidationError as e:
        raise ParseError(f"malformed asset metadata: {e.error_count()} errors") from e


# ────────────────────────────────────────────────────────────
# Resolved views
# ────────────────────────────────────────────────────────────

class AssetDescriptor(BaseModel):
    address: str
    name: str
    symbol: str
    kind: AssetKind = AssetKind.UNKNOWN
    nft_like: bool = False
    icon_url: Optional[str] = None
    # live value, never cached
    balance: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"balance"})


class ProfileView(BaseModel):
    address: str
    display_name: str
    available: bool = True
    image_url: Optional[str] = None
    background_image_url: Optional[str] = None
    profile: Optional[ProfileRecord] = None


@dataclass(frozen=True)
class ScoreEntry:
    address: str
    score: Union[int, float]


class LeaderboardRow(BaseModel):
    rank: int
    address: str
    score: Union[int, float]
    profile: Optional[ProfileView] = None


# ────────────────────────────────────────────────────────────
# Cache entries
# ────────────────────────────────────────────────────────────

class CacheState(str, enum.Enum):
    PRESENT = "present"
    CONFIRMED_ABSENT = "absent"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CacheEntry:
    state: CacheState
    value: Optional[Dict[str, Any]] = None

    @classmethod
    def present(cls, value: Dict[str, Any]) -> "CacheEntry":
        return cls(CacheState.PRESENT, value)

    @classmethod
    def absent(cls) -> "CacheEntry":
        return cls(CacheState.CONFIRMED_ABSENT)

    @classmethod
    def unknown(cls) -> "CacheEntry":
        return cls(CacheState.UNKNOWN)

    @property
    def is_present(self) -> bool:
        return self.state is CacheState.PRESENT

    @property
    def is_absent(self) -> bool:
        return self.state is CacheState.CONFIRMED_ABSENT

    @property
    def is_unknown(self) -> bool:
        return self.state is CacheState.UNKNOWN
