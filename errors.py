"""
Error taxonomy for metadata resolution.

DecodeError, FetchError and ParseError mean "no usable data" and are cached as
confirmed-absent by the resolver. RpcError means the node could not answer and
is never cached, except for UnsupportedContractError, which is a definitive
answer about the address.
"""


class ResolutionError(Exception):
    """Base class for every failure raised while resolving metadata."""


class RpcError(ResolutionError):
    """Node unreachable, timed out, or returned a malformed response."""


class UnsupportedContractError(RpcError):
    """The address has no code or does not implement the called interface."""


class DecodeError(ResolutionError):
    """On-chain bytes do not match the expected record layout."""


class FetchError(ResolutionError):
    """Content could not be retrieved from any gateway."""


class ParseError(ResolutionError):
    """Fetched content is not JSON or lacks the expected structure."""
