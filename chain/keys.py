"""
ERC725Y data keys and ERC165 interface ids.

Singleton keys are keccak256 of the key name (LSP2); the array key holds the
received-asset list record.
"""
from web3 import Web3


def data_key(name: str) -> bytes:
    return bytes(Web3.keccak(text=name))


LSP3_PROFILE = data_key("LSP3Profile")
LSP5_RECEIVED_ASSETS = data_key("LSP5ReceivedAssets[]")
LSP4_TOKEN_NAME = data_key("LSP4TokenName")
LSP4_TOKEN_SYMBOL = data_key("LSP4TokenSymbol")
LSP4_TOKEN_TYPE = data_key("LSP4TokenType")
LSP4_METADATA = data_key("LSP4Metadata")

KEY_IDS = {
    "profile": LSP3_PROFILE,
    "received_assets": LSP5_RECEIVED_ASSETS,
    "asset_name": LSP4_TOKEN_NAME,
    "asset_symbol": LSP4_TOKEN_SYMBOL,
    "asset_type": LSP4_TOKEN_TYPE,
    "asset_metadata": LSP4_METADATA,
}

# current id first, then the older ids still deployed on mainnet
LSP7_INTERFACE_IDS = ("0xc52d6008", "0xe33f65c3")
LSP8_INTERFACE_IDS = ("0x3a271706", "0x49399145")

# LSP4TokenType values
TOKEN_TYPE_TOKEN = 0
TOKEN_TYPE_NFT = 1
TOKEN_TYPE_COLLECTION = 2
