# config.py
from dotenv import load_dotenv
import logging
import os

load_dotenv()

logger = logging.getLogger(__name__)


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _split(raw: str):
    out = []
    for item in raw.split(","):
        item = item.strip()
        if item and item not in out:
            out.append(item)
    return tuple(out)


# ------------------------------------------------------------
# Chain / contracts
# ------------------------------------------------------------
CHAIN_ID = int(os.getenv("CHAIN_ID", "42"))

RPC_URL = os.getenv("RPC_URL", "https://42.rpc.thirdweb.com")
RPC_TIMEOUT = float(os.getenv("RPC_TIMEOUT", "10"))

POLL_CONTRACT_ADDRESS = (
    os.getenv("POLL_CONTRACT_ADDRESS")
    or "0x0726716C8A5C125F826aA038CBCFdF1000c9db87"
)

# Directory holding <Name>.sol/<Name>.json build artifacts; inline ABIs are used when unset
ABI_DIR = os.getenv("ABI_DIR", "")

# ------------------------------------------------------------
# Content gateways
# ------------------------------------------------------------
IPFS_GATEWAYS = _split(os.getenv(
    "IPFS_GATEWAYS",
    "https://api.universalprofile.cloud/ipfs/,"
    "https://2eff.lukso.dev/ipfs/,"
    "https://ipfs.lukso.network/ipfs/,"
    "https://cloudflare-ipfs.com/ipfs/,"
    "https://ipfs.io/ipfs/",
))

HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "6"))
MAX_CONTENT_BYTES = int(os.getenv("MAX_CONTENT_BYTES", str(2 * 1024 * 1024)))
VERIFY_CONTENT_HASH = _flag("VERIFY_CONTENT_HASH")

# ------------------------------------------------------------
# Cache / pipeline
# ------------------------------------------------------------
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///resolution_cache.db")
CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "0"))  # 0 = entries never expire

LEADERBOARD_MAX_IN_FLIGHT = int(os.getenv("LEADERBOARD_MAX_IN_FLIGHT", "8"))
MAX_RECEIVED_ASSETS = int(os.getenv("MAX_RECEIVED_ASSETS", "100"))


def log_summary():
    logger.info("Config loaded:")
    logger.info("  CHAIN_ID: %s", CHAIN_ID)
    logger.info("  RPC_URL: %s", RPC_URL[:48] + ("…" if len(RPC_URL) > 48 else ""))
    logger.info("  POLL_CONTRACT: %s", POLL_CONTRACT_ADDRESS)
    logger.info("  IPFS_GATEWAYS: %d configured", len(IPFS_GATEWAYS))
    logger.info("  DATABASE_URL: %s", DATABASE_URL.split("@")[-1])
