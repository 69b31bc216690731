import os, pathlib
from dotenv import load_dotenv
from eth_utils import keccak

# always load from local file
load_dotenv(".env")

# -------- env / config --------
RPC_URL        = os.getenv("RPC_URL") or os.getenv("ETH_RPC")
OKLINK_KEY     = os.getenv("OKLINK_KEY")
ADDRESS        = os.getenv("ADDRESS")
SYMBOL         = os.getenv("SYMBOL")
OUTPUT_DIR     = os.getenv("OUTPUT_DIR", ".")
EXPLORER_URL   = os.getenv("EXPLORER_URL", "https://www.oklink.com/api/v5/explorer/address/transaction-list")
EXPLORER_CHAIN = os.getenv("EXPLORER_CHAIN", "ETH")
PAGE_LIMIT     = int(os.getenv("PAGE_LIMIT", "100"))
RECEIPT_CONC   = int(os.getenv("RECEIPT_CONC", "1"))
RETRY_ATTEMPTS = int(os.getenv("RETRY_ATTEMPTS", "3"))
RETRY_BACKOFF  = float(os.getenv("RETRY_BACKOFF", "0.5"))
LOG_SELECTION  = os.getenv("LOG_SELECTION", "scan").lower()
HTTP_TIMEOUT   = float(os.getenv("HTTP_TIMEOUT", "30"))

LOG_SELECTIONS = ("scan", "position")
MAX_BACKOFF    = 8.0


def require():
    """Fail fast on missing settings; called by the CLI, never at import."""
    for name, value in (("RPC_URL", RPC_URL), ("OKLINK_KEY", OKLINK_KEY),
                        ("ADDRESS", ADDRESS), ("SYMBOL", SYMBOL)):
        if not value:
            raise SystemExit(f"Missing {name} in .env")
    if LOG_SELECTION not in LOG_SELECTIONS:
        raise SystemExit(f"LOG_SELECTION must be one of {LOG_SELECTIONS}, got {LOG_SELECTION!r}")
    if RECEIPT_CONC < 1 or RETRY_ATTEMPTS < 1:
        raise SystemExit("RECEIPT_CONC and RETRY_ATTEMPTS must be >= 1")


def output_path(symbol=None) -> pathlib.Path:
    return pathlib.Path(OUTPUT_DIR) / f"{symbol or SYMBOL}.txt"


# --- LBP events: (name, indexed fields, data fields) ---
EVENT_SCHEMA = {
    "Buy":    ((("caller", "address"),), (("assets", "uint256"), ("shares", "uint256"), ("swapFee", "uint256"))),
    "Sell":   ((("caller", "address"),), (("shares", "uint256"), ("assets", "uint256"), ("swapFee", "uint256"))),
    "Redeem": ((("caller", "address"), ("streamID", "uint256")), (("shares", "uint256"),)),
}


def event_signature(name: str) -> str:
    indexed, data = EVENT_SCHEMA[name]
    return f"{name}({','.join(t for _, t in indexed + data)})"


# topic0 (keccak256 of the canonical signature) -> event name
EVENT_TOPICS = {keccak(text=event_signature(n)): n for n in EVENT_SCHEMA}

# --- contract reads ---
LBP_ABI = [
    {"type": "function", "name": "asset", "stateMutability": "view", "inputs": [],
     "outputs": [{"name": "", "type": "address"}]},
    {"type": "function", "name": "share", "stateMutability": "view", "inputs": [],
     "outputs": [{"name": "", "type": "address"}]},
]

ERC20_ABI = [
    {"type": "function", "name": "decimals", "stateMutability": "view", "inputs": [],
     "outputs": [{"name": "", "type": "uint8"}]},
]
