from web3 import AsyncWeb3
from hexbytes import HexBytes

# ---------------- helpers ----------------
def to_hex(x):
    if x is None: return None
    if isinstance(x, (bytes, bytearray)): return "0x" + bytes(x).hex()
    if isinstance(x, int): return hex(x)
    return str(x)

def to_addr(x):
    if x is None: return None
    return AsyncWeb3.to_checksum_address(x)

def to_bytes(x) -> bytes:
    if isinstance(x, (bytes, bytearray)): return bytes(x)
    return bytes(HexBytes(x or "0x"))

def hex_to_int(x):
    if x is None: return None
    if isinstance(x, int): return x
    if isinstance(x, bytes): return int.from_bytes(x, "big")
    s = str(x)
    return int(s, 16) if s.startswith("0x") else int(s)

def topic_to_addr(topic) -> str:
    # topics are 32-byte values; address is the last 20 bytes
    return AsyncWeb3.to_checksum_address("0x" + to_bytes(topic)[-20:].hex())

def format_units(value: int, decimals: int) -> str:
    """
    Exact raw-integer -> decimal string, e.g. (500000000, 6) -> "500",
    (1500000, 6) -> "1.5". Trailing fractional zeros are dropped.
    """
    value, decimals = int(value), int(decimals)
    sign = "-" if value < 0 else ""
    digits = str(abs(value)).rjust(decimals + 1, "0")
    whole, frac = (digits[:-decimals], digits[-decimals:]) if decimals else (digits, "")
    frac = frac.rstrip("0")
    return f"{sign}{whole}.{frac}" if frac else f"{sign}{whole}"
