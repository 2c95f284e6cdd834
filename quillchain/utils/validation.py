import re
from typing import Optional

_ADDRESS_RE = re.compile(r"^addr(_test)?1[0-9a-z]{8,}$")
_HEX_RE = re.compile(r"^[0-9a-f]+$", re.IGNORECASE)
_NON_PRINTABLE_ASCII_RE = re.compile(r"[^\x20-\x7E]")

NETWORKS = ("preview", "preprod", "mainnet")

MAX_TEXT_LEN = 256
MAX_ADDRESS_LEN = 128
MAX_TITLE_LEN = 50
MAX_CATEGORY_LEN = 32


def is_safe_text(value: Optional[str], max_len: int = MAX_TEXT_LEN) -> bool:
    if value is None:
        return False
    text = str(value)
    if len(text) == 0 or len(text) > max_len:
        return False
    for ch in text:
        code = ord(ch)
        if code < 32 or code == 127:
            return False
    return True


def sanitize_text(value: Optional[str], max_len: int = 64) -> str:
    """Truncate first, then drop anything outside printable ASCII."""
    if not value:
        return ""
    return _NON_PRINTABLE_ASCII_RE.sub("", str(value)[:max_len])


def is_valid_address(addr: Optional[str]) -> bool:
    if not is_safe_text(addr, max_len=MAX_ADDRESS_LEN):
        return False
    return bool(_ADDRESS_RE.fullmatch(str(addr).strip()))


def is_valid_network(network: Optional[str]) -> bool:
    return network in NETWORKS


def normalize_tx_hash(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def is_valid_tx_hash(value: Optional[str]) -> bool:
    text = normalize_tx_hash(value)
    if text is None or len(text) != 64:
        return False
    return bool(_HEX_RE.fullmatch(text))
