# pcieaer/attrs.py
from __future__ import annotations
import logging
import string
from pathlib import Path
from typing import Dict

logger = logging.getLogger(__name__)

BOM = "\ufeff"
TOTAL_ERR_PREFIX = "TOTAL_ERR_"


def parse_hex(text: str, bits: int = 32) -> int:
    """Parse a sysfs hex attribute ("0x8086", "8086", BOM-prefixed, ...)."""
    s = text.strip().lstrip(BOM).strip()
    if s[:2].lower() == "0x":
        s = s[2:]
    if not s or any(c not in string.hexdigits for c in s):
        raise ValueError(f"not a hex value: {text!r}")
    value = int(s, 16)
    if value >> bits:
        raise ValueError(f"0x{s} does not fit in {bits} bits")
    return value


def read_hex_str(p: Path, width: int = 4) -> str:
    """
    Read a hex attribute and normalise it to ``0x`` + ``width`` lowercase digits.
    Missing, unreadable or garbled files yield ``0x`` followed by ``width`` zeros.
    """
    try:
        value = parse_hex(p.read_text(encoding="ascii", errors="ignore"), width * 4)
    except (OSError, ValueError) as e:
        logger.debug("defaulting %s: %s", p, e)
        value = 0
    return f"0x{value:0{width}x}"


def read_config(p: Path) -> bytes:
    try:
        return p.read_bytes()
    except OSError as e:
        logger.debug("cannot read %s: %s", p, e)
        return b""


def read_error_map(p: Path) -> Dict[str, int]:
    """
    Parse an ``aer_dev_*`` counter file into {name: count}.

    Each line is ``<NAME> <count>``. ``TOTAL_ERR_*`` rows are sums of the other
    rows and are skipped. Lines that do not split into two fields, or whose
    count is not a non-negative integer, are dropped.
    """
    counts: Dict[str, int] = {}
    try:
        text = p.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return counts

    for line in text.splitlines():
        fields = line.split()
        if len(fields) != 2:
            continue
        name, raw = fields
        if name.startswith(TOTAL_ERR_PREFIX):
            continue
        try:
            n = int(raw)
        except ValueError:
            logger.debug("%s: dropping unparsable count %r for %s", p, raw, name)
            continue
        if n < 0:
            continue
        counts[name] = n
    return counts
