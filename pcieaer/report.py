# pcieaer/report.py
"""
Renderings of a scanned + linked device map: a JSON report, an ASCII forest
per domain and a flat table with one column per AER counter name seen.

All functions expect build_tree() to have been run on `devices`.
"""
from __future__ import annotations
import json
from pathlib import Path
from typing import Any, Dict, List, Union

from .aer import all_summary, device_summary, error_columns
from .sysfs import PciDevice
from .topology import Node

NULL = "null"


def build_report(devices: Dict[str, PciDevice]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"all_summary": all_summary(devices)}
    for addr, d in sorted(devices.items()):
        out[addr] = {
            "summary": device_summary(d),
            "parent": d.parent,
            "children": [c.address for c in d.children],
            "errors": d.errors.to_dict(),
        }
    return out


def dumps_report(devices: Dict[str, PciDevice]) -> str:
    return json.dumps(build_report(devices), indent=2, sort_keys=True)


def write_report(devices: Dict[str, PciDevice], path: Union[str, Path]) -> None:
    Path(path).write_text(dumps_report(devices) + "\n", encoding="utf-8")


# ---------- tree ----------


def _short_address(address: str) -> str:
    # "0000:03:00.0" -> "03:00.0"
    return address.split(":", 1)[1] if ":" in address else address


def _format_node(n: Node, prefix: str, is_last: bool, lines: List[str]) -> None:
    d = n.device
    conn = "\\-" if is_last else "+-"
    lines.append(
        f"{prefix}{conn} {_short_address(d.address)} [{device_summary(d)}] "
        f"{d.vendor_id}/{d.device_id}"
    )
    child_prefix = prefix + ("   " if is_last else "│  ")
    kids = sorted(n.children, key=lambda c: c.address)
    for i, c in enumerate(kids):
        _format_node(c, child_prefix, i == len(kids) - 1, lines)


def format_tree(roots: Dict[int, List[Node]]) -> str:
    lines: List[str] = []
    domains = sorted(roots)
    for di, dom in enumerate(domains):
        last_dom = di == len(domains) - 1
        conn, prefix = ("\\-", "   ") if last_dom else ("+-", "│  ")
        lines.append(f"{conn}[{dom:04x}]")
        for i, n in enumerate(roots[dom]):
            _format_node(n, prefix, i == len(roots[dom]) - 1, lines)
    return "\n".join(lines)


# ---------- table ----------

TABLE_HEADERS = [
    "Device",
    "Parent",
    "firstbornChild",
    "Summary",
    "Domain",
    "Bus",
    "Vendor",
    "DeviceID",
    "Class",
]


def table_rows(devices: Dict[str, PciDevice]) -> List[List[str]]:
    """Header row followed by one row per device, sorted by address."""
    cols = error_columns(devices)
    header = list(TABLE_HEADERS)
    header += [f"C-{t}" for t in cols.correctable]
    header += [f"N-{t}" for t in cols.non_fatal]
    header += [f"F-{t}" for t in cols.fatal]

    rows = [header]
    for addr, d in sorted(devices.items()):
        first_child = min((c.address for c in d.children), default=NULL)
        row = [
            d.address,
            d.parent or NULL,
            first_child,
            device_summary(d),
            f"0x{d.domain:04x}",
            f"0x{d.bus:02x}",
            d.vendor_id,
            d.device_id,
            d.class_code,
        ]
        row += [str(d.errors.correctable.get(t, 0)) for t in cols.correctable]
        row += [str(d.errors.non_fatal.get(t, 0)) for t in cols.non_fatal]
        row += [str(d.errors.fatal.get(t, 0)) for t in cols.fatal]
        rows.append(row)
    return rows


def format_table(devices: Dict[str, PciDevice], padding: int = 2) -> str:
    rows = table_rows(devices)
    widths = [max(len(r[i]) for r in rows) for i in range(len(rows[0]))]
    out = []
    for r in rows:
        cells = [c.ljust(w + padding) for c, w in zip(r[:-1], widths)]
        out.append("".join(cells) + r[-1])
    return "\n".join(out)
