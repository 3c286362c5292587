# pcieaer/aer.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List

from .sysfs import ErrorMaps, PciDevice

SUMMARY_OK = "OK"
SUMMARY_ERR = "ERR"


def errors_present(em: ErrorMaps) -> bool:
    return any(v > 0 for m in em.categories().values() for v in m.values())


def has_errors(dev: PciDevice) -> bool:
    return errors_present(dev.errors)


def device_summary(dev: PciDevice) -> str:
    # Per-device only: a child's errors never mark its bridge, nor the reverse.
    return SUMMARY_ERR if has_errors(dev) else SUMMARY_OK


def all_summary(devices: Dict[str, PciDevice]) -> str:
    return SUMMARY_ERR if any(has_errors(d) for d in devices.values()) else SUMMARY_OK


def summarize(devices: Dict[str, PciDevice]) -> Dict[str, str]:
    return {addr: device_summary(d) for addr, d in devices.items()}


@dataclass(frozen=True)
class ErrorColumns:
    """Sorted union of the counter names seen per category across a scan."""

    correctable: List[str]
    non_fatal: List[str]
    fatal: List[str]


def _union(maps: Iterable[Dict[str, int]]) -> List[str]:
    names = set()
    for m in maps:
        names.update(m)
    return sorted(names)


def error_columns(devices: Dict[str, PciDevice]) -> ErrorColumns:
    devs = list(devices.values())
    return ErrorColumns(
        correctable=_union(d.errors.correctable for d in devs),
        non_fatal=_union(d.errors.non_fatal for d in devs),
        fatal=_union(d.errors.fatal for d in devs),
    )
