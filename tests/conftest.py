# tests/conftest.py
from __future__ import annotations
from pathlib import Path
from typing import Dict, Optional, Tuple
import logging

import pytest

from pcieaer.mock import bridge_config
from pcieaer.features import PciBridgeInfo


def write_hex_file(p: Path, value: int, width: int = 4) -> None:
    p.write_text(f"0x{value:0{width}x}\n", encoding="ascii")


def make_device_dir(
    root: Path,
    bdf: str,
    *,
    vendor: int = 0x1234,
    device: int = 0xABCD,
    klass24: int = 0x030000,
    bridge: Optional[Tuple[int, int, int]] = None,
    aer: Optional[Dict[str, str]] = None,
) -> Path:
    """
    One device directory the way sysfs lays it out. `bridge` is
    (primary, secondary, subordinate) and also switches the class to 0x060400.
    `aer` maps aer_dev_* file names to their contents.
    """
    d = root / bdf
    d.mkdir(parents=True, exist_ok=True)
    write_hex_file(d / "vendor", vendor)
    write_hex_file(d / "device", device)
    if bridge is not None:
        klass24 = 0x060400
        (d / "config").write_bytes(bridge_config(PciBridgeInfo(*bridge)))
    (d / "class").write_text(f"0x{klass24:06x}\n", encoding="ascii")
    for name, content in (aer or {}).items():
        (d / name).write_text(content)
    return d


@pytest.fixture
def devices_root(tmp_path: Path) -> Path:
    root = tmp_path / "devices"
    root.mkdir()
    return root


@pytest.fixture
def chain_sysfs(devices_root: Path) -> Path:
    """
    00(0->1..3) -> 01(1->2..3) -> 02(2->3..3) -> leaf@03, leaf with AER errors.
    """
    make_device_dir(devices_root, "0000:00:00.0", device=0xABCD, bridge=(0, 1, 3))
    make_device_dir(devices_root, "0000:01:00.0", device=0xBCDE, bridge=(1, 2, 3))
    make_device_dir(devices_root, "0000:02:00.0", device=0xCDEF, bridge=(2, 3, 3))
    make_device_dir(
        devices_root,
        "0000:03:00.0",
        device=0xDEF0,
        aer={
            "aer_dev_correctable": "RxErr 1\nBadTLP 0\nTOTAL_ERR_COR 1\n",
            "aer_dev_nonfatal": "Undefined 0\nTOTAL_ERR_NONFATAL 0\n",
            "aer_dev_fatal": "DLP 0\nTOTAL_ERR_FATAL 0\n",
        },
    )
    return devices_root


@pytest.fixture
def restore_logging():
    root_logger = logging.getLogger()
    handlers, level = root_logger.handlers[:], root_logger.level
    yield root_logger
    for h in root_logger.handlers[:]:
        if h not in handlers:
            root_logger.removeHandler(h)
            h.close()
    for h in handlers:
        if h not in root_logger.handlers:
            root_logger.addHandler(h)
    root_logger.setLevel(level)
