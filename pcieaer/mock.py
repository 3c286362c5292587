# pcieaer/mock.py
"""
Synthetic sysfs trees for exercising the scanner and topology builder without
real hardware. Each scenario wipes `root` and recreates one directory per
device, in the same layout /sys/bus/pci/devices exposes.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union
import os
import random
import shutil

from .features import (
    PCI_CFG_PRIMARY_BUS,
    PCI_CFG_SECONDARY_BUS,
    PCI_CFG_SUBORDINATE_BUS,
    PciBridgeInfo,
)

PathLike = Union[str, Path]

CONFIG_LEN = PCI_CFG_SUBORDINATE_BUS + 1

AER_CONTENT = {
    "aer_dev_correctable": "CE 1\nUE 0\n",
    "aer_dev_nonfatal": "NF 2\n",
    "aer_dev_fatal": "F 3\n",
}


@dataclass
class MockDev:
    addr: str
    is_bridge: bool
    bridge: PciBridgeInfo = field(default_factory=PciBridgeInfo)
    vendor: str = "0x1234"
    device: str = "0xabcd"
    klass: str = "0x030000"
    with_aer: bool = False


def _dev(addr, is_bridge, ranges, vendor, device, klass, with_aer) -> MockDev:
    return MockDev(addr, is_bridge, PciBridgeInfo(*ranges), vendor, device, klass, with_aer)


def bridge_config(b: PciBridgeInfo) -> bytes:
    buf = bytearray(CONFIG_LEN)
    buf[PCI_CFG_PRIMARY_BUS] = b.primary & 0xFF
    buf[PCI_CFG_SECONDARY_BUS] = b.secondary & 0xFF
    buf[PCI_CFG_SUBORDINATE_BUS] = b.subordinate & 0xFF
    return bytes(buf)


def mock_setup(root: PathLike, devs: List[MockDev]) -> None:
    root = Path(root)
    shutil.rmtree(root, ignore_errors=True)
    root.mkdir(parents=True)
    for m in devs:
        d = root / m.addr
        d.mkdir(parents=True, exist_ok=True)
        (d / "vendor").write_text(m.vendor)
        (d / "device").write_text(m.device)
        (d / "class").write_text(m.klass)
        if m.is_bridge:
            (d / "config").write_bytes(bridge_config(m.bridge))
        if m.with_aer:
            for name, content in AER_CONTENT.items():
                (d / name).write_text(content)


# fmt: off
SIMPLE = [
    # 4-level chain
    _dev("0000:00:00.0", True,  (0, 1, 3),          "0x1234", "0xabcd", "0x060400", False),
    _dev("0000:01:00.0", True,  (1, 2, 3),          "0x1234", "0xbcde", "0x060400", True),
    _dev("0000:02:00.0", True,  (2, 3, 3),          "0x1234", "0xcdef", "0x060400", False),
    _dev("0000:03:00.0", False, (0, 0, 0),          "0x1234", "0xdef0", "0x030000", True),
    # 3-level chain
    _dev("0000:10:00.0", True,  (0x10, 0x11, 0x12), "0x1111", "0x2222", "0x060400", True),
    _dev("0000:11:00.0", True,  (0x11, 0x12, 0x12), "0x1111", "0x3333", "0x060400", False),
    _dev("0000:12:00.0", False, (0, 0, 0),          "0x1111", "0x4444", "0x030000", True),
    # 2-level chain
    _dev("0000:20:00.0", True,  (0x20, 0x21, 0x21), "0x5555", "0x6666", "0x060400", False),
    _dev("0000:21:00.0", False, (0, 0, 0),          "0x5555", "0x7777", "0x030000", True),
    # isolated
    _dev("0000:30:00.0", False, (0, 0, 0),          "0x9999", "0xaaaa", "0x030000", False),
]

COMPLEX = [
    _dev("0000:40:00.0", False, (0, 0, 0),          "0xfeed", "0x0001", "0x030000", False),
    # 50 -> 51
    _dev("0000:50:00.0", True,  (0x50, 0x51, 0x51), "0xbeef", "0x0101", "0x060400", True),
    _dev("0000:51:00.0", False, (0, 0, 0),          "0xbeef", "0x0102", "0x030000", False),
    # trunk 70 -> 71 -> 72 -> 73 -> 74
    _dev("0000:70:00.0", True,  (0x70, 0x71, 0x7D), "0xdead", "0x0301", "0x060400", False),
    _dev("0000:71:00.0", True,  (0x71, 0x72, 0x7D), "0xdead", "0x0302", "0x060400", True),
    _dev("0000:72:00.0", True,  (0x72, 0x73, 0x73), "0xdead", "0x0303", "0x060400", False),
    _dev("0000:73:00.0", True,  (0x73, 0x74, 0x74), "",       "",       "0x060400", True),
    _dev("0000:74:00.0", False, (0, 0, 0),          "",       "",       "0x030000", True),
    # 75 sits under 71 directly, skipping a level
    _dev("0000:75:00.0", False, (0, 0, 0),          "0xdead", "0x0350", "0x030000", False),
    # 77 -> 78 -> 79
    _dev("0000:77:00.0", True,  (0x77, 0x78, 0x78), "0xdead", "0x0303", "0x060400", False),
    _dev("0000:78:00.0", True,  (0x78, 0x79, 0x79), "",       "",       "0x060400", True),
    _dev("0000:79:00.0", False, (0, 0, 0),          "",       "",       "0x030000", True),
    _dev("0000:7c:00.0", False, (0, 0, 0),          "0xdead", "0x0303", "0x030000", False),
    _dev("0000:7d:00.0", False, (0, 0, 0),          "0xdead", "0x0303", "0x030000", False),
    _dev("0000:80:00.0", False, (0, 0, 0),          "0xcafe", "0x0401", "0x030000", True),
]

MULTI_DOMAIN = [
    # domain 0001: 4 levels
    _dev("0001:00:00.0", True,  (0x00, 0x01, 0x04), "0xaaaa", "0x1111", "0x060400", True),
    _dev("0001:01:00.0", True,  (0x01, 0x02, 0x04), "0xaaaa", "0x2222", "0x060400", False),
    _dev("0001:02:00.0", True,  (0x02, 0x03, 0x04), "0xaaaa", "0x3333", "0x060400", True),
    _dev("0001:04:00.0", False, (0, 0, 0),          "0xaaaa", "0x4444", "0x030000", True),
    # domain 0001: non-contiguous buses 06 -> 10
    _dev("0001:06:00.0", True,  (0x06, 0x07, 0x10), "0xbbbb", "0x5555", "0x060400", True),
    _dev("0001:10:00.0", False, (0, 0, 0),          "0xbbbb", "0x6666", "0x030000", False),
    # domain 0002
    _dev("0002:20:00.0", True,  (0x20, 0x21, 0x21), "0xcccc", "0x7777", "0x060400", False),
    _dev("0002:21:00.0", False, (0, 0, 0),          "0xcccc", "0x8888", "0x030000", True),
    # domain 0003: no AER
    _dev("0003:30:00.0", False, (0, 0, 0),          "0xdddd", "0x9999", "0x030000", False),
    # domain 0004: AER
    _dev("0004:40:00.0", False, (0, 0, 0),          "0xeeee", "0xaaaa", "0x030000", True),
]
# fmt: on


def random_devices(seed: Optional[int] = None) -> List[MockDev]:
    """
    A few linear bridge chains in random domains, each ending in a leaf.
    Bus numbers are allocated upward per domain so chains never overlap.
    """
    rng = random.Random(seed)
    devs: List[MockDev] = []
    next_bus: Dict[int, int] = {}
    for _ in range(rng.randint(1, 4)):
        dom = rng.randint(0, 2)
        depth = rng.randint(1, 4)
        bus = next_bus.get(dom, 0)
        if bus + depth >= 0xFF:
            continue
        last = bus + depth
        vendor = f"0x{rng.randint(1, 0xFFFE):04x}"
        for level in range(depth):
            b = bus + level
            devs.append(
                MockDev(
                    addr=f"{dom:04x}:{b:02x}:00.0",
                    is_bridge=True,
                    bridge=PciBridgeInfo(b, b + 1, last),
                    vendor=vendor,
                    device=f"0x{rng.randint(0, 0xFFFF):04x}",
                    klass="0x060400",
                    with_aer=rng.random() < 0.3,
                )
            )
        devs.append(
            MockDev(
                addr=f"{dom:04x}:{last:02x}:00.0",
                is_bridge=False,
                vendor=vendor,
                device=f"0x{rng.randint(0, 0xFFFF):04x}",
                klass="0x030000",
                with_aer=rng.random() < 0.3,
            )
        )
        next_bus[dom] = last + 1
    return devs


def mock_simple(root: PathLike) -> None:
    mock_setup(root, SIMPLE)


def mock_complex(root: PathLike) -> None:
    mock_setup(root, COMPLEX)


def mock_multi_domain(root: PathLike) -> None:
    mock_setup(root, MULTI_DOMAIN)


def mock_random(root: PathLike, seed: Optional[int] = None) -> None:
    if seed is None and os.getenv("PCIEAER_MOCK_SEED"):
        seed = int(os.environ["PCIEAER_MOCK_SEED"])
    mock_setup(root, random_devices(seed))


MOCKERS: Dict[str, Callable[[PathLike], None]] = {
    "simple": mock_simple,
    "complex": mock_complex,
    "random": mock_random,
    "multi-domain": mock_multi_domain,
}


def get_mocker(name: str) -> Callable[[PathLike], None]:
    try:
        return MOCKERS[name]
    except KeyError:
        raise ValueError(
            f"unknown mock scenario: {name} (choose from {', '.join(sorted(MOCKERS))})"
        ) from None
