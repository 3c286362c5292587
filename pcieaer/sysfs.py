# pcieaer/sysfs.py
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional
import logging
import os

from .attrs import parse_hex, read_config, read_error_map, read_hex_str
from .features import (
    FEATURE_BRIDGE,
    DeviceFeature,
    PciBridgeInfo,
    features_for_class,
)

logger = logging.getLogger(__name__)

SYSFS_DEVICES_DEFAULT = "/sys/bus/pci/devices"

AER_FILES = {
    "correctable": "aer_dev_correctable",
    "non_fatal": "aer_dev_nonfatal",
    "fatal": "aer_dev_fatal",
}


def default_sysfs_root() -> str:
    return os.getenv("PCIEAER_SYSFS") or SYSFS_DEVICES_DEFAULT


def _hex_field(s: str, bits: int) -> int:
    try:
        return parse_hex(s, bits)
    except ValueError:
        return 0


@dataclass(frozen=True, slots=True)
class PciAddress:
    domain: int
    bus: int
    device: int
    function: int

    @classmethod
    def parse(cls, name: str) -> "PciAddress":
        """
        Parse ``DDDD:BB:DD.F``. Every field that cannot be decoded becomes 0 so a
        single odd directory name never stops a scan.
        """
        parts = name.split(":")
        dom = _hex_field(parts[0], 16) if len(parts) > 1 else 0
        bus = _hex_field(parts[1], 8) if len(parts) > 1 else 0
        slot, func = 0, 0
        if len(parts) > 2:
            devfunc = parts[2].split(".", 1)
            slot = _hex_field(devfunc[0], 8)
            if len(devfunc) > 1:
                func = _hex_field(devfunc[1], 8)
        return cls(dom, bus, slot, func)

    def __str__(self) -> str:
        return f"{self.domain:04x}:{self.bus:02x}:{self.device:02x}.{self.function}"


@dataclass
class ErrorMaps:
    correctable: Dict[str, int] = field(default_factory=dict)
    non_fatal: Dict[str, int] = field(default_factory=dict)
    fatal: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def read(cls, d: Path) -> "ErrorMaps":
        return cls(**{k: read_error_map(d / fn) for k, fn in AER_FILES.items()})

    def categories(self) -> Dict[str, Dict[str, int]]:
        return {
            "correctable": self.correctable,
            "non_fatal": self.non_fatal,
            "fatal": self.fatal,
        }

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {k: dict(v) for k, v in self.categories().items()}


@dataclass(eq=False)
class PciDevice:
    address: str
    domain: int
    bus: int
    vendor_id: str = "0x0000"
    device_id: str = "0x0000"
    class_code: str = "0x000000"
    errors: ErrorMaps = field(default_factory=ErrorMaps)
    parent: Optional[str] = None
    children: List["PciDevice"] = field(default_factory=list, repr=False)
    features: List[DeviceFeature] = field(default_factory=list)

    @property
    def class_value(self) -> int:
        return _hex_field(self.class_code, 24)

    @property
    def base_class(self) -> int:
        return (self.class_value >> 16) & 0xFF

    @property
    def sub_class(self) -> int:
        return (self.class_value >> 8) & 0xFF

    @property
    def prog_if(self) -> int:
        return self.class_value & 0xFF

    def add_feature(self, feature: DeviceFeature, cfg: bytes) -> None:
        # from_config raises before anything is attached
        feature.from_config(cfg)
        self.features.append(feature)

    def get_feature(self, name: str) -> Optional[DeviceFeature]:
        for f in self.features:
            if f.name == name:
                return f
        return None

    def is_bridge(self) -> bool:
        return self.get_feature(FEATURE_BRIDGE) is not None

    @property
    def bridge(self) -> Optional[PciBridgeInfo]:
        f = self.get_feature(FEATURE_BRIDGE)
        return f if isinstance(f, PciBridgeInfo) else None

    def feature_names(self) -> List[str]:
        return [f.name for f in self.features]


class SysfsScanner:
    """Builds one PciDevice per directory found under a sysfs-style root."""

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or default_sysfs_root())

    def scan(self) -> Dict[str, PciDevice]:
        devices: Dict[str, PciDevice] = {}
        # The only fatal error: an unlistable root raises OSError here.
        entries = sorted(self.root.iterdir(), key=lambda p: p.name)
        for d in entries:
            if not d.is_dir():
                continue
            dev = self.read_device(d)
            devices[dev.address] = dev
        logger.debug("scanned %d devices under %s", len(devices), self.root)
        return devices

    @staticmethod
    def read_device(d: Path) -> PciDevice:
        addr = PciAddress.parse(d.name)
        dev = PciDevice(
            address=d.name,
            domain=addr.domain,
            bus=addr.bus,
            vendor_id=read_hex_str(d / "vendor"),
            device_id=read_hex_str(d / "device"),
            class_code=read_hex_str(d / "class", width=6),
            errors=ErrorMaps.read(d),
        )

        factories = features_for_class(dev.base_class)
        if factories:
            cfg = read_config(d / "config")
            for factory in factories:
                try:
                    dev.add_feature(factory(), cfg)
                except ValueError as e:
                    logger.debug("%s: feature not attached: %s", dev.address, e)
        return dev

    # Convenience queries
    @staticmethod
    def find_by_address(devs: Dict[str, PciDevice], address: str) -> Optional[PciDevice]:
        return devs.get(address)

    @staticmethod
    def find_by_vendor(devs: Dict[str, PciDevice], vendor_id: int) -> List[PciDevice]:
        want = f"0x{vendor_id & 0xFFFF:04x}"
        return [d for _, d in sorted(devs.items()) if d.vendor_id == want]

    @staticmethod
    def bridges(devs: Dict[str, PciDevice]) -> Iterator[PciDevice]:
        for _, d in sorted(devs.items()):
            if d.is_bridge():
                yield d


def scan_all(root: Optional[str] = None) -> Dict[str, PciDevice]:
    return SysfsScanner(root).scan()
