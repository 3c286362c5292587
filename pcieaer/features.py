# pcieaer/features.py
"""
Device features: optional capabilities parsed out of a device's raw config
space and attached to a PciDevice by name.

A feature only needs a name, the byte offsets it reads and a description.
The scanner asks the registry which features apply to a given base class, so
new feature types plug in through `register_feature` alone.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List, Protocol, Tuple, runtime_checkable

# fmt: off
FEATURE_BRIDGE  = "bridge"
FEATURE_AER     = "aer"
FEATURE_HOTPLUG = "hotplug"
FEATURE_SRIOV   = "sriov"
FEATURE_VGA     = "vga"
FEATURE_STORAGE = "storage"

# Base class codes (bits 23:16 of the class code)
PCI_CLASS_STORAGE = 0x01
PCI_CLASS_DISPLAY = 0x03
PCI_CLASS_BRIDGE  = 0x06

# Bridge subclasses (bits 15:8 when base == 0x06)
PCI_SUBCLASS_PCI_TO_PCI = 0x04
PCI_SUBCLASS_CARDBUS    = 0x07

PCI_PROGIF_PCI_TO_PCI_STANDARD = 0x00

# Type 0/1 common header
PCI_CFG_VENDOR_ID     = 0x00
PCI_CFG_DEVICE_ID     = 0x02
PCI_CFG_REVISION_ID   = 0x08
PCI_CFG_PROG_IF       = 0x09
PCI_CFG_SUBCLASS      = 0x0A
PCI_CFG_CLASS_CODE    = 0x0B
PCI_CFG_HEADER_TYPE   = 0x0E
PCI_CFG_INTERRUPT_PIN = 0x3D

# Type 1 (PCI-to-PCI bridge) header
PCI_CFG_PRIMARY_BUS     = 0x18
PCI_CFG_SECONDARY_BUS   = 0x19
PCI_CFG_SUBORDINATE_BUS = 0x1A
# fmt: on


@runtime_checkable
class DeviceFeature(Protocol):
    @property
    def name(self) -> str: ...

    def from_config(self, cfg: bytes) -> None:
        """Populate from raw config bytes; ValueError if `cfg` is too short."""
        ...

    def describe(self) -> str: ...


def _u8(b: bytes, off: int) -> int:
    return b[off]


@dataclass
class PciBridgeInfo:
    primary: int = 0
    secondary: int = 0
    subordinate: int = 0

    @property
    def name(self) -> str:
        return FEATURE_BRIDGE

    @property
    def width(self) -> int:
        # number of buses forwarded beyond the secondary one
        return self.subordinate - self.secondary

    def forwards(self, bus: int) -> bool:
        return self.secondary <= bus <= self.subordinate

    def from_config(self, cfg: bytes) -> None:
        if len(cfg) <= PCI_CFG_SUBORDINATE_BUS:
            raise ValueError(
                f"config too short for bridge: {len(cfg)} bytes, "
                f"need {PCI_CFG_SUBORDINATE_BUS + 1}"
            )
        self.primary = _u8(cfg, PCI_CFG_PRIMARY_BUS)
        self.secondary = _u8(cfg, PCI_CFG_SECONDARY_BUS)
        self.subordinate = _u8(cfg, PCI_CFG_SUBORDINATE_BUS)

    def describe(self) -> str:
        return (
            f"Bridge: primary={self.primary:02X} secondary={self.secondary:02X} "
            f"subordinate={self.subordinate:02X}"
        )


FeatureFactory = Callable[[], DeviceFeature]

_REGISTRY: Dict[int, List[FeatureFactory]] = {}


def register_feature(base_class: int, factory: FeatureFactory) -> None:
    """Have the scanner try `factory()` on every device of `base_class`."""
    _REGISTRY.setdefault(base_class & 0xFF, []).append(factory)


def features_for_class(base_class: int) -> Tuple[FeatureFactory, ...]:
    return tuple(_REGISTRY.get(base_class & 0xFF, ()))


register_feature(PCI_CLASS_BRIDGE, PciBridgeInfo)
