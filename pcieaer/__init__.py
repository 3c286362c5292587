"""
pcieaer — PCIe topology + AER error-counter diagnostics from sysfs.

Public API:
    - Scanning:
        SysfsScanner, scan_all, PciAddress, PciDevice, ErrorMaps
    - Features:
        DeviceFeature, PciBridgeInfo, register_feature
    - Topology:
        build_tree, Node
    - AER summaries:
        has_errors, device_summary, all_summary, summarize
"""

from __future__ import annotations

# Version from installed dist; falls back to dev string when run from source tree.
from importlib.metadata import version, PackageNotFoundError

try:  # pragma: no cover
    __version__ = version("pcieaer")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0.dev0"

# Public API re-exports
from .aer import all_summary, device_summary, has_errors, summarize
from .features import DeviceFeature, PciBridgeInfo, register_feature
from .sysfs import ErrorMaps, PciAddress, PciDevice, SysfsScanner, scan_all
from .topology import Node, build_tree

__all__ = [
    "__version__",
    # Scanning
    "SysfsScanner",
    "scan_all",
    "PciAddress",
    "PciDevice",
    "ErrorMaps",
    # Features
    "DeviceFeature",
    "PciBridgeInfo",
    "register_feature",
    # Topology
    "build_tree",
    "Node",
    # AER
    "has_errors",
    "device_summary",
    "all_summary",
    "summarize",
]
