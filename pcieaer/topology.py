# pcieaer/topology.py
"""
Bridge hierarchy inference.

sysfs-style trees carry no parent pointer. A PCI-to-PCI bridge only advertises
the inclusive bus range [secondary, subordinate] it forwards, so a device's
parent is the bridge in the same domain whose range most tightly encloses the
device's bus. That rule holds for arbitrarily deep chains, for bus numbering
with gaps, and across any number of independent domains.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple
import logging
import weakref

from .features import PciBridgeInfo
from .sysfs import PciDevice

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Node:
    device: PciDevice
    _parent: Optional[weakref.ReferenceType["Node"]] = field(default=None, repr=False)
    children: List["Node"] = field(default_factory=list, repr=False)

    @property
    def parent(self) -> Optional["Node"]:
        return self._parent() if self._parent else None

    @property
    def address(self) -> str:
        return self.device.address


def _rank(bridge: PciBridgeInfo) -> Tuple[int, int]:
    return (bridge.width, bridge.secondary)


def find_parent(dev: PciDevice, bridges: Iterable[PciDevice]) -> Optional[PciDevice]:
    """
    Pick the tightest bridge forwarding `dev.bus`: smallest (subordinate -
    secondary), then smallest secondary. A tie on both is ambiguous; it is
    logged and the lowest address wins.

    `bridges` must already be restricted to dev's domain.
    """
    best: Optional[PciDevice] = None
    best_info: Optional[PciBridgeInfo] = None
    for cand in sorted(bridges, key=lambda b: b.address):
        info = cand.bridge
        if cand is dev or info is None or not info.forwards(dev.bus):
            continue
        if best is None or best_info is None:
            best, best_info = cand, info
            continue
        if _rank(info) < _rank(best_info):
            best, best_info = cand, info
        elif _rank(info) == _rank(best_info):
            logger.error(
                "ambiguous PCIe topology for %s: %s and %s both forward bus "
                "%02x-%02x; keeping %s, needs manual inspection",
                dev.address,
                best.address,
                cand.address,
                info.secondary,
                info.subordinate,
                best.address,
            )
    return best


def _break_cycles(parent_of: Dict[str, Optional[str]]) -> None:
    """
    Contradictory bridge programming (two bridges each forwarding the other's
    bus) makes the parent map cyclic. Detach the lowest address of every cycle.
    """
    done: set = set()
    for start in sorted(parent_of):
        path: List[str] = []
        on_path: set = set()
        cur: Optional[str] = start
        while cur is not None and cur not in done and cur not in on_path:
            path.append(cur)
            on_path.add(cur)
            cur = parent_of.get(cur)
        if cur is not None and cur in on_path:
            cycle = path[path.index(cur):]
            victim = min(cycle)
            logger.error(
                "PCIe bridge ranges form a cycle (%s); treating %s as a root",
                " -> ".join(cycle),
                victim,
            )
            parent_of[victim] = None
        done.update(path)


def build_tree(devices: Dict[str, PciDevice]) -> Dict[int, List[Node]]:
    """
    Derive parent/children for every device from bridge bus ranges.

    Writes `parent` (address) and `children` back onto each PciDevice, after
    clearing whatever a previous call left there, and returns the parentless
    nodes of each domain sorted by address.
    """
    for d in devices.values():
        d.parent = None
        d.children = []

    bridges_by_domain: Dict[int, List[PciDevice]] = {}
    for d in devices.values():
        if d.is_bridge():
            bridges_by_domain.setdefault(d.domain, []).append(d)

    parent_of: Dict[str, Optional[str]] = {}
    for addr, d in devices.items():
        best = find_parent(d, bridges_by_domain.get(d.domain, ()))
        parent_of[addr] = best.address if best is not None else None

    _break_cycles(parent_of)

    nodes = {addr: Node(device=d) for addr, d in devices.items()}
    for addr in sorted(nodes):
        paddr = parent_of[addr]
        if paddr is None:
            continue
        n, p = nodes[addr], nodes[paddr]
        n._parent = weakref.ref(p)
        p.children.append(n)
        n.device.parent = paddr
        p.device.children.append(n.device)

    roots: Dict[int, List[Node]] = {}
    for addr in sorted(nodes):
        n = nodes[addr]
        if n.parent is None:
            roots.setdefault(n.device.domain, []).append(n)
    return roots


def walk(roots: Iterable[Node]) -> Iterator[Tuple[int, Node]]:
    """Depth-first (depth, node) pairs, children in address order."""
    stack: List[Tuple[int, Node]] = [(0, n) for n in reversed(list(roots))]
    while stack:
        depth, n = stack.pop()
        yield depth, n
        for c in reversed(n.children):
            stack.append((depth + 1, c))


def ancestors(dev: PciDevice, devices: Dict[str, PciDevice]) -> List[PciDevice]:
    """Parent chain of `dev`, nearest first. Requires build_tree() to have run."""
    out: List[PciDevice] = []
    seen = {dev.address}
    cur = dev.parent
    while cur is not None and cur not in seen and cur in devices:
        seen.add(cur)
        p = devices[cur]
        out.append(p)
        cur = p.parent
    return out
