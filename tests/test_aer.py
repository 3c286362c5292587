# tests/test_aer.py
from __future__ import annotations
from pathlib import Path

from pcieaer.aer import (
    SUMMARY_ERR,
    SUMMARY_OK,
    all_summary,
    device_summary,
    error_columns,
    has_errors,
    summarize,
)
from pcieaer.sysfs import ErrorMaps, PciDevice, scan_all
from pcieaer.topology import build_tree


def _dev(addr: str, **errors) -> PciDevice:
    return PciDevice(address=addr, domain=0, bus=0, errors=ErrorMaps(**errors))


def test_has_errors_any_category():
    assert not has_errors(_dev("a"))
    assert not has_errors(_dev("a", correctable={"RxErr": 0}, fatal={"DLP": 0}))
    assert has_errors(_dev("a", correctable={"RxErr": 1}))
    assert has_errors(_dev("a", non_fatal={"Undefined": 2}))
    assert has_errors(_dev("a", fatal={"DLP": 3}))


def test_all_summary():
    assert all_summary({}) == SUMMARY_OK
    clean = {"a": _dev("a", correctable={"RxErr": 0}), "b": _dev("b")}
    assert all_summary(clean) == SUMMARY_OK
    clean["c"] = _dev("c", fatal={"SDES": 1})
    assert all_summary(clean) == SUMMARY_ERR


def test_summaries_are_not_propagated(chain_sysfs: Path):
    devs = scan_all(str(chain_sysfs))
    build_tree(devs)
    sums = summarize(devs)
    assert sums == {
        "0000:00:00.0": SUMMARY_OK,
        "0000:01:00.0": SUMMARY_OK,
        "0000:02:00.0": SUMMARY_OK,
        "0000:03:00.0": SUMMARY_ERR,
    }
    assert device_summary(devs["0000:02:00.0"]) == SUMMARY_OK
    assert all_summary(devs) == SUMMARY_ERR


def test_error_columns_union():
    devs = {
        "a": _dev("a", correctable={"RxErr": 1, "BadTLP": 0}),
        "b": _dev("b", correctable={"Timeout": 0}, fatal={"DLP": 0}),
        "c": _dev("c", non_fatal={"Undefined": 0}),
    }
    cols = error_columns(devs)
    assert cols.correctable == ["BadTLP", "RxErr", "Timeout"]
    assert cols.non_fatal == ["Undefined"]
    assert cols.fatal == ["DLP"]
