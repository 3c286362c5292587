# tests/test_report.py
from __future__ import annotations
from pathlib import Path
import json

from pcieaer.report import (
    build_report,
    dumps_report,
    format_table,
    format_tree,
    table_rows,
    write_report,
)
from pcieaer.sysfs import scan_all
from pcieaer.topology import build_tree
from conftest import make_device_dir


def _linked(root: Path):
    devs = scan_all(str(root))
    roots = build_tree(devs)
    return devs, roots


def test_report_shape(chain_sysfs: Path):
    devs, _ = _linked(chain_sysfs)
    rep = build_report(devs)
    assert rep["all_summary"] == "ERR"
    assert set(rep) == {"all_summary", *devs}
    assert rep["0000:00:00.0"] == {
        "summary": "OK",
        "parent": None,
        "children": ["0000:01:00.0"],
        "errors": {"correctable": {}, "non_fatal": {}, "fatal": {}},
    }
    leaf = rep["0000:03:00.0"]
    assert leaf["summary"] == "ERR"
    assert leaf["parent"] == "0000:02:00.0"
    assert leaf["children"] == []
    assert leaf["errors"]["correctable"] == {"RxErr": 1, "BadTLP": 0}


def test_dumps_and_write(chain_sysfs: Path, tmp_path: Path):
    devs, _ = _linked(chain_sysfs)
    obj = json.loads(dumps_report(devs))
    assert obj["0000:01:00.0"]["parent"] == "0000:00:00.0"
    assert obj["0000:00:00.0"]["parent"] is None

    out = tmp_path / "aer.json"
    write_report(devs, out)
    assert json.loads(out.read_text()) == obj


def test_tree_text(chain_sysfs: Path):
    _, roots = _linked(chain_sysfs)
    assert format_tree(roots) == "\n".join(
        [
            "\\-[0000]",
            "   \\- 00:00.0 [OK] 0x1234/0xabcd",
            "      \\- 01:00.0 [OK] 0x1234/0xbcde",
            "         \\- 02:00.0 [OK] 0x1234/0xcdef",
            "            \\- 03:00.0 [ERR] 0x1234/0xdef0",
        ]
    )


def test_tree_text_multiple_domains_and_siblings(devices_root: Path):
    make_device_dir(devices_root, "0000:00:01.0", vendor=0x8086, device=0x1, bridge=(0, 1, 1))
    make_device_dir(devices_root, "0000:01:00.0", vendor=0x10DE, device=0x2)
    make_device_dir(devices_root, "0000:01:00.1", vendor=0x10DE, device=0x3)
    make_device_dir(
        devices_root,
        "0001:00:00.0",
        vendor=0x15B3,
        device=0x4,
        aer={"aer_dev_fatal": "DLP 1\n"},
    )
    _, roots = _linked(devices_root)
    assert format_tree(roots) == "\n".join(
        [
            "+-[0000]",
            "│  \\- 00:01.0 [OK] 0x8086/0x0001",
            "│     +- 01:00.0 [OK] 0x10de/0x0002",
            "│     \\- 01:00.1 [OK] 0x10de/0x0003",
            "\\-[0001]",
            "   \\- 00:00.0 [ERR] 0x15b3/0x0004",
        ]
    )


def test_table_columns_are_union_of_counter_names(devices_root: Path):
    make_device_dir(devices_root, "0000:00:01.0", bridge=(0, 1, 1))
    make_device_dir(
        devices_root,
        "0000:01:00.0",
        aer={
            "aer_dev_correctable": "RxErr 2\nTOTAL_ERR_COR 2\n",
            "aer_dev_fatal": "DLP 0\n",
        },
    )
    make_device_dir(
        devices_root, "0000:02:00.0", aer={"aer_dev_nonfatal": "Undefined 4\n"}
    )
    devs, _ = _linked(devices_root)
    rows = table_rows(devs)
    assert rows[0] == [
        "Device",
        "Parent",
        "firstbornChild",
        "Summary",
        "Domain",
        "Bus",
        "Vendor",
        "DeviceID",
        "Class",
        "C-RxErr",
        "N-Undefined",
        "F-DLP",
    ]
    assert rows[1] == [
        "0000:00:01.0",
        "null",
        "0000:01:00.0",
        "OK",
        "0x0000",
        "0x00",
        "0x1234",
        "0xabcd",
        "0x060400",
        "0",
        "0",
        "0",
    ]
    assert rows[2][:4] == ["0000:01:00.0", "0000:00:01.0", "null", "ERR"]
    assert rows[2][-3:] == ["2", "0", "0"]
    assert rows[3][-3:] == ["0", "4", "0"]

    text = format_table(devs).splitlines()
    assert len(text) == 4
    assert text[0].split() == rows[0]
    assert text[3].split() == rows[3]
    # columns line up
    assert text[0].index("Parent") == text[1].index("null")


def test_empty_scan(devices_root: Path):
    devs, roots = _linked(devices_root)
    assert build_report(devs) == {"all_summary": "OK"}
    assert format_tree(roots) == ""
    assert format_table(devs).split() == table_rows(devs)[0]
