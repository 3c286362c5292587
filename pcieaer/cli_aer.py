#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import argparse
import logging
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .aer import all_summary
from .log import setup_logging
from .mock import MOCKERS, get_mocker
from .report import format_table, format_tree, write_report
from .sysfs import SYSFS_DEVICES_DEFAULT, default_sysfs_root, scan_all
from .topology import build_tree

logger = logging.getLogger(__name__)

VIEWS = ("tree", "table", "both", "none")

EXIT_OK = 0
EXIT_SCAN_FAILED = 1
EXIT_USAGE = 2


@dataclass
class ProgramArgs:
    sysfs_path: str
    json_file: Optional[str] = None
    view: str = "none"
    mock_scenario: Optional[str] = None
    log_level: Optional[str] = None
    log_file: Optional[str] = None


def _is_live_sysfs(path: str) -> bool:
    return Path(path).resolve() == Path(SYSFS_DEVICES_DEFAULT).resolve()


def error_read(args: ProgramArgs) -> None:
    """Scan, link and report; raises on usage errors or an unreadable root."""
    if args.view not in VIEWS:
        raise ValueError(f"unknown view: {args.view}")

    devices = scan_all(args.sysfs_path)
    roots = build_tree(devices)
    logger.info(
        "%d devices in %d domains, overall %s",
        len(devices),
        len(roots),
        all_summary(devices),
    )

    if args.json_file:
        write_report(devices, args.json_file)

    if args.view in ("tree", "both"):
        print(format_tree(roots))
    if args.view in ("table", "both"):
        print(format_table(devices))


def run(args: ProgramArgs) -> int:
    mocked = False
    try:
        if args.mock_scenario:
            if _is_live_sysfs(args.sysfs_path):
                logger.warning(
                    "refusing to mock %r over live %s; scanning it as-is",
                    args.mock_scenario,
                    args.sysfs_path,
                )
            else:
                mocker = get_mocker(args.mock_scenario)
                # a half-written tree is removed too
                mocked = True
                mocker(args.sysfs_path)
        error_read(args)
    except ValueError as e:
        logger.error("%s", e)
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except OSError as e:
        logger.error("scan failed: %s", e)
        print(f"error: {e}", file=sys.stderr)
        return EXIT_SCAN_FAILED
    finally:
        if mocked:
            shutil.rmtree(args.sysfs_path, ignore_errors=True)
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Read PCIe topology and AER error counters from sysfs"
    )
    ap.add_argument(
        "--sysfs-root",
        "--sysfs",
        dest="sysfs_path",
        default=default_sysfs_root(),
        help="path to /sys/bus/pci/devices (or a mocked copy)",
    )
    ap.add_argument("--json-file", default=None, help="save the JSON report here")
    ap.add_argument("--view", choices=VIEWS, default="none", help="what to print")
    ap.add_argument(
        "--mock-scenario",
        choices=sorted(MOCKERS),
        default=None,
        help="populate --sysfs-root with a synthetic tree first (removed afterwards)",
    )
    ap.add_argument(
        "-e", "--log-level", default=None, help="DEBUG/INFO/WARNING/ERROR"
    )
    ap.add_argument(
        "-l",
        "--log-file",
        default=None,
        help='log file name ("stdout" for standard output, default stderr)',
    )
    return ap


def main() -> None:  # pragma: no cover
    ap = build_parser()
    args = ProgramArgs(**vars(ap.parse_args()))
    try:
        setup_logging(args.log_level, args.log_file)
    except ValueError as e:
        ap.error(str(e))
    sys.exit(run(args))


if __name__ == "__main__":  # pragma: no cover
    main()
