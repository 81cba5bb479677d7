#!/usr/bin/env python3
"""Reconcile one or more snapshot JSON files and print the resulting tree.

Each file holds one ``combinedZoneStateChanged`` payload. Files are
applied in order, so passing two files shows what the second pass
changes and removes.

Usage
-----
::

    python scripts/mirror_snapshot.py pass1.json pass2.json
    python scripts/mirror_snapshot.py --key udn --json pass1.json

Without ``RAUMTREE_BACKEND_URL`` the in-memory tree is used and dumped
after the last pass. With it, the passes are applied to that backend.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from raumtree import InMemoryObjectTree, MirrorConfig, RestObjectTree, TopologyReconciler, parse_snapshot
from raumtree.backend import ObjectTreeBackend
from raumtree.reconcile import ReconcileReport


def _report_dict(report: ReconcileReport) -> dict[str, Any]:
    return {
        "rooms": report.rooms,
        "created": report.created_nodes,
        "written": len(report.written),
        "deleted_leaves": report.deleted_leaves,
        "retained": report.retained,
        "removed": report.removed,
        "collisions": [str(c) for c in report.collisions],
        "failed": report.failed,
        "skipped": [s.model_dump() for s in report.skipped],
    }


async def _apply(backend: ObjectTreeBackend, config: MirrorConfig, files: list[Path]) -> list[dict[str, Any]]:
    reconciler = TopologyReconciler(backend, config)
    reports: list[dict[str, Any]] = []
    for path in files:
        payload = json.loads(path.read_text(encoding="utf-8"))
        report = await reconciler.reconcile(parse_snapshot(payload))
        reports.append({"file": str(path), **_report_dict(report)})
    return reports


async def main() -> None:
    parser = argparse.ArgumentParser(description="Mirror snapshot files into an object tree.")
    parser.add_argument("files", nargs="+", type=Path, help="Snapshot JSON files, applied in order")
    parser.add_argument("--key", choices=["name", "udn"], help="Path key for rooms")
    parser.add_argument("--root", help="Root path segment")
    parser.add_argument("--no-prune", action="store_true", help="Keep rooms absent from the snapshot")
    parser.add_argument("--json", action="store_true", help="Machine-readable output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    overrides: dict[str, Any] = {}
    if args.key:
        overrides["path_key"] = args.key
    if args.root:
        overrides["root"] = args.root
    if args.no_prune:
        overrides["prune_stale"] = False
    config = MirrorConfig.from_env(**overrides)

    tree: dict[str, Any] | None = None
    if config.backend_url:
        async with RestObjectTree(
            config.backend_url, token=config.backend_token, timeout=config.backend_timeout
        ) as rest:
            reports = await _apply(rest, config, args.files)
    else:
        memory = InMemoryObjectTree()
        reports = await _apply(memory, config, args.files)
        tree = memory.dump()

    if args.json:
        json.dump({"passes": reports, "tree": tree}, sys.stdout, indent=2, ensure_ascii=False, default=str)
        sys.stdout.write("\n")
        return

    for report in reports:
        print(f"── {report['file']}")
        print(f"   rooms:   {', '.join(report['rooms']) or '-'}")
        print(f"   created: {len(report['created'])}  written: {report['written']}")
        for path in report["removed"]:
            print(f"   removed: {path}")
        for collision in report["collisions"]:
            print(f"   collision: {collision}")
        for path, error in report["failed"].items():
            print(f"   FAILED {path}: {error}")
        for skipped in report["skipped"]:
            print(f"   skipped {skipped['list_name']}[{skipped['index']}]: {skipped['reason']}")
    if tree is not None:
        print("── tree")
        for path, value in tree.items():
            print(f"   {path}" if value is None else f"   {path} = {value!r}")


if __name__ == "__main__":
    asyncio.run(main())
