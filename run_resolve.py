from __future__ import annotations

import argparse
import asyncio
import logging
from collections import Counter
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from components.csv_loader import load_candidates
from components.discovery import CandidateRow, CandidateTable, RowTracker
from components.status_symbols import render_status

from extensions.logging import LoggingExtension

from resolver.browser import PlaywrightRenderSurface, init_browser, shutdown_browser
from resolver.channel import MessageBus
from resolver.config import Config, load_config
from resolver.fetcher import DirectFetchStrategy
from resolver.orchestrator import TaskOrchestrator
from resolver.policy import OriginPolicy
from resolver.render import IsolatedRenderStrategy
from resolver.status import Status
from resolver.utils import httpx_client
from resolver.work_queue import WorkQueue


# ----------------------------
# CLI parsing
# ----------------------------

def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Resolve which subtitle languages each candidate page advertises"
    )

    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--csv", type=Path, help="CSV file or directory of CSV files with a 'url' column")
    src.add_argument("--url", action="append", help="Candidate page URL (repeatable)")

    p.add_argument("--limit", type=int, default=None, help="Optional limit of rows per CSV file")
    p.add_argument("--max-concurrent", type=int, default=None, help="Override RESOLVER_MAX_CONCURRENT")
    p.add_argument("--no-render", action="store_true", help="Never escalate to the headless browser")
    p.add_argument("--log-file", type=Path, default=None, help="Also log to this file (DEBUG detail)")
    p.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return p.parse_args(argv)


def _load_rows(args: argparse.Namespace) -> List[CandidateRow]:
    if args.url:
        return [CandidateRow(row_id=f"url:{i}", url=u) for i, u in enumerate(args.url, start=1)]
    return [
        CandidateRow(row_id=c.row_id, url=c.url, title=c.title)
        for c in load_candidates(args.csv, limit_per_file=args.limit)
    ]


def _print_status(row: CandidateRow, status: Status) -> None:
    if not status.terminal:
        return
    label = row.title or row.url
    print(f"{render_status(status)}\t{label}", flush=True)


# ----------------------------
# Main async
# ----------------------------

async def resolve_rows(cfg: Config, rows: List[CandidateRow], *, render: bool = True) -> Counter:
    """Resolve every row and return a tally of terminal status kinds."""
    policy = OriginPolicy.from_config(cfg)
    tally: Counter = Counter()

    def _on_status(row: CandidateRow, status: Status) -> None:
        if status.terminal:
            tally[status.kind.value] += 1
        _print_status(row, status)

    async with httpx_client(cfg) as client:
        fetcher = DirectFetchStrategy(client, cfg.request_timeout_ms, policy)
        pw = browser = None
        renderer = None
        if render:
            pw, browser = await init_browser(cfg)
            bus = MessageBus()
            surface = PlaywrightRenderSurface(browser, cfg, bus, embedder=policy.embedder)
            renderer = IsolatedRenderStrategy(surface, bus, cfg.page_load_timeout_ms)
        try:
            orchestrator = TaskOrchestrator(cfg, policy, fetcher, renderer)
            queue = WorkQueue(cfg.max_concurrent, orchestrator)
            table = CandidateTable()
            tracker = RowTracker(submit=queue.submit, on_status=_on_status)
            tracker.watch(table)
            table.add_rows(rows)
            await queue.join()
        finally:
            if pw is not None:
                await shutdown_browser(pw, browser)
    return tally


async def main_async(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)

    level = getattr(logging, args.log_level)
    log_ext = LoggingExtension(args.log_file, global_level=level, file_level=logging.DEBUG)
    root_logger = logging.getLogger("run_resolve")

    cfg = load_config()
    if args.max_concurrent:
        cfg = replace(cfg, max_concurrent=max(1, args.max_concurrent))

    try:
        rows = _load_rows(args)
        if not rows:
            root_logger.error("No candidate rows in input. Exiting.")
            return
        root_logger.info("Loaded %d candidate(s) | max_concurrent=%d render=%s",
                         len(rows), cfg.max_concurrent, not args.no_render)

        tally = await resolve_rows(cfg, rows, render=not args.no_render)

        root_logger.info("Session summary:")
        for kind, n in sorted(tally.items()):
            root_logger.info("  %s: %d", kind, n)
    finally:
        log_ext.close()


# ----------------------------
# Entrypoint
# ----------------------------

def main() -> None:
    asyncio.run(main_async())

if __name__ == "__main__":
    main()
