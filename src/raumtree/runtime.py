"""Serialized snapshot processing.

Snapshot payloads enter a single queue and are reconciled one pass at a
time by one worker task, so two passes never race on the same paths.
Submitting never blocks the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from raumtree._mqtt import COMBINED_STATE_CHANGED, TopologyEvent
from raumtree._redact import redact_for_log
from raumtree.exceptions import MalformedSnapshotError, RaumtreeError
from raumtree.ingestion.snapshot import parse_snapshot
from raumtree.reconcile import ReconcileReport, TopologyReconciler

_logger = logging.getLogger(__name__)

_STOP = object()

# Provider events that carry no snapshot; they are logged only.
_LOGGED_EVENTS: dict[str, str] = {
    "systemReady": "System ready: %s",
    "zoneCreated": "Zone created: %s",
    "zoneRemoved": "Zone removed: %s",
    "roomAddedToZone": "Room added to zone: %s",
    "roomRemovedFromZone": "Room removed from zone: %s",
    "rendererMediaItemDataChanged": "Renderer media item changed: %s",
    "zoneConfigurationChanged": "Zone configuration changed: %s",
}


class MirrorRuntime:
    """Queue + worker that feeds snapshots to a :class:`TopologyReconciler`.

    Usage::

        async with MirrorRuntime(reconciler) as runtime:
            runtime.submit(payload)
            await runtime.join()
    """

    def __init__(
        self,
        reconciler: TopologyReconciler,
        *,
        coalesce: bool = False,
        on_report: Callable[[ReconcileReport], None] | None = None,
    ) -> None:
        self._reconciler = reconciler
        self._coalesce = coalesce
        self._on_report = on_report
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[Any] | None = None
        self._worker: asyncio.Task[None] | None = None
        self.passes = 0
        self.dropped = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> MirrorRuntime:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Start the worker on the running loop."""
        if self.is_running:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._worker = self._loop.create_task(self._run(self._queue))

    async def stop(self, *, drain: bool = True) -> None:
        """Stop the worker after the pass in progress.

        With *drain*, queued snapshots are processed first; otherwise they
        are discarded.
        """
        queue, worker = self._queue, self._worker
        if queue is None or worker is None:
            return
        if not drain:
            while not queue.empty():
                queue.get_nowait()
                queue.task_done()
                self.dropped += 1
        queue.put_nowait(_STOP)
        await worker
        self._queue = None
        self._worker = None
        self._loop = None

    async def join(self) -> None:
        """Wait until every submitted snapshot has been processed."""
        if self._queue is not None:
            await self._queue.join()

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def submit(self, payload: Any) -> None:
        """Queue a raw snapshot payload. Must be called on the runtime's loop."""
        if self._queue is None:
            raise RaumtreeError("Runtime not started. Use 'async with MirrorRuntime(...) as runtime:'")
        self._queue.put_nowait(payload)

    def submit_threadsafe(self, payload: Any) -> None:
        """Queue a payload from a thread other than the loop's."""
        if self._loop is None:
            raise RaumtreeError("Runtime not started")
        self._loop.call_soon_threadsafe(self.submit, payload)

    def handle_event(self, event: TopologyEvent) -> None:
        """Route a provider event: snapshots are queued, the rest logged."""
        if event.event == COMBINED_STATE_CHANGED:
            self.submit(event.payload)
            return
        message = _LOGGED_EVENTS.get(event.event)
        if message is not None:
            _logger.info(message, redact_for_log(event.payload))
        else:
            _logger.debug("Ignoring provider event %s", event.event)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _take_latest(self, queue: asyncio.Queue[Any], item: Any) -> tuple[Any, bool]:
        """Replace *item* with the newest queued payload; report a pending stop."""
        while not queue.empty():
            newer = queue.get_nowait()
            queue.task_done()
            if newer is _STOP:
                return item, True
            self.dropped += 1
            item = newer
        return item, False

    async def _run(self, queue: asyncio.Queue[Any]) -> None:
        while True:
            item = await queue.get()
            try:
                if item is _STOP:
                    return
                stop_after = False
                if self._coalesce:
                    item, stop_after = self._take_latest(queue, item)
                await self._process(item)
                if stop_after:
                    return
            finally:
                queue.task_done()

    async def _process(self, payload: Any) -> None:
        _logger.debug("Snapshot received: %s", redact_for_log(payload))
        try:
            snapshot = parse_snapshot(payload)
            report = await self._reconciler.reconcile(snapshot)
        except MalformedSnapshotError as exc:
            _logger.warning("Discarding snapshot: %s", exc)
            return
        except Exception:
            _logger.exception("Reconciliation pass failed")
            return
        finally:
            self.passes += 1

        _logger.info(
            "Mirrored %d rooms (%d removed, %d failed, %d skipped)",
            len(report.rooms),
            len(report.removed),
            len(report.failed),
            len(report.skipped),
        )
        if self._on_report is not None:
            try:
                self._on_report(report)
            except Exception:
                _logger.exception("Report callback failed")
