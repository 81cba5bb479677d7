#!/usr/bin/env python3
"""Mirror live topology events from MQTT into the object tree.

Subscribes to the provider bridge topic (``RAUMTREE_MQTT_*``), queues
every ``combinedZoneStateChanged`` snapshot and reconciles them one at a
time into the backend at ``RAUMTREE_BACKEND_URL`` (in-memory if unset).
Stop with Ctrl+C.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal

from raumtree import InMemoryObjectTree, MirrorConfig, MirrorRuntime, RestObjectTree, TopologyReconciler
from raumtree._mqtt import TopologyMqttSource
from raumtree.backend import ObjectTreeBackend

_LOG = logging.getLogger("mirror_live")


async def _serve(backend: ObjectTreeBackend, config: MirrorConfig) -> None:
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    reconciler = TopologyReconciler(backend, config)
    async with MirrorRuntime(reconciler, coalesce=config.coalesce) as runtime:
        source = TopologyMqttSource(loop=loop, settings=config.mqtt, on_event=runtime.handle_event)
        source.start()
        _LOG.info("Listening on %s:%s topic=%s", config.mqtt.host, config.mqtt.port, config.mqtt.topic)
        try:
            await stop.wait()
        finally:
            source.stop()
    _LOG.info("Stopped after %d passes", runtime.passes)


async def main() -> None:
    parser = argparse.ArgumentParser(description="Mirror live topology snapshots from MQTT.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = MirrorConfig.from_env()
    if config.backend_url:
        async with RestObjectTree(
            config.backend_url, token=config.backend_token, timeout=config.backend_timeout
        ) as backend:
            await _serve(backend, config)
    else:
        _LOG.warning("RAUMTREE_BACKEND_URL not set; mirroring into memory only")
        await _serve(InMemoryObjectTree(), config)


if __name__ == "__main__":
    asyncio.run(main())
