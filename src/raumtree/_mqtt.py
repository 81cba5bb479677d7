"""Internal MQTT topology event source.

A provider bridge publishes the topology provider's events as JSON
envelopes ``{"event": "<name>", "data": <payload>}``. A bare snapshot
object (no ``event`` key) is treated as ``combinedZoneStateChanged``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from raumtree.config import MqttSettings

COMBINED_STATE_CHANGED = "combinedZoneStateChanged"

_SNAPSHOT_KEYS = frozenset({"zones", "unassignedRooms", "availableRooms"})


@dataclass(frozen=True)
class TopologyEvent:
    """Normalized provider event envelope."""

    event: str
    payload: Any
    topic: str | None = None


def decode_event_payload(payload: bytes, topic: str | None = None) -> TopologyEvent | None:
    """Decode an MQTT payload into a :class:`TopologyEvent`.

    Returns ``None`` for payloads that are not a recognisable event.
    """
    try:
        parsed = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    if not isinstance(parsed, Mapping):
        return None

    event_name = parsed.get("event")
    if isinstance(event_name, str) and event_name:
        return TopologyEvent(event=event_name, payload=parsed.get("data"), topic=topic)
    if _SNAPSHOT_KEYS & parsed.keys():
        return TopologyEvent(event=COMBINED_STATE_CHANGED, payload=dict(parsed), topic=topic)
    return None


class TopologyMqttSource:
    """Threaded paho-mqtt client that emits topology events onto an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        settings: MqttSettings,
        on_event: Callable[[TopologyEvent], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._settings = settings
        self._on_event = on_event
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the MQTT network loop is active."""
        return self._running

    def _handle_message(self, topic: str, payload: bytes) -> None:
        event = decode_event_payload(payload, topic)
        if event is None:
            self._logger.debug("Dropping undecodable MQTT payload on %s (%d bytes)", topic, len(payload))
            return
        self._logger.debug("MQTT event=%s topic=%s", event.event, topic)
        self._loop.call_soon_threadsafe(self._on_event, event)

    def start(self) -> None:
        """Connect and subscribe to the configured topic."""
        self.stop()
        settings = self._settings
        self._logger.debug(
            "MQTT source start requested host=%s port=%s topic=%s client_id=%s",
            settings.host,
            settings.port,
            settings.topic,
            settings.client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=settings.client_id,
        )
        client.enable_logger(self._logger)
        if settings.username:
            client.username_pw_set(settings.username, settings.password)
        if settings.tls:
            client.tls_set()

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.is_failure:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected, subscribing topic=%s", settings.topic)
            c.subscribe(settings.topic, qos=1)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                self._handle_message(msg.topic, msg.payload)
            except Exception:
                self._logger.debug("MQTT message handling failure", exc_info=True)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect(settings.host, settings.port, keepalive=settings.keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect the current client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
