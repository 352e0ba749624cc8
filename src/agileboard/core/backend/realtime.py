"""
Supabase Realtime change feed.

Speaks the Phoenix channel protocol over a websocket:

1. connect to ``wss://<ref>.supabase.co/realtime/v1/websocket?apikey=...``
2. ``phx_join`` the topic ``realtime:<channel>`` with a ``postgres_changes``
   config listing every table of interest
3. send a ``heartbeat`` on the ``phoenix`` topic every few seconds
4. forward each ``postgres_changes`` message to the callback
5. ``phx_leave`` and close the socket on unsubscribe

There is no reconnect: when the socket drops, the subscription ends and
the failure is logged.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from typing import Any
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from agileboard.core.backend.errors import RealtimeError
from agileboard.core.backend.protocol import ChangeCallback, ChangeEvent

logger = logging.getLogger(__name__)

PHOENIX_TOPIC = "phoenix"
PROTOCOL_VERSION = "1.0.0"


def realtime_socket_url(url: str, key: str) -> str:
    """Build the websocket URL for a project URL."""
    base = url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    query = urlencode({"apikey": key, "vsn": PROTOCOL_VERSION})
    return f"{base}/realtime/v1/websocket?{query}"


def parse_change_event(message: dict[str, Any]) -> ChangeEvent:
    """Extract table/type/record id from a ``postgres_changes`` message."""
    data = (message.get("payload") or {}).get("data") or {}
    record = data.get("record") or data.get("old_record") or {}
    record_id = record.get("id")
    return ChangeEvent(
        table=data.get("table"),
        type=data.get("type") or data.get("eventType") or "*",
        record_id=str(record_id) if record_id is not None else None,
    )


class RealtimeSubscription:
    """A joined channel. close() leaves it and closes the socket once."""

    def __init__(self, socket: Any, topic: str, refs: itertools.count) -> None:
        self._socket = socket
        self._topic = topic
        self._refs = refs
        self._tasks: list[asyncio.Task[None]] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def attach(self, *tasks: asyncio.Task[None]) -> None:
        self._tasks.extend(tasks)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Realtime task failed before close")

        try:
            await self._socket.send(
                json.dumps(
                    {
                        "topic": self._topic,
                        "event": "phx_leave",
                        "payload": {},
                        "ref": str(next(self._refs)),
                    }
                )
            )
        except (ConnectionClosed, WebSocketException, OSError) as e:
            logger.debug("Socket already gone on leave: %s", e)
        await self._socket.close()
        logger.info("Left realtime channel %s", self._topic)


class SupabaseRealtime:
    """
    Change feed backed by Supabase Realtime.

    Example:
        >>> feed = SupabaseRealtime("https://abc.supabase.co", "anon-key")
        >>> sub = await feed.subscribe(["sprints"], on_change)
        >>> await sub.close()
    """

    def __init__(
        self,
        url: str,
        key: str,
        channel: str = "schema-db-changes",
        schema: str = "public",
        heartbeat_seconds: float = 25.0,
        connect: Any = None,
    ) -> None:
        """
        Args:
            url: Project URL
            key: API key (also sent as the channel access token)
            channel: Channel name, joined as ``realtime:<channel>``
            schema: Postgres schema to listen on
            heartbeat_seconds: Heartbeat interval
            connect: Websocket connect coroutine (defaults to websockets.connect)
        """
        self.socket_url = realtime_socket_url(url, key)
        self.key = key
        self.topic = f"realtime:{channel}"
        self.schema = schema
        self.heartbeat_seconds = heartbeat_seconds
        self._connect = connect or websockets.connect

    def join_message(self, tables: list[str], ref: str) -> dict[str, Any]:
        return {
            "topic": self.topic,
            "event": "phx_join",
            "payload": {
                "config": {
                    "broadcast": {"self": False},
                    "presence": {"key": ""},
                    "postgres_changes": [
                        {"event": "*", "schema": self.schema, "table": table} for table in tables
                    ],
                },
                "access_token": self.key,
            },
            "ref": ref,
            "join_ref": ref,
        }

    async def subscribe(self, tables: list[str], on_change: ChangeCallback) -> RealtimeSubscription:
        try:
            socket = await self._connect(self.socket_url)
        except (WebSocketException, OSError) as e:
            raise RealtimeError(f"Could not connect to realtime: {e}") from e

        refs = itertools.count(1)
        try:
            await socket.send(json.dumps(self.join_message(tables, str(next(refs)))))
        except (ConnectionClosed, WebSocketException, OSError) as e:
            raise RealtimeError(f"Could not join {self.topic}: {e}") from e

        subscription = RealtimeSubscription(socket, self.topic, refs)
        subscription.attach(
            asyncio.create_task(self._read(socket, on_change)),
            asyncio.create_task(self._heartbeat(socket, refs)),
        )
        logger.info("Joined realtime channel %s for %s", self.topic, ", ".join(tables))
        return subscription

    async def _read(self, socket: Any, on_change: ChangeCallback) -> None:
        try:
            async for raw in socket:
                try:
                    message = json.loads(raw)
                except ValueError:
                    logger.warning("Dropping malformed realtime frame: %r", raw)
                    continue

                if message.get("topic") != self.topic:
                    continue

                event = message.get("event")
                if event == "postgres_changes":
                    change = parse_change_event(message)
                    logger.debug("Realtime %s on %s", change.type, change.table)
                    try:
                        await on_change(change)
                    except Exception:
                        logger.exception("Change handler failed for %s", change.table)
                elif event == "phx_reply":
                    payload = message.get("payload") or {}
                    if payload.get("status") == "error":
                        logger.error("Realtime channel error: %s", payload.get("response"))
                elif event in ("phx_error", "phx_close"):
                    logger.warning("Realtime channel %s: %s", self.topic, event)
        except ConnectionClosed as e:
            logger.warning("Realtime connection closed: %s", e)

    async def _heartbeat(self, socket: Any, refs: itertools.count) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_seconds)
            try:
                await socket.send(
                    json.dumps(
                        {
                            "topic": PHOENIX_TOPIC,
                            "event": "heartbeat",
                            "payload": {},
                            "ref": str(next(refs)),
                        }
                    )
                )
            except ConnectionClosed:
                return
