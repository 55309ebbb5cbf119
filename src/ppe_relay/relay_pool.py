"""Async multi-relay client speaking the NIP-01 wire protocol.

One ``RelayPool`` fans a subscription out to every configured relay over
aiohttp WebSockets and multiplexes the results into a single stream,
deduplicated by event id. Relays are independent: one failing never aborts
the others.
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
from collections import OrderedDict
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass
from typing import Any

import aiohttp
import httpx

from ppe_relay.event import Event, Filter

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception hierarchy
# ---------------------------------------------------------------------------


class RelayError(Exception):
    """Base exception for relay operations."""

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class RelayConnectionError(RelayError):
    """WebSocket handshake or network failure."""


class RelayTimeoutError(RelayError):
    """No answer before the deadline."""


class RelayPublishError(RelayError):
    """Relay answered ``OK`` with ``false``."""


class RelayProtocolError(RelayError):
    """Relay sent a frame that is not a NIP-01 message."""


# ---------------------------------------------------------------------------
# Wire messages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RelayEvent:
    """An event together with the relay that delivered it."""

    relay: str
    event: Event


def parse_relay_message(raw: str) -> list[Any]:
    """Decode a relay frame into a list whose first element is the verb."""
    try:
        message = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        raise RelayProtocolError(f"frame is not JSON: {exc}") from exc
    if not isinstance(message, list) or not message or not isinstance(message[0], str):
        raise RelayProtocolError(f"unexpected frame: {raw[:200]}")
    return message


def _new_subscription_id() -> str:
    return secrets.token_hex(8)


_DONE = object()


class _SeenIds:
    """Bounded set of event ids, oldest evicted first."""

    def __init__(self, maxsize: int) -> None:
        self._maxsize = maxsize
        self._ids: OrderedDict[str, None] = OrderedDict()

    def add(self, event_id: str) -> bool:
        """Record an id. Returns True if new, False if already seen."""
        if event_id in self._ids:
            self._ids.move_to_end(event_id)
            return False
        self._ids[event_id] = None
        while len(self._ids) > self._maxsize:
            self._ids.popitem(last=False)
        return True


# ---------------------------------------------------------------------------
# Pool
# ---------------------------------------------------------------------------


class RelayPool:
    """Fan-out client over a fixed list of relay URLs.

    - ``query()`` streams stored events until every relay sends EOSE.
    - ``subscribe()`` streams stored and live events until every relay closes.
    - ``publish()`` sends one event to one relay and waits for its ``OK``.
    - ``broadcast()`` publishes to every relay, best-effort.
    """

    def __init__(
        self,
        urls: Sequence[str],
        *,
        connect_timeout: float = 10.0,
        publish_timeout: float = 10.0,
        max_seen_ids: int = 10_000,
        session_factory: Callable[[], aiohttp.ClientSession] | None = None,
    ) -> None:
        self._urls = tuple(urls)
        self._connect_timeout = connect_timeout
        self._publish_timeout = publish_timeout
        self._max_seen_ids = max_seen_ids
        self._session_factory = session_factory

    @property
    def urls(self) -> tuple[str, ...]:
        return self._urls

    def _new_session(self) -> aiohttp.ClientSession:
        if self._session_factory is not None:
            return self._session_factory()
        return aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=None, sock_connect=self._connect_timeout)
        )

    # -- subscriptions --------------------------------------------------------

    async def _drain(
        self,
        session: aiohttp.ClientSession,
        url: str,
        filters: Sequence[Filter],
        queue: asyncio.Queue[Any],
        *,
        stop_at_eose: bool,
    ) -> None:
        """Read one relay's subscription into ``queue``; never raises."""
        sub_id = _new_subscription_id()
        try:
            async with session.ws_connect(url) as ws:
                await ws.send_str(
                    json.dumps(["REQ", sub_id, *(f.to_dict() for f in filters)])
                )
                async for frame in ws:
                    if frame.type != aiohttp.WSMsgType.TEXT:
                        if frame.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                            break
                        continue
                    try:
                        message = parse_relay_message(frame.data)
                    except RelayProtocolError as exc:
                        logger.debug("Ignoring frame from %s: %s", url, exc)
                        continue

                    verb = message[0]
                    if verb == "EVENT" and len(message) >= 3 and message[1] == sub_id:
                        try:
                            event = Event.from_dict(message[2])
                        except ValueError as exc:
                            logger.debug("Malformed event from %s: %s", url, exc)
                            continue
                        await queue.put(RelayEvent(url, event))
                    elif verb == "EOSE" and len(message) >= 2 and message[1] == sub_id:
                        if stop_at_eose:
                            await ws.send_str(json.dumps(["CLOSE", sub_id]))
                            break
                    elif verb == "CLOSED" and len(message) >= 2 and message[1] == sub_id:
                        logger.warning(
                            "Relay %s closed subscription: %s",
                            url, message[2] if len(message) > 2 else "",
                        )
                        break
                    elif verb == "NOTICE":
                        logger.info("Notice from %s: %s", url, message[1:])
        except asyncio.CancelledError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            logger.warning("Relay %s unavailable: %s", url, exc)
        finally:
            queue.put_nowait(_DONE)

    async def _stream(
        self,
        filters: Sequence[Filter],
        *,
        stop_at_eose: bool,
        timeout: float | None,
    ) -> AsyncIterator[RelayEvent]:
        queue: asyncio.Queue[Any] = asyncio.Queue()
        seen = _SeenIds(self._max_seen_ids)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None

        async with self._new_session() as session:
            tasks = [
                asyncio.create_task(
                    self._drain(session, url, filters, queue, stop_at_eose=stop_at_eose)
                )
                for url in self._urls
            ]
            pending = len(tasks)
            try:
                while pending:
                    remaining = None if deadline is None else deadline - loop.time()
                    if remaining is not None and remaining <= 0:
                        logger.warning(
                            "Query deadline of %.1fs expired with %d relay(s) "
                            "still pending; using partial results.",
                            timeout, pending,
                        )
                        return
                    try:
                        item = await asyncio.wait_for(queue.get(), remaining)
                    except asyncio.TimeoutError:
                        continue
                    if item is _DONE:
                        pending -= 1
                        continue
                    if seen.add(item.event.id):
                        yield item
            finally:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)

    def query(
        self, filters: Sequence[Filter], *, timeout: float | None = None
    ) -> AsyncIterator[RelayEvent]:
        """Stream stored events matching ``filters`` until all relays send EOSE.

        When ``timeout`` elapses first the stream ends early with whatever
        was delivered so far. Wrap in ``contextlib.aclosing`` when breaking
        out of the loop early.
        """
        return self._stream(filters, stop_at_eose=True, timeout=timeout)

    def subscribe(self, filters: Sequence[Filter]) -> AsyncIterator[RelayEvent]:
        """Stream stored then live events until every relay disconnects."""
        return self._stream(filters, stop_at_eose=False, timeout=None)

    # -- publishing -----------------------------------------------------------

    async def publish(self, url: str, event: Event) -> None:
        """Send ``event`` to ``url`` and wait for the relay's ``OK``.

        ``publish_timeout`` bounds the whole exchange: handshake, send and ack.
        """
        try:
            async with asyncio.timeout(self._publish_timeout):
                async with self._new_session() as session, session.ws_connect(url) as ws:
                    await ws.send_str(json.dumps(["EVENT", event.to_dict()]))
                    async for frame in ws:
                        if frame.type != aiohttp.WSMsgType.TEXT:
                            continue
                        message = parse_relay_message(frame.data)
                        if message[0] == "OK" and len(message) >= 3 and message[1] == event.id:
                            if not message[2]:
                                reason = message[3] if len(message) > 3 else ""
                                raise RelayPublishError(
                                    f"{url} rejected event: {reason}", url=url
                                )
                            return
        except TimeoutError as exc:
            raise RelayTimeoutError(f"no OK from {url}", url=url) from exc
        except aiohttp.ClientError as exc:
            raise RelayConnectionError(str(exc), url=url) from exc
        raise RelayConnectionError(f"{url} closed before acknowledging", url=url)

    async def broadcast(self, event: Event) -> dict[str, bool]:
        """Publish ``event`` to every relay, one at a time.

        Returns a per-relay success map. Never raises on relay failures.
        """
        results: dict[str, bool] = {}
        for url in self._urls:
            try:
                await self.publish(url, event)
            except RelayError as exc:
                logger.warning("Publish to %s failed: %s", url, exc)
                results[url] = False
                continue
            logger.info("Published %s to %s", event.id, url)
            results[url] = True
        return results

    # -- relay information (NIP-11) -------------------------------------------

    async def status(self) -> dict[str, dict[str, Any]]:
        """Fetch each relay's NIP-11 document. Failures are reported, not raised."""
        async with httpx.AsyncClient(timeout=self._connect_timeout) as client:
            results = await asyncio.gather(
                *(fetch_relay_info(url, client=client) for url in self._urls),
                return_exceptions=True,
            )
        report: dict[str, dict[str, Any]] = {}
        for url, result in zip(self._urls, results):
            if isinstance(result, BaseException):
                report[url] = {"reachable": False, "error": str(result)}
            else:
                report[url] = {"reachable": True, "name": result.get("name", "")}
        return report


def _info_url(url: str) -> str:
    if url.startswith("wss://"):
        return "https://" + url[len("wss://"):]
    if url.startswith("ws://"):
        return "http://" + url[len("ws://"):]
    return url


async def fetch_relay_info(url: str, *, client: httpx.AsyncClient) -> dict[str, Any]:
    """GET the NIP-11 relay information document for ``url``."""
    try:
        response = await client.get(
            _info_url(url), headers={"Accept": "application/nostr+json"}
        )
    except httpx.ConnectError as exc:
        raise RelayConnectionError(str(exc), url=url) from exc
    except httpx.TimeoutException as exc:
        raise RelayTimeoutError(str(exc), url=url) from exc

    if response.status_code >= 400:
        raise RelayError(f"HTTP {response.status_code}", url=url)
    try:
        info = response.json()
    except ValueError as exc:
        raise RelayProtocolError(f"relay info is not JSON: {exc}", url=url) from exc
    if not isinstance(info, dict):
        raise RelayProtocolError("relay info is not an object", url=url)
    return info
