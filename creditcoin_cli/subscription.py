"""Status stream for a submitted extrinsic.

``author_submitAndWatchExtrinsic`` submits a signed extrinsic and keeps a
subscription open that reports its progress through the transaction pool and
block production. :class:`StatusSubscription` exposes those notifications as
an iterator of :class:`~creditcoin_cli.model.StatusEvent`, reading one message
from the connection per item.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterator

from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK, WebSocketException
from websockets.sync.client import ClientConnection, connect

from .model import InBlock, StatusEvent
from .rpc_client import RPCError, RPCTransportError

logger = logging.getLogger(__name__)

SUBMIT_AND_WATCH = "author_submitAndWatchExtrinsic"

# The node closes the subscription after any of these.
FINAL_STATUSES = frozenset({"finalized", "usurped", "dropped", "invalid", "finalityTimeout"})


def status_name(status: Any) -> str:
    """Return the variant name of a ``TransactionStatus`` JSON value."""

    if isinstance(status, str):
        return status
    if isinstance(status, dict) and len(status) == 1:
        return next(iter(status))
    return repr(status)


def parse_status(status: Any, on_in_block: Callable[[str], InBlock]) -> StatusEvent:
    name = status_name(status)
    if name == "inBlock":
        return StatusEvent.in_block(on_in_block(status["inBlock"]))
    if name == "dropped":
        return StatusEvent.dropped()
    return StatusEvent.other(name)


class StatusSubscription:
    """Iterator over the status notifications of one extrinsic."""

    def __init__(
        self,
        connection: ClientConnection,
        subscription_id: str,
        on_in_block: Callable[[str], InBlock],
    ) -> None:
        self._connection = connection
        self.subscription_id = subscription_id
        self._on_in_block = on_in_block
        self._finished = False
        self._closed = False

    def __iter__(self) -> Iterator[StatusEvent]:
        return self

    def __next__(self) -> StatusEvent:
        if self._finished:
            raise StopIteration
        while True:
            try:
                raw = self._connection.recv()
            except ConnectionClosedOK:
                logger.debug("Status subscription %s closed by the node", self.subscription_id)
                self._finish()
                raise StopIteration
            except ConnectionClosedError as exc:
                self._finish()
                raise RPCTransportError(
                    f"Connection lost while watching the extrinsic: {exc}"
                ) from exc

            status = self._status_from_message(raw)
            if status is None:
                continue
            name = status_name(status)
            logger.info("Extrinsic status: %s", name)
            event = parse_status(status, self._on_in_block)
            if name in FINAL_STATUSES:
                self._finish()
            return event

    def _status_from_message(self, raw: str | bytes) -> Any:
        try:
            message = json.loads(raw)
        except ValueError as exc:
            raise RPCTransportError("Node sent a malformed subscription message") from exc
        params = message.get("params") if isinstance(message, dict) else None
        if not isinstance(params, dict) or params.get("subscription") != self.subscription_id:
            logger.debug("Ignoring unrelated message: %s", message)
            return None
        return params.get("result")

    def _finish(self) -> None:
        self._finished = True
        self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._connection.close()

    def __enter__(self) -> "StatusSubscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def open_status_subscription(
    url: str,
    extrinsic_hex: str,
    on_in_block: Callable[[str], InBlock],
    *,
    timeout: float | None = None,
) -> StatusSubscription:
    """Submit ``extrinsic_hex`` and return its status stream.

    Submission is not retried: a connection failure raises
    :class:`RPCTransportError` and a rejected extrinsic raises :class:`RPCError`.
    """

    try:
        connection = connect(url, open_timeout=timeout, max_size=None)
    except (OSError, WebSocketException) as exc:
        raise RPCTransportError(
            f"Could not open a websocket to {url}. Ensure the node is running and --endpoint is correct."
        ) from exc

    request = {"jsonrpc": "2.0", "id": 1, "method": SUBMIT_AND_WATCH, "params": [extrinsic_hex]}
    try:
        connection.send(json.dumps(request))
        response = json.loads(connection.recv(timeout=timeout))
    except (WebSocketException, TimeoutError, ValueError) as exc:
        connection.close()
        raise RPCTransportError(f"No valid response to {SUBMIT_AND_WATCH}") from exc

    if not isinstance(response, dict):
        connection.close()
        raise RPCTransportError(f"Unexpected response to {SUBMIT_AND_WATCH}: {response!r}")
    if response.get("error"):
        connection.close()
        raise RPCError.from_response(response["error"])
    subscription_id = response.get("result")
    if subscription_id is None:
        connection.close()
        raise RPCTransportError(f"{SUBMIT_AND_WATCH} returned no subscription id")
    logger.debug("Watching extrinsic via subscription %s", subscription_id)
    return StatusSubscription(connection, str(subscription_id), on_in_block)
