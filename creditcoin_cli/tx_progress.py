"""Submission and confirmation lifecycle of a single extrinsic.

::

    Submitted --inBlock--> Included --wait_for_success--> Success | ExtrinsicFailedError
    Submitted --dropped--> Dropped
    Submitted --other----> Submitted
    Submitted --end------> TxStreamEndedError

The status stream is consumed strictly in order. The first ``inBlock`` wins
and nothing further is read; a ``dropped`` seen before it is terminal. A
stream that ends without either is a failure of the subscription itself, not
a rejection by the chain, and is reported as :class:`TxStreamEndedError`.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol

from substrateinterface import Keypair

from .extrinsics import CallSpec
from .model import (
    DONT_CARE,
    E,
    EventMatcher,
    StatusEvent,
    StatusKind,
    TxOutcome,
    TxState,
    TxStreamEndedError,
    find_first,
)
from .subscription import StatusSubscription

logger = logging.getLogger(__name__)


class Submitter(Protocol):
    def submit_and_watch(self, call: CallSpec, signer: Keypair) -> StatusSubscription:
        ...


def resolve_to_block(progress: Iterable[StatusEvent]) -> TxState:
    for status in progress:
        if status.kind is StatusKind.IN_BLOCK:
            logger.info("Extrinsic included in block %s", status.block.block_hash)
            return TxState.included(status.block)
        if status.kind is StatusKind.DROPPED:
            return TxState.dropped()
        logger.debug("Ignoring status %s", status.status)
    raise TxStreamEndedError("tx status subscription ended")


def resolve_outcome(state: TxState, matcher: EventMatcher[E]) -> TxOutcome[E]:
    if state.is_dropped:
        return TxOutcome.dropped()
    events = state.block.wait_for_success()
    return TxOutcome.success(find_first(events, matcher))


def wait_for_success(
    progress: Iterable[StatusEvent], matcher: EventMatcher[E]
) -> TxOutcome[E]:
    return resolve_outcome(resolve_to_block(progress), matcher)


def send_extrinsic(client: Submitter, call: CallSpec, signer: Keypair) -> None:
    """Submit ``call`` and wait until it is included and executed successfully."""

    with client.submit_and_watch(call, signer) as progress:
        outcome: TxOutcome[Any] = wait_for_success(progress, DONT_CARE)
    if outcome.is_dropped:
        logger.warning("Extrinsic %s was dropped from the transaction pool", call.describe())
