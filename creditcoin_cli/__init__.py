"""Administrative command-line client for Creditcoin nodes."""

from .accounts import AccountId, InvalidAddressError
from .amounts import CREDO_PER_CTC, AmountError, Ctc, ctc_frac, scale
from .extrinsics import CallSpec, ExtrinsicCommand, sudo, sudo_unchecked_weight
from .model import (
    DONT_CARE,
    ChainEvent,
    EventMatcher,
    ExtrinsicFailedError,
    StatusEvent,
    StatusKind,
    TxOutcome,
    TxState,
    TxStreamEndedError,
)
from .tx_progress import resolve_outcome, resolve_to_block, send_extrinsic, wait_for_success

__all__ = [
    "AccountId",
    "AmountError",
    "CREDO_PER_CTC",
    "CallSpec",
    "ChainEvent",
    "Ctc",
    "DONT_CARE",
    "EventMatcher",
    "ExtrinsicCommand",
    "ExtrinsicFailedError",
    "InvalidAddressError",
    "StatusEvent",
    "StatusKind",
    "TxOutcome",
    "TxState",
    "TxStreamEndedError",
    "ctc_frac",
    "resolve_outcome",
    "resolve_to_block",
    "scale",
    "send_extrinsic",
    "sudo",
    "sudo_unchecked_weight",
    "wait_for_success",
]
