"""Status, state and outcome types for submitted extrinsics.

A submitted extrinsic produces an ordered stream of :class:`StatusEvent`
values. :mod:`creditcoin_cli.tx_progress` reduces that stream to a
:class:`TxState` (did it land in a block?) and then to a :class:`TxOutcome`
(did it execute, and which event of interest did it emit?).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, List, Optional, Protocol, TypeVar

E = TypeVar("E")


class TxStreamEndedError(RuntimeError):
    """Raised when the status subscription ends before inclusion or drop."""


class ExtrinsicFailedError(RuntimeError):
    """Raised when an included extrinsic reports a dispatch error."""

    def __init__(self, error_message: dict[str, Any] | str | None) -> None:
        super().__init__(f"Extrinsic failed: {format_dispatch_error(error_message)}")
        self.error_message = error_message


def format_dispatch_error(error_message: dict[str, Any] | str | None) -> str:
    if not error_message:
        return "unknown dispatch error"
    if isinstance(error_message, str):
        return error_message
    label = " ".join(
        str(part) for part in (error_message.get("type"), error_message.get("name")) if part
    )
    docs = error_message.get("docs")
    if isinstance(docs, (list, tuple)):
        docs = " ".join(str(line) for line in docs if line)
    if docs:
        return f"{label or 'error'}: {docs}"
    return label or str(error_message)


@dataclass(frozen=True)
class ChainEvent:
    """A runtime event emitted by an extrinsic."""

    pallet: str
    name: str
    attributes: Any = None

    @classmethod
    def from_record(cls, record: Any) -> "ChainEvent":
        """Build from a ``substrate-interface`` event record or its ``value`` dict."""

        value = getattr(record, "value", record)
        event = value.get("event") or value
        return cls(
            pallet=str(event.get("module_id")),
            name=str(event.get("event_id")),
            attributes=event.get("attributes"),
        )


def _identity(attributes: Any) -> Any:
    return attributes


@dataclass(frozen=True)
class EventMatcher(Generic[E]):
    """Identifies one event type by pallet and event name and decodes it."""

    pallet: str
    event: str
    decode: Callable[[Any], E] = field(default=_identity)

    def matches(self, event: ChainEvent) -> bool:
        return event.pallet == self.pallet and event.name == self.event


# Placeholder for callers that only care that the extrinsic succeeded.
DONT_CARE: EventMatcher[Any] = EventMatcher("NONE", "NONE")


def find_first(events: List[ChainEvent], matcher: EventMatcher[E]) -> Optional[E]:
    for event in events:
        if matcher.matches(event):
            return matcher.decode(event.attributes)
    return None


class InBlock(Protocol):
    """Handle on a block that contains the submitted extrinsic."""

    block_hash: str

    def wait_for_success(self) -> List[ChainEvent]:
        ...


class StatusKind(str, Enum):
    IN_BLOCK = "in_block"
    DROPPED = "dropped"
    OTHER = "other"


@dataclass(frozen=True)
class StatusEvent:
    """One notification from an extrinsic's status stream."""

    kind: StatusKind
    status: str = ""
    block: Optional[InBlock] = None

    @classmethod
    def in_block(cls, block: InBlock) -> "StatusEvent":
        return cls(StatusKind.IN_BLOCK, "inBlock", block)

    @classmethod
    def dropped(cls) -> "StatusEvent":
        return cls(StatusKind.DROPPED, "dropped")

    @classmethod
    def other(cls, status: str) -> "StatusEvent":
        return cls(StatusKind.OTHER, status)


class TxStateKind(str, Enum):
    INCLUDED = "included"
    DROPPED = "dropped"


@dataclass(frozen=True)
class TxState:
    kind: TxStateKind
    block: Optional[InBlock] = None

    @classmethod
    def included(cls, block: InBlock) -> "TxState":
        return cls(TxStateKind.INCLUDED, block)

    @classmethod
    def dropped(cls) -> "TxState":
        return cls(TxStateKind.DROPPED)

    @property
    def is_dropped(self) -> bool:
        return self.kind is TxStateKind.DROPPED


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    DROPPED = "dropped"


@dataclass(frozen=True)
class TxOutcome(Generic[E]):
    kind: OutcomeKind
    event: Optional[E] = None

    @classmethod
    def success(cls, event: Optional[E] = None) -> "TxOutcome[E]":
        return cls(OutcomeKind.SUCCESS, event)

    @classmethod
    def dropped(cls) -> "TxOutcome[E]":
        return cls(OutcomeKind.DROPPED)

    @property
    def is_dropped(self) -> bool:
        return self.kind is OutcomeKind.DROPPED
