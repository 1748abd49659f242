"""Call builders for the administrative extrinsics.

Each builder returns a :class:`CallSpec`, an immutable description of a runtime
call. Calls that require the sudo key are produced by wrapping an inner call
with :func:`sudo` or :func:`sudo_unchecked_weight`; the chain client composes
the nested descriptions into SCALE-encodable calls at submission time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from .accounts import AccountId
from .amounts import Ctc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallSpec:
    module: str
    function: str
    params: Mapping[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return f"{self.module}.{self.function}"

    def describe(self) -> str:
        """Return ``Module.function`` including nested calls, for logging."""

        inner = self.params.get("call")
        if isinstance(inner, CallSpec):
            return f"{self.name}({inner.describe()})"
        return self.name


@dataclass(frozen=True)
class ExtrinsicCommand:
    """A built call plus whether it must be signed by the sudo key."""

    call: CallSpec
    privileged: bool


def unit_weight(legacy_weights: bool = False) -> Any:
    """Smallest weight accepted by ``sudo_unchecked_weight``."""

    if legacy_weights:
        return 1
    return {"ref_time": 1, "proof_size": 1}


def sudo(call: CallSpec) -> CallSpec:
    return CallSpec("Sudo", "sudo", {"call": call})


def sudo_unchecked_weight(call: CallSpec, *, legacy_weights: bool = False) -> CallSpec:
    return CallSpec(
        "Sudo",
        "sudo_unchecked_weight",
        {"call": call, "weight": unit_weight(legacy_weights)},
    )


def add_authority(who: AccountId) -> ExtrinsicCommand:
    inner = CallSpec("Creditcoin", "add_authority", {"who": who.hex})
    return ExtrinsicCommand(sudo(inner), privileged=True)


def transfer(to: AccountId, amount: Ctc) -> ExtrinsicCommand:
    call = CallSpec(
        "Balances",
        "transfer",
        {"dest": to.multi_address(), "value": amount.credo},
    )
    return ExtrinsicCommand(call, privileged=False)


def set_balance(account: AccountId, amount: Ctc) -> ExtrinsicCommand:
    inner = CallSpec(
        "Balances",
        "set_balance",
        {
            "who": account.multi_address(),
            "new_free": amount.credo,
            "new_reserved": 0,
        },
    )
    return ExtrinsicCommand(sudo(inner), privileged=True)


def read_code(path: str | Path) -> bytes:
    """Read a runtime blob from disk; I/O errors propagate to the caller."""

    code = Path(path).read_bytes()
    logger.info("Read %d bytes of runtime code from %s", len(code), path)
    return code


def set_code(code: bytes, *, legacy_weights: bool = False) -> ExtrinsicCommand:
    inner = CallSpec("System", "set_code", {"code": "0x" + code.hex()})
    return ExtrinsicCommand(
        sudo_unchecked_weight(inner, legacy_weights=legacy_weights), privileged=True
    )


def switch_to_pos(*, legacy_weights: bool = False) -> ExtrinsicCommand:
    inner = CallSpec("PosSwitch", "switch_to_pos")
    return ExtrinsicCommand(
        sudo_unchecked_weight(inner, legacy_weights=legacy_weights), privileged=True
    )


def set_sudo_key(who: AccountId) -> ExtrinsicCommand:
    call = CallSpec("Sudo", "set_key", {"new": who.multi_address()})
    return ExtrinsicCommand(call, privileged=True)
