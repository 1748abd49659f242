"""Conversion of user-facing CTC amounts into on-chain credo.

Amounts arrive from the command line as floats. Multiplying such a float
directly against ``10**18`` loses precision, so :func:`scale` splits the value
into its integer part, which is multiplied exactly, and a sub-unit fraction,
which is applied as a division by the nearest integer reciprocal. This is exact
for amounts such as ``2.5`` or ``0.25`` but not for fractions like ``0.3``,
which round to the nearest reciprocal (``1/3``). That behaviour is kept as-is
and reported through a logged warning.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

logger = logging.getLogger(__name__)

CREDO_PER_CTC = 1_000_000_000_000_000_000
U128_MAX = 2**128 - 1

# Relative tolerance when checking whether a fraction was a clean reciprocal.
_RECIPROCAL_TOLERANCE = 1e-9


class AmountError(ValueError):
    """Raised when an amount cannot be represented in credo."""


@dataclass(frozen=True)
class Ctc:
    """An amount of CTC expressed in credo."""

    credo: int

    def __int__(self) -> int:
        return self.credo


def _round_half_away_from_zero(value: float) -> int:
    return int(math.floor(value + 0.5))


def scale(value: int, by: float) -> int:
    """Return ``value * by`` using integer arithmetic for the whole part of ``by``."""

    assert by >= 0.0, f"scale factor must be non-negative, got {by!r}"
    if math.isinf(by):
        raise AmountError("Amount must be finite")
    if by < 1.0:
        if by == 0.0:
            return 0
        reciprocal = 1.0 / by
        if math.isinf(reciprocal):
            return 0
        divisor = _round_half_away_from_zero(reciprocal)
        if abs(1.0 / divisor - by) > _RECIPROCAL_TOLERANCE * by:
            logger.warning(
                "Fraction %r is not an integer reciprocal; scaling it as 1/%d",
                by,
                divisor,
            )
        return value // divisor

    whole = int(by)
    frac = by - whole
    return value * whole + scale(value, frac)


def ctc_frac(amount: float) -> Ctc:
    """Convert a CTC amount into credo."""

    credo = scale(CREDO_PER_CTC, amount)
    if credo > U128_MAX:
        raise AmountError(f"Amount {amount} CTC exceeds the u128 balance range")
    return Ctc(credo)
