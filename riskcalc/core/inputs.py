from __future__ import annotations

import math
from typing import Any, Iterable, Tuple

from ..config import InputPolicy
from ..errors import InvalidInputError


def _to_amount(value: Any, index: int, policy: InputPolicy) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0.0
    if isinstance(value, bool):
        amount = None
    else:
        try:
            amount = float(value)
        except (TypeError, ValueError):
            amount = None
    if amount is None or not math.isfinite(amount):
        if policy is InputPolicy.REJECT:
            raise InvalidInputError(f"Trade {index + 1}: {value!r} is not a number")
        return 0.0
    return amount


def parse_trade_amounts(
    raw: Iterable[Any], trades_per_day: int, policy: InputPolicy = InputPolicy.COERCE
) -> Tuple[float, ...]:
    """Turn form values into exactly ``trades_per_day`` signed amounts.

    Blank fields and ``None`` count as a trade that was not taken (0). Under
    :attr:`InputPolicy.COERCE` anything that is not a finite number becomes 0
    and the sequence is padded with zeros or truncated to ``trades_per_day``;
    under :attr:`InputPolicy.REJECT` both cases raise
    :class:`~riskcalc.errors.InvalidInputError`.
    """

    values = list(raw)
    if len(values) != trades_per_day:
        if policy is InputPolicy.REJECT:
            raise InvalidInputError(
                f"Expected {trades_per_day} trade amounts, got {len(values)}"
            )
        values = (values + [0.0] * trades_per_day)[:trades_per_day]
    return tuple(_to_amount(v, i, policy) for i, v in enumerate(values))


def amounts_from_outcomes(
    wins: int, losses: int, risk: float, reward_ratio: float, trades_per_day: int
) -> Tuple[float, ...]:
    """Build trade amounts from win/loss counts at a fixed risk per trade.

    A win pays ``risk * reward_ratio`` and a loss costs ``risk``. Unused trade
    slots are zero.
    """

    if wins < 0 or losses < 0:
        raise InvalidInputError("wins and losses must be non-negative")
    if wins + losses > trades_per_day:
        raise InvalidInputError(
            f"{wins} wins and {losses} losses exceed {trades_per_day} trades per day"
        )
    amounts = [risk * reward_ratio] * wins + [-risk] * losses
    amounts += [0.0] * (trades_per_day - len(amounts))
    return tuple(amounts)


__all__ = ["parse_trade_amounts", "amounts_from_outcomes"]
