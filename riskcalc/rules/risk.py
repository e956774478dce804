"""Per-trade risk adjustment."""
from __future__ import annotations

from ..config import ChallengeConfig

WIN_MULTIPLIER = 1.20
LOSS_MULTIPLIER = 0.75


def max_safe_risk(config: ChallengeConfig) -> float:
    """Largest risk per trade that cannot breach the daily loss limit on its own."""
    return config.daily_loss_limit / config.trades_per_day


def clamp_risk(risk: float, config: ChallengeConfig) -> float:
    """Clamp ``risk`` into ``[risk_floor, risk_cap]`` then under :func:`max_safe_risk`.

    The safety cap is applied last, so it wins when it lies below the floor.
    """
    risk = min(max(risk, config.risk_floor), config.risk_cap)
    return min(risk, max_safe_risk(config))


def next_risk(daily_pl: float, current_risk: float, config: ChallengeConfig) -> float:
    """Compute tomorrow's risk per trade from today's net result.

    Parameters
    ----------
    daily_pl : float
        Net profit or loss of the day just submitted.
    current_risk : float
        Risk per trade used during that day.
    config : ChallengeConfig
        Supplies ``risk_floor``, ``risk_cap``, ``daily_loss_limit`` and
        ``trades_per_day``.

    Returns
    -------
    float
        ``current_risk`` scaled by 1.20 after a winning day or 0.75 after a
        losing day (unchanged on break-even), clamped by :func:`clamp_risk`.
    """
    if daily_pl > 0:
        risk = current_risk * WIN_MULTIPLIER
    elif daily_pl < 0:
        risk = current_risk * LOSS_MULTIPLIER
    else:
        risk = current_risk
    return clamp_risk(risk, config)


__all__ = ["WIN_MULTIPLIER", "LOSS_MULTIPLIER", "max_safe_risk", "clamp_risk", "next_risk"]
