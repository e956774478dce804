"""Pass/fail and phase progress rules.

Rules are checked in a fixed priority order and the first match wins, so a
day that breaches a loss limit is reported as a failure even if it also
reaches a profit target.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..config import ChallengeConfig, DrawdownMode, PhaseAdvance


class Status(str, Enum):
    """Lifecycle states of a challenge."""

    ONGOING = "Ongoing"
    PENDING_PHASE_ADVANCE = "PendingPhaseAdvance"
    PASS = "Pass"
    FAIL = "Fail"

    @property
    def is_terminal(self) -> bool:
        return self in (Status.PASS, Status.FAIL)


@dataclass(frozen=True, slots=True)
class Evaluation:
    """Outcome of :func:`evaluate`."""

    status: Status
    phase: int
    reason: str | None = None
    """Name of the rule that fired, ``None`` when nothing changed."""


def compute_drawdown(balance: float, peak_balance: float, config: ChallengeConfig) -> float:
    """Shortfall of ``balance`` below the reference selected by ``drawdown_mode``."""
    if config.drawdown_mode is DrawdownMode.STARTING:
        reference = config.starting_balance
    else:
        reference = peak_balance
    return max(0.0, reference - balance)


def evaluate(
    daily_pl: float,
    new_balance: float,
    new_drawdown: float,
    current_phase: int,
    config: ChallengeConfig,
) -> Evaluation:
    """Decide the challenge status after a submitted day."""

    if daily_pl <= -config.daily_loss_limit:
        return Evaluation(Status.FAIL, current_phase, "daily_loss_limit")

    if new_drawdown >= config.max_drawdown:
        return Evaluation(Status.FAIL, current_phase, "max_drawdown")

    if current_phase == 1 and new_balance >= config.phase1_goal:
        if config.phase_advance is PhaseAdvance.CONFIRM:
            return Evaluation(Status.PENDING_PHASE_ADVANCE, 1, "phase1_target")
        return Evaluation(Status.ONGOING, 2, "phase1_target")

    if current_phase == 2 and new_balance >= config.phase2_goal:
        return Evaluation(Status.PASS, 2, "phase2_target")

    return Evaluation(Status.ONGOING, current_phase)


__all__ = ["Status", "Evaluation", "compute_drawdown", "evaluate"]
