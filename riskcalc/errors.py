"""Exception hierarchy for the challenge tracker."""

from __future__ import annotations


class RiskCalcError(Exception):
    """Base class for all errors raised by :mod:`riskcalc`."""


class PersistenceError(RiskCalcError):
    """A read or write against one of the SQLite stores failed."""


class InvalidInputError(RiskCalcError, ValueError):
    """Trade input that cannot be accepted, such as a non-numeric amount under ``reject``."""


class ChallengeClosedError(RiskCalcError):
    """The challenge does not accept the requested transition.

    Raised when trades are submitted while the status is not ``Ongoing`` or
    when a phase advance is confirmed without one pending.
    """


class UnknownUserError(RiskCalcError, LookupError):
    """No user, or a user missing from the configured profiles, was selected."""


__all__ = [
    "RiskCalcError",
    "PersistenceError",
    "InvalidInputError",
    "ChallengeClosedError",
    "UnknownUserError",
]
