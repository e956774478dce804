"""Configuration loading utilities for the challenge tracker.

This module loads YAML configuration files that store the default challenge
rules, the selectable user profiles and the location of the SQLite stores.
A default ``config.yaml`` at the project root is used when no path is
provided. Environment variables (optionally from a ``.env`` file) override
the storage paths.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator


DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[1] / "config.yaml"


class DrawdownMode(str, Enum):
    """Reference point used to measure drawdown."""

    PEAK = "peak"
    STARTING = "starting"


class PhaseAdvance(str, Enum):
    """Whether reaching the phase 1 target moves to phase 2 immediately."""

    AUTO = "auto"
    CONFIRM = "confirm"


class InputPolicy(str, Enum):
    """What to do with trade amounts that are not valid numbers."""

    COERCE = "coerce"
    REJECT = "reject"


class Tracking(str, Enum):
    """Daily form or Monday-Friday weekly grid."""

    DAILY = "daily"
    WEEKLY = "weekly"


class ChallengeConfig(BaseModel):
    """Rules of a single challenge instance.

    Amounts are in account currency. The model is frozen; use
    :meth:`with_changes` to obtain an edited, re-validated copy.
    """

    model_config = ConfigDict(frozen=True)

    starting_balance: float = Field(6000.0, gt=0)
    phase1_target: float = Field(480.0, ge=0)
    phase2_target: float = Field(300.0, ge=0)
    daily_loss_limit: float = Field(300.0, gt=0)
    max_drawdown: float = Field(600.0, gt=0)
    trades_per_day: int = Field(2, ge=1)
    reward_ratio: float = Field(3.0, ge=0)
    initial_risk: float = Field(80.0, ge=0)
    risk_cap: float = Field(90.0, ge=0)
    risk_floor: float = Field(40.0, ge=0)

    drawdown_mode: DrawdownMode = DrawdownMode.PEAK
    phase_advance: PhaseAdvance = PhaseAdvance.AUTO
    input_policy: InputPolicy = InputPolicy.COERCE
    tracking: Tracking = Tracking.DAILY

    @model_validator(mode="after")
    def _check_risk_bounds(self) -> "ChallengeConfig":
        if self.risk_floor > self.risk_cap:
            raise ValueError(
                f"risk_floor ({self.risk_floor}) must not exceed risk_cap ({self.risk_cap})"
            )
        return self

    @property
    def phase1_goal(self) -> float:
        """Balance that completes phase 1."""
        return self.starting_balance + self.phase1_target

    @property
    def phase2_goal(self) -> float:
        """Balance that passes the challenge."""
        return self.starting_balance + self.phase1_target + self.phase2_target

    def with_changes(self, **changes: Any) -> "ChallengeConfig":
        """Return a validated copy with ``changes`` applied."""
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown configuration fields: {sorted(unknown)}")
        return type(self).model_validate({**self.model_dump(), **changes})


class UserProfile(BaseModel):
    """A selectable user."""

    name: str = Field(..., min_length=1)
    display_name: str | None = None

    @property
    def label(self) -> str:
        return self.display_name or self.name.capitalize()


class StorageConfig(BaseModel):
    """Locations of the SQLite databases."""

    history_db: str = "data/history.db"
    state_db: str = "data/state.db"


def _default_profiles() -> List[UserProfile]:
    return [
        UserProfile(name="nico", display_name="Nico"),
        UserProfile(name="adrian", display_name="Adrian"),
    ]


class AppConfig(BaseModel):
    """Top-level configuration schema."""

    challenge: ChallengeConfig = Field(default_factory=ChallengeConfig)
    profiles: List[UserProfile] = Field(default_factory=_default_profiles)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    def profile(self, name: str | None) -> UserProfile | None:
        """Return the profile called ``name`` or ``None``."""
        for profile in self.profiles:
            if profile.name == name:
                return profile
        return None


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load configuration from a YAML file with validation.

    Parameters
    ----------
    path : str | Path | None
        Optional path to a YAML file. If ``None`` the ``RISKCALC_CONFIG``
        environment variable is consulted, then the project level
        ``config.yaml``.

    Returns
    -------
    AppConfig
        Parsed configuration validated against :class:`AppConfig`.
    """

    env_path = os.getenv("RISKCALC_CONFIG")
    cfg_path = Path(path) if path else Path(env_path) if env_path else DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open() as f:
        data: Dict[str, Any] = yaml.safe_load(f) or {}
    try:
        model = AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc

    # Storage paths from the environment win over the file
    history_db = os.getenv("RISKCALC_HISTORY_DB")
    state_db = os.getenv("RISKCALC_STATE_DB")
    if history_db:
        model.storage.history_db = history_db
    if state_db:
        model.storage.state_db = state_db

    return model


__all__ = [
    "AppConfig",
    "ChallengeConfig",
    "DrawdownMode",
    "InputPolicy",
    "PhaseAdvance",
    "StorageConfig",
    "Tracking",
    "UserProfile",
    "load_config",
    "DEFAULT_CONFIG_PATH",
]
