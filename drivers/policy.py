"""
Purpose: Central configuration for driver matching and auto-dispatch.
What it does:

Stores all tunable thresholds/caps for finding, ranking and assigning drivers:

MATCHING_RADIUS_KM = 10
MIN_DRIVER_RATING = 3.5
STALENESS_WINDOW_SECONDS = 30
AUTO_DISPATCH_DELAY_SECONDS = 5

The policy is an explicit value. Callers pass it in, or hand the dispatcher a
provider callable that re-reads it (env, system settings table) per dispatch.

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class DispatchPolicy:
    """
    Central configuration for candidate search, scoring and the retry loop.
    """

    # --- Candidate search ---
    # Straight-line radius around the pickup point.
    matching_radius_km: float = 10.0
    # Drivers rated below this are never offered a ride.
    min_driver_rating: float = 3.5
    # Closest-first cap applied before scoring, bounds the scoring input.
    max_candidates: int = 10
    # Location reports older than this are invisible to matching.
    staleness_window_seconds: float = 30.0
    # Used for straight-line ETAs when OSRM is not wired in.
    average_speed_kmh: float = 30.0

    # --- Scoring ---
    # Added to the preferred driver's match score.
    preferred_driver_bonus: float = 100.0

    # --- Auto-dispatch ---
    auto_dispatch_enabled: bool = True
    # Delay between ride creation and the first automatic attempt.
    auto_dispatch_delay_seconds: float = 5.0
    max_dispatch_attempts: int = 5
    # Each "no drivers" retry waits previous_delay * factor.
    retry_backoff_factor: float = 1.5
    max_retry_delay_seconds: float = 60.0
    # Rides older than this are left for a human operator.
    max_ride_age_seconds: float = 300.0

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.matching_radius_km <= 0:
            raise ValueError("matching_radius_km must be > 0")

        if not 0.0 <= self.min_driver_rating <= 5.0:
            raise ValueError("min_driver_rating must be within [0, 5]")

        if self.max_candidates <= 0:
            raise ValueError("max_candidates must be > 0")

        if self.staleness_window_seconds <= 0:
            raise ValueError("staleness_window_seconds must be > 0")

        if self.average_speed_kmh <= 0:
            raise ValueError("average_speed_kmh must be > 0")

        if self.preferred_driver_bonus < 100:
            raise ValueError("preferred_driver_bonus must be >= 100 to outrank every other candidate")

        if self.auto_dispatch_delay_seconds < 0:
            raise ValueError("auto_dispatch_delay_seconds must be >= 0")

        if self.max_dispatch_attempts <= 0:
            raise ValueError("max_dispatch_attempts must be > 0")

        if self.retry_backoff_factor < 1.0:
            raise ValueError("retry_backoff_factor must be >= 1.0")

        if self.max_retry_delay_seconds < self.auto_dispatch_delay_seconds:
            raise ValueError("max_retry_delay_seconds must be >= auto_dispatch_delay_seconds")

        if self.max_ride_age_seconds <= 0:
            raise ValueError("max_ride_age_seconds must be > 0")

    def with_overrides(self, **overrides: Any) -> DispatchPolicy:
        p = replace(self, **overrides)
        p.validate()
        return p

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> DispatchPolicy:
        """
        Build a policy from RIDEHAIL_<FIELD_NAME> environment variables,
        e.g. RIDEHAIL_MATCHING_RADIUS_KM=5. Unset fields keep their defaults.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        overrides: Dict[str, Any] = {}
        for f in fields(cls):
            raw = environ.get(f"RIDEHAIL_{f.name.upper()}")
            if raw is None or raw == "":
                continue
            overrides[f.name] = _coerce(f.name, raw, f.default)

        p = cls(**overrides)
        p.validate()
        return p

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any], base: Optional[DispatchPolicy] = None) -> DispatchPolicy:
        """
        Build a policy from system_settings style keys:
            auto_dispatch, driver_matching_radius, min_driver_rating
        Any DispatchPolicy field name is accepted as well.
        """
        base = base or cls()
        aliases = {
            "auto_dispatch": "auto_dispatch_enabled",
            "driver_matching_radius": "matching_radius_km",
        }
        known = {f.name: f.default for f in fields(cls)}

        overrides: Dict[str, Any] = {}
        for key, value in settings.items():
            name = aliases.get(key, key)
            if name not in known or value is None:
                continue
            overrides[name] = _coerce(name, value, known[name])

        p = replace(base, **overrides)
        p.validate()
        return p


def _coerce(name: str, value: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"{name} must be a boolean, got {value!r}")
    if isinstance(default, int):
        return int(value)
    return float(value)


def default_dispatch_policy() -> DispatchPolicy:
    """
    Convenience factory for the default policy.
    """
    p = DispatchPolicy()
    p.validate()
    return p
