"""
Purpose: Central configuration for the order lifecycle (single source of truth).
What it does:

Stores all tunable thresholds/caps:

ACCEPTANCE_WINDOW_SEC = 600 (pending window)

EXPIRY_TICK_SEC = 1 (how often waiting clients re-check the deadline)

SWEEP_BATCH_SIZE = 450 (store limit is 500 writes per batch)

ROUTING_TIMEOUT_SEC = 10

EXPIRY_MODE = client_observed | sweep

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
import os

from dotenv import load_dotenv

from store.base import MAX_BATCH_WRITES

EXPIRY_CLIENT_OBSERVED = "client_observed"
EXPIRY_SWEEP = "sweep"


@dataclass(frozen=True)
class LifecyclePolicy:
    """
    Central configuration for order creation, acceptance and expiry.

    Notes:
    - 'client_observed' expiry keeps the deadline advisory: storage keeps a
      stale pending order until some client looks at it.
    - 'sweep' lets an operator run maintenance.expire_overdue_orders to write
      the expired status back.
    """

    # --- Pending window ---
    acceptance_window_seconds: int = 600  # 10 minutes

    # --- Waiting screen heartbeat ---
    expiry_tick_seconds: float = 1.0

    # --- Expiry policy ---
    expiry_mode: str = EXPIRY_CLIENT_OBSERVED

    # Write "expired" back when a waiting client observes the deadline pass.
    persist_observed_expiry: bool = False

    # --- Creation guard ---
    # Refuse a new order while the customer still has a non-terminal one.
    reject_when_active: bool = False

    # --- Maintenance ---
    sweep_batch_size: int = 450

    # --- Routing ---
    routing_timeout_seconds: float = 10.0

    @property
    def acceptance_window(self) -> timedelta:
        return timedelta(seconds=self.acceptance_window_seconds)

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.acceptance_window_seconds <= 0:
            raise ValueError("acceptance_window_seconds must be > 0")

        if self.expiry_tick_seconds <= 0:
            raise ValueError("expiry_tick_seconds must be > 0")

        if self.expiry_mode not in (EXPIRY_CLIENT_OBSERVED, EXPIRY_SWEEP):
            raise ValueError(f"expiry_mode must be '{EXPIRY_CLIENT_OBSERVED}' or '{EXPIRY_SWEEP}'")

        if not 0 < self.sweep_batch_size <= MAX_BATCH_WRITES:
            raise ValueError(f"sweep_batch_size must be in 1..{MAX_BATCH_WRITES}")

        if self.routing_timeout_seconds <= 0:
            raise ValueError("routing_timeout_seconds must be > 0")


def default_lifecycle_policy() -> LifecyclePolicy:
    """
    Convenience factory for the default policy.
    """
    p = LifecyclePolicy()
    p.validate()
    return p


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def policy_from_env() -> LifecyclePolicy:
    """
    Builds the policy from the environment (or a .env file).
    Example in .env:
    ORDER_ACCEPTANCE_WINDOW_SEC=600
    ORDER_EXPIRY_MODE=client_observed
    """
    load_dotenv()
    defaults = LifecyclePolicy()
    p = LifecyclePolicy(
        acceptance_window_seconds=int(os.getenv("ORDER_ACCEPTANCE_WINDOW_SEC", defaults.acceptance_window_seconds)),
        expiry_tick_seconds=float(os.getenv("ORDER_EXPIRY_TICK_SEC", defaults.expiry_tick_seconds)),
        expiry_mode=os.getenv("ORDER_EXPIRY_MODE", defaults.expiry_mode),
        persist_observed_expiry=_env_bool("ORDER_PERSIST_OBSERVED_EXPIRY", defaults.persist_observed_expiry),
        reject_when_active=_env_bool("ORDER_REJECT_WHEN_ACTIVE", defaults.reject_when_active),
        sweep_batch_size=int(os.getenv("ORDER_SWEEP_BATCH_SIZE", defaults.sweep_batch_size)),
        routing_timeout_seconds=float(os.getenv("ROUTING_TIMEOUT_SEC", defaults.routing_timeout_seconds)),
    )
    p.validate()
    return p
