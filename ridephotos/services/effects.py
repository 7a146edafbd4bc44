"""Isolated side effects.

Fulfillment writes fall into two classes:

- must succeed: the Purchase insert, the idempotency lookup. These run
  directly; an exception propagates to the webhook blueprint (500, Stripe
  retries).
- isolated: per-item writes and best-effort extras (order audit). These
  run through run_isolated()/best_effort(), inside their own savepoint, so a
  failure rolls back only that write and comes back as an EffectResult
  instead of an exception.
"""

import logging
from dataclasses import dataclass
from typing import Any

from ridephotos.extensions import db

logger = logging.getLogger(__name__)


@dataclass
class EffectResult:
    name: str
    ok: bool
    value: Any = None
    error: Exception | None = None


def run_isolated(name, fn, *args, log_level=logging.ERROR, **kwargs):
    """Run ``fn`` in a savepoint. Never raises; returns an EffectResult."""
    try:
        with db.session.begin_nested():
            value = fn(*args, **kwargs)
    except Exception as e:
        logger.log(log_level, f"{name} failed: {e}", exc_info=log_level >= logging.ERROR)
        return EffectResult(name=name, ok=False, error=e)
    return EffectResult(name=name, ok=True, value=value)


def best_effort(name, fn, *args, **kwargs):
    """Fire-and-forget variant: failures are logged as warnings only."""
    return run_isolated(name, fn, *args, log_level=logging.WARNING, **kwargs)
