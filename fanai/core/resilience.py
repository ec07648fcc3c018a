"""
Failure Policies
Declares, per external call site, what happens when the call fails.

- FAIL_OPEN:   log and continue with a safe default
- FAIL_STALE:  log and continue with the last known value (default if none)
- FAIL_CLOSED: propagate the error
"""

import asyncio
import logging
from enum import Enum
from functools import wraps
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class FailurePolicy(str, Enum):
    """How a call site reacts to failure."""
    FAIL_OPEN = "fail_open"
    FAIL_STALE = "fail_stale"
    FAIL_CLOSED = "fail_closed"


POLICIES: Dict[str, FailurePolicy] = {
    "gemini.analyze_image": FailurePolicy.FAIL_OPEN,
    "gemini.describe_composite": FailurePolicy.FAIL_OPEN,
    "reference.load_dataset": FailurePolicy.FAIL_STALE,
    "artifacts.store": FailurePolicy.FAIL_OPEN,
    "campaign.increment": FailurePolicy.FAIL_OPEN,
    "synthesis.synthesize": FailurePolicy.FAIL_CLOSED,
    "postprocess.trim": FailurePolicy.FAIL_OPEN,
}


def policy_for(operation: str) -> FailurePolicy:
    """Look up the declared policy. Undeclared operations fail closed."""
    return POLICIES.get(operation, FailurePolicy.FAIL_CLOSED)


def _resolve_fallback(fallback: Any, error: Exception, *args, **kwargs) -> Any:
    return fallback(error, *args, **kwargs) if callable(fallback) else fallback


async def guarded(
    operation: str,
    call: Callable[[], Awaitable[T]],
    fallback: Any = None,
) -> T:
    """
    Await call() under the policy declared for operation.

    Args:
        operation: Key into POLICIES
        call: Zero-argument coroutine factory
        fallback: Value, or callable taking the exception, used when the policy
            absorbs the failure

    Returns:
        The call result, or the fallback
    """
    policy = policy_for(operation)
    try:
        return await call()
    except asyncio.CancelledError:
        raise
    except Exception as e:
        if policy is FailurePolicy.FAIL_CLOSED:
            raise
        logger.warning(f"[{policy.value}] {operation} failed: {e!r}")
        return _resolve_fallback(fallback, e)


def failure_policy(operation: str, fallback: Any = None):
    """
    Decorator form of guarded() for async and sync functions.

    The fallback callable, if any, receives the raised exception followed by
    the arguments of the failed call.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def async_wrapper(*args, **kwargs) -> T:
            return await guarded(
                operation,
                lambda: func(*args, **kwargs),
                lambda e: _resolve_fallback(fallback, e, *args, **kwargs),
            )

        @wraps(func)
        def sync_wrapper(*args, **kwargs) -> T:
            policy = policy_for(operation)
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if policy is FailurePolicy.FAIL_CLOSED:
                    raise
                logger.warning(f"[{policy.value}] {operation} failed: {e!r}")
                return _resolve_fallback(fallback, e, *args, **kwargs)

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


__all__ = [
    "FailurePolicy",
    "POLICIES",
    "policy_for",
    "guarded",
    "failure_policy",
]
