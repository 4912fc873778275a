"""Follow-up effects that run after a record change has been committed."""
import logging
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


def run_best_effort(
    name: str,
    func: Callable[..., Any],
    *args: Any,
    context: Optional[Dict[str, Any]] = None,
    **kwargs: Any
) -> Any:
    """
    Call func and return its result, or None if it raised.

    The primary change is already persisted when this runs, so a failure is
    logged with its context and never propagated.
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        logger.error(
            f"{name} failed: {e}",
            exc_info=True,
            extra={"effect": name, **(context or {})}
        )
        return None
