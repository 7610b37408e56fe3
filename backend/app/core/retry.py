"""
Retry policy for idempotent database reads.

Only transient store failures are retried. Writes (accept, primary swap)
must never go through this: a retry after a partial failure could apply
twice without re-validating preconditions.
"""
import logging
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential
from app.core.errors import STORE_ERRORS

logger = logging.getLogger(__name__)


def _rollback_before_retry(retry_state):
    """Reset the session passed as first argument so the next attempt starts clean."""
    db = retry_state.args[0] if retry_state.args else retry_state.kwargs.get("db")
    if db is not None:
        try:
            db.rollback()
        except Exception as e:
            logger.warning(f"Rollback before retry failed: {e}")
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        f"Store unavailable in {retry_state.fn.__name__} "
        f"(attempt {retry_state.attempt_number}): {exc}"
    )


retry_read = retry(
    retry=retry_if_exception_type(STORE_ERRORS),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
    before_sleep=_rollback_before_retry,
    reraise=True,
)
