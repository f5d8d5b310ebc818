# app/infra/retry.py
import time
from typing import Callable, TypeVar, Optional

import structlog

T = TypeVar("T")
logger = structlog.get_logger(__name__)


def linear_backoff(attempt: int, step: float = 0.2, cap: float = 2.0) -> float:
    # lineaire backoff met harde cap: min(cap, step * attempt)
    return min(cap, step * attempt)


def retry_on(
    fn: Callable[[], T],
    *,
    attempts: int = 1,
    backoff: Callable[[int], float] = linear_backoff,
    is_retryable: Optional[Callable[[Exception], bool]] = None,
    should_retry_result: Optional[Callable[[T], bool]] = None,
    on_retry: Optional[Callable[[int, Optional[Exception], float], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``fn`` up to ``attempts`` times.

    An exception is retried when ``is_retryable`` accepts it (or is not given);
    a returned value is retried when ``should_retry_result`` says so. Once the
    attempts are used up the last outcome is handed back unchanged: the last
    value is returned, the last exception re-raised.
    """
    attempts = max(1, attempts)
    last_exc: Optional[Exception] = None
    for i in range(attempts):
        attempt = i + 1
        try:
            result = fn()
        except Exception as e:  # type: ignore
            if is_retryable and not is_retryable(e):
                raise
            last_exc = e
            if attempt == attempts:
                break
            delay = backoff(attempt)
            if on_retry:
                on_retry(attempt, e, delay)
            else:
                logger.warning("retry", attempt=attempt, delay_s=delay, error=repr(e))
            sleep(delay)
            continue

        if should_retry_result is not None and attempt < attempts and should_retry_result(result):
            delay = backoff(attempt)
            if on_retry:
                on_retry(attempt, None, delay)
            else:
                logger.warning("retry", attempt=attempt, delay_s=delay, error="retryable result")
            sleep(delay)
            continue
        return result

    assert last_exc is not None
    raise last_exc
