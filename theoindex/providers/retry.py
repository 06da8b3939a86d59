import logging
import time
from typing import Callable, TypeVar

from theoindex.errors import ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def with_retry(
    func: Callable[[], T],
    retry_count: int = 3,
    retry_delay: float = 1.0,
    description: str = "provider call",
) -> T:
    """
    Call func, retrying on ProviderError.

    retry_count is the total number of attempts. The last ProviderError is
    re-raised once attempts are exhausted; other exceptions propagate at once.
    """
    attempts = max(1, retry_count)
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except ProviderError as e:
            if attempt == attempts:
                raise
            logger.warning(
                f"{description} failed (attempt {attempt}/{attempts}): {e}; retrying in {retry_delay}s"
            )
            if retry_delay > 0:
                time.sleep(retry_delay)
