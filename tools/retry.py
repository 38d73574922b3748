import time

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from exceptions import TransientServiceError
from logging_config import setup_logger


class RetryPolicy:
    """
    One retry policy for every outbound adapter call.

    Only TransientServiceError is retried. A server-supplied retry_after
    (HTTP 429) wins over the exponential backoff. The last error is
    re-raised once attempts run out.
    """

    def __init__(self, max_attempts: int = 3, base_delay: float = 1.0, max_delay: float = 30.0,
                 sleep=time.sleep, logger=None):
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.sleep = sleep
        self.logger = logger or setup_logger("Retry")

    def backoff(self, attempt_number: int) -> float:
        return min(self.base_delay * (2 ** (attempt_number - 1)), self.max_delay)

    def _wait(self, retry_state) -> float:
        error = retry_state.outcome.exception()
        retry_after = getattr(error, "retry_after", None)
        if retry_after is not None:
            return float(retry_after)
        return self.backoff(retry_state.attempt_number)

    def _before_sleep(self, retry_state):
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        self.logger.warning(
            f"Retry {retry_state.attempt_number}/{self.max_attempts - 1} after {delay:.1f}s: "
            f"{retry_state.outcome.exception()}"
        )

    def call(self, fn, *args, **kwargs):
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type(TransientServiceError),
            sleep=self.sleep,
            before_sleep=self._before_sleep,
            reraise=True,
        )
        return retrying(fn, *args, **kwargs)
