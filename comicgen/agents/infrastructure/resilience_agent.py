import logging
import time
from typing import Any, Callable, Dict, Optional, TypeVar
import litellm
from botocore.exceptions import ClientError
from pydantic import BaseModel, Field
from comicgen.core.agent import BaseAgent

logger = logging.getLogger(__name__)

T = TypeVar("T")

THROTTLING_CODES = ("ThrottlingException", "TooManyRequestsException")


class RetryPolicy(BaseModel):
    """Exponential backoff without jitter: delays are initial_delay * backoff_factor ** n."""
    max_retries: int = Field(3, ge=0, description="Retries after the first attempt")
    initial_delay: float = Field(1.0, ge=0.0, description="Seconds before the first retry")
    backoff_factor: float = Field(2.0, ge=1.0)


def is_throttling_error(exc: BaseException) -> bool:
    """True when the provider signalled a rate-limit condition."""
    if isinstance(exc, litellm.RateLimitError):
        return True
    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code", "")
        if code in THROTTLING_CODES:
            return True
    text = str(exc)
    return any(code in text for code in THROTTLING_CODES) or "rate limit" in text.lower()


def retry_with_backoff(operation: Callable[[], T],
                       policy: Optional[RetryPolicy] = None,
                       sleep: Callable[[float], Any] = time.sleep,
                       is_retryable: Callable[[BaseException], bool] = is_throttling_error) -> T:
    """
    Runs operation until it succeeds, the error is not retryable, or the retry cap is spent.
    The last error is re-raised unchanged.
    """
    policy = policy or RetryPolicy()
    retries = 0
    delay = policy.initial_delay

    while True:
        try:
            return operation()
        except Exception as e:
            if retries >= policy.max_retries or not is_retryable(e):
                raise
            logger.warning(f"Retry {retries + 1}/{policy.max_retries} after {delay}s: {e}")
            sleep(delay)
            delay *= policy.backoff_factor
            retries += 1


class ResilienceAgent(BaseAgent):
    """
    Owns the backoff policy applied to every outbound model call.
    """
    def __init__(self, agent_name: str = "ResilienceAgent", config: Dict[str, Any] = None,
                 sleep: Callable[[float], Any] = time.sleep):
        super().__init__(agent_name, config)
        self.policy = RetryPolicy(
            max_retries=self.config.get("max_retries", 3),
            initial_delay=self.config.get("initial_delay", 1.0),
            backoff_factor=self.config.get("backoff_factor", 2),
        )
        self.sleep = sleep

    def call(self, operation: Callable[[], T]) -> T:
        return retry_with_backoff(operation, self.policy, sleep=self.sleep)
