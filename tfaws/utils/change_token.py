import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

from botocore.exceptions import ClientError
from sretoolbox.utils import retry as sretoolbox_retry

from tfaws.utils.aws_errors import is_stale_token, is_throttling
from tfaws.utils.mutexkv import MutexKV
from tfaws.utils.retry import RetryOutcome, RetryPolicy, retry

if TYPE_CHECKING:
    from mypy_boto3_waf_regional import WAFRegionalClient
else:
    WAFRegionalClient = object

T = TypeVar("T")
Token = TypeVar("Token")

CHANGE_TOKEN_RETRY_POLICY = RetryPolicy(timeout=15 * 60)


class ChangeTokenError(Exception):
    def __init__(self, msg: Any) -> None:
        super().__init__("failed to acquire change token: " + str(msg))


class ThrottledError(Exception):
    pass


class ChangeTokenRetryer:
    """
    Runs operations that have to present a freshly fetched change token.

    Operations sharing a key are serialized through the MutexKV, so this
    process never invalidates its own tokens. Tokens made stale by someone
    else are handled by fetching a new token and trying again.
    """

    def __init__(
        self,
        mutex_kv: MutexKV,
        is_stale: Callable[[Exception], bool] = is_stale_token,
        policy: RetryPolicy = CHANGE_TOKEN_RETRY_POLICY,
    ) -> None:
        self.mutex_kv = mutex_kv
        self.is_stale = is_stale
        self.policy = policy

    def run_with_token(
        self,
        key: str,
        fetch_token: Callable[[], Token],
        operation: Callable[[Token], T],
        cancel: threading.Event | None = None,
    ) -> T:
        def attempt() -> RetryOutcome[T]:
            try:
                token = fetch_token()
            except Exception as e:
                return RetryOutcome.non_retryable(ChangeTokenError(e))
            try:
                return RetryOutcome.success(operation(token))
            except Exception as e:
                if self.is_stale(e):
                    logging.info(f"change token for {key} went stale, retrying: {e}")
                    return RetryOutcome.retryable(e)
                return RetryOutcome.non_retryable(e)

        with self.mutex_kv.locked(key, cancel=cancel):
            return retry(self.policy, attempt, cancel=cancel)


class WafRegionalRetryer:
    """ChangeTokenRetryer bound to a WAF Regional client, keyed by region."""

    def __init__(
        self,
        client: WAFRegionalClient,
        region: str,
        mutex_kv: MutexKV,
        policy: RetryPolicy = CHANGE_TOKEN_RETRY_POLICY,
    ) -> None:
        self.client = client
        self.region = region
        self._retryer = ChangeTokenRetryer(mutex_kv, is_stale=is_stale_token, policy=policy)

    @sretoolbox_retry(exceptions=ThrottledError, max_attempts=5)
    def get_change_token(self) -> str:
        try:
            return self.client.get_change_token()["ChangeToken"]
        except ClientError as e:
            if is_throttling(e):
                raise ThrottledError(e) from e
            raise

    def retry_with_token(
        self,
        f: Callable[[str], T],
        cancel: threading.Event | None = None,
    ) -> T:
        return self._retryer.run_with_token(
            self.region, self.get_change_token, f, cancel=cancel
        )
