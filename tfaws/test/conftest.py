import time
from collections.abc import Callable

import pytest
from botocore.exceptions import ClientError

from tfaws.utils.mutexkv import MutexKV
from tfaws.utils.retry import RetryPolicy


@pytest.fixture
def patch_sleep(mocker):
    yield mocker.patch.object(time, "sleep")


@pytest.fixture
def client_error() -> Callable[..., ClientError]:
    def builder(
        code: str, message: str = "", operation: str = "Operation"
    ) -> ClientError:
        return ClientError({"Error": {"Code": code, "Message": message}}, operation)

    return builder


@pytest.fixture
def mutex_kv() -> MutexKV:
    return MutexKV()


@pytest.fixture
def fast_policy() -> RetryPolicy:
    return RetryPolicy(min_timeout=0, poll_interval=0.001, timeout=5)
