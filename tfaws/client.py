import logging
from collections.abc import Callable
from functools import cached_property
from threading import Lock
from typing import TYPE_CHECKING, Generic, TypeVar

from boto3 import Session
from botocore.client import BaseClient

from tfaws.config import SweeperConfig
from tfaws.utils.sts import AWSApiSts

if TYPE_CHECKING:
    from mypy_boto3_waf_regional import WAFRegionalClient
else:
    WAFRegionalClient = object

ClientT = TypeVar("ClientT")


class AWSClient:
    """Per-region handle on the AWS APIs used by sweepers."""

    def __init__(self, config: SweeperConfig, session: Session) -> None:
        self.config = config
        self.session = session
        self._clients: dict[str, BaseClient] = {}
        self._lock = Lock()

    @property
    def region(self) -> str:
        return self.config.region

    @property
    def partition(self) -> str:
        return self.session.get_partition_for_region(self.region)

    def client(self, service_name: str) -> BaseClient:
        with self._lock:
            if service_name not in self._clients:
                self._clients[service_name] = self.session.client(
                    service_name, config=self.config.botocore_config
                )
            return self._clients[service_name]

    @property
    def wafregional(self) -> WAFRegionalClient:
        return self.client("waf-regional")  # type: ignore[return-value]

    @cached_property
    def account_id(self) -> str:
        return AWSApiSts(self.client("sts")).get_caller_identity()  # type: ignore[arg-type]


def build_aws_client(region: str) -> AWSClient:
    config = SweeperConfig.from_env(region)
    return AWSClient(config, config.build_session())


class RegionalClientCache(Generic[ClientT]):
    """
    A shared cache of regional clients. A client is built once per region
    by the factory and reused by every sweeper afterwards.
    """

    def __init__(self, factory: Callable[[str], ClientT]) -> None:
        self._factory = factory
        self._clients: dict[str, ClientT] = {}
        self._lock = Lock()

    def get(self, region: str) -> ClientT:
        with self._lock:
            if region not in self._clients:
                logging.debug(f"building client for region {region}")
                self._clients[region] = self._factory(region)
            return self._clients[region]

    def regions(self) -> list[str]:
        with self._lock:
            return list(self._clients)
