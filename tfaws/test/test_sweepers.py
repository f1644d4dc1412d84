from unittest.mock import Mock

import pytest

from tfaws.client import RegionalClientCache
from tfaws.sweep import SweepResource
from tfaws.sweepers import (
    SweeperError,
    SweeperRegistry,
    SweeperRegistryError,
    SweeperRuntime,
)
from tfaws.utils.retry import RetryPolicy


@pytest.fixture
def runtime(fast_policy: RetryPolicy) -> SweeperRuntime:
    return SweeperRuntime(clients=RegionalClientCache(Mock()), policy=fast_policy)


@pytest.fixture
def calls() -> list[tuple[str, str]]:
    return []


@pytest.fixture
def sweeper_registry(calls: list[tuple[str, str]]) -> SweeperRegistry:
    registry = SweeperRegistry()

    def recorder(name: str):  # type: ignore[no-untyped-def]
        def sweep(region: str, runtime: SweeperRuntime) -> None:
            calls.append((name, region))

        return sweep

    registry.add("aws_wafregional_web_acl", recorder("aws_wafregional_web_acl"))
    registry.add(
        "aws_wafregional_rate_based_rule",
        recorder("aws_wafregional_rate_based_rule"),
        dependencies=["aws_wafregional_web_acl"],
    )
    registry.add("aws_s3_bucket", recorder("aws_s3_bucket"))
    return registry


def test_registry_names(sweeper_registry: SweeperRegistry) -> None:
    assert sweeper_registry.names() == [
        "aws_s3_bucket",
        "aws_wafregional_rate_based_rule",
        "aws_wafregional_web_acl",
    ]


def test_registry_duplicate(sweeper_registry: SweeperRegistry) -> None:
    with pytest.raises(SweeperRegistryError):
        sweeper_registry.add("aws_s3_bucket", Mock())


def test_registry_register_decorator() -> None:
    registry = SweeperRegistry()

    @registry.register("aws_thing", dependencies=["aws_other"])
    def sweep_thing(region: str, runtime: SweeperRuntime) -> None:
        pass

    registry.add("aws_other", Mock())
    assert [s.name for s in registry.resolve()] == ["aws_other", "aws_thing"]
    assert registry.resolve(["aws_thing"])[-1].func is sweep_thing


def test_registry_resolve_dependencies_first(
    sweeper_registry: SweeperRegistry,
) -> None:
    assert [s.name for s in sweeper_registry.resolve(["rate_based"])] == [
        "aws_wafregional_web_acl",
        "aws_wafregional_rate_based_rule",
    ]


def test_registry_resolve_all(sweeper_registry: SweeperRegistry) -> None:
    names = [s.name for s in sweeper_registry.resolve(None)]
    assert names == [
        "aws_s3_bucket",
        "aws_wafregional_web_acl",
        "aws_wafregional_rate_based_rule",
    ]


def test_registry_resolve_unknown_dependency() -> None:
    registry = SweeperRegistry()
    registry.add("aws_thing", Mock(), dependencies=["aws_missing"])
    with pytest.raises(SweeperRegistryError, match="unknown sweeper aws_missing"):
        registry.resolve()


def test_registry_resolve_cycle() -> None:
    registry = SweeperRegistry()
    registry.add("a", Mock(), dependencies=["b"])
    registry.add("b", Mock(), dependencies=["a"])
    with pytest.raises(SweeperRegistryError, match="cycle"):
        registry.resolve()


def test_registry_run_regions(
    sweeper_registry: SweeperRegistry,
    runtime: SweeperRuntime,
    calls: list[tuple[str, str]],
) -> None:
    errors = sweeper_registry.run(["us-east-1", "eu-west-1"], runtime, filters=["waf"])
    assert not errors
    assert calls == [
        ("aws_wafregional_web_acl", "us-east-1"),
        ("aws_wafregional_rate_based_rule", "us-east-1"),
        ("aws_wafregional_web_acl", "eu-west-1"),
        ("aws_wafregional_rate_based_rule", "eu-west-1"),
    ]


def test_registry_run_stops_on_failure(runtime: SweeperRuntime) -> None:
    registry = SweeperRegistry()
    registry.add("a", Mock(side_effect=ValueError("boom")))
    b = Mock()
    registry.add("b", b)

    with pytest.raises(SweeperError) as e:
        registry.run(["us-east-1"], runtime)

    assert e.value.sweeper == "a"
    assert e.value.region == "us-east-1"
    b.assert_not_called()


def test_registry_run_allow_failures(runtime: SweeperRuntime) -> None:
    registry = SweeperRegistry()
    registry.add("a", Mock(side_effect=ValueError("boom")))
    b = Mock()
    registry.add("b", b)

    errors = registry.run(["us-east-1", "us-west-2"], runtime, allow_failures=True)

    assert [(e.sweeper, e.region) for e in errors] == [  # type: ignore[attr-defined]
        ("a", "us-east-1"),
        ("a", "us-west-2"),
    ]
    assert b.call_count == 2


def test_runtime_sweep_uses_runtime_settings(runtime: SweeperRuntime) -> None:
    delete = Mock(side_effect=ValueError("boom"))
    errors = runtime.sweep([SweepResource("r-1", delete)])
    assert len(errors) == 1
    assert runtime.mutex_kv is not None


def test_runtime_sweep_dry_run(fast_policy: RetryPolicy) -> None:
    runtime = SweeperRuntime(
        clients=RegionalClientCache(Mock()), policy=fast_policy, dry_run=True
    )
    delete = Mock()
    errors = runtime.sweep([SweepResource("r-1", delete), SweepResource("r-2", delete)])
    assert not errors
    delete.assert_not_called()
