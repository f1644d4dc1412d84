import logging
import os
import sys
from collections.abc import Callable

import click
import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

import tfaws.sweepers.wafregional  # noqa: F401
from tfaws.client import RegionalClientCache, build_aws_client
from tfaws.config import SweeperConfig
from tfaws.status import ExitCodes
from tfaws.sweep import SWEEP_THROTTLING_RETRY_TIMEOUT
from tfaws.sweepers import (
    SweeperError,
    SweeperRegistryError,
    SweeperRuntime,
    registry,
)
from tfaws.utils.change_token import CHANGE_TOKEN_RETRY_POLICY
from tfaws.utils.environment import init_env
from tfaws.utils.envvar import EnvVarError
from tfaws.utils.retry import RetryPolicy

# Enable Sentry
if os.getenv("SENTRY_DSN"):
    sentry_sdk.init(
        os.environ["SENTRY_DSN"],
        integrations=[
            LoggingIntegration(event_level=logging.CRITICAL),
        ],
    )


def log_level(function: Callable) -> Callable:
    function = click.option(
        "--log-level",
        help="log-level of the command. Defaults to INFO.",
        type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    )(function)
    return function


def thread_pool_size(function: Callable) -> Callable:
    function = click.option(
        "--thread-pool-size",
        help="number of threads deleting resources in parallel. "
        "Defaults to one thread per resource.",
        type=click.IntRange(min=1),
        default=None,
    )(function)
    return function


def dry_run(function: Callable) -> Callable:
    help_msg = (
        "If `true`, it will only print the resources "
        "that would be deleted, without deleting them."
    )

    function = click.option("--dry-run/--no-dry-run", default=False, help=help_msg)(
        function
    )
    return function


def parse_sweep_run(ctx, param, value: str | None) -> list[str] | None:
    if not value:
        return None
    filters = [f.strip() for f in value.split(",") if f.strip()]
    if not filters:
        raise click.BadParameter("expected a comma separated list of sweeper names")
    return filters


@click.group()
def sweep() -> None:
    """Delete resources left behind by acceptance tests."""


@sweep.command(name="list")
def list_sweepers() -> None:
    """List registered sweepers."""
    for name in registry.names():
        click.echo(name)


@sweep.command(name="run")
@click.option(
    "--region",
    "regions",
    multiple=True,
    required=True,
    help="region to sweep. Can be given multiple times.",
)
@click.option(
    "--sweep-run",
    "filters",
    callback=parse_sweep_run,
    help="comma separated list of sweepers to run. "
    "Sweepers whose name contains any of the values are selected.",
)
@click.option(
    "--allow-failures",
    is_flag=True,
    default=False,
    help="keep running the remaining sweepers when one fails.",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0),
    default=SWEEP_THROTTLING_RETRY_TIMEOUT,
    show_default=True,
    help="seconds to keep retrying throttled deletions and stale change tokens.",
)
@click.option(
    "--delay-rand",
    type=click.FloatRange(min=0),
    default=0.0,
    help="upper bound in seconds of a random delay before each deletion.",
)
@thread_pool_size
@dry_run
@log_level
def run_sweepers(
    regions: tuple[str, ...],
    filters: list[str] | None,
    allow_failures: bool,
    timeout: float,
    delay_rand: float,
    thread_pool_size: int | None,
    dry_run: bool,
    log_level: str | None,
) -> None:
    init_env(log_level=log_level, dry_run=dry_run)

    try:
        for region in regions:
            SweeperConfig.from_env(region)
        sweepers = registry.resolve(filters)
    except (EnvVarError, SweeperRegistryError) as e:
        logging.error(str(e))
        sys.exit(ExitCodes.CONFIGURATION_ERROR)

    logging.info(
        f"running sweepers {[s.name for s in sweepers]} in regions {list(regions)}"
    )
    runtime = SweeperRuntime(
        clients=RegionalClientCache(build_aws_client),
        policy=RetryPolicy(min_timeout=0, delay_rand=delay_rand, timeout=timeout),
        thread_pool_size=thread_pool_size,
        dry_run=dry_run,
        token_policy=CHANGE_TOKEN_RETRY_POLICY.model_copy(update={"timeout": timeout}),
    )
    try:
        errors = registry.run(
            regions, runtime, filters=filters, allow_failures=allow_failures
        )
    except SweeperError as e:
        logging.error(str(e))
        sys.exit(ExitCodes.ERROR)

    if errors:
        logging.error(f"sweepers finished with failures: {errors}")
        sys.exit(ExitCodes.ERROR)
    sys.exit(ExitCodes.SUCCESS)
