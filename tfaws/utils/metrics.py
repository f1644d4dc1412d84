from prometheus_client.core import Counter

retry_attempts = Counter(
    name="tfaws_retry_attempts_total",
    documentation="Attempts made by retry loops, by outcome",
    labelnames=["outcome"],
)

sweep_resources = Counter(
    name="tfaws_sweep_resources_total",
    documentation="Resources processed by the sweep orchestrator, by status",
    labelnames=["status"],
)

sweeper_runs = Counter(
    name="tfaws_sweeper_runs_total",
    documentation="Sweeper executions, by sweeper, region and status",
    labelnames=["sweeper", "region", "status"],
)
