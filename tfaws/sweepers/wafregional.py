import logging
import threading
from functools import partial
from typing import TYPE_CHECKING, Any

from botocore.exceptions import ClientError

from tfaws.sweep import SweepResource
from tfaws.sweepers import SweeperRuntime, registry
from tfaws.utils.aws_errors import (
    err_code_equals,
    skip_resource_classifier,
    skip_sweep_error,
)
from tfaws.utils.change_token import WafRegionalRetryer
from tfaws.utils.retry import NotFoundError

if TYPE_CHECKING:
    from mypy_boto3_waf_regional import WAFRegionalClient
else:
    WAFRegionalClient = object

NONEXISTENT_ITEM = "WAFNonexistentItemException"
LIST_LIMIT = 100


def list_rate_based_rules(conn: WAFRegionalClient) -> list[dict[str, Any]]:
    rules: list[dict[str, Any]] = []
    kwargs: dict[str, Any] = {"Limit": LIST_LIMIT}
    while True:
        resp = conn.list_rate_based_rules(**kwargs)
        rules.extend(resp.get("Rules", []))
        marker = resp.get("NextMarker")
        if not marker:
            return rules
        kwargs["NextMarker"] = marker


def find_rate_based_rule(conn: WAFRegionalClient, rule_id: str) -> dict[str, Any]:
    try:
        resp = conn.get_rate_based_rule(RuleId=rule_id)
    except ClientError as e:
        if err_code_equals(e, NONEXISTENT_ITEM):
            raise NotFoundError(
                f"rate based rule {rule_id} not found", last_error=e
            ) from e
        raise
    rule = resp.get("Rule")
    if not rule:
        raise NotFoundError(f"rate based rule {rule_id}: empty result")
    return rule


def delete_rate_based_rule(
    conn: WAFRegionalClient,
    retryer: WafRegionalRetryer,
    rule_id: str,
    cancel: threading.Event | None = None,
) -> None:
    """Detach every predicate of the rule, then delete it. A rule that is
    already gone counts as deleted."""
    try:
        rule = find_rate_based_rule(conn, rule_id)
    except NotFoundError:
        logging.debug(f"rate based rule {rule_id} already deleted")
        return

    predicates = rule.get("MatchPredicates") or []
    try:
        if predicates:
            retryer.retry_with_token(
                lambda token: conn.update_rate_based_rule(
                    RuleId=rule_id,
                    ChangeToken=token,
                    Updates=[
                        {"Action": "DELETE", "Predicate": predicate}
                        for predicate in predicates
                    ],
                    RateLimit=rule["RateLimit"],
                ),
                cancel=cancel,
            )
        retryer.retry_with_token(
            lambda token: conn.delete_rate_based_rule(
                RuleId=rule_id, ChangeToken=token
            ),
            cancel=cancel,
        )
    except Exception as e:
        if err_code_equals(e, NONEXISTENT_ITEM):
            return
        raise


@registry.register("aws_wafregional_rate_based_rule")
def sweep_rate_based_rules(region: str, runtime: SweeperRuntime) -> None:
    conn = runtime.clients.get(region).wafregional
    retryer = WafRegionalRetryer(
        conn, region, runtime.mutex_kv, policy=runtime.token_policy
    )

    try:
        rules = list_rate_based_rules(conn)
    except Exception as e:
        if skip_sweep_error(e):
            logging.warning(
                f"Skipping WAF Regional Rate Based Rule sweep for {region}: {e}"
            )
            return
        raise

    sweep_resources = [
        SweepResource(
            rule["RuleId"],
            partial(
                delete_rate_based_rule,
                conn,
                retryer,
                rule["RuleId"],
                cancel=runtime.cancel,
            ),
        )
        for rule in rules
    ]
    logging.info(
        f"sweeping {len(sweep_resources)} WAF Regional Rate Based Rules in {region}"
    )
    errors = runtime.sweep(sweep_resources, classifier=skip_resource_classifier)
    if errors:
        raise errors
