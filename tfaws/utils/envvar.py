import os
from collections.abc import Iterable

AWS_ACCESS_KEY_ID = "AWS_ACCESS_KEY_ID"
AWS_CONTAINER_CREDENTIALS_FULL_URI = "AWS_CONTAINER_CREDENTIALS_FULL_URI"
AWS_PROFILE = "AWS_PROFILE"
AWS_SECRET_ACCESS_KEY = "AWS_SECRET_ACCESS_KEY"

TF_AWS_ASSUME_ROLE_ARN = "TF_AWS_ASSUME_ROLE_ARN"
TF_AWS_ASSUME_ROLE_DURATION = "TF_AWS_ASSUME_ROLE_DURATION"
TF_AWS_ASSUME_ROLE_EXTERNAL_ID = "TF_AWS_ASSUME_ROLE_EXTERNAL_ID"
TF_AWS_ASSUME_ROLE_SESSION_NAME = "TF_AWS_ASSUME_ROLE_SESSION_NAME"


class EnvVarError(Exception):
    pass


def require(name: str, usage: str) -> str:
    """Return the value of an environment variable that must be set."""
    value = os.environ.get(name)
    if not value:
        raise EnvVarError(f"environment variable {name} must be set. Usage: {usage}")
    return value


def require_one_of(names: Iterable[str], usage: str) -> tuple[str, str]:
    """Return the name and value of the first set environment variable."""
    names = list(names)
    for name in names:
        value = os.environ.get(name)
        if value:
            return name, value
    raise EnvVarError(
        f"at least one environment variable of {names} must be set. Usage: {usage}"
    )
