import logging
import os

TFAWS_LOG_LEVEL = "TFAWS_LOG_LEVEL"

LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def log_fmt(dry_run: bool | None = None) -> str:
    log_fmt = (
        "[%(asctime)s] [%(levelname)s] [DRY-RUN] "
        if dry_run
        else "[%(asctime)s] [%(levelname)s] "
    )

    log_fmt += "[%(filename)s:%(funcName)s:%(lineno)d] - %(message)s"

    return log_fmt


def init_env(log_level: str | None = None, dry_run: bool | None = None) -> None:
    # store the level in the environment so child processes pick it up
    # by calling `init_env()` with no parameters.
    if log_level:
        os.environ[TFAWS_LOG_LEVEL] = log_level

    logging.basicConfig(
        format=log_fmt(dry_run=dry_run),
        datefmt=LOG_DATEFMT,
        level=getattr(logging, os.environ.get(TFAWS_LOG_LEVEL, "INFO")),
    )
