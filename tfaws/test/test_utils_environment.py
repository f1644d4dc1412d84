import logging
import os

import pytest
from pytest_mock import MockerFixture

from tfaws.utils.environment import TFAWS_LOG_LEVEL, init_env, log_fmt


def test_log_fmt() -> None:
    assert (
        log_fmt()
        == "[%(asctime)s] [%(levelname)s] [%(filename)s:%(funcName)s:%(lineno)d] - %(message)s"
    )


def test_log_fmt_dry_run() -> None:
    assert log_fmt(dry_run=True).startswith("[%(asctime)s] [%(levelname)s] [DRY-RUN] ")


def test_init_env_log_level(
    mocker: MockerFixture, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv(TFAWS_LOG_LEVEL, "INFO")
    monkeypatch.delenv(TFAWS_LOG_LEVEL)
    basic_config = mocker.patch("tfaws.utils.environment.logging.basicConfig")

    init_env(log_level="DEBUG")

    assert os.environ[TFAWS_LOG_LEVEL] == "DEBUG"
    assert basic_config.call_args.kwargs["level"] == logging.DEBUG


def test_init_env_defaults_to_info(
    mocker: MockerFixture, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv(TFAWS_LOG_LEVEL, "INFO")
    monkeypatch.delenv(TFAWS_LOG_LEVEL)
    basic_config = mocker.patch("tfaws.utils.environment.logging.basicConfig")

    init_env()

    assert basic_config.call_args.kwargs["level"] == logging.INFO
