import json
import logging
import sys

import pytest
from loguru import logger

from spamshield.utils.logging_setup import setup_logging


@pytest.fixture(autouse=True)
def restore_loguru():
    yield
    logger.remove()
    logger.add(sys.stderr)


def test_text_logging_intercepts_stdlib(capsys):
    setup_logging(level="DEBUG", format="text")

    logging.getLogger("spamshield.test").warning("stdlib message")

    out = capsys.readouterr().out
    assert "stdlib message" in out
    assert "WARNING" in out


def test_json_logging(capsys):
    setup_logging(level="INFO", format="json", service_name="spamshield-test")
    capsys.readouterr()

    logger.info("structured message")

    line = capsys.readouterr().out.strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["record"]["message"] == "structured message"
    assert payload["record"]["extra"]["service"] == "spamshield-test"


def test_noisy_loggers_are_silenced():
    setup_logging(level="DEBUG", debug_loggers=["openai"])

    assert logging.getLogger("aiohttp").level == logging.WARNING
    assert logging.getLogger("openai").level == logging.DEBUG
