"""Tests for log routing"""

import logging

import pytest

from proficiency_exam.config import config
from proficiency_exam.logging_config import setup_logging


@pytest.fixture
def root_logger():
    """Root logger restored after the test reconfigures it"""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_info_goes_to_stdout_and_warnings_to_stderr(root_logger, capsys):
    setup_logging("info")
    logger = logging.getLogger("proficiency_exam.sessions")

    logger.info("session created")
    logger.warning("verifier slow")

    captured = capsys.readouterr()
    assert "INFO:proficiency_exam.sessions:session created" in captured.out
    assert "verifier slow" not in captured.out
    assert "WARNING:proficiency_exam.sessions:verifier slow" in captured.err


def test_level_comes_from_config(root_logger, monkeypatch):
    monkeypatch.setitem(config, "log_level", "warning")

    setup_logging()

    assert root_logger.level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING


def test_unknown_level_falls_back_to_info(root_logger):
    setup_logging("chatty")
    assert root_logger.level == logging.INFO


def test_repeated_setup_does_not_stack_handlers(root_logger):
    setup_logging()
    setup_logging()
    assert len(root_logger.handlers) == 2
