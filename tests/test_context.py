"""Tests for request-scoped logging."""

import asyncio
import logging

import pytest

from image_trust_webhook.core.context import (
    bound_logger,
    log_start_time,
    logger_from_context,
    logger_to_context,
)


def test_unbound_logger_adds_nothing():
    """Test that messages pass through unchanged without bound fields."""
    logger = logger_from_context()
    assert logger.process("hello", {}) == ("hello", {})


def test_bound_logger_is_restored():
    """Test that fields are only bound inside the block."""
    with bound_logger(req_id="r1") as logger:
        assert logger_from_context() is logger
        with bound_logger(image="ghcr.io/org/app:v1"):
            msg, _ = logger_from_context().process("checking", {})
            assert msg == "checking [req_id=r1 image=ghcr.io/org/app:v1]"
        assert logger_from_context() is logger
    assert logger_from_context().extra == {}


@pytest.mark.asyncio
async def test_tasks_inherit_context_logger():
    """Test that tasks created inside a bound block see its fields."""

    async def fields():
        return dict(logger_from_context().extra)

    with bound_logger(req_id="r2"):
        result = await asyncio.create_task(fields())

    assert result == {"req_id": "r2"}


@pytest.mark.asyncio
async def test_logger_to_context_is_task_local():
    """Test that setting the logger inside a task does not leak out."""

    async def bind():
        logger_to_context(logger_from_context().bind(worker="w1"))

    await asyncio.create_task(bind())
    assert "worker" not in logger_from_context().extra


def test_log_start_time(caplog):
    """Test that the closer logs the elapsed time."""
    with caplog.at_level(logging.DEBUG, logger="image_trust_webhook"):
        close = log_start_time("request to notary")
        close()

    messages = [r.getMessage() for r in caplog.records]
    assert messages[0] == "request to notary started"
    assert messages[1].startswith("request to notary finished (took ")
