import logging

import structlog

from advisory_board.logging_config import (
    bind_request_context,
    clear_request_context,
    configure_logging,
)


def test_configure_is_idempotent():
    configure_logging(force=True)
    handlers = list(logging.getLogger().handlers)

    configure_logging()
    assert logging.getLogger().handlers == handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0].formatter, structlog.stdlib.ProcessorFormatter)


def test_request_context_bind_and_clear():
    bind_request_context(request_id="req_1", batch_id="batch_1")
    assert structlog.contextvars.get_contextvars() == {"request_id": "req_1", "batch_id": "batch_1"}

    bind_request_context(batch_id="batch_2")
    assert structlog.contextvars.get_contextvars()["batch_id"] == "batch_2"

    clear_request_context()
    assert structlog.contextvars.get_contextvars() == {}
