from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional, Union

# Request and sync context carried onto every log record
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
customer_id_var: ContextVar[Optional[str]] = ContextVar("customer_id", default=None)
sync_stage_var: ContextVar[Optional[str]] = ContextVar("sync_stage", default=None)

LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | cid=%(correlation_id)s | customer=%(customer_id)s | "
    "stage=%(sync_stage)s | %(message)s"
)

# Per-request chatter from the HTTP stack; SkuVaultClient logs its own calls
_NOISY_LOGGERS = ("httpx", "httpcore")


class LoggingContextFilter(logging.Filter):
    """
    Copy correlation_id, customer_id and sync_stage from contextvars onto each
    record, using "-" when unset.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.correlation_id = correlation_id_var.get() or "-"
        record.customer_id = customer_id_var.get() or "-"
        record.sync_stage = sync_stage_var.get() or "-"
        return True


# PUBLIC_INTERFACE
def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Install a single stdout handler on the root logger.

    Safe to call more than once (API import, CLI start); earlier handlers are
    replaced rather than duplicated.
    """
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    handler.addFilter(LoggingContextFilter())

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


# PUBLIC_INTERFACE
@contextmanager
def customer_log_context(customer_id: Union[int, str], stage: Optional[str] = None) -> Iterator[None]:
    """
    Tag log records emitted inside the block with a customer and, optionally,
    the sync stage being run for it.
    """
    customer_token = customer_id_var.set(str(customer_id))
    stage_token = sync_stage_var.set(stage) if stage is not None else None
    try:
        yield
    finally:
        if stage_token is not None:
            sync_stage_var.reset(stage_token)
        customer_id_var.reset(customer_token)
