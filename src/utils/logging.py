"""Run-correlated logging.

The run id lives in structlog's context variables, so the structured server
logs pick it up through ``merge_contextvars`` and the CLI's rich handler picks
it up through :class:`RunIdFilter`.
"""

import logging
import sys
import uuid

import structlog


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Route stdlib and structlog loggers through one structlog formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_output: JSON lines when True, colored console output otherwise
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper()))
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_run_context(run_id: str | None = None) -> str:
    """Bind a run id to every log line emitted until the context is cleared.

    Args:
        run_id: Run id to use; a short random one is generated if omitted

    Returns:
        The run id now in effect
    """
    run_id = run_id or uuid.uuid4().hex[:12]
    structlog.contextvars.bind_contextvars(run_id=run_id)
    return run_id


def get_run_id() -> str | None:
    return structlog.contextvars.get_contextvars().get("run_id")


def clear_run_context() -> None:
    structlog.contextvars.unbind_contextvars("run_id")


class RunIdFilter(logging.Filter):
    """Expose the current run id to plain format strings as ``%(run_tag)s``."""

    def filter(self, record: logging.LogRecord) -> bool:
        run_id = get_run_id()
        record.run_tag = f"[{run_id}] " if run_id else ""
        return True
