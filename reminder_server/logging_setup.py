"""Logging configuration shared by the CLI and the REST service."""
import logging

from rich.logging import RichHandler


def setup_logging(level: str = "INFO") -> None:
    """Route log records through a rich console handler.

    Args:
        level: Name of the root log level, e.g. "INFO" or "DEBUG".
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
