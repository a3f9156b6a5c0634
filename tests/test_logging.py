import logging

from app.core.logging import configure_logging


def test_configure_logging_adds_one_handler() -> None:
    logger = logging.getLogger("app")
    try:
        configure_logging("debug")
        configure_logging("warning")

        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
    finally:
        configure_logging("info")
