import logging

from rich.logging import RichHandler

from clusterforge.logger import logger, set_verbose, setup_logger


def test_setup_logger_adds_one_rich_handler():
    first = setup_logger("clusterforge.test")
    second = setup_logger("clusterforge.test", level=logging.INFO)

    assert first is second
    assert len(second.handlers) == 1
    assert isinstance(second.handlers[0], RichHandler)
    assert second.level == logging.INFO


def test_set_verbose_toggles_debug():
    try:
        set_verbose(True)
        assert logger.level == logging.DEBUG
    finally:
        set_verbose(False)

    assert logger.level == logging.WARNING
