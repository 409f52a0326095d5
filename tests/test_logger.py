import logging

from coursework.core.logger import get_logger, setup_logging


def test_setup_logging_is_idempotent():
    logger = setup_logging()
    setup_logging()

    assert logger.name == "coursework"
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], logging.StreamHandler)
    assert logger.propagate is False


def test_service_loggers_hang_off_the_package_logger():
    root = setup_logging()
    child = get_logger("enrollment")

    assert child.name == "coursework.enrollment"
    assert child.parent is root
    assert child.getEffectiveLevel() == root.level
