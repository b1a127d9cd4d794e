"""Tests for the cancellation token, geographic helpers and logging setup."""
import logging
import threading
import time

import pytest

from maps_business_finder.utils.cancellation import CancellationToken, ScrapeCancelled
from maps_business_finder.utils.geo_utils import haversine_km, is_valid_coordinate
from maps_business_finder.utils.logging_config import LOGGER_NAME, get_logger, setup_logging


def test_token_sleep_returns_when_not_cancelled():
    token = CancellationToken()
    token.sleep(0.01)
    token.sleep(0)
    assert not token.is_cancelled()


def test_token_sleep_wakes_up_on_cancel():
    token = CancellationToken()
    threading.Timer(0.05, token.cancel).start()
    started = time.monotonic()
    with pytest.raises(ScrapeCancelled, match="Session stopped by user"):
        token.sleep(5)
    assert time.monotonic() - started < 2


def test_token_raise_if_cancelled():
    token = CancellationToken()
    token.raise_if_cancelled()
    token.cancel()
    with pytest.raises(ScrapeCancelled):
        token.raise_if_cancelled()
    with pytest.raises(ScrapeCancelled):
        token.sleep(0)


def test_is_valid_coordinate():
    assert is_valid_coordinate(-23.5, -46.6)
    assert is_valid_coordinate(90, 180)
    assert not is_valid_coordinate(90.1, 0)
    assert not is_valid_coordinate(0, -180.5)
    assert not is_valid_coordinate(True, 0)
    assert not is_valid_coordinate(None, 0)
    assert not is_valid_coordinate(float("nan"), 0)


def test_haversine_km():
    assert haversine_km(0, 0, 0, 0) == 0
    distance = haversine_km(-23.5505, -46.6333, -22.9068, -43.1729)
    assert 350 < distance < 370
    assert haversine_km(95, 0, 0, 0) is None


def test_setup_logging_with_file(tmp_path):
    log_file = tmp_path / "logs" / "run.log"
    logger = setup_logging(log_file=str(log_file), debug=True)
    try:
        assert logger.name == LOGGER_NAME
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 2
        logger.info("Hello -> São Paulo")
        for handler in logger.handlers:
            handler.flush()
        assert "São Paulo" in log_file.read_text(encoding="utf-8")
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        logger.propagate = True


def test_get_logger_default():
    assert get_logger().name == LOGGER_NAME
    custom = logging.getLogger("custom")
    assert get_logger(custom) is custom
