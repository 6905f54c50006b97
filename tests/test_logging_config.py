"""Component logger levels"""
import logging

import pytest

from logging_config import configure_component_loggers


@pytest.fixture(autouse=True)
def restore_levels():
    names = ("providers", "now_playing")
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


def test_components_follow_console_level_when_enabled():
    levels = configure_component_loggers("DEBUG")

    assert levels == {"providers": logging.DEBUG, "now_playing": logging.DEBUG}
    assert logging.getLogger("now_playing.sessions").getEffectiveLevel() == logging.DEBUG


def test_now_playing_can_be_quieted_on_its_own():
    configure_component_loggers("INFO", log_providers=True, log_now_playing=False)

    assert logging.getLogger("providers").level == logging.INFO
    assert logging.getLogger("now_playing").level == logging.WARNING
    assert not logging.getLogger("now_playing.aggregator").isEnabledFor(logging.INFO)
    assert logging.getLogger("now_playing.aggregator").isEnabledFor(logging.WARNING)


def test_providers_can_be_quieted_on_its_own():
    configure_component_loggers("INFO", log_providers=False)

    assert logging.getLogger("providers.lastfm").getEffectiveLevel() == logging.WARNING
    assert logging.getLogger("now_playing").level == logging.INFO
