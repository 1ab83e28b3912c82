import io
import logging

import pytest

from discord_image_utils.config import Settings, load_settings
from discord_image_utils.errors import ConfigurationError
from discord_image_utils.logger import (
    EVENT_LEVEL,
    SUCCESSTRACE_LEVEL,
    TRACE_LEVEL,
    ColoredFormatter,
    get_logger,
    parse_level,
    setup_logging,
)


def test_defaults_without_environment():
    settings = load_settings({})

    assert settings == Settings()
    assert settings.log_level == "error"
    assert settings.timeout_ms == 30000
    assert settings.max_attempts == 3
    assert settings.bot_token is None


def test_environment_overrides():
    settings = load_settings({
        "DIU_LOG_LEVEL": "debug",
        "DIU_TIMEOUT_MS": "1500",
        "DIU_MAX_ATTEMPTS": "5",
        "DIU_BASE_DELAY_MS": "0",
        "DIU_MAX_DELAY_MS": "250.5",
        "DIU_BACKOFF_FACTOR": "1.5",
        "BOT_TOKEN": "abc.def",
    })

    assert settings.log_level == "debug"
    assert settings.timeout_ms == 1500.0
    assert settings.max_attempts == 5
    assert settings.base_delay_ms == 0
    assert settings.max_delay_ms == 250.5
    assert settings.backoff_factor == 1.5
    assert settings.bot_token == "abc.def"


def test_blank_values_fall_back_to_defaults():
    assert load_settings({"DIU_TIMEOUT_MS": "  ", "BOT_TOKEN": ""}) == Settings()


@pytest.mark.parametrize(
    "key, raw",
    [
        ("DIU_TIMEOUT_MS", "0"),
        ("DIU_TIMEOUT_MS", "soon"),
        ("DIU_TIMEOUT_MS", "inf"),
        ("DIU_MAX_ATTEMPTS", "0"),
        ("DIU_MAX_ATTEMPTS", "2.5"),
        ("DIU_BASE_DELAY_MS", "-1"),
        ("DIU_BACKOFF_FACTOR", "0.5"),
        ("DIU_LOG_LEVEL", "loud"),
    ],
)
def test_bad_values_name_the_variable(key, raw):
    with pytest.raises(ConfigurationError) as info:
        load_settings({key: raw})
    assert info.value.details["config"] in (key, "log_level")


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, EVENT_LEVEL),
        ("debug", logging.DEBUG),
        ("WARN", logging.WARNING),
        ("warning", logging.WARNING),
        ("fatal", logging.CRITICAL),
        ("trace", TRACE_LEVEL),
        ("S-TRACE", SUCCESSTRACE_LEVEL),
        ("successtrace", SUCCESSTRACE_LEVEL),
        ("40", 40),
        (15, 15),
    ],
)
def test_parse_level(raw, expected):
    assert parse_level(raw) == expected


@pytest.mark.parametrize("raw", ["verbose", True, ""])
def test_parse_level_rejects_unknown(raw):
    with pytest.raises(ConfigurationError):
        parse_level(raw)


@pytest.fixture
def restore_package_logger():
    pkg_log = logging.getLogger("discord_image_utils")
    handlers, level, propagate = list(pkg_log.handlers), pkg_log.level, pkg_log.propagate
    yield pkg_log
    for handler in list(pkg_log.handlers):
        if handler not in handlers:
            pkg_log.removeHandler(handler)
    pkg_log.setLevel(level)
    pkg_log.propagate = propagate


def test_setup_logging_installs_one_handler(restore_package_logger):
    stream = io.StringIO()

    setup_logging("trace", stream=stream, use_color=False)
    pkg_log = setup_logging("info", stream=stream, use_color=False)

    assert pkg_log is restore_package_logger
    assert len([h for h in pkg_log.handlers if isinstance(h.formatter, ColoredFormatter)]) == 1
    assert pkg_log.level == logging.INFO

    get_logger("discord_image_utils.fetch").info("hello there")
    get_logger("discord_image_utils.fetch").debug("not shown")

    output = stream.getvalue()
    assert "[discord_image_utils.fetch] hello there" in output
    assert "INFO" in output
    assert "not shown" not in output
    assert "\033[" not in output


def test_get_logger_infers_module_name():
    assert get_logger().name == __name__


def test_custom_logger_methods(caplog):
    caplog.set_level(TRACE_LEVEL, logger="discord_image_utils")
    log = get_logger("discord_image_utils.tests")

    log.trace("tracing")
    log.success("done")
    log.warningtrace("careful")

    levels = [r.levelname for r in caplog.records]
    assert levels == ["TRACE", "SUCCESS", "W-TRACE"]
