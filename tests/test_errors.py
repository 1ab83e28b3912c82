import copy
import json
import pickle
from datetime import datetime

import pytest

from discord_image_utils.errors import (
    ConfigurationError,
    DiscordImageError,
    FileSystemError,
    ImageProcessingError,
    NetworkError,
    RequestTimeoutError,
    ValidationError,
)


@pytest.mark.parametrize(
    "error, code, status",
    [
        (ValidationError("bad"), "VALIDATION_ERROR", 400),
        (NetworkError("down"), "NETWORK_ERROR", 503),
        (RequestTimeoutError("slow"), "TIMEOUT_ERROR", 408),
        (ImageProcessingError("broken"), "IMAGE_PROCESSING_ERROR", 500),
        (FileSystemError("missing"), "FILE_SYSTEM_ERROR", 500),
        (ConfigurationError("nope"), "CONFIGURATION_ERROR", 500),
    ],
)
def test_taxonomy_codes_and_default_status(error, code, status):
    assert isinstance(error, DiscordImageError)
    assert error.code == code
    assert error.status_code == status


def test_network_error_keeps_real_http_status():
    err = NetworkError("not found", "https://x.test/a.png", 404)

    assert err.status_code == 404
    assert err.details["url"] == "https://x.test/a.png"
    assert err.details["original_status_code"] == 404


def test_validation_error_details_describe_value():
    err = ValidationError("too big", "image", b"\x00" * 10)
    assert err.details == {"field": "image", "value": "<10 bytes>"}

    err = ValidationError("bad list", "items", [1, 2])
    assert json.loads(err.details["value"]) == [1, 2]


def test_timeout_error_carries_timeout_and_operation():
    err = RequestTimeoutError("late", 250, "fetch image")
    assert err.details["timeout"] == 250
    assert err.details["operation"] == "fetch image"


def test_errors_are_immutable():
    err = ValidationError("bad", "field")

    with pytest.raises(AttributeError):
        err.code = "OTHER"
    with pytest.raises(TypeError):
        err.details["field"] = "other"


def test_to_dict_is_json_ready():
    err = DiscordImageError("boom", "SOMETHING", 418, {"a": 1})
    data = err.to_dict()

    assert data["name"] == "DiscordImageError"
    assert data["code"] == "SOMETHING"
    assert data["status_code"] == 418
    assert data["details"] == {"a": 1}
    datetime.fromisoformat(data["timestamp"])
    json.dumps(data)


def test_cause_chain_survives_raise_from():
    original = OSError("disk")
    with pytest.raises(FileSystemError) as info:
        try:
            raise original
        except OSError as e:
            raise FileSystemError("cannot read", "/tmp/x", "read") from e
    assert info.value.__cause__ is original


@pytest.mark.parametrize("copier", [copy.copy, copy.deepcopy, lambda e: pickle.loads(pickle.dumps(e))])
@pytest.mark.parametrize(
    "error",
    [
        ValidationError("bad", "field", 1),
        NetworkError("bad gateway", "https://x.test/a.png", 502),
        RequestTimeoutError("late", 250, "fetch image"),
        DiscordImageError("boom", "SOMETHING", 418, {"a": [1, 2]}),
    ],
)
def test_errors_survive_copy_and_pickle(copier, error):
    clone = copier(error)

    assert type(clone) is type(error)
    assert clone.to_dict() == error.to_dict()
    assert str(clone) == str(error)
    with pytest.raises(AttributeError):
        clone.code = "OTHER"
