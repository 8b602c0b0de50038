from __future__ import annotations

import httpx
import pytest
from openai import APIConnectionError, APIStatusError

from breadcount.config import EstimatorConfig
from breadcount.errors import ConfigurationError, InvalidSubmissionError, ProcessingError
from breadcount.estimator import COUNT_INSTRUCTION, BreadCountEstimator, parse_count, strip_data_uri

from fakes import IMAGE, make_estimator

_URL = "https://vision.invalid/v1/chat/completions"


@pytest.mark.parametrize(
    "reply, expected",
    [
        ("3 loaves", 3),
        ("12", 12),
        (" 7\n", 7),
        ("", 0),
        (None, 0),
        ("no bread here", 0),
        ("0", 0),
        ("between 4 and 5", 45),
    ],
)
def test_parse_count_keeps_only_digits(reply, expected):
    assert parse_count(reply) == expected


def test_strip_data_uri_splits_mime_and_body():
    assert strip_data_uri("data:image/png;base64,iVBORw0KGgo=") == ("image/png", "iVBORw0KGgo=")
    assert strip_data_uri("iVBORw0KGgo=") == ("image/jpeg", "iVBORw0KGgo=")


@pytest.mark.parametrize("payload", ["", "   ", None, "data:image/jpeg;base64,"])
def test_strip_data_uri_rejects_empty_payloads(payload):
    with pytest.raises(InvalidSubmissionError):
        strip_data_uri(payload)


def test_estimate_sends_single_request_with_instruction_and_image():
    estimator = make_estimator("There are 3 breads")
    assert estimator.estimate(IMAGE) == 3

    calls = estimator._client.chat.completions.calls
    assert len(calls) == 1
    assert calls[0]["model"] == "test-vision-model"
    content = calls[0]["messages"][0]["content"]
    assert content[0] == {"type": "text", "text": COUNT_INSTRUCTION}
    assert content[1]["image_url"]["url"] == IMAGE


def test_bare_base64_is_sent_as_jpeg_data_url():
    estimator = make_estimator("2")
    estimator.estimate("QUJD")
    url = estimator._client.chat.completions.calls[0]["messages"][0]["content"][1]["image_url"]["url"]
    assert url == "data:image/jpeg;base64,QUJD"


def test_missing_api_key_fails_before_any_call():
    estimator = make_estimator("3", api_key=None)
    assert estimator.is_configured is False
    with pytest.raises(ConfigurationError):
        estimator.estimate(IMAGE)
    assert estimator._client.chat.completions.calls == []


def test_connection_failure_is_a_processing_error():
    error = APIConnectionError(request=httpx.Request("POST", _URL))
    estimator = make_estimator(error)
    with pytest.raises(ProcessingError):
        estimator.estimate(IMAGE)


def test_http_error_status_is_a_processing_error():
    request = httpx.Request("POST", _URL)
    response = httpx.Response(503, request=request, text="overloaded")
    error = APIStatusError("Service Unavailable", response=response, body=None)
    estimator = make_estimator(error)
    with pytest.raises(ProcessingError):
        estimator.estimate(IMAGE)
    # No automatic retry
    assert len(estimator._client.chat.completions.calls) == 1


def test_empty_model_reply_counts_as_zero():
    estimator = make_estimator("")
    assert estimator.estimate(IMAGE) == 0


def test_count_beyond_ceiling_is_a_processing_error():
    estimator = make_estimator("99999999999")
    with pytest.raises(ProcessingError):
        estimator.estimate(IMAGE)


def test_client_is_built_once_at_construction():
    estimator = BreadCountEstimator(EstimatorConfig(api_key="k", base_url="https://vision.invalid/v1/"))
    client = estimator._client
    assert client is not None
    assert client.max_retries == 0
    estimator.close()


def test_unconfigured_estimator_has_no_client():
    estimator = BreadCountEstimator(EstimatorConfig(api_key=None))
    assert estimator._client is None
    estimator.close()


def test_close_releases_injected_client():
    estimator = make_estimator()
    estimator.close()
    assert estimator._client.closed == 1
