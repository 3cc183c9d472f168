import asyncio

import httpx
import openai
import pytest

from advisory_board.utils.error_handling import (
    AdvisoryBoardError,
    ConfigurationError,
    ErrorKind,
    add_warning,
    classify_exception,
    identify_error_kind,
    safely,
)

_REQUEST = httpx.Request("POST", "https://api.example.test/v1/chat/completions")


def _status_error(status, message="error"):
    response = httpx.Response(status, request=_REQUEST)
    return openai.APIStatusError(message, response=response, body=None)


class TestClassification:
    @pytest.mark.parametrize(
        "status,message,expected",
        [
            (401, "bad key", ErrorKind.AUTHENTICATION_ERROR),
            (403, "forbidden", ErrorKind.QUOTA_EXCEEDED),
            (429, "slow down", ErrorKind.RATE_LIMITED),
            (429, "You exceeded your current quota", ErrorKind.QUOTA_EXCEEDED),
            (500, "server", ErrorKind.API_UNAVAILABLE),
            (503, "overloaded", ErrorKind.API_UNAVAILABLE),
            (400, "bad request", ErrorKind.INVALID_RESPONSE),
        ],
    )
    def test_openai_status_errors(self, status, message, expected):
        assert identify_error_kind(_status_error(status, message)) == expected

    def test_openai_connection_errors(self):
        assert identify_error_kind(openai.APIConnectionError(request=_REQUEST)) == ErrorKind.NETWORK_ERROR
        assert identify_error_kind(openai.APITimeoutError(request=_REQUEST)) == ErrorKind.RESPONSE_TIMEOUT

    @pytest.mark.parametrize(
        "error,expected",
        [
            (asyncio.TimeoutError(), ErrorKind.RESPONSE_TIMEOUT),
            (ConnectionResetError("reset"), ErrorKind.NETWORK_ERROR),
            (RuntimeError("Rate limit reached"), ErrorKind.RATE_LIMITED),
            (RuntimeError("quota exhausted"), ErrorKind.QUOTA_EXCEEDED),
            (RuntimeError("request timed out"), ErrorKind.RESPONSE_TIMEOUT),
            (RuntimeError("401 Unauthorized"), ErrorKind.AUTHENTICATION_ERROR),
            (RuntimeError("network unreachable"), ErrorKind.NETWORK_ERROR),
            (ValueError("something odd"), ErrorKind.UNKNOWN_ERROR),
        ],
    )
    def test_heuristics(self, error, expected):
        assert identify_error_kind(error) == expected

    def test_classify_preserves_message_and_original(self):
        original = ValueError("something odd")
        error = classify_exception(original, {"advisor_id": "a1"})
        assert error.kind == ErrorKind.UNKNOWN_ERROR
        assert error.message == "something odd"
        assert error.original is original
        assert error.context == {"advisor_id": "a1"}

    def test_classified_error_passes_through(self):
        error = AdvisoryBoardError(ErrorKind.CACHE_ERROR, "cache down")
        assert classify_exception(error, {"extra": 1}) is error
        assert error.context["extra"] == 1


def test_error_defaults():
    error = AdvisoryBoardError("not_a_kind")
    assert error.kind == ErrorKind.UNKNOWN_ERROR
    assert error.user_message
    assert error.request_id.startswith("req_")
    assert error.to_dict()["kind"] == "unknown_error"


def test_configuration_error_kind():
    error = ConfigurationError("bad config", context={"field": "x"})
    assert error.kind == ErrorKind.CONFIGURATION_ERROR
    assert isinstance(error, AdvisoryBoardError)


def test_add_warning():
    meta = add_warning(None, "fallback", "served static answer", advisor_id="a1")
    assert meta["degraded"] is True
    assert meta["warnings"] == [{"code": "fallback", "message": "served static answer", "advisor_id": "a1"}]


def test_safely_reraises_unless_non_fatal():
    with pytest.raises(KeyError):
        with safely("lookup"):
            raise KeyError("missing")

    with safely("lookup", non_fatal=True):
        raise KeyError("missing")
