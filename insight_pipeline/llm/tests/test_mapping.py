"""Request/response normalization and exception mapping tests. Map by class name and status."""
import pytest

from insight_pipeline.llm.client_litellm import _map_exception, _request_to_kwargs, _response_from_completion
from insight_pipeline.llm.errors import LLMEmptyResponse
from insight_pipeline.llm.types import LLMMessage, LLMRequest


def _status_error(name: str, status: int) -> Exception:
    cls = type(name, (Exception,), {})
    e = cls(f"HTTP {status}")
    e.status_code = status
    return e


def test_map_timeout() -> None:
    """APITimeoutError / Timeout -> LLMTimeout (mapping uses type name)."""
    class Timeout(Exception):
        pass
    out = _map_exception(Timeout("timed out"))
    assert type(out).__name__ == "LLMTimeout"
    assert out.retryable is True
    assert "Timeout" in out.details


def test_map_rate_limit_by_status() -> None:
    out = _map_exception(_status_error("SomethingElse", 429))
    assert type(out).__name__ == "LLMRateLimited"
    assert out.retryable is True
    assert out.status_code == 429


@pytest.mark.parametrize("status", [500, 502, 503, 504, 599])
def test_map_any_5xx_is_transient(status: int) -> None:
    out = _map_exception(_status_error("APIError", status))
    assert type(out).__name__ == "LLMUnavailable"
    assert out.retryable is True


def test_map_auth_error() -> None:
    class AuthenticationError(Exception):
        pass
    out = _map_exception(AuthenticationError("invalid key"))
    assert type(out).__name__ == "LLMAuthError"
    assert out.retryable is False


def test_map_bad_request_by_status() -> None:
    out = _map_exception(_status_error("BadRequestError", 400))
    assert type(out).__name__ == "LLMBadRequest"
    assert out.retryable is False


def test_map_connection_error() -> None:
    class APIConnectionError(Exception):
        pass
    out = _map_exception(APIConnectionError("reset"))
    assert out.retryable is True


def test_map_unknown_exception() -> None:
    out = _map_exception(ValueError("something else"))
    assert out.code == "UNKNOWN"
    assert out.retryable is False
    assert "ValueError" in out.details


def test_request_kwargs_disable_library_retries() -> None:
    req = LLMRequest(messages=[LLMMessage(role="user", content="Hi")], temperature=0.0)
    kwargs = _request_to_kwargs(req, "openrouter/anthropic/claude-3-haiku", 90.0)
    assert kwargs["temperature"] == 0.0
    assert kwargs["messages"] == [{"role": "user", "content": "Hi"}]
    assert kwargs["timeout"] == 90.0
    assert kwargs["num_retries"] == 0


def test_response_reads_content_and_usage_aliases() -> None:
    raw = {
        "choices": [{"message": {"content": "{\"a\": 1}"}, "finish_reason": "stop"}],
        "usage": {"input_tokens": 12, "output_tokens": 3},
    }
    resp = _response_from_completion(raw, "m", 5)
    assert resp.text == "{\"a\": 1}"
    assert resp.usage.input_tokens == 12
    assert resp.usage.output_tokens == 3
    assert resp.finish_reason == "stop"


def test_response_prefers_prompt_tokens() -> None:
    raw = {
        "choices": [{"message": {"content": "x"}}],
        "usage": {"prompt_tokens": 7, "completion_tokens": 2, "total_tokens": 9},
    }
    resp = _response_from_completion(raw, "m", 5)
    assert (resp.usage.input_tokens, resp.usage.output_tokens, resp.usage.total_tokens) == (7, 2, 9)


@pytest.mark.parametrize("content", [None, "", "   "])
def test_empty_content_raises_transient(content: str | None) -> None:
    raw = {"choices": [{"message": {"content": content}}]}
    with pytest.raises(LLMEmptyResponse) as exc:
        _response_from_completion(raw, "m", 5)
    assert exc.value.retryable is True


def test_missing_choices_is_empty_response() -> None:
    with pytest.raises(LLMEmptyResponse):
        _response_from_completion({"choices": []}, "m", 5)
