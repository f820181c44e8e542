"""OpenRouter smoke test. Skipped if no API key."""
import os

import pytest

from insight_pipeline.llm.invoker import Invoker
from insight_pipeline.llm.settings import LLMSettings
from insight_pipeline.llm.types import LLMMessage, Success


@pytest.mark.integration
@pytest.mark.skipif(
    not os.environ.get("OPENROUTER_API_KEY"),
    reason="OPENROUTER_API_KEY not set",
)
@pytest.mark.asyncio
async def test_openrouter_smoke() -> None:
    invoker = Invoker(LLMSettings(usage_logging_enabled=False))
    outcome = await invoker.invoke(None, [LLMMessage(role="user", content="Reply with one word: OK")])
    assert isinstance(outcome, Success)
    assert outcome.payload
