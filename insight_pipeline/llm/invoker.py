"""
Invoker: one (messages, schema) pair -> one Outcome.

Composes TransientRetryPolicy (network retries) and SchemaRepairPolicy (bounded repair
round-trips), validates with insight_pipeline.llm.validation, and hands a usage record to
the telemetry recorder on success. Only LLMMissingCredentials escapes as an exception.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Any, AsyncIterator, Sequence

from pydantic import BaseModel

from insight_pipeline.llm.client_litellm import LiteLLMClient
from insight_pipeline.llm.errors import (
    LLMError,
    LLMInvocationFailed,
    LLMMissingCredentials,
    LLMSchemaValidationExhausted,
    LLMTimeout,
    LLMTransientExhausted,
)
from insight_pipeline.llm.policies import (
    AttemptBudget,
    SchemaRepairPolicy,
    SleepFn,
    TransientRetryPolicy,
)
from insight_pipeline.llm.ports import LLMClientPort, UsageRecorderPort
from insight_pipeline.llm.settings import LLMSettings, normalize_model_id
from insight_pipeline.llm.telemetry import NullUsageRecorder, UsageRecorder, log_llm_call, redact_preview
from insight_pipeline.llm.types import (
    Failure,
    FailureReason,
    LLMMessage,
    LLMRequest,
    LLMResponse,
    Outcome,
    Success,
    UsageRecord,
)
from insight_pipeline.llm.validation import validate_payload

logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def _held(gate: asyncio.Semaphore | None) -> AsyncIterator[None]:
    if gate is None:
        yield
        return
    async with gate:
        yield


class Invoker:
    """Resilient, schema-validating completion call shared by bulk and single-call flows."""

    def __init__(
        self,
        settings: LLMSettings | None = None,
        *,
        client: LLMClientPort | None = None,
        usage_recorder: UsageRecorderPort | None = None,
        retry_policy: TransientRetryPolicy | None = None,
        repair_policy: SchemaRepairPolicy | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        self._settings = settings or LLMSettings()
        self._client = client or LiteLLMClient(
            api_base=self._settings.api_base,
            default_timeout_s=self._settings.timeout_s,
        )
        if usage_recorder is None:
            usage_recorder = (
                UsageRecorder(self._settings.usage_log_path)
                if self._settings.usage_logging_enabled
                else NullUsageRecorder()
            )
        self._usage = usage_recorder
        self._retry = retry_policy or TransientRetryPolicy(
            max_attempts=self._settings.max_attempts,
            backoff_schedule_s=self._settings.backoff_schedule_s,
            sleep=sleep,
        )
        self._repair = repair_policy or SchemaRepairPolicy()

    @property
    def settings(self) -> LLMSettings:
        return self._settings

    @property
    def usage_recorder(self) -> UsageRecorderPort:
        return self._usage

    def ensure_credentials(self) -> str:
        """Return the API key or raise LLMMissingCredentials. Makes no network call."""
        if not self._settings.has_credentials:
            raise LLMMissingCredentials()
        return (self._settings.openrouter_api_key or "").strip()

    async def _round_trip(
        self,
        model: str,
        messages: Sequence[LLMMessage],
        attempt: int | str,
        *,
        api_key: str,
        gate: asyncio.Semaphore | None,
        task_id: str | None,
    ) -> LLMResponse:
        timeout_s = self._settings.timeout_s
        req = LLMRequest(
            messages=list(messages),
            temperature=self._settings.temperature,
            timeout_s=timeout_s,
        )
        async with _held(gate):
            t0 = time.perf_counter()
            try:
                # Bounds the round-trip even when the client ignores timeout_s.
                resp = await asyncio.wait_for(
                    self._client.acompletion(model, req, timeout_s=timeout_s, api_key=api_key),
                    timeout=timeout_s,
                )
            except asyncio.TimeoutError as e:
                log_llm_call(
                    task_id=task_id,
                    model=model,
                    attempt=attempt,
                    latency_ms=int((time.perf_counter() - t0) * 1000),
                    status="FAILED",
                    error_code="TIMEOUT",
                )
                raise LLMTimeout(f"No response within {timeout_s:g}s") from e
            except LLMError as e:
                log_llm_call(
                    task_id=task_id,
                    model=model,
                    attempt=attempt,
                    latency_ms=int((time.perf_counter() - t0) * 1000),
                    status="FAILED",
                    error_code=e.code,
                )
                raise
        log_llm_call(task_id=task_id, model=model, attempt=attempt, latency_ms=resp.latency_ms, status="SUCCEEDED")
        return resp

    async def _request(
        self,
        model: str,
        messages: Sequence[LLMMessage],
        budget: AttemptBudget,
        *,
        api_key: str,
        gate: asyncio.Semaphore | None,
        task_id: str | None,
        repair: bool = False,
    ) -> LLMResponse:
        async def send(attempt: int | str) -> LLMResponse:
            return await self._round_trip(model, messages, attempt, api_key=api_key, gate=gate, task_id=task_id)

        return await self._retry.run(send, budget, free_first_attempt=repair)

    def _record_usage(self, model: str, resp: LLMResponse) -> None:
        try:
            self._usage.record(
                UsageRecord(
                    model=model,
                    input_tokens=resp.usage.input_tokens if resp.usage else 0,
                    output_tokens=resp.usage.output_tokens if resp.usage else 0,
                )
            )
        except Exception as e:  # noqa: BLE001
            logger.warning("usage recording failed: %s", e)

    async def invoke(
        self,
        model: str | None,
        messages: Sequence[LLMMessage],
        schema: type[BaseModel] | None = None,
        *,
        gate: asyncio.Semaphore | None = None,
        task_id: str | None = None,
    ) -> Outcome:
        """
        Run one task to a terminal Outcome.
        Raises LLMMissingCredentials before any attempt when no key is configured.
        """
        api_key = self.ensure_credentials()
        model_id = normalize_model_id(model or self._settings.default_model)
        budget = self._retry.new_budget()

        try:
            resp = await self._request(model_id, messages, budget, api_key=api_key, gate=gate, task_id=task_id)
            if schema is None:
                self._record_usage(model_id, resp)
                return Success(payload=resp.text, attempts=budget.round_trips, usage=resp.usage)

            result = validate_payload(resp.text, schema)
            conversation = list(messages)
            repairs = 0
            while not result.ok and repairs < self._repair.max_repairs:
                repairs += 1
                logger.info(
                    "schema validation failed for task %s (%d errors); repair %d/%d; output preview: %s",
                    task_id,
                    len(result.errors),
                    repairs,
                    self._repair.max_repairs,
                    redact_preview(resp.text),
                )
                conversation = self._repair.build_repair_messages(conversation, resp.text, result.errors)
                resp = await self._request(
                    model_id, conversation, budget, api_key=api_key, gate=gate, task_id=task_id, repair=True
                )
                result = validate_payload(resp.text, schema)
            if result.ok:
                self._record_usage(model_id, resp)
                return Success(payload=result.payload, attempts=budget.round_trips, usage=resp.usage)
            return Failure(
                reason=FailureReason.SCHEMA_VALIDATION_EXHAUSTED,
                last_error_message=str(LLMSchemaValidationExhausted(result.errors)),
                attempts=budget.round_trips,
            )
        except LLMTransientExhausted as e:
            return Failure(
                reason=FailureReason.TRANSIENT_EXHAUSTED,
                last_error_message=str(e),
                attempts=budget.round_trips,
            )
        except LLMMissingCredentials:
            raise
        except LLMError as e:
            return Failure(
                reason=FailureReason.FATAL_REQUEST_ERROR,
                last_error_message=f"{e.code}: {e}",
                attempts=budget.round_trips,
            )

    async def call(
        self,
        model: str | None,
        messages: Sequence[LLMMessage],
        schema: type[BaseModel] | None = None,
    ) -> Any:
        """Single-call flow: return the payload or raise LLMInvocationFailed."""
        outcome = await self.invoke(model, messages, schema)
        if isinstance(outcome, Failure):
            raise LLMInvocationFailed(outcome)
        return outcome.payload
