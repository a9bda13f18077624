"""
Moderated completion pipeline

Screens a prompt with the moderation service, forwards approved prompts to
the generation service and screens the generated text before returning it.
Every invocation ends in exactly one CompletionOutcome; upstream failures
are converted to outcomes at the call site and never raised.
"""

import asyncio
import time
from enum import Enum
from typing import Optional

from prometheus_client import Counter
from pydantic import BaseModel, ConfigDict

from shared.config import SEVERITY_THRESHOLD
from shared.errors import UpstreamError
from shared.logging import get_logger
from shared.schemas import CompletionRequest
from providers.base_provider import GenerationProvider, ModerationProvider

logger = get_logger(__name__)

UPSTREAM_CALLS = Counter(
    'completion_service_upstream_calls_total', 'Calls to external services', ['service', 'status']
)

DEFAULT_MODERATION_TIMEOUT = 10.0
DEFAULT_GENERATION_TIMEOUT = 60.0


class CompletionOutcome(str, Enum):
    VALIDATION_FAILED = "ValidationFailed"
    INPUT_REJECTED = "InputRejected"
    GENERATION_FAILED = "GenerationFailed"
    OUTPUT_REJECTED = "OutputRejected"
    SUCCEEDED = "Succeeded"


OUTCOME_MESSAGES = {
    CompletionOutcome.VALIDATION_FAILED: "Please provide a prompt in the request body.",
    CompletionOutcome.INPUT_REJECTED: "Input content violates content safety guidelines.",
    CompletionOutcome.GENERATION_FAILED: "Failed to get response from Claude API.",
    CompletionOutcome.OUTPUT_REJECTED: "LLM response violates content safety guidelines.",
    CompletionOutcome.SUCCEEDED: "Content processed successfully.",
}


class ModerationVerdict(BaseModel):
    """Decision for one moderation call"""
    model_config = ConfigDict(frozen=True)

    allowed: bool
    violated_category: Optional[str] = None
    severity: Optional[int] = None


class CompletionResult(BaseModel):
    """Terminal result of one pipeline invocation"""
    model_config = ConfigDict(frozen=True)

    outcome: CompletionOutcome
    message: str
    generated_text: Optional[str] = None

    @classmethod
    def failed(cls, outcome: CompletionOutcome) -> "CompletionResult":
        if outcome is CompletionOutcome.SUCCEEDED:
            raise ValueError("a failed result cannot carry the Succeeded outcome")
        return cls(outcome=outcome, message=OUTCOME_MESSAGES[outcome])

    @classmethod
    def succeeded(cls, generated_text: str) -> "CompletionResult":
        return cls(
            outcome=CompletionOutcome.SUCCEEDED,
            message=OUTCOME_MESSAGES[CompletionOutcome.SUCCEEDED],
            generated_text=generated_text,
        )

    @property
    def success(self) -> bool:
        return self.outcome is CompletionOutcome.SUCCEEDED


def evaluate_severities(categories, threshold: int = SEVERITY_THRESHOLD) -> ModerationVerdict:
    """Allowed iff every category severity is strictly below the threshold.

    The first category at or above the threshold is reported.
    """
    for item in categories:
        if item.severity >= threshold:
            return ModerationVerdict(allowed=False, violated_category=item.category, severity=item.severity)
    return ModerationVerdict(allowed=True)


class ModeratedCompletionPipeline:
    """Validate, moderate input, generate, moderate output.

    Holds no per-request state; a single instance serves concurrent requests.
    """

    def __init__(
        self,
        moderation: ModerationProvider,
        generation: GenerationProvider,
        severity_threshold: int = SEVERITY_THRESHOLD,
        moderation_timeout: float = DEFAULT_MODERATION_TIMEOUT,
        generation_timeout: float = DEFAULT_GENERATION_TIMEOUT,
    ):
        self.moderation = moderation
        self.generation = generation
        self.severity_threshold = severity_threshold
        self.moderation_timeout = moderation_timeout
        self.generation_timeout = generation_timeout

    async def execute(self, request: CompletionRequest) -> CompletionResult:
        prompt = request.prompt
        if not prompt or not prompt.strip():
            logger.info("Rejected request without a prompt")
            return CompletionResult.failed(CompletionOutcome.VALIDATION_FAILED)

        verdict = await self.check_content_safety(prompt, stage="input")
        if not verdict.allowed:
            return CompletionResult.failed(CompletionOutcome.INPUT_REJECTED)

        generated = await self.generate(prompt, request.system_message)
        if generated is None:
            return CompletionResult.failed(CompletionOutcome.GENERATION_FAILED)

        verdict = await self.check_content_safety(generated, stage="output")
        if not verdict.allowed:
            return CompletionResult.failed(CompletionOutcome.OUTPUT_REJECTED)

        return CompletionResult.succeeded(generated)

    async def check_content_safety(self, text: str, stage: str) -> ModerationVerdict:
        """Moderate text, failing closed on any moderation error"""
        logger.info(f"Checking {stage} content safety", extra={"stage": stage, "text_length": len(text)})
        start = time.perf_counter()
        try:
            categories = await asyncio.wait_for(self.moderation.analyze_text(text), self.moderation_timeout)
        except asyncio.TimeoutError:
            UPSTREAM_CALLS.labels(service="moderation", status="timeout").inc()
            logger.error(f"Content safety check timed out after {self.moderation_timeout}s", extra={"stage": stage})
            return ModerationVerdict(allowed=False)
        except UpstreamError as e:
            UPSTREAM_CALLS.labels(service="moderation", status="error").inc()
            logger.error(f"Error checking content safety: {e}", extra={"stage": stage})
            return ModerationVerdict(allowed=False)

        UPSTREAM_CALLS.labels(service="moderation", status="success").inc()
        verdict = evaluate_severities(categories, self.severity_threshold)
        elapsed = round(time.perf_counter() - start, 4)
        if verdict.allowed:
            logger.info(f"{stage.capitalize()} content passed safety check", extra={"stage": stage, "duration": elapsed})
        else:
            logger.warning(
                f"Content safety violation detected: {verdict.violated_category} with severity {verdict.severity}",
                extra={"stage": stage, "category": verdict.violated_category, "severity": verdict.severity},
            )
        return verdict

    async def generate(self, prompt: str, system_message: str) -> Optional[str]:
        """Call the generation service once; None when no usable text came back"""
        logger.info("Calling generation service", extra={"prompt_length": len(prompt)})
        start = time.perf_counter()
        try:
            text = await asyncio.wait_for(
                self.generation.complete(prompt, system_message), self.generation_timeout
            )
        except asyncio.TimeoutError:
            UPSTREAM_CALLS.labels(service="generation", status="timeout").inc()
            logger.error(f"Generation service timed out after {self.generation_timeout}s")
            return None
        except UpstreamError as e:
            UPSTREAM_CALLS.labels(service="generation", status="error").inc()
            logger.error(f"Error calling generation service: {e}", extra={"status_code": e.status_code})
            return None

        if not text or not text.strip():
            UPSTREAM_CALLS.labels(service="generation", status="empty").inc()
            logger.error("Generation service returned empty text")
            return None

        UPSTREAM_CALLS.labels(service="generation", status="success").inc()
        logger.info(
            "Generation service responded",
            extra={"response_length": len(text), "duration": round(time.perf_counter() - start, 4)},
        )
        return text
