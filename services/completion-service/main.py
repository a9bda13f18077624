"""
Moderated Completion Service

FastAPI service that screens prompts with Azure AI Content Safety, forwards
approved prompts to the Claude Messages API and screens the generated text
before returning it.
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.responses import Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from shared.config import get_config, get_upstream_config
from shared.logging import get_logger
from shared.middleware import add_middleware
from shared.schemas import CompletionRequest, CompletionResponse
from pipeline import CompletionOutcome, ModeratedCompletionPipeline
from providers import ClaudeProvider, ContentSafetyProvider

# Prometheus metrics
REQUEST_COUNT = Counter('completion_service_requests_total', 'Total requests', ['method', 'endpoint', 'status'])
REQUEST_DURATION = Histogram('completion_service_request_duration_seconds', 'Request duration')
OUTCOME_COUNT = Counter('completion_service_outcomes_total', 'Pipeline outcomes', ['outcome'])


@asynccontextmanager
async def lifespan(app: FastAPI):
    await on_startup()
    try:
        yield
    finally:
        await on_shutdown()


app = FastAPI(title="Moderated Completion Service", version="1.0.0", lifespan=lifespan)
logger = get_logger(__name__)
config = get_config()

# Add standard middleware for correlation IDs and request logging
add_middleware(app)

# Global pipeline instance
pipeline: Optional[ModeratedCompletionPipeline] = None


async def on_startup():
    """Resolve configuration and build the pipeline; missing configuration is fatal"""
    global pipeline
    upstream = get_upstream_config()

    pipeline = ModeratedCompletionPipeline(
        moderation=ContentSafetyProvider.from_settings(upstream),
        generation=ClaudeProvider.from_settings(upstream),
        severity_threshold=upstream.moderation_severity_threshold,
        moderation_timeout=upstream.moderation_timeout_seconds,
        generation_timeout=upstream.generation_timeout_seconds,
    )
    logger.info(
        "Completion service initialized",
        extra={"model": upstream.claude_api_model, "severity_threshold": upstream.moderation_severity_threshold},
    )


async def on_shutdown():
    """Close pooled HTTP clients"""
    global pipeline
    if pipeline:
        await pipeline.moderation.aclose()
        await pipeline.generation.aclose()
        pipeline = None
    logger.info("Completion service shutdown complete")


def get_pipeline() -> ModeratedCompletionPipeline:
    """Get pipeline instance"""
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return pipeline


@app.get("/health")
async def health_check(deep: bool = False):
    """Health check endpoint with optional deep checks"""
    health_status = {"status": "healthy", "service": config.service_name}

    if deep:
        if pipeline is None:
            health_status["status"] = "unhealthy"
            health_status["pipeline"] = "not initialized"
        else:
            health_status["pipeline"] = "ready"

    return health_status


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/")
async def root():
    """Root endpoint"""
    return {"message": "Moderated Completion Service API", "version": config.service_version}


@app.get("/config")
async def get_service_config():
    """Non-secret runtime configuration"""
    upstream = get_upstream_config()
    return {
        "claude_api_endpoint": str(upstream.claude_api_endpoint),
        "claude_api_model": upstream.claude_api_model,
        "claude_max_tokens": upstream.claude_max_tokens,
        "content_safety_endpoint": str(upstream.content_safety_endpoint),
        "moderation_severity_threshold": upstream.moderation_severity_threshold,
        "moderation_timeout_seconds": upstream.moderation_timeout_seconds,
        "generation_timeout_seconds": upstream.generation_timeout_seconds,
    }


@app.middleware("http")
async def record_request_metrics(request: Request, call_next):
    """Count every response by status, including validation and 503 errors"""
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        REQUEST_COUNT.labels(method=request.method, endpoint=request.url.path, status="500").inc()
        raise
    finally:
        REQUEST_DURATION.observe(time.perf_counter() - start)

    REQUEST_COUNT.labels(method=request.method, endpoint=request.url.path, status=str(response.status_code)).inc()
    return response


@app.post("/api/completions", response_model=CompletionResponse)
@app.post("/GetResponse", response_model=CompletionResponse, include_in_schema=False)
async def create_completion(
    body: CompletionRequest,
    svc: ModeratedCompletionPipeline = Depends(get_pipeline),
):
    """Moderate a prompt, generate a response and moderate the response"""
    try:
        result = await svc.execute(body)
    except Exception:
        logger.exception("Error processing request")
        raise HTTPException(status_code=500, detail="Internal server error")

    OUTCOME_COUNT.labels(outcome=result.outcome.value).inc()

    if result.outcome is CompletionOutcome.VALIDATION_FAILED:
        raise HTTPException(status_code=400, detail=result.message)

    logger.info(f"Request completed with outcome {result.outcome.value}", extra={"outcome": result.outcome.value})
    return CompletionResponse(
        is_success=result.success,
        message=result.message,
        llm_response=result.generated_text,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
