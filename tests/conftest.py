"""Test configuration and fixtures"""
import os
import sys
from unittest.mock import AsyncMock

import pytest

# Add project root and the service directory to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)
sys.path.insert(0, os.path.join(PROJECT_ROOT, "services", "completion-service"))

os.environ.setdefault("LOG_FORMAT", "text")

from shared import config as shared_config
from shared.schemas import CategorySeverity
from pipeline import ModeratedCompletionPipeline


UPSTREAM_ENV = {
    "CLAUDE_API_KEY": "test-claude-key",
    "CLAUDE_API_ENDPOINT": "https://api.anthropic.test/v1/messages",
    "CLAUDE_API_MODEL": "claude-3-sonnet-20240229",
    "CONTENT_SAFETY_KEY": "test-content-safety-key",
    "CONTENT_SAFETY_ENDPOINT": "https://contentsafety.test",
}

OPTIONAL_UPSTREAM_ENV = [
    "CLAUDE_MAX_TOKENS",
    "ANTHROPIC_VERSION",
    "CONTENT_SAFETY_API_VERSION",
    "MODERATION_SEVERITY_THRESHOLD",
    "MODERATION_TIMEOUT_SECONDS",
    "GENERATION_TIMEOUT_SECONDS",
    "HTTP_CONNECT_RETRIES",
]


@pytest.fixture
def no_upstream_env(monkeypatch):
    """Environment with no upstream configuration at all"""
    for name in list(UPSTREAM_ENV) + OPTIONAL_UPSTREAM_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(shared_config, "_upstream_settings", None)
    yield monkeypatch
    shared_config._upstream_settings = None


@pytest.fixture
def upstream_env(no_upstream_env):
    """Environment with every required upstream variable set"""
    for name, value in UPSTREAM_ENV.items():
        no_upstream_env.setenv(name, value)
    return UPSTREAM_ENV


@pytest.fixture
def clean_analysis():
    """Content Safety analysis with every category at severity 0"""
    return [
        CategorySeverity(category=category, severity=0)
        for category in ("Hate", "SelfHarm", "Sexual", "Violence")
    ]


@pytest.fixture
def flagged_analysis():
    """Factory for an analysis where one category is raised"""
    def _make(category: str = "Hate", severity: int = 6):
        return [
            CategorySeverity(category=name, severity=severity if name == category else 0)
            for name in ("Hate", "SelfHarm", "Sexual", "Violence")
        ]
    return _make


@pytest.fixture
def moderation_provider(clean_analysis):
    """Moderation provider that reports clean content"""
    provider = AsyncMock()
    provider.analyze_text = AsyncMock(return_value=clean_analysis)
    return provider


@pytest.fixture
def generation_provider():
    """Generation provider that answers the capital-of-France prompt"""
    provider = AsyncMock()
    provider.complete = AsyncMock(return_value="Paris is the capital of France.")
    return provider


@pytest.fixture
def pipeline(moderation_provider, generation_provider):
    """Pipeline wired to the mocked providers"""
    return ModeratedCompletionPipeline(
        moderation=moderation_provider,
        generation=generation_provider,
        moderation_timeout=1.0,
        generation_timeout=1.0,
    )
