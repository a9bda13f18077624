"""Pydantic models for API request/response validation"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator


# Completion API schemas
class CompletionRequest(BaseModel):
    """Request schema for a moderated completion.

    An absent or blank prompt is accepted here and rejected by the pipeline,
    so that it surfaces as a client error rather than a schema error.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    prompt: Optional[str] = Field(None, description="User prompt to moderate and complete")
    system_message: str = Field("", alias="systemMessage", description="System instruction for the model")

    @field_validator("system_message", mode="before")
    @classmethod
    def default_system_message(cls, v):
        return "" if v is None else v


class CompletionResponse(BaseModel):
    """Response schema for a handled completion outcome"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    is_success: bool = Field(..., alias="isSuccess")
    message: str
    llm_response: Optional[str] = Field(None, alias="llmResponse")


# Moderation service (Azure AI Content Safety, text:analyze)
class CategorySeverity(BaseModel):
    """Severity reported for one harm category"""
    model_config = ConfigDict(frozen=True)

    category: str
    severity: int = Field(..., ge=0)


class ContentSafetyAnalysis(BaseModel):
    """Body returned by POST /contentsafety/text:analyze"""
    model_config = ConfigDict(populate_by_name=True)

    categories_analysis: List[CategorySeverity] = Field(..., alias="categoriesAnalysis")
    blocklists_match: List[Dict[str, Any]] = Field(default_factory=list, alias="blocklistsMatch")

    @field_validator("blocklists_match", mode="before")
    @classmethod
    def default_blocklists(cls, v):
        return [] if v is None else v


# Generation service (Anthropic Messages API, anthropic-version 2023-06-01)
class ClaudeContentBlock(BaseModel):
    type: str
    text: Optional[str] = None


class ClaudeUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0


class ClaudeMessagesEnvelope(BaseModel):
    """Messages API response body.

    Only the first content block is consumed and it must be a text block.
    Any other shape fails validation.
    """
    id: Optional[str] = None
    type: Optional[str] = None
    role: Optional[str] = None
    model: Optional[str] = None
    content: List[ClaudeContentBlock] = Field(..., min_length=1)
    stop_reason: Optional[str] = None
    usage: Optional[ClaudeUsage] = None

    @field_validator("content")
    @classmethod
    def first_block_is_text(cls, v):
        first = v[0]
        if first.type != "text" or first.text is None:
            raise ValueError(f"first content block is '{first.type}', expected text")
        return v

    @property
    def text(self) -> str:
        return self.content[0].text
