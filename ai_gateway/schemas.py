"""Pydantic schemas for the gateway API."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import (
    DEFAULT_MODEL,
    MAX_OUTPUT_TOKENS_LIMIT,
    ReasoningEffort,
    Role,
    TextVerbosity,
)


class Message(BaseModel):
    role: Role
    content: str

    @field_validator("content")
    @classmethod
    def validate_content(cls, content: str) -> str:
        if not content.strip():
            raise ValueError("Message content must not be empty")
        return content


class GenerationParams(BaseModel):
    temperature: float | None = None
    max_tokens: int | None = None
    reasoning_effort: ReasoningEffort | None = None
    text_verbosity: TextVerbosity | None = None


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: list[Message] = Field(min_length=1)
    model: str = Field(default=DEFAULT_MODEL, min_length=1)
    workspace_id: str | None = Field(default=None, alias="workspaceId")
    channel_id: str | None = Field(default=None, alias="channelId")
    temperature: float | None = Field(default=None, ge=0, le=2)
    max_tokens: int | None = Field(
        default=None, alias="maxTokens", ge=1, le=MAX_OUTPUT_TOKENS_LIMIT
    )
    reasoning_effort: ReasoningEffort | None = Field(default=None, alias="reasoningEffort")
    text_verbosity: TextVerbosity | None = Field(default=None, alias="textVerbosity")

    def generation_params(self) -> GenerationParams:
        return GenerationParams(
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            reasoning_effort=self.reasoning_effort,
            text_verbosity=self.text_verbosity,
        )


class Usage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt_tokens: int = Field(default=0, alias="promptTokens")
    completion_tokens: int = Field(default=0, alias="completionTokens")
    total_tokens: int = Field(default=0, alias="totalTokens")

    @classmethod
    def from_counts(
        cls,
        prompt_tokens: int | None,
        completion_tokens: int | None,
        total_tokens: int | None = None,
    ) -> "Usage":
        prompt = prompt_tokens or 0
        completion = completion_tokens or 0
        return cls(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=total_tokens if total_tokens is not None else prompt + completion,
        )


class Cost(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    input_cost: float = Field(alias="inputCost")
    output_cost: float = Field(alias="outputCost")
    total_cost: float = Field(alias="totalCost")
    currency: str = "USD"


class ChatResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str
    usage: Usage
    model: str
    provider: str
    cost: Cost
    duration_seconds: float = Field(alias="durationSeconds")


class ChatResponse(BaseModel):
    success: bool = True
    data: ChatResult


class ErrorResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    error: str
    retry_after: int | None = Field(default=None, alias="retryAfter")


class ModelMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    provider: str
    upstream_model: str = Field(alias="upstreamModel")
    display_name: str = Field(alias="displayName")


class CredentialStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: str
    key_id: str = Field(alias="keyId")
    available: bool
    cooling_down_for: float | None = Field(default=None, alias="coolingDownFor")
    success_count: int = Field(default=0, alias="successCount")
    rate_limited_count: int = Field(default=0, alias="rateLimitedCount")
