"""Typed OpenAI client with a tool-calling chat loop and retrying HTTP execution."""
from .chat import ChatCompletionRequest, ChatCompletionResponse, ReasoningEffort, ResponseFormat, ToolChoice
from .client import GptClient
from .config import ClientSettings
from .embeddings import CosineSimilarity, EmbeddingsRequest, EmbeddingsResponse, EncodingFormat
from .errors import (
    ApiClientError,
    AuthorizationError,
    ConfigurationError,
    ExecutionTimeoutError,
    GptClientError,
    IterationLimitError,
    PermissionDeniedError,
    RateLimitError,
    RequestCanceledError,
    RequestRejectedError,
    ResponseUnusableError,
    ServerError,
    ServiceUnavailableError,
    TransportError,
)
from .images import (
    DallE2Request,
    DallE3Request,
    GptImage1Request,
    ImageResponseFormat,
    ImagesResponse,
)
from .runner import ChatCompletionRunner
from .schema import (
    AnyOfSchema,
    ArraySchema,
    BooleanSchema,
    EnumSchema,
    IntegerSchema,
    NumberSchema,
    ObjectSchema,
    StringSchema,
)
from .speech import SpeechModel, SpeechRequest, SpeechResponse, SpeechResponseFormat, SpeechVoice
from .tools import ToolDefinition, ToolRegistry
from .types import ToolCallContext, ToolResult

__all__ = [
    "AnyOfSchema",
    "ApiClientError",
    "ArraySchema",
    "AuthorizationError",
    "BooleanSchema",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "ChatCompletionRunner",
    "ClientSettings",
    "ConfigurationError",
    "CosineSimilarity",
    "DallE2Request",
    "DallE3Request",
    "EmbeddingsRequest",
    "EmbeddingsResponse",
    "EncodingFormat",
    "EnumSchema",
    "ExecutionTimeoutError",
    "GptClient",
    "GptClientError",
    "GptImage1Request",
    "ImageResponseFormat",
    "ImagesResponse",
    "IntegerSchema",
    "IterationLimitError",
    "NumberSchema",
    "ObjectSchema",
    "PermissionDeniedError",
    "RateLimitError",
    "ReasoningEffort",
    "RequestCanceledError",
    "RequestRejectedError",
    "ResponseFormat",
    "ResponseUnusableError",
    "ServerError",
    "ServiceUnavailableError",
    "SpeechModel",
    "SpeechRequest",
    "SpeechResponse",
    "SpeechResponseFormat",
    "SpeechVoice",
    "StringSchema",
    "ToolCallContext",
    "ToolChoice",
    "ToolDefinition",
    "ToolRegistry",
    "ToolResult",
    "TransportError",
]
