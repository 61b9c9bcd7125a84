from .errors import (
    AccessDenied,
    AnalysisShapeError,
    ContentBlocked,
    InputValidationError,
    InvalidCredentials,
    NetworkError,
    ProviderCallError,
    ProviderExhausted,
    QuotaExceeded,
    classify_failure,
)
from .models import (
    DEFAULT_CHAT_MODELS,
    DEFAULT_SYMPTOM_MODELS,
    SEVERITY_LEVELS,
    URGENCY_LEVELS,
    ChatTurn,
    ModelAttempt,
    SymptomAnalysis,
    SymptomInput,
)
from .orchestrator import ResponseOrchestrator
from .provider import GeminiClient

__all__ = [
    "AccessDenied",
    "AnalysisShapeError",
    "ChatTurn",
    "ContentBlocked",
    "DEFAULT_CHAT_MODELS",
    "DEFAULT_SYMPTOM_MODELS",
    "GeminiClient",
    "InputValidationError",
    "InvalidCredentials",
    "ModelAttempt",
    "NetworkError",
    "ProviderCallError",
    "ProviderExhausted",
    "QuotaExceeded",
    "ResponseOrchestrator",
    "SEVERITY_LEVELS",
    "SymptomAnalysis",
    "SymptomInput",
    "URGENCY_LEVELS",
    "classify_failure",
]
