"""
Models package for the advisory pipeline
"""

from advisory_board.models.analysis import (
    QuestionType,
    Complexity,
    Urgency,
    Sentiment,
    QuestionAnalysis,
    GENERAL_DOMAIN,
)

from advisory_board.models.responses import (
    ResponseType,
    AdvisorProfile,
    TokenUsage,
    ModelResponse,
    PersonaSnapshot,
    ErrorInfo,
    ResponseMetadata,
    AdvisorResponse,
    BatchResult,
)

from advisory_board.models.personas import (
    PersonaDescriptor,
    PERSONA_TABLE,
    PERSONA_ROLE_MAPPING,
)
