from __future__ import annotations

from typing import Any, Dict, Optional


GENERIC_GENERATION_MESSAGE = "Failed to generate quiz. Please check your prompt and try again."
GENERIC_SERVICE_MESSAGE = "Failed to generate quiz. Please try again."
GENERIC_PARSE_MESSAGE = "Failed to parse AI response. Please try again."


class AppError(Exception):
    """Application error carrying the HTTP status it should be rendered with."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": False, "error": self.message}
        payload.update(self.details)
        return payload


class QuizGenerationError(AppError):
    """Base class for failures of a single AI generation attempt.

    ``message`` is what the caller sees; ``detail`` is the precise reason and
    only goes to the logs.
    """

    user_message = GENERIC_GENERATION_MESSAGE

    def __init__(self, detail: str, status_code: int = 500) -> None:
        super().__init__(self.user_message, status_code=status_code)
        self.detail = detail

    def __str__(self) -> str:
        return self.detail


class AIConfigurationError(QuizGenerationError):
    user_message = "Gemini API key is not configured"

    def __init__(self) -> None:
        super().__init__("Gemini API key is not configured")


class AIServiceError(QuizGenerationError):
    user_message = GENERIC_SERVICE_MESSAGE

    def __init__(self, detail: str, category: str = "server_error") -> None:
        super().__init__(detail)
        self.category = category


class ResponseParseError(QuizGenerationError):
    user_message = GENERIC_PARSE_MESSAGE

    def __init__(self, raw_length: int, message: str) -> None:
        super().__init__(f"{message} (raw length {raw_length})")
        self.raw_length = raw_length
        self.parse_message = message


class InvalidShapeError(QuizGenerationError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Expected an object at {path}")
        self.path = path


class InvalidFieldError(QuizGenerationError):
    def __init__(self, path: str, reason: str = "missing or invalid") -> None:
        super().__init__(f"Field {path} is {reason}")
        self.path = path


class AnswerCardinalityError(QuizGenerationError):
    def __init__(self, question_index: int, found: int, expected: int = 1) -> None:
        super().__init__(
            f"Question index {question_index} has {found} correct options, expected {expected}"
        )
        self.question_index = question_index
        self.found = found
        self.expected = expected


class ContentRefusalError(QuizGenerationError):
    user_message = "The AI declined to generate this quiz. Please try a different topic."

    def __init__(self, reasoning: str) -> None:
        super().__init__(f"AI refused to generate content: {reasoning}", status_code=400)
        self.reasoning = reasoning
        self.details = {"reasoning": reasoning}
