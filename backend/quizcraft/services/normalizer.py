"""Turn untrusted model output into validated quiz content.

Three stages, each usable on its own:

1. :func:`extract_json_text` locates the likely JSON inside free text. It never
   raises.
2. :func:`parse_json_text` parses it into plain Python values, raising
   :class:`ResponseParseError` on invalid JSON. Malformed JSON is not repaired.
3. ``normalize_*`` walk the untyped tree, fail fast on the first violation with
   a field-addressed error, and build frozen pydantic models.

Order indices are always reassigned from list positions. The difficulty of a
generated quiz always comes from the caller, never from the model.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Optional

from quizcraft.errors import (
    AnswerCardinalityError,
    InvalidFieldError,
    InvalidShapeError,
    ResponseParseError,
)
from quizcraft.schemas import (
    ContentSafetyResult,
    EnhancedQuestion,
    GeneratedOption,
    GeneratedQuestion,
    GeneratedQuiz,
    QuestionTypeSuggestion,
)

logger = logging.getLogger(__name__)

SUPPORTED_QUESTION_TYPE = "multiple_choice"
MIN_OPTIONS_PER_QUESTION = 2

_TAGGED_FENCE = re.compile(r"```json\b(.*?)```", re.DOTALL | re.IGNORECASE)
_UNTAGGED_FENCE = re.compile(r"```(?:[A-Za-z][\w+-]*[ \t]*\r?\n)?(.*?)```", re.DOTALL)


def extract_json_text(raw: str) -> str:
    if not isinstance(raw, str):
        return ""
    match = _TAGGED_FENCE.search(raw) or _UNTAGGED_FENCE.search(raw)
    if match:
        return match.group(1)
    return raw


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not a valid JSON value")


def parse_json_text(text: str) -> Any:
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except (ValueError, TypeError, RecursionError) as exc:
        length = len(text) if isinstance(text, str) else 0
        raise ResponseParseError(raw_length=length, message=f"Invalid JSON: {exc}") from exc


_REFUSAL_PATTERNS = [
    re.compile(r"\b(I cannot|I can't|I'm unable to|I won't be able to)\b", re.IGNORECASE),
    re.compile(r"\b(refuse to generate|cannot assist with)\b", re.IGNORECASE),
    re.compile(r"\b(against my guidelines|violates? (?:the )?guidelines)\b", re.IGNORECASE),
]
_REASONING_KEYWORDS = (
    "because",
    "since",
    "due to",
    "reason",
    "harmful",
    "offensive",
    "inappropriate",
    "unethical",
    "violates",
    "against",
)


def is_content_refusal(text: str) -> bool:
    # Quiz JSON may legitimately mention "harmful" things; only bare prose counts.
    if not text or "{" in text:
        return False
    return any(pattern.search(text) for pattern in _REFUSAL_PATTERNS)


def extract_refusal_reasoning(text: str) -> str:
    sentences = [part.strip() for part in re.split(r"[.!?]+", text) if len(part.strip()) > 10]
    for sentence in sentences:
        lowered = sentence.lower()
        if any(keyword in lowered for keyword in _REASONING_KEYWORDS):
            return sentence
    for sentence in sentences:
        if len(sentence) > 30:
            return sentence
    return "Content was deemed inappropriate by the AI"


def _require_object(value: Any, path: str) -> dict:
    if not isinstance(value, dict):
        raise InvalidShapeError(path)
    return value


def _require_list(value: Any, path: str) -> list:
    if not isinstance(value, list):
        raise InvalidFieldError(path)
    return value


def _required_text(value: Any, path: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidFieldError(path)
    return value.strip()


def _optional_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    return ""


def _cap_words(text: str, max_words: int) -> str:
    if max_words <= 0:
        return text
    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words])


def _normalize_option(raw: Any, path: str, index: int) -> GeneratedOption:
    option = _require_object(raw, path)
    return GeneratedOption(
        option_text=_required_text(option.get("option_text"), f"{path}.option_text"),
        is_correct=bool(option.get("is_correct")),
        order_index=index,
    )


def normalize_question(
    raw: Any,
    index: int,
    options_count: Optional[int] = None,
) -> GeneratedQuestion:
    """Validate one question; ``index`` becomes its ``order_index``."""
    path = f"questions[{index}]"
    question = _require_object(raw, path)

    question_text = _required_text(question.get("question_text"), f"{path}.question_text")

    question_type = question.get("question_type")
    if question_type is not None and question_type != SUPPORTED_QUESTION_TYPE:
        raise InvalidFieldError(
            f"{path}.question_type", reason=f"unsupported ({question_type!r})"
        )

    raw_options = _require_list(question.get("options"), f"{path}.options")
    if len(raw_options) < MIN_OPTIONS_PER_QUESTION:
        raise InvalidFieldError(
            f"{path}.options",
            reason=f"too short ({len(raw_options)} options, need {MIN_OPTIONS_PER_QUESTION})",
        )

    options = [
        _normalize_option(item, f"{path}.options[{option_index}]", option_index)
        for option_index, item in enumerate(raw_options)
    ]

    correct = sum(1 for option in options if option.is_correct)
    if correct != 1:
        raise AnswerCardinalityError(question_index=index, found=correct)

    if options_count is not None and len(options) != options_count:
        logger.warning(
            "Question %d: generated %d options, expected %d",
            index,
            len(options),
            options_count,
        )

    return GeneratedQuestion(
        question_text=question_text,
        question_type=SUPPORTED_QUESTION_TYPE,
        order_index=index,
        options=tuple(options),
    )


def _normalize_question_list(
    data: Any, expected_count: Optional[int], options_count: Optional[int]
) -> List[GeneratedQuestion]:
    raw_questions = _require_list(data.get("questions"), "questions")
    if not raw_questions:
        raise InvalidFieldError("questions", reason="empty")

    questions = [
        normalize_question(item, index, options_count=options_count)
        for index, item in enumerate(raw_questions)
    ]

    if expected_count is not None and len(questions) != expected_count:
        logger.warning(
            "Generated %d questions, expected %d", len(questions), expected_count
        )
    return questions


def normalize_generated_quiz(
    data: Any,
    *,
    difficulty: str,
    question_count: Optional[int] = None,
    options_count: Optional[int] = None,
    title_max_words: int = 8,
) -> GeneratedQuiz:
    root = _require_object(data, "root")
    title = _cap_words(_required_text(root.get("title"), "title"), title_max_words)
    questions = _normalize_question_list(root, question_count, options_count)
    return GeneratedQuiz(
        title=title,
        description=_optional_text(root.get("description")),
        difficulty=difficulty,
        questions=tuple(questions),
    )


def normalize_generated_questions(
    data: Any,
    *,
    expected_count: Optional[int] = None,
    options_count: Optional[int] = None,
) -> List[GeneratedQuestion]:
    root = _require_object(data, "root")
    return _normalize_question_list(root, expected_count, options_count)


def normalize_generated_options(
    data: Any, *, expected_count: Optional[int] = None
) -> List[GeneratedOption]:
    """Validate a batch of generated distractors. None of them may be correct."""
    root = _require_object(data, "root")
    raw_options = _require_list(root.get("options"), "options")
    if not raw_options:
        raise InvalidFieldError("options", reason="empty")

    options = []
    for index, item in enumerate(raw_options):
        option = _normalize_option(item, f"options[{index}]", index)
        if option.is_correct:
            raise InvalidFieldError(
                f"options[{index}].is_correct", reason="marked correct for a distractor"
            )
        options.append(option)

    if expected_count is not None and len(options) != expected_count:
        logger.warning("Generated %d options, expected %d", len(options), expected_count)
    return options


def normalize_enhanced_question(data: Any) -> EnhancedQuestion:
    root = _require_object(data, "root")
    enhanced = _require_object(root.get("enhanced_question"), "enhanced_question")
    return EnhancedQuestion(
        question_text=_required_text(
            enhanced.get("question_text"), "enhanced_question.question_text"
        ),
        reasoning=_optional_text(enhanced.get("reasoning")),
    )


def normalize_question_type_suggestions(data: Any) -> List[QuestionTypeSuggestion]:
    root = _require_object(data, "root")
    raw_suggestions = _require_list(root.get("suggestions"), "suggestions")
    if not raw_suggestions:
        raise InvalidFieldError("suggestions", reason="empty")

    suggestions = []
    for index, item in enumerate(raw_suggestions):
        path = f"suggestions[{index}]"
        suggestion = _require_object(item, path)
        suggestions.append(
            QuestionTypeSuggestion(
                type=_required_text(suggestion.get("type"), f"{path}.type"),
                description=_optional_text(suggestion.get("description")),
                example=_optional_text(suggestion.get("example")),
            )
        )
    return suggestions


def normalize_content_safety(data: Any) -> ContentSafetyResult:
    root = _require_object(data, "root")
    approved = root.get("isApproved")
    if not isinstance(approved, bool):
        raise InvalidFieldError("isApproved")

    confidence = root.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        confidence = 0
    confidence = int(min(100, max(0, round(confidence))))

    raw_concerns = root.get("concerns")
    concerns = []
    if isinstance(raw_concerns, list):
        concerns = [item.strip() for item in raw_concerns if isinstance(item, str) and item.strip()]

    return ContentSafetyResult(
        is_approved=approved,
        reasoning=_optional_text(root.get("reasoning")),
        confidence=confidence,
        concerns=tuple(concerns),
    )
