import json
import logging
import random

import pytest

from quizcraft.errors import (
    AIConfigurationError,
    AIServiceError,
    AnswerCardinalityError,
    ContentRefusalError,
    ResponseParseError,
)
from quizcraft.providers.base import LLMError
from quizcraft.schemas import QuizGenerationRequest
from quizcraft.services import prompts
from quizcraft.services.quiz_generator import QuizGeneratorService


@pytest.fixture
def generator(settings, llm_manager):
    return QuizGeneratorService(settings=settings, llm_manager=llm_manager)


def _request(**overrides):
    payload = {
        "prompt": "Capital cities of Europe",
        "difficulty": "easy",
        "questionCount": 2,
        "optionsCount": 4,
    }
    payload.update(overrides)
    return QuizGenerationRequest.model_validate(payload)


def _context():
    return prompts.QuizContext(
        title="World Capitals",
        difficulty="medium",
        original_prompt="Capital cities",
    )


def test_generate_quiz_makes_one_call_and_normalizes(generator, provider, quiz_reply):
    provider.queue(quiz_reply())

    quiz = generator.generate_quiz(_request())

    assert quiz.title == "World Capitals"
    assert quiz.difficulty == "easy"
    assert len(quiz.questions) == 2
    assert len(provider.calls) == 1
    call = provider.calls[0]
    assert call.task == "quiz_generation"
    assert call.system_prompt == prompts.QUIZ_GENERATION_PROMPT.system
    assert "Topic: Capital cities of Europe" in call.user_prompt
    assert call.model == generator.settings.gemini_model


def test_explicit_title_replaces_model_title(generator, provider, quiz_reply):
    provider.queue(quiz_reply(title="Model Title"))

    quiz = generator.generate_quiz(_request(title="  My Own Title "))

    assert quiz.title == "My Own Title"


def test_fenced_reply_with_prose(generator, provider, quiz_reply):
    provider.queue(f"Sure!\n```json\n{json.dumps(quiz_reply())}\n```\nHave fun.")

    assert len(generator.generate_quiz(_request()).questions) == 2


def test_invalid_json_is_not_retried(generator, provider, quiz_reply, caplog):
    provider.queue('{"title": "Broken"', quiz_reply())

    with caplog.at_level(logging.WARNING, logger="quizcraft.services.quiz_generator"):
        with pytest.raises(ResponseParseError) as excinfo:
            generator.generate_quiz(_request())

    assert excinfo.value.message == "Failed to parse AI response. Please try again."
    assert len(provider.calls) == 1
    assert any("raw_length=18" in record.getMessage() for record in caplog.records)


def test_cardinality_failure_rejects_whole_quiz(generator, provider, quiz_reply):
    reply = quiz_reply()
    reply["questions"][1]["options"][2]["is_correct"] = True
    provider.queue(reply)

    with pytest.raises(AnswerCardinalityError) as excinfo:
        generator.generate_quiz(_request())

    assert excinfo.value.question_index == 1
    assert excinfo.value.found == 2
    assert excinfo.value.status_code == 500


def test_refusal_is_reported_with_reasoning(generator, provider):
    provider.queue("I cannot help with that request because it is harmful to others.")

    with pytest.raises(ContentRefusalError) as excinfo:
        generator.generate_quiz(_request())

    assert excinfo.value.status_code == 400
    assert "because it is harmful" in excinfo.value.reasoning


def test_service_failure_surfaces_as_service_error(generator, provider):
    provider.queue(LLMError("timed out", category="timeout"))

    with pytest.raises(AIServiceError) as excinfo:
        generator.generate_quiz(_request())

    assert excinfo.value.category == "timeout"


def test_missing_key_fails_before_any_call(generator, provider):
    provider.configured = False

    with pytest.raises(AIConfigurationError):
        generator.generate_quiz(_request())

    assert provider.calls == []


def test_additional_questions(generator, provider, quiz_reply):
    provider.queue({"questions": quiz_reply(question_count=3, options_count=3)["questions"]})

    questions = generator.generate_additional_questions(_context(), count=3, options_count=3)

    assert [question.order_index for question in questions] == [0, 1, 2]
    assert "Generate exactly 3 new questions" in provider.calls[0].user_prompt


def test_enhance_question(generator, provider):
    provider.queue(
        {"enhanced_question": {"question_text": "What is the capital of Peru?", "reasoning": "Clearer."}}
    )

    enhanced = generator.enhance_question("peru capital?", _context())

    assert enhanced.question_text == "What is the capital of Peru?"
    assert "peru capital?" in provider.calls[0].user_prompt


def test_additional_options(generator, provider):
    provider.queue({"options": [{"option_text": "Quito"}, {"option_text": "Bogota"}]})

    options = generator.generate_additional_options("Capital of Peru?", [("Lima", True)], 2)

    assert [option.option_text for option in options] == ["Quito", "Bogota"]
    assert "1. Lima (CORRECT)" in provider.calls[0].user_prompt


def test_question_type_suggestions(generator, provider):
    provider.queue({"suggestions": [{"type": "Scenario", "description": "Apply it", "example": "If...?"}]})

    suggestions = generator.suggest_question_types("Photosynthesis", "hard")

    assert suggestions[0].type == "Scenario"


def test_validate_quiz_content_uses_low_temperature(generator, provider):
    provider.queue({"isApproved": False, "reasoning": "Off-topic spam.", "confidence": 90, "concerns": ["spam"]})

    result = generator.validate_quiz_content("Buy now", None, [])

    assert result.is_approved is False
    assert result.concerns == ("spam",)
    assert provider.calls[0].temperature == 0.3


def test_creative_prompt_is_seeded_with_primary_topic(generator, provider):
    primary, alternative = prompts.pick_surprise_topics(random.Random(11))
    provider.queue('"Iconic inventions of the twentieth century"\n')

    result = generator.creative_prompt(random.Random(11))

    assert result.prompt == "Iconic inventions of the twentieth century"
    assert result.alternative_topic == alternative
    assert f"Focus on this area: {primary}" in provider.calls[0].user_prompt


def test_empty_creative_prompt_is_a_service_error(generator, provider):
    provider.queue('  ""  ')

    with pytest.raises(AIServiceError) as excinfo:
        generator.creative_prompt(random.Random(1))

    assert excinfo.value.category == "empty_response"
