import random
import re

import pytest

from quizcraft.services import prompts
from quizcraft.services.prompts import PromptField


def _unfilled(text):
    return re.findall(r"\{[A-Za-z]+\}", text)


def _context():
    return prompts.QuizContext(
        title="Ocean Life",
        difficulty="medium",
        original_prompt="Marine animals and their habitats",
        description=None,
        existing_questions=(
            prompts.ExistingQuestionText(
                question_text="Which mammal is the largest?",
                options=(("Blue whale", True), ("Orca", False)),
            ),
        ),
    )


def test_render_substitutes_every_occurrence():
    rendered = prompts.render(
        "{difficulty} quiz, really {difficulty}: {prompt}",
        {PromptField.DIFFICULTY: "hard", PromptField.PROMPT: "volcanoes"},
    )

    assert rendered == "hard quiz, really hard: volcanoes"


def test_render_missing_value_raises():
    with pytest.raises(KeyError):
        prompts.render("{difficulty} {prompt}", {PromptField.DIFFICULTY: "easy"})


def test_render_unknown_placeholder_raises():
    with pytest.raises(KeyError):
        prompts.render("{notAField}", {})


def test_render_does_not_rescan_substituted_values():
    rendered = prompts.render(
        "Topic: {prompt}",
        {PromptField.PROMPT: "the {difficulty} of {count}"},
    )

    assert rendered == "Topic: the {difficulty} of {count}"


def test_quiz_generation_prompt_is_fully_rendered():
    text = prompts.format_quiz_generation(
        prompts.QuizGenerationContext(
            prompt="The history of the Roman empire",
            difficulty="easy",
            question_count=7,
            options_count=3,
        )
    )

    assert _unfilled(text) == []
    assert "Topic: The history of the Roman empire" in text
    assert "Number of Questions: 7" in text
    assert "Options per Question: 3" in text
    assert '"The History The Roman Empire Quiz"' in text
    assert prompts.difficulty_guidelines("easy") in text


@pytest.mark.parametrize(
    "text",
    [
        prompts.format_creative_prompt("Science and nature"),
        prompts.format_additional_questions(_context(), 3, 5),
        prompts.format_question_enhancement("Biggest fish?", _context()),
        prompts.format_additional_options("Biggest fish?", [("Whale shark", True)], 2),
        prompts.format_question_type_suggestions("Astronomy", "hard"),
        prompts.format_security_check("Title", "Desc", _context().existing_questions),
    ],
)
def test_formatters_leave_no_placeholders(text):
    assert _unfilled(text) == []


def test_additional_questions_lists_existing_questions():
    text = prompts.format_additional_questions(_context(), count=3, options_count=5)

    assert "1. Which mammal is the largest?" in text
    assert "Generate exactly 3 new questions" in text
    assert "exactly 5 options" in text
    assert "Description: No description provided" in text


def test_additional_options_marks_existing_answers():
    text = prompts.format_additional_options(
        "Capital of Peru?", [("Lima", True), ("Cusco", False)], 2
    )

    assert "1. Lima (CORRECT)" in text
    assert "2. Cusco (INCORRECT)" in text
    assert "Generate exactly 2 new options" in text


def test_security_check_includes_every_option():
    text = prompts.format_security_check("Ocean Life", None, _context().existing_questions)

    assert "Question 1: Which mammal is the largest?" in text
    assert "  1. Blue whale" in text
    assert "  2. Orca" in text


def test_suggest_title():
    assert prompts.suggest_title("Cats!") == "Cats Quiz"
    assert prompts.suggest_title("a b") == "Quiz Quiz"


def test_unknown_difficulty_has_generic_guidelines():
    assert "Adjust difficulty" in prompts.difficulty_guidelines("extreme")


def test_surprise_topics_are_distinct_and_reproducible():
    for seed in range(200):
        primary, fallback = prompts.pick_surprise_topics(random.Random(seed))
        assert primary != fallback
        assert primary in prompts.SURPRISE_TOPIC_AREAS
        assert fallback in prompts.SURPRISE_TOPIC_AREAS

    assert prompts.pick_surprise_topics(random.Random(3)) == prompts.pick_surprise_topics(
        random.Random(3)
    )


def test_surprise_topics_resample_with_duplicates():
    primary, fallback = prompts.pick_surprise_topics(random.Random(1), ("A", "A", "A", "B"))

    assert {primary, fallback} == {"A", "B"}


def test_surprise_topics_need_two_areas():
    with pytest.raises(ValueError):
        prompts.pick_surprise_topics(random.Random(0), ("Only", "Only"))
