"""Prompt templates for every AI-backed flow.

Templates use ``{placeholder}`` tokens drawn from :class:`PromptField`. Rendering
is a single pass, so substituted values are never re-scanned for tokens.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple


class PromptField(str, Enum):
    DIFFICULTY = "difficulty"
    PROMPT = "prompt"
    QUESTION_COUNT = "questionCount"
    OPTIONS_COUNT = "optionsCount"
    SUGGESTED_TITLE = "suggestedTitle"
    DIFFICULTY_GUIDELINES = "difficultyGuidelines"
    TOPIC_AREA = "topicArea"
    COUNT = "count"
    TITLE = "title"
    DESCRIPTION = "description"
    ORIGINAL_PROMPT = "originalPrompt"
    EXISTING_QUESTIONS = "existingQuestions"
    QUESTION_TEXT = "questionText"
    EXISTING_OPTIONS = "existingOptions"
    TOPIC = "topic"
    QUESTIONS = "questions"


@dataclass(frozen=True)
class PromptTemplate:
    system: str
    user: str


_PLACEHOLDER = re.compile(r"\{([A-Za-z]+)\}")


def render(template: str, values: Mapping[PromptField, str]) -> str:
    def substitute(match: re.Match) -> str:
        name = match.group(1)
        try:
            key = PromptField(name)
        except ValueError:
            raise KeyError(f"Unknown prompt placeholder: {name}") from None
        if key not in values:
            raise KeyError(f"No value supplied for prompt placeholder: {name}")
        return str(values[key])

    return _PLACEHOLDER.sub(substitute, template)


_DIFFICULTY_GUIDELINES = {
    "easy": (
        "   - Use straightforward questions with clearly correct answers\n"
        "   - Cover basic concepts and definitions\n"
        "   - Avoid tricky or ambiguous phrasing\n"
        "   - Questions should be answerable with fundamental knowledge"
    ),
    "medium": (
        "   - Include some analytical thinking and application of concepts\n"
        "   - Mix factual recall with reasoning questions\n"
        "   - Questions may require connecting multiple pieces of information"
    ),
    "hard": (
        "   - Require deep understanding and critical thinking\n"
        "   - Include complex scenarios and edge cases\n"
        "   - Questions may involve analysis, synthesis or evaluation"
    ),
}


def difficulty_guidelines(difficulty: str) -> str:
    return _DIFFICULTY_GUIDELINES.get(
        difficulty, "   - Adjust difficulty appropriately for the target audience"
    )


def suggest_title(prompt: str) -> str:
    cleaned = re.sub(r"[^\w\s]", "", prompt.lower())
    words = [word for word in cleaned.split() if len(word) > 2][:6]
    title = " ".join(word[:1].upper() + word[1:] for word in words)
    return f"{title or 'Quiz'} Quiz"


SURPRISE_TOPIC_AREAS: Tuple[str, ...] = (
    "Pop culture and entertainment",
    "Science and nature",
    "Historical events and figures",
    "Geography and world cultures",
    "Food and cooking traditions",
    "Technology and innovations",
    "Art and literature",
    "Sports and video games",
    "Mythology and legends",
    "Fun facts and general trivia",
)


def pick_surprise_topics(
    rng: random.Random, areas: Sequence[str] = SURPRISE_TOPIC_AREAS
) -> Tuple[str, str]:
    """Return a primary topic area and a distinct fallback suggestion."""
    if len(set(areas)) < 2:
        raise ValueError("At least two distinct topic areas are required")
    primary = rng.choice(areas)
    fallback = rng.choice(areas)
    while fallback == primary:
        fallback = rng.choice(areas)
    return primary, fallback


QUIZ_GENERATION_PROMPT = PromptTemplate(
    system=(
        "You are an expert quiz creator with deep knowledge across many domains. "
        "You write accurate, engaging and well-structured educational quizzes."
    ),
    user="""
Create a {difficulty} difficulty quiz with the following specifications:

REQUIREMENTS:
- Topic: {prompt}
- Difficulty Level: {difficulty}
- Number of Questions: {questionCount}
- Options per Question: {optionsCount}
- Question Type: Multiple choice only

RESPONSE FORMAT:
Respond with ONLY a valid JSON object in this exact format:

{
  "title": "A concise, engaging title (max 8 words)",
  "description": "Brief description of what this quiz covers (1-2 sentences)",
  "difficulty": "{difficulty}",
  "questions": [
    {
      "question_text": "Clear, unambiguous question text?",
      "question_type": "multiple_choice",
      "order_index": 0,
      "options": [
        {"option_text": "First option text", "is_correct": false, "order_index": 0},
        {"option_text": "Second option text", "is_correct": true, "order_index": 1}
      ]
    }
  ]
}

QUALITY GUIDELINES:
1. Title should be engaging and concise (suggested: "{suggestedTitle}")
2. For {difficulty} difficulty:
{difficultyGuidelines}
3. Each question must have EXACTLY ONE correct answer
4. Incorrect options should be plausible but clearly wrong
5. The correct answer must be factually accurate
6. Use clear, unambiguous language
7. Ensure all content relates to: "{prompt}"
8. Number order_index starting from 0
9. Generate exactly {questionCount} questions with {optionsCount} options each
10. Do not include any other text in the response
11. Do not include "quiz" or "quiz on" in the title; use the key topic keywords only

QUESTION QUALITY REQUIREMENTS:
- Keep questions concise (maximum 15-20 words) and test one concept each
- Avoid double negatives and ambiguous phrasing

OPTION QUALITY REQUIREMENTS:
- Keep options concise (maximum 8-10 words) and parallel in structure
- Avoid "all of the above" or "none of the above"

Generate the quiz now:
""".strip(),
)

CREATIVE_QUIZ_PROMPT = PromptTemplate(
    system=(
        "You are a creative educational content specialist who suggests engaging "
        "and diverse quiz topics for a wide audience."
    ),
    user="""
Generate a creative and engaging quiz topic.
Focus on this area: {topicArea}

The response:
- Must be only 1 sentence (at most 2), with no extra explanation
- Should not include the word "quiz"
- Should not include markdown, emojis or formatting
- Should avoid dramatic, poetic or clickbait phrasing
- Must use simple, direct and descriptive language

Examples of excellent responses:
"Food cultures from around the world"
"Iconic video game soundtracks"
"Solar system planets and their characteristics"
""".strip(),
)

ADDITIONAL_QUESTIONS_PROMPT = PromptTemplate(
    system=(
        "You are an expert quiz creator who keeps a quiz consistent while adding "
        "fresh, non-repetitive questions."
    ),
    user="""
Generate {count} additional questions for an existing quiz.

QUIZ CONTEXT:
- Title: {title}
- Description: {description}
- Difficulty: {difficulty}
- Original Prompt: {originalPrompt}

EXISTING QUESTIONS:
{existingQuestions}

REQUIREMENTS:
- Generate exactly {count} new questions
- Match the {difficulty} difficulty level:
{difficultyGuidelines}
- Avoid duplicating existing questions
- Each question must have exactly {optionsCount} options and exactly one correct answer
- Questions must be relevant to: "{originalPrompt}"

RESPONSE FORMAT:
Respond with ONLY a valid JSON object in this exact format:

{
  "questions": [
    {
      "question_text": "Clear, unambiguous question text?",
      "question_type": "multiple_choice",
      "order_index": 0,
      "options": [
        {"option_text": "First option text", "is_correct": false, "order_index": 0},
        {"option_text": "Second option text", "is_correct": true, "order_index": 1}
      ]
    }
  ]
}

Generate the questions now:
""".strip(),
)

QUESTION_ENHANCEMENT_PROMPT = PromptTemplate(
    system=(
        "You are an expert educational content editor focused on clarity, "
        "engagement and pedagogical value."
    ),
    user="""
Enhance the following question so it is clearer, more engaging and suited to the quiz difficulty.

ORIGINAL QUESTION:
{questionText}

QUIZ CONTEXT:
- Title: {title}
- Difficulty: {difficulty}
- Topic: {originalPrompt}

For {difficulty} difficulty:
{difficultyGuidelines}

Keep the core meaning, keep it answerable, aim for at most 20 words, and keep the
reasoning to 1-2 sentences.

RESPONSE FORMAT:
Respond with ONLY a valid JSON object in this exact format:

{
  "enhanced_question": {
    "question_text": "The improved question text here",
    "reasoning": "Brief explanation of what was improved"
  }
}
""".strip(),
)

ADDITIONAL_OPTIONS_PROMPT = PromptTemplate(
    system=(
        "You are an expert quiz creator who writes plausible distractors for "
        "multiple-choice questions."
    ),
    user="""
Generate {optionsCount} additional INCORRECT answer options for this question.

QUESTION:
{questionText}

EXISTING OPTIONS:
{existingOptions}

REQUIREMENTS:
- Generate exactly {optionsCount} new options, all of them wrong answers
- Options must be plausible distractors, not absurd
- Do not duplicate existing options
- Match the length and style of the existing options

RESPONSE FORMAT:
Respond with ONLY a valid JSON object in this exact format:

{
  "options": [
    {"option_text": "First new incorrect option", "is_correct": false, "order_index": 0}
  ]
}
""".strip(),
)

QUESTION_TYPE_SUGGESTIONS_PROMPT = PromptTemplate(
    system=(
        "You are an educational design expert who knows assessment methods and "
        "question taxonomies."
    ),
    user="""
Suggest 5 different question types that would work well for a {difficulty} quiz about "{topic}".

For {difficulty} difficulty:
{difficultyGuidelines}

Each suggestion needs a short description and a sample multiple-choice question
(at most 20 words) specific to the topic.

RESPONSE FORMAT:
Respond with ONLY a valid JSON object in this exact format:

{
  "suggestions": [
    {
      "type": "Definition Questions",
      "description": "Test understanding of key terms",
      "example": "What is the definition of [specific term]?"
    }
  ]
}
""".strip(),
)

SECURITY_CHECK_PROMPT = PromptTemplate(
    system=(
        "You are a content safety specialist for educational content. You are fair, "
        "constructive and consistent."
    ),
    user="""
Review this user-generated quiz content for quality and safety.

QUIZ TO REVIEW:
Title: {title}
Description: {description}

QUESTIONS:
{questions}

EVALUATION CRITERIA:
1. SAFETY: no harmful, hateful, explicit, dangerous or illegal content in any part.
2. QUALITY: title and description match the content, questions are well formed.
3. AUTHENTICITY: genuine effort, not spam, not misleading.

RESPONSE FORMAT:
Respond with ONLY a valid JSON object in this exact format:

{
  "isApproved": true,
  "reasoning": "Clear explanation of the decision (1-2 sentences)",
  "confidence": 85,
  "concerns": []
}

confidence is a number between 0 and 100; concerns is an empty list when there are none.
""".strip(),
)


@dataclass(frozen=True)
class QuizGenerationContext:
    prompt: str
    difficulty: str
    question_count: int
    options_count: int


@dataclass(frozen=True)
class ExistingQuestionText:
    question_text: str
    options: Tuple[Tuple[str, bool], ...] = ()


@dataclass(frozen=True)
class QuizContext:
    title: str
    difficulty: str
    original_prompt: str
    description: Optional[str] = None
    existing_questions: Tuple[ExistingQuestionText, ...] = field(default_factory=tuple)


def format_quiz_generation(context: QuizGenerationContext) -> str:
    return render(
        QUIZ_GENERATION_PROMPT.user,
        {
            PromptField.DIFFICULTY: context.difficulty,
            PromptField.PROMPT: context.prompt,
            PromptField.QUESTION_COUNT: str(context.question_count),
            PromptField.OPTIONS_COUNT: str(context.options_count),
            PromptField.SUGGESTED_TITLE: suggest_title(context.prompt),
            PromptField.DIFFICULTY_GUIDELINES: difficulty_guidelines(context.difficulty),
        },
    )


def format_creative_prompt(topic_area: str) -> str:
    return render(CREATIVE_QUIZ_PROMPT.user, {PromptField.TOPIC_AREA: topic_area})


def format_additional_questions(
    context: QuizContext, count: int, options_count: int = 4
) -> str:
    existing = (
        "\n".join(
            f"{index}. {question.question_text}"
            for index, question in enumerate(context.existing_questions, start=1)
        )
        or "None"
    )
    return render(
        ADDITIONAL_QUESTIONS_PROMPT.user,
        {
            PromptField.COUNT: str(count),
            PromptField.TITLE: context.title,
            PromptField.DESCRIPTION: context.description or "No description provided",
            PromptField.DIFFICULTY: context.difficulty,
            PromptField.ORIGINAL_PROMPT: context.original_prompt,
            PromptField.EXISTING_QUESTIONS: existing,
            PromptField.OPTIONS_COUNT: str(options_count),
            PromptField.DIFFICULTY_GUIDELINES: difficulty_guidelines(context.difficulty),
        },
    )


def format_question_enhancement(question_text: str, context: QuizContext) -> str:
    return render(
        QUESTION_ENHANCEMENT_PROMPT.user,
        {
            PromptField.QUESTION_TEXT: question_text,
            PromptField.TITLE: context.title,
            PromptField.DIFFICULTY: context.difficulty,
            PromptField.ORIGINAL_PROMPT: context.original_prompt,
            PromptField.DIFFICULTY_GUIDELINES: difficulty_guidelines(context.difficulty),
        },
    )


def format_additional_options(
    question_text: str, existing_options: Iterable[Tuple[str, bool]], count: int
) -> str:
    existing = "\n".join(
        f"{index}. {text} {'(CORRECT)' if is_correct else '(INCORRECT)'}"
        for index, (text, is_correct) in enumerate(existing_options, start=1)
    )
    return render(
        ADDITIONAL_OPTIONS_PROMPT.user,
        {
            PromptField.QUESTION_TEXT: question_text,
            PromptField.EXISTING_OPTIONS: existing or "None",
            PromptField.OPTIONS_COUNT: str(count),
        },
    )


def format_question_type_suggestions(topic: str, difficulty: str) -> str:
    return render(
        QUESTION_TYPE_SUGGESTIONS_PROMPT.user,
        {
            PromptField.TOPIC: topic,
            PromptField.DIFFICULTY: difficulty,
            PromptField.DIFFICULTY_GUIDELINES: difficulty_guidelines(difficulty),
        },
    )


def format_security_check(
    title: str,
    description: Optional[str],
    questions: Sequence[ExistingQuestionText],
) -> str:
    blocks: List[str] = []
    for index, question in enumerate(questions, start=1):
        lines = [f"Question {index}: {question.question_text}"]
        lines.extend(
            f"  {option_index}. {text}"
            for option_index, (text, _is_correct) in enumerate(question.options, start=1)
        )
        blocks.append("\n".join(lines))
    return render(
        SECURITY_CHECK_PROMPT.user,
        {
            PromptField.TITLE: title,
            PromptField.DESCRIPTION: description or "No description provided",
            PromptField.QUESTIONS: "\n\n".join(blocks),
        },
    )
