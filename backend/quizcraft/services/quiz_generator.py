from __future__ import annotations

import logging
import random
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from quizcraft.config import Settings
from quizcraft.errors import AIServiceError, ContentRefusalError, QuizGenerationError
from quizcraft.providers.manager import LLMManager
from quizcraft.schemas import (
    ContentSafetyResult,
    CreativePrompt,
    EnhancedQuestion,
    GeneratedOption,
    GeneratedQuestion,
    GeneratedQuiz,
    QuestionTypeSuggestion,
    QuizContextModel,
    QuizGenerationRequest,
)
from quizcraft.services import prompts
from quizcraft.services.normalizer import (
    extract_json_text,
    extract_refusal_reasoning,
    is_content_refusal,
    normalize_content_safety,
    normalize_enhanced_question,
    normalize_generated_options,
    normalize_generated_questions,
    normalize_generated_quiz,
    normalize_question_type_suggestions,
    parse_json_text,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def quiz_context_from_model(model: QuizContextModel) -> prompts.QuizContext:
    return prompts.QuizContext(
        title=model.title,
        difficulty=model.difficulty,
        original_prompt=model.original_prompt,
        description=model.description,
        existing_questions=tuple(
            prompts.ExistingQuestionText(
                question_text=question.question_text,
                options=tuple((option.option_text, option.is_correct) for option in question.options),
            )
            for question in model.existing_questions
        ),
    )


class QuizGeneratorService:
    """Runs one prompt → call → parse → normalise pass per AI feature.

    Every failure surfaces as a :class:`QuizGenerationError` subclass. Nothing
    is retried here; callers decide whether to ask again.
    """

    def __init__(self, settings: Settings, llm_manager: LLMManager) -> None:
        self.settings = settings
        self.llm_manager = llm_manager

    def _complete(
        self,
        task: str,
        template: prompts.PromptTemplate,
        user_prompt: str,
        temperature: float = 0.7,
    ) -> str:
        result = self.llm_manager.complete_text(
            task=task,
            system_prompt=template.system,
            user_prompt=user_prompt,
            temperature=temperature,
        )
        return result.raw_text

    def _run(
        self,
        task: str,
        template: prompts.PromptTemplate,
        user_prompt: str,
        normalize: Callable[[Any], T],
        temperature: float = 0.7,
    ) -> T:
        raw_text = self._complete(task, template, user_prompt, temperature)
        try:
            if is_content_refusal(raw_text):
                raise ContentRefusalError(extract_refusal_reasoning(raw_text))
            data = parse_json_text(extract_json_text(raw_text))
            return normalize(data)
        except QuizGenerationError as exc:
            logger.warning(
                "Generation rejected task=%s error=%s raw_length=%d: %s",
                task,
                type(exc).__name__,
                len(raw_text),
                exc.detail,
            )
            raise

    def generate_quiz(self, request: QuizGenerationRequest) -> GeneratedQuiz:
        context = prompts.QuizGenerationContext(
            prompt=request.prompt,
            difficulty=request.difficulty,
            question_count=request.question_count,
            options_count=request.options_count,
        )
        quiz = self._run(
            "quiz_generation",
            prompts.QUIZ_GENERATION_PROMPT,
            prompts.format_quiz_generation(context),
            lambda data: normalize_generated_quiz(
                data,
                difficulty=request.difficulty,
                question_count=request.question_count,
                options_count=request.options_count,
                title_max_words=self.settings.title_max_words,
            ),
        )
        if request.title:
            quiz = quiz.model_copy(update={"title": request.title.strip()})
        logger.info(
            "Generated quiz questions=%d difficulty=%s", len(quiz.questions), quiz.difficulty
        )
        return quiz

    def generate_additional_questions(
        self, context: prompts.QuizContext, count: int, options_count: int = 4
    ) -> List[GeneratedQuestion]:
        return self._run(
            "additional_questions",
            prompts.ADDITIONAL_QUESTIONS_PROMPT,
            prompts.format_additional_questions(context, count, options_count),
            lambda data: normalize_generated_questions(
                data, expected_count=count, options_count=options_count
            ),
        )

    def enhance_question(self, question_text: str, context: prompts.QuizContext) -> EnhancedQuestion:
        return self._run(
            "question_enhancement",
            prompts.QUESTION_ENHANCEMENT_PROMPT,
            prompts.format_question_enhancement(question_text, context),
            normalize_enhanced_question,
        )

    def generate_additional_options(
        self,
        question_text: str,
        existing_options: Iterable[Tuple[str, bool]],
        count: int,
    ) -> List[GeneratedOption]:
        return self._run(
            "additional_options",
            prompts.ADDITIONAL_OPTIONS_PROMPT,
            prompts.format_additional_options(question_text, existing_options, count),
            lambda data: normalize_generated_options(data, expected_count=count),
        )

    def suggest_question_types(self, topic: str, difficulty: str) -> List[QuestionTypeSuggestion]:
        return self._run(
            "question_type_suggestions",
            prompts.QUESTION_TYPE_SUGGESTIONS_PROMPT,
            prompts.format_question_type_suggestions(topic, difficulty),
            normalize_question_type_suggestions,
        )

    def validate_quiz_content(
        self,
        title: str,
        description: Optional[str],
        questions: Sequence[prompts.ExistingQuestionText],
    ) -> ContentSafetyResult:
        result = self._run(
            "content_safety",
            prompts.SECURITY_CHECK_PROMPT,
            prompts.format_security_check(title, description, questions),
            normalize_content_safety,
            temperature=0.3,
        )
        if not result.is_approved:
            logger.warning(
                "Content rejected confidence=%d concerns=%s", result.confidence, result.concerns
            )
        return result

    def creative_prompt(self, rng: Optional[random.Random] = None) -> CreativePrompt:
        topic_area, alternative = prompts.pick_surprise_topics(rng or random.Random())
        raw_text = self._complete(
            "creative_prompt",
            prompts.CREATIVE_QUIZ_PROMPT,
            prompts.format_creative_prompt(topic_area),
            temperature=0.9,
        )
        text = raw_text.strip().strip('"').strip()
        if not text:
            raise AIServiceError("Creative prompt reply was empty", category="empty_response")
        return CreativePrompt(prompt=text, alternative_topic=alternative)
