from __future__ import annotations

from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

Difficulty = Literal["easy", "medium", "hard"]


# Generated content: produced only by the normalizer, immutable afterwards.


class GeneratedOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    option_text: str = Field(min_length=1)
    is_correct: bool
    order_index: int = Field(ge=0)


class GeneratedQuestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_text: str = Field(min_length=1)
    question_type: Literal["multiple_choice"] = "multiple_choice"
    order_index: int = Field(ge=0)
    options: Tuple[GeneratedOption, ...] = Field(min_length=2)


class GeneratedQuiz(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1)
    description: str = ""
    difficulty: Difficulty
    questions: Tuple[GeneratedQuestion, ...] = Field(min_length=1)


class EnhancedQuestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_text: str
    reasoning: str = ""


class QuestionTypeSuggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    description: str = ""
    example: str = ""


class ContentSafetyResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_approved: bool
    reasoning: str = ""
    confidence: int = Field(default=0, ge=0, le=100)
    concerns: Tuple[str, ...] = ()


class CreativePrompt(BaseModel):
    prompt: str
    alternative_topic: str


# Requests


class _RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class QuizGenerationRequest(_RequestModel):
    prompt: str = Field(min_length=10, max_length=2000)
    difficulty: Difficulty
    question_count: int = Field(alias="questionCount", ge=1, le=20)
    options_count: int = Field(alias="optionsCount", ge=2, le=8)
    title: Optional[str] = Field(default=None, max_length=200)
    is_public: bool = True

    @field_validator("title")
    @classmethod
    def blank_title_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value:
            return None
        return value


class ExistingOption(_RequestModel):
    option_text: str = Field(min_length=1, max_length=200)
    is_correct: bool = False


class ExistingQuestion(_RequestModel):
    question_text: str = Field(min_length=1, max_length=500)
    options: List[ExistingOption] = Field(default_factory=list)


class QuizContextModel(_RequestModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    difficulty: Difficulty
    original_prompt: str = Field(alias="originalPrompt", min_length=1, max_length=2000)
    existing_questions: List[ExistingQuestion] = Field(
        default_factory=list, alias="existingQuestions", max_length=50
    )


class GenerateQuestionsRequest(_RequestModel):
    context: QuizContextModel
    count: int = Field(ge=1, le=10)


class EnhanceQuestionRequest(_RequestModel):
    context: QuizContextModel
    question_text: str = Field(alias="questionText", min_length=1, max_length=500)


class GenerateOptionsRequest(_RequestModel):
    question_text: str = Field(alias="questionText", min_length=1, max_length=500)
    existing_options: List[ExistingOption] = Field(
        default_factory=list, alias="existingOptions", max_length=8
    )
    count: int = Field(ge=1, le=6)


class QuestionTypeSuggestionsRequest(_RequestModel):
    topic: str = Field(min_length=2, max_length=500)
    difficulty: Difficulty


class OptionInput(_RequestModel):
    option_text: str = Field(min_length=1, max_length=200)
    is_correct: bool = False
    order_index: int = Field(ge=0)


class QuestionInput(_RequestModel):
    question_text: str = Field(min_length=10, max_length=500)
    question_type: Literal["multiple_choice"] = "multiple_choice"
    order_index: int = Field(ge=0)
    options: List[OptionInput] = Field(min_length=2, max_length=8)

    @field_validator("options")
    @classmethod
    def exactly_one_correct(cls, value: List[OptionInput]) -> List[OptionInput]:
        correct = sum(1 for option in value if option.is_correct)
        if correct != 1:
            raise ValueError("Each question must have exactly one correct answer")
        return value


class PublishManualQuizRequest(_RequestModel):
    title: str = Field(min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    difficulty: Difficulty
    is_public: bool = True
    original_prompt: Optional[str] = Field(default=None, min_length=10, max_length=2000)
    questions: List[QuestionInput] = Field(min_length=1, max_length=20)


class UpdateQuizRequest(_RequestModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    difficulty: Optional[Difficulty] = None
    is_public: Optional[bool] = None


class SubmittedAnswer(_RequestModel):
    question_id: str = Field(alias="questionId", min_length=1)
    option_id: str = Field(alias="optionId", min_length=1)


class SubmitQuizRequest(_RequestModel):
    answers: List[SubmittedAnswer]


class PublicQuizQuery(_RequestModel):
    limit: int = Field(default=50, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    search: Optional[str] = Field(default=None, max_length=200)
    difficulty: Optional[Difficulty] = None
    type: Optional[Literal["ai", "manual"]] = None
    sort_by: Literal["created_at", "popularity", "difficulty", "title"] = Field(
        default="created_at", alias="sortBy"
    )
    sort_order: Literal["asc", "desc"] = Field(default="desc", alias="sortOrder")

    @field_validator("search")
    @classmethod
    def blank_search_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class UpdateProfileRequest(_RequestModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    role: Optional[str] = Field(default=None, max_length=100)
    avatar_url: Optional[str] = Field(default=None, max_length=2048, pattern=r"^https?://\S+$")
    bio: Optional[str] = Field(default=None, max_length=500)


class OnboardingProgressRequest(_RequestModel):
    flow_type: str = Field(min_length=1, max_length=50)
    current_step: int = Field(ge=0)
    is_complete: bool = False


class CompleteOnboardingRequest(_RequestModel):
    name: str = Field(min_length=1, max_length=50)
    role: str = Field(min_length=1, max_length=100)
