from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional, Type, TypeVar

from flask import Blueprint, current_app, g, jsonify, request
from pydantic import BaseModel

from quizcraft.auth import require_auth
from quizcraft.errors import AppError
from quizcraft.extensions import limiter, rate_limits_disabled
from quizcraft.schemas import (
    CompleteOnboardingRequest,
    EnhanceQuestionRequest,
    GenerateOptionsRequest,
    GenerateQuestionsRequest,
    OnboardingProgressRequest,
    PublicQuizQuery,
    PublishManualQuizRequest,
    QuestionInput,
    QuestionTypeSuggestionsRequest,
    QuizGenerationRequest,
    SubmitQuizRequest,
    UpdateProfileRequest,
    UpdateQuizRequest,
)
from quizcraft.services import analytics
from quizcraft.services.attempts import attempt_summaries, grade_attempt, strip_answers
from quizcraft.services.prompts import ExistingQuestionText
from quizcraft.services.quiz_generator import quiz_context_from_model
from quizcraft.services.quiz_store import NOT_FOUND_OR_DENIED

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)

M = TypeVar("M", bound=BaseModel)

DEFAULT_OPTIONS_COUNT = 4


def _services():
    return current_app.extensions["services"]


def _settings():
    return current_app.extensions["settings"]


def _ai_limit() -> str:
    return _settings().rate_limit_ai_generation


def _creative_limit() -> str:
    return _settings().rate_limit_creative_prompts


def _general_limit() -> str:
    return _settings().rate_limit_general_api


def _auth_limit() -> str:
    return _settings().rate_limit_auth


def _security_limit() -> str:
    return _settings().rate_limit_security_validation


def _body(model: Type[M]) -> M:
    return model.model_validate(request.get_json(force=True, silent=False))


def _success(data: Any, status: int = 200, message: Optional[str] = None) -> tuple:
    payload: Dict[str, Any] = {"success": True, "data": data}
    if message:
        payload["message"] = message
    return jsonify(payload), status


def _readable_quiz(quiz_id: str) -> Dict[str, Any]:
    quiz = _services()["quiz_store"].get_quiz(quiz_id)
    if quiz is None or not (quiz["is_public"] or quiz["user_id"] == g.user_id):
        raise AppError(NOT_FOUND_OR_DENIED, 404)
    return quiz


def _owned_quiz(quiz_id: str) -> Dict[str, Any]:
    quiz = _services()["quiz_store"].get_quiz(quiz_id)
    if quiz is None or quiz["user_id"] != g.user_id:
        raise AppError(NOT_FOUND_OR_DENIED, 404)
    return quiz


@api_bp.get("/health")
def health() -> tuple:
    llm_manager = _services()["llm_manager"]
    return jsonify({"status": "ok", "ai_configured": llm_manager.is_configured()}), 200


@api_bp.get("/auth/me")
@limiter.limit(_auth_limit, exempt_when=rate_limits_disabled)
@require_auth
def who_am_i() -> tuple:
    return _success({"user_id": g.user_id})


@api_bp.post("/quizzes/generate")
@limiter.limit(_ai_limit, exempt_when=rate_limits_disabled)
@require_auth
def generate_quiz() -> tuple:
    payload = _body(QuizGenerationRequest)
    services = _services()

    quiz = services["quiz_generator"].generate_quiz(payload)
    saved = services["quiz_store"].save_generated_quiz(
        user_id=g.user_id,
        original_prompt=payload.prompt,
        quiz=quiz,
        is_public=payload.is_public,
    )
    logger.info("Saved generated quiz id=%s user=%s", saved["id"], g.user_id)
    return _success(strip_answers(saved), 201, "Quiz generated successfully")


@api_bp.post("/quizzes/surprise-me")
@limiter.limit(_creative_limit, exempt_when=rate_limits_disabled)
@require_auth
def surprise_me() -> tuple:
    result = _services()["quiz_generator"].creative_prompt()
    return _success(result.model_dump())


@api_bp.get("/quizzes/my")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
@require_auth
def my_quizzes() -> tuple:
    return _success(_services()["quiz_store"].list_user_quizzes(g.user_id))


@api_bp.get("/quizzes/public")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
def public_quizzes() -> tuple:
    query = PublicQuizQuery.model_validate(request.args.to_dict())
    quizzes, total = _services()["quiz_store"].list_public_quizzes(query)
    return _success(
        {
            "quizzes": quizzes,
            "pagination": {
                "total": total,
                "limit": query.limit,
                "offset": query.offset,
                "count": len(quizzes),
                "has_more": query.offset + query.limit < total,
            },
        }
    )


@api_bp.get("/quizzes/<quiz_id>")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
@require_auth
def get_quiz(quiz_id: str) -> tuple:
    return _success(strip_answers(_readable_quiz(quiz_id)))


@api_bp.get("/quizzes/<quiz_id>/preview")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
@require_auth
def preview_quiz(quiz_id: str) -> tuple:
    return _success(_owned_quiz(quiz_id))


@api_bp.put("/quizzes/<quiz_id>")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
@require_auth
def update_quiz(quiz_id: str) -> tuple:
    changes = _body(UpdateQuizRequest).model_dump(exclude_none=True)
    if not changes:
        raise AppError("No fields to update", 400)
    updated = _services()["quiz_store"].update_quiz(quiz_id, g.user_id, changes)
    return _success(updated, message="Quiz updated successfully")


@api_bp.delete("/quizzes/<quiz_id>")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
@require_auth
def delete_quiz(quiz_id: str) -> tuple:
    _services()["quiz_store"].delete_quiz(quiz_id, g.user_id)
    logger.info("Deleted quiz id=%s user=%s", quiz_id, g.user_id)
    return _success(None, message="Quiz deleted successfully")


@api_bp.post("/quizzes/<quiz_id>/questions")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
@require_auth
def add_question(quiz_id: str) -> tuple:
    question = _body(QuestionInput)
    created = _services()["quiz_store"].add_question(quiz_id, g.user_id, question)
    return _success(created, 201, "Question added successfully")


@api_bp.post("/quizzes/<quiz_id>/submit")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
@require_auth
def submit_quiz(quiz_id: str) -> tuple:
    payload = _body(SubmitQuizRequest)
    quiz = _readable_quiz(quiz_id)

    grade = grade_attempt(quiz, payload.answers)
    attempt = _services()["quiz_store"].record_attempt(
        user_id=g.user_id,
        quiz_id=quiz_id,
        score=grade["score"],
        total_questions=grade["total_questions"],
        percentage=grade["percentage"],
        answers=[result for result in grade["results"] if result["selected_option_id"] is not None],
    )
    return _success({"attempt_id": attempt["id"], **grade}, message="Quiz submitted successfully")


@api_bp.post("/quizzes/ai/generate-questions")
@limiter.limit(_ai_limit, exempt_when=rate_limits_disabled)
@require_auth
def ai_generate_questions() -> tuple:
    payload = _body(GenerateQuestionsRequest)
    existing = payload.context.existing_questions
    options_count = len(existing[0].options) if existing and existing[0].options else DEFAULT_OPTIONS_COUNT

    questions = _services()["quiz_generator"].generate_additional_questions(
        quiz_context_from_model(payload.context), payload.count, options_count
    )
    return _success({"questions": [question.model_dump() for question in questions]})


@api_bp.post("/quizzes/ai/enhance-question")
@limiter.limit(_ai_limit, exempt_when=rate_limits_disabled)
@require_auth
def ai_enhance_question() -> tuple:
    payload = _body(EnhanceQuestionRequest)
    enhanced = _services()["quiz_generator"].enhance_question(
        payload.question_text, quiz_context_from_model(payload.context)
    )
    return _success({"enhanced_question": enhanced.model_dump()})


@api_bp.post("/quizzes/ai/generate-options")
@limiter.limit(_ai_limit, exempt_when=rate_limits_disabled)
@require_auth
def ai_generate_options() -> tuple:
    payload = _body(GenerateOptionsRequest)
    options = _services()["quiz_generator"].generate_additional_options(
        payload.question_text,
        [(option.option_text, option.is_correct) for option in payload.existing_options],
        payload.count,
    )
    return _success({"options": [option.model_dump() for option in options]})


@api_bp.post("/quizzes/ai/question-type-suggestions")
@limiter.limit(_ai_limit, exempt_when=rate_limits_disabled)
@require_auth
def ai_question_type_suggestions() -> tuple:
    payload = _body(QuestionTypeSuggestionsRequest)
    suggestions = _services()["quiz_generator"].suggest_question_types(
        payload.topic, payload.difficulty
    )
    return _success({"suggestions": [suggestion.model_dump() for suggestion in suggestions]})


@api_bp.post("/manual-quizzes/create-prototype")
@limiter.limit(_ai_limit, exempt_when=rate_limits_disabled)
@require_auth
def create_prototype() -> tuple:
    payload = _body(QuizGenerationRequest)
    quiz = _services()["quiz_generator"].generate_quiz(payload)
    return _success(
        {"prototype": quiz.model_dump(), "original_prompt": payload.prompt},
        201,
        "Quiz prototype generated successfully",
    )


@api_bp.post("/manual-quizzes/publish")
@limiter.limit(_security_limit, exempt_when=rate_limits_disabled)
@require_auth
def publish_manual_quiz() -> tuple:
    payload = _body(PublishManualQuizRequest)
    services = _services()

    if payload.is_public and not _settings().bypass_content_checks:
        review = services["quiz_generator"].validate_quiz_content(
            payload.title,
            payload.description,
            [
                ExistingQuestionText(
                    question_text=question.question_text,
                    options=tuple((option.option_text, option.is_correct) for option in question.options),
                )
                for question in payload.questions
            ],
        )
        if not review.is_approved:
            raise AppError(
                "Quiz content did not pass the content review",
                400,
                details={
                    "validation_result": {
                        "reasoning": review.reasoning,
                        "confidence": review.confidence,
                        "concerns": review.concerns,
                    }
                },
            )

    saved = services["quiz_store"].create_quiz(g.user_id, payload)
    logger.info("Published manual quiz id=%s user=%s", saved["id"], g.user_id)
    return _success(saved, 201, "Quiz published successfully")


@api_bp.get("/quizzes/<quiz_id>/attempts")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
@require_auth
def quiz_attempts(quiz_id: str) -> tuple:
    store = _services()["quiz_store"]
    quiz = store.get_quiz(quiz_id)
    if quiz is None:
        raise AppError("Quiz not found", 404)
    if quiz["user_id"] != g.user_id:
        raise AppError("Access denied to this quiz's attempts", 403)
    return _success({"attempts": attempt_summaries(store.list_quiz_attempts(quiz_id))})


@api_bp.get("/analytics/quiz/<quiz_id>")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
@require_auth
def quiz_analytics(quiz_id: str) -> tuple:
    quiz = _owned_quiz(quiz_id)
    attempts = _services()["quiz_store"].list_quiz_attempts(quiz_id)
    return _success(
        {"analytics": analytics.quiz_analytics(quiz, attempts)},
        message="Quiz analytics retrieved successfully",
    )


@api_bp.get("/analytics/creator")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
@require_auth
def creator_analytics() -> tuple:
    store = _services()["quiz_store"]
    quizzes = store.list_user_quizzes(g.user_id)
    attempts = store.list_attempts_for_quizzes([quiz["id"] for quiz in quizzes])
    return _success(
        {"analytics": analytics.creator_analytics(quizzes, attempts)},
        message="Creator analytics retrieved successfully",
    )


@api_bp.get("/analytics/participant")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
@require_auth
def participant_analytics() -> tuple:
    attempts = _services()["quiz_store"].list_user_attempts(g.user_id)
    return _success(
        {"analytics": analytics.participant_analytics(attempts)},
        message="Participant analytics retrieved successfully",
    )


@api_bp.get("/analytics/overview")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
@require_auth
def overview_analytics() -> tuple:
    store = _services()["quiz_store"]
    quizzes = store.list_user_quizzes(g.user_id)
    overview = analytics.overview_analytics(
        quizzes,
        store.list_user_attempts(g.user_id),
        store.list_attempts_for_quizzes([quiz["id"] for quiz in quizzes]),
    )
    return _success({"analytics": overview}, message="Overview analytics retrieved successfully")


def _user_id_param(user_id: str) -> str:
    try:
        uuid.UUID(user_id)
    except ValueError:
        raise AppError("Invalid user ID format", 400) from None
    return user_id


@api_bp.get("/users/<user_id>")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
@require_auth
def get_user(user_id: str) -> tuple:
    profile = _services()["profile_store"].get_profile(_user_id_param(user_id))
    if profile is None:
        raise AppError("User not found", 404)
    return _success(profile)


@api_bp.put("/users/<user_id>")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
@require_auth
def update_user(user_id: str) -> tuple:
    if _user_id_param(user_id) != g.user_id:
        raise AppError("Access denied", 403)
    changes = _body(UpdateProfileRequest).model_dump(exclude_none=True)
    if not changes:
        raise AppError("No fields to update", 400)
    return _success(_services()["profile_store"].update_profile(user_id, changes))


@api_bp.get("/onboarding/progress")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
@require_auth
def onboarding_progress() -> tuple:
    return _success(_services()["profile_store"].get_onboarding_progress(g.user_id))


@api_bp.post("/onboarding/update")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
@require_auth
def update_onboarding() -> tuple:
    payload = _body(OnboardingProgressRequest)
    progress = _services()["profile_store"].save_onboarding_progress(
        g.user_id, payload.flow_type, payload.current_step, payload.is_complete
    )
    return _success(progress, message="Onboarding progress updated successfully")


@api_bp.post("/onboarding/complete")
@limiter.limit(_general_limit, exempt_when=rate_limits_disabled)
@require_auth
def complete_onboarding() -> tuple:
    payload = _body(CompleteOnboardingRequest)
    user = _services()["profile_store"].complete_onboarding(g.user_id, payload.name, payload.role)
    logger.info("Completed onboarding user=%s", g.user_id)
    return _success({"user": user}, message="Onboarding completed successfully")
