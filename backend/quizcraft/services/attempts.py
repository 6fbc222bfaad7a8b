from __future__ import annotations

import copy
from typing import Any, Dict, List, Sequence

from quizcraft.errors import AppError
from quizcraft.schemas import SubmittedAnswer


def strip_answers(quiz: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a stored quiz safe to show to someone taking it."""
    stripped = copy.deepcopy(quiz)
    for question in stripped.get("questions", []):
        for option in question.get("options", []):
            option.pop("is_correct", None)
    return stripped


def grade_attempt(quiz: Dict[str, Any], answers: Sequence[SubmittedAnswer]) -> Dict[str, Any]:
    """Score submitted answers against a stored quiz.

    Unanswered questions count as wrong. Answers naming a question that is not
    part of the quiz are rejected.
    """
    questions = {question["id"]: question for question in quiz.get("questions", [])}
    selected: Dict[str, str] = {}
    for answer in answers:
        if answer.question_id not in questions:
            raise AppError(f"Question {answer.question_id} is not part of this quiz", 400)
        selected[answer.question_id] = answer.option_id

    results: List[Dict[str, Any]] = []
    score = 0
    for question_id, question in questions.items():
        correct_option_id = next(
            (option["id"] for option in question.get("options", []) if option.get("is_correct")),
            None,
        )
        selected_option_id = selected.get(question_id)
        is_correct = selected_option_id is not None and selected_option_id == correct_option_id
        if is_correct:
            score += 1
        results.append(
            {
                "question_id": question_id,
                "selected_option_id": selected_option_id,
                "correct_option_id": correct_option_id,
                "is_correct": is_correct,
            }
        )

    total = len(questions)
    percentage = round(score / total * 100) if total else 0
    return {
        "score": score,
        "total_questions": total,
        "percentage": percentage,
        "results": results,
    }


def attempt_summaries(attempts: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "attempt_id": attempt["id"],
            "user_id": attempt["user_id"],
            "score": attempt["score"],
            "percentage": attempt["percentage"],
            "completed_at": attempt["completed_at"],
        }
        for attempt in attempts
    ]
