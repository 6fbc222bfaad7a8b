"""Aggregate statistics over quizzes and their recorded attempts.

Every function is pure: it takes rows as returned by a quiz store and an
optional ``now`` so results are reproducible in tests. Percentages and
averages are rounded to one decimal place.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

DIFFICULTIES = ("easy", "medium", "hard")
SCORE_RANGES = (
    ("0-20%", 20),
    ("21-40%", 40),
    ("41-60%", 60),
    ("61-80%", 80),
    ("81-100%", 100),
)
TOP_PERFORMERS = 10
TOP_QUIZZES = 5
RECENT_ATTEMPTS = 10


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0


def _average(values: Sequence[float]) -> float:
    return round(sum(values) / len(values), 1) if values else 0


def score_distribution(percentages: Sequence[float]) -> List[Dict[str, Any]]:
    counts = [0] * len(SCORE_RANGES)
    for value in percentages:
        for index, (_label, upper) in enumerate(SCORE_RANGES):
            if value <= upper or index == len(SCORE_RANGES) - 1:
                counts[index] += 1
                break
    return [
        {"range": label, "count": count, "percentage": _rate(count, len(percentages))}
        for (label, _upper), count in zip(SCORE_RANGES, counts)
    ]


def recent_activity(attempts: Iterable[Dict[str, Any]], now: Optional[datetime] = None) -> Dict[str, int]:
    now = now or datetime.now(timezone.utc)
    windows = {"last_24_hours": 1, "last_7_days": 7, "last_30_days": 30}
    activity = dict.fromkeys(windows, 0)
    for attempt in attempts:
        completed = _parse_timestamp(attempt.get("completed_at"))
        if completed is None:
            continue
        for key, days in windows.items():
            if completed > now - timedelta(days=days):
                activity[key] += 1
    return activity


def _question_difficulty(correct_rate: float) -> str:
    if correct_rate >= 80:
        return "easy"
    if correct_rate <= 40:
        return "hard"
    return "medium"


def _question_analysis(question: Dict[str, Any], answers: List[Dict[str, Any]]) -> Dict[str, Any]:
    answered = [answer for answer in answers if answer["question_id"] == question["id"]]
    correct_rate = _rate(sum(1 for answer in answered if answer["is_correct"]), len(answered))
    options = []
    for option in question.get("options", []):
        selected = sum(1 for answer in answered if answer["selected_option_id"] == option["id"])
        options.append(
            {
                "option_id": option["id"],
                "option_text": option["option_text"],
                "is_correct": option["is_correct"],
                "selected_count": selected,
                "percentage": _rate(selected, len(answered)),
            }
        )
    return {
        "question_id": question["id"],
        "question_text": question["question_text"],
        "order_index": question["order_index"],
        "correct_rate": correct_rate,
        "total_answers": len(answered),
        "difficulty": _question_difficulty(correct_rate),
        "option_analysis": options,
    }


def quiz_analytics(
    quiz: Dict[str, Any], attempts: Sequence[Dict[str, Any]], now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Owner-facing statistics for one quiz, including per-question answer spread."""
    scores = [attempt["percentage"] for attempt in attempts]
    answers = [answer for attempt in attempts for answer in attempt.get("answers", [])]
    questions = [_question_analysis(question, answers) for question in quiz.get("questions", [])]
    top = sorted(attempts, key=lambda attempt: attempt["percentage"], reverse=True)[:TOP_PERFORMERS]
    return {
        "overview": {
            "total_attempts": len(attempts),
            "unique_users": len({attempt["user_id"] for attempt in attempts}),
            "average_score": _average(scores),
            "highest_score": max(scores, default=0),
            "lowest_score": min(scores, default=0),
        },
        "performance": {
            "score_distribution": score_distribution(scores),
            "perceived_difficulty": quiz["difficulty"],
            "average_correct_rate": _average([question["correct_rate"] for question in questions]),
        },
        "engagement": {
            "top_performers": [
                {
                    "user_id": attempt["user_id"],
                    "score": attempt["score"],
                    "percentage": attempt["percentage"],
                    "completed_at": attempt["completed_at"],
                }
                for attempt in top
            ],
            "recent_activity": recent_activity(attempts, now),
        },
        "questions": questions,
    }


def _group_stats(quizzes: Sequence[Dict[str, Any]], attempts_by_quiz: Dict[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
    group_attempts = [attempt for quiz in quizzes for attempt in attempts_by_quiz.get(quiz["id"], [])]
    return {
        "count": len(quizzes),
        "attempts": len(group_attempts),
        "avg_score": _average([attempt["percentage"] for attempt in group_attempts]),
    }


def creator_analytics(
    quizzes: Sequence[Dict[str, Any]], attempts: Sequence[Dict[str, Any]], now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Statistics across every quiz a user created.

    ``quizzes`` are store summaries (with ``question_count``); ``attempts`` are
    all attempts on those quizzes, by anyone.
    """
    attempts_by_quiz: Dict[str, List[Dict[str, Any]]] = {}
    for attempt in attempts:
        attempts_by_quiz.setdefault(attempt["quiz_id"], []).append(attempt)

    total_questions = sum(quiz.get("question_count", 0) for quiz in quizzes)
    per_quiz = []
    for quiz in quizzes:
        quiz_attempts = attempts_by_quiz.get(quiz["id"], [])
        per_quiz.append(
            {
                "quiz_id": quiz["id"],
                "title": quiz["title"],
                "difficulty": quiz["difficulty"],
                "attempts": len(quiz_attempts),
                "unique_users": len({attempt["user_id"] for attempt in quiz_attempts}),
                "avg_score": _average([attempt["percentage"] for attempt in quiz_attempts]),
            }
        )

    attempted = [entry for entry in per_quiz if entry["attempts"]]
    return {
        "overview": {
            "total_quizzes": len(quizzes),
            "total_attempts": len(attempts),
            "total_unique_users": len({attempt["user_id"] for attempt in attempts}),
            "average_score": _average([attempt["percentage"] for attempt in attempts]),
            "total_questions": total_questions,
            "average_questions_per_quiz": _average([quiz.get("question_count", 0) for quiz in quizzes]),
            "average_attempts_per_quiz": _average([entry["attempts"] for entry in per_quiz]),
        },
        "breakdown": {
            "by_difficulty": {
                level: _group_stats([q for q in quizzes if q["difficulty"] == level], attempts_by_quiz)
                for level in DIFFICULTIES
            },
            "by_type": {
                "ai_generated": _group_stats([q for q in quizzes if q.get("is_ai_generated")], attempts_by_quiz),
                "human_created": _group_stats(
                    [q for q in quizzes if not q.get("is_ai_generated")], attempts_by_quiz
                ),
            },
        },
        "performance": {
            "score_distribution": score_distribution([attempt["percentage"] for attempt in attempts]),
        },
        "engagement": {"recent_activity": recent_activity(attempts, now)},
        "top_quizzes": {
            "most_popular": sorted(attempted, key=lambda entry: entry["attempts"], reverse=True)[:TOP_QUIZZES],
            "highest_rated": sorted(attempted, key=lambda entry: entry["avg_score"], reverse=True)[:TOP_QUIZZES],
        },
    }


def participant_analytics(attempts: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Statistics over the attempts one user made, newest first.

    Each attempt carries its quiz's ``title`` and ``difficulty`` under ``quiz``;
    attempts on deleted quizzes have ``quiz`` set to ``None``.
    """
    scores = [attempt["percentage"] for attempt in attempts]
    by_difficulty = {}
    for level in DIFFICULTIES:
        level_scores = [
            attempt["percentage"]
            for attempt in attempts
            if (attempt.get("quiz") or {}).get("difficulty") == level
        ]
        by_difficulty[level] = {"attempts": len(level_scores), "avg_score": _average(level_scores)}

    recent = []
    for attempt in attempts[:RECENT_ATTEMPTS]:
        quiz = attempt.get("quiz") or {}
        recent.append(
            {
                "quiz_id": attempt["quiz_id"],
                "quiz_title": quiz.get("title"),
                "difficulty": quiz.get("difficulty"),
                "score": attempt["score"],
                "percentage": attempt["percentage"],
                "completed_at": attempt["completed_at"],
            }
        )

    return {
        "overview": {
            "total_attempts": len(attempts),
            "unique_quizzes": len({attempt["quiz_id"] for attempt in attempts}),
            "average_score": _average(scores),
            "highest_score": max(scores, default=0),
            "lowest_score": min(scores, default=0),
        },
        "performance": {
            "score_distribution": score_distribution(scores),
            "strengths_by_difficulty": by_difficulty,
        },
        "achievements": {"perfect_scores": sum(1 for score in scores if score == 100)},
        "recent_attempts": recent,
    }


def overview_analytics(
    created_quizzes: Sequence[Dict[str, Any]],
    own_attempts: Sequence[Dict[str, Any]],
    attempts_on_created: Sequence[Dict[str, Any]],
) -> Dict[str, Any]:
    """Dashboard counters for one user."""
    return {
        "quizzes_created": len(created_quizzes),
        "quizzes_attempted": len(own_attempts),
        "average_score": _average([attempt["percentage"] for attempt in own_attempts]),
        "total_participants": len({attempt["user_id"] for attempt in attempts_on_created}),
    }
