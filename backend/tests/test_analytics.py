from datetime import datetime, timedelta, timezone

from quizcraft.services import analytics

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _at(**delta):
    return (NOW - timedelta(**delta)).isoformat()


def _attempt(user_id, percentage, quiz_id="quiz-1", answers=(), completed_at=None, quiz=None):
    return {
        "id": f"{user_id}-{quiz_id}-{percentage}",
        "user_id": user_id,
        "quiz_id": quiz_id,
        "score": percentage // 50,
        "percentage": percentage,
        "completed_at": completed_at or _at(hours=1),
        "answers": list(answers),
        "quiz": quiz,
    }


def _quiz():
    return {
        "id": "quiz-1",
        "difficulty": "medium",
        "questions": [
            {
                "id": "q1",
                "question_text": "Capital of Peru?",
                "order_index": 0,
                "options": [
                    {"id": "o1", "option_text": "Lima", "is_correct": True},
                    {"id": "o2", "option_text": "Cusco", "is_correct": False},
                ],
            }
        ],
    }


def _answer(option_id, is_correct):
    return {"question_id": "q1", "selected_option_id": option_id, "is_correct": is_correct}


def test_score_distribution_buckets():
    buckets = analytics.score_distribution([0, 20, 21, 80, 81, 100])

    assert [bucket["count"] for bucket in buckets] == [2, 1, 0, 1, 2]
    assert buckets[0]["percentage"] == 33.3
    assert analytics.score_distribution([])[0] == {"range": "0-20%", "count": 0, "percentage": 0}


def test_recent_activity_windows_skip_unparseable_timestamps():
    attempts = [
        {"completed_at": _at(hours=2)},
        {"completed_at": _at(days=3)},
        {"completed_at": _at(days=20)},
        {"completed_at": _at(days=45)},
        {"completed_at": "yesterday"},
    ]

    activity = analytics.recent_activity(attempts, NOW)

    assert activity == {"last_24_hours": 1, "last_7_days": 2, "last_30_days": 3}


def test_quiz_analytics_question_breakdown():
    attempts = [
        _attempt("ann", 100, answers=[_answer("o1", True)]),
        _attempt("bob", 0, answers=[_answer("o2", False)]),
        _attempt("ann", 100, answers=[_answer("o1", True)], completed_at=_at(days=10)),
    ]

    result = analytics.quiz_analytics(_quiz(), attempts, NOW)

    assert result["overview"] == {
        "total_attempts": 3,
        "unique_users": 2,
        "average_score": 66.7,
        "highest_score": 100,
        "lowest_score": 0,
    }
    question = result["questions"][0]
    assert question["correct_rate"] == 66.7
    assert question["difficulty"] == "medium"
    assert [option["selected_count"] for option in question["option_analysis"]] == [2, 1]
    assert result["engagement"]["top_performers"][0]["user_id"] == "ann"
    assert result["engagement"]["recent_activity"]["last_7_days"] == 2


def test_quiz_analytics_without_attempts():
    result = analytics.quiz_analytics(_quiz(), [], NOW)

    assert result["overview"]["average_score"] == 0
    assert result["overview"]["highest_score"] == 0
    assert result["questions"][0]["total_answers"] == 0
    assert result["questions"][0]["difficulty"] == "hard"


def test_creator_analytics_groups_by_difficulty_and_type():
    quizzes = [
        {"id": "quiz-1", "title": "A", "difficulty": "easy", "is_ai_generated": True, "question_count": 4},
        {"id": "quiz-2", "title": "B", "difficulty": "hard", "is_ai_generated": False, "question_count": 2},
    ]
    attempts = [
        _attempt("ann", 100, quiz_id="quiz-1"),
        _attempt("bob", 50, quiz_id="quiz-1"),
        _attempt("ann", 0, quiz_id="quiz-2"),
    ]

    result = analytics.creator_analytics(quizzes, attempts, NOW)

    assert result["overview"]["total_unique_users"] == 2
    assert result["overview"]["total_questions"] == 6
    assert result["overview"]["average_attempts_per_quiz"] == 1.5
    assert result["breakdown"]["by_difficulty"]["easy"] == {"count": 1, "attempts": 2, "avg_score": 75}
    assert result["breakdown"]["by_difficulty"]["medium"]["count"] == 0
    assert result["breakdown"]["by_type"]["human_created"]["avg_score"] == 0
    assert [entry["quiz_id"] for entry in result["top_quizzes"]["most_popular"]] == ["quiz-1", "quiz-2"]


def test_participant_analytics_uses_quiz_details():
    attempts = [
        _attempt("ann", 100, quiz_id="quiz-1", quiz={"title": "Rivers", "difficulty": "easy"}),
        _attempt("ann", 50, quiz_id="quiz-2", quiz={"title": "Peaks", "difficulty": "hard"}),
        _attempt("ann", 0, quiz_id="quiz-3", quiz=None),
    ]

    result = analytics.participant_analytics(attempts)

    assert result["overview"]["unique_quizzes"] == 3
    assert result["overview"]["average_score"] == 50
    assert result["achievements"]["perfect_scores"] == 1
    assert result["performance"]["strengths_by_difficulty"]["hard"] == {"attempts": 1, "avg_score": 50}
    assert result["recent_attempts"][2]["quiz_title"] is None


def test_overview_counts_distinct_participants():
    result = analytics.overview_analytics(
        [{"id": "quiz-1"}, {"id": "quiz-2"}],
        [_attempt("me", 80), _attempt("me", 60, quiz_id="quiz-9")],
        [_attempt("ann", 10), _attempt("ann", 20, quiz_id="quiz-2"), _attempt("bob", 0)],
    )

    assert result == {
        "quizzes_created": 2,
        "quizzes_attempted": 2,
        "average_score": 70,
        "total_participants": 2,
    }
