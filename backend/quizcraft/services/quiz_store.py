from __future__ import annotations

import copy
import logging
import re
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Collection, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import requests

from quizcraft.config import Settings
from quizcraft.errors import AppError
from quizcraft.schemas import GeneratedQuiz, PublicQuizQuery, PublishManualQuizRequest
from quizcraft.services.postgrest import PostgrestClient

logger = logging.getLogger(__name__)

NOT_FOUND_OR_DENIED = "Quiz not found or access denied"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _quiz_fields(
    *,
    title: str,
    description: Optional[str],
    difficulty: str,
    original_prompt: Optional[str],
    is_public: bool,
    is_ai_generated: bool,
    is_manual: bool,
) -> Dict[str, Any]:
    return {
        "title": title,
        "description": description or "",
        "difficulty": difficulty,
        "original_prompt": original_prompt,
        "is_public": is_public,
        "is_ai_generated": is_ai_generated,
        "is_manual": is_manual,
    }


def _generated_fields(
    original_prompt: str, quiz: GeneratedQuiz, is_public: bool, is_manual: bool
) -> Dict[str, Any]:
    return _quiz_fields(
        title=quiz.title,
        description=quiz.description,
        difficulty=quiz.difficulty,
        original_prompt=original_prompt,
        is_public=is_public,
        is_ai_generated=True,
        is_manual=is_manual,
    )


def _manual_fields(payload: PublishManualQuizRequest) -> Dict[str, Any]:
    return _quiz_fields(
        title=payload.title,
        description=payload.description,
        difficulty=payload.difficulty,
        original_prompt=payload.original_prompt,
        is_public=payload.is_public,
        is_ai_generated=False,
        is_manual=True,
    )


def _question_row(quiz_id: str, question: Any) -> Dict[str, Any]:
    return {
        "quiz_id": quiz_id,
        "question_text": question.question_text,
        "question_type": question.question_type,
        "order_index": question.order_index,
    }


def _option_rows(question_id: str, question: Any) -> List[Dict[str, Any]]:
    return [
        {
            "question_id": question_id,
            "option_text": option.option_text,
            "is_correct": option.is_correct,
            "order_index": option.order_index,
        }
        for option in question.options
    ]


def _answer_rows(attempt_id: str, answers: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "attempt_id": attempt_id,
            "question_id": answer["question_id"],
            "selected_option_id": answer["selected_option_id"],
            "is_correct": answer["is_correct"],
        }
        for answer in answers
    ]


def _matches_filters(record: Dict[str, Any], query: PublicQuizQuery) -> bool:
    if query.difficulty and record["difficulty"] != query.difficulty:
        return False
    if query.type and record["is_ai_generated"] != (query.type == "ai"):
        return False
    if query.search:
        needle = query.search.lower()
        return needle in record["title"].lower() or needle in (record["description"] or "").lower()
    return True


_PUBLIC_SORT_KEYS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "created_at": lambda summary: summary["created_at"],
    "title": lambda summary: summary["title"],
    "difficulty": lambda summary: summary["difficulty"],
    "popularity": lambda summary: summary["attempt_count"],
}


class InMemoryQuizStore:
    """Process-local quiz storage. Stored records are never handed out directly."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._quizzes: Dict[str, Dict[str, Any]] = {}
        self._attempts: List[Dict[str, Any]] = []

    @staticmethod
    def _build_question(quiz_id: str, question: Any) -> Dict[str, Any]:
        question_id = str(uuid.uuid4())
        record = {"id": question_id, **_question_row(quiz_id, question), "created_at": _now()}
        record["options"] = [
            {"id": str(uuid.uuid4()), **row} for row in _option_rows(question_id, question)
        ]
        return record

    def _insert(self, user_id: str, fields: Dict[str, Any], questions: Iterable[Any]) -> Dict[str, Any]:
        quiz_id = str(uuid.uuid4())
        now = _now()
        record = {
            "id": quiz_id,
            "user_id": user_id,
            **fields,
            "created_at": now,
            "updated_at": now,
            "questions": [self._build_question(quiz_id, question) for question in questions],
        }
        with self._lock:
            self._quizzes[quiz_id] = record
            return copy.deepcopy(record)

    def _owned(self, quiz_id: str, user_id: str) -> Dict[str, Any]:
        record = self._quizzes.get(quiz_id)
        if record is None or record["user_id"] != user_id:
            raise AppError(NOT_FOUND_OR_DENIED, 404)
        return record

    def _summary(self, record: Dict[str, Any]) -> Dict[str, Any]:
        summary = {key: copy.deepcopy(value) for key, value in record.items() if key != "questions"}
        summary["question_count"] = len(record["questions"])
        summary["attempt_count"] = sum(
            1 for attempt in self._attempts if attempt["quiz_id"] == record["id"]
        )
        return summary

    def _attempts_where(self, predicate: Callable[[Dict[str, Any]], bool]) -> List[Dict[str, Any]]:
        with self._lock:
            attempts = [copy.deepcopy(a) for a in self._attempts if predicate(a)]
        attempts.sort(key=lambda attempt: attempt["completed_at"], reverse=True)
        return attempts

    def save_generated_quiz(
        self,
        user_id: str,
        original_prompt: str,
        quiz: GeneratedQuiz,
        is_public: bool = True,
        is_manual: bool = False,
    ) -> Dict[str, Any]:
        return self._insert(
            user_id, _generated_fields(original_prompt, quiz, is_public, is_manual), quiz.questions
        )

    def create_quiz(self, user_id: str, payload: PublishManualQuizRequest) -> Dict[str, Any]:
        return self._insert(user_id, _manual_fields(payload), payload.questions)

    def get_quiz(self, quiz_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._quizzes.get(quiz_id)
            return copy.deepcopy(record) if record else None

    def list_user_quizzes(self, user_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            records = [r for r in self._quizzes.values() if r["user_id"] == user_id]
            records.sort(key=lambda r: r["created_at"], reverse=True)
            return [self._summary(record) for record in records]

    def list_public_quizzes(
        self, query: Optional[PublicQuizQuery] = None
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Return one page of public quiz summaries and the total number of matches."""
        query = query or PublicQuizQuery()
        with self._lock:
            summaries = [
                self._summary(record)
                for record in self._quizzes.values()
                if record["is_public"] and _matches_filters(record, query)
            ]
        summaries.sort(key=_PUBLIC_SORT_KEYS[query.sort_by], reverse=query.sort_order == "desc")
        return summaries[query.offset : query.offset + query.limit], len(summaries)

    def update_quiz(self, quiz_id: str, user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            record = self._owned(quiz_id, user_id)
            record.update(changes)
            record["updated_at"] = _now()
            return copy.deepcopy(record)

    def delete_quiz(self, quiz_id: str, user_id: str) -> None:
        with self._lock:
            self._owned(quiz_id, user_id)
            del self._quizzes[quiz_id]
            self._attempts = [a for a in self._attempts if a["quiz_id"] != quiz_id]

    def add_question(self, quiz_id: str, user_id: str, question: Any) -> Dict[str, Any]:
        with self._lock:
            record = self._owned(quiz_id, user_id)
            built = self._build_question(quiz_id, question)
            record["questions"].append(built)
            record["questions"].sort(key=lambda q: q["order_index"])
            record["updated_at"] = _now()
            return copy.deepcopy(built)

    def record_attempt(
        self,
        user_id: str,
        quiz_id: str,
        score: int,
        total_questions: int,
        percentage: int,
        answers: Sequence[Dict[str, Any]],
    ) -> Dict[str, Any]:
        attempt_id = str(uuid.uuid4())
        attempt = {
            "id": attempt_id,
            "user_id": user_id,
            "quiz_id": quiz_id,
            "score": score,
            "total_questions": total_questions,
            "percentage": percentage,
            "completed_at": _now(),
            "answers": _answer_rows(attempt_id, answers),
        }
        with self._lock:
            self._attempts.append(attempt)
            return copy.deepcopy(attempt)

    def list_quiz_attempts(self, quiz_id: str) -> List[Dict[str, Any]]:
        return self._attempts_where(lambda attempt: attempt["quiz_id"] == quiz_id)

    def list_attempts_for_quizzes(self, quiz_ids: Collection[str]) -> List[Dict[str, Any]]:
        wanted = set(quiz_ids)
        return self._attempts_where(lambda attempt: attempt["quiz_id"] in wanted)

    def list_user_attempts(self, user_id: str) -> List[Dict[str, Any]]:
        """Attempts made by ``user_id``, newest first, each with its quiz's title and difficulty."""
        attempts = self._attempts_where(lambda attempt: attempt["user_id"] == user_id)
        with self._lock:
            for attempt in attempts:
                quiz = self._quizzes.get(attempt["quiz_id"])
                attempt["quiz"] = (
                    {key: quiz[key] for key in ("title", "difficulty", "user_id")} if quiz else None
                )
        return attempts


def _embedded_count(value: Any) -> int:
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return int(value[0].get("count", 0))
    return 0


# PostgREST uses these as syntax inside or=(...) filters.
_FILTER_SYNTAX = re.compile(r"[,()*\\]")

_SUMMARY_SELECT = "*,questions(count),quiz_attempts(count)"
_ATTEMPT_SELECT = "*,quiz_attempt_answers(*)"


def _attempt_row(row: Dict[str, Any]) -> Dict[str, Any]:
    row["answers"] = row.pop("quiz_attempt_answers", None) or []
    return row


class SupabaseQuizStore:
    """Quiz storage on Supabase through its PostgREST endpoint.

    Inserts cascade quiz → questions → options without a transaction; a failure
    part-way leaves the earlier rows in place.
    """

    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.client = PostgrestClient(base_url, service_key, timeout_seconds, session)

    def _insert_question(self, quiz_id: str, question: Any) -> Dict[str, Any]:
        rows = self.client.request(
            "POST",
            "questions",
            payload=_question_row(quiz_id, question),
            failure="Failed to save quiz questions",
        )
        row = rows[0]
        options = self.client.request(
            "POST",
            "question_options",
            payload=_option_rows(row["id"], question),
            failure="Failed to save question options",
        )
        row["options"] = sorted(options, key=lambda option: option["order_index"])
        return row

    def _insert(self, user_id: str, fields: Dict[str, Any], questions: Iterable[Any]) -> Dict[str, Any]:
        rows = self.client.request(
            "POST", "quizzes", payload={"user_id": user_id, **fields}, failure="Failed to save quiz"
        )
        quiz = rows[0]
        quiz["questions"] = [self._insert_question(quiz["id"], question) for question in questions]
        return quiz

    def _owned(self, quiz_id: str, user_id: str) -> None:
        rows = self.client.request(
            "GET",
            "quizzes",
            params={"id": f"eq.{quiz_id}", "user_id": f"eq.{user_id}", "select": "id"},
        )
        if not rows:
            raise AppError(NOT_FOUND_OR_DENIED, 404)

    @staticmethod
    def _summary(row: Dict[str, Any]) -> Dict[str, Any]:
        row["question_count"] = _embedded_count(row.pop("questions", None))
        row["attempt_count"] = _embedded_count(row.pop("quiz_attempts", None))
        return row

    def save_generated_quiz(
        self,
        user_id: str,
        original_prompt: str,
        quiz: GeneratedQuiz,
        is_public: bool = True,
        is_manual: bool = False,
    ) -> Dict[str, Any]:
        return self._insert(
            user_id, _generated_fields(original_prompt, quiz, is_public, is_manual), quiz.questions
        )

    def create_quiz(self, user_id: str, payload: PublishManualQuizRequest) -> Dict[str, Any]:
        return self._insert(user_id, _manual_fields(payload), payload.questions)

    def get_quiz(self, quiz_id: str) -> Optional[Dict[str, Any]]:
        rows = self.client.request(
            "GET",
            "quizzes",
            params={"id": f"eq.{quiz_id}", "select": "*,questions(*,question_options(*))"},
            failure="Failed to fetch quiz",
        )
        if not rows:
            return None
        quiz = rows[0]
        questions = quiz.get("questions") or []
        for question in questions:
            options = question.pop("question_options", None) or []
            question["options"] = sorted(options, key=lambda option: option["order_index"])
        quiz["questions"] = sorted(questions, key=lambda question: question["order_index"])
        return quiz

    def list_user_quizzes(self, user_id: str) -> List[Dict[str, Any]]:
        rows = self.client.request(
            "GET",
            "quizzes",
            params={
                "user_id": f"eq.{user_id}",
                "select": _SUMMARY_SELECT,
                "order": "created_at.desc",
            },
            failure="Failed to fetch quizzes",
        )
        return [self._summary(row) for row in rows]

    def list_public_quizzes(
        self, query: Optional[PublicQuizQuery] = None
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Return one page of public quiz summaries and the total number of matches.

        Popularity has no column to order by, so that sort applies within the
        fetched page (newest first).
        """
        query = query or PublicQuizQuery()
        params = {
            "is_public": "eq.true",
            "select": _SUMMARY_SELECT,
            "limit": str(query.limit),
            "offset": str(query.offset),
        }
        if query.difficulty:
            params["difficulty"] = f"eq.{query.difficulty}"
        if query.type:
            params["is_ai_generated"] = "eq.true" if query.type == "ai" else "eq.false"
        term = _FILTER_SYNTAX.sub("", query.search or "").strip()
        if term:
            params["or"] = f"(title.ilike.*{term}*,description.ilike.*{term}*)"
        if query.sort_by == "popularity":
            params["order"] = "created_at.desc"
        else:
            params["order"] = f"{query.sort_by}.{query.sort_order}"

        rows, total = self.client.select_counted(
            "quizzes", params, failure="Failed to fetch public quizzes"
        )
        summaries = [self._summary(row) for row in rows]
        if query.sort_by == "popularity":
            summaries.sort(
                key=_PUBLIC_SORT_KEYS["popularity"], reverse=query.sort_order == "desc"
            )
        return summaries, total

    def update_quiz(self, quiz_id: str, user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        rows = self.client.request(
            "PATCH",
            "quizzes",
            params={"id": f"eq.{quiz_id}", "user_id": f"eq.{user_id}"},
            payload={**changes, "updated_at": _now()},
            failure="Failed to update quiz",
        )
        if not rows:
            raise AppError(NOT_FOUND_OR_DENIED, 404)
        return rows[0]

    def delete_quiz(self, quiz_id: str, user_id: str) -> None:
        rows = self.client.request(
            "DELETE",
            "quizzes",
            params={"id": f"eq.{quiz_id}", "user_id": f"eq.{user_id}"},
            failure="Failed to delete quiz",
        )
        if not rows:
            raise AppError(NOT_FOUND_OR_DENIED, 404)

    def add_question(self, quiz_id: str, user_id: str, question: Any) -> Dict[str, Any]:
        self._owned(quiz_id, user_id)
        return self._insert_question(quiz_id, question)

    def record_attempt(
        self,
        user_id: str,
        quiz_id: str,
        score: int,
        total_questions: int,
        percentage: int,
        answers: Sequence[Dict[str, Any]],
    ) -> Dict[str, Any]:
        rows = self.client.request(
            "POST",
            "quiz_attempts",
            payload={
                "user_id": user_id,
                "quiz_id": quiz_id,
                "score": score,
                "total_questions": total_questions,
                "percentage": percentage,
            },
            failure="Failed to save quiz attempt",
        )
        attempt = rows[0]
        attempt["answers"] = []
        if answers:
            attempt["answers"] = self.client.request(
                "POST",
                "quiz_attempt_answers",
                payload=_answer_rows(attempt["id"], answers),
                failure="Failed to save quiz attempt answers",
            )
        return attempt

    def _select_attempts(self, params: Dict[str, str]) -> List[Dict[str, Any]]:
        rows = self.client.request(
            "GET",
            "quiz_attempts",
            params={"select": _ATTEMPT_SELECT, "order": "completed_at.desc", **params},
            failure="Failed to fetch quiz attempts",
        )
        return [_attempt_row(row) for row in rows]

    def list_quiz_attempts(self, quiz_id: str) -> List[Dict[str, Any]]:
        return self._select_attempts({"quiz_id": f"eq.{quiz_id}"})

    def list_attempts_for_quizzes(self, quiz_ids: Collection[str]) -> List[Dict[str, Any]]:
        if not quiz_ids:
            return []
        return self._select_attempts({"quiz_id": f"in.({','.join(quiz_ids)})"})

    def list_user_attempts(self, user_id: str) -> List[Dict[str, Any]]:
        attempts = self._select_attempts(
            {
                "user_id": f"eq.{user_id}",
                "select": f"{_ATTEMPT_SELECT},quizzes(title,difficulty,user_id)",
            }
        )
        for attempt in attempts:
            attempt["quiz"] = attempt.pop("quizzes", None)
        return attempts


QuizStore = Union[InMemoryQuizStore, SupabaseQuizStore]


def build_quiz_store(settings: Settings) -> QuizStore:
    if settings.supabase_configured:
        logger.info("Using Supabase quiz store at %s", settings.supabase_url)
        return SupabaseQuizStore(settings.supabase_url, settings.supabase_service_role_key)
    logger.info("Supabase not configured; using in-memory quiz store")
    return InMemoryQuizStore()
