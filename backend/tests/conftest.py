import json
import time
from dataclasses import replace

import pytest
from jose import jwt

from quizcraft.app import create_app
from quizcraft.config import Settings
from quizcraft.providers.base import LLMCallOutput, LLMError
from quizcraft.providers.manager import LLMManager
from quizcraft.services.profile_store import InMemoryProfileStore
from quizcraft.services.quiz_store import InMemoryQuizStore

JWT_SECRET = "test-jwt-secret"


class FakeProvider:
    name = "fake"

    def __init__(self, configured=True):
        self.configured = configured
        self.replies = []
        self.calls = []

    def queue(self, *replies):
        self.replies.extend(replies)

    def is_configured(self):
        return self.configured

    def generate_text(self, request):
        self.calls.append(request)
        if not self.replies:
            raise LLMError("no reply queued", category="empty_response")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if not isinstance(reply, str):
            reply = json.dumps(reply)
        return LLMCallOutput(text=reply)


def build_quiz_reply(question_count=2, options_count=4, title="World Capitals", correct_index=0):
    return {
        "title": title,
        "description": "Test your knowledge of capital cities.",
        "difficulty": "medium",
        "questions": [
            {
                "question_text": f"Which city is capital number {q}?",
                "question_type": "multiple_choice",
                "order_index": q,
                "options": [
                    {
                        "option_text": f"City {q}-{o}",
                        "is_correct": o == correct_index,
                        "order_index": o,
                    }
                    for o in range(options_count)
                ],
            }
            for q in range(question_count)
        ],
    }


@pytest.fixture
def settings():
    return replace(
        Settings.from_env(),
        app_env="test",
        app_base_path="",
        gemini_api_key="test-key",
        supabase_url="",
        supabase_service_role_key="",
        supabase_jwt_secret=JWT_SECRET,
        skip_rate_limits=False,
        bypass_content_checks=False,
        title_max_words=8,
    )


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def llm_manager(settings, provider):
    return LLMManager(settings, provider=provider)


@pytest.fixture
def store():
    return InMemoryQuizStore()


@pytest.fixture
def profiles():
    return InMemoryProfileStore()


@pytest.fixture
def app(settings, llm_manager, store, profiles):
    return create_app(
        settings=settings, llm_manager=llm_manager, quiz_store=store, profile_store=profiles
    )


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_token():
    def _make(sub="user-1", secret=JWT_SECRET, audience="authenticated", expires_in=3600):
        claims = {"sub": sub, "aud": audience, "exp": int(time.time()) + expires_in}
        return jwt.encode(claims, secret, algorithm="HS256")

    return _make


@pytest.fixture
def auth_headers(make_token):
    def _headers(sub="user-1"):
        return {"Authorization": f"Bearer {make_token(sub)}"}

    return _headers


@pytest.fixture
def quiz_reply():
    return build_quiz_reply
