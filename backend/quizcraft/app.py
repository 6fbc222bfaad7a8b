from __future__ import annotations

import logging
from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS
from flask_limiter.errors import RateLimitExceeded
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from quizcraft.config import Settings
from quizcraft.errors import AppError
from quizcraft.extensions import limiter
from quizcraft.providers.manager import LLMManager
from quizcraft.routes import api_bp
from quizcraft.services.profile_store import ProfileStore, build_profile_store
from quizcraft.services.quiz_generator import QuizGeneratorService
from quizcraft.services.quiz_store import QuizStore, build_quiz_store

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


def _error(message: str, status: int, **extra) -> tuple:
    payload = {"success": False, "error": message}
    payload.update(extra)
    return jsonify(payload), status


def create_app(
    settings: Optional[Settings] = None,
    llm_manager: Optional[LLMManager] = None,
    quiz_store: Optional[QuizStore] = None,
    profile_store: Optional[ProfileStore] = None,
) -> Flask:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_content_length_mb * 1024 * 1024

    limiter.init_app(app)
    CORS(app, resources={r"*": {"origins": settings.cors_origins}})

    llm_manager = llm_manager or LLMManager(settings=settings)
    if not llm_manager.is_configured():
        logger.warning("GEMINI_API_KEY is not set; AI features will fail until it is configured")

    app.extensions["settings"] = settings
    app.extensions["services"] = {
        "llm_manager": llm_manager,
        "quiz_generator": QuizGeneratorService(settings=settings, llm_manager=llm_manager),
        "quiz_store": quiz_store or build_quiz_store(settings),
        "profile_store": profile_store or build_profile_store(settings),
    }

    api_prefix = f"{settings.app_base_path}/api"
    app.register_blueprint(api_bp, url_prefix=api_prefix)

    @app.get("/")
    def root() -> tuple:
        return jsonify({"name": "quizcraft-api", "status": "ok", "api_base": api_prefix}), 200

    @app.errorhandler(AppError)
    def app_error(error: AppError):
        if error.status_code >= 500:
            logger.error("Request failed status=%d: %s", error.status_code, error)
        return jsonify(error.to_payload()), error.status_code

    @app.errorhandler(ValidationError)
    def validation_error(error: ValidationError):
        details = [
            {"field": ".".join(str(part) for part in item["loc"]), "message": item["msg"]}
            for item in error.errors()
        ]
        return _error("Validation failed", 400, details=details)

    @app.errorhandler(413)
    def request_too_large(_error):
        return _error("Request payload too large.", 413)

    @app.errorhandler(RateLimitExceeded)
    def rate_limit_exceeded(error):
        message = str(getattr(error, "description", "")).strip() or "Rate limit exceeded."
        return _error(message, 429)

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        return _error(error.description or error.name, error.code or 500)

    @app.errorhandler(Exception)
    def unexpected_error(error: Exception):
        logger.exception("Unhandled error")
        return _error("Internal Server Error", 500)

    return app
