"""User profiles and onboarding progress.

Profiles belong to the hosted auth provider's users; both stores create the
profile row on first write so a fresh account can be onboarded straight away.
"""

from __future__ import annotations

import copy
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

import requests

from quizcraft.config import Settings
from quizcraft.services.postgrest import PostgrestClient

logger = logging.getLogger(__name__)

DEFAULT_FLOW = "default"
COMPLETED_STEP = 2


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _progress_fields(flow_type: str, current_step: int, is_complete: bool) -> Dict[str, Any]:
    return {
        "flow_type": flow_type,
        "current_step": current_step,
        "is_complete": is_complete,
        "completed_at": _now() if is_complete else None,
    }


class InMemoryProfileStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._profiles: Dict[str, Dict[str, Any]] = {}
        self._progress: Dict[str, Dict[str, Any]] = {}

    def _upsert_profile(self, user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        profile = self._profiles.setdefault(
            user_id,
            {"id": user_id, "name": None, "role": None, "avatar_url": None, "bio": None, "created_at": _now()},
        )
        profile.update(changes)
        return copy.deepcopy(profile)

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            profile = self._profiles.get(user_id)
            return copy.deepcopy(profile) if profile else None

    def update_profile(self, user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            return self._upsert_profile(user_id, changes)

    def get_onboarding_progress(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            progress = self._progress.get(user_id)
            return copy.deepcopy(progress) if progress else None

    def save_onboarding_progress(
        self, user_id: str, flow_type: str, current_step: int, is_complete: bool = False
    ) -> Dict[str, Any]:
        with self._lock:
            progress = self._progress.setdefault(user_id, {"user_id": user_id, "started_at": _now()})
            progress.update(_progress_fields(flow_type, current_step, is_complete))
            return copy.deepcopy(progress)

    def complete_onboarding(self, user_id: str, name: str, role: str) -> Dict[str, Any]:
        profile = self.update_profile(user_id, {"name": name, "role": role})
        self.save_onboarding_progress(user_id, DEFAULT_FLOW, COMPLETED_STEP, is_complete=True)
        return {**profile, "is_onboarding_complete": True}


class SupabaseProfileStore:
    """Profiles in ``profiles`` and progress in ``onboarding_progress``, written as upserts."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.client = PostgrestClient(base_url, service_key, timeout_seconds, session)

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        rows = self.client.request(
            "GET",
            "profiles",
            params={"id": f"eq.{user_id}", "select": "*"},
            failure="Failed to fetch user",
        )
        return rows[0] if rows else None

    def update_profile(self, user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.upsert(
            "profiles", {"id": user_id, **changes}, "id", failure="Failed to update user profile"
        )

    def get_onboarding_progress(self, user_id: str) -> Optional[Dict[str, Any]]:
        rows = self.client.request(
            "GET",
            "onboarding_progress",
            params={"user_id": f"eq.{user_id}", "select": "*"},
            failure="Failed to fetch onboarding progress",
        )
        return rows[0] if rows else None

    def save_onboarding_progress(
        self, user_id: str, flow_type: str, current_step: int, is_complete: bool = False
    ) -> Dict[str, Any]:
        return self.client.upsert(
            "onboarding_progress",
            {"user_id": user_id, **_progress_fields(flow_type, current_step, is_complete)},
            "user_id",
            failure="Failed to update onboarding progress",
        )

    def complete_onboarding(self, user_id: str, name: str, role: str) -> Dict[str, Any]:
        profile = self.update_profile(user_id, {"name": name, "role": role})
        self.save_onboarding_progress(user_id, DEFAULT_FLOW, COMPLETED_STEP, is_complete=True)
        return {**profile, "is_onboarding_complete": True}


ProfileStore = Union[InMemoryProfileStore, SupabaseProfileStore]


def build_profile_store(settings: Settings) -> ProfileStore:
    if settings.supabase_configured:
        return SupabaseProfileStore(settings.supabase_url, settings.supabase_service_role_key)
    logger.info("Supabase not configured; using in-memory profile store")
    return InMemoryProfileStore()
