from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple, Union

import requests

from quizcraft.errors import AppError

logger = logging.getLogger(__name__)

Payload = Union[Dict[str, Any], List[Dict[str, Any]], None]


def _content_range_total(header: Optional[str], fallback: int) -> int:
    # "0-24/3573" or "*/0"
    if header and "/" in header:
        total = header.rsplit("/", 1)[1]
        if total.isdigit():
            return int(total)
    return fallback


class PostgrestClient:
    """Thin wrapper over Supabase's PostgREST endpoint using the service-role key.

    Every failure (network, HTTP status, undecodable body) is logged and raised
    as ``AppError(failure, 500)``.
    """

    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.rest_url = f"{base_url.rstrip('/')}/rest/v1"
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
                "Content-Type": "application/json",
                "Prefer": "return=representation",
            }
        )

    def _send(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, str]],
        payload: Payload,
        headers: Optional[Dict[str, str]],
        failure: str,
    ) -> requests.Response:
        try:
            response = self.session.request(
                method,
                f"{self.rest_url}/{table}",
                params=params,
                json=payload,
                headers=headers,
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            logger.error("Supabase %s %s failed: %s", method, table, exc)
            raise AppError(failure, 500) from exc

        if response.status_code >= 400:
            logger.error(
                "Supabase %s %s returned %d: %s",
                method,
                table,
                response.status_code,
                response.text[:300],
            )
            raise AppError(failure, 500)
        return response

    @staticmethod
    def _rows(response: requests.Response, method: str, table: str, failure: str) -> List[Dict[str, Any]]:
        if not response.content:
            return []
        try:
            data = response.json()
        except ValueError as exc:
            logger.error("Supabase %s %s returned a non-JSON body", method, table)
            raise AppError(failure, 500) from exc
        return data if isinstance(data, list) else [data]

    def request(
        self,
        method: str,
        table: str,
        *,
        params: Optional[Dict[str, str]] = None,
        payload: Payload = None,
        headers: Optional[Dict[str, str]] = None,
        failure: str = "Database request failed",
    ) -> List[Dict[str, Any]]:
        response = self._send(method, table, params, payload, headers, failure)
        return self._rows(response, method, table, failure)

    def select_counted(
        self,
        table: str,
        params: Dict[str, str],
        failure: str = "Database request failed",
    ) -> Tuple[List[Dict[str, Any]], int]:
        """GET one page of rows plus the exact total matching the filters."""
        response = self._send("GET", table, params, None, {"Prefer": "count=exact"}, failure)
        rows = self._rows(response, "GET", table, failure)
        return rows, _content_range_total(response.headers.get("Content-Range"), len(rows))

    def upsert(
        self,
        table: str,
        row: Dict[str, Any],
        on_conflict: str,
        failure: str = "Database request failed",
    ) -> Dict[str, Any]:
        rows = self.request(
            "POST",
            table,
            params={"on_conflict": on_conflict},
            payload=row,
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
            failure=failure,
        )
        if not rows:
            logger.error("Supabase upsert into %s returned no row", table)
            raise AppError(failure, 500)
        return rows[0]
