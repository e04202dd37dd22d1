# budgetbuilder/auth.py
"""Current-user identity for requests.

Sign-in and session handling live with the identity provider.  This module
only answers "who is calling": a bearer token is verified against the
provider's ``/user`` endpoint when ``AUTH_URL`` is configured, otherwise the
``X-User-Id`` header is trusted (development and tests).
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Dict, Optional

import requests
from flask import current_app, g, request

from budgetbuilder.errors import NotAuthenticated


class AuthClient:
    def __init__(self, base_url: str, api_key: str = "", timeout: int = 10) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if api_key:
            self.session.headers.update({"apikey": api_key})

    def get_user(self, token: str) -> Optional[Dict[str, Any]]:
        """Return the user record for ``token`` or ``None`` if it is rejected."""
        url = f"{self.base_url}/user"
        headers = {"Authorization": f"Bearer {token}"}
        tries = 0
        while True:
            try:
                r = self.session.get(url, headers=headers, timeout=self.timeout)
            except requests.RequestException:
                tries += 1
                if tries > 3:
                    raise
                time.sleep(min(2 ** tries, 30) + random.random())
                continue
            if r.status_code == 429 or r.status_code >= 500:
                tries += 1
                if tries > 3:
                    r.raise_for_status()
                time.sleep(min(2 ** tries, 30) + random.random())
                continue
            if r.status_code in (401, 403):
                logging.info("auth rejected token status=%s", r.status_code)
                return None
            r.raise_for_status()
            return r.json()


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def resolve_user_id() -> Optional[str]:
    auth_url = current_app.config.get("AUTH_URL")
    if not auth_url:
        return request.headers.get("X-User-Id") or None

    token = _bearer_token()
    if not token:
        return None
    client = current_app.extensions.get("auth_client")
    if client is None:
        client = AuthClient(auth_url, current_app.config.get("AUTH_API_KEY", ""))
        current_app.extensions["auth_client"] = client
    user = client.get_user(token)
    return str(user["id"]) if user and user.get("id") else None


def current_user_id() -> str:
    user_id = g.get("user_id")
    if not user_id:
        raise NotAuthenticated("User not authenticated")
    return user_id


def require_user() -> None:
    """``before_request`` hook for blueprints that need a caller identity."""
    user_id = resolve_user_id()
    if not user_id:
        raise NotAuthenticated("User not authenticated")
    g.user_id = user_id
