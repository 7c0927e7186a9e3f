"""
Session handling for the workspace. Sign-in is gated on the company email
domain; user records live in local storage so the same address keeps the same id.
"""

import json
from typing import List, Optional
from uuid import uuid4

from config import ALLOWED_DOMAINS
from errors import ValidationError
from schemas import Author

SESSION_KEY = "ai-lab-session"
USERS_KEY = "ai-lab-users"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def derive_name_from_email(email: str) -> str:
    username = email.split("@")[0]
    if not username:
        return "Tracknamic Teammate"
    return " ".join(part[:1].upper() + part[1:] for part in username.split(".") if part)


class Session:
    def __init__(self, storage, allowed_domains: Optional[List[str]] = None):
        self.storage = storage
        self.allowed_domains = [d.lower() for d in (allowed_domains or ALLOWED_DOMAINS)]

    def _users(self) -> List[dict]:
        raw = self.storage.get(USERS_KEY)
        return json.loads(raw) if raw else []

    def sign_in(self, email: str, name: Optional[str] = None) -> Author:
        normalized = normalize_email(email)
        if not normalized:
            raise ValidationError("Email is required")
        _, _, domain = normalized.partition("@")
        if not domain or domain not in self.allowed_domains:
            raise ValidationError("Use your Tracknamic email to sign in.")

        users = self._users()
        existing = next((u for u in users if u["email"] == normalized), None)
        if existing is None:
            existing = {
                "id": f"user-{uuid4()}",
                "email": normalized,
                "name": (name or "").strip() or derive_name_from_email(normalized),
            }
            self.storage.set(USERS_KEY, json.dumps([existing, *users]))
        self.storage.set(SESSION_KEY, existing["id"])
        return Author(**existing)

    def sign_out(self) -> None:
        self.storage.remove(SESSION_KEY)

    def current_user(self) -> Optional[Author]:
        user_id = self.storage.get(SESSION_KEY)
        if not user_id:
            return None
        found = next((u for u in self._users() if u["id"] == user_id), None)
        return Author(**found) if found else None
