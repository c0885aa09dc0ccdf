from __future__ import annotations

import logging
from datetime import datetime

from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from domain.base_types import UserId

from .price_cache import KeyValueStore

logger = logging.getLogger(__name__)

THEME_KEY = "@app_theme"
SESSION_KEY = "user"

THEMES: dict[str, str] = {
    "purpleDream": "Purple Dream",
    "oceanBreeze": "Ocean Breeze",
    "sunsetVibes": "Sunset Vibes",
}
DEFAULT_THEME = "purpleDream"


class SessionIdentity(BaseModel):
    """Signed-in user remembered between launches."""

    uid: UserId
    email: str
    display_name: str
    created_at: datetime


class Preferences:
    """Device-local settings stored alongside the price cache."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def theme(self) -> str:
        saved = self.store.get(THEME_KEY)
        if saved in THEMES:
            return saved
        return DEFAULT_THEME

    def set_theme(self, theme: str) -> None:
        if theme not in THEMES:
            msg = f"unknown theme {theme!r}"
            raise ValueError(msg)
        self.store.set(THEME_KEY, theme)

    def session(self) -> SessionIdentity | None:
        raw = self.store.get(SESSION_KEY)
        if not raw:
            return None
        try:
            return SessionIdentity.model_validate_json(raw)
        except ModelValidationError as exc:
            logger.warning("Dropping malformed cached session: %s", exc)
            self.store.delete(SESSION_KEY)
            return None

    def remember_session(self, identity: SessionIdentity) -> None:
        self.store.set(SESSION_KEY, identity.model_dump_json())

    def forget_session(self) -> None:
        self.store.delete(SESSION_KEY)


__all__ = ["DEFAULT_THEME", "Preferences", "SESSION_KEY", "SessionIdentity", "THEMES", "THEME_KEY"]
