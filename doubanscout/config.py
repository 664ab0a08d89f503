"""
Client configuration via environment variables, plus change notification.

The hosting application owns where configuration is stored; the client only
needs the current snapshot and a callback when it changes.
"""

from __future__ import annotations

import json
import logging
import threading
from functools import lru_cache
from typing import Any, Callable, List, Optional, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_MARKERS = ["sec.douban.com"]


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    # Raw "k=v; k=v" cookie string copied from a logged-in browser. Empty means guest.
    cookies: str = ""

    # Tiered guest / logged-in throttling instead of the flat default policy
    avoid_risk_control: bool = False

    request_timeout_s: int = 20

    # Substrings of the final URL or body that indicate an anti-bot checkpoint.
    # NOTE: Union[...] prevents pydantic-settings from crashing on non-JSON env strings.
    block_markers: Union[str, List[str], None] = list(DEFAULT_BLOCK_MARKERS)

    @field_validator("block_markers", mode="before")
    @classmethod
    def parse_block_markers(cls, v: Any) -> List[str]:
        """Parse block markers from JSON string or comma-separated list."""
        if v is None:
            return list(DEFAULT_BLOCK_MARKERS)
        if isinstance(v, list):
            return [m.strip() for m in v if isinstance(m, str) and m.strip()]
        if isinstance(v, str):
            if not v.strip():
                return list(DEFAULT_BLOCK_MARKERS)
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return [m.strip() for m in parsed if isinstance(m, str) and m.strip()]
            except (json.JSONDecodeError, TypeError):
                pass
            return [m.strip() for m in v.split(",") if m.strip()]
        return list(DEFAULT_BLOCK_MARKERS)

    @property
    def has_cookies(self) -> bool:
        return bool(self.cookies.strip())

    class Config:
        env_prefix = "DOUBANSCOUT_"
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def with_changes(settings: Settings, **changes: Any) -> Settings:
    """
    New settings snapshot with ``changes`` applied.

    Runs full validation (not ``model_copy``), so string values such as
    ``block_markers="a,b"`` or ``avoid_risk_control="false"`` are parsed.
    Environment variables are not consulted again.
    """
    return Settings.model_validate({**settings.model_dump(), **changes})


ConfigListener = Callable[[Settings], None]


class ConfigSource:
    """
    Current configuration snapshot with change subscription.

    Hosts call update() (or replace()) when the user edits configuration;
    every subscriber receives the new snapshot.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings if settings is not None else get_settings()
        self._listeners: List[ConfigListener] = []
        self._lock = threading.Lock()

    @property
    def current(self) -> Settings:
        return self._settings

    def subscribe(self, listener: ConfigListener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def update(self, **changes: Any) -> Settings:
        """Apply field changes and notify subscribers."""
        return self.replace(with_changes(self._settings, **changes))

    def replace(self, settings: Settings) -> Settings:
        """Swap in a new snapshot and notify subscribers."""
        with self._lock:
            self._settings = settings
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(settings)
            except Exception:
                logger.exception("Configuration listener failed")
        return settings
