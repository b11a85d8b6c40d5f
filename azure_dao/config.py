"""Runtime settings for the narrative and image generators.

Values come from the process environment, after loading the repo-level .env.
An empty api_key puts the game in offline mode: every narrative call returns a
fixed offline outcome and no image is generated.
"""

import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

ROOT = Path(__file__).parent.parent

_TRUE = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    api_key: str = ""
    narrative_model: str = "gemini-2.5-flash"
    image_model: str = "gemini-2.5-flash-image"
    base_url: str = "https://generativelanguage.googleapis.com"
    request_timeout: float = 60.0
    images_enabled: bool = True
    player_name: str = "Wandering Cultivator"

    @property
    def offline(self) -> bool:
        return not self.api_key

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables (loads .env first)."""
        if environ is None:
            load_dotenv(ROOT / ".env")
            environ = os.environ
        defaults = cls()
        return cls(
            api_key=environ.get("API_KEY") or environ.get("GEMINI_API_KEY", ""),
            narrative_model=environ.get("NARRATIVE_MODEL", defaults.narrative_model),
            image_model=environ.get("IMAGE_MODEL", defaults.image_model),
            base_url=environ.get("GEMINI_BASE_URL", defaults.base_url),
            request_timeout=float(environ.get("REQUEST_TIMEOUT", defaults.request_timeout)),
            images_enabled=environ.get("ENABLE_IMAGES", "true").lower() in _TRUE,
            player_name=environ.get("PLAYER_NAME", defaults.player_name),
        )
