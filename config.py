# config.py
import hashlib

from pydantic import PrivateAttr
from pydantic_settings import BaseSettings

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/"


def _md5(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def _csv_set(value: str) -> set[str]:
    return {x.strip() for x in value.split(",") if x.strip()}


class Settings(BaseSettings):
    # Gemini upstream
    google_url: str = ""          # GOOGLE_URL  (empty → GEMINI_BASE_URL)
    google_api_key: str = ""      # GOOGLE_API_KEY, used when the caller sends no key
    api_prefix: str = "/api/google"

    # Hard bound on one forwarded request, streaming included (seconds).
    upstream_timeout: float = 10 * 60.0  # UPSTREAM_TIMEOUT

    # Access control.
    # CODE=code1,code2 - if empty, no access code is required.
    code: str = ""                # CODE
    hide_user_api_key: bool = False  # HIDE_USER_API_KEY

    # Server
    host: str = "0.0.0.0"         # HOST
    port: int = 8000              # PORT
    log_level: str = "INFO"       # LOG_LEVEL

    # Pre-computed values - parsed once at startup, not on every request.
    _codes_set: set[str] = PrivateAttr(default_factory=set)
    _base_url: str = PrivateAttr(default="")

    def model_post_init(self, __context) -> None:
        self._codes_set = {_md5(c) for c in _csv_set(self.code)}
        self._base_url = self.google_url.strip() or GEMINI_BASE_URL

    @property
    def codes_set(self) -> set[str]:
        """MD5 digests of the configured access codes."""
        return self._codes_set

    @property
    def need_code(self) -> bool:
        return bool(self._codes_set)

    @property
    def base_url(self) -> str:
        return self._base_url

    model_config = {"env_file": ".env", "case_sensitive": False}


settings = Settings()
