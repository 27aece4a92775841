# test_auth.py
import hashlib
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from auth import check_access, resolve_api_key
from errors import AuthorizationDenied, MissingCredential

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fake_settings(codes: str = "", hide_user_api_key: bool = False):
    codes_set = {
        hashlib.md5(c.strip().encode()).hexdigest() for c in codes.split(",") if c.strip()
    }
    return SimpleNamespace(
        codes_set=codes_set,
        need_code=bool(codes_set),
        hide_user_api_key=hide_user_api_key,
    )


# ---------------------------------------------------------------------------
# resolve_api_key
# ---------------------------------------------------------------------------

class TestResolveApiKey:
    def test_google_header_wins_over_bearer(self):
        headers = {"x-goog-api-key": "goog-key", "authorization": "Bearer bearer-key"}
        assert resolve_api_key(headers, "server-key") == "goog-key"

    def test_bearer_prefix_stripped(self):
        assert resolve_api_key({"authorization": "Bearer  abc123 "}, "") == "abc123"

    def test_header_names_case_insensitive(self):
        assert resolve_api_key({"X-Goog-Api-Key": "goog-key"}, "") == "goog-key"

    def test_empty_google_header_falls_through_to_bearer(self):
        headers = {"x-goog-api-key": "", "authorization": "Bearer bearer-key"}
        assert resolve_api_key(headers, "") == "bearer-key"

    def test_default_used_without_headers(self):
        assert resolve_api_key({}, "server-key") == "server-key"

    def test_blank_bearer_uses_default(self):
        assert resolve_api_key({"authorization": "Bearer   "}, "server-key") == "server-key"

    def test_access_code_is_not_an_api_key(self):
        assert resolve_api_key({"authorization": "Bearer nk-secret"}, "server-key") == "server-key"

    def test_missing_everywhere_raises(self):
        with pytest.raises(MissingCredential) as exc_info:
            resolve_api_key({}, "")
        assert exc_info.value.status_code == 401
        assert exc_info.value.to_dict() == {
            "error": True,
            "message": "missing GOOGLE_API_KEY in server env vars",
        }


# ---------------------------------------------------------------------------
# check_access
# ---------------------------------------------------------------------------

class TestCheckAccess:
    def test_open_server_allows_anonymous(self):
        with patch("auth.settings", _fake_settings()):
            check_access({}, "GeminiPro")

    def test_valid_access_code_passes(self):
        with patch("auth.settings", _fake_settings(codes="alpha,beta")):
            check_access({"authorization": "Bearer nk-beta"}, "GeminiPro")

    def test_wrong_access_code_rejected(self):
        with patch("auth.settings", _fake_settings(codes="alpha")):
            with pytest.raises(AuthorizationDenied) as exc_info:
                check_access({"authorization": "Bearer nk-gamma"}, "GeminiPro")
        assert exc_info.value.message == "wrong access code"

    def test_empty_access_code_rejected(self):
        with patch("auth.settings", _fake_settings(codes="alpha")):
            with pytest.raises(AuthorizationDenied) as exc_info:
                check_access({}, "GeminiPro")
        assert exc_info.value.message == "empty access code"

    def test_user_key_bypasses_access_code(self):
        with patch("auth.settings", _fake_settings(codes="alpha")):
            check_access({"x-goog-api-key": "user-key"}, "GeminiPro")

    def test_user_key_rejected_when_hidden(self):
        cfg = _fake_settings(hide_user_api_key=True)
        with patch("auth.settings", cfg):
            with pytest.raises(AuthorizationDenied) as exc_info:
                check_access({"authorization": "Bearer user-key"}, "GeminiPro")
        assert exc_info.value.status_code == 401
        assert "own api key" in exc_info.value.message

    def test_access_code_allowed_when_user_keys_hidden(self):
        cfg = _fake_settings(codes="alpha", hide_user_api_key=True)
        with patch("auth.settings", cfg):
            check_access({"authorization": "Bearer nk-alpha"}, "GeminiPro")
