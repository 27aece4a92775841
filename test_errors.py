# test_errors.py
import importlib
from pathlib import Path

import pytest

from errors import Diagnostic, MissingCredential, UpstreamTimeout, pretty_object


class TestPrettyObject:
    def test_exception_with_message(self):
        assert pretty_object(ValueError("bad value")) == "ValueError: bad value"

    def test_exception_without_message(self):
        assert pretty_object(UpstreamTimeout()) == "UpstreamTimeout"

    def test_mapping_fenced_as_json(self):
        assert pretty_object({"a": 1}) == '```json\n{\n  "a": 1\n}\n```'

    def test_already_fenced_string_kept(self):
        text = "```json\n{}\n```"
        assert pretty_object(text) == text


class TestDiagnostic:
    def test_from_exception(self):
        diag = Diagnostic.from_exception(UpstreamTimeout("too slow"))
        assert diag.to_dict() == {
            "error": True,
            "type": "UpstreamTimeout",
            "message": "UpstreamTimeout: too slow",
        }

    def test_auth_errors_carry_401(self):
        exc = MissingCredential("no key")
        assert exc.status_code == 401
        assert exc.to_dict() == {"error": True, "message": "no key"}


class TestModuleHeaders:
    @pytest.mark.parametrize("name", [
        "auth", "config", "errors", "events", "main", "proxy", "router", "stream", "transform",
    ])
    def test_header_comment_and_no_docstring(self, name):
        module = importlib.import_module(name)
        assert module.__doc__ is None
        first_line = Path(module.__file__).read_text(encoding="utf-8").splitlines()[0]
        assert first_line == f"# {name}.py"
