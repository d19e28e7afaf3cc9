"""Tests for the JavaScript interpreters and their factory."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from cfscraper._errors import InterpreterError
from cfscraper._interpreters import (
    JavaScriptInterpreter,
    MiniRacerInterpreter,
    NodeInterpreter,
    available_interpreters,
    build_script,
    extract_snippet,
    get_interpreter,
)
from tests.conftest import IUAM_ANSWER, IUAM_BODY

# ---------------------------------------------------------------------------
# Script preparation
# ---------------------------------------------------------------------------


class TestExtractSnippet:
    def test_snippet_found(self):
        snippet = extract_snippet(IUAM_BODY)
        assert snippet.startswith("var s,t,o,p,b,r,e,a,k,i,n,g,f")

    def test_hostname_term_stripped(self):
        snippet = extract_snippet(IUAM_BODY)
        assert "a.value = (+abcDef.xyz).toFixed(10);" in snippet
        assert "+ t.length" not in snippet

    def test_missing_script_raises(self):
        with pytest.raises(InterpreterError) as exc_info:
            extract_snippet("<html></html>")
        assert exc_info.value.interpreter == "extract"


class TestBuildScript:
    def test_mock_dom_uses_domain(self):
        script = build_script(IUAM_BODY, "example.com")
        assert '"http://example.com/"' in script

    def test_ends_with_answer_lookup(self):
        script = build_script(IUAM_BODY, "example.com")
        assert script.endswith("document.getElementById('jschl-answer').value")

    def test_domain_is_json_escaped(self):
        script = build_script(IUAM_BODY, 'evil".com')
        assert '"http://evil\\".com/"' in script


# ---------------------------------------------------------------------------
# Engines
# ---------------------------------------------------------------------------


class TestMiniRacer:
    def test_solves_fixture(self):
        interp = MiniRacerInterpreter()
        assert interp.solve_challenge(IUAM_BODY, "example.com") == IUAM_ANSWER

    def test_eval_error_wrapped(self):
        interp = MiniRacerInterpreter()
        with patch.object(interp, "eval", side_effect=RuntimeError("boom")):
            with pytest.raises(InterpreterError) as exc_info:
                interp.solve_challenge(IUAM_BODY, "example.com")
        assert exc_info.value.interpreter == "native"
        assert "boom" in exc_info.value.reason

    def test_empty_answer_rejected(self):
        interp = MiniRacerInterpreter()
        with patch.object(interp, "eval", return_value="  "):
            with pytest.raises(InterpreterError):
                interp.solve_challenge(IUAM_BODY, "example.com")

    def test_undefined_answer_rejected(self):
        interp = MiniRacerInterpreter()
        with patch.object(interp, "eval", return_value=None):
            with pytest.raises(InterpreterError):
                interp.solve_challenge(IUAM_BODY, "example.com")


class TestNodeInterpreter:
    def test_runs_node_with_script_on_stdin(self):
        proc = MagicMock(returncode=0, stdout="51.0000000000\n", stderr="")
        with patch(
            "cfscraper._interpreters.shutil.which", return_value="/usr/bin/node"
        ), patch(
            "cfscraper._interpreters.subprocess.run", return_value=proc
        ) as run:
            answer = NodeInterpreter().solve_challenge(IUAM_BODY, "example.com")
        assert answer == IUAM_ANSWER
        args, kwargs = run.call_args
        assert args[0][0] == "/usr/bin/node"
        assert "runInNewContext" in args[0][2]
        assert "jschl-answer" in kwargs["input"]

    def test_missing_binary(self):
        with patch("cfscraper._interpreters.shutil.which", return_value=None):
            with pytest.raises(InterpreterError) as exc_info:
                NodeInterpreter().solve_challenge(IUAM_BODY, "example.com")
        assert exc_info.value.interpreter == "nodejs"

    def test_nonzero_exit(self):
        proc = MagicMock(returncode=1, stdout="", stderr="SyntaxError: nope")
        with patch(
            "cfscraper._interpreters.shutil.which", return_value="/usr/bin/node"
        ), patch("cfscraper._interpreters.subprocess.run", return_value=proc):
            with pytest.raises(InterpreterError) as exc_info:
                NodeInterpreter().solve_challenge(IUAM_BODY, "example.com")
        assert "SyntaxError" in exc_info.value.reason

    def test_timeout_wrapped(self):
        with patch(
            "cfscraper._interpreters.shutil.which", return_value="/usr/bin/node"
        ), patch(
            "cfscraper._interpreters.subprocess.run",
            side_effect=subprocess.TimeoutExpired("node", 5),
        ):
            with pytest.raises(InterpreterError):
                NodeInterpreter().solve_challenge(IUAM_BODY, "example.com")


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestGetInterpreter:
    def test_native(self):
        assert isinstance(get_interpreter("native"), MiniRacerInterpreter)

    def test_v8_alias(self):
        assert isinstance(get_interpreter("v8"), MiniRacerInterpreter)

    def test_case_insensitive(self):
        assert isinstance(get_interpreter("NodeJS"), NodeInterpreter)

    def test_kwargs_forwarded(self):
        assert get_interpreter("native", timeout_ms=100).timeout_ms == 100

    def test_unshipped_engines(self):
        for name in ("js2py", "chakracore"):
            with pytest.raises(NotImplementedError):
                get_interpreter(name)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown JavaScript interpreter"):
            get_interpreter("rhino")

    def test_available(self):
        assert available_interpreters() == ["native", "nodejs", "v8"]

    def test_base_eval_abstract(self):
        with pytest.raises(NotImplementedError):
            JavaScriptInterpreter().eval("1")
