"""JavaScript interpreters for the IUAM challenge.

The challenge page embeds an obfuscated arithmetic snippet inside a
``setTimeout`` callback. Every interpreter here extracts that snippet,
wraps it in a tiny mock DOM and evaluates it in an isolated engine:

- ``native`` / ``v8``: in-process V8 isolate via py_mini_racer
- ``nodejs``: an external ``node`` process running ``vm.runInNewContext``

``js2py`` and ``chakracore`` are recognised names with no engine behind
them; selecting one raises instead of returning a placeholder answer.
"""

import json
import logging
import re
import shutil
import subprocess

from py_mini_racer import MiniRacer

from cfscraper._errors import InterpreterError

logger = logging.getLogger("cfscraper")

_SNIPPET_RE = re.compile(
    r"setTimeout\(function\(\)\{\s+(var s,t,o,p,b,r,e,a,k,i,n,g,f.+?\r?\n"
    r"[\s\S]+?a\.value =.+?)\r?\n",
    re.I,
)
# Drops the "+ t.length" hostname term; the mock DOM can't supply it.
_ANSWER_TERM_RE = re.compile(r"a\.value = (.+?) \+ .+?;", re.I)

_MOCK_DOM = """\
var window = {};
var location = {hash: ''};
var document = (function () {
    var elements = {};
    return {
        createElement: function () {
            return {firstChild: {href: %(href)s}};
        },
        getElementById: function (id) {
            if (!elements[id]) {
                elements[id] = {id: id, value: ''};
            }
            return elements[id];
        }
    };
})();
"""

DEFAULT_TIMEOUT_MS = 5000


def extract_snippet(body: str) -> str:
    """Pull the challenge arithmetic out of the page script.

    Raises:
        InterpreterError: The ``setTimeout`` marker is missing.
    """
    match = _SNIPPET_RE.search(body)
    if match is None:
        raise InterpreterError("extract", "challenge script not found")
    return _ANSWER_TERM_RE.sub(r"a.value = \1;", match.group(1))


def build_script(body: str, domain: str) -> str:
    """Wrap the extracted snippet in the mock DOM.

    The final expression evaluates to the answer field's value, so
    engines that return the last completion value need no extra glue.
    """
    snippet = extract_snippet(body)
    prelude = _MOCK_DOM % {"href": json.dumps(f"http://{domain}/")}
    return (
        f"{prelude}\n{snippet};\n"
        f"document.getElementById('jschl-answer').value"
    )


def _check_answer(name: str, result) -> str:
    if result is None:
        raise InterpreterError(name, "challenge script produced no answer")
    answer = str(result).strip()
    if not answer:
        raise InterpreterError(name, "challenge script produced an empty answer")
    return answer


class JavaScriptInterpreter:
    """Common contract: ``solve_challenge(body, domain) -> answer``."""

    name = "base"

    def __init__(self, timeout_ms: int = DEFAULT_TIMEOUT_MS):
        self.timeout_ms = timeout_ms

    def eval(self, script: str):
        raise NotImplementedError

    def solve_challenge(self, body: str, domain: str) -> str:
        script = build_script(body, domain)
        try:
            result = self.eval(script)
        except InterpreterError:
            raise
        except Exception as e:
            raise InterpreterError(self.name, str(e)) from e
        answer = _check_answer(self.name, result)
        logger.debug("%s interpreter answer: %s", self.name, answer)
        return answer


class MiniRacerInterpreter(JavaScriptInterpreter):
    """V8 isolate with no network or filesystem bindings."""

    name = "native"

    def eval(self, script: str):
        # Fresh isolate per challenge so page globals never leak between solves.
        ctx = MiniRacer()
        return ctx.eval(script, timeout=self.timeout_ms)


class NodeInterpreter(JavaScriptInterpreter):
    """Runs the script in a fresh ``vm`` context of an external node binary."""

    name = "nodejs"

    _RUNNER = (
        "const vm = require('vm');"
        "let src = '';"
        "process.stdin.on('data', c => src += c);"
        "process.stdin.on('end', () => {"
        "  const out = vm.runInNewContext(src, Object.create(null),"
        "    {timeout: %d});"
        "  process.stdout.write(String(out));"
        "});"
    )

    def __init__(self, timeout_ms: int = DEFAULT_TIMEOUT_MS, node: str = "node"):
        super().__init__(timeout_ms)
        self.node = node

    def eval(self, script: str):
        binary = shutil.which(self.node)
        if binary is None:
            raise InterpreterError(self.name, f"{self.node!r} not found on PATH")
        proc = subprocess.run(
            [binary, "-e", self._RUNNER % self.timeout_ms],
            input=script,
            capture_output=True,
            text=True,
            timeout=self.timeout_ms / 1000.0 + 5,
        )
        if proc.returncode != 0:
            raise InterpreterError(
                self.name, proc.stderr.strip() or f"exit code {proc.returncode}"
            )
        return proc.stdout


_INTERPRETERS: dict[str, type[JavaScriptInterpreter]] = {
    "native": MiniRacerInterpreter,
    "v8": MiniRacerInterpreter,
    "nodejs": NodeInterpreter,
}

# Known to the option parser, no engine shipped.
_UNAVAILABLE = frozenset({"js2py", "chakracore"})


def available_interpreters() -> list[str]:
    return sorted(_INTERPRETERS)


def get_interpreter(name: str, **kwargs) -> JavaScriptInterpreter:
    """Select an interpreter by name.

    Raises:
        NotImplementedError: ``name`` is a known engine that is not shipped.
        ValueError: ``name`` is not an interpreter at all.
    """
    key = name.lower()
    if key in _UNAVAILABLE:
        raise NotImplementedError(
            f"The {name!r} interpreter is not available; "
            f"use one of {available_interpreters()}"
        )
    try:
        cls = _INTERPRETERS[key]
    except KeyError:
        raise ValueError(f"Unknown JavaScript interpreter: {name}") from None
    return cls(**kwargs)
