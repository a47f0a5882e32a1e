from __future__ import annotations

import unittest

from fastapi.testclient import TestClient

from brainchuck import Codegen, emit_text, parse
from brainchuck.webui import create_app


class CompileApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(create_app())

    def test_compile_returns_ir(self) -> None:
        response = self.client.post("/api/compile", json={"code": "+[-].", "tape_size": 16})
        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        expected = emit_text(Codegen().compile(parse("+[-]."), tape_size=16))
        self.assertEqual(payload["ir"], expected)
        self.assertEqual(payload["command_count"], 4)

    def test_compile_with_grammar_strategy(self) -> None:
        response = self.client.post("/api/compile", json={"code": "+", "strategy": "GRAMMAR"})
        self.assertEqual(response.status_code, 200, response.text)
        self.assertIn("alloca [50 x i8]", response.json()["ir"])

    def test_compile_parse_error(self) -> None:
        response = self.client.post("/api/compile", json={"code": "+]"})
        self.assertEqual(response.status_code, 422, response.text)
        self.assertIn("Unmatched ']' at position 1", response.json()["detail"])

    def test_compile_rejects_unknown_strategy(self) -> None:
        response = self.client.post("/api/compile", json={"code": "+", "strategy": "yacc"})
        self.assertEqual(response.status_code, 422)

    def test_compile_rejects_tape_size_out_of_range(self) -> None:
        for size in (0, 65536):
            with self.subTest(size=size):
                response = self.client.post("/api/compile", json={"code": "+", "tape_size": size})
                self.assertEqual(response.status_code, 422)


class RunApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(create_app())

    def _run(self, **body):
        response = self.client.post("/api/run", json=body)
        return response

    def test_run_with_jit(self) -> None:
        response = self._run(code="++[>+<-]>")
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json(), {"pointer": 1, "value": 2, "output": ""})

    def test_run_with_input_and_output(self) -> None:
        response = self._run(code=",[.,]", input="echo")
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["output"], "echo")

    def test_run_with_interpreter(self) -> None:
        response = self._run(code="[,+]", input="\x05", engine="interpreter")
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json(), {"pointer": 0, "value": 0, "output": ""})

    def test_input_is_latin_1(self) -> None:
        response = self._run(code=",.", input="\u00e9")
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json(), {"pointer": 0, "value": 0xE9, "output": "\u00e9"})

    def test_input_outside_latin_1_is_rejected(self) -> None:
        response = self._run(code=",.", input="\u20ac")
        self.assertEqual(response.status_code, 422, response.text)
        self.assertIn("does not fit in a byte", response.text)

    def test_max_steps_requires_interpreter(self) -> None:
        response = self._run(code="+", engine="jit", max_steps=10)
        self.assertEqual(response.status_code, 422, response.text)
        self.assertIn("interpreter", response.text)

    def test_nesting_too_deep(self) -> None:
        response = self._run(code="[" * 1001 + "]" * 1001)
        self.assertEqual(response.status_code, 422, response.text)
        self.assertIn("nested deeper than 1000 levels", response.json()["detail"])

    def test_engines_agree(self) -> None:
        body = {"code": "-[>+<-----]>---.", "tape_size": 8}
        jit = self._run(engine="jit", **body).json()
        interpreted = self._run(engine="interpreter", **body).json()
        self.assertEqual(jit, interpreted)
        self.assertEqual(jit["output"], "0")

    def test_step_limit_conflict(self) -> None:
        response = self._run(code="+[]", engine="interpreter", max_steps=50)
        self.assertEqual(response.status_code, 409, response.text)
        self.assertIn("detail", response.json())

    def test_run_parse_error(self) -> None:
        response = self._run(code="[[")
        self.assertEqual(response.status_code, 422, response.text)
        self.assertIn("Unmatched '['", response.json()["detail"])

    def test_run_rejects_unknown_engine(self) -> None:
        response = self._run(code="+", engine="gpu")
        self.assertEqual(response.status_code, 422)


if __name__ == "__main__":
    unittest.main()
