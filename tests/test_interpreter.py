import sys
import unittest

from brainchuck import BrainfuckInterpreter, BufferedStreams, Codegen, ProgramResult, StepLimitExceeded, parse, run


class BrainfuckInterpreterTests(unittest.TestCase):
    def run_source(self, source: str, input_data: bytes = b"", **options) -> ProgramResult:
        interpreter = BrainfuckInterpreter(**options)
        return interpreter.run(parse(source), streams=BufferedStreams(input_data))

    def test_single_instructions(self) -> None:
        self.assertEqual(self.run_source(">"), ProgramResult(pointer=1, value=0))
        self.assertEqual(self.run_source("+"), ProgramResult(pointer=0, value=1))
        self.assertEqual(self.run_source("-"), ProgramResult(pointer=0, value=255))

    def test_transfer_loop(self) -> None:
        self.assertEqual(self.run_source("++[>+<-]>"), ProgramResult(pointer=1, value=2))

    def test_loop_skipped_on_zero_cell(self) -> None:
        streams = BufferedStreams(bytes([5]))
        result = BrainfuckInterpreter().run(parse("[,+]"), streams=streams)
        self.assertEqual(result, ProgramResult(pointer=0, value=0))
        self.assertEqual(streams.position, 0)

    def test_simple_output(self) -> None:
        streams = BufferedStreams()
        BrainfuckInterpreter(max_steps=1000).run(parse("+" * 65 + "."), streams=streams)
        self.assertEqual(streams.output_text(), "A")

    def test_pointer_wraps_below_zero(self) -> None:
        self.assertEqual(self.run_source("<").pointer, 0xFFFF)

    def test_step_limit_exceeded(self) -> None:
        with self.assertRaises(StepLimitExceeded):
            self.run_source("+[]", max_steps=10)

    def test_step_limit_allows_exact_budget(self) -> None:
        self.assertEqual(self.run_source("+++", max_steps=3).value, 3)

    def test_run_resets_state(self) -> None:
        interpreter = BrainfuckInterpreter(tape_size=5)
        program = parse("+>")
        interpreter.run(program, streams=BufferedStreams())
        self.assertEqual(interpreter.run(program, streams=BufferedStreams()), ProgramResult(pointer=1, value=0))
        self.assertEqual(interpreter.tape, [1, 0, 0, 0, 0])

    def test_deeply_nested_loops(self) -> None:
        limit = sys.getrecursionlimit()
        depth = 900
        result = self.run_source(">+" + "[" * depth + "<+>-" + "]" * depth)
        self.assertEqual(result, ProgramResult(pointer=1, value=0))
        self.assertEqual(sys.getrecursionlimit(), limit)

    def test_rejects_invalid_tape_size(self) -> None:
        with self.assertRaises(ValueError):
            BrainfuckInterpreter(tape_size=0)


class InterpreterMatchesJitTests(unittest.TestCase):
    PROGRAMS = [
        ("", b""),
        ("+++[>++<-]>>-<<<", b""),
        (",>,[<+>-]<", bytes([7, 9])),
        (">>>>>+++<<<<<<", b""),
        ("+[->,.]", b"xyz"),
        ("-[>+<-----]>---.", b""),
    ]

    def test_same_result_and_output(self) -> None:
        for source, input_data in self.PROGRAMS:
            with self.subTest(source=source):
                program = parse(source)
                jit_streams = BufferedStreams(input_data)
                interpreted_streams = BufferedStreams(input_data)
                jit_result = run(Codegen().compile(program, tape_size=10), streams=jit_streams)
                interpreted = BrainfuckInterpreter(tape_size=10).run(program, streams=interpreted_streams)
                self.assertEqual(jit_result, interpreted)
                self.assertEqual(jit_streams.output, interpreted_streams.output)

    def test_same_result_for_deep_nesting(self) -> None:
        depth = 500
        program = parse(",[" + "[" * depth + ">+<-" + "]" * depth + ".]")
        jit_streams = BufferedStreams(bytes([3]))
        interpreted_streams = BufferedStreams(bytes([3]))
        jit_result = run(Codegen().compile(program, tape_size=10), streams=jit_streams)
        interpreted = BrainfuckInterpreter(tape_size=10).run(program, streams=interpreted_streams)
        self.assertEqual(jit_result, interpreted)
        self.assertEqual(jit_result, ProgramResult(pointer=0, value=0))
        self.assertEqual(jit_streams.output, interpreted_streams.output)


if __name__ == "__main__":
    unittest.main()
