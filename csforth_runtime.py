#!/usr/bin/env python3
# csforth_runtime.py
#
# Couche console au-dessus du noyau csforth_vm_core.Interpreter :
# - HasConsole : protocole minimal attendu par l'interpréteur (écrire, lire une ligne)
# - StdioConsole : console branchée sur sys.stdout / sys.stdin
# - BufferConsole : console factice (entrées scriptées, sorties capturées)
# - ConsoleInterpreter : Interpreter dont toute la sortie passe par la console
#   et qui affiche les erreurs au lieu de les propager (run)

from __future__ import annotations

import io
import logging
import sys
import unittest
from collections import deque
from typing import Iterable, List, Optional, TextIO

from csforth_vm_core import (
    DEFAULT_MEMORY_SIZE, ForthError, ForthStack, Interpreter, WordsDictionary,
    DuplicateDefinition, UnknownWord,
)

log = logging.getLogger("csforth.runtime")


# ============================================================
# Protocole console minimal
# ============================================================

class HasConsole:
    """
    Protocole minimal pour la console vue par ConsoleInterpreter :
      - write(text) : écrire du texte tel quel
      - read_line() : une ligne sans son saut de ligne, ou None en fin de flux
    """

    def write(self, text: str) -> None:
        raise NotImplementedError

    def read_line(self) -> Optional[str]:
        raise NotImplementedError


class StdioConsole(HasConsole):
    """Console sur les flux standard. Les flux sont résolus à l'appel (redirect_stdout)."""

    def __init__(self, stdout: Optional[TextIO] = None, stdin: Optional[TextIO] = None) -> None:
        self._stdout = stdout
        self._stdin = stdin

    def write(self, text: str) -> None:
        out = self._stdout if self._stdout is not None else sys.stdout
        out.write(text)
        out.flush()

    def read_line(self) -> Optional[str]:
        inp = self._stdin if self._stdin is not None else sys.stdin
        line = inp.readline()
        if line == "":
            return None
        return line.rstrip("\r\n")


class BufferConsole(HasConsole):
    """
    Console factice pour tester sans terminal : les lignes d'entrée sont
    fournies d'avance, chaque write est gardé dans `events`.
    """

    def __init__(self, lines: Iterable[str] = ()) -> None:
        self.lines = deque(lines)
        self.events: List[str] = []

    def write(self, text: str) -> None:
        self.events.append(text)

    def read_line(self) -> Optional[str]:
        if not self.lines:
            return None
        return self.lines.popleft()

    @property
    def output(self) -> str:
        return "".join(self.events)


# ============================================================
# ConsoleInterpreter : Interpreter + console
# ============================================================

class ConsoleInterpreter(Interpreter):
    """
    Interpréteur relié à une console.

    - emit() / read_line() passent par self.host
    - run() évalue un texte et affiche l'erreur éventuelle sur la console,
      comme le fait le point d'entrée en ligne de commande
    """

    def __init__(
        self,
        host: HasConsole,
        stack: Optional[ForthStack] = None,
        words: Optional[WordsDictionary] = None,
        *,
        memory_size: int = DEFAULT_MEMORY_SIZE,
    ) -> None:
        super().__init__(stack, words, memory_size=memory_size)
        self.host: HasConsole = host

    def clone(self, *, share_words: bool = False) -> "ConsoleInterpreter":
        words = self.words if share_words else self.words.copy()
        return ConsoleInterpreter(self.host, words=words, memory_size=self.memory.size)

    # ----------------- IO : override emit / read_line -----------------

    def emit(self, text: str) -> None:
        """Override : toute sortie texte passe par la console."""
        if text:
            self.host.write(text)

    def read_line(self) -> Optional[str]:
        return self.host.read_line()

    # ----------------- Evaluation -----------------

    def run(self, source: str, variables: Optional[dict] = None) -> bool:
        """
        Evaluate source; on failure write the error message (with its token
        context) to the console and return False.
        """
        try:
            self.interpret(source, variables)
        except ForthError as e:
            log.debug("run failed", exc_info=True)
            self.host.write(f"{e}\n")
            return False
        return True


####################################################################
# Tests unitaires ConsoleInterpreter (sans vrai terminal)

class TestConsoleInterpreter_IO(unittest.TestCase):
    def setUp(self) -> None:
        self.host = BufferConsole()
        self.vm = ConsoleInterpreter(self.host)

    def test_dot_and_cr_are_console_events(self) -> None:
        self.vm.interpret("42 . cr")
        self.assertEqual(self.host.events, ["42", "\n"])

    def test_string_literal_goes_through_console(self) -> None:
        self.vm.interpret('." hi there "')
        self.assertEqual(self.host.output, "hi there\n")

    def test_loop_output_has_no_separator(self) -> None:
        self.vm.interpret("3 do index . loop")
        self.assertEqual(self.host.output, "012")


class TestConsoleInterpreter_Input(unittest.TestCase):
    def test_inputn_reads_from_console(self) -> None:
        host = BufferConsole(["", "x", "17"])
        vm = ConsoleInterpreter(host)
        vm.interpret("inputn 1 + .")
        self.assertEqual(host.output, "INPUT EMPTY\nNOT A NUMBER\n18")

    def test_input_char_code(self) -> None:
        host = BufferConsole(["A"])
        vm = ConsoleInterpreter(host)
        vm.interpret("input")
        self.assertEqual(vm.stack, [65])


class TestConsoleInterpreter_Run(unittest.TestCase):
    def setUp(self) -> None:
        self.host = BufferConsole()
        self.vm = ConsoleInterpreter(self.host)

    def test_run_success(self) -> None:
        self.assertTrue(self.vm.run(": double dup + ; 5 double ."))
        self.assertEqual(self.host.output, "10")

    def test_run_reports_error_with_context(self) -> None:
        self.assertFalse(self.vm.run("1 . 2 frob 3"))
        self.assertEqual(self.host.output, "1UNKNOWN WORD 'frob' at: 2 >>frob<< 3\n")

    def test_run_reports_duplicate(self) -> None:
        self.assertFalse(self.vm.run(": x 1 ; : x 2 ;"))
        self.assertIn("WORD 'x' ALREADY EXISTS", self.host.output)

    def test_stack_survives_failed_run(self) -> None:
        self.vm.run("1 2 nope")
        self.assertEqual(self.vm.stack, [1, 2])

    def test_errors_still_raise_from_interpret(self) -> None:
        with self.assertRaises(UnknownWord):
            self.vm.interpret("nope")


class TestConsoleInterpreter_Clone(unittest.TestCase):
    def test_clone_keeps_console(self) -> None:
        host = BufferConsole()
        vm = ConsoleInterpreter(host, memory_size=8)
        vm.interpret(": seven 7 ;")
        twin = vm.clone()
        self.assertIsInstance(twin, ConsoleInterpreter)
        self.assertIs(twin.host, host)
        self.assertEqual(twin.memory.size, 8)
        twin.interpret("seven .")
        self.assertEqual(host.output, "7")
        twin.interpret(": eight 8 ;")
        self.assertNotIn("eight", vm.words)

    def test_shared_words(self) -> None:
        vm = ConsoleInterpreter(BufferConsole())
        twin = vm.clone(share_words=True)
        twin.interpret(": nine 9 ;")
        with self.assertRaises(DuplicateDefinition):
            vm.interpret(": nine 9 ;")


class TestStdioConsole(unittest.TestCase):
    def test_explicit_streams(self) -> None:
        out = io.StringIO()
        con = StdioConsole(stdout=out, stdin=io.StringIO("one\r\ntwo\n"))
        con.write("x")
        self.assertEqual(out.getvalue(), "x")
        self.assertEqual(con.read_line(), "one")
        self.assertEqual(con.read_line(), "two")
        self.assertIsNone(con.read_line())

    def test_interpreter_over_stdio(self) -> None:
        out = io.StringIO()
        vm = ConsoleInterpreter(StdioConsole(stdout=out, stdin=io.StringIO("5\n")))
        vm.interpret("inputn 2 * .")
        self.assertEqual(out.getvalue(), "10")


def run_tests() -> None:
    loader = unittest.TestLoader()
    suite = loader.loadTestsFromModule(sys.modules[__name__])
    runner = unittest.TextTestRunner(verbosity=2)
    runner.run(suite)


if __name__ == "__main__":
    run_tests()
