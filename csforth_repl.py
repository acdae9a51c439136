#!/usr/bin/env python3
# csforth_repl.py
#
# Point d'entrée CSForth :
#   csforth FILE          -> interprète le fichier une fois, affiche l'erreur éventuelle
#   csforth               -> REPL interactif (prompt_toolkit)
#   csforth -v            -> version
#   csforth --test        -> lance les tests intégrés de tous les modules
#
# Dans le REPL :
#   - chaque ligne est évaluée sur le même interpréteur (pile + dictionnaire
#     persistants, variables locales à la ligne)
#   - les lignes qui commencent par une dot-command (.stack, .see w, ...)
#     sont traitées par Interpreter.handle_dot_command ; .bye quitte
#   - input / inputn demandent leur ligne via la même PromptSession

from __future__ import annotations

import argparse
import io
import logging
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from typing import Callable, Iterable, List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import CompleteEvent, Completer, Completion
from prompt_toolkit.document import Document
from prompt_toolkit.patch_stdout import patch_stdout

from csforth_vm_core import DEFAULT_MEMORY_SIZE, DOT_CMDS, WordsDictionary
from csforth_runtime import BufferConsole, ConsoleInterpreter, HasConsole, StdioConsole

VERSION = "1.0.0"

log = logging.getLogger("csforth.repl")

TEST_MODULES = ["csforth_vm_core", "csforth_stdlib", "csforth_runtime", "csforth_repl"]


class PromptConsole(StdioConsole):
    """Console du REPL : sortie sur stdout (patchée), entrée via la PromptSession."""

    def __init__(self, session: PromptSession, prompt: str = "? ") -> None:
        super().__init__()
        self.session = session
        self.prompt = prompt

    def read_line(self) -> Optional[str]:
        try:
            return self.session.prompt(self.prompt)
        except EOFError:
            return None


class ForthCompleter(Completer):
    """
    Complétion sur les mots du dictionnaire (sensible à la casse, comme le
    dictionnaire) et, en début de ligne, sur les dot-commands.
    """

    def __init__(self, words: WordsDictionary) -> None:
        self.words = words

    def get_completions(self, document, complete_event):
        prefix = document.get_word_before_cursor(WORD=True)
        if not prefix:
            return
        start_pos = -len(prefix)

        candidates: List[str] = []
        if not document.text_before_cursor[: start_pos or None].strip():
            candidates.extend(sorted(DOT_CMDS))
        candidates.extend(sorted(self.words))

        seen = set()
        for name in candidates:
            if name in seen or not name.startswith(prefix):
                continue
            seen.add(name)
            yield Completion(name, start_position=start_pos)


class CSForthREPL:
    """
    REPL texte par-dessus ConsoleInterpreter.

    La boucle (run) ne fait que lire des lignes ; tout le traitement est dans
    handle_line, testable avec une BufferConsole.
    """

    def __init__(self, console: Optional[HasConsole] = None, *, memory_size: int = DEFAULT_MEMORY_SIZE) -> None:
        self.console: HasConsole = console if console is not None else StdioConsole()
        self.vm = ConsoleInterpreter(self.console, memory_size=memory_size)

    def handle_line(self, line: str) -> bool:
        """Evaluate one REPL line. Returns False when the session should end."""
        stripped = line.strip()
        if not stripped:
            return True

        cmd = stripped.split()[0]
        if cmd in DOT_CMDS:
            if cmd == ".bye":
                return False
            out = io.StringIO()
            self.vm.handle_dot_command(stripped, out)
            self.console.write(out.getvalue())
            return True

        if self.vm.run(stripped):
            self.console.write(" ok\n")
        return True

    def run(self, session_factory: Callable[..., PromptSession] = PromptSession) -> None:
        print(f"CSForth Interpreter version {VERSION}")
        print("Type .help for REPL commands, .bye to quit.")

        session = session_factory(completer=ForthCompleter(self.vm.words))
        self.console = PromptConsole(session)
        self.vm.host = self.console

        with patch_stdout():
            while True:
                try:
                    line = session.prompt("csforth> ")
                except EOFError:
                    break
                except KeyboardInterrupt:
                    print("KeyboardInterrupt (Ctrl-C). Use .bye to exit.")
                    continue

                if not self.handle_line(line):
                    break
        print("bye.")


def run_file(path: str, *, memory_size: int = DEFAULT_MEMORY_SIZE, debug: bool = False,
             console: Optional[HasConsole] = None) -> int:
    """Interpret a source file once; return the process exit code."""
    console = console if console is not None else StdioConsole()
    if not os.path.isfile(path):
        console.write(f"path {path} cannot be found\n")
        return 1
    try:
        with open(path, "r", encoding="utf-8") as f:
            source = f.read()
    except OSError as e:
        console.write(f"path {path} cannot be read: {e}\n")
        return 1

    vm = ConsoleInterpreter(console, memory_size=memory_size)
    log.debug("running %s (%d chars)", path, len(source))
    ok = vm.run(source)
    if debug:
        log.debug("final stack <%d> %s", len(vm.stack), " ".join(map(str, vm.stack)))
    return 0 if ok else 1


def run_all_tests(modules: Iterable[str] = TEST_MODULES) -> bool:
    loader = unittest.TestLoader()
    suite = loader.loadTestsFromNames(list(modules))
    result = unittest.TextTestRunner(verbosity=2).run(suite)
    return result.wasSuccessful()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="csforth", description="The CSForth interpreter")
    parser.add_argument("path", nargs="?", help="source file to interpret (omit for the REPL)")
    parser.add_argument("-v", "--version", action="store_true", help="show the current CSForth version")
    parser.add_argument("-m", "--memory", type=int, default=DEFAULT_MEMORY_SIZE, metavar="N",
                        help=f"memory region size in cells (default {DEFAULT_MEMORY_SIZE})")
    parser.add_argument("-d", "--debug", action="store_true", help="debug logging and final stack dump")
    parser.add_argument("--test", action="store_true", help="run the embedded test suites")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.test:
        return 0 if run_all_tests() else 1
    if args.version:
        print(f"CSForth Interpreter version {VERSION}")
        return 0
    if args.memory < 0:
        parser.error("memory size must be >= 0")

    if args.path:
        return run_file(args.path, memory_size=args.memory, debug=args.debug)

    CSForthREPL(memory_size=args.memory).run()
    return 0


# ======================================================================
# Tests intégrés (csforth --test)
# ======================================================================

class TestREPL_HandleLine(unittest.TestCase):
    def setUp(self):
        self.console = BufferConsole()
        self.repl = CSForthREPL(self.console)

    def feed(self, line: str) -> str:
        start = len(self.console.output)
        self.assertTrue(self.repl.handle_line(line))
        return self.console.output[start:]

    def test_ok_suffix(self):
        self.assertEqual(self.feed("1 2 + ."), "3 ok\n")
        self.assertEqual(self.feed(""), "")

    def test_stack_and_words_persist_between_lines(self):
        self.feed(": double dup + ;")
        self.feed("21")
        self.assertEqual(self.feed("double ."), "42 ok\n")

    def test_variables_do_not_persist(self):
        self.feed("1 variable v")
        out = self.feed("@ v")
        self.assertIn("UNKNOWN VARIABLE 'v'", out)
        self.assertNotIn(" ok", out)

    def test_error_then_session_continues(self):
        out = self.feed("nope")
        self.assertEqual(out, "UNKNOWN WORD 'nope' at: >>nope<<\n")
        self.assertEqual(self.feed("7 ."), "7 ok\n")

    def test_dot_commands(self):
        self.feed("1 2")
        self.assertEqual(self.feed(".stack"), "<2> 1 2 \n")
        self.feed(": sq ( n -- n*n ) dup * ;")
        self.assertEqual(self.feed(".see sq"), ": sq ( n -- n*n ) dup * ;\n")

    def test_forth_words_starting_with_dot_are_not_dot_commands(self):
        self.assertEqual(self.feed('5 . ." hi "'), "5hi\n ok\n")
        self.assertEqual(self.feed("1 .s"), "<1> 1  ok\n")

    def test_bye_ends_session(self):
        self.assertFalse(self.repl.handle_line(".bye"))

    def test_input_uses_console(self):
        repl = CSForthREPL(BufferConsole(["7"]))
        repl.handle_line("inputn .")
        self.assertEqual(repl.console.output, "7 ok\n")


class TestREPL_Completer(unittest.TestCase):
    def setUp(self):
        self.repl = CSForthREPL(BufferConsole())
        self.completer = ForthCompleter(self.repl.vm.words)

    def complete(self, text: str) -> List[str]:
        doc = Document(text, cursor_position=len(text))
        return [c.text for c in self.completer.get_completions(doc, CompleteEvent())]

    def test_words(self):
        self.assertEqual(self.complete("1 inp"), ["input", "inputn"])

    def test_dot_commands_only_at_line_start(self):
        self.assertIn(".stack", self.complete(".st"))
        self.assertNotIn(".stack", self.complete("1 .st"))
        self.assertIn(".s", self.complete("1 .s"))

    def test_sees_new_definitions(self):
        self.repl.handle_line(": squared dup * ;")
        self.assertEqual(self.complete("squ"), ["squared"])

    def test_case_sensitive(self):
        self.assertEqual(self.complete("DU"), [])

    def test_nothing_before_cursor(self):
        self.assertEqual(self.complete("1 "), [])


class TestCLI(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.tmp.cleanup()

    def write_src(self, text: str) -> str:
        path = os.path.join(self.tmp.name, "prog.fs")
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        return path

    def run_main(self, argv: List[str]):
        buf = io.StringIO()
        with redirect_stdout(buf):
            code = main(argv)
        return code, buf.getvalue()

    def test_version(self):
        self.assertEqual(self.run_main(["-v"]), (0, "CSForth Interpreter version 1.0.0\n"))

    def test_run_file(self):
        path = self.write_src(": sq dup * ;\n7 sq .\n")
        self.assertEqual(self.run_main([path]), (0, "49"))

    def test_run_file_error(self):
        path = self.write_src("1 .\n2 frob\n")
        code, out = self.run_main([path])
        self.assertEqual(code, 1)
        self.assertEqual(out, "1UNKNOWN WORD 'frob' at: 2 >>frob<<\n")

    def test_missing_file(self):
        path = os.path.join(self.tmp.name, "nope.fs")
        self.assertEqual(self.run_main([path]), (1, f"path {path} cannot be found\n"))

    def test_memory_flag(self):
        path = self.write_src("memsize .")
        self.assertEqual(self.run_main(["-m", "16", path]), (0, "16"))

    def test_run_all_tests_entry_point(self):
        with redirect_stderr(io.StringIO()):
            self.assertTrue(run_all_tests(["csforth_vm_core.TestTokenizer"]))

    def test_negative_memory_rejected(self):
        err = io.StringIO()
        with redirect_stderr(err), self.assertRaises(SystemExit):
            main(["-m", "-1", "x.fs"])
        self.assertIn("memory size must be >= 0", err.getvalue())


if __name__ == "__main__":
    sys.exit(main())
