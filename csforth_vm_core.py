#!/usr/bin/env python3
# csforth_vm_core.py
#
# Noyau de l'interpréteur CSForth.
# - cellules entières, pile de données, région mémoire
# - dictionnaire de mots (primitives Python ou définitions en tokens)
# - moteur d'évaluation récursif : pas d'AST, les constructions
#   imbriquées (if/else/then, do/loop, commentaires, chaînes, :) sont
#   scannées en place par les primitives qui les introduisent
# - contexte d'erreur autour du token fautif
#
from __future__ import annotations
import io
import logging
import re
import sys
import unittest
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

log = logging.getLogger("csforth.core")

DEFAULT_MEMORY_SIZE = 128

# ------------------------------ Cells ----------------------------------------

TRUE = -1
FALSE = 0


def flag(cond: Any) -> int:
    return TRUE if cond else FALSE


def truthy(cell: int) -> bool:
    return cell != 0


_INT_RE = re.compile(r"[+-]?[0-9]+\Z")


def parse_int(tok: str) -> Optional[int]:
    """Return tok as a decimal int, or None when it is not an integer literal."""
    if _INT_RE.match(tok):
        return int(tok)
    return None


# ------------------------------ Errors ---------------------------------------

class ForthError(RuntimeError):
    """
    Unique type d'erreur du noyau. Le message est complété, à chaque
    frontière de dispatch traversée, par le contexte des tokens voisins.
    """
    default_message = "FORTH ERROR"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message if message is not None else self.default_message
        self.contexts: List[str] = []
        super().__init__(self.message)

    def add_context(self, ctx: str) -> "ForthError":
        self.contexts.append(ctx)
        return self

    def __str__(self) -> str:
        if not self.contexts:
            return self.message
        return f"{self.message} at: " + " | in: ".join(self.contexts)


class StackUnderflow(ForthError):
    default_message = "STACK UNDERFLOW"

class UnknownWord(ForthError):
    default_message = "UNKNOWN WORD"

class DivisionByZero(ForthError):
    default_message = "DIVISION BY ZERO"

class UnterminatedConstruct(ForthError): ...

class UnterminatedComment(UnterminatedConstruct):
    default_message = "UNTERMINATED COMMENT"

class UnterminatedDefinition(UnterminatedConstruct):
    default_message = "UNTERMINATED DEFINITION"

class UnterminatedIf(UnterminatedConstruct):
    default_message = "UNTERMINATED IF"

class UnterminatedElse(UnterminatedConstruct):
    default_message = "UNTERMINATED ELSE"

class UnterminatedLoop(UnterminatedConstruct):
    default_message = "UNTERMINATED LOOP"

class UnterminatedString(UnterminatedConstruct):
    default_message = "UNTERMINATED STRING"

class DefinitionError(ForthError): ...

class DuplicateDefinition(DefinitionError):
    default_message = "WORD ALREADY EXISTS"

class MissingName(DefinitionError):
    default_message = "NO WORD NAME GIVEN"

class NestedDefinition(DefinitionError):
    default_message = ": INSIDE :"

class NestedDefinitionInConditional(DefinitionError):
    default_message = ": INSIDE if"

class NestedDefinitionInLoop(DefinitionError):
    default_message = ": INSIDE do"

class NameCollidesWithWord(ForthError):
    default_message = "NAME IS ALREADY A WORD"

class NameCollidesWithVariable(ForthError):
    default_message = "NAME IS ALREADY A VARIABLE"

class MissingIdentifier(ForthError):
    default_message = "NO IDENTIFIER GIVEN"

class UnknownVariable(ForthError):
    default_message = "UNKNOWN VARIABLE"

class NotAVariable(ForthError):
    default_message = "NOT A VARIABLE"

class IndexOutsideLoop(ForthError):
    default_message = "index OUTSIDE do LOOP"

class MemoryAccessError(ForthError):
    default_message = "ADDRESS OUT OF RANGE"

class InputExhausted(ForthError):
    default_message = "INPUT EXHAUSTED"

class ReturnStackOverflow(ForthError):
    default_message = "RETURN STACK OVERFLOW"


# ------------------------------ Data stack -----------------------------------

class ForthStack(list):
    """Pile de données : une liste dont pop() lève StackUnderflow au lieu d'IndexError."""

    def push(self, cell: int) -> None:
        self.append(cell)

    def pop(self, index: int = -1) -> int:  # type: ignore[override]
        if not self:
            raise StackUnderflow()
        return super().pop(index)

    def peek(self) -> int:
        if not self:
            raise StackUnderflow()
        return self[-1]

    def dup(self) -> None:
        c = self.pop()
        self.append(c)
        self.append(c)

    def drop(self) -> None:
        self.pop()

    def empty(self) -> bool:
        return not self


# ------------------------------ Memory region --------------------------------

class MemoryRegion:
    """Tableau de cellules de taille fixe, initialisé à zéro, adressé par position."""

    def __init__(self, size: int = DEFAULT_MEMORY_SIZE) -> None:
        if size < 0:
            raise ValueError("memory size must be >= 0")
        self.cells: List[int] = [0] * size

    @property
    def size(self) -> int:
        return len(self.cells)

    def __len__(self) -> int:
        return len(self.cells)

    def check(self, addr: int) -> int:
        if not 0 <= addr < len(self.cells):
            raise MemoryAccessError(f"ADDRESS {addr} OUT OF RANGE [0, {len(self.cells)})")
        return addr

    def fetch(self, addr: int) -> int:
        return self.cells[self.check(addr)]

    def store(self, addr: int, value: int) -> None:
        self.cells[self.check(addr)] = value


# ------------------------------ Words ----------------------------------------

class CodeClass(Enum):
    PRIMITIVE = "PRIMITIVE"
    DEFINITION = "DEFINITION"


class Effects:
    """Stack-effect strings (documentation only, never enforced)."""
    NOP = "--"
    INPUT_ONLY = "n --"
    OUTPUT_ONLY = "-- n"
    INPUT_OUTPUT = "n -- n"


Primitive = Callable[["ExecContext", "WordsDictionary", "Interpreter", ForthStack], None]


@dataclass
class Word:
    name: str
    code_class: CodeClass
    prim: Optional[Primitive] = None
    body: Tuple[str, ...] = ()
    effect: str = ""

    def is_primitive(self) -> bool:
        return self.code_class is CodeClass.PRIMITIVE

    def disasm(self) -> str:
        effect = f" ( {self.effect} )" if self.effect else ""
        if self.code_class is CodeClass.PRIMITIVE:
            return f"primitive {self.name}{effect}"
        parts = [":", self.name + effect, *self.body, ";"]
        return " ".join(parts)

    # constructors
    @staticmethod
    def primitive(name: str, prim: Primitive, effect: str = Effects.NOP) -> "Word":
        return Word(name, CodeClass.PRIMITIVE, prim, (), effect)

    @staticmethod
    def definition(name: str, body: Sequence[str], effect: str = "") -> "Word":
        return Word(name, CodeClass.DEFINITION, None, tuple(body), effect)


class WordsDictionary:
    """
    Table nom -> Word, sensible à la casse. Les noms sont uniques :
    redéfinir un nom existant échoue, et il n'y a pas d'oubli (forget).
    """

    def __init__(self) -> None:
        self._words: Dict[str, Word] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._words

    def __len__(self) -> int:
        return len(self._words)

    def __iter__(self) -> Iterator[str]:
        return iter(self._words)

    def lookup(self, name: str) -> Optional[Word]:
        return self._words.get(name)

    def _attach(self, w: Word) -> Word:
        if w.name in self._words:
            raise DuplicateDefinition(f"WORD '{w.name}' ALREADY EXISTS")
        self._words[w.name] = w
        return w

    def add_primitive(self, name: str, prim: Primitive, effect: str = Effects.NOP) -> Word:
        return self._attach(Word.primitive(name, prim, effect))

    def define(self, name: str, tokens: Sequence[str], effect: str = "") -> Word:
        w = self._attach(Word.definition(name, tokens, effect))
        log.debug("defined %s (%d tokens)", name, len(w.body))
        return w

    def all_words(self) -> List[Word]:
        return list(self._words.values())

    def copy(self) -> "WordsDictionary":
        # Words are never mutated after creation; sharing them is safe.
        wd = WordsDictionary()
        wd._words = dict(self._words)
        return wd


# ------------------------------ Execution context ----------------------------

END = -1  # cursor sentinel: stop evaluating the current token sequence


class Cursor:
    """Position partagée entre le moteur et une primitive ; `moved` indique une écriture."""

    def __init__(self, value: int) -> None:
        self._value = value
        self.moved = False

    @property
    def value(self) -> int:
        return self._value

    @value.setter
    def value(self, v: int) -> None:
        self._value = v
        self.moved = True


@dataclass
class ExecContext:
    cursor: Cursor
    tokens: Sequence[str]
    loop_index: Optional[int]
    variables: Dict[str, int]
    memory: MemoryRegion

    @property
    def pos(self) -> int:
        return self.cursor.value

    def fail_at(self, pos: int, err: ForthError) -> ForthError:
        """Move the cursor to pos so the error context points there, and hand back err."""
        self.cursor.value = pos
        return err


# ------------------------------ Tokenizer ------------------------------------

_DELIMS = re.compile(r"[ \t\r\n]+")


def tokenize(text: str) -> List[str]:
    return [t for t in _DELIMS.split(text) if t]


def format_context(tokens: Sequence[str], pos: int) -> str:
    """One token before, the failing token between >> <<, one token after."""
    if not tokens:
        return ">><<"
    i = min(max(pos, 0), len(tokens) - 1)
    parts = []
    if i > 0:
        parts.append(tokens[i - 1])
    parts.append(f">>{tokens[i]}<<")
    if i + 1 < len(tokens):
        parts.append(tokens[i + 1])
    return " ".join(parts)


# ------------------------------ Interpreter ----------------------------------

# REPL dot-commands (single source of truth)
DOT_CMDS = {".bye", ".dict", ".help", ".mem", ".see", ".stack", ".word"}


class Interpreter:

    def __init__(
        self,
        stack: Optional[ForthStack] = None,
        words: Optional[WordsDictionary] = None,
        *,
        memory_size: int = DEFAULT_MEMORY_SIZE,
    ) -> None:
        self.stack: ForthStack = ForthStack() if stack is None else stack
        if words is None:
            from csforth_stdlib import standard_words
            words = standard_words()
        self.words: WordsDictionary = words
        self.memory = MemoryRegion(memory_size)

        # Sortie / entrée par défaut (remplacées par interpret_line ou ConsoleInterpreter)
        self.out: Any = io.StringIO()
        self.inp: Any = io.StringIO()

        self._depth = 0

    def clone(self, *, share_words: bool = False) -> "Interpreter":
        """Fresh interpreter (new stack and memory) over the same or a copied dictionary."""
        words = self.words if share_words else self.words.copy()
        return Interpreter(words=words, memory_size=self.memory.size)

    # --- I/O capabilities used by the word library ---
    def emit(self, text: str) -> None:
        """Point central de sortie texte."""
        self.out.write(text)

    def write_char(self, c: str) -> None:
        self.emit(c)

    def write_int(self, n: int) -> None:
        self.emit(str(n))

    def write_line(self, s: str) -> None:
        self.emit(s + "\n")

    def read_line(self) -> Optional[str]:
        line = self.inp.readline()
        if line == "":
            return None
        return line.rstrip("\r\n")

    # --- evaluation engine ---
    def interpret(
        self,
        source: Union[str, Sequence[str]],
        variables: Optional[Dict[str, int]] = None,
        loop_index: Optional[int] = None,
    ) -> None:
        tokens = tokenize(source) if isinstance(source, str) else tuple(source)
        self._depth += 1
        try:
            self._run_tokens(tokens, {} if variables is None else variables, loop_index)
        except RecursionError:
            if self._depth > 1:
                raise
            raise ReturnStackOverflow() from None
        except ForthError as e:
            if self._depth == 1:
                log.debug("evaluation failed: %s", e)
            raise
        finally:
            self._depth -= 1

    def _run_tokens(self, tokens: Sequence[str], variables: Dict[str, int], loop_index: Optional[int]) -> None:
        i = 0
        n = len(tokens)
        while i < n:
            tok = tokens[i]
            val = parse_int(tok)
            if val is not None:
                self.stack.push(val)
                i += 1
                continue

            w = self.words.lookup(tok)
            if w is None:
                raise UnknownWord(f"UNKNOWN WORD '{tok}'").add_context(format_context(tokens, i))

            if w.code_class is CodeClass.PRIMITIVE:
                ctx = ExecContext(Cursor(i), tokens, loop_index, variables, self.memory)
                try:
                    w.prim(ctx, self.words, self, self.stack)
                except ForthError as e:
                    e.add_context(format_context(tokens, ctx.cursor.value))
                    raise
                if ctx.cursor.moved:
                    if ctx.cursor.value == END:
                        return
                    i = ctx.cursor.value
            else:
                # chaque corps de définition s'évalue dans un espace de variables neuf
                try:
                    self.interpret(w.body, None, loop_index)
                except ForthError as e:
                    e.add_context(format_context(tokens, i))
                    raise
            i += 1

    def interpret_line(self, line: str, *, out: Optional[Any] = None, inp: Optional[Any] = None) -> str:
        """Evaluate a whole text and return the output it produced."""
        old_out, old_inp = self.out, self.inp
        target = out if out is not None else io.StringIO()
        start_len = len(target.getvalue()) if hasattr(target, "getvalue") else None
        self.out = target
        if inp is not None:
            self.inp = io.StringIO(inp) if isinstance(inp, str) else inp
        try:
            self.interpret(line)
            if start_len is not None:
                return target.getvalue()[start_len:]
            return ""
        finally:
            self.out, self.inp = old_out, old_inp

    # --- Dot-commands via dispatch table ---
    def _dotcmd_dispatch(self) -> Dict[str, Callable[[List[str], Any], None]]:
        return {
            ".help": self._dot_help,
            ".stack": self._dot_stack,
            ".dict": self._dot_dict,
            ".word": self._dot_word,
            ".see": self._dot_see,
            ".mem": self._dot_mem,
            ".bye": self._dot_bye,
        }

    def _dot_help(self, args, out):
        out.write(".stack .dict [filter] .word <w> .see <w> .mem [n] .bye\n")

    def _dot_stack(self, args, out):
        out.write(f"<{len(self.stack)}> " + " ".join(map(str, self.stack)) + " \n")

    def _dot_dict(self, args, out):
        filt = args[0] if args else None
        names = list(self.words)
        if filt:
            names = [n for n in names if filt in n]
        out.write(" ".join(sorted(names)) + "\n")

    def _dot_word(self, args, out):
        if not args:
            out.write("word not found: \n"); return
        w = self.words.lookup(args[0])
        if not w:
            out.write(f"word not found: {args[0]}\n"); return
        out.write(f"name={w.name} class={w.code_class.name} effect={w.effect!r}\n")

    def _dot_see(self, args, out):
        if not args:
            out.write("unknown: \n"); return
        w = self.words.lookup(args[0])
        if not w:
            out.write(f"unknown: {args[0]}\n"); return
        out.write(w.disasm() + "\n")

    def _dot_mem(self, args, out):
        try:
            n = int(args[0]) if args else 16
        except ValueError:
            out.write(f"bad count: {args[0]}\n"); return
        out.write(f"MEM[{self.memory.size}]: " + " ".join(map(str, self.memory.cells[:n])) + "\n")

    def _dot_bye(self, args, out):
        return

    def handle_dot_command(self, line: str, out) -> None:
        parts = line.split()
        cmd, args = parts[0], parts[1:]
        h = self._dotcmd_dispatch().get(cmd)
        if not h:
            out.write(f"unknown dot-cmd: {cmd}\n")
            return
        h(args, out)


####################################################################
# Tests du noyau

class TestTokenizer(unittest.TestCase):
    def test_mixed_whitespace_matches_single_spaces(self):
        self.assertEqual(tokenize("1  2\t\t+\n\n .  "), tokenize("1 2 + ."))
        self.assertEqual(tokenize("1 2 + ."), ["1", "2", "+", "."])

    def test_empty_input(self):
        self.assertEqual(tokenize(""), [])
        self.assertEqual(tokenize(" \n\t "), [])

    def test_no_quoting_awareness(self):
        self.assertEqual(tokenize('." hello  world "'), ['."', "hello", "world", '"'])

    def test_parse_int(self):
        self.assertEqual(parse_int("42"), 42)
        self.assertEqual(parse_int("-7"), -7)
        self.assertEqual(parse_int("+3"), 3)
        self.assertIsNone(parse_int("1_000"))
        self.assertIsNone(parse_int("0x10"))
        self.assertIsNone(parse_int("-"))
        self.assertIsNone(parse_int("dup"))


class TestForthStack(unittest.TestCase):
    def test_pop_empty_underflows(self):
        s = ForthStack()
        with self.assertRaises(StackUnderflow):
            s.pop()
        with self.assertRaises(StackUnderflow):
            s.dup()

    def test_lifo(self):
        s = ForthStack()
        s.push(1); s.push(2)
        s.dup()
        self.assertEqual(s, [1, 2, 2])
        self.assertEqual(s.pop(), 2)
        s.drop()
        self.assertEqual(s.peek(), 1)
        self.assertFalse(s.empty())

    def test_underflow_is_forth_error(self):
        self.assertTrue(issubclass(StackUnderflow, ForthError))
        self.assertEqual(str(StackUnderflow()), "STACK UNDERFLOW")


class TestMemoryRegion(unittest.TestCase):
    def test_zero_initialized(self):
        m = MemoryRegion(4)
        self.assertEqual(m.cells, [0, 0, 0, 0])
        self.assertEqual(len(MemoryRegion()), DEFAULT_MEMORY_SIZE)

    def test_store_fetch_and_bounds(self):
        m = MemoryRegion(2)
        m.store(1, 9)
        self.assertEqual(m.fetch(1), 9)
        with self.assertRaises(MemoryAccessError):
            m.fetch(2)
        with self.assertRaises(MemoryAccessError):
            m.store(-1, 0)

    def test_zero_sized_region_rejects_everything(self):
        with self.assertRaises(MemoryAccessError):
            MemoryRegion(0).fetch(0)

    def test_negative_size(self):
        with self.assertRaises(ValueError):
            MemoryRegion(-1)


class TestWordsDictionary(unittest.TestCase):
    def test_define_and_lookup(self):
        W = WordsDictionary()
        w = W.define("double", ["dup", "+"], "n -- 2n")
        self.assertIs(W.lookup("double"), w)
        self.assertEqual(w.body, ("dup", "+"))
        self.assertFalse(w.is_primitive())
        self.assertIsNone(W.lookup("DOUBLE"))

    def test_duplicate_definition(self):
        W = WordsDictionary()
        W.define("x", ["1"])
        with self.assertRaises(DuplicateDefinition):
            W.define("x", ["2"])
        with self.assertRaises(DuplicateDefinition):
            W.add_primitive("x", lambda ctx, W, it, S: None)
        self.assertEqual(W.lookup("x").body, ("1",))

    def test_copy_is_independent(self):
        W = WordsDictionary()
        W.define("a", [])
        C = W.copy()
        C.define("b", [])
        self.assertIn("b", C)
        self.assertNotIn("b", W)

    def test_disasm(self):
        self.assertEqual(Word.definition("sq", ["dup", "*"], "n -- n").disasm(), ": sq ( n -- n ) dup * ;")
        self.assertEqual(Word.definition("nop", []).disasm(), ": nop ;")
        self.assertEqual(Word.primitive("+", lambda *a: None, "n n -- n").disasm(), "primitive + ( n n -- n )")


class TestFormatContext(unittest.TestCase):
    def test_neighbors(self):
        self.assertEqual(format_context(["1", "foo", "2"], 1), "1 >>foo<< 2")
        self.assertEqual(format_context(["foo", "2"], 0), ">>foo<< 2")
        self.assertEqual(format_context(["1", "foo"], 1), "1 >>foo<<")

    def test_past_end_clamps_to_last_token(self):
        self.assertEqual(format_context(["1", "if", "2"], 3), "if >>2<<")

    def test_empty(self):
        self.assertEqual(format_context([], 0), ">><<")


class TestInterpreterEngine(unittest.TestCase):
    """Engine behavior over a hand-built dictionary (no standard library)."""

    def setUp(self) -> None:
        self.W = WordsDictionary()
        self.calls: List[Tuple[int, Optional[int]]] = []

        def prim_add(ctx, W, it, S):
            b = S.pop(); a = S.pop(); S.push(a + b)

        def prim_probe(ctx, W, it, S):
            self.calls.append((ctx.pos, ctx.loop_index))

        def prim_skip(ctx, W, it, S):
            # saute le token suivant
            ctx.cursor.value = ctx.pos + 1

        def prim_stop(ctx, W, it, S):
            ctx.cursor.value = END

        def prim_fail_ahead(ctx, W, it, S):
            raise ctx.fail_at(ctx.pos + 1, ForthError("BOOM"))

        self.W.add_primitive("+", prim_add, "n n -- n")
        self.W.add_primitive("probe", prim_probe)
        self.W.add_primitive("skip", prim_skip)
        self.W.add_primitive("stop", prim_stop)
        self.W.add_primitive("boom", prim_fail_ahead)
        self.vm = Interpreter(words=self.W)

    def test_literals(self):
        for n in (0, 5, -5, 2**40, -(2**70)):
            vm = Interpreter(words=self.W)
            vm.interpret([str(n)])
            self.assertEqual(vm.stack, [n])

    def test_text_overload(self):
        self.vm.interpret("1\t2\n +")
        self.assertEqual(self.vm.stack, [3])

    def test_stack_persists_across_calls(self):
        self.vm.interpret("1")
        self.vm.interpret("2 +")
        self.assertEqual(self.vm.stack, [3])

    def test_unknown_word_has_context(self):
        with self.assertRaises(UnknownWord) as cm:
            self.vm.interpret("1 foo 2")
        self.assertEqual(str(cm.exception), "UNKNOWN WORD 'foo' at: 1 >>foo<< 2")

    def test_cursor_advance_skips_tokens(self):
        self.vm.interpret("skip 1 2")
        self.assertEqual(self.vm.stack, [2])

    def test_end_sentinel_stops_sequence(self):
        self.vm.interpret("1 stop 2 nosuchword")
        self.assertEqual(self.vm.stack, [1])

    def test_primitive_error_context_uses_cursor(self):
        with self.assertRaises(ForthError) as cm:
            self.vm.interpret("1 boom x y")
        self.assertEqual(cm.exception.contexts, ["boom >>x<< y"])

    def test_definition_recursion_and_outer_context(self):
        self.W.define("inner", ["1", "nope"])
        self.W.define("outer", ["inner"])
        with self.assertRaises(UnknownWord) as cm:
            self.vm.interpret("0 outer 9")
        self.assertEqual(cm.exception.contexts, ["1 >>nope<<", ">>inner<<", "0 >>outer<< 9"])

    def test_loop_index_propagates_into_definitions(self):
        self.W.define("p", ["probe"])
        self.vm.interpret(["p"], loop_index=3)
        self.assertEqual(self.calls, [(0, 3)])

    def test_variables_injected_and_fresh(self):
        seen = []
        self.W.add_primitive("vars", lambda ctx, W, it, S: seen.append(ctx.variables))
        self.W.define("dvars", ["vars"])
        ns = {"a": 1}
        self.vm.interpret("vars dvars", variables=ns)
        self.assertIs(seen[0], ns)
        self.assertEqual(seen[1], {})
        self.assertIsNot(seen[1], ns)

    def test_runaway_recursion(self):
        self.W.define("forever", ["forever"])
        with self.assertRaises(ReturnStackOverflow):
            self.vm.interpret("forever")
        self.assertEqual(self.vm._depth, 0)

    def test_clone(self):
        twin = self.vm.clone()
        twin.words.define("only-in-twin", [])
        self.assertNotIn("only-in-twin", self.vm.words)
        shared = self.vm.clone(share_words=True)
        self.assertIs(shared.words, self.vm.words)
        self.assertIsNot(shared.stack, self.vm.stack)

    def test_shared_stack(self):
        s = ForthStack([7])
        vm = Interpreter(s, self.W)
        vm.interpret("1 +")
        self.assertEqual(s, [8])


class TestInterpreterIO(unittest.TestCase):
    def setUp(self) -> None:
        self.vm = Interpreter()

    def test_default_dictionary_is_not_shared(self):
        other = Interpreter()
        self.vm.interpret(": mine 1 ;")
        self.assertNotIn("mine", other.words)

    def test_interpret_line_returns_output(self):
        self.assertEqual(self.vm.interpret_line("65 emit 42 ."), "A42")

    def test_read_line(self):
        self.vm.inp = io.StringIO("abc\n\nlast")
        self.assertEqual(self.vm.read_line(), "abc")
        self.assertEqual(self.vm.read_line(), "")
        self.assertEqual(self.vm.read_line(), "last")
        self.assertIsNone(self.vm.read_line())

    def test_memory_size_config(self):
        self.assertEqual(Interpreter(memory_size=4).memory.size, 4)


class TestDotCommands(unittest.TestCase):
    def setUp(self) -> None:
        self.vm = Interpreter()
        self.out = io.StringIO()

    def run_dot(self, line: str) -> str:
        self.out = io.StringIO()
        self.vm.handle_dot_command(line, self.out)
        return self.out.getvalue()

    def test_stack(self):
        self.vm.interpret("1 2 3")
        self.assertEqual(self.run_dot(".stack"), "<3> 1 2 3 \n")

    def test_see_and_word(self):
        self.vm.interpret(": sq ( n -- n*n ) dup * ;")
        self.assertEqual(self.run_dot(".see sq"), ": sq ( n -- n*n ) dup * ;\n")
        self.assertIn("class=DEFINITION", self.run_dot(".word sq"))
        self.assertIn("unknown: nope", self.run_dot(".see nope"))

    def test_dict_filter(self):
        names = self.run_dot(".dict mem").split()
        self.assertIn("mem@", names)
        self.assertNotIn("dup", names)

    def test_unknown(self):
        self.assertIn("unknown dot-cmd: .zzz", self.run_dot(".zzz"))

    def test_dispatch_covers_dot_cmds(self):
        self.assertEqual(set(self.vm._dotcmd_dispatch()), DOT_CMDS)


def run_tests():
    loader = unittest.TestLoader()
    suite = loader.loadTestsFromModule(sys.modules[__name__])
    runner = unittest.TextTestRunner(verbosity=2)
    runner.run(suite)


if __name__ == "__main__":
    run_tests()
