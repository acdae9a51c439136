#!/usr/bin/env python3
# csforth_stdlib.py
#
# Bibliothèque de mots standard de CSForth :
# - primitives simples (arithmétique, comparaisons, pile, E/S)
# - primitives à lecture anticipée : elles avancent le curseur partagé
#   pour scanner en place ( ... ), : ... ;, if/else/then, do/loop, ." ... "
#   ainsi que variable / @ / $ et bye
# - mots composites définis en Forth à partir des précédents (STDLIB_BOOT_SRC)
#
from __future__ import annotations

import io
import logging
import sys
import unittest
from typing import List, Optional, Tuple, Type

from csforth_vm_core import (
    END, Effects, ExecContext, Interpreter, WordsDictionary,
    ForthError, StackUnderflow, UnknownWord, DivisionByZero, DuplicateDefinition,
    UnterminatedConstruct, UnterminatedComment, UnterminatedDefinition, UnterminatedIf,
    UnterminatedElse, UnterminatedLoop, UnterminatedString,
    MissingName, NestedDefinition, NestedDefinitionInConditional, NestedDefinitionInLoop,
    NameCollidesWithWord, NameCollidesWithVariable, MissingIdentifier, UnknownVariable,
    NotAVariable, IndexOutsideLoop, MemoryAccessError, InputExhausted,
    flag, parse_int, truthy,
)

log = logging.getLogger("csforth.stdlib")

# Mots composites, amorcés en Forth une fois les primitives installées
STDLIB_BOOT_SRC = """
: invert ( n -- !n ) 0 = if -1 else 0 then ;
: != ( n n -- n!=n ) = invert ;
: >= ( n n -- n>=n ) < invert ;
: <= ( n n -- n<=n ) > invert ;
: 0= ( n -- n==0 ) 0 = ;
: cr ( -- ) 10 emit ;
: bl ( -- ) 32 emit ;
: nop ( -- ) ;
: negate ( n -- -n ) 0 swap - ;
: abs ( n -- |n| ) dup 0 < if negate then ;
: empty? ( -- flag ) depth 0= ;
: dump ( -- ) .s cr ;
"""


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _trunc_mod(a: int, b: int) -> int:
    return a - b * _trunc_div(a, b)


# ---- Lecture anticipée (scanners) ----

def _scan_block(
    ctx: ExecContext,
    closer: str,
    opener: str,
    unterminated: Type[UnterminatedConstruct],
    nested: ForthError,
) -> List[str]:
    """
    Collect tokens after the cursor up to the `closer` of the same nesting
    level. `opener` tokens open a nested level that their own `closer`
    closes. The cursor is left on the closer.
    """
    tokens = ctx.tokens
    body: List[str] = []
    depth = 0
    i = ctx.pos + 1
    while True:
        if i >= len(tokens):
            raise ctx.fail_at(i, unterminated())
        tok = tokens[i]
        if tok == ":":
            raise ctx.fail_at(i, nested)
        if tok == closer:
            if depth == 0:
                break
            depth -= 1
        elif tok == opener:
            depth += 1
        body.append(tok)
        i += 1
    ctx.cursor.value = i
    return body


def _scan_if(ctx: ExecContext) -> Tuple[List[str], List[str]]:
    """Split `if ... [else ...] then` into its two branches; else is optional."""
    tokens = ctx.tokens
    if_branch: List[str] = []
    else_branch: List[str] = []
    depth = 0
    i = ctx.pos + 1
    while True:
        if i >= len(tokens):
            raise ctx.fail_at(i, UnterminatedIf())
        tok = tokens[i]
        if tok == ":":
            raise ctx.fail_at(i, NestedDefinitionInConditional(": INSIDE if"))
        if depth == 0 and tok in ("else", "then"):
            break
        if tok == "if":
            depth += 1
        elif tok == "then":
            depth -= 1
        if_branch.append(tok)
        i += 1

    if tokens[i] == "else":
        i += 1
        while True:
            if i >= len(tokens):
                raise ctx.fail_at(i, UnterminatedElse())
            tok = tokens[i]
            if tok == ":":
                raise ctx.fail_at(i, NestedDefinitionInConditional(": INSIDE else"))
            if tok == "then":
                if depth == 0:
                    break
                depth -= 1
            elif tok == "if":
                depth += 1
            else_branch.append(tok)
            i += 1

    ctx.cursor.value = i
    return if_branch, else_branch


def _identifier(ctx: ExecContext) -> str:
    i = ctx.pos + 1
    if i >= len(ctx.tokens):
        raise ctx.fail_at(i, MissingIdentifier())
    ctx.cursor.value = i
    return ctx.tokens[i]


def _variable_name(ctx: ExecContext, W: WordsDictionary) -> str:
    name = _identifier(ctx)
    if name in W:
        raise NotAVariable(f"'{name}' IS A WORD, NOT A VARIABLE")
    if name not in ctx.variables:
        raise UnknownVariable(f"UNKNOWN VARIABLE '{name}'")
    return name


def _int_cell(line: str) -> int:
    # même grammaire que les littéraux du source
    val = parse_int(line)
    if val is None:
        raise ValueError(line)
    return val


def _read_cell(it: Interpreter, convert) -> int:
    """Lit une ligne jusqu'à obtenir une valeur ; relance avec diagnostic sinon."""
    while True:
        line = it.read_line()
        if line is None:
            raise InputExhausted()
        if line == "":
            it.write_line("INPUT EMPTY")
            continue
        try:
            return convert(line)
        except ValueError:
            it.write_line("NOT A NUMBER")


def install_primitives(W: WordsDictionary) -> None:
    def addp(name, prim, effect=Effects.NOP):
        return W.add_primitive(name, prim, effect)

    # Stack basics
    addp("dup", lambda ctx, W, it, S: S.dup(), "n -- n n")
    addp("drop", lambda ctx, W, it, S: S.drop(), Effects.INPUT_ONLY)
    def prim_SWAP(ctx, W, it, S): a = S.pop(); b = S.pop(); S.push(a); S.push(b)
    addp("swap", prim_SWAP, "a b -- b a")
    def prim_OVER(ctx, W, it, S): a = S.pop(); b = S.pop(); S.extend([b, a, b])
    addp("over", prim_OVER, "a b -- a b a")
    def prim_ROT(ctx, W, it, S): a = S.pop(); b = S.pop(); c = S.pop(); S.extend([b, a, c])
    addp("rot", prim_ROT, "a b c -- b c a")
    addp("depth", lambda ctx, W, it, S: S.push(len(S)), Effects.OUTPUT_ONLY)
    addp("empty", lambda ctx, W, it, S: S.push(flag(S.empty())), Effects.OUTPUT_ONLY)

    # Arithmetic
    def prim_ADD(ctx, W, it, S):
        b = S.pop()
        a = S.pop()
        S.push(a + b)
    addp("+", prim_ADD, "a b -- a+b")
    def prim_SUB(ctx, W, it, S): b = S.pop(); a = S.pop(); S.push(a - b)
    addp("-", prim_SUB, "a b -- a-b")
    addp("*", lambda ctx, W, it, S: S.push(S.pop() * S.pop()), "a b -- a*b")
    def prim_DIV(ctx, W, it, S):
        b = S.pop(); a = S.pop()
        if b == 0:
            raise DivisionByZero()
        S.push(_trunc_div(a, b))
    addp("/", prim_DIV, "a b -- a/b")
    def prim_MOD(ctx, W, it, S):
        b = S.pop(); a = S.pop()
        if b == 0:
            raise DivisionByZero()
        S.push(_trunc_mod(a, b))
    addp("mod", prim_MOD, "a b -- a%b")

    # Logic / comparison (true = -1, false = 0)
    def prim_EQ(ctx, W, it, S): b = S.pop(); a = S.pop(); S.push(flag(a == b))
    def prim_GT(ctx, W, it, S): b = S.pop(); a = S.pop(); S.push(flag(a > b))
    def prim_LT(ctx, W, it, S): b = S.pop(); a = S.pop(); S.push(flag(a < b))
    addp("=", prim_EQ, "n n -- n==n")
    addp(">", prim_GT, "n n -- n>n")
    addp("<", prim_LT, "n n -- n<n")
    def prim_AND(ctx, W, it, S): b = truthy(S.pop()); a = truthy(S.pop()); S.push(flag(a and b))
    def prim_OR(ctx, W, it, S): b = truthy(S.pop()); a = truthy(S.pop()); S.push(flag(a or b))
    addp("and", prim_AND, "f f -- f")
    addp("or", prim_OR, "f f -- f")

    # Output & input
    addp("emit", lambda ctx, W, it, S: it.write_char(chr(max(0, min(255, S.pop())))), Effects.INPUT_ONLY)
    addp(".", lambda ctx, W, it, S: it.write_int(S.pop()), Effects.INPUT_ONLY)
    addp(".s", lambda ctx, W, it, S: it.emit(f"<{len(S)}> " + "".join(f"{c} " for c in S)))
    addp("input", lambda ctx, W, it, S: S.push(_read_cell(it, lambda line: ord(line[0]))), Effects.OUTPUT_ONLY)
    addp("inputn", lambda ctx, W, it, S: S.push(_read_cell(it, _int_cell)), Effects.OUTPUT_ONLY)

    # Memory cells (bounds-checked against the interpreter's region)
    addp("mem@", lambda ctx, W, it, S: S.push(ctx.memory.fetch(S.pop())), "addr -- n")
    def prim_MEM_STORE(ctx, W, it, S):
        addr = S.pop(); val = S.pop()
        ctx.memory.store(addr, val)
    addp("mem!", prim_MEM_STORE, "n addr --")
    addp("memsize", lambda ctx, W, it, S: S.push(ctx.memory.size), Effects.OUTPUT_ONLY)

    # Comment ( ... )
    def prim_PAREN(ctx, W, it, S):
        tokens = ctx.tokens
        i = ctx.pos
        while i < len(tokens) and tokens[i] != ")":
            i += 1
        if i >= len(tokens):
            raise ctx.fail_at(i, UnterminatedComment())
        ctx.cursor.value = i
    addp("(", prim_PAREN)

    # Definition : name ( effect ) body ;
    def prim_COLON(ctx, W, it, S):
        tokens = ctx.tokens
        fn_tokens: List[str] = []
        i = ctx.pos + 1
        while i < len(tokens) and tokens[i] != ";":
            if tokens[i] == ":":
                raise ctx.fail_at(i, NestedDefinition())
            fn_tokens.append(tokens[i])
            i += 1
        if i >= len(tokens):
            raise ctx.fail_at(i, UnterminatedDefinition())
        ctx.cursor.value = i
        if not fn_tokens:
            raise MissingName()

        name, body = fn_tokens[0], fn_tokens[1:]
        effect = ""
        if body and body[0] == "(":
            if ")" not in body:
                raise UnterminatedComment()
            j = body.index(")")
            effect = " ".join(body[1:j]).strip()
            body = body[j + 1:]

        if name in ctx.variables:
            raise NameCollidesWithVariable(f"'{name}' IS ALREADY A VARIABLE")
        W.define(name, body, effect)
    addp(":", prim_COLON)

    # if ... else ... then
    def prim_IF(ctx, W, it, S):
        if_branch, else_branch = _scan_if(ctx)
        if truthy(S.pop()):
            it.interpret(if_branch, None, ctx.loop_index)
        else:
            it.interpret(else_branch, None, ctx.loop_index)
    addp("if", prim_IF, Effects.INPUT_ONLY)

    # n do ... loop : un seul compteur sur la pile (pas de forme limite/départ)
    def prim_DO(ctx, W, it, S):
        body = _scan_block(ctx, "loop", "do", UnterminatedLoop, NestedDefinitionInLoop())
        count = S.pop()
        for k in range(count):
            it.interpret(body, None, k)
    addp("do", prim_DO, Effects.INPUT_ONLY)

    def prim_INDEX(ctx, W, it, S):
        if ctx.loop_index is None:
            raise IndexOutsideLoop()
        S.push(ctx.loop_index)
    addp("index", prim_INDEX, Effects.OUTPUT_ONLY)

    # ." string "
    def prim_DOT_QUOTE(ctx, W, it, S):
        tokens = ctx.tokens
        parts: List[str] = []
        i = ctx.pos + 1
        while i < len(tokens) and tokens[i] != '"':
            parts.append(tokens[i])
            i += 1
        if i >= len(tokens):
            raise ctx.fail_at(i, UnterminatedString())
        ctx.cursor.value = i
        it.write_line(" ".join(parts).strip())
    addp('."', prim_DOT_QUOTE)

    # Variables : variable name / @ name / $ name
    def prim_VARIABLE(ctx, W, it, S):
        name = _identifier(ctx)
        if name in W:
            raise NameCollidesWithWord(f"'{name}' IS ALREADY A WORD")
        if name in ctx.variables:
            raise NameCollidesWithVariable(f"'{name}' IS ALREADY A VARIABLE")
        ctx.variables[name] = S.pop()
        log.debug("variable %s = %d", name, ctx.variables[name])
    addp("variable", prim_VARIABLE, Effects.INPUT_ONLY)

    def prim_FETCH(ctx, W, it, S):
        S.push(ctx.variables[_variable_name(ctx, W)])
    addp("@", prim_FETCH, Effects.OUTPUT_ONLY)

    def prim_STORE(ctx, W, it, S):
        name = _variable_name(ctx, W)
        ctx.variables[name] = S.pop()
    addp("$", prim_STORE, Effects.INPUT_ONLY)

    # bye : fin de la séquence courante
    def prim_BYE(ctx, W, it, S):
        ctx.cursor.value = END
    addp("bye", prim_BYE)


def standard_words() -> WordsDictionary:
    """Build a fresh dictionary seeded with the standard word library."""
    W = WordsDictionary()
    install_primitives(W)
    Interpreter(words=W, memory_size=0).interpret(STDLIB_BOOT_SRC)
    return W


####################################################################
# Tests de la bibliothèque standard

class _ForthCase(unittest.TestCase):
    def setUp(self) -> None:
        self.vm = Interpreter()
        self.out = io.StringIO()

    def feed(self, src: str, inp: Optional[str] = None) -> str:
        return self.vm.interpret_line(src, out=self.out, inp=inp)


class TestArithmetic(_ForthCase):
    def test_basic_ops(self):
        self.assertEqual(self.feed("7 3 + . 7 3 - . 7 3 * . 7 3 / . 7 3 mod ."), "1042121")

    def test_truncating_division(self):
        for a, b, q, r in [(7, 2, 3, 1), (-7, 2, -3, -1), (7, -2, -3, 1), (-7, -2, 3, -1)]:
            vm = Interpreter()
            vm.interpret(f"{a} {b} / {a} {b} mod")
            self.assertEqual(vm.stack, [q, r], (a, b))

    def test_division_by_zero(self):
        with self.assertRaises(DivisionByZero):
            self.feed("5 0 /")
        with self.assertRaises(DivisionByZero):
            self.feed("5 0 mod")

    def test_underflow_for_every_popping_primitive(self):
        popping = ["+", "-", "*", "/", "mod", "=", ">", "<", "and", "or", "drop",
                   "dup", "swap", "over", "rot", "emit", ".", "if", "mem@", "mem!"]
        for word in popping:
            vm = Interpreter()
            src = word + (" 1 else 2 then" if word == "if" else "")
            with self.assertRaises(StackUnderflow, msg=word):
                vm.interpret(src)

    def test_underflow_through_definitions_and_loops(self):
        with self.assertRaises(StackUnderflow):
            self.feed("do 1 loop")
        with self.assertRaises(StackUnderflow):
            self.feed("variable v")
        with self.assertRaises(StackUnderflow):
            self.feed("invert")


class TestLogicAndComparison(_ForthCase):
    def test_comparisons(self):
        self.vm.interpret("1 2 < 2 1 < 2 2 = 3 2 > 1 2 !=  2 2 >= 1 2 <= 3 2 <=")
        self.assertEqual(self.vm.stack, [-1, 0, -1, -1, -1, -1, -1, 0])

    def test_and_or_use_nonzero_rule(self):
        self.vm.interpret("5 7 and 5 0 and 0 3 or 0 0 or")
        self.assertEqual(self.vm.stack, [-1, 0, -1, 0])

    def test_invert_and_zero_equal(self):
        self.vm.interpret("0 invert 9 invert 0 0= 4 0=")
        self.assertEqual(self.vm.stack, [-1, 0, -1, 0])


class TestStackWords(_ForthCase):
    def test_shuffles(self):
        self.vm.interpret("1 2 swap 3 over 4 5 6 rot")
        self.assertEqual(self.vm.stack, [2, 1, 3, 1, 5, 6, 4])

    def test_depth_empty(self):
        self.vm.interpret("empty? empty 1 2 depth")
        self.assertEqual(self.vm.stack, [-1, 0, 1, 2, 4])

    def test_dot_s_and_dump(self):
        self.assertEqual(self.feed("1 2 dump"), "<2> 1 2 \n")
        self.assertEqual(self.vm.stack, [1, 2])

    def test_negate_abs(self):
        self.vm.interpret("5 negate -3 abs 4 abs")
        self.assertEqual(self.vm.stack, [-5, 3, 4])


class TestOutput(_ForthCase):
    def test_emit_clamps_to_byte(self):
        self.assertEqual(self.feed("72 emit 105 emit 300 emit -5 emit"), "Hi\xff\x00")

    def test_cr_bl_nop(self):
        self.assertEqual(self.feed("1 . bl 2 . cr nop"), "1 2\n")

    def test_string_literal(self):
        self.assertEqual(self.feed('." hello   world " 1 .'), "hello world\n1")
        self.assertEqual(self.feed('." "'), "\n")

    def test_unterminated_string(self):
        with self.assertRaises(UnterminatedString):
            self.feed('." oops')


class TestInput(_ForthCase):
    def test_input_takes_first_char_code(self):
        self.feed("input", inp="abc\n")
        self.assertEqual(self.vm.stack, [97])

    def test_inputn_retries_with_diagnostics(self):
        out = self.feed("inputn .", inp="\nxyz\n42\n")
        self.assertEqual(out, "INPUT EMPTY\nNOT A NUMBER\n42")

    def test_input_retries_on_empty(self):
        out = self.feed("input", inp="\nZ\n")
        self.assertEqual(out, "INPUT EMPTY\n")
        self.assertEqual(self.vm.stack, [90])

    def test_inputn_uses_literal_grammar(self):
        out = self.feed("inputn .", inp="1_000\n 42\n+7\n")
        self.assertEqual(out, "NOT A NUMBER\nNOT A NUMBER\n7")

    def test_input_exhausted(self):
        with self.assertRaises(InputExhausted):
            self.feed("inputn", inp="nope\n")


class TestComment(_ForthCase):
    def test_comment_skipped(self):
        self.vm.interpret("1 ( 2 3 bogus ) 4")
        self.assertEqual(self.vm.stack, [1, 4])

    def test_unterminated_comment(self):
        with self.assertRaises(UnterminatedComment) as cm:
            self.vm.interpret("1 ( 2 3")
        self.assertEqual(self.vm.stack, [1])
        self.assertIn("2 >>3<<", str(cm.exception))


class TestDefinitions(_ForthCase):
    def test_double(self):
        self.assertEqual(self.feed(": double dup + ;  5 double ."), "10")

    def test_effect_comment_captured(self):
        self.feed(": sq ( n -- n*n ) dup * ;")
        w = self.vm.words.lookup("sq")
        self.assertEqual(w.effect, "n -- n*n")
        self.assertEqual(w.body, ("dup", "*"))

    def test_duplicate_definition(self):
        self.feed(": x 1 ;")
        with self.assertRaises(DuplicateDefinition):
            self.feed(": x 2 ;")
        self.vm.interpret("x")
        self.assertEqual(self.vm.stack, [1])

    def test_cannot_redefine_builtin(self):
        with self.assertRaises(DuplicateDefinition):
            self.feed(": dup 1 ;")

    def test_missing_name(self):
        with self.assertRaises(MissingName):
            self.feed(": ;")

    def test_nested_definition(self):
        with self.assertRaises(NestedDefinition):
            self.feed(": a : b ; ;")
        self.assertNotIn("a", self.vm.words)

    def test_unterminated_definition(self):
        n = len(self.vm.words)
        with self.assertRaises(UnterminatedDefinition):
            self.feed(": a 1 2")
        self.assertEqual(len(self.vm.words), n)

    def test_unterminated_effect_comment(self):
        with self.assertRaises(UnterminatedComment):
            self.feed(": a ( n -- 1 ;")

    def test_definition_calls_definition(self):
        self.assertEqual(self.feed(": sq dup * ; : quad sq sq ; 3 quad ."), "81")

    def test_body_runs_in_fresh_namespace(self):
        with self.assertRaises(UnknownVariable):
            self.feed("1 variable v : peek @ v ; peek")

    def test_name_collides_with_variable(self):
        with self.assertRaises(NameCollidesWithVariable):
            self.feed("1 variable v : v 2 ;")


class TestConditional(_ForthCase):
    def test_branches(self):
        self.assertEqual(self.feed("1 if 111 else 222 then ."), "111")
        self.assertEqual(self.feed("0 if 111 else 222 then ."), "222")
        self.assertEqual(self.feed("-5 if 1 else 2 then ."), "1")

    def test_nested_if_in_if_branch(self):
        src = "{} {} if if 1 else 2 then else 3 then ."
        self.assertEqual(Interpreter().interpret_line(src.format(1, 1)), "1")
        self.assertEqual(Interpreter().interpret_line(src.format(0, 1)), "2")
        self.assertEqual(Interpreter().interpret_line(src.format(1, 0)), "3")

    def test_nested_if_in_else_branch(self):
        src = "{} {} if 1 else if 2 else 3 then then ."
        self.assertEqual(Interpreter().interpret_line(src.format(1, 0)), "2")
        self.assertEqual(Interpreter().interpret_line(src.format(0, 0)), "3")

    def test_if_without_else(self):
        self.assertEqual(self.feed("1 if 7 . then 0 if 8 . then 9 ."), "79")

    def test_unterminated_if_leaves_stack(self):
        with self.assertRaises(UnterminatedIf):
            self.feed("1 if 111")
        self.assertEqual(self.vm.stack, [1])

    def test_unterminated_else(self):
        with self.assertRaises(UnterminatedElse):
            self.feed("1 if 2 else 3")
        self.assertEqual(self.vm.stack, [1])

    def test_definition_inside_conditional(self):
        with self.assertRaises(NestedDefinitionInConditional):
            self.feed("1 if : a ; else 2 then")
        with self.assertRaises(NestedDefinitionInConditional):
            self.feed("1 if 2 else : a ; then")

    def test_branch_error_context(self):
        with self.assertRaises(UnknownWord) as cm:
            self.feed("1 if nope else 2 then")
        self.assertEqual(cm.exception.contexts, [">>nope<<", "2 >>then<<"])


class TestLoops(_ForthCase):
    def test_index_sequence(self):
        self.assertEqual(self.feed("3 do index . loop"), "012")

    def test_single_count_two_cell_form(self):
        # do ne prend qu'un compteur : "3 0 do" boucle zéro fois et laisse 3
        self.assertEqual(self.feed("3 0 do index . loop"), "")
        self.assertEqual(self.vm.stack, [3])

    def test_zero_and_negative_counts(self):
        self.assertEqual(self.feed("0 do index . loop -4 do index . loop 5 ."), "5")

    def test_nested_loops_shadow_index(self):
        self.assertEqual(self.feed("2 do index . 3 do index . loop loop"), "00121012")

    def test_index_outside_loop(self):
        with self.assertRaises(IndexOutsideLoop):
            self.feed("index")

    def test_index_visible_in_called_definition(self):
        self.assertEqual(self.feed(": show index . ; 3 do show loop"), "012")

    def test_unterminated_loop(self):
        with self.assertRaises(UnterminatedLoop):
            self.feed("3 do index .")
        self.assertEqual(self.vm.stack, [3])

    def test_definition_inside_loop(self):
        with self.assertRaises(NestedDefinitionInLoop):
            self.feed("3 do : a ; loop")

    def test_if_inside_loop(self):
        self.assertEqual(self.feed("4 do index 2 mod 0= if index . then loop"), "02")

    def test_variable_does_not_survive_iteration(self):
        with self.assertRaises(NameCollidesWithVariable):
            self.feed("2 do index variable i 1 variable i loop")
        self.assertEqual(Interpreter().interpret_line("2 do index variable i @ i . loop"), "01")


class TestVariables(_ForthCase):
    def test_declare_write_read(self):
        self.assertEqual(self.feed("7 variable v 5 $ v @ v ."), "5")

    def test_unknown_variable(self):
        with self.assertRaises(UnknownVariable):
            self.feed("@ v")
        with self.assertRaises(UnknownVariable):
            self.feed("1 $ v")

    def test_missing_identifier(self):
        for src in ("1 variable", "@", "1 $"):
            with self.assertRaises(MissingIdentifier, msg=src):
                Interpreter().interpret(src)

    def test_name_collides_with_word(self):
        with self.assertRaises(NameCollidesWithWord):
            self.feed("1 variable dup")

    def test_redeclaration(self):
        with self.assertRaises(NameCollidesWithVariable):
            self.feed("1 variable v 2 variable v")

    def test_not_a_variable(self):
        with self.assertRaises(NotAVariable):
            self.feed("@ dup")
        with self.assertRaises(NotAVariable):
            self.feed("1 $ dup")

    def test_namespace_is_per_call(self):
        self.feed("1 variable v")
        with self.assertRaises(UnknownVariable):
            self.feed("@ v")

    def test_injected_namespace_persists(self):
        ns = {}
        self.vm.interpret("3 variable v", variables=ns)
        self.vm.interpret("@ v 1 + $ v", variables=ns)
        self.assertEqual(ns, {"v": 4})


class TestMemoryWords(_ForthCase):
    def test_store_fetch(self):
        self.assertEqual(self.feed("42 3 mem! 3 mem@ . 0 mem@ . memsize ."), "420128")

    def test_out_of_range(self):
        with self.assertRaises(MemoryAccessError):
            self.feed("128 mem@")
        with self.assertRaises(MemoryAccessError):
            Interpreter(memory_size=0).interpret("0 mem@")


class TestBye(_ForthCase):
    def test_bye_stops_program(self):
        self.assertEqual(self.feed("1 . bye 2 . nosuchword"), "1")

    def test_bye_only_ends_enclosing_sequence(self):
        self.assertEqual(self.feed("1 if 1 . bye 2 . else 3 . then 4 ."), "14")


class TestStandardWords(unittest.TestCase):
    def test_fresh_dictionary_each_call(self):
        self.assertIsNot(standard_words(), standard_words())

    def test_composites_are_definitions(self):
        W = standard_words()
        for name in ("invert", "!=", ">=", "<=", "cr", "nop", "0=", "empty?", "dump"):
            self.assertFalse(W.lookup(name).is_primitive(), name)
        self.assertEqual(W.lookup("invert").body, ("0", "=", "if", "-1", "else", "0", "then"))
        self.assertEqual(W.lookup("nop").body, ())


def run_tests():
    loader = unittest.TestLoader()
    suite = loader.loadTestsFromModule(sys.modules[__name__])
    runner = unittest.TextTestRunner(verbosity=2)
    runner.run(suite)


if __name__ == "__main__":
    run_tests()
