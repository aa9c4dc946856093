"""
==============================================================================
Expression Evaluator Module
==============================================================================

Small expression language used by FUNCTION and IF blocks, plus the
``{{ name }}`` interpolation used by SELECT_OPTION, RUN and HTTP blocks.

Expressions only see the binding table they are given: identifiers are
resolved against it and nothing else. There is no attribute access to
host objects; member access is limited to ``.length`` and a fixed set of
string/list methods.

Grammar (lowest to highest precedence):
--------------------------------------
    ternary     cond ? a : b
    or          a || b, a or b
    and         a && b, a and b
    equality    == != === !==
    comparison  < > <= >=
    additive    + -
    factor      * / %
    unary       ! - not
    postfix     a.length, a.method(...), a[i], fn(...)
    primary     numbers, 'strings', "strings", true, false, null,
                undefined, [lists], (groups), identifiers

Usage:
------
    evaluate("barcode == '123' && quantity != null", variables)
    interpolate("http://host/?code={{ barcode }}", variables)

==============================================================================
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from scanflow.core import EvaluationError


# Module logger
logger = logging.getLogger(__name__)


@dataclass
class Token:
    kind: str
    value: str
    col: int


KEYWORDS = {"true", "false", "null", "undefined", "and", "or", "not"}


TOKEN_RE = re.compile(
    r"""
    (?P<NUMBER>\d+(?:\.\d+)?)
  | (?P<STRING>"(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*')
  | (?P<OP>===|!==|==|!=|<=|>=|&&|\|\||[+\-*/%<>!()\[\],.?:])
  | (?P<ID>[A-Za-z_$][A-Za-z0-9_$]*)
  | (?P<SKIP>\s+)
  | (?P<MISMATCH>.)
    """,
    re.VERBOSE,
)

ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"'}


def tokenize(source: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    while pos < len(source):
        m = TOKEN_RE.match(source, pos)
        kind = m.lastgroup or "MISMATCH"
        value = m.group(0)
        if kind == "SKIP":
            pass
        elif kind == "ID" and value in KEYWORDS:
            tokens.append(Token("KW", value, pos + 1))
        elif kind == "MISMATCH":
            raise EvaluationError(f"Unexpected character {value!r} at column {pos + 1}", source)
        else:
            tokens.append(Token(kind, value, pos + 1))
        pos = m.end()
    tokens.append(Token("EOF", "", pos + 1))
    return tokens


# =============================================================================
# SYNTAX TREE
# =============================================================================

@dataclass
class Expr:
    pass


@dataclass
class Literal(Expr):
    value: Any


@dataclass
class Var(Expr):
    name: str


@dataclass
class Unary(Expr):
    op: str
    expr: Expr


@dataclass
class Binary(Expr):
    left: Expr
    op: str
    right: Expr


@dataclass
class Ternary(Expr):
    cond: Expr
    then: Expr
    otherwise: Expr


@dataclass
class Member(Expr):
    obj: Expr
    name: str


@dataclass
class Index(Expr):
    obj: Expr
    index: Expr


@dataclass
class Call(Expr):
    callee: Expr
    args: List[Expr]


@dataclass
class ListLiteral(Expr):
    items: List[Expr]


# =============================================================================
# PARSER
# =============================================================================

class Parser:
    def __init__(self, tokens: Sequence[Token], source: str):
        self.tokens = list(tokens)
        self.source = source
        self.i = 0

    def cur(self) -> Token:
        return self.tokens[self.i]

    def match(self, kind: str, *values: str) -> Optional[Token]:
        t = self.cur()
        if t.kind != kind:
            return None
        if values and t.value not in values:
            return None
        self.i += 1
        return t

    def expect(self, kind: str, value: Optional[str] = None) -> Token:
        t = self.cur()
        if t.kind != kind or (value is not None and t.value != value):
            want = value or kind
            got = t.value or t.kind
            raise EvaluationError(f"Expected {want!r} at column {t.col}, got {got!r}", self.source)
        self.i += 1
        return t

    def parse(self) -> Expr:
        expr = self.parse_ternary()
        if self.cur().kind != "EOF":
            t = self.cur()
            raise EvaluationError(f"Unexpected {t.value!r} at column {t.col}", self.source)
        return expr

    def parse_ternary(self) -> Expr:
        cond = self.parse_or()
        if self.match("OP", "?"):
            then = self.parse_ternary()
            self.expect("OP", ":")
            otherwise = self.parse_ternary()
            return Ternary(cond, then, otherwise)
        return cond

    def parse_or(self) -> Expr:
        expr = self.parse_and()
        while self.match("OP", "||") or self.match("KW", "or"):
            expr = Binary(expr, "||", self.parse_and())
        return expr

    def parse_and(self) -> Expr:
        expr = self.parse_eq()
        while self.match("OP", "&&") or self.match("KW", "and"):
            expr = Binary(expr, "&&", self.parse_eq())
        return expr

    def parse_eq(self) -> Expr:
        expr = self.parse_cmp()
        while True:
            t = self.match("OP", "==", "!=", "===", "!==")
            if not t:
                return expr
            expr = Binary(expr, t.value, self.parse_cmp())

    def parse_cmp(self) -> Expr:
        expr = self.parse_term()
        while True:
            t = self.match("OP", "<", ">", "<=", ">=")
            if not t:
                return expr
            expr = Binary(expr, t.value, self.parse_term())

    def parse_term(self) -> Expr:
        expr = self.parse_factor()
        while True:
            t = self.match("OP", "+", "-")
            if not t:
                return expr
            expr = Binary(expr, t.value, self.parse_factor())

    def parse_factor(self) -> Expr:
        expr = self.parse_unary()
        while True:
            t = self.match("OP", "*", "/", "%")
            if not t:
                return expr
            expr = Binary(expr, t.value, self.parse_unary())

    def parse_unary(self) -> Expr:
        t = self.match("OP", "!", "-") or self.match("KW", "not")
        if t:
            return Unary("-" if t.value == "-" else "!", self.parse_unary())
        return self.parse_postfix()

    def parse_postfix(self) -> Expr:
        expr = self.parse_primary()
        while True:
            if self.match("OP", "."):
                expr = Member(expr, self.expect("ID").value)
            elif self.match("OP", "["):
                expr = Index(expr, self.parse_ternary())
                self.expect("OP", "]")
            elif self.match("OP", "("):
                if not isinstance(expr, (Var, Member)):
                    raise EvaluationError(f"Only named calls are supported near column {self.cur().col}", self.source)
                expr = Call(expr, self.parse_args(")"))
            else:
                return expr

    def parse_args(self, closing: str) -> List[Expr]:
        args: List[Expr] = []
        if self.match("OP", closing):
            return args
        while True:
            args.append(self.parse_ternary())
            if self.match("OP", closing):
                return args
            self.expect("OP", ",")

    def parse_primary(self) -> Expr:
        t = self.cur()
        if self.match("NUMBER"):
            return Literal(float(t.value) if "." in t.value else int(t.value))
        if self.match("STRING"):
            return Literal(_unquote(t.value))
        if self.match("KW", "true"):
            return Literal(True)
        if self.match("KW", "false"):
            return Literal(False)
        if self.match("KW", "null", "undefined"):
            return Literal(None)
        if self.match("ID"):
            return Var(t.value)
        if self.match("OP", "("):
            expr = self.parse_ternary()
            self.expect("OP", ")")
            return expr
        if self.match("OP", "["):
            return ListLiteral(self.parse_args("]"))
        got = t.value or "end of expression"
        raise EvaluationError(f"Unexpected {got!r} at column {t.col}", self.source)


def _unquote(raw: str) -> str:
    body = raw[1:-1]
    return re.sub(r"\\(.)", lambda m: ESCAPES.get(m.group(1), m.group(1)), body)


@lru_cache(maxsize=256)
def parse_expression(source: str) -> Expr:
    """Parse an expression into a syntax tree (cached per source text)."""
    if not source or not source.strip():
        raise EvaluationError("Empty expression", source)
    try:
        return Parser(tokenize(source), source).parse()
    except RecursionError as e:
        raise EvaluationError("Expression is nested too deeply", source) from e


# =============================================================================
# VALUE SEMANTICS
# =============================================================================

def to_text(value: Any) -> str:
    """Render an expression value as output text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(v) for v in value)
    return str(value)


def truthy(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


def to_number(value: Any) -> float:
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return 0
        try:
            return int(text)
        except ValueError:
            try:
                return float(text)
            except ValueError:
                return math.nan
    raise EvaluationError(f"Cannot convert {type(value).__name__} to number")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def loose_equals(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    if isinstance(a, list) or isinstance(b, list):
        return a is b
    return to_number(a) == to_number(b)


def strict_equals(a: Any, b: Any) -> bool:
    if _is_number(a) and _is_number(b):
        return a == b
    if type(a) is not type(b):
        return False
    if isinstance(a, list):
        return a is b
    return a == b


def _index(obj: Any, key: Any) -> Any:
    if isinstance(obj, (str, list)):
        if not _is_number(key) or int(key) != key:
            return None
        position = int(key)
        if 0 <= position < len(obj):
            return obj[position]
        return None
    if obj is None:
        raise EvaluationError("Cannot read index of null")
    return None


def _substr(text: str, start: Any = 0, length: Any = None) -> str:
    begin = int(to_number(start))
    if begin < 0:
        begin = max(len(text) + begin, 0)
    if length is None:
        return text[begin:]
    return text[begin:begin + max(int(to_number(length)), 0)]


def _substring(text: str, start: Any = 0, end: Any = None) -> str:
    begin = max(int(to_number(start)), 0)
    if end is None:
        return text[begin:]
    stop = max(int(to_number(end)), 0)
    return text[min(begin, stop):max(begin, stop)]


def _slice(seq: Any, start: Any = 0, end: Any = None) -> Any:
    begin = int(to_number(start))
    if end is None:
        return seq[begin:]
    return seq[begin:int(to_number(end))]


STRING_METHODS: Dict[str, Callable[..., Any]] = {
    "substr": _substr,
    "substring": _substring,
    "slice": _slice,
    "charAt": lambda s, i=0: s[int(to_number(i))] if 0 <= int(to_number(i)) < len(s) else "",
    "toUpperCase": lambda s: s.upper(),
    "toLowerCase": lambda s: s.lower(),
    "trim": lambda s: s.strip(),
    "startsWith": lambda s, p: s.startswith(to_text(p)),
    "endsWith": lambda s, p: s.endswith(to_text(p)),
    "includes": lambda s, p: to_text(p) in s,
    "indexOf": lambda s, p: s.find(to_text(p)),
    "replace": lambda s, old, new: s.replace(to_text(old), to_text(new), 1),
    "split": lambda s, sep: s.split(to_text(sep)) if to_text(sep) else list(s),
    "padStart": lambda s, n, fill=" ": s.rjust(int(to_number(n)), (to_text(fill) or " ")[0]),
}

LIST_METHODS: Dict[str, Callable[..., Any]] = {
    "includes": lambda seq, item: any(strict_equals(x, item) for x in seq),
    "indexOf": lambda seq, item: next((i for i, x in enumerate(seq) if strict_equals(x, item)), -1),
    "join": lambda seq, sep=",": to_text(sep).join(to_text(x) for x in seq),
    "slice": _slice,
}


def _parse_int(value: Any) -> Any:
    m = re.match(r"\s*([+-]?\d+)", to_text(value))
    return int(m.group(1)) if m else math.nan


def _parse_float(value: Any) -> Any:
    m = re.match(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)", to_text(value))
    return float(m.group(1)) if m else math.nan


BUILTINS: Dict[str, Callable[..., Any]] = {
    "len": lambda v: len(v) if isinstance(v, (str, list)) else 0,
    "upper": lambda v: to_text(v).upper(),
    "lower": lambda v: to_text(v).lower(),
    "trim": lambda v: to_text(v).strip(),
    "number": to_number,
    "Number": to_number,
    "string": to_text,
    "String": to_text,
    "parseInt": _parse_int,
    "parseFloat": _parse_float,
    "isNaN": lambda v: math.isnan(to_number(v)),
}


# =============================================================================
# EVALUATOR
# =============================================================================

class Evaluator:
    """
    Tree-walking evaluator bound to a single variable table.

    Args:
        bindings: Variable name to value mapping visible to the expression
    """

    def __init__(self, bindings: Mapping[str, Any]):
        self.bindings = bindings

    def eval(self, expr: Expr) -> Any:
        if isinstance(expr, Literal):
            return expr.value
        if isinstance(expr, Var):
            if expr.name not in self.bindings:
                raise EvaluationError(f"Unknown identifier: {expr.name}")
            return self.bindings[expr.name]
        if isinstance(expr, ListLiteral):
            return [self.eval(item) for item in expr.items]
        if isinstance(expr, Unary):
            v = self.eval(expr.expr)
            if expr.op == "-":
                return -to_number(v)
            return not truthy(v)
        if isinstance(expr, Ternary):
            return self.eval(expr.then) if truthy(self.eval(expr.cond)) else self.eval(expr.otherwise)
        if isinstance(expr, Binary):
            return self.eval_binary(expr)
        if isinstance(expr, Member):
            obj = self.eval(expr.obj)
            if expr.name == "length" and isinstance(obj, (str, list)):
                return len(obj)
            if obj is None:
                raise EvaluationError(f"Cannot read property {expr.name!r} of null")
            return None
        if isinstance(expr, Index):
            return _index(self.eval(expr.obj), self.eval(expr.index))
        if isinstance(expr, Call):
            return self.eval_call(expr)
        raise EvaluationError(f"Unsupported expression {expr!r}")

    def eval_binary(self, expr: Binary) -> Any:
        a = self.eval(expr.left)
        if expr.op == "&&":
            return self.eval(expr.right) if truthy(a) else a
        if expr.op == "||":
            return a if truthy(a) else self.eval(expr.right)
        b = self.eval(expr.right)
        if expr.op == "+":
            if isinstance(a, str) or isinstance(b, str):
                return to_text(a) + to_text(b)
            return to_number(a) + to_number(b)
        if expr.op == "==":
            return loose_equals(a, b)
        if expr.op == "!=":
            return not loose_equals(a, b)
        if expr.op == "===":
            return strict_equals(a, b)
        if expr.op == "!==":
            return not strict_equals(a, b)
        if expr.op in {"<", ">", "<=", ">="}:
            if not (isinstance(a, str) and isinstance(b, str)):
                a, b = to_number(a), to_number(b)
            if expr.op == "<":
                return a < b
            if expr.op == ">":
                return a > b
            if expr.op == "<=":
                return a <= b
            return a >= b
        x, y = to_number(a), to_number(b)
        if expr.op == "-":
            return x - y
        if expr.op == "*":
            return x * y
        if y == 0:
            raise EvaluationError("Division by zero")
        if expr.op == "/":
            result = x / y
            return int(result) if result.is_integer() else result
        return math.fmod(x, y) if isinstance(x, float) or isinstance(y, float) else int(math.fmod(x, y))

    def eval_call(self, expr: Call) -> Any:
        args = [self.eval(a) for a in expr.args]
        if isinstance(expr.callee, Var):
            fn = BUILTINS.get(expr.callee.name)
            if fn is None:
                raise EvaluationError(f"Unknown function: {expr.callee.name}")
            return self.apply(expr.callee.name, fn, args)
        obj = self.eval(expr.callee.obj)
        name = expr.callee.name
        if isinstance(obj, str) and name in STRING_METHODS:
            return self.apply(name, STRING_METHODS[name], [obj] + args)
        if isinstance(obj, list) and name in LIST_METHODS:
            return self.apply(name, LIST_METHODS[name], [obj] + args)
        raise EvaluationError(f"Unknown method: {name}")

    @staticmethod
    def apply(name: str, fn: Callable[..., Any], args: List[Any]) -> Any:
        try:
            return fn(*args)
        except TypeError as e:
            raise EvaluationError(f"Bad arguments for {name}(): {e}")


def evaluate(expression: str, variables: Mapping[str, Any]) -> Any:
    """
    Evaluate an expression against a variable table.

    Args:
        expression: Expression source text
        variables: Binding table; the only state the expression can read

    Returns:
        Evaluated value (str, int, float, bool, list or None)

    Raises:
        EvaluationError: If the expression is malformed or fails at runtime
    """
    tree = parse_expression(expression)
    try:
        return Evaluator(variables).eval(tree)
    except EvaluationError as e:
        if e.expression is None:
            e.expression = expression
            e.details["expression"] = expression
        raise
    except (ArithmeticError, ValueError) as e:
        raise EvaluationError(str(e), expression) from e
    except RecursionError as e:
        raise EvaluationError("Expression is nested too deeply", expression) from e


# =============================================================================
# INTERPOLATION
# =============================================================================

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_$][\w$]*(?:\.[\w$]+)*)\s*\}\}")


def _lookup_path(path: str, variables: Mapping[str, Any]) -> Any:
    head, *rest = path.split(".")
    if head not in variables:
        return None
    value = variables[head]
    for part in rest:
        if part == "length" and isinstance(value, (str, list)):
            value = len(value)
        elif part.isdigit() and isinstance(value, list):
            position = int(part)
            value = value[position] if position < len(value) else None
        elif isinstance(value, Mapping):
            value = value.get(part)
        else:
            return None
    return value


def interpolate(template: str, variables: Mapping[str, Any]) -> str:
    """
    Replace ``{{ name }}`` placeholders with variable values.

    Dotted paths are supported (``{{ barcodes.0 }}``). Placeholders that
    don't resolve to a value are left untouched.

    Args:
        template: Text containing placeholders
        variables: Binding table

    Returns:
        Interpolated text
    """
    if not template:
        return template

    def replace(m: re.Match) -> str:
        value = _lookup_path(m.group(1), variables)
        if value is None:
            return m.group(0)
        return to_text(value)

    return PLACEHOLDER_RE.sub(replace, template)
