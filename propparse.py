"""
Parser for propositional formulas written with symbolic connectives
(∨ ∧ ¬ → ← ↔) or their textual aliases ("and", "or", "->", ...).

Parsing runs in stages over an intermediate, tagged ``Group`` structure:

    tokenize -> group_parens -> fuse_unary -> split_operators (x4) -> reformat

Only ``reformat`` can fail. Unbalanced parentheses are absorbed by the
grouping stage and surface, if at all, as a shape error at the end.
"""

import dataclasses
import enum
import logging
import sys
import typing as t

# allow deeper parsing
sys.setrecursionlimit(max(2000, sys.getrecursionlimit()))

log = logging.getLogger(__name__)


class Operator(enum.Enum):
    AND = "∧"
    OR = "∨"
    NOT = "¬"
    IMPLIES = "→"
    CONVERSE = "←"
    IFF = "↔"

    @property
    def arity(self) -> int:
        return 1 if self is Operator.NOT else 2


class Paren(enum.Enum):
    LEFT = "("
    RIGHT = ")"


@dataclasses.dataclass(frozen=True)
class Atom:
    name: str


type Token = Atom | Operator | Paren


BASE_SYMBOLS: dict[str, Operator | Paren] = {
    member.value: member for member in (*Operator, *Paren)
}

# matched case-insensitively, after a whole identifier run has been read
ALIASES: dict[str, Operator] = {
    "or": Operator.OR,
    "and": Operator.AND,
    "not": Operator.NOT,
    "implies": Operator.IMPLIES,
    "impl": Operator.IMPLIES,
    "->": Operator.IMPLIES,
    "<->": Operator.IFF,
    "==": Operator.IFF,
    "<-": Operator.CONVERSE,
}

# loosest to tightest; NOT is handled separately by fuse_unary
PRECEDENCE: tuple[frozenset[Operator], ...] = (
    frozenset({Operator.IFF}),
    frozenset({Operator.IMPLIES, Operator.CONVERSE}),
    frozenset({Operator.OR}),
    frozenset({Operator.AND}),
)


@dataclasses.dataclass(frozen=True)
class Group:
    items: tuple["Element", ...] = ()


type Element = Atom | Operator | Group


@dataclasses.dataclass(frozen=True)
class ParsedAtom:
    name: str


@dataclasses.dataclass(frozen=True)
class UnaryOperator:
    operator: Operator
    value: "ParseTreeElement"

    def __post_init__(self) -> None:
        object.__setattr__(self, "_hashval", hash((self.operator, self.value)))

    def __hash__(self) -> int:
        return self._hashval

    @property
    def operands(self) -> tuple["ParseTreeElement", ...]:
        return (self.value,)


@dataclasses.dataclass(frozen=True)
class BinaryOperator:
    operator: Operator
    lhs: "ParseTreeElement"
    rhs: "ParseTreeElement"

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_hashval", hash((self.operator, self.lhs, self.rhs))
        )

    def __hash__(self) -> int:
        return self._hashval

    @property
    def operands(self) -> tuple["ParseTreeElement", ...]:
        return (self.lhs, self.rhs)


type ParseTreeElement = ParsedAtom | UnaryOperator | BinaryOperator


class ErrorKind(enum.Enum):
    EMPTY_EXPRESSION = "empty expression"
    OPERATOR_WITHOUT_OPERAND = "operator has no operand"
    MALFORMED_UNARY = "malformed unary operator"
    MALFORMED_BINARY = "malformed binary operator"
    MALFORMED_EXPRESSION = "malformed expression"


class FormulaError(ValueError):
    """The input text is not a well-formed formula."""

    def __init__(self, kind: ErrorKind) -> None:
        super().__init__(kind.value)
        self.kind = kind


def _resolve_alias(name: str) -> Atom | Operator:
    return ALIASES.get(name.lower(), Atom(name))


def tokenize(statement: str) -> list[Token]:
    tokens: list[Token] = []
    current_atom: list[str] = []

    def lex_atom():
        nonlocal current_atom
        if current_atom:
            tokens.append(_resolve_alias("".join(current_atom)))
            current_atom = []

    for char in statement:
        match char:
            case _ if char in BASE_SYMBOLS:
                lex_atom()
                tokens.append(BASE_SYMBOLS[char])
            case _ if char.isspace():
                lex_atom()
            case _:
                current_atom.append(char)
    lex_atom()
    return tokens


def _push_with_depth(tree: list, token: Token, depth: int) -> None:
    while depth > 0:
        if not tree or not isinstance(tree[-1], list):
            tree.append([])
        tree = tree[-1]
        depth -= 1
    tree.append(token)


def _freeze(tree: list) -> Group:
    return Group(tuple(_freeze(x) if isinstance(x, list) else x for x in tree))


def group_parens(tokens: t.Iterable[Token]) -> Group:
    """
    Nest parenthesized spans into groups.

    Never fails. A "(" met while the structure built so far is a single
    group descends into that group instead of nesting deeper, and a ")"
    with nothing open wraps everything read so far in a new group.
    """
    tree: list = []
    depth = 0
    for token in tokens:
        match token:
            case Paren.LEFT:
                depth += 1
                while depth > 0 and len(tree) == 1 and isinstance(tree[0], list):
                    tree = tree[0]
                    depth -= 1
            case Paren.RIGHT:
                depth -= 1
                while depth < 0:
                    tree = [tree]
                    depth += 1
            case _:
                _push_with_depth(tree, token, depth)
    return _freeze(tree)


def fuse_unary(group: Group) -> Group:
    """Bind each NOT to the element on its right, working right to left."""
    fused: list[Element] = []
    for item in reversed(group.items):
        match item:
            case Group():
                fused.append(fuse_unary(item))
            case Operator.NOT:
                operand = (fused.pop(),) if fused else ()
                fused.append(Group((Operator.NOT, *operand)))
            case _:
                fused.append(item)
    return Group(tuple(reversed(fused)))


def split_operators(group: Group, operators: t.Collection[Operator]) -> Group:
    """
    Split ``group`` at its rightmost top-level operator from ``operators``.

    The left side is split again with the same operators, so a chain of
    equal-precedence operators nests to the left. Nested groups are split
    recursively but never searched for a split point at this level.

    Each split re-slices the left side and recurses into it, so a chain of
    n equal-precedence operators costs O(n**2) time and n stack frames.
    """
    rhs: list[Element] = []
    for idx in range(len(group.items) - 1, -1, -1):
        item = group.items[idx]
        match item:
            case Group():
                rhs.append(split_operators(item, operators))
            case Operator() if item in operators:
                lhs = split_operators(Group(group.items[:idx]), operators)
                return Group((lhs, item, Group(tuple(reversed(rhs)))))
            case _:
                rhs.append(item)
    return Group(tuple(reversed(rhs)))


def _is_operand(element: Element) -> bool:
    return not isinstance(element, Operator) and element != Group()


def reformat(element: Element) -> ParseTreeElement:
    match element:
        case Atom(name=name):
            return ParsedAtom(name)
        case Operator():
            raise FormulaError(ErrorKind.OPERATOR_WITHOUT_OPERAND)
        case Group(items=()):
            raise FormulaError(ErrorKind.EMPTY_EXPRESSION)
        case Group(items=(single,)):
            return reformat(single)
        case Group(items=(Operator.NOT, operand)) if not isinstance(
            operand, Operator
        ):
            return UnaryOperator(Operator.NOT, reformat(operand))
        case Group(items=(_, _)):
            raise FormulaError(ErrorKind.MALFORMED_UNARY)
        case Group(items=(lhs, Operator() as op, rhs)) if (
            op.arity == 2 and _is_operand(lhs) and _is_operand(rhs)
        ):
            return BinaryOperator(op, reformat(lhs), reformat(rhs))
        case Group(items=(_, _, _)):
            raise FormulaError(ErrorKind.MALFORMED_BINARY)
        case _:
            raise FormulaError(ErrorKind.MALFORMED_EXPRESSION)


def _str_of_group(element: Element) -> str:
    match element:
        case Atom(name=n):
            return n
        case Operator():
            return element.value
        case Group(items=items):
            return "[" + " ".join(_str_of_group(x) for x in items) + "]"
        case _:
            raise NotImplementedError("unreachable")


def parse(statement: str) -> ParseTreeElement:
    tokens = tokenize(statement)
    tree = fuse_unary(group_parens(tokens))
    if log.isEnabledFor(logging.DEBUG):
        log.debug("grouped %r as %s", statement, _str_of_group(tree))
    for operators in PRECEDENCE:
        tree = split_operators(tree, operators)
    if log.isEnabledFor(logging.DEBUG):
        log.debug("split %r as %s", statement, _str_of_group(tree))
    return reformat(tree)


def format_tree(tree: ParseTreeElement) -> str:
    """Render ``tree`` infix, with every binary operation parenthesized."""
    match tree:
        case ParsedAtom(name=n):
            return n
        case UnaryOperator(Operator.NOT, value):
            return f"¬{format_tree(value)}"
        case BinaryOperator(op, lhs=l, rhs=r):
            return f"({format_tree(l)}{op.value}{format_tree(r)})"
        case _:
            raise NotImplementedError("unreachable")


def to_linear_form(tree: ParseTreeElement) -> str:
    """
    Postfix rendering: each operand, then the operator, with no separators.

    Meant for display only; ``ab∧`` cannot tell the atoms ``a``/``b``
    apart from a single atom ``ab``, so it is not parseable back.
    """
    if isinstance(tree, ParsedAtom):
        return tree.name
    return "".join(to_linear_form(x) for x in tree.operands) + tree.operator.value
