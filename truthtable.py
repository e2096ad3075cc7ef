import argparse
import dataclasses
import logging
import sys
import typing as t

from pyrsistent import PMap, pmap

from propparse import (
    BinaryOperator,
    FormulaError,
    Operator,
    ParsedAtom,
    ParseTreeElement,
    UnaryOperator,
    format_tree,
    parse,
    to_linear_form,
)

log = logging.getLogger(__name__)

# enumerating more symbols than this is refused outright
MAX_TABLE_SYMBOLS = 4

TRUE_LITERAL = "1"
FALSE_LITERAL = "0"


class Assignment:
    """An immutable, hashable binding of symbol names to truth values."""

    def __init__(self, values: t.Mapping[str, bool] | None = None) -> None:
        self.values: PMap[str, bool] = pmap(
            {name: bool(value) for name, value in (values or {}).items()}
        )
        self._hashval = hash((self.__class__, self.values))

    def set(self, name: str, value: bool) -> "Assignment":
        return Assignment({**self.values, name: value})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Assignment):
            return NotImplemented
        return self.values == other.values

    def __hash__(self) -> int:
        return self._hashval

    def __repr__(self) -> str:
        return f"Assignment({dict(self.values)!r})"


@dataclasses.dataclass(frozen=True)
class Row:
    inputs: tuple[bool, ...]
    output: bool


@dataclasses.dataclass(frozen=True)
class TruthTable:
    header: tuple[str, ...] = ()
    rows: tuple[Row, ...] = ()


def _evaluate_assignment(tree: ParseTreeElement, assignment: Assignment) -> bool:
    match tree:
        case ParsedAtom(name=n):
            if n in assignment.values:
                return assignment.values[n]
            return n == TRUE_LITERAL
        case UnaryOperator(operator=Operator.NOT, value=value):
            return not _evaluate_assignment(value, assignment)
        case BinaryOperator(Operator.AND, lhs=l, rhs=r):
            return _evaluate_assignment(l, assignment) and _evaluate_assignment(
                r, assignment
            )
        case BinaryOperator(Operator.OR, lhs=l, rhs=r):
            return _evaluate_assignment(l, assignment) or _evaluate_assignment(
                r, assignment
            )
        case BinaryOperator(Operator.IMPLIES, lhs=l, rhs=r):
            return not _evaluate_assignment(
                l, assignment
            ) or _evaluate_assignment(r, assignment)
        case BinaryOperator(Operator.CONVERSE, lhs=l, rhs=r):
            return not _evaluate_assignment(
                r, assignment
            ) or _evaluate_assignment(l, assignment)
        case BinaryOperator(Operator.IFF, lhs=l, rhs=r):
            return _evaluate_assignment(l, assignment) == _evaluate_assignment(
                r, assignment
            )
        case _:
            raise NotImplementedError("unreachable: bad parse")


def evaluate(
    tree: ParseTreeElement,
    assignment: t.Mapping[str, bool] | Assignment | None = None,
) -> bool:
    """
    Evaluate ``tree`` under ``assignment``.

    Unbound symbols are false, except the literal "1" which is true.
    """
    if not isinstance(assignment, Assignment):
        assignment = Assignment(assignment)
    return _evaluate_assignment(tree, assignment)


def free_symbols(tree: ParseTreeElement) -> tuple[str, ...]:
    """Symbol names in order of first appearance, without the literals."""
    if isinstance(tree, ParsedAtom):
        if tree.name in (TRUE_LITERAL, FALSE_LITERAL):
            return ()
        return (tree.name,)
    return tuple(
        dict.fromkeys(name for x in tree.operands for name in free_symbols(x))
    )


def create_truth_table(tree: ParseTreeElement) -> TruthTable:
    symbols = free_symbols(tree)
    if len(symbols) > MAX_TABLE_SYMBOLS:
        log.info(
            "not tabulating %d symbols (limit is %d)",
            len(symbols),
            MAX_TABLE_SYMBOLS,
        )
        return TruthTable()

    rows = []
    # symbol k reads bit k of the counter
    for counter in range(2 ** len(symbols)):
        inputs = tuple(bool(counter >> k & 1) for k in range(len(symbols)))
        output = _evaluate_assignment(tree, Assignment(dict(zip(symbols, inputs))))
        rows.append(Row(inputs, output))
    return TruthTable(symbols, tuple(rows))


def _evolutions(name: str, assignment: Assignment) -> t.Iterable[Assignment]:
    for potential_value in (True, False):
        yield assignment.set(name, potential_value)


def _is_satisfiable_under_assignment(
    tree: ParseTreeElement, assignment: Assignment
) -> bool:
    missing_names = [n for n in free_symbols(tree) if n not in assignment.values]
    if not missing_names:
        return _evaluate_assignment(tree, assignment)
    return any(
        _is_satisfiable_under_assignment(tree, evolved)
        for evolved in _evolutions(missing_names[0], assignment)
    )


def satisfiable(tree: ParseTreeElement) -> bool:
    return _is_satisfiable_under_assignment(tree, Assignment())


def tautology(tree: ParseTreeElement) -> bool:
    return not satisfiable(UnaryOperator(Operator.NOT, tree))


def render_table(statement: str, table: TruthTable) -> str:
    headers = [*table.header, statement]
    lines = [[str(int(v)) for v in (*row.inputs, row.output)] for row in table.rows]
    widths = [len(h) for h in headers]
    header_line = " | ".join(h.ljust(w) for h, w in zip(headers, widths))
    out = [header_line, "-" * len(header_line)]
    for line in lines:
        out.append(" | ".join(v.ljust(w) for v, w in zip(line, widths)))
    return "\n".join(out)


_TRUTH_WORDS = {"1": True, "true": True, "0": False, "false": False}


def _binding(text: str) -> tuple[str, bool]:
    name, sep, value = text.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {text!r}")
    try:
        return name.strip(), _TRUTH_WORDS[value.strip().lower()]
    except KeyError:
        raise argparse.ArgumentTypeError(f"not a truth value: {value!r}") from None


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(
        prog="truthtable",
        description="Parse a propositional formula and tabulate or evaluate it.",
    )
    ap.add_argument("statement", help="the formula, or '-' to read it from stdin")
    mode = ap.add_mutually_exclusive_group()
    mode.add_argument(
        "--set",
        dest="bindings",
        metavar="NAME=VALUE",
        type=_binding,
        action="append",
        help="bind a symbol (1/0/true/false) and print the single result",
    )
    mode.add_argument(
        "--rpn", action="store_true", help="print the postfix form of the formula"
    )
    mode.add_argument(
        "--satisfiable",
        action="store_true",
        help="report whether the formula is satisfiable and a tautology",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="log parse stages")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )

    statement = args.statement.strip()
    if statement == "-":
        statement = sys.stdin.read().strip()

    try:
        tree = parse(statement)
    except FormulaError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    log.debug("parsed %r as %s", statement, format_tree(tree))

    if args.bindings is not None:
        print(int(evaluate(tree, dict(args.bindings))))
    elif args.rpn:
        print(to_linear_form(tree))
    elif args.satisfiable:
        print(f"satisfiable: {'yes' if satisfiable(tree) else 'no'}")
        print(f"tautology: {'yes' if tautology(tree) else 'no'}")
    else:
        table = create_truth_table(tree)
        if not table.rows:
            print(
                f"{len(free_symbols(tree))} symbols, "
                f"too many to tabulate (limit is {MAX_TABLE_SYMBOLS})"
            )
        else:
            print(render_table(format_tree(tree), table))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
