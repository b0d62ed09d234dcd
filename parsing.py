"""
codeload expression parser
pyparsing grammar for the statement language of the default evaluator.
Parse actions build tagged tuples ("TAG", value) consumed by interpreter.py
"""

from typing import Any, List, Tuple
import threading

from pyparsing import (
    Forward, Group, Keyword, Literal, MatchFirst, OpAssoc, Opt, ParseException,
    ParserElement, Regex, StringEnd, Suppress, ZeroOrMore, infix_notation, one_of
)

from error_handling import StatementParseError

# Enable packrat parsing for performance
ParserElement.enable_packrat()


RESERVED_WORDS = ("shared", "true", "false", "null", "if", "then", "else", "and", "or", "not")


def unquote(text: str) -> str:
    """Strip the surrounding quotes of a literal and undo doubled-quote escapes"""
    return text[1:-1].replace('""', '"')


def _comma_list(element):
    """element (, element)* with an optional empty list"""
    return Opt(element + ZeroOrMore(Suppress(",") + element))


def _fold_binary(tokens) -> Tuple:
    """Fold a [a, op, b, op, c] group left-associatively"""
    items = list(tokens[0])
    result = items[0]
    for i in range(1, len(items), 2):
        result = ("BINARY", {"op": items[i], "left": result, "right": items[i + 1]})
    return result


def _make_unary(tokens) -> Tuple:
    """Nest a [op, op, operand] group right-to-left"""
    items = list(tokens[0])
    result = items[-1]
    for op in reversed(items[:-1]):
        result = ("UNARY", {"op": op, "operand": result})
    return result


def _fold_postfix(tokens) -> Tuple:
    """Apply call, index and field-access suffixes to a primary, left to right"""
    items = list(tokens)
    result = items[0]
    for suffix_type, suffix in items[1:]:
        if suffix_type == "CALL_ARGS":
            result = ("CALL", {"function": result, "args": suffix})
        elif suffix_type == "INDEX_ARG":
            result = ("INDEX", {"target": result, "index": suffix})
        else:
            result = ("ACCESS", {"target": result, "field": suffix})
    return result


class ExpressionGrammar:
    """Statement and expression grammar definition using pyparsing"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self._parse_lock = threading.Lock()
        self._setup_grammar()

    def _setup_grammar(self):
        """Setup the grammar: records of fields whose values are expressions"""

        expression = Forward()

        # Keywords
        reserved = MatchFirst([Keyword(word) for word in RESERVED_WORDS])
        shared_kw = Keyword("shared")
        if_kw, then_kw, else_kw = Keyword("if"), Keyword("then"), Keyword("else")

        # Names: dotted identifiers (My.Function) and quoted identifiers (#"A name")
        identifier = ~reserved + Regex(r'[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*')
        quoted_identifier = Regex(r'#"(?:[^"]|"")*"').set_parse_action(lambda t: unquote(t[0][1:]))
        name = quoted_identifier | identifier

        # Literals
        string_literal = Regex(r'"(?:[^"]|"")*"').set_parse_action(lambda t: ("STRING", unquote(t[0])))
        number = Regex(r'\d+(?:\.\d+)?(?:[eE][+-]?\d+)?').set_parse_action(
            lambda t: ("NUMBER", float(t[0]) if any(c in t[0] for c in '.eE') else int(t[0]))
        )
        constant = (
            Keyword("true").set_parse_action(lambda t: ("CONSTANT", True)) |
            Keyword("false").set_parse_action(lambda t: ("CONSTANT", False)) |
            Keyword("null").set_parse_action(lambda t: ("CONSTANT", None))
        )
        name_reference = name.copy().set_parse_action(lambda t: ("IDENTIFIER", t[0]))

        # Lists { a, b }
        list_literal = (
            Suppress("{") + Group(_comma_list(expression)) + Suppress("}")
        ).set_parse_action(lambda t: ("LIST", list(t[0])))

        # Record fields: [shared] name = expression
        def make_field(tokens):
            items = list(tokens)
            if len(items) == 3:
                return ("FIELD", {"name": f"shared {items[1]}", "value": items[2]})
            return ("FIELD", {"name": items[0], "value": items[1]})

        field = (
            Opt(shared_kw) + name + Suppress(Literal("=")) + expression
        ).set_parse_action(make_field)
        record_body = Group(_comma_list(field))

        record_literal = (
            Suppress("[") + record_body + Suppress("]")
        ).set_parse_action(lambda t: ("RECORD", list(t[0])))

        # Lambdas (x, y) => body
        lambda_expr = (
            Suppress("(") + Group(_comma_list(identifier)) + Suppress(")") +
            Suppress(Literal("=>")) + expression
        ).set_parse_action(lambda t: ("LAMBDA", {"params": list(t[0]), "body": t[1]}))

        parenthesized = Suppress("(") + expression + Suppress(")")

        if_expr = (
            Suppress(if_kw) + expression + Suppress(then_kw) + expression + Suppress(else_kw) + expression
        ).set_parse_action(lambda t: ("IF", {"condition": t[0], "then": t[1], "else": t[2]}))

        # Order matters: lambda before parenthesized, keywords before names
        primary = (
            if_expr | lambda_expr | parenthesized | record_literal | list_literal |
            string_literal | number | constant | name_reference
        )

        # Postfix: calls f(a), list index xs{0}, field access r[name]
        call_suffix = (
            Suppress("(") + Group(_comma_list(expression)) + Suppress(")")
        ).set_parse_action(lambda t: ("CALL_ARGS", list(t[0])))
        index_suffix = (
            Suppress("{") + expression + Suppress("}")
        ).set_parse_action(lambda t: ("INDEX_ARG", t[0]))
        access_suffix = (
            Suppress("[") + name + Suppress("]")
        ).set_parse_action(lambda t: ("ACCESS_ARG", t[0]))

        postfix = (
            primary + ZeroOrMore(call_suffix | index_suffix | access_suffix)
        ).set_parse_action(_fold_postfix)

        # Operators, tightest first
        expression <<= infix_notation(postfix, [
            (Literal("-"), 1, OpAssoc.RIGHT, _make_unary),
            (one_of("* /"), 2, OpAssoc.LEFT, _fold_binary),
            (one_of("+ -"), 2, OpAssoc.LEFT, _fold_binary),
            (Literal("&"), 2, OpAssoc.LEFT, _fold_binary),
            (one_of("<= >= <> < > ="), 2, OpAssoc.LEFT, _fold_binary),
            (Keyword("not"), 1, OpAssoc.RIGHT, _make_unary),
            (Keyword("and"), 2, OpAssoc.LEFT, _fold_binary),
            (Keyword("or"), 2, OpAssoc.LEFT, _fold_binary),
        ])

        statement = record_body + StringEnd()

        # Store the main parsers
        self.statement = statement
        self.expression = expression
        self.standalone_expression = expression + StringEnd()

        if self.debug:
            self.statement.set_debug(True)

    def parse_statement(self, text: str) -> List[Tuple]:
        """Parse a statement (the body of a record) into its FIELD nodes"""
        try:
            with self._parse_lock:
                result = self.statement.parse_string(text, parse_all=True)
            return list(result[0])
        except ParseException as e:
            raise StatementParseError.from_parse_exception(e, text) from e

    def parse_expression(self, text: str) -> Any:
        """Parse a single expression"""
        try:
            with self._parse_lock:
                result = self.standalone_expression.parse_string(text, parse_all=True)
            return result[0]
        except ParseException as e:
            raise StatementParseError.from_parse_exception(e, text) from e


_grammar = None
_grammar_lock = threading.Lock()


def create_grammar(debug: bool = False) -> ExpressionGrammar:
    """Create a grammar"""
    return ExpressionGrammar(debug=debug)


def get_grammar() -> ExpressionGrammar:
    """Shared grammar instance, built on first use"""
    global _grammar
    with _grammar_lock:
        if _grammar is None:
            _grammar = create_grammar()
        return _grammar
