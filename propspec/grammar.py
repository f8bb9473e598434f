# propspec/grammar.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# LALR(1) grammar and parser for property formulas using SLY

"""Property formula grammar implemented with the SLY parser generator.

Operator Precedence (lowest to highest):
- OR ('|'): left-associative
- AND ('&'): left-associative
- NOT ('!'): right-associative
"""

from sly import Parser
from .lexer import PropertyLexer
from .ast_nodes import Expr, PropertyRef, Const, Not, And, Or
from .exceptions import ParseError
from utils.logger import get_logger


class _PropertyParser(Parser):
    """SLY-based LALR(1) parser for property formulas.

    Attributes:
        tokens: Token types from PropertyLexer
        precedence: Operator precedence and associativity rules
    """

    tokens = PropertyLexer.tokens

    precedence = (
        ("left", "OR"),
        ("left", "AND"),
        ("right", "NOT"),
    )

    @_("expr")
    def start(self, p) -> Expr:
        return p.expr

    @_("NOT expr")
    def expr(self, p) -> Expr:
        return Not(p.expr)

    @_("expr AND expr")
    def expr(self, p) -> Expr:
        return And(p.expr0, p.expr1)

    @_("expr OR expr")
    def expr(self, p) -> Expr:
        return Or(p.expr0, p.expr1)

    @_("LPAREN expr RPAREN")
    def expr(self, p) -> Expr:
        return p.expr

    @_("term")
    def expr(self, p) -> Expr:
        return p.term

    @_("ID")
    def term(self, p) -> Expr:
        """Reference to a named property."""
        return PropertyRef(p.ID)

    @_("TRUE")
    def term(self, p) -> Expr:
        return Const(True)

    @_("FALSE")
    def term(self, p) -> Expr:
        return Const(False)

    def parse(self, text: str) -> Expr:
        """Parse formula text into an AST.

        Raises:
            ParseError: If the formula is empty or contains syntax errors
        """
        logger = get_logger()
        logger.debug(f"Parsing formula: {text}")

        try:
            ast_result = super().parse(PropertyLexer().tokenize(text))

            if ast_result is None and text.strip() == "":
                raise ParseError("Input formula is empty.")

            if ast_result is None:
                raise ParseError("Failed to parse formula (syntax error).")

            logger.debug(f"Successfully parsed formula into {type(ast_result).__name__}")
            return ast_result

        except ParseError:
            logger.debug("Parse error encountered")
            raise
        except Exception as e:
            logger.debug(f"Unexpected parsing error: {e}")
            raise ParseError(f"Parse failed: {e}")

    def error(self, token):
        """Handle syntax errors during parsing.

        Raises:
            ParseError: Always raises with detailed error information
        """
        if token:
            error_msg = (
                f"Syntax error near '{token.value}' "
                f"(type: {token.type}) at line {token.lineno}, position {token.index}"
            )
        else:
            error_msg = "Syntax error: Unexpected end of formula"

        raise ParseError(error_msg)
