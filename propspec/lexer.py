# propspec/lexer.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Lexical analyzer for property formula tokenization using SLY

"""Lexical analyzer for property formula strings.

Property names are registry names such as ``NoLostMessages`` and always
start with an uppercase letter or an underscore. Lowercase words are
reserved: ``true`` and ``false`` are constants, anything else is rejected
here so that a typo like ``noLostMessages`` is reported as a lexical error
with its position rather than as an unknown property.

Supported Tokens:
- Operators: !, &, |, (, )
- Keywords: true, false
- Identifiers: property names
- Whitespace: ignored during tokenization
"""

from sly import Lexer
from utils.logger import get_logger


KEYWORDS = {
    "true": "TRUE",
    "false": "FALSE",
}


class PropertyLexer(Lexer):
    """SLY-based lexer for property formulas.

    Attributes:
        tokens: Set of valid token types
        ignore: Characters to skip during tokenization
    """

    tokens = {
        "TRUE",
        "FALSE",
        "ID",
        "NOT",
        "AND",
        "OR",
        "LPAREN",
        "RPAREN",
    }

    ignore = " \t\r"

    NOT = r"!"
    AND = r"&"
    OR = r"\|"
    LPAREN = r"\("
    RPAREN = r"\)"

    @_(r"\n+")
    def ignore_newline(self, t):
        self.lineno += len(t.value)

    @_(r"[A-Za-z_][A-Za-z0-9_]*")
    def ID(self, t):
        """Property name, or a keyword remapped to its own token type.

        Raises:
            ValueError: A lowercase word that is not a keyword
        """
        if t.value in KEYWORDS:
            t.type = KEYWORDS[t.value]
            return t

        if t.value[0].islower():
            get_logger().debug(f"Reserved word '{t.value}' at position {t.index}")
            raise ValueError(
                f"'{t.value}' at line {self.lineno}, position {t.index} is not a property "
                f"name (property names start with an uppercase letter; "
                f"keywords are {', '.join(sorted(KEYWORDS))})"
            )
        return t

    def error(self, t):
        """Handle illegal characters during tokenization.

        Raises:
            ValueError: Always raised with character and position information
        """
        logger = get_logger()

        illegal_char = t.value[0]
        error_pos = self.index

        logger.debug(f"Illegal character '{illegal_char}' at position {error_pos}")

        self.index += 1

        raise ValueError(
            f"Illegal character '{illegal_char}' encountered at line {self.lineno}, "
            f"position {error_pos}"
        )
