# propspec/__init__.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Property formula parsing for trace verification

"""Property formula parsing.

A property formula combines registered trace properties with Boolean
connectives so that several properties can be checked as one verdict.

Supported Syntax:
    - Property names (``NoLostMessages``, ``ReadInOrder``, ...)
    - Boolean constants ``true`` and ``false``
    - Connectives ``!``, ``&``, ``|`` and parentheses

Example:
    >>> from propspec import parse
    >>> ast = parse("NoLostMessages & ReadInOrder")
"""

from .exceptions import ParseError
from .grammar import _PropertyParser
from .ast_nodes import referenced_properties
from utils.logger import get_logger


def parse(source: str):
    """Parse a property formula into an AST.

    A fresh parser is used for each call.

    Raises:
        ParseError: Formula syntax is malformed
    """
    logger = get_logger()
    parser = _PropertyParser()

    try:
        result = parser.parse(source)
        logger.debug(f"Formula parsed into {type(result).__name__}")
        return result

    except ParseError:
        raise

    except Exception as exc:
        logger.debug(f"Unexpected parsing error: {type(exc).__name__}: {exc}")
        raise ParseError(str(exc)) from exc


__all__ = ["parse", "ParseError", "referenced_properties"]
