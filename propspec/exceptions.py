# propspec/exceptions.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Custom exceptions for property formula parsing


class ParseError(RuntimeError):
    """Exception raised when a property formula cannot be parsed.

    Indicates that the input does not conform to the formula grammar.
    """

    pass
