# expr_calc.py
"""
Integer Expression Calculator

Evaluates arithmetic expressions over integers with `+ - * /` and parentheses.
Variables are supported by literal text replacement before tokenization:
`calculate("x+1", "x 5")` rewrites the expression to `5+1` and evaluates it.

Implementation Approach:
1. Substitute variable names with their values (plain string replacement)
2. Split the expression into tokens (operators, parentheses, number runs)
3. Evaluate while parsing with a three-level recursive-descent evaluator
   (additive, multiplicative, elementary) driven by a token cursor
4. Convert evaluation errors into a typed CalculationResult at the entry point

All per-call state (tokens, cursor, nesting depth) is created inside a call and
passed explicitly, so independent calls never share anything.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_MAX_DEPTH = 200
# each nesting level costs three stack frames
MAX_NESTING_DEPTH = 250

# ---------------------------
# Error Classes
# ---------------------------

class ErrorKind(str, Enum):
    """Classification of evaluation failures reported in a CalculationResult."""
    SYNTAX = "syntax"
    ARITHMETIC = "arithmetic"
    NUMBER_FORMAT = "number_format"
    NESTING_DEPTH = "nesting_depth"


class CalculatorError(Exception):
    """Base class for calculator errors."""
    kind: Optional[ErrorKind] = None


class ExpressionSyntaxError(CalculatorError):
    """Raised when a token appears where the grammar does not allow it."""
    kind = ErrorKind.SYNTAX

    def __init__(self, token_text: str, position: int):
        self.token_text = token_text
        self.position = position
        shown = repr(token_text) if token_text else "end of expression"
        super().__init__(f"Unexpected token: {shown} at position: {position}")


class DivisionByZeroError(CalculatorError, ArithmeticError):
    """Raised for integer division by zero."""
    kind = ErrorKind.ARITHMETIC

    def __init__(self, message: str = "Division by zero"):
        super().__init__(message)


class NumberFormatError(CalculatorError, ValueError):
    """Raised when a number token is not a valid integer literal."""
    kind = ErrorKind.NUMBER_FORMAT

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"Invalid integer literal: {text!r}")


class NestingTooDeepError(CalculatorError, RecursionError):
    """Raised when parentheses nest deeper than the configured limit."""
    kind = ErrorKind.NESTING_DEPTH

    def __init__(self, max_depth: int):
        self.max_depth = max_depth
        super().__init__(f"Parentheses nested deeper than {max_depth} levels")


class VariableBindingError(CalculatorError, ValueError):
    """Raised for a variable binding string that is not a list of name/value pairs."""


# ---------------------------
# Settings
# ---------------------------

class CalculatorSettings(BaseModel):
    """Runtime settings for the calculator."""
    max_depth: int = Field(DEFAULT_MAX_DEPTH, ge=1, le=MAX_NESTING_DEPTH, description="Maximum parenthesis nesting depth")
    log_level: str = "WARNING"

    @field_validator('log_level')
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f'Unknown log level: {v}')
        return level


def load_settings(env_file: Optional[str] = None) -> CalculatorSettings:
    """
    Build settings from the environment, loading a .env file first.

    Recognized variables: EXPR_CALC_MAX_DEPTH, EXPR_CALC_LOG_LEVEL.
    Values already present in the environment win over the .env file.
    """
    load_dotenv(env_file)
    values = {}
    max_depth = os.getenv("EXPR_CALC_MAX_DEPTH")
    if max_depth:
        values["max_depth"] = max_depth
    log_level = os.getenv("EXPR_CALC_LOG_LEVEL")
    if log_level:
        values["log_level"] = log_level
    return CalculatorSettings(**values)


def configure_logging(settings: Optional[CalculatorSettings] = None) -> None:
    """Configure root logging with the calculator's format at the settings' log level."""
    settings = settings or load_settings()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)


# ---------------------------
# Tokenizer
# ---------------------------

class TokenKind(str, Enum):
    """Enumeration of token kinds."""
    LEFT_PAREN = "LEFT_PAREN"
    RIGHT_PAREN = "RIGHT_PAREN"
    PLUS = "PLUS"
    MINUS = "MINUS"
    MULTIPLY = "MULTIPLY"
    DIVIDE = "DIVIDE"
    NUMBER = "NUMBER"
    END = "END"


_SYMBOL_KINDS = {
    '(': TokenKind.LEFT_PAREN,
    ')': TokenKind.RIGHT_PAREN,
    '+': TokenKind.PLUS,
    '-': TokenKind.MINUS,
    '*': TokenKind.MULTIPLY,
    '/': TokenKind.DIVIDE,
}


@dataclass(frozen=True)
class Token:
    """A token: its kind and the exact text it was read from."""
    kind: TokenKind
    text: str = ""

    def __repr__(self) -> str:
        return f"Token({self.kind.value}, {self.text!r})"


END_TOKEN = Token(TokenKind.END)


def token_kind_for(char: str) -> TokenKind:
    """Classify a single character. Anything that is not an operator or parenthesis is a number character."""
    return _SYMBOL_KINDS.get(char, TokenKind.NUMBER)


def is_numerical_char(char: str) -> bool:
    return token_kind_for(char) == TokenKind.NUMBER


def tokenize(expression: str) -> List[Token]:
    """
    Split an expression into tokens.

    Operators and parentheses become one-character tokens. Every maximal run of
    other characters becomes a single NUMBER token, whitespace included; the
    run is only validated when it is evaluated. No END token is appended.
    """
    tokens: List[Token] = []
    pos = 0
    length = len(expression)
    while pos < length:
        ch = expression[pos]
        if not is_numerical_char(ch):
            tokens.append(Token(token_kind_for(ch), ch))
            pos += 1
            continue
        start = pos
        while pos < length and is_numerical_char(expression[pos]):
            pos += 1
        tokens.append(Token(TokenKind.NUMBER, expression[start:pos]))
    return tokens


class TokenCursor:
    """
    Cursor over a token sequence with one token of pushback.

    next() returns the token under the cursor and advances, returning END once
    the sequence is exhausted. step_back() undoes the last next().
    """
    def __init__(self, tokens: Sequence[Token]):
        self._tokens: Tuple[Token, ...] = tuple(tokens)
        self._pos = 0
        self._can_step_back = False

    def next(self) -> Token:
        token = self._tokens[self._pos] if self._pos < len(self._tokens) else END_TOKEN
        self._pos += 1
        self._can_step_back = True
        return token

    def step_back(self) -> None:
        if not self._can_step_back:
            raise RuntimeError("step_back() must follow a call to next()")
        self._pos -= 1
        self._can_step_back = False

    @property
    def last_position(self) -> int:
        """Index of the token most recently returned by next()."""
        return self._pos - 1

    def unexpected(self, token: Token) -> ExpressionSyntaxError:
        return ExpressionSyntaxError(token.text, self.last_position)


# ---------------------------
# Evaluator
# ---------------------------

_INTEGER_LITERAL = re.compile(r'[0-9]+')


def _divide(dividend: int, divisor: int) -> int:
    # truncate toward zero
    if divisor == 0:
        raise DivisionByZeroError()
    quotient = abs(dividend) // abs(divisor)
    return -quotient if (dividend < 0) != (divisor < 0) else quotient


def calculate_expression(cursor: TokenCursor, max_depth: int = DEFAULT_MAX_DEPTH) -> int:
    """
    Evaluate a whole expression.

    An empty token stream evaluates to 0. Tokens left over after a complete
    expression (an unmatched ')') are a syntax error.
    """
    token = cursor.next()
    if token.kind == TokenKind.END:
        return 0
    cursor.step_back()
    value = _additive(cursor, 0, max_depth)
    token = cursor.next()
    if token.kind != TokenKind.END:
        raise cursor.unexpected(token)
    return value


def _additive(cursor: TokenCursor, depth: int, max_depth: int) -> int:
    """AdditiveExpr := MultiplicativeExpr ( ('+' | '-') MultiplicativeExpr )*"""
    value = _multiplicative(cursor, depth, max_depth)
    while True:
        token = cursor.next()
        if token.kind == TokenKind.PLUS:
            value += _multiplicative(cursor, depth, max_depth)
        elif token.kind == TokenKind.MINUS:
            value -= _multiplicative(cursor, depth, max_depth)
        elif token.kind in (TokenKind.END, TokenKind.RIGHT_PAREN):
            # ')' belongs to whoever opened the parenthesis
            cursor.step_back()
            return value
        else:
            raise cursor.unexpected(token)


def _multiplicative(cursor: TokenCursor, depth: int, max_depth: int) -> int:
    """MultiplicativeExpr := Elementary ( ('*' | '/') Elementary )*"""
    value = _elementary(cursor, depth, max_depth)
    while True:
        token = cursor.next()
        if token.kind == TokenKind.MULTIPLY:
            value *= _elementary(cursor, depth, max_depth)
        elif token.kind == TokenKind.DIVIDE:
            value = _divide(value, _elementary(cursor, depth, max_depth))
        elif token.kind in (TokenKind.END, TokenKind.RIGHT_PAREN, TokenKind.PLUS, TokenKind.MINUS):
            cursor.step_back()
            return value
        else:
            raise cursor.unexpected(token)


def _elementary(cursor: TokenCursor, depth: int, max_depth: int) -> int:
    """Elementary := Number | '(' AdditiveExpr ')'"""
    token = cursor.next()
    if token.kind == TokenKind.NUMBER:
        if not _INTEGER_LITERAL.fullmatch(token.text):
            raise NumberFormatError(token.text)
        try:
            return int(token.text)
        except ValueError:
            # digit runs past the interpreter's conversion limit
            raise NumberFormatError(token.text) from None
    if token.kind == TokenKind.LEFT_PAREN:
        if depth >= max_depth:
            raise NestingTooDeepError(max_depth)
        value = _additive(cursor, depth + 1, max_depth)
        token = cursor.next()
        if token.kind != TokenKind.RIGHT_PAREN:
            raise cursor.unexpected(token)
        return value
    raise cursor.unexpected(token)


def evaluate_tokens(tokens: Sequence[Token], max_depth: int = DEFAULT_MAX_DEPTH) -> int:
    """Evaluate a token sequence, raising a CalculatorError subclass on failure."""
    try:
        return calculate_expression(TokenCursor(tokens), max_depth)
    except NestingTooDeepError:
        raise
    except RecursionError:
        raise NestingTooDeepError(max_depth) from None


# ---------------------------
# Result Type
# ---------------------------

@dataclass(frozen=True)
class CalculationResult:
    """Outcome of calculate(): either an integer value or an error kind with its message."""
    value: Optional[int] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    error: Optional[CalculatorError] = field(default=None, compare=False, repr=False)

    @classmethod
    def success(cls, value: int) -> "CalculationResult":
        return cls(value=value)

    @classmethod
    def failure(cls, error: CalculatorError) -> "CalculationResult":
        return cls(error_kind=error.kind, message=str(error), error=error)

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    def unwrap(self) -> int:
        """Return the value, or raise the error that produced this result."""
        if self.ok:
            return self.value
        if self.error is not None:
            raise self.error
        raise CalculatorError(self.message)

    def __repr__(self) -> str:
        if self.ok:
            return f"Ok({self.value})"
        return f"Err({self.error_kind.value}, {self.message!r})"


# ---------------------------
# Entry Point
# ---------------------------

def substitute_variables(expression: str, variables: str) -> str:
    """
    Replace each variable name in the expression by its value.

    `variables` holds whitespace-separated name/value pairs, applied in order.
    Every literal occurrence of a name is replaced, including occurrences
    inside longer words.
    """
    words = variables.split()
    if len(words) % 2 != 0:
        raise VariableBindingError(
            f"Variable bindings must be name/value pairs, got {len(words)} words: {variables!r}"
        )
    for name, value in zip(words[::2], words[1::2]):
        expression = expression.replace(name, value)
    return expression


def calculate(
    expression: str,
    variables: str = "",
    settings: Optional[CalculatorSettings] = None,
) -> CalculationResult:
    """
    Calculate an integer expression after substituting variables.

    Args:
        expression: The expression itself, e.g. "(x+2)*3"
        variables: Whitespace-separated name/value pairs, e.g. "x 5 y 7"
        settings: Optional CalculatorSettings; defaults are used when omitted

    Returns:
        CalculationResult holding the value, or the kind and message of the
        syntax, arithmetic, number-format or nesting error that stopped evaluation

    Raises:
        VariableBindingError: If `variables` has an odd number of words
    """
    settings = settings or CalculatorSettings()
    substituted = substitute_variables(expression, variables)
    if substituted != expression:
        logger.debug(f"Substituted {expression!r} -> {substituted!r}")
    tokens = tokenize(substituted)
    logger.debug(f"Tokenized {substituted!r} into {len(tokens)} tokens")
    try:
        value = evaluate_tokens(tokens, settings.max_depth)
    except (ExpressionSyntaxError, DivisionByZeroError, NumberFormatError, NestingTooDeepError) as e:
        logger.warning(f"Failed to calculate {substituted!r}: {e}")
        return CalculationResult.failure(e)
    return CalculationResult.success(value)
