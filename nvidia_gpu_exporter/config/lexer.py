"""
Lexer (tokenizer) for the nginx-like configuration syntax.

Supports:
- Identifiers (block and directive names, bare words like "info")
- Quoted strings (single or double quotes, backslash escapes)
- Numbers, and durations with a unit suffix (500ms, 10s, 1m)
- Booleans (on/off/true/false)
- Braces and semicolons
- Single-line (#) and multi-line (/* */) comments
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator


class TokenType(Enum):
    """Token types for the config syntax."""

    IDENTIFIER = auto()
    STRING = auto()
    NUMBER = auto()
    DURATION = auto()      # value normalized to seconds
    BOOLEAN = auto()

    LBRACE = auto()
    RBRACE = auto()
    SEMICOLON = auto()

    EOF = auto()


@dataclass
class Token:
    """A single token from the lexer."""

    type: TokenType
    value: str | int | float | bool
    line: int
    column: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


class LexerError(Exception):
    """Exception raised for lexer errors."""

    def __init__(self, message: str, line: int, column: int):
        self.line = line
        self.column = column
        super().__init__(f"Line {line}, column {column}: {message}")


class Lexer:
    """
    Tokenizer for configuration files.

    Example:
        web {
            listen "0.0.0.0:9445";
            telemetry_path "/metrics";
        }
        nvml {
            timeout 10s;
        }
    """

    BOOLEAN_KEYWORDS = {"on": True, "off": False, "true": True, "false": False}

    # Duration units in seconds
    DURATION_UNITS = {
        "ms": 0.001,
        "s": 1,
        "m": 60,
        "h": 3600,
    }

    SINGLE_CHAR_TOKENS = {
        "{": TokenType.LBRACE,
        "}": TokenType.RBRACE,
        ";": TokenType.SEMICOLON,
    }

    def __init__(self, source: str, filename: str = "<string>"):
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.column = 1

    def _current(self) -> str:
        if self.pos >= len(self.source):
            return ""
        return self.source[self.pos]

    def _peek(self) -> str:
        if self.pos + 1 >= len(self.source):
            return ""
        return self.source[self.pos + 1]

    def _advance(self) -> str:
        char = self._current()
        if not char:
            return ""
        self.pos += 1
        if char == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return char

    def _skip_whitespace_and_comments(self) -> None:
        while True:
            while self._current() and self._current() in " \t\r\n":
                self._advance()

            if self._current() == "#":
                while self._current() and self._current() != "\n":
                    self._advance()
                continue

            if self._current() == "/" and self._peek() == "*":
                start_line, start_col = self.line, self.column
                self._advance()
                self._advance()
                while not (self._current() == "*" and self._peek() == "/"):
                    if not self._current():
                        raise LexerError("Unterminated multi-line comment", start_line, start_col)
                    self._advance()
                self._advance()
                self._advance()
                continue

            return

    def _read_string(self) -> Token:
        start_line, start_col = self.line, self.column
        quote = self._advance()
        escapes = {"n": "\n", "t": "\t", "r": "\r"}
        result = []

        while self._current() != quote:
            char = self._current()
            if not char or char == "\n":
                raise LexerError("Unterminated string literal", start_line, start_col)
            if char == "\\":
                self._advance()
                escaped = self._current()
                if not escaped:
                    raise LexerError("Unexpected end of string", self.line, self.column)
                result.append(escapes.get(escaped, escaped))
            else:
                result.append(char)
            self._advance()

        self._advance()  # closing quote
        return Token(TokenType.STRING, "".join(result), start_line, start_col)

    def _read_number_or_duration(self) -> Token:
        start_line, start_col = self.line, self.column
        start = self.pos

        has_dot = False
        while self._current().isdigit() or (self._current() == "." and not has_dot):
            if self._current() == ".":
                has_dot = True
            self._advance()
        num_str = self.source[start:self.pos]

        unit_start = self.pos
        while self._current().isalpha():
            self._advance()
        unit = self.source[unit_start:self.pos].lower()

        try:
            number = float(num_str) if has_dot else int(num_str)
        except ValueError:
            raise LexerError(f"Invalid number: {num_str}", start_line, start_col) from None

        if not unit:
            return Token(TokenType.NUMBER, number, start_line, start_col)

        if unit not in self.DURATION_UNITS:
            raise LexerError(f"Unknown duration unit: {unit}", start_line, start_col)

        return Token(
            TokenType.DURATION,
            number * self.DURATION_UNITS[unit],
            start_line,
            start_col,
        )

    def _read_identifier(self) -> Token:
        start_line, start_col = self.line, self.column
        start = self.pos

        while self._current() and (self._current().isalnum() or self._current() in "_-."):
            self._advance()

        raw = self.source[start:self.pos]
        keyword = raw.lower()
        if keyword in self.BOOLEAN_KEYWORDS:
            return Token(TokenType.BOOLEAN, self.BOOLEAN_KEYWORDS[keyword], start_line, start_col)

        return Token(TokenType.IDENTIFIER, raw, start_line, start_col)

    def next_token(self) -> Token:
        """Get the next token from the source."""
        self._skip_whitespace_and_comments()

        char = self._current()
        if not char:
            return Token(TokenType.EOF, "", self.line, self.column)

        if char in self.SINGLE_CHAR_TOKENS:
            token = Token(self.SINGLE_CHAR_TOKENS[char], char, self.line, self.column)
            self._advance()
            return token

        if char in "\"'":
            return self._read_string()

        if char.isdigit():
            return self._read_number_or_duration()

        if char.isalpha() or char == "_":
            return self._read_identifier()

        raise LexerError(f"Unexpected character: {char!r}", self.line, self.column)

    def tokenize(self) -> Iterator[Token]:
        """Generate all tokens, ending with EOF."""
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.EOF:
                break

    def __iter__(self) -> Iterator[Token]:
        return self.tokenize()


def tokenize(source: str, filename: str = "<string>") -> list[Token]:
    """Convenience function to tokenize a source string."""
    return list(Lexer(source, filename))
