"""
Recursive descent parser for the nginx-like configuration syntax.

Grammar:
    document    := (block | directive)*
    block       := IDENTIFIER [STRING] '{' (block | directive)* '}'
    directive   := IDENTIFIER value* ';'
    value       := STRING | NUMBER | DURATION | BOOLEAN | IDENTIFIER
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .lexer import Lexer, Token, TokenType


class ParseError(Exception):
    """Exception raised for parser errors."""

    def __init__(self, message: str, token: Token | None = None):
        self.token = token
        if token:
            super().__init__(f"Line {token.line}, column {token.column}: {message}")
        else:
            super().__init__(message)


@dataclass
class Directive:
    """
    A configuration directive with a name and values.

    Examples:
        listen "0.0.0.0:9445";  -> Directive(name="listen", values=["0.0.0.0:9445"])
        timeout 10s;            -> Directive(name="timeout", values=[10])
        colors off;             -> Directive(name="colors", values=[False])
    """

    name: str
    values: list[Any] = field(default_factory=list)
    line: int = 0
    column: int = 0

    @property
    def value(self) -> Any:
        """First value or None."""
        return self.values[0] if self.values else None


@dataclass
class Block:
    """A configuration block: `type ["name"] { ... }`."""

    type: str
    name: str | None = None
    directives: list[Directive] = field(default_factory=list)
    blocks: list["Block"] = field(default_factory=list)
    line: int = 0
    column: int = 0

    def __repr__(self) -> str:
        return (
            f"Block({self.type}, {self.name!r}, directives={len(self.directives)}, "
            f"blocks={len(self.blocks)})"
        )

    def get_directive(self, name: str) -> Directive | None:
        """Last directive with given name (later directives override earlier ones)."""
        found = None
        for d in self.directives:
            if d.name == name:
                found = d
        return found

    def get_value(self, name: str, default: Any = None) -> Any:
        directive = self.get_directive(name)
        if directive is not None and directive.values:
            return directive.value
        return default


@dataclass
class ConfigDocument:
    """Root document containing all top-level blocks and directives."""

    blocks: list[Block] = field(default_factory=list)
    directives: list[Directive] = field(default_factory=list)
    filename: str = "<string>"

    def get_block(self, type_name: str) -> Block | None:
        for b in self.blocks:
            if b.type == type_name:
                return b
        return None


class ConfigParser:
    """Recursive descent parser producing a ConfigDocument."""

    VALUE_TYPES = (
        TokenType.STRING,
        TokenType.NUMBER,
        TokenType.DURATION,
        TokenType.BOOLEAN,
        TokenType.IDENTIFIER,
    )

    def __init__(self, source: str, filename: str = "<string>"):
        self.lexer = Lexer(source, filename)
        self.filename = filename
        self.current_token: Token = self.lexer.next_token()

    def _advance(self) -> Token:
        """Advance to next token and return the previous one."""
        previous = self.current_token
        self.current_token = self.lexer.next_token()
        return previous

    def _check(self, token_type: TokenType) -> bool:
        return self.current_token.type == token_type

    def _expect(self, token_type: TokenType, message: str = "") -> Token:
        if not self._check(token_type):
            msg = message or f"Expected {token_type.name}, got {self.current_token.type.name}"
            raise ParseError(msg, self.current_token)
        return self._advance()

    def parse(self) -> ConfigDocument:
        """Parse the entire configuration document."""
        doc = ConfigDocument(filename=self.filename)

        while not self._check(TokenType.EOF):
            if not self._check(TokenType.IDENTIFIER):
                raise ParseError(
                    f"Expected block or directive; got {self.current_token.type.name}",
                    self.current_token,
                )
            result = self._parse_block_or_directive()
            if isinstance(result, Block):
                doc.blocks.append(result)
            else:
                doc.directives.append(result)

        return doc

    def _parse_block_or_directive(self) -> Block | Directive:
        name_token = self._expect(TokenType.IDENTIFIER)
        name = str(name_token.value)

        values: list[Any] = []
        while self.current_token.type in self.VALUE_TYPES:
            values.append(self._advance().value)

        if self._check(TokenType.LBRACE):
            if len(values) > 1 or (values and not isinstance(values[0], str)):
                raise ParseError(
                    f"Block '{name}' accepts at most one string name before '{{'",
                    self.current_token,
                )
            block_name = values[0] if values else None
            return self._parse_block_body(name, block_name, name_token)

        if self._check(TokenType.SEMICOLON):
            self._advance()
            return Directive(
                name=name,
                values=values,
                line=name_token.line,
                column=name_token.column,
            )

        raise ParseError(
            f"Expected '{{' or ';' after directive '{name}'",
            self.current_token,
        )

    def _parse_block_body(self, type_name: str, name: str | None, start: Token) -> Block:
        self._expect(TokenType.LBRACE)
        block = Block(type=type_name, name=name, line=start.line, column=start.column)

        while not self._check(TokenType.RBRACE):
            if not self._check(TokenType.IDENTIFIER):
                raise ParseError(
                    f"Expected directive or nested block in '{type_name}' block",
                    self.current_token,
                )
            result = self._parse_block_or_directive()
            if isinstance(result, Block):
                block.blocks.append(result)
            else:
                block.directives.append(result)

        self._expect(TokenType.RBRACE, f"Expected '}}' to close '{type_name}' block")
        return block


def parse_config(source: str, filename: str = "<string>") -> ConfigDocument:
    """Parse a configuration string."""
    return ConfigParser(source, filename).parse()


def parse_config_file(path: str | Path) -> ConfigDocument:
    """Parse a configuration file."""
    path = Path(path)
    return parse_config(path.read_text(), str(path))
