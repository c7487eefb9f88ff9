"""
Configuration parsing module with nginx-like syntax support.
"""

from .lexer import Lexer, Token, TokenType
from .loader import ConfigError, ConfigLoader
from .parser import ConfigParser
from .schema import AddressParseError, Config, parse_listen_address

__all__ = [
    "Lexer",
    "Token",
    "TokenType",
    "ConfigParser",
    "Config",
    "ConfigError",
    "ConfigLoader",
    "AddressParseError",
    "parse_listen_address",
]
