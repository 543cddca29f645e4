"""
Rules Module - Regexp command rules
===================================

This module compiles rule command lines and runs them against messages:
- Command grammar parsing
- ${field} and $(function) placeholder substitution
- \\N regex backreference substitution
- if / return / echo / enqueue / call / jump interpretation
- Contexts, the context registry and rules file loading
"""

from .grammar import Action, Command, parse_command, parse_params
from .templates import substitute, tokenize
from .backrefs import apply_backrefs
from .values import parse_type, format_value
from .interpreter import Interpreter
from .engine import (
    RegexpEngine,
    Rule,
    Context,
    ContextRegistry,
    InstallDirective,
    parse_config,
)

__all__ = [
    "Action",
    "Command",
    "parse_command",
    "parse_params",
    "substitute",
    "tokenize",
    "apply_backrefs",
    "parse_type",
    "format_value",
    "Interpreter",
    "RegexpEngine",
    "Rule",
    "Context",
    "ContextRegistry",
    "InstallDirective",
    "parse_config",
]
