"""
Template Engine - Placeholder substitution for command text
===========================================================

Command text may reference message fields and builtin functions:

- ${name}        - value of message field "name"
- $(func args)   - result of a builtin function:
    $(random ###-@@@)    random digits/letters/alphanumerics (#, @, *)
    $(uuid)              a fresh random UUID
    $(date %Y-%m-%d)     current local time, strftime format; with no
                         format, an ISO-8601 timestamp

Unknown functions are left in place without their delimiters. An
unterminated placeholder is kept as literal text.

date takes strftime directives only. Moment-style tokens such as
"YYYY-MM-DD HH:mm" are not translated and come out as literal text.
"""

import random
import re
import string
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Union

from core.logging import get_logger
from .values import format_value

logger = get_logger("rules.templates")

FUNCTION_RE = re.compile(r"^=?(?P<func>random|uuid|date)[ ,]*=?(?P<args>.+)?$", re.DOTALL)

LETTERS = string.ascii_uppercase + string.ascii_lowercase
CHARACTERS = LETTERS + string.digits

DELIMITERS = {"{": "}", "(": ")"}


@dataclass(frozen=True)
class Literal:
    """Plain text."""
    text: str


@dataclass(frozen=True)
class FieldRef:
    """A ${name} placeholder."""
    name: str


@dataclass(frozen=True)
class FuncRef:
    """A $(func args) placeholder; payload is the text between the parens."""
    payload: str


Token = Union[Literal, FieldRef, FuncRef]


def tokenize(template: str) -> List[Token]:
    """
    Split a template into literal text and placeholders in one scan.

    Empty placeholders produce no token. An opening delimiter without
    its closing one turns the rest of the template into literal text.
    """
    tokens: List[Token] = []
    literal: List[str] = []
    i = 0
    n = len(template)

    while i < n:
        start = template.find("$", i)
        if start == -1 or start + 1 >= n:
            literal.append(template[i:])
            break

        opener = template[start + 1]
        if opener not in DELIMITERS:
            literal.append(template[i:start + 1])
            i = start + 1
            continue

        end = template.find(DELIMITERS[opener], start + 2)
        if end == -1:
            literal.append(template[i:])
            break

        literal.append(template[i:start])
        if literal:
            text = "".join(literal)
            if text:
                tokens.append(Literal(text))
            literal = []

        payload = template[start + 2:end]
        if payload:
            tokens.append(FieldRef(payload) if opener == "{" else FuncRef(payload))
        i = end + 1

    text = "".join(literal)
    if text:
        tokens.append(Literal(text))
    return tokens


def _random(*parts: str) -> str:
    chars = []
    for char in " ".join(parts):
        if char == "*":
            chars.append(random.choice(CHARACTERS))
        elif char == "@":
            chars.append(random.choice(LETTERS))
        elif char == "#":
            chars.append(random.choice(string.digits))
        else:
            chars.append(char)
    return "".join(chars)


def _uuid(*parts: str) -> str:
    return str(uuid.uuid4())


def _date(*parts: str) -> str:
    now = datetime.now()
    fmt = ", ".join(parts)
    if not fmt:
        return now.isoformat(timespec="seconds")
    return now.strftime(fmt)


FUNCTIONS: Dict[str, Callable[..., str]] = {
    "random": _random,
    "uuid": _uuid,
    "date": _date,
}


def call_function(payload: str) -> str:
    """
    Evaluate a $(...) payload.

    Arguments are split on commas and stripped. An unknown function
    returns the payload unchanged.
    """
    found = FUNCTION_RE.match(payload)
    if not found:
        logger.debug(f"Unknown function, keeping text: {payload}")
        return payload

    args = found.group("args")
    parts = [part.strip() for part in args.split(",")] if args else []
    return FUNCTIONS[found.group("func")](*parts)


def substitute(message, template: str) -> str:
    """
    Replace the placeholders of a template.

    Args:
        message: Object with a get(name) method (the message)
        template: Text with ${...} and $(...) placeholders

    Returns:
        The substituted text
    """
    if not template or "$" not in template:
        return template or ""

    out = []
    for token in tokenize(template):
        if isinstance(token, Literal):
            out.append(token.text)
        elif isinstance(token, FieldRef):
            out.append(format_value(message.get(token.name)))
        else:
            out.append(call_function(token.payload))
    return "".join(out)
