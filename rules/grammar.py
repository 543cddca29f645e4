"""
Command Grammar - Parsing of rule command lines
===============================================

A command line has the shape::

    [=][action ]args[;key=value...][=target]

- action: if | echo | return | enqueue | call | jump, followed by
  whitespace or ';'
- args: free text up to the first ';' or '='
- params: ';'-separated key=value groups (value may be empty)
- target: everything after the next '=', verbatim; usually another
  command line executed when this one chains

Examples:
    if ${param}regexp=return true;param1=\\1
    ${param}.*=echo ${text}
    .*=echo Message ${param}
    return;first=Hello;second=World
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional
from urllib.parse import parse_qsl


class Action(Enum):
    """Rule command keywords."""
    IF = "if"
    RETURN = "return"
    ECHO = "echo"
    ENQUEUE = "enqueue"
    CALL = "call"
    JUMP = "jump"
    DISPATCH = "dispatch"  # reserved, never produced by the parser


COMMAND_RE = re.compile(
    r"^\s*=?"
    r"(?P<action>(?:if|echo|return|enqueue|call|jump)(?=\s|;))?"
    r"\s?"
    r"(?P<args>[^;=]+)?"
    r"(?P<params>(?:;[^;=]+=?[^;=]*)+)?"
    r"(?P<target>=.*)?$",
    re.DOTALL
)


@dataclass(frozen=True)
class Command:
    """
    One parsed command line.

    Attributes:
        action (Action): Keyword, or None when the line has none
        args (str): Argument text
        params (str): Raw parameter groups, including leading ';'
        target (str): Chained line, without its leading '='; None when the
            line has no '=' at all, "" when it ends in a bare '='
    """
    action: Optional[Action] = None
    args: str = ""
    params: str = ""
    target: Optional[str] = None

    @property
    def has_target(self) -> bool:
        return self.target is not None


def parse_command(line: str) -> Command:
    """
    Parse a command line.

    Never raises: a line that does not fit the grammar gives an empty
    Command, which callers execute as a no-op return.

    Args:
        line: Command line text

    Returns:
        Parsed Command
    """
    match = COMMAND_RE.match(line or "")
    if not match:
        return Command()

    action = match.group("action")
    target = match.group("target")
    return Command(
        action=Action(action) if action else None,
        args=match.group("args") or "",
        params=match.group("params") or "",
        target=target[1:] if target is not None else None,
    )


def parse_params(text: str) -> Dict[str, str]:
    """
    Split ';'-separated key=value pairs.

    Query-string rules apply: percent escapes are decoded, '+' reads as
    a space, a key without '=' gets an empty value, empty groups are
    skipped and the last duplicate key wins.
    """
    if not text:
        return {}
    return dict(parse_qsl(text, keep_blank_values=True, separator=";"))
