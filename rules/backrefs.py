"""
Backreferences - \\N capture group substitution
===============================================

Runs a pattern against a source string and fills \\0, \\1, ... in a
template with the captured groups of the first match.
"""

import re
from functools import lru_cache
from typing import Pattern, Union

DIGITS = "0123456789"


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> Pattern:
    """Compile and cache a rule pattern. Raises re.error when invalid."""
    return re.compile(pattern)


def apply_backrefs(pattern: Union[str, Pattern], source: str, template: str) -> str:
    """
    Substitute capture groups into a template.

    A backslash followed by digits becomes that group's text (group 0 is
    the whole match); groups that did not participate, or do not exist,
    become empty. A backslash followed by anything else is kept.

    Args:
        pattern: Regular expression, text or compiled
        source: String to search
        template: Text with \\N tokens

    Returns:
        The filled template, or "" when the pattern does not match
    """
    if isinstance(pattern, str):
        pattern = compile_pattern(pattern)

    found = pattern.search(source or "")
    if not found:
        return ""

    out = []
    i = 0
    n = len(template)
    while i < n:
        char = template[i]
        if char != "\\":
            out.append(char)
            i += 1
            continue

        j = i + 1
        while j < n and template[j] in DIGITS:
            j += 1

        if j == i + 1:
            out.append("\\")
        else:
            group = int(template[i + 1:j])
            if group <= pattern.groups:
                out.append(found.group(group) or "")
        i = j

    return "".join(out)
