"""
Regexp Handler - Rule-driven message routing with regular expressions
=====================================================================

A small rules engine that reads an INI-style rules file of named contexts
and installs them as message handlers on a host bus. Each rule line is a
command (if, return, echo, enqueue, call, jump) evaluated against the
message's fields, with ${field} and $(function) placeholders and \\N
backreferences.

Author: Regexp Handler Team
License: MIT
Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Regexp Handler Team"
__license__ = "MIT"
