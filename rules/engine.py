"""
Rules Engine - Contexts, registry and rules file loading
========================================================

This module turns a rules file into named contexts and installs them
on the host bus.

Rules file format::

    ; message name = [priority][,context]
    [install]
    call.route=50,route
    # priority 100, context "user.auth"
    user.auth=

    [route]
    if ${called}^(\\d{3})$=return sip/\\1
    ${called}.*=echo Unroutable ${called}

Every section other than [install] is a context: its lines are rules
evaluated in order until one marks the message handled or returns.
"""

import re
import threading
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from core.config import EngineConfig
from core.exceptions import ConfigError, RegexpHandlerError
from core.logging import get_logger
from services.message import Message
from .backrefs import compile_pattern
from .grammar import Action, Command, parse_command
from .interpreter import IF_RE, Interpreter

logger = get_logger("rules.engine")

INSTALL_SECTION = "install"

SECTION_RE = re.compile(r"^\s*\[(?P<name>[a-zA-Z0-9._]+)\]")
SKIP_RE = re.compile(r"^\s*(?:[;#]|$)")
INSTALL_RE = re.compile(
    r"^\s*(?P<message>[a-zA-Z0-9._]+)=\s*"
    r"(?P<priority>\d+)?"
    r"(?:\s*,\s*)?"
    r"(?P<context>\w[a-zA-Z0-9.]*)?\s*$"
)


@dataclass(frozen=True)
class Rule:
    """
    One compiled rule line.

    A line without a keyword runs as "if" when it has a target, even an
    empty one after a bare '=', and as "return" when it has none.

    Attributes:
        line (str): Source line
        command (Command): Parsed command with its action filled in
    """
    line: str
    command: Command

    @classmethod
    def compile(cls, line: str) -> 'Rule':
        """Compile a rule line."""
        command = parse_command(line)

        if command == Command() and line.strip():
            logger.warning(f"Rule does not parse, it will only stop its context: {line!r}")

        if command.action is None:
            action = Action.IF if command.has_target else Action.RETURN
            command = replace(command, action=action)

        if command.action is Action.IF:
            pattern = IF_RE.match(command.args).group("pattern")
            try:
                compile_pattern(pattern)
            except re.error as e:
                logger.warning(f"Rule pattern {pattern!r} is invalid and will never match: {e}")

        return cls(line=line, command=command)


class Context:
    """
    A named, ordered list of rules.

    Contexts are installed on the bus as message handlers. Evaluation
    stops at the first rule leaving the message handled or returned;
    the returned flag is cleared before the message leaves.

    Example:
        context = registry["route"]
        msg = context(Message("call.route", {"called": "100"}))
    """

    def __init__(self, name: str, rules: Sequence[Rule], interpreter: Interpreter):
        self.name = name
        self.rules = tuple(rules)
        self.interpreter = interpreter

    def evaluate(self, message: Message, depth: int = 0) -> Message:
        """
        Run the rules against a message.

        Args:
            message: Message to evaluate
            depth: call/jump nesting of this evaluation

        Returns:
            The message
        """
        for rule in self.rules:
            message = self.interpreter.run(message, rule.command, depth)
            if message.handled or message.returned:
                message.returned = False
                return message
        return message

    def __call__(self, message: Message) -> Message:
        """Bus entry point; evaluation errors are recorded on the message."""
        try:
            return self.evaluate(message)
        except RegexpHandlerError as e:
            logger.error(f"Context '{self.name}' failed on '{message.name}': {e}")
            message.error = str(e)
            message.returned = False
            return message

    def __len__(self) -> int:
        return len(self.rules)

    def __repr__(self) -> str:
        return f"Context({self.name!r}, {len(self.rules)} rules)"


class ContextRegistry(Mapping):
    """
    Read-only mapping of context name to Context.

    Built completely by build() before anyone can see it; contexts
    resolve call/jump targets through the registry they were built in.
    """

    def __init__(self, contexts: Optional[Dict[str, Context]] = None):
        self._contexts: Dict[str, Context] = dict(contexts or {})

    def __getitem__(self, name: str) -> Context:
        return self._contexts[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._contexts)

    def __len__(self) -> int:
        return len(self._contexts)

    @classmethod
    def build(
        cls,
        config: Dict[str, List[str]],
        host: Any,
        max_chain_length: int = 1000,
        max_call_depth: int = 64
    ) -> 'ContextRegistry':
        """
        Compile every non-install section into a context.

        Args:
            config: Section name to rule lines
            host: Bus handed to the interpreter
            max_chain_length: Interpreter chain guard
            max_call_depth: Interpreter call/jump guard

        Returns:
            The new registry
        """
        registry = cls()
        interpreter = Interpreter(host, registry, max_chain_length, max_call_depth)

        for name, lines in config.items():
            if name == INSTALL_SECTION:
                continue
            registry._contexts[name] = Context(name, [Rule.compile(line) for line in lines], interpreter)

        return registry


@dataclass(frozen=True)
class InstallDirective:
    """
    Binding of a message name to a context.

    Attributes:
        message_name (str): Message to subscribe to
        priority (int): Priority passed to the host
        context_name (str): Context handling the message
    """
    message_name: str
    priority: int = 100
    context_name: str = ""

    @classmethod
    def parse(cls, line: str, default_priority: int = 100) -> Optional['InstallDirective']:
        """
        Parse "message=[priority][,context]".

        Returns:
            The directive, or None when the line is malformed
        """
        found = INSTALL_RE.match(line)
        if not found:
            return None

        message_name = found.group("message")
        priority = found.group("priority")
        return cls(
            message_name=message_name,
            priority=int(priority) if priority else default_priority,
            context_name=found.group("context") or message_name,
        )


def parse_config(text: str) -> Dict[str, List[str]]:
    """
    Split rules file text into sections.

    Comment and blank lines are dropped, every other line is kept
    verbatim under the last section header. A repeated header continues
    its section, so a second [install] adds to the first rather than
    replacing it. Lines before the first header are ignored.

    Returns:
        Section name to lines, always including an "install" section
    """
    config: Dict[str, List[str]] = {INSTALL_SECTION: []}
    section = None

    for number, line in enumerate(text.splitlines(), 1):
        header = SECTION_RE.match(line)
        if header:
            section = header.group("name")
            config.setdefault(section, [])
            continue

        if SKIP_RE.match(line):
            continue

        if section is None:
            logger.warning(f"Line {number} is outside any section, ignored: {line!r}")
            continue

        config[section].append(line)

    return config


class RegexpEngine:
    """
    Owns the loaded rules and their bus subscriptions.

    A load builds the new registry first; only when that succeeded are
    the old bindings uninstalled and the new ones installed, so a rules
    file that cannot be read leaves the running rules in place.

    Example:
        bus = MessageBus()
        engine = RegexpEngine(bus, EngineConfig(rules_file="conf/regexp.conf"))
        engine.start()

        msg = bus.dispatch(Message("call.route", {"called": "100"}))
    """

    def __init__(self, host: Any, settings: Optional[EngineConfig] = None):
        """
        Initialize the engine.

        Args:
            host: Bus providing install/uninstall/enqueue/raw/error/info
            settings: Engine settings
        """
        self.host = host
        self.settings = settings or EngineConfig()
        self.registry = ContextRegistry()
        self.config: Dict[str, List[str]] = {INSTALL_SECTION: []}
        self.bindings: List[InstallDirective] = []
        self._lock = threading.Lock()

    # -- loading --

    def load(self, path: Optional[str] = None) -> Dict[str, List[str]]:
        """
        Load a rules file, replacing the current rules.

        Args:
            path: Rules file (defaults to settings.rules_file)

        Returns:
            The parsed configuration

        Raises:
            ConfigError: If the file cannot be read
        """
        rules_path = Path(path or self.settings.rules_file)
        try:
            text = rules_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Failed to read rules file: {e}", {"path": str(rules_path)}) from e

        return self.load_text(text, source=str(rules_path))

    def load_text(self, text: str, source: str = "<string>") -> Dict[str, List[str]]:
        """
        Load rules from text, replacing the current rules.

        Args:
            text: Rules file content
            source: Name used in log messages

        Returns:
            The parsed configuration
        """
        config = parse_config(text)
        registry = ContextRegistry.build(
            config,
            self.host,
            max_chain_length=self.settings.max_chain_length,
            max_call_depth=self.settings.max_call_depth,
        )

        directives = []
        for line in config[INSTALL_SECTION]:
            directive = InstallDirective.parse(line, self.settings.default_priority)
            if directive is None:
                logger.warning(f"Malformed install line ignored: {line!r}")
            else:
                directives.append(directive)

        with self._lock:
            self._unload()
            self.config = config
            self.registry = registry

            for directive in directives:
                context = registry.get(directive.context_name)
                if context is None:
                    logger.debug(
                        f"No context '{directive.context_name}' for '{directive.message_name}', skipped"
                    )
                    continue
                self.host.install(directive.message_name, context, directive.priority)
                self.bindings.append(directive)
                self.host.info(
                    "Regexp", directive.message_name,
                    "message has been installed to context", directive.context_name
                )

        logger.info(
            f"Loaded {len(registry)} context(s) and {len(self.bindings)} binding(s) from {source}"
        )
        return config

    def unload(self) -> None:
        """Uninstall every binding and drop all contexts."""
        with self._lock:
            self._unload()

    def _unload(self) -> None:
        for directive in self.bindings:
            self.host.uninstall(directive.message_name)
            self.host.info(
                "Regexp", directive.message_name,
                "message has been uninstalled from context", directive.context_name
            )
        self.bindings = []
        self.registry = ContextRegistry()
        self.config = {INSTALL_SECTION: []}

    def reload(self) -> Dict[str, List[str]]:
        """Reload the configured rules file."""
        return self.load(self.settings.rules_file)

    # -- host hooks --

    def on_command(self, message: Message) -> Message:
        """
        Handle the reload command message.

        Only a message whose "line" field is the reload command is
        handled; a failed reload is reported in message.error.
        """
        if message.get("line") != self.settings.reload_command:
            return message

        message.handled = True
        message.result = f"loading {self.settings.rules_file}"
        try:
            self.reload()
        except RegexpHandlerError as e:
            message.error = str(e)
            logger.error(f"Reload failed: {e}")
            self.host.error(message.error)
        return message

    def on_halt(self, message: Message) -> Message:
        """Release all bindings before the host exits."""
        self.unload()
        return message

    def start(self) -> bool:
        """
        Install the command/halt hooks and load the rules file.

        Returns:
            True if the rules file was loaded
        """
        self.host.install(self.settings.command_message, self.on_command, self.settings.command_priority)
        self.host.install(self.settings.halt_message, self.on_halt, self.settings.command_priority)

        try:
            self.load()
        except ConfigError as e:
            logger.error(f"Rules not loaded: {e}")
            self.host.error(str(e))
            return False

        self.host.info("Regexp module started.")
        return True

    def stop(self) -> None:
        """Unload the rules and remove the command/halt hooks."""
        self.unload()
        self.host.uninstall(self.settings.command_message, self.on_command)
        self.host.uninstall(self.settings.halt_message, self.on_halt)

    # -- queries --

    def get_context(self, name: str) -> Optional[Context]:
        """Get a context of the current registry by name."""
        return self.registry.get(name)

    def list_contexts(self) -> List[str]:
        """Get the names of the loaded contexts."""
        return list(self.registry)
