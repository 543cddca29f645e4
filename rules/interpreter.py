"""
Command Interpreter - Executes rule command lines against a message
===================================================================

Each command either finishes with the message (return, call, jump) or
produces the next command line (if, echo, enqueue, dispatch), which is
parsed and executed in turn until a terminal command is reached.

- if:      match a pattern against a field; on match the target, with
           \\N backreferences filled in, runs next; otherwise nothing
           happens and the enclosing context moves on
- return:  write params into fields; non-empty args become the result
           and mark the message handled; stops the enclosing context
- echo:    write args+params to the host's raw output, then run target
- enqueue: submit a new message named by args with params as fields,
           then run target
- call:    evaluate another context on the message
- jump:    like call, then stop the enclosing context
"""

import re
from typing import Any, Mapping

from core.exceptions import ChainLimitError, EnqueueError
from core.logging import get_logger
from services.message import Message
from .backrefs import apply_backrefs
from .grammar import Action, Command, parse_command, parse_params
from .templates import substitute
from .values import parse_type

logger = get_logger("rules.interpreter")

IF_RE = re.compile(r"^\s*(?P<source>\$\{[0-9a-zA-Z._]+\})?(?P<pattern>.*)$", re.DOTALL)


class Interpreter:
    """
    Runs commands for the contexts of one registry.

    Attributes:
        host: Bus receiving raw output, queued messages and errors
        contexts: Mapping of context name to context, used by call/jump
        max_chain_length (int): Maximum chained lines per run
        max_call_depth (int): Maximum call/jump nesting
    """

    def __init__(
        self,
        host: Any,
        contexts: Mapping[str, Any],
        max_chain_length: int = 1000,
        max_call_depth: int = 64
    ):
        self.host = host
        self.contexts = contexts
        self.max_chain_length = max_chain_length
        self.max_call_depth = max_call_depth

    def run(self, message: Message, command: Command, depth: int = 0) -> Message:
        """
        Execute a command and everything it chains into.

        Args:
            message: Message being evaluated
            command: First command to execute
            depth: Current call/jump nesting

        Returns:
            The message

        Raises:
            ChainLimitError: If the chain or call nesting runs away
        """
        steps = 0
        while True:
            steps += 1
            if steps > self.max_chain_length:
                raise ChainLimitError(
                    "Too many chained commands",
                    limit=self.max_chain_length,
                    details={"message": message.name}
                )

            action = command.action

            if action is Action.CALL:
                return self._call(message, command.args, depth)

            if action is Action.JUMP:
                return self._call(message, command.args, depth, jump=True)

            if action is Action.RETURN:
                message.returned = True
                return self._return(message, command)

            if action is None:
                return self._return(message, command)

            if action is Action.IF:
                line = self._if(message, command)
            elif action is Action.ECHO:
                line = self._echo(message, command)
            elif action is Action.ENQUEUE:
                line = self._enqueue(message, command)
            else:
                # Action.DISPATCH, reserved
                line = command.target or ""

            logger.debug(f"{action.value} -> {line!r}")
            command = parse_command(line)

    def _call(self, message: Message, name: str, depth: int, jump: bool = False) -> Message:
        context = self.contexts.get(name.strip())
        if context is None:
            logger.debug(f"No context named {name.strip()!r}")
            return message

        if depth >= self.max_call_depth:
            raise ChainLimitError(
                "Context calls nested too deeply",
                limit=self.max_call_depth,
                details={"message": message.name, "context": context.name}
            )

        result = context.evaluate(message, depth + 1)
        if jump:
            result.returned = True
        return result

    def _if(self, message: Message, command: Command) -> str:
        found = IF_RE.match(command.args)
        source = substitute(message, found.group("source") or "")
        try:
            return apply_backrefs(found.group("pattern"), source, command.target or "")
        except re.error as e:
            logger.warning(f"Invalid pattern {found.group('pattern')!r}: {e}")
            return ""

    def _return(self, message: Message, command: Command) -> Message:
        args = substitute(message, command.args).strip()
        params = parse_params(substitute(message, command.params))

        for key, value in params.items():
            message.set(key, parse_type(value))

        if args:
            message.result = parse_type(args)
            message.handled = True
        return message

    def _echo(self, message: Message, command: Command) -> str:
        args = substitute(message, command.args)
        params = substitute(message, command.params)
        self.host.raw(args + params)
        return substitute(message, command.target)

    def _enqueue(self, message: Message, command: Command) -> str:
        try:
            name = substitute(message, command.args).strip()
            if not name:
                raise EnqueueError("enqueue needs a message name", {"params": command.params})

            params = parse_params(substitute(message, command.params))
            queued = Message(name, {key: parse_type(value) for key, value in params.items()})
            self.host.enqueue(queued)
            logger.debug(f"Enqueued {queued.name}")
        except Exception as e:
            logger.error(f"enqueue failed: {e}", exc_info=True)
            self.host.error("regexp enqueue", str(e))

        return substitute(message, command.target)
