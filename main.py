#!/usr/bin/env python3
"""
Regexp Handler - Main Entry Point
=================================

Command-line interface for loading a rules file and routing messages
through it.

Usage:
    python main.py --check                      # Load rules and list them
    python main.py --test call.route called=100 # Dispatch one message
    python main.py --daemon                     # Read messages from stdin
    python main.py --help                       # Show help
"""

import sys
import argparse
import signal
from pathlib import Path
from typing import List

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from core.config import load_config, Config
from core.logging import setup_logging, get_logger
from core.exceptions import RegexpHandlerError
from rules.engine import RegexpEngine
from rules.grammar import parse_params
from rules.values import parse_type
from services.bus import MessageBus
from services.message import Message

logger = get_logger("main")


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Regexp Handler - rule-based message rewriting",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --check                           List contexts and bindings
  python main.py --rules my.conf --check           Use another rules file
  python main.py --test call.route called=100      Dispatch one message
  python main.py --daemon                          Dispatch messages read from stdin

Daemon input lines look like: call.route called=100 caller=200
The line "regexp reload" reloads the rules file.
        """
    )

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--check",
        action="store_true",
        help="Load the rules file and print its contexts and bindings"
    )
    mode_group.add_argument(
        "--test",
        nargs="+",
        metavar=("NAME", "FIELD=VALUE"),
        help="Dispatch one message (usage: --test NAME [field=value ...])"
    )
    mode_group.add_argument(
        "--daemon",
        action="store_true",
        help="Dispatch messages read from stdin until EOF"
    )

    parser.add_argument(
        "--config",
        type=str,
        metavar="PATH",
        help="Path to settings file"
    )
    parser.add_argument(
        "--rules",
        type=str,
        metavar="PATH",
        help="Path to rules file (overrides settings)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args()


def build_message(name: str, pairs: List[str]) -> Message:
    """Build a message from NAME and field=value arguments."""
    fields = parse_params(";".join(pairs))
    return Message(name, {key: parse_type(value) for key, value in fields.items()})


def print_message(message: Message) -> None:
    """Print a dispatched message."""
    print(f"\nMessage: {message.name}")
    print(f"  handled: {message.handled}")
    print(f"  result:  {message.result!r}")
    if message.error:
        print(f"  error:   {message.error}")
    for key, value in message.fields.items():
        print(f"  {key} = {value!r}")


def run_check(config: Config) -> int:
    """Load the rules file and list what it defines."""
    bus = MessageBus()
    engine = RegexpEngine(bus, config.engine)
    engine.load()

    print(f"\nRules file: {config.engine.rules_file}")
    print("\nContexts:")
    for name in engine.list_contexts():
        print(f"  [{name}] {len(engine.get_context(name))} rule(s)")

    print("\nBindings:")
    if not engine.bindings:
        print("  (none)")
    for directive in engine.bindings:
        print(f"  {directive.message_name} -> {directive.context_name} (priority {directive.priority})")

    engine.unload()
    return 0


def run_test_message(config: Config, name: str, pairs: List[str]) -> int:
    """Dispatch a single message and print the outcome."""
    bus = MessageBus()
    engine = RegexpEngine(bus, config.engine)
    engine.load()

    message = bus.dispatch(build_message(name, pairs))
    print_message(message)

    for queued in bus.process_pending(limit=100):
        print("\nQueued message dispatched:")
        print_message(queued)

    engine.unload()
    return 0 if not message.error else 1


def run_daemon(config: Config) -> int:
    """Dispatch messages read from stdin."""
    bus = MessageBus()
    engine = RegexpEngine(bus, config.engine)
    bus.start()
    engine.start()

    def reload(signum, frame):
        logger.info("SIGHUP received, reloading rules")
        bus.enqueue(Message(config.engine.command_message, {"line": config.engine.reload_command}))

    def shutdown(signum, frame):
        logger.info("Shutting down...")
        bus.dispatch(Message(config.engine.halt_message))
        bus.stop()
        sys.exit(0)

    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, reload)
    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    logger.info("Reading messages from stdin")
    for raw_line in sys.stdin:
        line = raw_line.strip()
        if not line:
            continue

        if line == config.engine.reload_command:
            message = Message(config.engine.command_message, {"line": line})
        else:
            name, *pairs = line.split()
            message = build_message(name, pairs)

        bus.enqueue(message)

    bus.join()
    bus.dispatch(Message(config.engine.halt_message))
    bus.stop()
    return 0


def main() -> int:
    """Main entry point."""
    args = parse_args()

    try:
        config = load_config(args.config)

        if args.rules:
            config.engine.rules_file = args.rules
        if args.debug:
            config.debug = True
            config.logging.level = "DEBUG"

        setup_logging(
            log_dir=config.logging.log_dir or None,
            log_level=config.logging.level,
            json_format=config.logging.json_format,
            console_output=config.logging.console_output
        )

        if args.check:
            return run_check(config)
        elif args.test:
            return run_test_message(config, args.test[0], args.test[1:])
        elif args.daemon:
            return run_daemon(config)

        print("\nNo mode specified. Use --check, --test or --daemon (see --help)")
        return 0

    except RegexpHandlerError as e:
        print(f"\nError: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
