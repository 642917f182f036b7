"""
StudyREPL Interactive REPL (Read-Eval-Print Loop)

Provides an interactive environment for experimenting with optionals,
random numbers, string interpolation and records, plus a one-shot
`eval` command for scripts:

    studyrepl eval 'let x: Int? = nil; x ?? 5'
"""

import argparse
import atexit
import logging
import readline
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, TextIO

from ..core.random_source import get_default_source
from ..core.values import Value, describe
from ..errors.diagnostics import DiagnosticEngine
from ..errors.exceptions import StudyReplError
from ..interpreter import Interpreter
from .. import __version__

logger = logging.getLogger(__name__)


@dataclass
class ReplConfig:
    """Settings for a REPL session, filled in from command-line flags"""
    seed: Optional[int] = None
    history_file: Optional[Path] = Path.home() / '.studyrepl_history'
    history_length: int = 1000
    prompt: str = "study> "
    continuation_prompt: str = "...    "
    use_color: bool = True


def format_error(error: StudyReplError, use_color: bool = False) -> str:
    """Render an error as '<Kind>: <message>' plus hints"""
    if error.diagnostic is None:
        return f"{error.kind}: {error}"
    return DiagnosticEngine(use_color=use_color).format_diagnostic(error.diagnostic)


class REPLEnvironment:
    """Maintains state for the REPL session"""

    def __init__(self, config: Optional[ReplConfig] = None, output: Optional[TextIO] = None):
        self.config = config or ReplConfig()
        self.random_source = get_default_source()
        if self.config.seed is not None:
            self.random_source.seed(self.config.seed)
        self.output = output
        self.interpreter = Interpreter(random_source=self.random_source, output=output)
        self.history: List[str] = []

    def evaluate(self, code: str, filename: Optional[str] = None) -> Optional[Value]:
        """Evaluate code in the current environment"""
        self.history.append(code)
        return self.interpreter.eval(code, filename)

    def reset(self):
        self.interpreter.reset()
        self.history = []

    def reseed(self, seed: int):
        self.config.seed = seed
        self.random_source.seed(seed)


class REPL:
    """The main REPL interface"""

    def __init__(self, config: Optional[ReplConfig] = None):
        self.config = config or ReplConfig()
        self.env = REPLEnvironment(self.config)
        self.multiline_buffer: List[str] = []
        self.in_multiline = False

    def _setup_history(self):
        """Load readline history and save it again on exit"""
        history_file = self.config.history_file
        if history_file is None:
            return
        readline.set_history_length(self.config.history_length)
        try:
            readline.read_history_file(history_file)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not read history file %s: %s", history_file, e)
        atexit.register(self._save_history)

    def _save_history(self):
        try:
            readline.write_history_file(self.config.history_file)
        except OSError as e:
            logger.warning("Could not write history file %s: %s", self.config.history_file, e)

    def run(self):
        """Run the REPL"""
        self._setup_history()
        self._print_banner()

        while True:
            try:
                prompt = self.config.continuation_prompt if self.in_multiline else self.config.prompt
                line = input(prompt)

                # Handle special commands
                if not self.in_multiline and line.strip().startswith(':'):
                    if self._handle_command(line.strip()):
                        continue
                    else:
                        break

                self.multiline_buffer.append(line)
                code = '\n'.join(self.multiline_buffer)
                if not self._is_complete(code):
                    self.in_multiline = True
                    continue

                self.multiline_buffer = []
                self.in_multiline = False

                if not code.strip():
                    continue

                result = self.env.evaluate(code)
                if result is not None:
                    print(describe(result))

            except KeyboardInterrupt:
                print("\nInterrupted")
                self.multiline_buffer = []
                self.in_multiline = False
                continue

            except EOFError:
                print("\nGoodbye!")
                break

            except StudyReplError as e:
                print(format_error(e, self.config.use_color))
                self.multiline_buffer = []
                self.in_multiline = False

            except Exception as e:
                logger.debug("Unexpected failure", exc_info=True)
                print(f"{type(e).__name__}: {e}")
                self.multiline_buffer = []
                self.in_multiline = False

    def _print_banner(self):
        """Print welcome banner"""
        print(f"StudyREPL v{__version__}")
        print("Type :help for help, :quit to exit")
        print()

    def _handle_command(self, command: str) -> bool:
        """Handle REPL commands. Returns True to continue, False to quit."""
        cmd = command[1:].strip()
        name, _, argument = cmd.partition(' ')
        name = name.lower()
        argument = argument.strip()

        if name in ['quit', 'exit', 'q']:
            print("Goodbye!")
            return False

        elif name == 'help':
            self._print_help()

        elif name == 'reset':
            self.env.reset()
            print("Environment reset")

        elif name == 'seed':
            try:
                seed = int(argument)
            except ValueError:
                print(f"Usage: :seed <integer>, got {argument!r}")
                return True
            self.env.reseed(seed)
            print(f"Random source seeded with {seed}")

        elif name == 'bindings':
            self._print_bindings()

        elif name == 'types':
            for record_type in self.env.interpreter.store.types.values():
                print(f"  {record_type}")

        elif name == 'load':
            self._load_file(argument)

        else:
            print(f"Unknown command: {command}")
            print("Type :help for help")

        return True

    def _print_help(self):
        """Print help message"""
        print("""
StudyREPL Commands:
  :help              Show this help message
  :quit, :exit, :q   Exit the REPL
  :reset             Forget all bindings and declared types
  :seed <n>          Reseed the random source
  :bindings          List current bindings
  :types             List record types
  :load <file>       Load and execute a file

Examples:
  print("Hello {2 + 3} World")
  Int.random(in: 1...3)
  var player1 = some("John Smith"); player1!
  let town = Town(name: "Munich", citizens: ["Tom Hanks"])
  town.citizens.append("Richard")
""")

    def _print_bindings(self):
        bindings = self.env.interpreter.global_env.bindings
        if not bindings:
            print("No bindings")
        for name, binding in bindings.items():
            keyword = 'var' if binding.mutable else 'let'
            print(f"  {keyword} {name} = {describe(binding.value)}")

    def _load_file(self, filename: str):
        """Load and execute a file"""
        try:
            with open(filename, 'r') as f:
                code = f.read()
        except OSError as e:
            print(f"Could not read {filename}: {e}")
            return

        print(f"Loading {filename}...")
        try:
            result = self.env.evaluate(code, filename)
        except StudyReplError as e:
            print(format_error(e, self.config.use_color))
            return
        if result is not None:
            print(f"Result: {describe(result)}")

    def _is_complete(self, code: str) -> bool:
        """Brackets, parentheses and braces must all be closed.

        String literals and // comments do not count; neither spans a line.
        """
        depth = 0
        for line in code.split('\n'):
            in_string = False
            escaped = False
            for i, char in enumerate(line):
                if in_string:
                    if escaped:
                        escaped = False
                    elif char == '\\':
                        escaped = True
                    elif char == '"':
                        in_string = False
                elif char == '"':
                    in_string = True
                elif line.startswith('//', i):
                    break
                elif char in '([{':
                    depth += 1
                elif char in ')]}':
                    depth -= 1
        return depth <= 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="studyrepl",
        description="Teaching REPL for optionals, random numbers, interpolation and records"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--seed", type=int, help="Seed the random source for repeatable draws")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level (default: WARNING)")
    parser.add_argument("--no-color", action="store_true", help="Disable coloured error output")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    eval_parser = subparsers.add_parser("eval", help="Evaluate input and print the result")
    eval_parser.add_argument("expression", nargs="+", help="Statements separated by ';'")

    run_parser = subparsers.add_parser("run", help="Execute a file")
    run_parser.add_argument("file", type=Path, help="File to execute")

    repl_parser = subparsers.add_parser("repl", help="Start the interactive REPL (default)")
    repl_parser.add_argument("--history-file", type=Path,
                             default=Path.home() / '.studyrepl_history',
                             help="Readline history file")
    repl_parser.add_argument("--no-history", action="store_true", help="Do not read or write history")

    return parser


def run_source(source: str, config: ReplConfig, filename: Optional[str] = None,
               stdout: Optional[TextIO] = None, stderr: Optional[TextIO] = None) -> int:
    """Evaluate source once. Exit code 0 on success, 1 on any evaluation error."""
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr
    env = REPLEnvironment(config, output=stdout)
    try:
        result = env.evaluate(source, filename)
    except StudyReplError as e:
        logger.debug("Evaluation failed", exc_info=True)
        stderr.write(format_error(e, config.use_color) + "\n")
        return 1
    except Exception as e:
        logger.debug("Unexpected failure", exc_info=True)
        stderr.write(f"{type(e).__name__}: {e}\n")
        return 1
    if result is not None:
        stdout.write(describe(result) + "\n")
    return 0


def main(args: Optional[List[str]] = None) -> int:
    """Entry point for the REPL and the eval command"""
    parser = _build_parser()
    options = parser.parse_args(args)

    logging.basicConfig(level=getattr(logging, options.log_level),
                        format="%(levelname)s %(name)s: %(message)s")

    config = ReplConfig(seed=options.seed,
                        use_color=not options.no_color and sys.stderr.isatty())

    if options.command == "eval":
        return run_source(" ".join(options.expression), config)

    if options.command == "run":
        try:
            source = options.file.read_text()
        except OSError as e:
            sys.stderr.write(f"Could not read {options.file}: {e}\n")
            return 1
        return run_source(source, config, filename=str(options.file))

    if options.command == "repl":
        config.history_file = None if options.no_history else options.history_file

    REPL(config).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
