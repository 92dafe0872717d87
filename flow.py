import sys

import yaml

from flowswitch.flow_runtime import FlowRunner
from flowswitch.flow_printer import Printer
from flowswitch.flow_datatypes import FlowError
from flowswitch.flow_logging import setup_logger

USAGE = "usage: flow.py TABLE [VALUE ...]"


def prompt(text: str) -> str:
    return input(text)


def parse_value(text: str):
    """Values are read as YAML scalars, so `3`, `-4.5`, `true` and `[1, 2]` keep their types."""
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError:
        return text


def apply_values(runner: FlowRunner, table, values, printer: Printer) -> int:
    """Print the table's result for each value; return the number of failures."""
    failures = 0
    for raw in values:
        result = runner.apply_table(table, parse_value(raw))
        if result.status == 'error':
            print(result.format_error(), file=sys.stderr)
            failures += 1
            continue
        print(printer.pformat(result.value))
    return failures


def load_table(runner: FlowRunner, path: str):
    try:
        return runner.load_table_file(path)
    except FileNotFoundError:
        print(f"Error: file not found: {path}", file=sys.stderr)
        raise SystemExit(1)
    except OSError as e:
        print(f"Error: cannot read {path}: {e.strerror or e}", file=sys.stderr)
        raise SystemExit(1)
    except (FlowError, TypeError, ValueError, AttributeError, ArithmeticError) as e:
        print(f"Error: {type(e).__name__}: {e}", file=sys.stderr)
        raise SystemExit(1)


def main(argv=None):
    """Apply a clause table to values from the command line, or start a REPL over it."""
    argv = sys.argv[1:] if argv is None else list(argv)
    setup_logger()
    if not argv or argv[0].startswith("-"):
        print(USAGE, file=sys.stderr)
        raise SystemExit(2)

    runner = FlowRunner()
    printer = Printer()
    table = load_table(runner, argv[0])

    if len(argv) > 1:
        if apply_values(runner, table, argv[1:], printer):
            raise SystemExit(1)
        return

    print(f"flow REPL: table {table.name}")
    print("Type 'exit' or press Ctrl+D to quit.")
    while True:
        try:
            raw = prompt(">> ")
        except EOFError:
            print("\nExiting.")
            break
        line = raw.strip()
        if not line:
            continue
        if line == "exit":
            break
        apply_values(runner, table, [line], printer)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nExiting.")
