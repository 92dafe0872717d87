import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from flowswitch.flow_datatypes import (
    Environment, FlowError, UnrecognizedInput, UnboundName, ClauseError, TableFormatError,
)
from flowswitch.flow_evaluator import Evaluator, SwitchFunction
from flowswitch.flow_library import library_bindings
from flowswitch.flow_serialize import parse_document, table_from_data, format_from_suffix

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """The structured result of one evaluation."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None

    def format_error(self) -> str:
        if self.status != 'error':
            return ""
        return str(self.error_message or "Unknown error")


class FlowRunner:
    """Evaluates flow expressions and clause tables against a root environment."""

    def _format_error(self, e: Exception) -> str:
        match e:
            case UnrecognizedInput():
                from flowswitch.flow_printer import Printer
                where = f" in ({e.switch_name})" if e.switch_name else ""
                msg = f"UnrecognizedInput{where}: {Printer().pformat(e.value)}"
            case UnboundName() as ub:
                msg = f"UnboundName: {ub.name}"
            case ClauseError():
                msg = f"ClauseError: {e}"
            case TableFormatError():
                msg = f"TableFormatError: {e}"
            case TypeError() | AttributeError():
                msg = f"TypeError: {e}"
            case ValueError():
                msg = f"ValueError: {e}"
            case ArithmeticError():
                msg = f"{type(e).__name__}: {e}"
            case _:
                msg = f"InternalError: {e}"

        st = self._format_stacktrace(e)
        if st:
            msg += "\n" + st
        return msg

    def _format_stacktrace(self, e: Exception) -> str:
        stack = getattr(e, "flow_frames", None)
        if not stack:
            return ""
        from flowswitch.flow_printer import Printer
        pf = Printer().pformat

        frames = []
        for frame in stack:
            name = frame.get('name') or '<call>'
            args = " ".join(pf(a) for a in frame.get('args') or [])
            frames.append(f"({name} {args})" if args else f"({name})")
        return "flow stacktrace: " + " ".join(frames)

    def __init__(self, bindings: Optional[Dict[str, Any]] = None, load_stdlib: bool = True):
        self.root_env = Environment(library_bindings() if load_stdlib else None)
        for name, value in (bindings or {}).items():
            self.root_env[name] = value
        self.evaluator = Evaluator()

    def _scope(self, environment: Any) -> Environment:
        if environment is None:
            return self.root_env
        if isinstance(environment, Environment):
            return environment
        return self.root_env.child(dict(environment))

    def evaluate(self, expression: Any, environment: Any = None) -> Any:
        """Evaluates expression; errors propagate to the caller."""
        return self.evaluator.eval(expression, self._scope(environment))

    def run(self, expression: Any, environment: Any = None) -> ExecutionResult:
        """The main entry point: evaluate and package the outcome."""
        try:
            value = self.evaluate(expression, environment)
        except (FlowError, TypeError, ValueError, AttributeError, ArithmeticError) as e:
            logger.debug("evaluation failed: %r", e)
            return ExecutionResult(status='error', error_message=self._format_error(e))
        return ExecutionResult(status='success', value=value)

    def load_table(self, text: str | bytes, *, fmt: Optional[str] = None,
                   content_type: Optional[str] = None, environment: Any = None,
                   default_name: Optional[str] = None) -> SwitchFunction:
        """Reads a clause table document and evaluates it into a SwitchFunction."""
        data = parse_document(text, content_type=content_type, fmt=fmt)
        if not isinstance(data, (dict, list)):
            raise TableFormatError(f"document is not a clause table: {data!r}")
        cond = table_from_data(data)
        if cond.name is None:
            cond.name = default_name
        logger.info("loaded clause table %s with %d clause(s)", cond.name or "<anonymous>", len(cond))
        return self.evaluate(cond, environment)

    def load_table_file(self, path: str | Path, environment: Any = None) -> SwitchFunction:
        p = Path(path)
        fmt = format_from_suffix(p.suffix)
        return self.load_table(p.read_bytes(), fmt=fmt, environment=environment, default_name=p.stem)

    def _rebind(self, table: SwitchFunction, environment: Any) -> SwitchFunction:
        """Re-evaluates the table's source with environment layered over its own."""
        if isinstance(environment, Environment):
            scope = environment
        elif isinstance(table.environment, Environment):
            scope = table.environment.child(dict(environment))
        else:
            scope = self._scope(environment)
        return self.evaluator.eval(table.source, scope)

    def apply_table(self, table: SwitchFunction, value: Any, environment: Any = None) -> ExecutionResult:
        """
        Applies a loaded table to one value and packages the outcome.

        With an environment, the table's names are resolved against it first,
        so one table can be applied under different bindings.
        """
        try:
            if environment is None:
                result = table(value)
            elif table.source is not None:
                result = self._rebind(table, environment)(value)
            else:
                result = table.switch.evaluate(value, self._scope(environment))
        except (FlowError, TypeError, ValueError, AttributeError, ArithmeticError) as e:
            logger.debug("table %s failed on %r: %r", table.name, value, e)
            return ExecutionResult(status='error', error_message=self._format_error(e))
        return ExecutionResult(status='success', value=result)
