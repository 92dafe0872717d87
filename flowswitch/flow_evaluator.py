"""
The flow evaluator: turns tagged expression forms into values.

The evaluator is itself a Switch over the expression forms. Forms that
need the environment (names, calls, pipes, templates, switches) are
dispatched through environment-threading clauses; an unknown form falls
through every clause and raises UnrecognizedInput.
"""
import collections.abc
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

import pystache

from flowswitch.flow_datatypes import (
    Environment, UnboundName, ClauseError,
    Name, Quote, Call, Pipe, Template, Cond,
)
from flowswitch.flow_dispatch import Switch, Clause, when, otherwise, callable_name

logger = logging.getLogger(__name__)

LITERAL_TYPES = (int, float, str, bool, type(None))


def _tmpl_normalize_value(v):
    """Convert flow values into plain Python types for Mustache."""
    if isinstance(v, Environment):
        return _env_to_dict(v)
    if isinstance(v, Template):
        return str(v)
    if isinstance(v, collections.abc.Mapping):
        return {k: _tmpl_normalize_value(val) for k, val in v.items() if not callable(val)}
    if isinstance(v, (list, tuple)):
        return [_tmpl_normalize_value(x) for x in v]
    return v


def _env_to_dict(env: Any) -> dict:
    """Flatten an environment into a plain dict, dropping callables."""
    if env is None:
        return {}
    items = env.flatten().items() if isinstance(env, Environment) else dict(env).items()
    return {k: _tmpl_normalize_value(v) for k, v in items if not callable(v)}


def _lookup(env: Any, name: str) -> Any:
    if env is None:
        raise UnboundName(name)
    if isinstance(env, Environment):
        return env[name]
    try:
        return env[name]
    except KeyError:
        raise UnboundName(name) from None


# =================================================================
# Runtime function values
# =================================================================

class Flow:
    """A point-free pipeline. Calling it threads a value through each stage."""
    def __init__(self, stages: List[Tuple[str, Any, Tuple[Any, ...]]], evaluator: 'Evaluator', name: Optional[str] = None):
        self.stages = stages
        self.evaluator = evaluator
        self.name = name

    def __call__(self, value: Any) -> Any:
        for stage_name, fn, extra in self.stages:
            value = self.evaluator.apply(fn, [value, *extra], name=stage_name)
        return value

    def __repr__(self) -> str:
        return f"<Flow {' | '.join(s[0] for s in self.stages)}>"


class SwitchFunction:
    """A Switch bound to the environment it was evaluated in."""
    def __init__(self, switch: Switch, environment: Any, source: Optional[Cond] = None):
        self.switch = switch
        self.environment = environment
        self.source = source

    @property
    def name(self) -> Optional[str]:
        return self.switch.name

    def __call__(self, value: Any) -> Any:
        return self.switch.evaluate(value, self.environment)

    def __repr__(self) -> str:
        return f"<SwitchFunction name={self.name!r} clauses={len(self.switch)}>"


class TemplateFunction:
    """Renders a mustache template with `value` and the captured environment."""
    def __init__(self, text: str, environment: Any):
        self.text = str(text)
        self.environment = environment
        self.name = "template"

    def __call__(self, value: Any) -> str:
        context = _env_to_dict(self.environment)
        context["value"] = _tmpl_normalize_value(value)
        renderer = pystache.Renderer(escape=lambda u: u, missing_tags='ignore')
        return renderer.render(self.text, context)

    def __repr__(self) -> str:
        return f"<TemplateFunction {self.text!r}>"


# =================================================================
# Evaluator
# =================================================================

def _is_template(node, env=None): return isinstance(node, Template)
def _is_literal(node, env=None): return isinstance(node, LITERAL_TYPES)
def _is_name(node, env=None): return isinstance(node, Name)
def _is_quote(node, env=None): return isinstance(node, Quote)
def _is_call(node, env=None): return isinstance(node, Call)
def _is_pipe(node, env=None): return isinstance(node, Pipe)
def _is_cond(node, env=None): return isinstance(node, Cond)
def _is_list(node, env=None): return isinstance(node, list)
def _is_dict(node, env=None): return isinstance(node, dict)


class Evaluator:
    """Evaluates expression forms against an environment."""

    def __init__(self):
        # One call stack per thread; tables built here may be applied concurrently.
        self._local = threading.local()
        # Template precedes the literal clause: a Template is also a str.
        self.forms = Switch(
            when(_is_template, self._eval_template, with_env=True, label="template"),
            when(_is_literal, self._eval_literal, label="literal"),
            when(_is_name, self._eval_name, with_env=True, label="name"),
            when(_is_quote, self._eval_quote, label="quote"),
            when(_is_call, self._eval_call, with_env=True, label="call"),
            when(_is_pipe, self._eval_pipe, with_env=True, label="pipe"),
            when(_is_cond, self._eval_cond, with_env=True, label="switch"),
            when(_is_list, self._eval_list, with_env=True, label="list"),
            when(_is_dict, self._eval_dict, with_env=True, label="dict"),
            name="expression",
        )

    def eval(self, node: Any, env: Any = None) -> Any:
        """Public entry point for evaluation."""
        return self.forms.evaluate(node, env)

    # --- Frames ---

    @property
    def call_stack(self) -> List[Dict[str, Any]]:
        """The frames of the calls in progress on the current thread."""
        stack = getattr(self._local, 'stack', None)
        if stack is None:
            stack = self._local.stack = []
        return stack

    def apply(self, func: Any, args: List[Any], name: Optional[str] = None) -> Any:
        """
        Calls func with args inside a frame.

        The stack is always trimmed back on exit. When the call fails, the
        frames live at the innermost failure are attached to the exception
        as `flow_frames` for the runner's stack trace.
        """
        stack = self.call_stack
        depth = len(stack)
        frame_name = name or callable_name(func, "<callable>")
        stack.append({'name': frame_name, 'func': func, 'args': list(args)})
        try:
            if not callable(func):
                raise TypeError(f"{frame_name} is not callable: {func!r}")
            return func(*args)
        except Exception as e:
            if getattr(e, 'flow_frames', None) is None:
                e.flow_frames = list(stack)
            raise
        finally:
            del stack[depth:]

    # --- Forms ---

    def _eval_literal(self, node):
        return node

    def _eval_quote(self, node):
        return node.value

    def _eval_template(self, node, env):
        return TemplateFunction(node, env)

    def _eval_name(self, node, env):
        return _lookup(env, node.text)

    def _eval_list(self, node, env):
        return [self.eval(item, env) for item in node]

    def _eval_dict(self, node, env):
        return {k: self.eval(v, env) for k, v in node.items()}

    def _eval_call(self, node, env):
        func = self.eval(node.func, env)
        args = [self.eval(a, env) for a in node.args]
        name = node.func.text if isinstance(node.func, Name) else None
        return self.apply(func, args, name=name)

    def _eval_pipe(self, node, env):
        stages = []
        for stage in node:
            if isinstance(stage, Call):
                fn = self.eval(stage.func, env)
                extra = tuple(self.eval(a, env) for a in stage.args)
                name = stage.func.text if isinstance(stage.func, Name) else callable_name(fn, "<callable>")
            else:
                fn = self.eval(stage, env)
                extra = ()
                name = stage.text if isinstance(stage, Name) else callable_name(fn, "<callable>")
            stages.append((name, fn, extra))
        logger.debug("built flow of %d stage(s): %s", len(stages), [s[0] for s in stages])
        return Flow(stages, self)

    def _eval_cond(self, node, env):
        from flowswitch.flow_printer import Printer
        pf = Printer().pformat
        clauses = []
        for cc in node:
            then_fn = self.eval(cc.then, env)
            then_name = pf(cc.then)
            consequent = self._applier(then_fn, then_name)
            if cc.is_fallback:
                clauses.append(Clause(otherwise, consequent, label=f"else -> {then_name}"))
                continue
            when_fn = self.eval(cc.when, env)
            when_name = pf(cc.when)
            if when_fn is otherwise:
                predicate = otherwise
            else:
                predicate = self._applier(when_fn, when_name)
            clauses.append(Clause(predicate, consequent, label=f"{when_name} -> {then_name}"))
        try:
            switch = Switch(*clauses, name=node.name)
        except ClauseError as e:
            raise ClauseError(f"switch {node.name or '<anonymous>'}: {e}") from e
        return SwitchFunction(switch, env, source=node)

    def _applier(self, fn, name):
        if not callable(fn):
            raise ClauseError(f"{name} does not evaluate to a function: {fn!r}")

        def applied(value):
            return self.apply(fn, [value], name=name)
        applied.__name__ = name
        return applied
