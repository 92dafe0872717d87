"""
A pretty-printer for flow values and expression forms.
"""
import collections.abc

from flowswitch.flow_datatypes import (
    Name, Quote, Call, Pipe, Template, Cond, CondClause, Else, Environment
)
from flowswitch.flow_dispatch import Switch, Clause, otherwise, callable_name
from flowswitch.flow_evaluator import Flow, SwitchFunction, TemplateFunction


class Printer:
    """Formats flow objects into readable flow notation."""

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        """Dispatcher to find the correct formatting method."""
        if obj is Else or obj is otherwise: return self._pformat_else

        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, collections.abc.Mapping): return self._pformat_dict
        if isinstance(obj, (list, tuple)): return self._pformat_list
        if callable(obj): return self._pformat_callable
        # Default to Python's repr for unknown types
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            Template: self._pformat_template,
            int: self._pformat_primitive,
            float: self._pformat_primitive,
            bool: self._pformat_bool,
            type(None): self._pformat_none,
            Name: self._pformat_name,
            Quote: self._pformat_quote,
            Call: self._pformat_call,
            Pipe: self._pformat_pipe,
            Cond: self._pformat_cond,
            CondClause: self._pformat_cond_clause,
            Switch: self._pformat_switch,
            Clause: self._pformat_clause,
            Flow: self._pformat_flow,
            SwitchFunction: self._pformat_switch_function,
            TemplateFunction: self._pformat_template_function,
            Environment: self._pformat_environment,
        }

    def _pformat_primitive(self, obj, level):
        return str(obj)

    def _pformat_str(self, obj, level):
        # Basic string formatting, does not handle complex escapes
        return f"'{obj}'"

    def _pformat_template(self, obj, level):
        return f't"{obj}"'

    def _pformat_bool(self, obj, level):
        return 'true' if obj else 'false'

    def _pformat_none(self, obj, level):
        return 'none'

    def _pformat_else(self, obj, level):
        return 'else'

    def _pformat_name(self, obj, level):
        return obj.text

    def _pformat_quote(self, obj, level):
        return f"`{self.pformat(obj.value, level)}"

    def _pformat_call(self, obj, level):
        parts = [self.pformat(obj.func, level)] + [self.pformat(a, level) for a in obj.args]
        return f"({' '.join(parts)})"

    def _pformat_pipe(self, obj, level):
        return " ".join(f"|{self.pformat(stage, level)}" for stage in obj)

    def _pformat_list(self, obj, level):
        if not obj:
            return "#[]"
        return "#[" + ", ".join(self.pformat(item, level) for item in obj) + "]"

    def _pformat_dict(self, obj, level):
        if not obj:
            return "{}"
        items = ", ".join(f"{key}: {self.pformat(value, level)}" for key, value in obj.items())
        return "{" + items + "}"

    def _pformat_block(self, lines, level, header):
        if not lines:
            return f"{header} []"
        outer_indent = self._indent_char * level
        inner_indent = self._indent_char * (level + 1)
        body = "\n".join(inner_indent + line for line in lines)
        return f"{header} [\n{body}\n{outer_indent}]"

    def _switch_header(self, name):
        return f"switch {name}" if name else "switch"

    def _pformat_cond_clause(self, obj, level):
        return f"when {self.pformat(obj.when, level + 1)} then {self.pformat(obj.then, level + 1)}"

    def _pformat_cond(self, obj, level):
        lines = [self._pformat_cond_clause(cc, level) for cc in obj]
        return self._pformat_block(lines, level, self._switch_header(obj.name))

    def _pformat_clause(self, obj, level):
        if obj.label:
            return obj.label
        pred = "else" if obj.is_fallback else self._pformat_callable(obj.predicate, level)
        return f"{pred} -> {self._pformat_callable(obj.consequent, level)}"

    def _pformat_switch(self, obj, level):
        lines = [self._pformat_clause(c, level) for c in obj]
        return self._pformat_block(lines, level, self._switch_header(obj.name))

    def _pformat_switch_function(self, obj, level):
        if obj.source is not None:
            return self._pformat_cond(obj.source, level)
        return self._pformat_switch(obj.switch, level)

    def _pformat_flow(self, obj, level):
        parts = []
        for name, _fn, extra in obj.stages:
            args = "".join(f" {self.pformat(a, level)}" for a in extra)
            parts.append(f"|{name}{args}")
        return " ".join(parts)

    def _pformat_template_function(self, obj, level):
        return f't"{obj.text}"'

    def _pformat_environment(self, obj, level):
        keys = ", ".join(sorted(obj.bindings))
        return f"<env {keys}>"

    def _pformat_callable(self, obj, level):
        return callable_name(obj, "<fn>")
