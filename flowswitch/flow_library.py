"""
The standard library of named predicates and consequents.

Every `_name` method of StdLib is bound into the root environment as
`name` with underscores turned into dashes; names ending in `-q` are also
bound with a trailing `?` (e.g. `_negative_q` -> `negative-q`, `negative?`).
"""
import collections.abc
import inspect
import numbers
from typing import Any, Dict

from flowswitch.flow_dispatch import otherwise


def _is_number(x) -> bool:
    return isinstance(x, numbers.Number) and not isinstance(x, bool)


class StdLib:

    # --- Predicates ---
    def _negative_q(self, x): return _is_number(x) and x < 0
    def _positive_q(self, x): return _is_number(x) and x > 0
    def _zero_q(self, x): return _is_number(x) and x == 0
    def _even_q(self, x): return isinstance(x, int) and not isinstance(x, bool) and x % 2 == 0
    def _odd_q(self, x): return isinstance(x, int) and not isinstance(x, bool) and x % 2 == 1
    def _number_q(self, x): return _is_number(x)
    def _string_q(self, x): return isinstance(x, str)
    def _list_q(self, x): return isinstance(x, (list, tuple))
    def _none_q(self, x): return x is None

    def _empty_q(self, x):
        if isinstance(x, collections.abc.Sized):
            return len(x) == 0
        return x is None

    # --- Consequents ---
    def _identity(self, x): return x
    def _negate(self, x): return -x
    def _abs(self, x): return abs(x)
    def _inc(self, x): return x + 1
    def _dec(self, x): return x - 1
    def _double(self, x): return x * 2
    def _square(self, x): return x * x
    def _not(self, x): return not x
    def _len(self, x): return len(x)
    def _upper(self, s): return s.upper()
    def _lower(self, s): return s.lower()
    def _sum(self, xs): return sum(xs)
    def _sort(self, xs): return sorted(xs)

    def _to_str(self, x):
        if x is None:
            return "none"
        if isinstance(x, bool):
            return "true" if x else "false"
        return str(x)

    def _reverse(self, x):
        if isinstance(x, str):
            return x[::-1]
        return list(reversed(x))

    def _first(self, xs):
        if not xs:
            raise ValueError("first of an empty sequence")
        return xs[0]

    def _rest(self, xs): return list(xs[1:]) if not isinstance(xs, str) else xs[1:]

    # --- Binary helpers (flowing value first) ---
    def _add(self, a, b):
        if isinstance(a, str) or isinstance(b, str):
            return f"{a}{b}"
        return a + b

    def _sub(self, a, b): return a - b
    def _mul(self, a, b): return a * b
    def _div(self, a, b): return a / b
    def _mod(self, a, b): return a % b
    def _eq(self, a, b): return a == b
    def _gt(self, a, b): return a > b
    def _lt(self, a, b): return a < b

    def _map(self, xs, fn):
        return [fn(x) for x in xs]

    def _filter(self, xs, pred):
        return [x for x in xs if pred(x)]


def library_bindings() -> Dict[str, Any]:
    """Returns the flow-visible names of the standard library."""
    stdlib = StdLib()
    out: Dict[str, Any] = {}
    for name, member in inspect.getmembers(stdlib):
        if name.startswith('_') and not name.startswith('__') and callable(member):
            flow_name = name[1:].replace('_', '-')
            out[flow_name] = member
            if flow_name.endswith('-q'):
                out[flow_name[:-2] + '?'] = member
    out["else"] = otherwise
    return out
