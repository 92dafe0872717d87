"""
Defines the core data types for the flow evaluator.

This module provides the error hierarchy, the chained Environment used as
evaluation context, and the tagged expression forms of the flow language.
"""

from typing import List, Dict, Any, Optional, Tuple
import collections.abc


# =================================================================
# Errors
# =================================================================

class FlowError(Exception):
    """Base class for all errors raised by the flow runtime."""
    pass


class UnrecognizedInput(FlowError):
    """No clause of a switch matched the input and no fallback exists."""
    def __init__(self, value: Any, switch_name: Optional[str] = None):
        self.value = value
        self.switch_name = switch_name
        where = f" in switch '{switch_name}'" if switch_name else ""
        super().__init__(f"unrecognized input{where}: {value!r}")


class ClauseError(FlowError):
    """A clause table is malformed."""
    pass


class UnboundName(FlowError):
    def __init__(self, name: str):
        super().__init__(name)
        self.name = name


class TableFormatError(FlowError):
    """A clause table document could not be turned into expressions."""
    pass


# =================================================================
# Environment
# =================================================================

class Environment(collections.abc.Mapping):
    """A chained scope of bindings passed alongside an expression.

    Lookup walks this scope, then the parent chain. Evaluation only reads
    from an environment; bindings are added by the owner before a call.
    """
    def __init__(self, bindings: Optional[Dict[str, Any]] = None, parent: Optional['Environment'] = None):
        self.bindings: Dict[str, Any] = dict(bindings or {})
        self.parent = parent

    def __setitem__(self, key: str, value: Any):
        if not isinstance(key, str):
            raise TypeError(f"Environment key must be a str, not {type(key)}")
        self.bindings[key] = value

    def __getitem__(self, key: str) -> Any:
        owner = self.find_owner(key)
        if owner is None:
            raise UnboundName(key)
        return owner.bindings[key]

    def __contains__(self, key: Any) -> bool:
        return isinstance(key, str) and self.find_owner(key) is not None

    def __iter__(self):
        return iter(self.flatten())

    def __len__(self) -> int:
        return len(self.flatten())

    def find_owner(self, key: str) -> Optional['Environment']:
        """Finds the Environment in the parent chain that binds key."""
        if key in self.bindings:
            return self
        if self.parent is not None:
            return self.parent.find_owner(key)
        return None

    def get(self, key: str, default: Any = None) -> Any:
        owner = self.find_owner(key) if isinstance(key, str) else None
        if owner is None:
            return default
        return owner.bindings[key]

    def child(self, bindings: Optional[Dict[str, Any]] = None) -> 'Environment':
        """Returns a new Environment whose parent is this one."""
        return Environment(bindings, parent=self)

    def flatten(self) -> Dict[str, Any]:
        """Merge the parent chain into one dict; nearer bindings win."""
        chain = []
        cur = self
        while cur is not None:
            chain.append(cur)
            cur = cur.parent
        out: Dict[str, Any] = {}
        for env in reversed(chain):
            out.update(env.bindings)
        return out

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        parent_id = f", parent=#{id(self.parent)}" if self.parent else ""
        return f"<Environment bindings=[{keys}]{parent_id}>"


# =================================================================
# Expression forms
# =================================================================

class _ElseMarker:
    """Singleton used as the `when` of a fallback CondClause."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "Else"

Else = _ElseMarker()


class Name:
    """A reference to a binding in the environment."""
    def __init__(self, text: str):
        if not isinstance(text, str) or not text:
            raise ValueError("Name must be a non-empty string.")
        self.text = text

    def __repr__(self) -> str:
        return f"Name({self.text!r})"

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Name) and self.text == other.text

    def __hash__(self) -> int:
        return hash(("name", self.text))


class Quote:
    """Wraps a value that must be returned without evaluation."""
    def __init__(self, value: Any):
        self.value = value

    def __repr__(self) -> str:
        return f"Quote({self.value!r})"

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Quote) and self.value == other.value


class Call:
    """Application of a function expression to argument expressions."""
    def __init__(self, func: Any, args: Optional[List[Any]] = None):
        self.func = func
        self.args: Tuple[Any, ...] = tuple(args or ())

    def __repr__(self) -> str:
        return f"Call({self.func!r}, {list(self.args)!r})"

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Call) and self.func == other.func and self.args == other.args


class Pipe:
    """A point-free composition of stages; evaluates to a Flow."""
    def __init__(self, stages: List[Any]):
        if not stages:
            raise ValueError("Pipe must have at least one stage.")
        self.stages: Tuple[Any, ...] = tuple(stages)

    def __iter__(self):
        return iter(self.stages)

    def __repr__(self) -> str:
        return f"Pipe({list(self.stages)!r})"

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Pipe) and self.stages == other.stages


class Template(str):
    """A mustache template rendered against the flowing value.

    It is a distinct type from a plain string, signaling to the evaluator
    that `{{...}}` placeholders must be rendered.
    """
    def __repr__(self) -> str:
        return f't"{self}"'


class CondClause:
    def __init__(self, when: Any, then: Any):
        self.when = when
        self.then = then

    @property
    def is_fallback(self) -> bool:
        return self.when is Else

    def __repr__(self) -> str:
        return f"CondClause({self.when!r}, {self.then!r})"

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, CondClause) and self.when == other.when and self.then == other.then


class Cond:
    """The switch form: an ordered list of CondClauses evaluated first-match."""
    def __init__(self, clauses: List[CondClause], name: Optional[str] = None):
        self.clauses: Tuple[CondClause, ...] = tuple(clauses)
        self.name = name

    def __iter__(self):
        return iter(self.clauses)

    def __len__(self) -> int:
        return len(self.clauses)

    def __repr__(self) -> str:
        return f"Cond({list(self.clauses)!r}, name={self.name!r})"

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Cond) and self.clauses == other.clauses and self.name == other.name
