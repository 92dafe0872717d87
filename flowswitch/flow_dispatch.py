"""
Ordered predicate dispatch: the Switch and its Clauses.

A Switch scans its clauses in declaration order and fires the consequent of
the first clause whose predicate accepts the input. There is no
backtracking, and a switch never changes after construction.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, Tuple, Union

from flowswitch.flow_datatypes import ClauseError, UnrecognizedInput

logger = logging.getLogger(__name__)


def otherwise(*_args) -> bool:
    """The fallback predicate; accepts every input."""
    return True


@dataclass(frozen=True)
class Clause:
    """A (predicate, consequent) pair.

    With `with_env` set, both callables receive `(expression, environment)`;
    otherwise they receive only the expression.
    """
    predicate: Callable[..., Any]
    consequent: Callable[..., Any]
    with_env: bool = False
    label: Optional[str] = None

    def __post_init__(self):
        if not callable(self.predicate):
            raise ClauseError(f"clause predicate is not callable: {self.predicate!r}")
        if not callable(self.consequent):
            raise ClauseError(f"clause consequent is not callable: {self.consequent!r}")

    @property
    def is_fallback(self) -> bool:
        return self.predicate is otherwise

    def test(self, expression: Any, environment: Any = None) -> bool:
        if self.with_env:
            return bool(self.predicate(expression, environment))
        return bool(self.predicate(expression))

    def fire(self, expression: Any, environment: Any = None) -> Any:
        if self.with_env:
            return self.consequent(expression, environment)
        return self.consequent(expression)

    def describe(self) -> str:
        if self.label:
            return self.label
        pred = "else" if self.is_fallback else callable_name(self.predicate)
        return f"{pred} -> {callable_name(self.consequent)}"


def when(predicate: Callable[..., Any], consequent: Callable[..., Any], *,
         with_env: bool = False, label: Optional[str] = None) -> Clause:
    return Clause(predicate, consequent, with_env=with_env, label=label)


def else_(consequent: Callable[..., Any], *, with_env: bool = False, label: Optional[str] = None) -> Clause:
    return Clause(otherwise, consequent, with_env=with_env, label=label)


ClauseLike = Union[Clause, Tuple[Callable[..., Any], Callable[..., Any]]]


def callable_name(fn: Any, default: Optional[str] = None) -> str:
    """The flow-facing name of a callable: `_negative_q` reads as `negative-q`."""
    name = getattr(fn, "name", None) or getattr(fn, "__name__", None)
    if isinstance(name, str) and name and name != "<lambda>":
        return name.lstrip('_').replace('_', '-')
    return default if default is not None else repr(fn)


def _coerce_clause(item: Any, position: int) -> Clause:
    if isinstance(item, Clause):
        return item
    if isinstance(item, tuple) and len(item) == 2:
        return Clause(item[0], item[1])
    raise ClauseError(f"clause #{position} is not a Clause or (predicate, consequent) pair: {item!r}")


class Switch:
    """An immutable, ordered table of clauses with first-match semantics."""

    def __init__(self, *clauses: ClauseLike, name: Optional[str] = None):
        table = tuple(_coerce_clause(c, i) for i, c in enumerate(clauses))
        for i, clause in enumerate(table[:-1]):
            if clause.is_fallback:
                raise ClauseError(
                    f"clause #{i + 1} ({table[i + 1].describe()}) follows the fallback clause and can never fire"
                )
        self._clauses: Tuple[Clause, ...] = table
        self.name = name

    @property
    def clauses(self) -> Tuple[Clause, ...]:
        return self._clauses

    @property
    def has_fallback(self) -> bool:
        return bool(self._clauses) and self._clauses[-1].is_fallback

    def __len__(self) -> int:
        return len(self._clauses)

    def __iter__(self) -> Iterator[Clause]:
        return iter(self._clauses)

    def extend(self, *clauses: ClauseLike) -> 'Switch':
        """Returns a new Switch with clauses appended; self is unchanged."""
        return Switch(*self._clauses, *clauses, name=self.name)

    def classify(self, expression: Any, environment: Any = None) -> Optional[Clause]:
        """Returns the first clause whose predicate accepts expression, or None."""
        for clause in self._clauses:
            if clause.test(expression, environment):
                return clause
        return None

    def evaluate(self, expression: Any, environment: Any = None) -> Any:
        clause = self.classify(expression, environment)
        if clause is None:
            logger.debug("switch %s: no clause matched %r", self.name or "<anonymous>", expression)
            raise UnrecognizedInput(expression, self.name)
        logger.debug("switch %s: %r matched %s", self.name or "<anonymous>", expression, clause.describe())
        return clause.fire(expression, environment)

    __call__ = evaluate

    def __repr__(self) -> str:
        inner = ", ".join(c.describe() for c in self._clauses)
        return f"<Switch name={self.name!r} clauses=[{inner}]>"
