from __future__ import annotations

import collections.abc
import json
import re
import tomllib
from typing import Any, Optional

import toml
import yaml

from flowswitch.flow_datatypes import (
    TableFormatError, Name, Quote, Call, Pipe, Template, Cond, CondClause, Else,
)


# --------------------------
# Helpers
# --------------------------

def _norm_text(data: bytes | bytearray | str, *, encoding: Optional[str] = None) -> str:
    if isinstance(data, (bytes, bytearray)):
        enc = encoding or 'utf-8'
        try:
            return data.decode(enc, errors='replace')
        except LookupError:
            return data.decode('utf-8', errors='replace')
    if isinstance(data, str):
        return data
    return str(data)


def _encoding_from_content_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    m = re.search(r'charset\s*=\s*([^\s;]+)', content_type, re.IGNORECASE)
    if m:
        return m.group(1).strip('"').strip("'")
    return None


def _to_builtin(obj: Any) -> Any:
    if isinstance(obj, (list, tuple)):
        return [_to_builtin(x) for x in obj]
    if isinstance(obj, collections.abc.Mapping):
        return {k: _to_builtin(v) for k, v in obj.items()}
    return obj


def format_from_suffix(suffix: str) -> Optional[str]:
    ext = suffix.lower()
    if ext == ".json":
        return "json"
    if ext in (".yaml", ".yml"):
        return "yaml"
    if ext == ".toml":
        return "toml"
    return None


def detect_format(content_type: Optional[str] = None, data_hint: Optional[str] = None) -> Optional[str]:
    """
    Returns a canonical format name among: 'json', 'yaml', 'toml'.
    Uses Content-Type first; falls back to simple data sniffing if provided.
    """
    ct = (content_type or "").lower()
    if 'json' in ct:
        return 'json'
    if 'yaml' in ct or 'x-yaml' in ct:
        return 'yaml'
    if 'toml' in ct:
        return 'toml'

    if data_hint is not None:
        s = data_hint.lstrip()
        if s.startswith('{') or s.startswith('['):
            # Try JSON first; if it fails, YAML is a superset
            return 'json'
        # TOML sniffing is unreliable; a bare document is read as YAML.
        return 'yaml'
    return None


# --------------------------
# Public API
# --------------------------

def deserialize(data: bytes | bytearray | str,
                *,
                content_type: Optional[str] = None,
                fmt: Optional[str] = None) -> Any:
    """
    Convert document data (bytes/string) to native Python structures.
    Supported fmt: 'json', 'yaml', 'toml'.
    If fmt is None, uses content_type, then sniffing.
    Returns dict/list/scalars for structured formats; returns raw text for others.
    """
    enc = _encoding_from_content_type(content_type)
    text = _norm_text(data, encoding=enc)
    f = (fmt or detect_format(content_type, text))
    if f == 'json':
        try:
            return json.loads(text)
        except ValueError:
            # Fallback to YAML if declared JSON but content is actually YAML-like
            try:
                return yaml.safe_load(text)
            except yaml.YAMLError:
                return text
    if f == 'yaml':
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError:
            return text
    if f == 'toml':
        try:
            return tomllib.loads(text)
        except tomllib.TOMLDecodeError:
            return text

    # Unknown/unsupported -> return text
    return text


def parse_document(data: bytes | bytearray | str,
                   *,
                   content_type: Optional[str] = None,
                   fmt: Optional[str] = None) -> Any:
    """
    Strict counterpart of `deserialize` for clause table documents: a
    document that does not parse raises TableFormatError chained to the
    parser error, which carries the line and column.
    """
    enc = _encoding_from_content_type(content_type)
    text = _norm_text(data, encoding=enc)
    f = (fmt or detect_format(content_type, text))
    if f not in ('json', 'yaml', 'toml'):
        raise TableFormatError(f"unsupported table format: {f!r}")
    try:
        if f == 'toml':
            return tomllib.loads(text)
        if f == 'json':
            try:
                return json.loads(text)
            except json.JSONDecodeError:
                # YAML flow style also starts with "[" or "{"
                pass
        return yaml.safe_load(text)
    except (yaml.YAMLError, tomllib.TOMLDecodeError) as e:
        raise TableFormatError(f"cannot parse {f} table: {e}") from e


def serialize(value: Any,
              *,
              fmt: str,
              pretty: bool = True) -> str:
    """
    Convert a native Python value into a textual representation.
    - fmt: 'json' | 'yaml' | 'toml'
    """
    f = (fmt or '').lower()
    built = _to_builtin(value)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False)
    if f == 'toml':
        # tomllib only reads
        return toml.dumps(built)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


# --------------------------
# Clause tables
# --------------------------

_FORM_KEYS = ('quote', 'template', 'call', 'switch')


def expression_from_data(data: Any) -> Any:
    """
    Build an expression form from plain document data.
    - str -> Name; list -> Pipe; bool/number/null -> literal
    - {quote: v}, {template: text}, {call: f, args: [...]}, {switch: [...], name: n}
    """
    match data:
        case bool() | int() | float() | None:
            return data
        case str():
            if not data.strip():
                raise TableFormatError("empty name")
            return Name(data.strip())
        case list():
            if not data:
                raise TableFormatError("a pipe needs at least one stage")
            return Pipe([expression_from_data(x) for x in data])
        case dict():
            return _form_from_mapping(data)
    raise TableFormatError(f"cannot build an expression from {type(data).__name__}: {data!r}")


def _form_from_mapping(data: dict) -> Any:
    keys = [k for k in _FORM_KEYS if k in data]
    if len(keys) != 1:
        raise TableFormatError(f"expected exactly one of {', '.join(_FORM_KEYS)}; got keys {sorted(data)}")
    key = keys[0]
    allowed = {'call': {'call', 'args'}, 'switch': {'switch', 'name'}}.get(key, {key})
    extra = set(data) - allowed
    if extra:
        raise TableFormatError(f"unexpected keys for {key}: {sorted(extra)}")

    if key == 'quote':
        return Quote(data['quote'])
    if key == 'template':
        if not isinstance(data['template'], str):
            raise TableFormatError("template must be a string")
        return Template(data['template'])
    if key == 'call':
        args = data.get('args', [])
        if not isinstance(args, list):
            args = [args]
        return Call(expression_from_data(data['call']), [expression_from_data(a) for a in args])
    return table_from_data({'clauses': data['switch'], 'name': data.get('name')})


def _clause_from_data(item: Any, position: int) -> CondClause:
    if not isinstance(item, dict):
        raise TableFormatError(f"clause #{position} must be a mapping, not {type(item).__name__}")
    if 'else' in item:
        if set(item) != {'else'}:
            raise TableFormatError(f"clause #{position}: 'else' cannot be combined with {sorted(set(item) - {'else'})}")
        return CondClause(Else, expression_from_data(item['else']))
    if set(item) != {'when', 'then'}:
        raise TableFormatError(f"clause #{position} needs exactly 'when' and 'then'; got {sorted(item)}")
    when_ = item['when']
    when_expr = Else if when_ == 'else' else expression_from_data(when_)
    return CondClause(when_expr, expression_from_data(item['then']))


def table_from_data(data: Any) -> Cond:
    """Build a Cond from `{name?: str, clauses: [...]}` or a bare clause list."""
    name = None
    if isinstance(data, dict):
        extra = set(data) - {'name', 'clauses'}
        if extra or 'clauses' not in data:
            raise TableFormatError(f"a clause table needs 'clauses' (and optionally 'name'); got keys {sorted(data)}")
        name = data.get('name')
        if name is not None and not isinstance(name, str):
            raise TableFormatError("table name must be a string")
        data = data['clauses']
    if not isinstance(data, list):
        raise TableFormatError(f"clauses must be a list, not {type(data).__name__}")
    return Cond([_clause_from_data(item, i) for i, item in enumerate(data)], name=name)


def expression_to_data(expr: Any) -> Any:
    match expr:
        case Template():
            return {'template': str(expr)}
        case bool() | int() | float() | str() | None:
            return expr
        case Name():
            return expr.text
        case Quote():
            return {'quote': _to_builtin(expr.value)}
        case Call():
            out = {'call': expression_to_data(expr.func)}
            if expr.args:
                out['args'] = [expression_to_data(a) for a in expr.args]
            return out
        case Pipe():
            return [expression_to_data(s) for s in expr]
        case Cond():
            out = {'switch': _clauses_to_data(expr)}
            if expr.name:
                out['name'] = expr.name
            return out
    raise TableFormatError(f"cannot write {expr!r} as table data")


def _clauses_to_data(cond: Cond) -> list:
    out = []
    for cc in cond:
        if cc.is_fallback:
            out.append({'else': expression_to_data(cc.then)})
        else:
            out.append({'when': expression_to_data(cc.when), 'then': expression_to_data(cc.then)})
    return out


def table_to_data(cond: Cond) -> dict:
    out: dict = {}
    if cond.name:
        out['name'] = cond.name
    out['clauses'] = _clauses_to_data(cond)
    return out


__all__ = [
    "deserialize",
    "parse_document",
    "serialize",
    "detect_format",
    "format_from_suffix",
    "expression_from_data",
    "table_from_data",
    "expression_to_data",
    "table_to_data",
]
