"""
A small predicate-dispatch evaluator and its point-free flow language.
"""
from flowswitch.flow_datatypes import (
    FlowError, UnrecognizedInput, ClauseError, UnboundName, TableFormatError,
    Environment, Name, Quote, Call, Pipe, Template, Cond, CondClause, Else,
)
from flowswitch.flow_dispatch import Clause, Switch, when, else_, otherwise
from flowswitch.flow_evaluator import Evaluator, Flow, SwitchFunction
from flowswitch.flow_runtime import FlowRunner, ExecutionResult

__all__ = [
    "FlowError", "UnrecognizedInput", "ClauseError", "UnboundName", "TableFormatError",
    "Environment", "Name", "Quote", "Call", "Pipe", "Template", "Cond", "CondClause", "Else",
    "Clause", "Switch", "when", "else_", "otherwise",
    "Evaluator", "Flow", "SwitchFunction",
    "FlowRunner", "ExecutionResult",
]
