import tomllib
from concurrent.futures import ThreadPoolExecutor

import pytest
import yaml

from flowswitch.flow_runtime import FlowRunner, ExecutionResult
from flowswitch.flow_datatypes import (
    UnrecognizedInput, TableFormatError, ClauseError,
    Name, Call, Pipe, Cond, CondClause, Else, Quote,
)
from flowswitch.flow_evaluator import SwitchFunction


SIGN_YAML = """
name: sign
clauses:
  - when: negative?
    then: negate
  - else: identity
"""


@pytest.fixture
def runner():
    return FlowRunner()


def test_run_success(runner):
    res = runner.run(Call(Name("add"), [1, 2]))
    assert res.status == "success", res.error_message
    assert res.value == 3
    assert res.format_error() == ""


def test_run_with_plain_environment_extends_root(runner):
    res = runner.run(Pipe([Call(Name("mul"), [Name("factor")])]), {"factor": 3})
    assert res.status == "success", res.error_message
    assert res.value(5) == 15
    assert "factor" not in runner.root_env


def test_host_bindings_are_visible():
    runner = FlowRunner(bindings={"triple": lambda x: x * 3})
    assert runner.evaluate(Call(Name("triple"), [4])) == 12


def test_without_stdlib_names_are_unbound():
    runner = FlowRunner(load_stdlib=False)
    res = runner.run(Name("negate"))
    assert res.status == "error"
    assert res.format_error().startswith("UnboundName: negate")


def test_evaluate_raises(runner):
    with pytest.raises(UnrecognizedInput):
        runner.evaluate(object())


def test_run_formats_unrecognized_input(runner):
    shout = runner.evaluate(Cond([CondClause(Name("string?"), Name("upper"))], name="shout"))
    res = runner.run(Call(Name("shout"), [Quote([1, 2])]), {"shout": shout})
    assert res.status == "error"
    assert res.error_message.splitlines()[0] == "UnrecognizedInput in (shout): #[1, 2]"


def test_run_formats_type_error_with_stacktrace(runner):
    res = runner.run(Call(Name("add"), [1, Quote([1])]))
    assert res.status == "error"
    lines = res.error_message.splitlines()
    assert lines[0].startswith("TypeError:")
    assert lines[-1] == "flow stacktrace: (add 1 #[1])"


def test_run_formats_value_and_arithmetic_errors(runner):
    res = runner.run(Call(Name("first"), [Quote([])]))
    assert res.error_message.startswith("ValueError: first of an empty sequence")
    res = runner.run(Call(Name("div"), [1, 0]))
    assert res.error_message.startswith("ZeroDivisionError:")


def test_run_formats_clause_errors(runner):
    res = runner.run(Cond([CondClause(Else, Name("identity")), CondClause(Name("zero?"), Name("inc"))]))
    assert res.status == "error"
    assert res.error_message.startswith("ClauseError:")


def test_stack_is_reset_between_runs(runner):
    runner.run(Call(Name("add"), [1, Quote([1])]))
    res = runner.run(Call(Name("inc"), [1]))
    assert res.status == "success"
    assert runner.evaluator.call_stack == []


def test_load_table_yaml(runner):
    sign = runner.load_table(SIGN_YAML)
    assert isinstance(sign, SwitchFunction)
    assert sign.name == "sign"
    assert sign(-3) == 3
    assert sign(4) == 4


def test_load_table_json_and_default_name(runner):
    text = '[{"when": "even?", "then": "double"}, {"else": ["inc", "double"]}]'
    table = runner.load_table(text, fmt="json", default_name="evens")
    assert table.name == "evens"
    assert table(2) == 4
    assert table(3) == 8


def test_load_table_toml(runner):
    text = (
        'name = "clamp"\n\n'
        '[[clauses]]\nwhen = [{call = "gt", args = ["limit"]}]\nthen = {template = "{{limit}}"}\n\n'
        '[[clauses]]\nelse = "identity"\n'
    )
    table = runner.load_table(text, fmt="toml", environment={"limit": 10})
    assert table.name == "clamp"
    assert table(42) == "10"
    assert table(3) == 3


def test_load_table_with_environment(runner):
    text = """
clauses:
  - when: [{call: gt, args: [limit]}]
    then: {template: "over {{limit}}"}
  - else: identity
"""
    table = runner.load_table(text, environment={"limit": 10})
    assert table(42) == "over 10"
    assert table(3) == 3


def test_load_table_rejects_non_tables(runner):
    with pytest.raises(TableFormatError):
        runner.load_table("just text")
    with pytest.raises(TableFormatError):
        runner.load_table("clauses: [1]")


def test_load_table_rejects_unreachable_clauses(runner):
    with pytest.raises(ClauseError):
        runner.load_table("- else: identity\n- when: zero?\n  then: inc\n")


def test_load_table_file_uses_stem_as_default_name(runner, tmp_path):
    path = tmp_path / "collatz.yaml"
    path.write_text(
        "- when: odd?\n  then: [{call: mul, args: [3]}, inc]\n- else: [{call: div, args: [2]}]\n",
        encoding="utf-8",
    )
    table = runner.load_table_file(path)
    assert table.name == "collatz"
    assert table(7) == 22
    assert table(22) == 11


def test_apply_table_packages_results(runner):
    shout = runner.load_table("name: shout\nclauses:\n  - when: string?\n    then: upper\n")
    ok = runner.apply_table(shout, "hey")
    assert ok == ExecutionResult(status="success", value="HEY")
    bad = runner.apply_table(shout, 5)
    assert bad.status == "error"
    assert bad.format_error() == "UnrecognizedInput in (shout): 5"


def test_apply_table_reports_failing_consequent(runner):
    table = runner.load_table("- else: [{call: div, args: [0]}]")
    res = runner.apply_table(table, 4)
    assert res.status == "error"
    assert res.error_message.startswith("ZeroDivisionError:")
    assert "(div 4 0)" in res.error_message


def test_direct_table_failures_leave_no_frames_behind(runner):
    table = runner.load_table("- else: [{call: div, args: [0]}]")
    for _ in range(1000):
        with pytest.raises(ZeroDivisionError):
            table(5)
    assert runner.evaluator.call_stack == []
    res = runner.apply_table(table, 4)
    assert res.error_message.count("(div 4 0)") == 1
    assert "(div 5 0)" not in res.error_message


def test_apply_table_is_safe_across_threads(runner):
    table = runner.load_table(
        "- when: negative?\n  then: [{call: div, args: [0]}]\n- else: identity\n"
    )
    values = [5, -5] * 50
    with ThreadPoolExecutor(max_workers=6) as pool:
        results = list(pool.map(lambda v: runner.apply_table(table, v), values))
    for v, res in zip(values, results):
        if v > 0:
            assert res == ExecutionResult(status="success", value=5)
        else:
            assert res.status == "error"
            assert res.error_message.splitlines()[-1].endswith("(div -5 0)")


def test_apply_table_with_environment(runner):
    text = """
name: clamp
clauses:
  - when: [{call: gt, args: [limit]}]
    then: {template: "{{limit}}"}
  - else: identity
"""
    table = runner.load_table(text, environment={"limit": 10})
    assert runner.apply_table(table, 42).value == "10"
    res = runner.apply_table(table, 42, environment={"limit": 50})
    assert res == ExecutionResult(status="success", value=42)
    res = runner.apply_table(table, 60, environment={"limit": 50})
    assert res.value == "50"
    # the loaded table keeps its own bindings
    assert table(42) == "10"


def test_apply_table_with_environment_reports_unbound_names(runner):
    table = runner.load_table(
        "- when: [{call: gt, args: [limit]}]\n  then: identity\n", environment={"limit": 1}
    )
    res = runner.apply_table(table, 3, environment=runner.root_env.child({}))
    assert res.status == "error"
    assert res.error_message == "UnboundName: limit"


def test_load_table_reports_yaml_syntax_errors(runner):
    with pytest.raises(TableFormatError) as excinfo:
        runner.load_table("clauses: [ {when: negative?, then: negate\n")
    assert "cannot parse yaml table" in str(excinfo.value)
    assert "line" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, yaml.YAMLError)


def test_load_table_reports_toml_syntax_errors(runner):
    with pytest.raises(TableFormatError) as excinfo:
        runner.load_table('name = "x"\n[[clauses]\n', fmt="toml")
    assert isinstance(excinfo.value.__cause__, tomllib.TOMLDecodeError)
