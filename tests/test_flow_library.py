import pytest

from flowswitch.flow_library import library_bindings
from flowswitch.flow_dispatch import otherwise


@pytest.fixture(scope="module")
def lib():
    return library_bindings()


def test_predicates_have_kebab_and_question_mark_names(lib):
    assert lib["negative?"] is not None
    assert lib["negative-q"](-1) is True
    assert lib["negative?"](-1) is True
    assert lib["else"] is otherwise
    assert "negative_q" not in lib


@pytest.mark.parametrize("name,value,expected", [
    ("negative?", -1, True),
    ("negative?", 0, False),
    ("negative?", "a", False),
    ("positive?", 2.5, True),
    ("zero?", 0, True),
    ("zero?", False, False),
    ("even?", 4, True),
    ("even?", 4.0, False),
    ("odd?", -3, True),
    ("number?", True, False),
    ("number?", 1.5, True),
    ("string?", "x", True),
    ("list?", [1], True),
    ("list?", "x", False),
    ("none?", None, True),
    ("empty?", [], True),
    ("empty?", "", True),
    ("empty?", None, True),
    ("empty?", 0, False),
])
def test_predicates(lib, name, value, expected):
    assert lib[name](value) is expected


@pytest.mark.parametrize("name,value,expected", [
    ("identity", 5, 5),
    ("negate", 5, -5),
    ("abs", -5, 5),
    ("inc", 1, 2),
    ("dec", 1, 0),
    ("double", 3, 6),
    ("square", -3, 9),
    ("not", 0, True),
    ("len", "abc", 3),
    ("to-str", None, "none"),
    ("to-str", True, "true"),
    ("to-str", 12, "12"),
    ("upper", "ab", "AB"),
    ("lower", "AB", "ab"),
    ("reverse", "abc", "cba"),
    ("reverse", [1, 2, 3], [3, 2, 1]),
    ("sum", [1, 2, 3], 6),
    ("first", [7, 8], 7),
    ("rest", [7, 8, 9], [8, 9]),
    ("rest", "abc", "bc"),
    ("sort", [3, 1, 2], [1, 2, 3]),
])
def test_consequents(lib, name, value, expected):
    assert lib[name](value) == expected


def test_first_of_empty_raises(lib):
    with pytest.raises(ValueError):
        lib["first"]([])


def test_binary_helpers_take_flowing_value_first(lib):
    assert lib["sub"](10, 3) == 7
    assert lib["div"](9, 3) == 3
    assert lib["mod"](10, 3) == 1
    assert lib["gt"](5, 3) is True
    assert lib["lt"](5, 3) is False
    assert lib["eq"]("a", "a") is True
    assert lib["add"]("n=", 3) == "n=3"
    assert lib["map"]([1, 2], lib["inc"]) == [2, 3]
    assert lib["filter"]([1, 2, 3], lib["odd?"]) == [1, 3]
