import pytest

from procsupervisor.string_expression import StringExpression


def test_eval_from_source():
    se = StringExpression()
    se.add("var1", "ok").add("var2", "2")
    assert se.eval("%(var1)s_test_%(var2)02d") == "ok_test_02"


def test_plain_string_unchanged():
    assert StringExpression().eval("no placeholders here") == "no placeholders here"


def test_constructor_pairs():
    se = StringExpression("program_name", "web", "process_num", "3")
    assert se.eval("%(program_name)s-%(process_num)d") == "web-3"


def test_environment_variables_are_prefixed(monkeypatch):
    monkeypatch.setenv("PROCSUP_TEST_VAR", "hello")
    assert StringExpression().eval("%(ENV_PROCSUP_TEST_VAR)s") == "hello"


def test_missing_variable_raises():
    with pytest.raises(ValueError):
        StringExpression().eval("%(nothing_here_xyz)s")


def test_non_integer_for_d_raises():
    se = StringExpression("name", "abc")
    with pytest.raises(ValueError):
        se.eval("%(name)d")


def test_unknown_type_raises():
    se = StringExpression("name", "abc")
    with pytest.raises(ValueError):
        se.eval("%(name)x")


def test_missing_type_raises():
    se = StringExpression("name", "abc")
    with pytest.raises(ValueError):
        se.eval("%(name)")


def test_add_returns_same_object():
    se = StringExpression()
    assert se.add("k", "v") is se