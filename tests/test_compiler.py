"""Tests for expression compilation in schemaflow._compiler."""

import pytest

import schemaflow
from schemaflow._compiler import (
    UNCHANGED,
    compile_expression,
    get_function_body,
    wrap_return_statements,
)
from schemaflow._errors import CompilationError


class TestGetFunctionBody:
    """Tests for get_function_body."""

    def test_bare_expression(self) -> None:
        assert get_function_body("dependencies[0] * 2") == "return dependencies[0] * 2"

    def test_bare_expression_coerced(self) -> None:
        assert get_function_body("dependencies[0]", coerce_to_boolean=True) == "return bool(dependencies[0])"

    def test_block_is_used_verbatim(self) -> None:
        text = "{\n    x = dependencies[0]\n    return x + 1\n}"
        assert get_function_body(text) == "x = dependencies[0]\nreturn x + 1"

    def test_single_line_block(self) -> None:
        assert get_function_body("{ return dependencies[0] }").rstrip() == "return dependencies[0]"

    def test_empty_block(self) -> None:
        assert get_function_body("{ }") == "pass"

    def test_block_coerced(self) -> None:
        text = "{\n    if dependencies[0]:\n        return dependencies[1]\n    return\n}"
        assert get_function_body(text, coerce_to_boolean=True) == (
            "if dependencies[0]:\n    return bool(dependencies[1])\nreturn False"
        )


class TestWrapReturnStatements:
    """Tests for wrap_return_statements."""

    def test_wraps_value_returns(self) -> None:
        assert wrap_return_statements("return dependencies[0] > 1") == "return bool(dependencies[0] > 1)"

    def test_bare_return_becomes_false(self) -> None:
        assert wrap_return_statements("return") == "return False"

    def test_no_return_is_unchanged(self) -> None:
        assert wrap_return_statements("x = 1") == "x = 1"

    def test_nested_function_returns_are_left_alone(self) -> None:
        body = "def helper(v):\n    return v * 2\nreturn helper(dependencies[0])"
        result = wrap_return_statements(body)
        assert "    return v * 2" in result
        assert result.endswith("return bool(helper(dependencies[0]))")

    def test_lambda_is_left_alone(self) -> None:
        body = "f = lambda v: v\nreturn f(dependencies[0])"
        assert wrap_return_statements(body) == "f = lambda v: v\nreturn bool(f(dependencies[0]))"

    def test_invalid_block_raises_syntax_error(self) -> None:
        with pytest.raises(SyntaxError):
            wrap_return_statements("return (")


class TestCompileExpression:
    """Tests for compile_expression."""

    def test_value_expression(self) -> None:
        function = compile_expression("dependencies[0] + dependencies[1]")
        assert function([2, 3]) == 5

    def test_boolean_coercion(self) -> None:
        function = compile_expression("dependencies[0]", coerce_to_boolean=True)
        assert function(["text"]) is True
        assert function([""]) is False
        assert function([None]) is False

    def test_no_coercion_keeps_value(self) -> None:
        function = compile_expression("dependencies[0] or 'fallback'")
        assert function([None]) == "fallback"

    def test_block_expression(self) -> None:
        text = """{
            total = 0
            for item in dependencies[0]:
                total += item
            return total
        }"""
        function = compile_expression(text)
        assert function([[1, 2, 3]]) == 6

    def test_block_without_return_yields_none(self) -> None:
        function = compile_expression("{ x = dependencies[0] }", coerce_to_boolean=True)
        assert function([1]) is None

    def test_coerced_block(self) -> None:
        function = compile_expression("{\n if dependencies[0] > 1:\n     return 'yes'\n return\n}", coerce_to_boolean=True)
        assert function([5]) is True
        assert function([0]) is False

    def test_unchanged_sentinel_is_available(self) -> None:
        function = compile_expression("UNCHANGED if dependencies[0] is None else dependencies[0]")
        assert function([None]) is UNCHANGED
        assert function([4]) == 4

    def test_math_module_is_available(self) -> None:
        function = compile_expression("math.floor(dependencies[0])")
        assert function([2.7]) == 2

    @pytest.mark.parametrize("name", ["open", "eval", "exec", "compile", "getattr"])
    def test_unsafe_builtins_are_unavailable(self, name: str) -> None:
        function = compile_expression(name)
        with pytest.raises(NameError):
            function([])

    @pytest.mark.parametrize(
        ("text", "reason"),
        [
            ("().__class__", "attribute '__class__'"),
            ("dependencies[0]._secret", "attribute '_secret'"),
            ("__builtins__", "name '__builtins__'"),
            ("__import__('os')", "name '__import__'"),
            ("{\n    import os\n    return os\n}", "Import statements"),
            ("{\n    global x\n    return 1\n}", "Global statements"),
        ],
    )
    def test_restricted_constructs_are_rejected(self, text: str, reason: str) -> None:
        with pytest.raises(CompilationError, match=reason) as exc_info:
            compile_expression(text, field_name="derived")
        assert exc_info.value.field_name == "derived"

    def test_public_attributes_are_allowed(self) -> None:
        function = compile_expression("dependencies[0].upper() + str(math.pi)[:1]")
        assert function(["a"]) == "A3"

    def test_error_is_exported(self) -> None:
        assert schemaflow.CompilationError is CompilationError
        assert issubclass(CompilationError, schemaflow.SchemaflowError)

    def test_syntax_error_raises_compilation_error(self) -> None:
        with pytest.raises(CompilationError) as exc_info:
            compile_expression("dependencies[0] ==", field_name="visible", expression="../a ==")
        error = exc_info.value
        assert error.field_name == "visible"
        assert error.expression == "../a =="
        assert "def computed(dependencies):" in error.source
        assert "visible" in str(error)

    def test_block_syntax_error_raises_compilation_error(self) -> None:
        with pytest.raises(CompilationError):
            compile_expression("{ if: }", coerce_to_boolean=True, field_name="disabled")

    def test_runtime_errors_propagate(self) -> None:
        function = compile_expression("dependencies[0] / dependencies[1]")
        with pytest.raises(ZeroDivisionError):
            function([1, 0])
