"""
Utilities module for the codeload expression evaluator
Contains common helper functions for type checks, errors and operators
"""

from typing import Any, Callable, Dict, List, Optional

from error_handling import StatementEvalError


# ==================== TYPE CHECKING UTILITIES ====================

def type_name(value: Any) -> str:
  """
  Name of a runtime value's type, as shown in error messages

  Examples:
    type_name(1) -> "Number"
    type_name("a") -> "Text"
    type_name(None) -> "Null"
  """
  if value is None:
    return "Null"
  if isinstance(value, bool):
    return "Logical"
  if isinstance(value, (int, float)):
    return "Number"
  if isinstance(value, str):
    return "Text"
  if isinstance(value, list):
    return "List"
  if isinstance(value, dict):
    return "Record"
  if callable(value) or hasattr(value, 'params'):
    return "Function"
  return type(value).__name__


def is_number(value: Any) -> bool:
  """Numbers exclude booleans"""
  return isinstance(value, (int, float)) and not isinstance(value, bool)


# ==================== ERROR MESSAGE BUILDERS ====================

def type_mismatch_error(
  func_name: str,
  param_name: str,
  expected: str,
  actual: Any
) -> StatementEvalError:
  """
  Generate type mismatch error

  Args:
    func_name: Function name
    param_name: Parameter name
    expected: Expected type
    actual: Actual value

  Returns:
    StatementEvalError with formatted message
  """
  return StatementEvalError(
    f"{func_name} requires {expected} for {param_name}, got {type_name(actual)}"
  )


def arity_error(func_name: str, expected: int, got: int) -> StatementEvalError:
  """Generate arity mismatch error"""
  return StatementEvalError(
    f"{func_name} requires {expected} arguments, got {got}"
  )


def operation_error(
  op: str,
  left: Any,
  right: Any
) -> StatementEvalError:
  """Generate operation error"""
  return StatementEvalError(
    f"Cannot {op} {type_name(left)} and {type_name(right)}"
  )


# ==================== VALIDATION UTILITIES ====================

def validate_function_args(
  func_name: str,
  args: List[Any],
  expected_types: List[str],
  optional: int = 0
) -> None:
  """
  Validate function arguments match expected types

  Args:
    func_name: Function name for error messages
    args: List of argument values
    expected_types: List of expected type names ("Any" matches everything)
    optional: How many trailing parameters may be omitted

  Raises:
    StatementEvalError if validation fails
  """
  if not len(expected_types) - optional <= len(args) <= len(expected_types):
    raise arity_error(func_name, len(expected_types), len(args))

  for i, (arg, expected) in enumerate(zip(args, expected_types)):
    if expected != "Any" and type_name(arg) != expected:
      raise type_mismatch_error(func_name, f"argument {i+1}", expected, arg)


# ==================== BINARY OPERATION FACTORIES ====================

def binary_comparison_op(
  op: Callable[[Any, Any], bool],
  op_name: str,
  allowed_types: Optional[List[str]] = None
) -> Callable[[Any, Any], bool]:
  """
  Factory for binary comparison operations

  Examples:
    less_than = binary_comparison_op(operator.lt, "compare")
    less_than(1, 2) -> True
  """
  if allowed_types is None:
    allowed_types = ["Number", "Text"]

  def comparison(x: Any, y: Any) -> bool:
    if type_name(x) != type_name(y) or type_name(x) not in allowed_types:
      raise operation_error(op_name, x, y)
    return op(x, y)

  return comparison


def binary_arithmetic_op(
  op: Callable[[Any, Any], Any],
  op_name: str,
  allowed_types: Optional[List[str]] = None
) -> Callable[[Any, Any], Any]:
  """
  Factory for binary arithmetic operations

  Examples:
    add = binary_arithmetic_op(operator.add, "add")
    add(1, 2) -> 3
  """
  if allowed_types is None:
    allowed_types = ["Number"]

  def arithmetic(x: Any, y: Any) -> Any:
    if type_name(x) != type_name(y) or type_name(x) not in allowed_types:
      raise operation_error(op_name, x, y)
    try:
      return op(x, y)
    except ZeroDivisionError:
      raise StatementEvalError("Division by zero")
    except ArithmeticError as e:
      raise StatementEvalError(f"Cannot {op_name} {type_name(x)} and {type_name(y)}: {e}") from e

  return arithmetic


def combine_values(x: Any, y: Any) -> Any:
  """The & operator: concatenate texts or lists, merge records (right wins)"""
  if isinstance(x, str) and isinstance(y, str):
    return x + y
  if isinstance(x, list) and isinstance(y, list):
    return x + y
  if isinstance(x, dict) and isinstance(y, dict):
    return {**x, **y}
  raise operation_error("combine", x, y)


def require_logical(value: Any, what: str) -> bool:
  """Conditions and logical operators only accept true/false"""
  if not isinstance(value, bool):
    raise StatementEvalError(f"{what} requires Logical, got {type_name(value)}")
  return value


def format_value(value: Any) -> str:
  """Render a runtime value in expression syntax for display"""
  if value is None:
    return "null"
  if isinstance(value, bool):
    return "true" if value else "false"
  if isinstance(value, str):
    return '"' + value.replace('"', '""') + '"'
  if isinstance(value, list):
    return "{" + ", ".join(format_value(v) for v in value) + "}"
  if isinstance(value, dict):
    fields = ", ".join(f"{format_name(k)} = {format_value(v)}" for k, v in value.items())
    return "[" + fields + "]"
  if is_number(value):
    return repr(value)
  return str(value)


def format_name(name: str) -> str:
  """Quote names that aren't plain dotted identifiers"""
  parts = name.split('.')
  if all(part and (part[0].isalpha() or part[0] == '_') and
         all(c.isalnum() or c == '_' for c in part) for part in parts):
    return name
  return '#"' + name.replace('"', '""') + '"'


def describe_bindings(bindings: Dict[str, Any]) -> List[str]:
  """One 'name = value' line per binding"""
  return [f"{format_name(name)} = {format_value(value)}" for name, value in bindings.items()]


def values_equal(x: Any, y: Any) -> bool:
  """Equality that never equates values of different types (1 <> true)"""
  if type_name(x) != type_name(y):
    return False
  if isinstance(x, list):
    return len(x) == len(y) and all(values_equal(a, b) for a, b in zip(x, y))
  if isinstance(x, dict):
    return x.keys() == y.keys() and all(values_equal(x[k], y[k]) for k in x)
  return x == y
