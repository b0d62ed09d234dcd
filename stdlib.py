"""
codeload Standard Library
Built-in functions forming the builtin layer of every environment
"""

from typing import Any, Callable, Dict, List
from dataclasses import dataclass

from utilities import (
  type_name,
  is_number,
  validate_function_args,
  type_mismatch_error,
)
from error_handling import StatementEvalError


@dataclass(frozen=True)
class BuiltinFunction:
  """A host function callable from expressions"""
  name: str
  func: Callable
  type_signature: str = ""

  def __call__(self, *args):
    return self.func(*args)

  def __str__(self) -> str:
    return f"<builtin {self.name}>"


def make_builtin_function(name: str, func: Callable, type_signature: str = "") -> BuiltinFunction:
  """Create a built-in function value"""
  return BuiltinFunction(name, func, type_signature)


# ============================================================================
# TEXT FUNCTIONS
# ============================================================================

def text_upper(text: Any) -> str:
  """Upper-case a text"""
  validate_function_args("Text.Upper", [text], ["Text"])
  return text.upper()


def text_lower(text: Any) -> str:
  """Lower-case a text"""
  validate_function_args("Text.Lower", [text], ["Text"])
  return text.lower()


def text_length(text: Any) -> int:
  """Number of characters in a text"""
  validate_function_args("Text.Length", [text], ["Text"])
  return len(text)


def text_combine(texts: Any, separator: Any = "") -> str:
  """Join a list of texts with an optional separator"""
  validate_function_args("Text.Combine", [texts, separator], ["List", "Text"], optional=1)
  for item in texts:
    if not isinstance(item, str):
      raise type_mismatch_error("Text.Combine", "list items", "Text", item)
  return separator.join(texts)


def text_from(value: Any) -> str:
  """Text form of a number, logical or text"""
  if value is None:
    return ""
  if isinstance(value, bool):
    return "true" if value else "false"
  if is_number(value) or isinstance(value, str):
    return str(value)
  raise StatementEvalError(f"Text.From cannot convert {type_name(value)}")


# ============================================================================
# LIST FUNCTIONS
# ============================================================================

def _numbers(func_name: str, lst: Any) -> List:
  validate_function_args(func_name, [lst], ["List"])
  for item in lst:
    if not is_number(item):
      raise type_mismatch_error(func_name, "list items", "Number", item)
  return lst


def list_sum(lst: Any) -> Any:
  """Sum of a list of numbers"""
  return sum(_numbers("List.Sum", lst))


def list_count(lst: Any) -> int:
  """Number of items in a list"""
  validate_function_args("List.Count", [lst], ["List"])
  return len(lst)


def list_max(lst: Any) -> Any:
  """Largest number of a list, null when empty"""
  items = _numbers("List.Max", lst)
  return max(items) if items else None


def list_min(lst: Any) -> Any:
  """Smallest number of a list, null when empty"""
  items = _numbers("List.Min", lst)
  return min(items) if items else None


def list_numbers(start: Any, count: Any) -> List:
  """count numbers counting up from start"""
  validate_function_args("List.Numbers", [start, count], ["Number", "Number"])
  if count < 0 or int(count) != count:
    raise StatementEvalError(f"List.Numbers requires a non-negative whole count, got {count}")
  return [start + i for i in range(int(count))]


def list_first(lst: Any) -> Any:
  """First item of a list, null when empty"""
  validate_function_args("List.First", [lst], ["List"])
  return lst[0] if lst else None


# ============================================================================
# NUMBER AND RECORD FUNCTIONS
# ============================================================================

def number_round(value: Any, digits: Any = 0) -> Any:
  """Round to a number of decimal digits"""
  validate_function_args("Number.Round", [value, digits], ["Number", "Number"], optional=1)
  rounded = round(value, int(digits))
  return int(rounded) if int(digits) == 0 else rounded


def record_field_names(record: Any) -> List[str]:
  """Field names of a record, in order"""
  validate_function_args("Record.FieldNames", [record], ["Record"])
  return list(record)


def record_has_fields(record: Any, name: Any) -> bool:
  """True when the record has the named field"""
  validate_function_args("Record.HasFields", [record, name], ["Record", "Text"])
  return name in record


# Built-in function registry
# Note: the higher-order list functions are bound in interpreter.py
# because they need to apply expression functions
BUILTIN_FUNCTIONS: Dict[str, BuiltinFunction] = {
    # Text functions
    "Text.Upper": make_builtin_function("Text.Upper", text_upper, "Text -> Text"),
    "Text.Lower": make_builtin_function("Text.Lower", text_lower, "Text -> Text"),
    "Text.Length": make_builtin_function("Text.Length", text_length, "Text -> Number"),
    "Text.Combine": make_builtin_function("Text.Combine", text_combine, "List Text, Text? -> Text"),
    "Text.From": make_builtin_function("Text.From", text_from, "Any -> Text"),

    # List functions
    "List.Sum": make_builtin_function("List.Sum", list_sum, "List Number -> Number"),
    "List.Count": make_builtin_function("List.Count", list_count, "List -> Number"),
    "List.Max": make_builtin_function("List.Max", list_max, "List Number -> Number"),
    "List.Min": make_builtin_function("List.Min", list_min, "List Number -> Number"),
    "List.Numbers": make_builtin_function("List.Numbers", list_numbers, "Number, Number -> List Number"),
    "List.First": make_builtin_function("List.First", list_first, "List -> Any"),

    # Number and record functions
    "Number.Round": make_builtin_function("Number.Round", number_round, "Number, Number? -> Number"),
    "Record.FieldNames": make_builtin_function("Record.FieldNames", record_field_names, "Record -> List Text"),
    "Record.HasFields": make_builtin_function("Record.HasFields", record_has_fields, "Record, Text -> Logical"),
}
