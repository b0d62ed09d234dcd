"""
codeload Interpreter - Pure Functional Style
Default evaluate capability: runs one statement against an environment
snapshot and reports a Success or a Failure, never mutating the snapshot
"""

from collections import ChainMap
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
import math
import operator

from environment import EXPORT_PREFIX
from error_handling import EvalError, StatementEvalError, UnresolvedNameError
from outcomes import Success, Failure, EvalOutcome
from parsing import get_grammar
from stdlib import BUILTIN_FUNCTIONS, BuiltinFunction, make_builtin_function
from utilities import (
  type_name,
  is_number,
  arity_error,
  binary_arithmetic_op,
  binary_comparison_op,
  combine_values,
  require_logical,
  validate_function_args,
  values_equal,
)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True)
class Function:
  """A lambda value with the snapshot it was defined in"""
  params: Tuple[str, ...]
  body: Any
  closure_env: Mapping[str, Any]

  def __str__(self) -> str:
    return f"<function ({', '.join(self.params)})>"


def make_function(params: List[str], body: Any, closure_env: Mapping[str, Any]) -> Function:
  """Create a function value with closure"""
  return Function(tuple(params), body, closure_env)


def make_scope(bindings: Mapping[str, Any], *parents: Mapping[str, Any]) -> Mapping[str, Any]:
  """Local bindings in front of one or more parent scopes"""
  return ChainMap(dict(bindings), *parents)


def env_lookup_value(env: Mapping[str, Any], name: str) -> Any:
  """Look up a name; a missing name is an unresolved dependency"""
  try:
    return env[name]
  except KeyError:
    raise UnresolvedNameError(name) from None


# ============================================================================
# BUILT-IN OPERATIONS
# ============================================================================

BINARY_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    '+': binary_arithmetic_op(operator.add, "add"),
    '-': binary_arithmetic_op(operator.sub, "subtract"),
    '*': binary_arithmetic_op(operator.mul, "multiply"),
    '/': binary_arithmetic_op(operator.truediv, "divide"),
    '&': combine_values,
    '=': values_equal,
    '<>': lambda x, y: not values_equal(x, y),
    '<': binary_comparison_op(operator.lt, "compare"),
    '>': binary_comparison_op(operator.gt, "compare"),
    '<=': binary_comparison_op(operator.le, "compare"),
    '>=': binary_comparison_op(operator.ge, "compare"),
}


# ============================================================================
# EVALUATION
# ============================================================================

def eval_ast(node: Tuple, env: Mapping[str, Any], debug: bool = False) -> Any:
  """Evaluate a parsed node against env and return its value"""
  node_type, value = node

  if debug:
    print(f"Evaluating: {node_type}")

  handler = NODE_HANDLERS.get(node_type)
  if handler is None:
    raise StatementEvalError(f"Unknown node type: {node_type}")
  return handler(value, env, debug)


def eval_literal(value: Any, env: Mapping[str, Any], debug: bool = False) -> Any:
  """Numbers, texts and constants evaluate to themselves"""
  return value


def eval_identifier(name: str, env: Mapping[str, Any], debug: bool = False) -> Any:
  """Evaluate identifier by looking up in environment"""
  return env_lookup_value(env, name)


def eval_list(elements: List[Tuple], env: Mapping[str, Any], debug: bool = False) -> List:
  """Evaluate list expression"""
  return [eval_ast(element, env, debug) for element in elements]


def eval_record_fields(fields: List[Tuple], env: Mapping[str, Any], debug: bool = False) -> Dict[str, Any]:
  """
  Evaluate record fields in order

  Later fields see earlier ones. An exported field is visible to its
  siblings under both its 'shared ' name and its plain name.
  """
  record: Dict[str, Any] = {}
  local: Dict[str, Any] = {}
  scope = make_scope(local, env)
  for _, field in fields:
    name = field['name']
    if name in record:
      raise StatementEvalError(f"The field '{name}' already exists in the record")
    field_value = eval_ast(field['value'], scope, debug)
    record[name] = field_value
    local[name] = field_value
    if name.startswith(EXPORT_PREFIX):
      local.setdefault(name[len(EXPORT_PREFIX):], field_value)
    scope = make_scope(local, env)
  return record


def eval_record(fields: List[Tuple], env: Mapping[str, Any], debug: bool = False) -> Dict[str, Any]:
  """Evaluate record expression"""
  return eval_record_fields(fields, env, debug)


def eval_lambda(value: Dict, env: Mapping[str, Any], debug: bool = False) -> Function:
  """Evaluate lambda expression"""
  return make_function(value['params'], value['body'], env)


def apply_function(func: Any, args: List[Any], env: Optional[Mapping[str, Any]] = None,
                   debug: bool = False) -> Any:
  """
  Call a function value

  A lambda body sees its parameters, then its defining snapshot, then the
  caller's environment, so globals bound in later passes are found at call time.
  """
  if isinstance(func, Function):
    if len(args) != len(func.params):
      raise arity_error("function", len(func.params), len(args))
    parents = [func.closure_env] if env is None else [func.closure_env, env]
    call_env = make_scope(dict(zip(func.params, args)), *parents)
    return eval_ast(func.body, call_env, debug)

  if isinstance(func, BuiltinFunction):
    try:
      return func(*args)
    except EvalError:
      raise
    except (TypeError, ValueError, ArithmeticError, IndexError, KeyError) as e:
      raise StatementEvalError(f"{func.name}: {e}") from e

  raise StatementEvalError(f"Cannot call a value of type {type_name(func)}")


def eval_call(value: Dict, env: Mapping[str, Any], debug: bool = False) -> Any:
  """Evaluate function application"""
  func = eval_ast(value['function'], env, debug)
  args = [eval_ast(arg, env, debug) for arg in value['args']]
  return apply_function(func, args, env, debug)


def eval_index(value: Dict, env: Mapping[str, Any], debug: bool = False) -> Any:
  """Evaluate xs{i}"""
  target = eval_ast(value['target'], env, debug)
  index = eval_ast(value['index'], env, debug)
  if not isinstance(target, list):
    raise StatementEvalError(f"Cannot index a value of type {type_name(target)}")
  if not is_number(index) or not math.isfinite(index) or int(index) != index:
    raise StatementEvalError(f"List index must be a whole Number, got {type_name(index)}")
  if not 0 <= index < len(target):
    raise StatementEvalError(f"There weren't enough elements in the list (index {index})")
  return target[int(index)]


def eval_access(value: Dict, env: Mapping[str, Any], debug: bool = False) -> Any:
  """Evaluate r[field]"""
  target = eval_ast(value['target'], env, debug)
  field = value['field']
  if not isinstance(target, dict):
    raise StatementEvalError(f"Cannot access field '{field}' of a value of type {type_name(target)}")
  if field not in target:
    raise StatementEvalError(f"The field '{field}' of the record wasn't found")
  return target[field]


def eval_unary(value: Dict, env: Mapping[str, Any], debug: bool = False) -> Any:
  """Evaluate -x and not x"""
  operand = eval_ast(value['operand'], env, debug)
  if value['op'] == 'not':
    return not require_logical(operand, "not")
  if not is_number(operand):
    raise StatementEvalError(f"Cannot negate a value of type {type_name(operand)}")
  return -operand


def eval_binary(value: Dict, env: Mapping[str, Any], debug: bool = False) -> Any:
  """Evaluate binary operations; and/or short-circuit"""
  op = value['op']
  left = eval_ast(value['left'], env, debug)

  if op == 'and':
    if not require_logical(left, "and"):
      return False
    return require_logical(eval_ast(value['right'], env, debug), "and")
  if op == 'or':
    if require_logical(left, "or"):
      return True
    return require_logical(eval_ast(value['right'], env, debug), "or")

  right = eval_ast(value['right'], env, debug)
  return BINARY_OPERATORS[op](left, right)


def eval_if(value: Dict, env: Mapping[str, Any], debug: bool = False) -> Any:
  """Evaluate if/then/else; only the taken branch is evaluated"""
  condition = require_logical(eval_ast(value['condition'], env, debug), "if")
  return eval_ast(value['then'] if condition else value['else'], env, debug)


NODE_HANDLERS: Dict[str, Callable[[Any, Mapping[str, Any], bool], Any]] = {
    "NUMBER": eval_literal,
    "STRING": eval_literal,
    "CONSTANT": eval_literal,
    "IDENTIFIER": eval_identifier,
    "LIST": eval_list,
    "RECORD": eval_record,
    "LAMBDA": eval_lambda,
    "CALL": eval_call,
    "INDEX": eval_index,
    "ACCESS": eval_access,
    "UNARY": eval_unary,
    "BINARY": eval_binary,
    "IF": eval_if,
}


# ============================================================================
# HIGHER-ORDER BUILTINS
# Bound here because they apply expression functions
# ============================================================================

def list_transform(lst: Any, func: Any) -> List:
  """Apply func to each item"""
  validate_function_args("List.Transform", [lst, func], ["List", "Function"])
  return [apply_function(func, [item]) for item in lst]


def list_select(lst: Any, predicate: Any) -> List:
  """Keep the items for which predicate is true"""
  validate_function_args("List.Select", [lst, predicate], ["List", "Function"])
  return [item for item in lst if require_logical(apply_function(predicate, [item]), "List.Select")]


def list_accumulate(lst: Any, seed: Any, func: Any) -> Any:
  """Fold func(state, item) over the list"""
  validate_function_args("List.Accumulate", [lst, seed, func], ["List", "Any", "Function"])
  state = seed
  for item in lst:
    state = apply_function(func, [state, item])
  return state


def create_builtin_environment() -> Dict[str, Any]:
  """Builtin layer: the standard library plus the higher-order functions"""
  builtins: Dict[str, Any] = dict(BUILTIN_FUNCTIONS)
  builtins["List.Transform"] = make_builtin_function("List.Transform", list_transform, "List, Function -> List")
  builtins["List.Select"] = make_builtin_function("List.Select", list_select, "List, Function -> List")
  builtins["List.Accumulate"] = make_builtin_function(
      "List.Accumulate", list_accumulate, "List, Any, Function -> Any")
  return builtins


# ============================================================================
# CAPABILITY ENTRY POINTS
# ============================================================================

def evaluate_statement(statement: str, environment: Mapping[str, Any], debug: bool = False) -> EvalOutcome:
  """
  Evaluate one statement as the body of a record literal

  'A = 1, shared B = A' yields the bindings A and 'shared B'. Errors of the
  statement language are returned as a Failure; anything else propagates.
  """
  try:
    fields = get_grammar().parse_statement(statement)
    record = eval_record_fields(fields, environment, debug)
    return Success(tuple(record.items()))
  except EvalError as e:
    if not e.statement:
      e.statement = statement
    return Failure(statement, e)
  except RecursionError:
    return Failure(statement, StatementEvalError("Maximum recursion depth exceeded", statement))
  except ArithmeticError as e:
    return Failure(statement, StatementEvalError(f"Arithmetic error: {e}", statement))


def evaluate_expression(text: str, environment: Optional[Mapping[str, Any]] = None,
                        debug: bool = False) -> Any:
  """Evaluate a single expression and return its value; raises EvalError"""
  if environment is None:
    environment = create_builtin_environment()
  node = get_grammar().parse_expression(text)
  try:
    return eval_ast(node, environment, debug)
  except EvalError as e:
    if not e.statement:
      e.statement = text
    raise
  except RecursionError as e:
    raise StatementEvalError("Maximum recursion depth exceeded", text) from e
  except ArithmeticError as e:
    raise StatementEvalError(f"Arithmetic error: {e}", text) from e


def create_evaluator(debug: bool = False) -> Callable[[str, Mapping[str, Any]], EvalOutcome]:
  """Factory function returning an evaluate capability"""
  def evaluate(statement: str, environment: Mapping[str, Any]) -> EvalOutcome:
    return evaluate_statement(statement, environment, debug)
  return evaluate


def create_debug_evaluator() -> Callable[[str, Mapping[str, Any]], EvalOutcome]:
  """Factory function returning a debug evaluate capability"""
  return create_evaluator(debug=True)
