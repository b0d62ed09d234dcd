"""
Fixpoint evaluation of loosely ordered statements
Evaluates every pending statement against the environment built by earlier
passes, retries the failures, and stops the first time a pass binds no new name
"""

from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from environment import (
  EXPORT_PREFIX,
  make_environment,
  env_snapshot,
  merge,
  apply_export_rename,
  sorted_bindings,
)
from error_handling import EvaluatorStateError
from outcomes import Success, FailingStatement, PassState
from workers import EvaluateFn, WorkerPool, evaluate_pass


# ============================================================================
# PASSES
# ============================================================================

def run_pass(state: PassState, snapshot: Mapping[str, Any], evaluate: EvaluateFn,
             pool: Optional[WorkerPool] = None, export_prefix: str = EXPORT_PREFIX,
             export_only_shared: bool = True, debug: bool = False) -> PassState:
  """
  Run one pass over state.pending and return the next state

  All statements see the same snapshot. Successful bindings are export-renamed
  and appended first-writer-wins; failures stay pending in their original order.
  """
  outcomes = evaluate_pass(state.pending, snapshot, evaluate, pool)

  new_bindings = []
  failing = []
  for statement, outcome in zip(state.pending, outcomes):
    if isinstance(outcome, Success):
      new_bindings.extend(apply_export_rename(
          outcome.bindings, export_prefix, keep_internal=not export_only_shared))
    else:
      failing.append(FailingStatement(statement, outcome.error))

  bindings, shadowed = merge(state.bindings, new_bindings)

  next_state = PassState(
      pending=tuple(failure.statement for failure in failing),
      bindings=bindings,
      previous_count=len(state.bindings),
      pass_number=state.pass_number + 1,
      errors=tuple(failing),
      shadowed=tuple(shadowed)
  )

  if debug:
    print(f"Pass {next_state.pass_number}: {len(state.pending)} evaluated, "
          f"{len(state.pending) - len(failing)} succeeded, {len(failing)} pending, "
          f"{next_state.resolved_count} names")
    if shadowed:
      print(f"  Already bound, dropped: {', '.join(shadowed)}")

  return next_state


def iterate_passes(statements: Sequence[str], base_environment: Optional[Mapping[str, Any]],
                   evaluate: EvaluateFn, export_only_shared: bool = True, *,
                   builtins: Optional[Mapping[str, Any]] = None, export_prefix: str = EXPORT_PREFIX,
                   workers: int = 0, max_passes: Optional[int] = None,
                   debug: bool = False) -> Iterator[PassState]:
  """Yield the state after each pass until a pass binds no new name"""
  if max_passes is not None and max_passes < 1:
    raise ValueError(f"max_passes must be at least 1, got {max_passes}")

  env = make_environment(base_environment, builtins)
  state = PassState(pending=tuple(statements), bindings=env['bindings'])
  pool = WorkerPool(evaluate, workers) if workers > 1 else None

  try:
    while state.made_progress:
      if max_passes is not None and state.pass_number >= max_passes:
        if debug:
          print(f"Stopping after {state.pass_number} passes (max_passes), "
                f"{len(state.pending)} still pending")
        break

      snapshot = env_snapshot({**env, 'bindings': state.bindings})
      state = run_pass(state, snapshot, evaluate, pool, export_prefix, export_only_shared, debug)
      yield state
  finally:
    if pool is not None:
      pool.stop()


# ============================================================================
# EVALUATOR
# ============================================================================

class FixpointEvaluator:
  """Single-shot run over one statement set; run() may only be called once"""

  def __init__(self, statements: Sequence[str], base_environment: Optional[Mapping[str, Any]],
               evaluate: EvaluateFn, export_only_shared: bool = True, *,
               builtins: Optional[Mapping[str, Any]] = None, export_prefix: str = EXPORT_PREFIX,
               workers: int = 0, max_passes: Optional[int] = None, debug: bool = False):
    self.statements = tuple(statements)
    self.base_environment = dict(base_environment or {})
    self.evaluate = evaluate
    self.export_only_shared = export_only_shared
    self.builtins = builtins
    self.export_prefix = export_prefix
    self.workers = workers
    self.max_passes = max_passes
    self.debug = debug
    self.history: List[PassState] = []
    self._ran = False

  def run(self) -> PassState:
    if self._ran:
      raise EvaluatorStateError("FixpointEvaluator is single-shot; create a new one per run")
    self._ran = True

    passes = iterate_passes(
        self.statements, self.base_environment, self.evaluate, self.export_only_shared,
        builtins=self.builtins, export_prefix=self.export_prefix, workers=self.workers,
        max_passes=self.max_passes, debug=self.debug
    )
    for state in passes:
      self.history.append(state)

    if self.debug:
      print(f"Fixpoint reached after {self.pass_count} passes")
    return self.final_state

  @property
  def final_state(self) -> PassState:
    if self.history:
      return self.history[-1]
    return PassState(pending=self.statements, bindings=self.base_environment)

  @property
  def pass_count(self) -> int:
    return len(self.history)

  def values(self) -> Dict[str, Any]:
    """Resolved bindings ordered by name"""
    return sorted_bindings(self.final_state.bindings)

  def errors(self) -> List[FailingStatement]:
    """Statements still failing, in original order, with their last error"""
    return list(self.final_state.errors)


def resolve(statements: Sequence[str], base_environment: Optional[Mapping[str, Any]],
            evaluate: EvaluateFn, return_errors: bool = False, export_only_shared: bool = True,
            **kwargs) -> Union[Dict[str, Any], List[FailingStatement]]:
  """
  Resolve statements into one environment

  Args:
    statements: Statement texts, in any order
    base_environment: Bindings visible to every statement and kept in the result
    evaluate: Capability (statement, environment) -> Success | Failure
    return_errors: Return the still-failing statements instead of the values
    export_only_shared: Drop the internal 'shared ' name of exported bindings
    **kwargs: builtins, export_prefix, workers, max_passes, debug

  Returns:
    Name-sorted bindings, or the list of FailingStatement when return_errors

  Raises:
    CapabilityFault if evaluate raises or returns something other than an outcome
  """
  evaluator = FixpointEvaluator(statements, base_environment, evaluate, export_only_shared, **kwargs)
  evaluator.run()
  if return_errors:
    return evaluator.errors()
  return evaluator.values()
