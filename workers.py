"""
Per-pass evaluation workers (Using Pykka)
Every statement of a pass reads the same immutable snapshot, so the pass can
be spread over a pool of actors and collected before the next pass starts
"""

from typing import Any, Callable, List, Mapping, Optional, Sequence
import pykka

from error_handling import CapabilityFault
from outcomes import Success, Failure, EvalOutcome


EvaluateFn = Callable[[str, Mapping[str, Any]], EvalOutcome]


def evaluate_one(evaluate: EvaluateFn, statement: str, snapshot: Mapping[str, Any]) -> EvalOutcome:
  """Call the capability once; any contract breach becomes a CapabilityFault"""
  try:
    outcome = evaluate(statement, snapshot)
  except Exception as e:
    raise CapabilityFault(f"evaluate raised {type(e).__name__}: {e}", statement) from e

  if not isinstance(outcome, (Success, Failure)):
    raise CapabilityFault(
        f"evaluate must return Success or Failure, got {type(outcome).__name__}", statement)
  if isinstance(outcome, Success):
    for binding in outcome.bindings:
      if not (isinstance(binding, tuple) and len(binding) == 2 and isinstance(binding[0], str)):
        raise CapabilityFault(f"evaluate returned a malformed binding: {binding!r}", statement)
  return outcome


class PassWorker(pykka.ThreadingActor):
  """Actor that evaluates (statement, snapshot) messages"""

  def __init__(self, evaluate: EvaluateFn):
    super().__init__()
    self.evaluate = evaluate

  def on_receive(self, message):
    statement, snapshot = message
    # Raised faults travel back to the caller through the ask future
    return evaluate_one(self.evaluate, statement, snapshot)


class WorkerPool:
  """Fixed set of PassWorker actors, used round-robin"""

  def __init__(self, evaluate: EvaluateFn, size: int):
    self.refs: List[pykka.ActorRef] = [PassWorker.start(evaluate) for _ in range(size)]

  def evaluate_pass(self, statements: Sequence[str], snapshot: Mapping[str, Any]) -> List[EvalOutcome]:
    """Evaluate all statements concurrently, results in statement order"""
    futures = [
        self.refs[i % len(self.refs)].ask((statement, snapshot), block=False)
        for i, statement in enumerate(statements)
    ]
    return pykka.get_all(futures)

  def stop(self):
    """Stop every worker"""
    for actor_ref in self.refs:
      actor_ref.stop()
    self.refs = []

  def __enter__(self):
    return self

  def __exit__(self, exc_type, exc, tb):
    self.stop()
    return False


def evaluate_pass(statements: Sequence[str], snapshot: Mapping[str, Any], evaluate: EvaluateFn,
                  pool: Optional[WorkerPool] = None) -> List[EvalOutcome]:
  """Evaluate one pass, on the pool when given, else in the calling thread"""
  if pool is None or not pool.refs:
    return [evaluate_one(evaluate, statement, snapshot) for statement in statements]
  return pool.evaluate_pass(statements, snapshot)
