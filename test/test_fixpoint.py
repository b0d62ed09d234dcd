"""
Fixpoint evaluator tests, driven by the arithmetic evaluate fixture
"""

import itertools
import pytest

from error_handling import CapabilityFault, EvaluatorStateError, UnresolvedNameError
from fixpoint import FixpointEvaluator, iterate_passes, resolve, run_pass
from outcomes import Success, Failure, FailingStatement, PassState


def reversed_chain(n):
  """X{n-1} = X{n-2} + 1 ... X0 = 0, each depending on the one listed after it"""
  return [f"X{i} = X{i - 1} + 1" for i in range(n - 1, 0, -1)] + ["X0 = 0"]


class TestResolve:
  """Test the values and errors results"""

  def test_dependency_listed_first(self, evaluate):
    assert resolve(["B = A + 1", "A = 1"], None, evaluate) == {"A": 1, "B": 2}

  def test_dependency_takes_three_passes(self, evaluate):
    evaluator = FixpointEvaluator(["B = A + 1", "A = 1"], None, evaluate)
    evaluator.run()
    assert evaluator.pass_count == 3
    assert [state.resolved_count for state in evaluator.history] == [1, 2, 2]
    assert evaluator.history[0].pending == ("B = A + 1",)
    assert evaluator.history[1].pending == ()

  def test_unknown_name(self, evaluate):
    assert resolve(["C = unknown_name"], None, evaluate) == {}

    errors = resolve(["C = unknown_name"], None, evaluate, return_errors=True)
    assert len(errors) == 1
    assert errors[0].statement == "C = unknown_name"
    assert isinstance(errors[0].error, UnresolvedNameError)
    assert errors[0].error.name == "unknown_name"

  def test_unknown_name_stops_after_one_pass(self, evaluate):
    evaluator = FixpointEvaluator(["C = unknown_name"], None, evaluate)
    evaluator.run()
    assert evaluator.pass_count == 1

  def test_empty_statement_set(self, evaluate):
    assert resolve([], None, evaluate) == {}
    assert resolve([], None, evaluate, return_errors=True) == []

  def test_errors_in_original_order(self, evaluate):
    statements = ["Z = nope", "A = 1", "Y = missing + A", "B = A + 1", "X = gone"]
    errors = resolve(statements, None, evaluate, return_errors=True)
    assert [failure.statement for failure in errors] == ["Z = nope", "Y = missing + A", "X = gone"]

  def test_errors_mode_when_everything_resolves(self, evaluate):
    assert resolve(["A = 1", "B = A + 1"], None, evaluate, True) == []

  def test_values_sorted_by_name(self, evaluate):
    result = resolve(["b = 2", "C = 3", "a = 1"], None, evaluate)
    assert list(result) == ["C", "a", "b"]

  def test_base_environment_visible_and_kept(self, evaluate):
    result = resolve(["B = A + 1"], {"A": 41}, evaluate)
    assert result == {"A": 41, "B": 42}

  def test_builtins_visible_but_not_returned(self, evaluate):
    result = resolve(["B = Ten + 1"], None, evaluate, builtins={"Ten": 10})
    assert result == {"B": 11}

  def test_bindings_shadow_builtins(self, evaluate):
    result = resolve(["B = Ten + 1", "Ten = 100"], None, evaluate, builtins={"Ten": 10})
    # B succeeds in pass 1 against the builtin
    assert result == {"B": 11, "Ten": 100}

  def test_zero_binding_success_leaves_pending(self):
    def evaluate(statement, environment):
      return Success(())

    evaluator = FixpointEvaluator(["anything"], None, evaluate)
    evaluator.run()
    assert evaluator.values() == {}
    assert evaluator.errors() == []
    assert evaluator.final_state.pending == ()

  def test_multi_binding_success(self):
    def evaluate(statement, environment):
      return Success.of(P=1, Q=2)

    assert resolve(["P and Q"], None, evaluate) == {"P": 1, "Q": 2}


class TestPassSemantics:
  """Test per-pass snapshot, monotonicity and termination"""

  def test_statements_in_one_pass_share_a_snapshot(self, evaluate):
    """A statement does not see a binding made earlier in the same pass"""
    evaluator = FixpointEvaluator(["A = 1", "B = A + 1"], None, evaluate)
    evaluator.run()
    assert evaluator.history[0].bindings == {"A": 1}
    assert evaluator.values() == {"A": 1, "B": 2}
    assert evaluator.pass_count == 3

  def test_snapshot_seen_by_evaluate(self):
    seen = []

    def evaluate(statement, environment):
      seen.append((statement, dict(environment)))
      if statement == "first":
        return Success.of(First=1)
      if "First" in environment:
        return Success.of(Second=2)
      return Failure(statement, UnresolvedNameError("First", statement))

    resolve(["first", "second"], None, evaluate)
    assert seen[0] == ("first", {})
    assert seen[1] == ("second", {})
    assert seen[2] == ("second", {"First": 1})

  def test_snapshot_cannot_be_mutated(self):
    def evaluate(statement, environment):
      environment["Sneaky"] = 1
      return Success.of(A=1)

    with pytest.raises(CapabilityFault) as exc_info:
      resolve(["A = 1"], None, evaluate)
    assert isinstance(exc_info.value.__cause__, TypeError)

  def test_monotone_growth(self, evaluate):
    counts = [state.resolved_count for state in iterate_passes(reversed_chain(6), None, evaluate)]
    assert counts == sorted(counts)
    assert counts[-1] == 6

  def test_progress_strict_until_last_pass(self, evaluate):
    states = list(iterate_passes(reversed_chain(5), None, evaluate))
    assert all(state.made_progress for state in states[:-1])
    assert not states[-1].made_progress

  @pytest.mark.parametrize("n", [1, 2, 5, 12])
  def test_pass_bound(self, evaluate, n):
    """A fully reversed chain of n statements needs exactly n + 1 passes"""
    evaluator = FixpointEvaluator(reversed_chain(n), None, evaluate)
    evaluator.run()
    assert evaluator.pass_count == n + 1
    assert evaluator.values()[f"X{n - 1}"] == n - 1

  def test_pass_count_never_exceeds_bound(self, evaluate):
    statements = ["A = 1", "B = C + 1", "C = A + 1", "D = nothing", "E = B + C"]
    evaluator = FixpointEvaluator(statements, None, evaluate)
    evaluator.run()
    assert evaluator.pass_count <= len(statements) + 1

  def test_order_independence(self, evaluate):
    statements = ["A = 1", "B = A + 1", "C = B + A", "D = C + C"]
    expected = {"A": 1, "B": 2, "C": 3, "D": 6}
    for permutation in itertools.permutations(statements):
      assert resolve(list(permutation), None, evaluate) == expected

  def test_idempotence(self, evaluate):
    first = resolve(["B = A + 1", "A = 1", "C = missing"], None, evaluate)
    assert resolve([], first, evaluate) == first

  def test_rerun_statements_over_result(self, evaluate):
    """Every name is already bound, so the rerun drops every success"""
    statements = ["B = A + 1", "A = 1"]
    first = resolve(statements, None, evaluate)
    assert resolve(statements, first, evaluate) == first

  def test_max_passes(self, evaluate):
    evaluator = FixpointEvaluator(reversed_chain(4), None, evaluate, max_passes=2)
    evaluator.run()
    assert evaluator.pass_count == 2
    assert evaluator.values() == {"X0": 0, "X1": 1}
    assert len(evaluator.errors()) == 2

  def test_max_passes_must_be_positive(self, evaluate):
    with pytest.raises(ValueError):
      list(iterate_passes(["A = 1"], None, evaluate, max_passes=0))

  def test_debug_output(self, evaluate, capsys):
    resolve(["B = A + 1", "A = 1"], None, evaluate, debug=True)
    out = capsys.readouterr().out
    assert "Pass 1: 2 evaluated, 1 succeeded, 1 pending, 1 names" in out
    assert "Fixpoint reached after 3 passes" in out


class TestDuplicates:
  """Test first-writer-wins handling of repeated names"""

  def test_same_pass_duplicate(self, evaluate):
    evaluator = FixpointEvaluator(["X = 1", "X = 2"], None, evaluate)
    evaluator.run()
    assert evaluator.values() == {"X": 1}
    assert evaluator.history[0].shadowed == ("X",)

  def test_later_pass_duplicate_dropped(self, evaluate):
    """Y = 5 binds in pass 1; the retried Y = X + 1 succeeds later and is dropped"""
    evaluator = FixpointEvaluator(["Y = X + 1", "X = 1", "Y = 5"], None, evaluate)
    evaluator.run()
    assert evaluator.values() == {"X": 1, "Y": 5}
    assert evaluator.history[1].shadowed == ("Y",)
    assert evaluator.errors() == []

  def test_base_environment_wins(self, evaluate):
    assert resolve(["A = 2"], {"A": 1}, evaluate) == {"A": 1}

  def test_shadowed_names_in_debug_output(self, evaluate, capsys):
    resolve(["X = 1", "X = 2"], None, evaluate, debug=True)
    assert "Already bound, dropped: X" in capsys.readouterr().out


class TestExport:
  """Test the 'shared ' export rename"""

  def test_exported_name_replaced(self, evaluate):
    result = resolve(["shared Foo = 1", "Bar = Foo + 1"], None, evaluate)
    assert result == {"Bar": 2, "Foo": 1}

  def test_keep_internal_name(self, evaluate):
    result = resolve(["shared Foo = 1"], None, evaluate, export_only_shared=False)
    assert result == {"Foo": 1, "shared Foo": 1}

  def test_internal_name_not_visible_when_dropped(self, evaluate):
    errors = resolve(["shared Foo = 1", "Bar = shared Foo + 1"], None, evaluate, True)
    assert [failure.statement for failure in errors] == ["Bar = shared Foo + 1"]

  def test_custom_prefix(self, evaluate):
    result = resolve(["pub.A = 3"], None, evaluate, export_prefix="pub.")
    assert result == {"A": 3}


class TestCapabilityFaults:
  """Test that a broken evaluate capability aborts the run"""

  def test_evaluate_raises(self):
    def evaluate(statement, environment):
      raise RuntimeError("boom")

    with pytest.raises(CapabilityFault) as exc_info:
      resolve(["A = 1"], None, evaluate)
    assert exc_info.value.statement == "A = 1"
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert "boom" in str(exc_info.value)

  @pytest.mark.parametrize("bad_outcome", [None, 42, {"A": 1}, ("A", 1)])
  def test_evaluate_returns_non_outcome(self, bad_outcome):
    def evaluate(statement, environment):
      return bad_outcome

    with pytest.raises(CapabilityFault):
      resolve(["A = 1"], None, evaluate)

  def test_malformed_binding(self):
    def evaluate(statement, environment):
      return Success(((1, "not a name"),))

    with pytest.raises(CapabilityFault, match="malformed binding"):
      resolve(["A = 1"], None, evaluate)

  def test_fault_in_later_pass(self, evaluate):
    def flaky(statement, environment):
      if "A" in environment:
        raise KeyError("late")
      return evaluate(statement, environment)

    with pytest.raises(CapabilityFault):
      resolve(["B = A + 1", "A = 1"], None, flaky)


class TestFixpointEvaluator:
  """Test the single-shot evaluator object"""

  def test_single_shot(self, evaluate):
    evaluator = FixpointEvaluator(["A = 1"], None, evaluate)
    evaluator.run()
    with pytest.raises(EvaluatorStateError):
      evaluator.run()

  def test_state_before_run(self, evaluate):
    evaluator = FixpointEvaluator(["A = 1"], {"Z": 0}, evaluate)
    assert evaluator.pass_count == 0
    assert evaluator.final_state.pending == ("A = 1",)
    assert evaluator.values() == {"Z": 0}

  def test_run_returns_final_state(self, evaluate):
    evaluator = FixpointEvaluator(["A = 1", "B = nope"], None, evaluate)
    state = evaluator.run()
    assert isinstance(state, PassState)
    assert state is evaluator.history[-1]
    assert state.pending == ("B = nope",)

  def test_base_environment_not_mutated(self, evaluate):
    base = {"A": 1}
    resolve(["B = A + 1"], base, evaluate)
    assert base == {"A": 1}

  def test_failing_statement_to_dict(self, evaluate):
    failure = resolve(["C = nope"], None, evaluate, True)[0]
    assert isinstance(failure, FailingStatement)
    assert failure.to_dict() == {'statement': "C = nope", 'error': failure.error}


class TestRunPass:
  """Test a single pass in isolation"""

  def test_run_pass(self, evaluate):
    state = PassState(pending=("B = A + 1", "A = 1"), bindings={})
    next_state = run_pass(state, {}, evaluate)
    assert next_state.pass_number == 1
    assert next_state.previous_count == 0
    assert next_state.bindings == {"A": 1}
    assert next_state.pending == ("B = A + 1",)
    assert next_state.made_progress

  def test_initial_state_always_progresses(self):
    assert PassState(pending=(), bindings={}).made_progress
