"""
Test configuration for codeload tests
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from error_handling import StatementParseError, UnresolvedNameError
from outcomes import Success, Failure


def arithmetic_evaluate(statement, environment):
  """Minimal capability: 'Name = term + term', terms are integers or names"""
  name, equals, expr = statement.partition("=")
  name = name.strip()
  if not equals or not name or not expr.strip():
    return Failure(statement, StatementParseError("Expected 'Name = expression'", statement))

  total = 0
  for term in expr.split("+"):
    term = term.strip()
    if term.lstrip("-").isdigit():
      total += int(term)
    elif term in environment:
      total += environment[term]
    else:
      return Failure(statement, UnresolvedNameError(term, statement))
  return Success(((name, total),))


@pytest.fixture
def evaluate():
  """Arithmetic-only evaluate capability"""
  return arithmetic_evaluate
