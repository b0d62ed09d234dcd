"""
Evaluation outcomes and per-pass state for the fixpoint evaluator
"""

from typing import Any, Dict, Tuple, Union
from dataclasses import dataclass, field

from error_handling import EvalError


@dataclass(frozen=True)
class Success:
    """A statement evaluated; it binds zero or more names"""
    bindings: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def of(cls, **bindings) -> 'Success':
        return cls(tuple(bindings.items()))

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.bindings)

    def __str__(self) -> str:
        return f"Success({', '.join(self.names)})"


@dataclass(frozen=True)
class Failure:
    """A statement failed this pass; it is retried in the next one"""
    statement: str
    error: EvalError

    def __str__(self) -> str:
        return f"Failure({self.statement!r}: {self.error.message})"


EvalOutcome = Union[Success, Failure]


@dataclass(frozen=True)
class FailingStatement:
    """A statement still pending when the run stopped, with its last error"""
    statement: str
    error: EvalError

    def to_dict(self) -> Dict[str, Any]:
        return {'statement': self.statement, 'error': self.error}


@dataclass(frozen=True)
class PassState:
    """State after a pass; pass_number 0 is the initial state"""
    pending: Tuple[str, ...]
    bindings: Dict[str, Any]
    previous_count: int = -1
    pass_number: int = 0
    errors: Tuple[FailingStatement, ...] = ()
    shadowed: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def resolved_count(self) -> int:
        return len(self.bindings)

    @property
    def made_progress(self) -> bool:
        return self.resolved_count > self.previous_count
