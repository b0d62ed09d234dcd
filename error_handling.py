"""
Error handling for codeload
Per-statement evaluation errors are data (carried in Failure outcomes);
only capability faults and loader errors abort a run
"""

from typing import List, Optional, Dict
from pyparsing import ParseException
import re


EXPECTED_PATTERN = re.compile(r"Expected\s+(.+?)(?:,\s*found\b.*)?$", re.DOTALL)


# ============================================================================
# ERROR RECORDS
# ============================================================================

def make_eval_error(
    kind: str,
    message: str,
    statement: str = "",
    line: int = 0,
    column: int = 0,
    expected: Optional[List[str]] = None,
    got: Optional[str] = None,
    context: Optional[str] = None,
    suggestions: Optional[List[str]] = None
) -> Dict:
    """Plain-dict view of an evaluation error"""
    return {
        'kind': kind,
        'message': message,
        'statement': statement,
        'line': line,
        'column': column,
        'expected': list(expected or ()),
        'got': got,
        'context': context,
        'suggestions': list(suggestions or ()),
    }


def format_eval_error(error: Dict) -> str:
    """Render an error record as indented text"""
    where = f" at line {error['line']}, column {error['column']}" if error['line'] else ""
    parts = [f"{error['kind']}{where}:", f"  {error['message']}"]
    if error['expected']:
        parts.append("  Expected: " + ", ".join(error['expected']))
    if error['got']:
        parts.append(f"  Got: {error['got']}")
    if error['context']:
        parts.append(error['context'])
    parts.extend(f"  Hint: {hint}" for hint in error['suggestions'])
    return "\n".join(parts)


# ============================================================================
# PARSE DIAGNOSTICS
# ============================================================================

def get_context_lines(source_text: str, line_num: int, col_num: int, radius: int = 1) -> str:
    """Numbered source lines around line_num, with a caret under col_num"""
    lines = source_text.splitlines() or [""]
    first = max(1, line_num - radius)
    last = min(len(lines), line_num + radius)

    rendered = []
    for number in range(first, last + 1):
        rendered.append(f"  {number:>3} | {lines[number - 1]}")
        if number == line_num:
            rendered.append(f"      | {' ' * max(col_num - 1, 0)}^")
    return "\n".join(rendered)


def extract_expected(exc: ParseException) -> List[str]:
    """What the grammar was looking for, taken from the pyparsing message"""
    match = EXPECTED_PATTERN.search(exc.msg or "")
    return [match.group(1).strip()] if match else ["a valid statement"]


def extract_got(source_text: str, line_num: int, col_num: int) -> str:
    """The token found where parsing stopped"""
    lines = source_text.splitlines()
    if not 0 < line_num <= len(lines):
        return "end of statement"
    rest = lines[line_num - 1][max(col_num - 1, 0):].strip()
    if not rest:
        return "end of statement"
    return f"'{rest.split()[0][:12]}'"


def generate_suggestions(got: str, expected: List[str]) -> List[str]:
    """Hints for the usual mistakes"""
    suggestions = []

    if ";" in got:
        suggestions.append("Statements are split on ';' followed by a line break - check the splitter output")

    if got == "'=='":
        suggestions.append("Equality is written with a single '='")

    if got == "end of statement":
        suggestions.append("The statement ends early - check for an unclosed bracket or missing value")

    if any("=" in item for item in expected) and got != "'='":
        suggestions.append("Each statement binds a name: write 'Name = expression'")

    return suggestions


def enhance_parse_exception_dict(exc: ParseException, source_text: str, statement: str = "") -> Dict:
    """Error record for a pyparsing exception raised on source_text"""
    got = extract_got(source_text, exc.lineno, exc.column)
    expected = extract_expected(exc)
    return make_eval_error(
        kind="Parse error",
        message=str(exc),
        statement=statement or source_text,
        line=exc.lineno,
        column=exc.column,
        expected=expected,
        got=got,
        context=get_context_lines(source_text, exc.lineno, exc.column),
        suggestions=generate_suggestions(got, expected)
    )


# ============================================================================
# EXCEPTION CLASSES
# ============================================================================

class CodeLoadError(Exception):
    """Base class for every codeload error"""
    pass


class EvalError(CodeLoadError):
    """A statement failed to evaluate in one pass (recoverable, retried next pass)"""
    kind = "Evaluation error"

    def __init__(self, message: str, statement: str = "", line: int = 0, column: int = 0,
                 expected: Optional[List[str]] = None, got: Optional[str] = None,
                 context: Optional[str] = None, suggestions: Optional[List[str]] = None):
        self.message = message
        self.statement = statement
        self.line = line
        self.column = column
        self.expected = expected or []
        self.got = got
        self.context = context
        self.suggestions = suggestions or []
        super().__init__(message)

    def to_dict(self) -> Dict:
        return make_eval_error(
            self.kind, self.message, self.statement, self.line, self.column,
            self.expected, self.got, self.context, self.suggestions
        )

    def __str__(self) -> str:
        return format_eval_error(self.to_dict())


class StatementParseError(EvalError):
    """Statement text the evaluator cannot even attempt"""
    kind = "Parse error"

    @classmethod
    def from_parse_exception(cls, exc: ParseException, source_text: str,
                             statement: str = "") -> 'StatementParseError':
        record = enhance_parse_exception_dict(exc, source_text, statement)
        record.pop('kind')
        return cls(**record)


class UnresolvedNameError(EvalError):
    """Statement references a name that is not (yet) in the environment"""
    kind = "Unresolved name"

    def __init__(self, name: str, statement: str = ""):
        self.name = name
        super().__init__(f"The name '{name}' wasn't recognized", statement)


class StatementEvalError(EvalError):
    """Statement parsed and its names resolved, but evaluating it failed"""
    kind = "Evaluation error"


class CapabilityFault(CodeLoadError):
    """The injected evaluate capability broke its contract; aborts the run"""

    def __init__(self, message: str, statement: str = ""):
        self.message = message
        self.statement = statement
        super().__init__(f"{message} (statement: {statement!r})" if statement else message)


class EvaluatorStateError(CodeLoadError):
    """A single-shot evaluator was reused"""
    pass


class LoadError(CodeLoadError):
    """Loading a source failed"""
    pass


class SourceAcquisitionError(LoadError):
    """The raw source bytes could not be fetched"""
    pass


class LoadOptionsError(LoadError):
    """Invalid load mode or options"""
    pass
