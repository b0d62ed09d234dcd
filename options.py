"""
Load options
Caller overrides merged over defaults, with type checks
"""

from typing import Any, Dict, Mapping, Optional

from error_handling import LoadOptionsError


MODES = ("Section", "Expression")

DEFAULT_OPTIONS: Dict[str, Any] = {
    'errors': False,      # return failing statements instead of values
    'shared': True,       # keep only the exported name of 'shared' bindings
    'workers': 0,         # pykka workers per pass; 0 or 1 evaluates in the calling thread
    'max_passes': None,   # safety bound on passes, None for the natural N+1 bound
    'encoding': "utf-8",
    'timeout': 10.0,      # seconds, for http(s) sources
}

OPTION_TYPES: Dict[str, tuple] = {
    'errors': (bool,),
    'shared': (bool,),
    'workers': (int,),
    'max_passes': (int, type(None)),
    'encoding': (str,),
    'timeout': (int, float),
}


def make_load_options(overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
  """
  Merge overrides over DEFAULT_OPTIONS

  Raises:
    LoadOptionsError for unknown keys or wrongly typed values
  """
  options = dict(DEFAULT_OPTIONS)
  for key, value in (overrides or {}).items():
    if key not in DEFAULT_OPTIONS:
      raise LoadOptionsError(
          f"Unknown load option '{key}'; expected one of {', '.join(DEFAULT_OPTIONS)}")
    expected = OPTION_TYPES[key]
    # bool is an int subclass; only accept it where bool is expected
    if not isinstance(value, expected) or (isinstance(value, bool) and bool not in expected):
      names = " or ".join(t.__name__ for t in expected)
      raise LoadOptionsError(f"Load option '{key}' must be {names}, got {type(value).__name__}")
    options[key] = value

  if options['workers'] < 0:
    raise LoadOptionsError(f"Load option 'workers' must not be negative, got {options['workers']}")
  if options['max_passes'] is not None and options['max_passes'] < 1:
    raise LoadOptionsError(f"Load option 'max_passes' must be at least 1, got {options['max_passes']}")
  if options['timeout'] <= 0:
    raise LoadOptionsError(f"Load option 'timeout' must be positive, got {options['timeout']}")
  return options


def validate_mode(mode: str) -> str:
  """Accept 'Section' or 'Expression' (any case)"""
  for known in MODES:
    if isinstance(mode, str) and mode.lower() == known.lower():
      return known
  raise LoadOptionsError(f"Unknown load mode {mode!r}; expected one of {', '.join(MODES)}")
