"""
Evaluation environments - Pure Functional Style
Immutable dictionaries: every operation returns a new environment
"""

from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple


EXPORT_PREFIX = "shared "


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_environment(bindings: Optional[Mapping] = None, builtins: Optional[Mapping] = None) -> Dict:
  """Create an immutable environment: a builtin layer plus accumulated bindings"""
  return {
      'builtins': dict(builtins or {}),
      'bindings': dict(bindings or {})
  }


# ============================================================================
# ENVIRONMENT OPERATIONS (Pure Functions)
# ============================================================================

def env_snapshot(env: Dict) -> Mapping[str, Any]:
  """Read-only flat view handed to evaluate; bindings shadow builtins"""
  return MappingProxyType({**env['builtins'], **env['bindings']})


def merge(a: Mapping[str, Any], b: Iterable[Tuple[str, Any]]) -> Tuple[Dict, List[str]]:
  """
  Union of the bindings a and the ordered (name, value) pairs b

  Names from b are appended after a's. A name that is already bound, in a or
  earlier in b, keeps its first value; the later pair is dropped and its name
  reported.

  Returns:
    (merged bindings, names dropped because they were already bound)
  """
  merged = dict(a)
  shadowed = []
  for name, value in b:
    if name in merged:
      shadowed.append(name)
    else:
      merged[name] = value
  return merged, shadowed


def apply_export_rename(bindings: Iterable[Tuple[str, Any]], prefix: str = EXPORT_PREFIX,
                        keep_internal: bool = False) -> List[Tuple[str, Any]]:
  """
  Surface exported bindings under their unprefixed name

  Examples:
    apply_export_rename([("shared Foo", 1)]) -> [("Foo", 1)]
    apply_export_rename([("shared Foo", 1)], keep_internal=True) -> [("shared Foo", 1), ("Foo", 1)]
    apply_export_rename([("Bar", 2)]) -> [("Bar", 2)]
  """
  renamed = []
  for name, value in bindings:
    if prefix and name.startswith(prefix) and len(name) > len(prefix):
      if keep_internal:
        renamed.append((name, value))
      renamed.append((name[len(prefix):], value))
    else:
      renamed.append((name, value))
  return renamed


def sorted_bindings(bindings: Mapping[str, Any]) -> Dict[str, Any]:
  """Deterministic result view: bindings ordered by name"""
  return {name: bindings[name] for name in sorted(bindings)}
