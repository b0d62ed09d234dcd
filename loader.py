"""
Loader: acquire a source, decode it, and evaluate it
Section documents go through the fixpoint evaluator; expressions are
evaluated directly
"""

import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union
from urllib.parse import unquote, urlparse

import httpx

from error_handling import EvalError, LoadError, SourceAcquisitionError
from fixpoint import resolve
from interpreter import create_builtin_environment, create_evaluator, evaluate_expression
from options import make_load_options, validate_mode
from outcomes import FailingStatement
from splitting import split_statements


# ============================================================================
# ACQUISITION
# ============================================================================

def _is_url(source: str) -> bool:
  return urlparse(source).scheme in ("http", "https")


def _local_path(source: str) -> Path:
  """Path for a plain path or a file:// URL"""
  if source.startswith("file://"):
    parsed = urlparse(source)
    return Path(unquote(parsed.netloc + parsed.path))
  return Path(source).expanduser()


def fetch_url(url: str, timeout: float = 10.0, client: Optional[httpx.Client] = None) -> bytes:
  """GET an http(s) source; redirects followed, non-2xx raises"""
  owns_client = client is None
  if owns_client:
    client = httpx.Client(timeout=timeout, follow_redirects=True)
  try:
    response = client.get(url)
    response.raise_for_status()
    return response.content
  except httpx.HTTPStatusError as e:
    raise SourceAcquisitionError(f"Fetching {url} failed with status {e.response.status_code}") from e
  except httpx.HTTPError as e:
    raise SourceAcquisitionError(f"Fetching {url} failed: {e}") from e
  finally:
    if owns_client:
      client.close()


def acquire_source(source: str, timeout: float = 10.0, client: Optional[httpx.Client] = None) -> bytes:
  """Raw bytes of a local file, file:// URL or http(s) URL"""
  if _is_url(source):
    return fetch_url(source, timeout, client)

  path = _local_path(source)
  try:
    return path.read_bytes()
  except FileNotFoundError as e:
    raise SourceAcquisitionError(f"File not found: {path}") from e
  except OSError as e:
    raise SourceAcquisitionError(f"Cannot read {path}: {e}") from e


# ============================================================================
# DECODING
# ============================================================================

# Only CR, LF and CRLF end a line; form feeds and Unicode separators stay in the text
LINE_BREAK = re.compile(r"\r\n|\r|\n")


def decode_source(raw: bytes, encoding: str = "utf-8") -> str:
  """Decode bytes, normalise line endings and trim every line"""
  if encoding.lower().replace("_", "-") in ("utf-8", "utf8"):
    encoding = "utf-8-sig"
  try:
    text = raw.decode(encoding)
  except (UnicodeDecodeError, LookupError) as e:
    raise LoadError(f"Cannot decode source as {encoding}: {e}") from e
  lines = LINE_BREAK.split(text)
  if lines[-1] == "":
    lines.pop()
  return "\n".join(line.strip() for line in lines)


# ============================================================================
# LOADING
# ============================================================================

def load_text(text: str, mode: str = "Section", options: Optional[Mapping[str, Any]] = None, *,
              evaluate: Optional[Callable] = None, builtins: Optional[Mapping[str, Any]] = None,
              debug: bool = False) -> Union[Dict[str, Any], List[FailingStatement], Any]:
  """Evaluate already decoded text in Section or Expression mode"""
  mode = validate_mode(mode)
  opts = make_load_options(options)
  if builtins is None:
    builtins = create_builtin_environment()

  if mode == "Expression":
    try:
      return evaluate_expression(text, builtins, debug)
    except EvalError as e:
      raise LoadError(f"Expression failed to evaluate:\n{e}") from e

  statements = split_statements(text)
  if debug:
    print(f"Split {len(statements)} statements")

  return resolve(
      statements,
      None,
      evaluate or create_evaluator(debug),
      opts['errors'],
      opts['shared'],
      builtins=builtins,
      workers=opts['workers'],
      max_passes=opts['max_passes'],
      debug=debug
  )


def load(source: str, mode: str = "Section", options: Optional[Mapping[str, Any]] = None, *,
         evaluate: Optional[Callable] = None, builtins: Optional[Mapping[str, Any]] = None,
         client: Optional[httpx.Client] = None,
         debug: bool = False) -> Union[Dict[str, Any], List[FailingStatement], Any]:
  """
  Load code from a path or URL

  Args:
    source: Local path, file:// URL or http(s) URL
    mode: "Section" (statements separated by ';' and a line break) or "Expression"
    options: errors, shared, workers, max_passes, encoding, timeout
    evaluate: Capability replacing the default statement evaluator
    builtins: Builtin layer replacing the standard library
    client: httpx client used for http(s) sources

  Returns:
    Section: name-sorted bindings, or failing statements when options['errors']
    Expression: the expression's value
  """
  mode = validate_mode(mode)
  opts = make_load_options(options)
  raw = acquire_source(source, opts['timeout'], client)
  text = decode_source(raw, opts['encoding'])
  if debug:
    print(f"Loaded {len(raw)} bytes from {source}")
  return load_text(text, mode, opts, evaluate=evaluate, builtins=builtins, debug=debug)
