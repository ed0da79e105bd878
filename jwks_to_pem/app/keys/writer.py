"""
Writing a key set to PEM files named by a Jinja2 pattern.
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Set, TextIO

from jinja2 import Environment, StrictUndefined, Template, TemplateError

from shared.errors import (
    JwksToPemError,
    KeyProcessingError,
    KeyWriteError,
    PatternError,
)
from shared.logging import get_logger
from .jwk import JWK

logger = get_logger("jwks_to_pem.writer")

_environment = Environment(undefined=StrictUndefined, autoescape=False, keep_trailing_newline=False)


@dataclass
class WriteResult:
    """Outcome of writing a key set."""
    changed: bool = False
    written: List[Path] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)

    def raise_for_errors(self) -> None:
        if self.errors:
            raise KeyProcessingError(self.errors)


def compile_pattern(pattern: str) -> Template:
    """Parse an output file name pattern."""
    try:
        return _environment.from_string(pattern)
    except TemplateError as e:
        raise PatternError(f"pattern could not be parsed: {e}", details={"pattern": pattern}) from e


def render_name(template: Template, jwk: JWK, index: int) -> str:
    """Render the file name for ``jwk``, the ``index``-th key of its set."""
    return template.render(
        key_id=jwk.key_id,
        index=index,
        algorithm=jwk.algorithm,
        key_type=jwk.key_type,
    ).strip()


def resolve_output(output: Path, name: str) -> Path:
    """Join ``name`` onto ``output``, refusing names that leave the directory."""
    if not name:
        raise ValueError("empty file name")
    if os.path.isabs(name):
        raise ValueError(f"absolute file name not allowed: {name}")

    target = (output / name).resolve()
    root = output.resolve()
    if target == root or root not in target.parents:
        raise ValueError(f"file name escapes output directory: {name}")
    return target


def write_keys(keys: Iterable[JWK],
               pattern: str,
               output: str,
               *,
               file_mode: int = 0o644,
               stream: Optional[TextIO] = None) -> WriteResult:
    """Write each key as PEM to ``output`` using ``pattern`` for the file names.

    With an empty ``output`` the keys are printed to ``stream`` (stdout) and no
    change tracking happens. Per-key failures are collected on the result and
    do not stop the remaining keys from being processed.
    """
    template = compile_pattern(pattern)
    result = WriteResult()
    seen: Set[Path] = set()
    output_dir = Path(output) if output else None

    for index, jwk in enumerate(keys):
        key_id = jwk.key_id

        try:
            data = jwk.pem()
        except JwksToPemError as e:
            logger.warning("skipping key", kid=key_id, error=str(e))
            result.errors.append(e)
            continue

        if output_dir is None:
            out = stream if stream is not None else sys.stdout
            out.write(data.decode("ascii"))
            out.flush()
            continue

        try:
            name = render_name(template, jwk, index)
        except (TemplateError, ArithmeticError, TypeError, ValueError) as e:
            result.errors.append(KeyWriteError("template execution failed", key_id, e))
            continue

        try:
            target = resolve_output(output_dir, name)
        except ValueError as e:
            result.errors.append(KeyWriteError("invalid output file name", key_id, e))
            continue

        if target in seen:
            result.errors.append(KeyWriteError(
                "duplicate output file name", key_id, ValueError(str(target))
            ))
            continue
        seen.add(target)

        try:
            changed = jwk.changed(target)
        except OSError as e:
            logger.debug("error comparing keys", kid=key_id, path=str(target), error=str(e))
            result.errors.append(KeyWriteError("error comparing keys", key_id, e))
            continue

        if not changed:
            logger.debug("key unchanged", kid=key_id, path=str(target))
            continue

        try:
            jwk.write(target, file_mode)
        except OSError as e:
            result.errors.append(KeyWriteError("writing key failed", key_id, e))
            continue

        logger.info("key written", kid=key_id, path=str(target))
        result.written.append(target)
        result.changed = True

    return result
