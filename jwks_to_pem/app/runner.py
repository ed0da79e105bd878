"""
A single fetch, write and reload pass.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, TextIO

import httpx

from shared.logging import get_logger
from .config import JwksToPemConfig
from .jwks.client import fetch_jwks
from .keys.writer import compile_pattern, write_keys
from .reload.reloaders import reloader_from_config

logger = get_logger("jwks_to_pem.runner")


@dataclass
class RunResult:
    """Outcome of one pass."""
    changed: bool = False
    written: List[Path] = field(default_factory=list)
    reloaded: bool = False


async def run_once(config: JwksToPemConfig,
                   *,
                   transport: Optional[httpx.AsyncBaseTransport] = None,
                   stream: Optional[TextIO] = None) -> RunResult:
    """Fetch the JWKS, write changed keys and trigger a reload if anything changed.

    Keys that failed to convert or write are raised as a KeyProcessingError
    after the reload, so the keys that were written still reach the consumer.
    """
    compile_pattern(config.pattern)

    jwks = await fetch_jwks(
        config.url,
        config.timeout,
        attempts=config.fetch_attempts,
        transport=transport
    )

    written = write_keys(
        jwks,
        config.pattern,
        config.out,
        file_mode=config.file_mode,
        stream=stream
    )
    result = RunResult(changed=written.changed, written=written.written)

    if written.changed:
        if written.errors:
            logger.warning("reloading with failed keys", error_count=len(written.errors))
        result.reloaded = await _reload(config)
    else:
        logger.info("no changes to keys")

    written.raise_for_errors()
    return result


async def _reload(config: JwksToPemConfig) -> bool:
    reloader = reloader_from_config(config)
    if reloader is None:
        return False

    await reloader.reload()

    logger.info(
        "reload of process completed",
        target=reloader.info(),
        kind=reloader.__class__.__name__
    )
    return True
