"""
Reload triggers for the process that consumes the written keys.
"""

import asyncio
import os
import signal
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional, Union

import httpx

from shared.errors import ReloadError
from shared.logging import get_logger
from .signals import parse_signal, signal_name

if TYPE_CHECKING:
    from ..config import JwksToPemConfig

logger = get_logger("jwks_to_pem.reload")

DEFAULT_SIGNAL = getattr(signal, "SIGHUP", signal.SIGTERM)


class Reloader(ABC):
    """Something that can be told to re-read the key files."""

    @abstractmethod
    async def reload(self) -> None:
        ...

    @abstractmethod
    def info(self) -> str:
        ...


class ProcessReloader(Reloader):
    """Reload by sending a signal to a process."""

    def __init__(self, pid: int, sig: signal.Signals = DEFAULT_SIGNAL):
        if pid <= 0:
            raise ReloadError(f"invalid pid: {pid}")
        self.pid = pid
        self.signal = sig

    @classmethod
    def from_pidfile(cls, pidfile: Union[str, os.PathLike], sig: signal.Signals = DEFAULT_SIGNAL) -> "ProcessReloader":
        """Read the target pid from ``pidfile``."""
        try:
            with open(pidfile, "r") as f:
                content = f.read()
        except OSError as e:
            raise ReloadError(f"could not open pid file: {e}", details={"pidfile": str(pidfile)}) from e

        try:
            pid = int(content.strip())
        except ValueError as e:
            raise ReloadError(f"invalid pid from pidfile: {e}", details={"pidfile": str(pidfile)}) from e

        return cls(pid, sig)

    def info(self) -> str:
        try:
            os.kill(self.pid, 0)
        except OSError:
            return "process not found"
        return f"PID = {self.pid}"

    async def reload(self) -> None:
        try:
            os.kill(self.pid, self.signal)
        except ProcessLookupError as e:
            raise ReloadError(f"could not find process: {self.pid}", details={"pid": self.pid}) from e
        except OSError as e:
            raise ReloadError(f"reload error: {e}", details={"pid": self.pid}) from e

        logger.debug("signal sent", pid=self.pid, signal=signal_name(self.signal))


class HTTPReloader(Reloader):
    """Reload by calling an HTTP endpoint."""

    def __init__(self,
                 url: str,
                 method: str = "POST",
                 payload: Optional[bytes] = None,
                 timeout: float = 5.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.method = method.upper()
        self.payload = payload
        self.timeout = timeout
        self.transport = transport

    def info(self) -> str:
        return self.url

    async def reload(self) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(self.method, self.url, content=self.payload or None)
        except httpx.HTTPError as e:
            raise ReloadError(f"error during request: {e}", details={"url": self.url}) from e

        if not response.is_success:
            raise ReloadError(
                f"bad response code: {response.status_code}",
                details={"url": self.url, "status_code": response.status_code}
            )


class UnixSocketReloader(Reloader):
    """Reload by writing a payload to a Unix domain socket."""

    def __init__(self, path: str, payload: Optional[bytes] = None, timeout: float = 5.0):
        self.path = path
        self.payload = payload or b""
        self.timeout = timeout

    def info(self) -> str:
        return self.path

    async def reload(self) -> None:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_unix_connection(self.path), timeout=self.timeout
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise ReloadError(f"could not connect: {e}", details={"socket": self.path}) from e

        try:
            writer.write(self.payload)
            await asyncio.wait_for(writer.drain(), timeout=self.timeout)
        except (OSError, asyncio.TimeoutError) as e:
            raise ReloadError(f"error writing: {e}", details={"socket": self.path}) from e
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                logger.debug("error closing socket", socket=self.path, error=str(e))


def reloader_from_config(config: "JwksToPemConfig") -> Optional[Reloader]:
    """Build the reloader for the configured target, or None when there is none."""
    payload = config.reload_payload.encode() if config.reload_payload else None

    if config.reload_pidfile:
        return ProcessReloader.from_pidfile(config.reload_pidfile, parse_signal(config.reload_signal))
    if config.reload_pid:
        return ProcessReloader(config.reload_pid, parse_signal(config.reload_signal))
    if config.reload_url:
        return HTTPReloader(config.reload_url, config.reload_method, payload, config.timeout)
    if config.reload_socket:
        return UnixSocketReloader(config.reload_socket, payload, config.timeout)

    return None
