"""Linked devices and provisioning of new ones."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable
from typing import Any

from signal_sdk.core.errors import SignalConnectionError
from signal_sdk.managers.base import BaseManager
from signal_sdk.managers.models import LinkingResult
from signal_sdk.transport.process import build_command, resolve_executable
from signal_sdk.validators import sanitize_input, validate_device_id, validate_message

DEFAULT_DEVICE_NAME = "Signal SDK Device"
MAX_DEVICE_NAME_LENGTH = 200

_URI_RE = re.compile(r"sgnl://\S+")
_LINKED_MARKERS = ("Device registered", "Successfully linked")


class DeviceManager(BaseManager):
    async def list_devices(self) -> list[dict[str, Any]]:
        return await self._call("listDevices", self._params()) or []

    async def add_device(self, uri: str, device_name: str | None = None) -> None:
        await self._call("addDevice", self._params(uri=uri, deviceName=device_name))

    async def remove_device(self, device_id: int) -> None:
        validate_device_id(device_id)
        await self._call("removeDevice", self._params(deviceId=device_id))

    async def update_device(self, device_id: int, device_name: str) -> None:
        validate_device_id(device_id)
        validate_message(device_name, MAX_DEVICE_NAME_LENGTH)
        await self._call("updateDevice", self._params(deviceId=device_id, deviceName=device_name))

    async def link(self, device_name: str | None = None) -> str:
        """Ask the daemon for a provisioning URI."""
        result = await self._call("link", {"deviceName": device_name} if device_name else {})
        if isinstance(result, dict):
            return result.get("uri") or ""
        return str(result)

    async def device_link(
        self,
        name: str = DEFAULT_DEVICE_NAME,
        *,
        on_uri: Callable[[str], None] | None = None,
        timeout: float | None = None,
    ) -> LinkingResult:
        """Link this machine as a new device with ``signal-cli link``.

        Runs outside the daemon connection. ``on_uri`` receives the
        ``sgnl://`` provisioning URI as soon as signal-cli prints it, so the
        caller can render it as a QR code; the call then waits until the
        phone confirms or the process exits.

        Raises:
            SignalConnectionError: If signal-cli cannot be started.
        """
        device_name = sanitize_input(name) or DEFAULT_DEVICE_NAME
        validate_message(device_name, MAX_DEVICE_NAME_LENGTH)
        program, argv = build_command(
            resolve_executable(self._ctx.config.signal_cli_path),
            ["link", "--name", device_name],
        )

        self._logger.info("device_link.starting", device_name=device_name)
        try:
            process = await asyncio.create_subprocess_exec(
                program,
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise SignalConnectionError(f"Failed to start device linking: {e}") from e

        uri: str | None = None
        linked = False
        stderr_errors: list[str] = []

        async def read_stdout() -> None:
            nonlocal uri, linked
            assert process.stdout is not None
            async for raw in process.stdout:
                line = raw.decode("utf-8", errors="replace").strip()
                match = _URI_RE.search(line)
                if match and uri is None:
                    uri = match.group(0)
                    self._logger.info("device_link.uri_ready")
                    if on_uri is not None:
                        on_uri(uri)
                if any(marker in line for marker in _LINKED_MARKERS):
                    linked = True

        async def read_stderr() -> None:
            assert process.stderr is not None
            async for raw in process.stderr:
                line = raw.decode("utf-8", errors="replace").strip()
                if line and "INFO" not in line and "DEBUG" not in line:
                    stderr_errors.append(line)

        try:
            await asyncio.wait_for(
                asyncio.gather(read_stdout(), read_stderr(), process.wait()),
                timeout=timeout,
            )
        except TimeoutError:
            process.kill()
            await process.wait()
            self._logger.warning("device_link.timeout", timeout_seconds=timeout)
            return LinkingResult(
                success=False,
                device_name=device_name,
                uri=uri,
                error=f"Device linking timed out after {timeout:g}s",
            )

        code = process.returncode
        self._logger.info("device_link.finished", code=code, linked=linked)
        if code == 0:
            # signal-cli exits 0 after a successful link even when the marker line is missing
            return LinkingResult(
                success=True,
                is_linked=linked or uri is not None,
                device_name=device_name,
                uri=uri,
            )
        error = "Device linking failed" if stderr_errors else f"signal-cli exited with code {code}"
        return LinkingResult(success=False, device_name=device_name, uri=uri, error=error)


__all__ = ["DEFAULT_DEVICE_NAME", "DeviceManager"]
