"""Supervised handle for one brain CLI process across reboots.

The handle owns the durable series and the data/exit listener registries;
processes come and go underneath it. Only one process is live at a time, in
either dispatch (pipes, stream-json protocol) or interact (raw pty) mode.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import signal
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from brain_cli.args import build_dispatch_args, build_interact_args
from brain_cli.config import BrainCliConfig, BrainCliSettings
from brain_cli.decoder import decode_brain_output
from brain_cli.errors import ExecutionStateError, TransportUnavailableError
from brain_cli.models import (
    BrainCliMode,
    BrainOutput,
    ExecutorInstance,
    ExitInfo,
    Series,
    TaskCategory,
)
from brain_cli.transport import PipeTransport, PtyTransport

logger = logging.getLogger(__name__)

DataCallback = Callable[[str], None]
ExitCallback = Callable[[ExitInfo], None]


@dataclass(slots=True, eq=False)
class LiveProcess:
    """One spawned process and the state fixed at its spawn."""

    mode: BrainCliMode
    transport: PipeTransport | PtyTransport
    category: TaskCategory | None
    terminating: bool = False
    watcher: asyncio.Task[None] | None = field(default=None, repr=False)


class BrainCliHandle:
    """Stable reference that survives process churn."""

    def __init__(
        self,
        config: BrainCliConfig,
        *,
        cwd: Path,
        settings: BrainCliSettings | None = None,
        series: Series | None = None,
    ) -> None:
        self.config = config
        self.cwd = Path(cwd)
        self.settings = settings or BrainCliSettings()
        self._series = series
        self._live: LiveProcess | None = None
        self._last_category: TaskCategory | None = None
        self._data_listeners: list[DataCallback] = []
        self._exit_listeners: list[ExitCallback] = []
        self.memory = BrainMemory(self)
        self.executor = BrainExecutor(self)
        self.terminal = BrainTerminal(self)

    async def ask(self, prompt: str) -> BrainOutput:
        """Dispatch a read-only task."""

        return await self._dispatch(prompt, category=TaskCategory.ASK)

    async def act(self, prompt: str) -> BrainOutput:
        """Dispatch a task with the escalated tool set."""

        return await self._dispatch(prompt, category=TaskCategory.ACT)

    @property
    def instance(self) -> ExecutorInstance | None:
        live = self._live
        if live is None or live.terminating:
            return None
        return ExecutorInstance(pid=live.transport.pid, mode=live.mode)

    async def _dispatch(self, prompt: str, *, category: TaskCategory) -> BrainOutput:
        verb = category.value
        live = self._require_dispatch(verb)

        # tool allow-list is fixed per process; switching category needs a respawn
        if live.category is not category:
            logger.info("Rebooting dispatch process for category=%s", verb)
            self._last_category = category
            await self.boot(BrainCliMode.DISPATCH)
            live = self._require_dispatch(verb)

        transport = live.transport
        message: dict[str, object] = {
            "type": "user",
            "message": {"role": "user", "content": prompt},
        }
        if self._series is not None and self._series.exid is not None:
            message["session_id"] = self._series.exid

        async def send() -> None:
            transport.write(json.dumps(message) + "\n")
            await transport.drain()

        output = await decode_brain_output(
            prompt=prompt,
            channel=transport.output,
            spec=self.config.spec,
            series_prior=self._series,
            send=send,
        )
        self._series = output.series
        logger.info(
            "Brain %s finalized: pid=%s session_id=%s episodes=%d",
            verb,
            transport.pid,
            output.series.exid,
            len(output.series.episodes),
        )
        return output

    def _require_dispatch(self, verb: str) -> LiveProcess:
        live = self._live
        if live is None or live.terminating:
            raise ExecutionStateError(f"cannot {verb}: no live process. call executor.boot first")
        if live.mode is not BrainCliMode.DISPATCH:
            raise ExecutionStateError(
                f"cannot {verb}: handle is in interact mode. boot dispatch first",
            )
        return live

    async def boot(self, mode: BrainCliMode | str) -> None:
        """Terminate any live process, wait for its exit, then spawn in ``mode``."""

        mode = BrainCliMode(mode)
        await self._retire_current()

        prior_session_id = self._series.exid if self._series is not None else None
        env = os.environ.copy()
        try:
            if mode is BrainCliMode.DISPATCH:
                category = self._last_category or TaskCategory.ASK
                self._last_category = category
                transport: PipeTransport | PtyTransport = await PipeTransport.spawn(
                    binary=self.config.binary,
                    args=build_dispatch_args(
                        config=self.config,
                        category=category,
                        prior_session_id=prior_session_id,
                    ),
                    cwd=self.cwd,
                    env=env,
                    on_text=self._emit_data,
                )
                live = LiveProcess(mode=mode, transport=transport, category=category)
            else:
                transport = await PtyTransport.spawn(
                    binary=self.config.binary,
                    args=build_interact_args(config=self.config, prior_session_id=prior_session_id),
                    cwd=self.cwd,
                    env=env,
                    cols=self.settings.term_cols,
                    rows=self.settings.term_rows,
                    on_text=self._emit_data,
                )
                live = LiveProcess(mode=mode, transport=transport, category=None)
        except FileNotFoundError as error:
            raise TransportUnavailableError(
                f"brain CLI binary not found: {self.config.binary}",
                details={"slug": self.config.slug},
            ) from error
        except OSError as error:
            raise TransportUnavailableError(
                f"brain CLI failed to start: {error}",
                details={"slug": self.config.slug},
            ) from error

        self._live = live
        live.watcher = asyncio.create_task(self._watch_exit(live))
        logger.info(
            "Booted brain CLI: slug=%s mode=%s pid=%s resume=%s",
            self.config.slug,
            mode.value,
            transport.pid,
            prior_session_id,
        )

    def kill(self) -> None:
        """Request termination of the live process; no-op when none is live."""

        live = self._live
        if live is None:
            return
        if not live.terminating:
            logger.info("Killing brain CLI pid=%s mode=%s", live.transport.pid, live.mode.value)
        live.terminating = True
        live.transport.terminate()

    async def shutdown(self) -> None:
        """Terminate the live process and wait until its exit is observed."""

        await self._retire_current()

    async def _retire_current(self) -> None:
        live = self._live
        if live is None:
            return
        self.kill()
        watcher = live.watcher
        if watcher is None:
            return
        try:
            await asyncio.wait_for(
                asyncio.shield(watcher),
                timeout=self.settings.kill_grace_seconds,
            )
        except TimeoutError:
            logger.warning(
                "Brain CLI pid=%s ignored SIGTERM for %.1fs, sending SIGKILL",
                live.transport.pid,
                self.settings.kill_grace_seconds,
            )
            live.transport.kill()
            await watcher

    async def _watch_exit(self, live: LiveProcess) -> None:
        returncode = await live.transport.wait()
        info = _exit_info(returncode)
        if self._live is not live:
            logger.warning(
                "Discarding exit of superseded brain CLI pid=%s code=%s",
                live.transport.pid,
                info.code,
            )
            return
        self._live = None
        logger.info(
            "Brain CLI exited: pid=%s code=%s signal=%s",
            live.transport.pid,
            info.code,
            info.signal,
        )
        for callback in list(self._exit_listeners):
            try:
                callback(info)
            except Exception:
                logger.exception("Brain CLI exit listener failed")

    def _emit_data(self, text: str) -> None:
        for callback in list(self._data_listeners):
            try:
                callback(text)
            except Exception:
                logger.exception("Brain CLI data listener failed")

    def _write(self, data: str | bytes) -> None:
        live = self._live
        if live is None or live.terminating:
            raise ExecutionStateError("cannot write: no live process")
        live.transport.write(data)

    def _resize(self, cols: int, rows: int) -> None:
        live = self._live
        if live is None:
            return
        live.transport.resize(cols, rows)


class BrainMemory:
    """Read-only view of the durable series."""

    def __init__(self, handle: BrainCliHandle) -> None:
        self._handle = handle

    @property
    def series(self) -> Series | None:
        return self._handle._series  # noqa: SLF001


class BrainExecutor:
    """Process lifecycle: ephemeral, per boot."""

    def __init__(self, handle: BrainCliHandle) -> None:
        self._handle = handle

    @property
    def instance(self) -> ExecutorInstance | None:
        return self._handle.instance

    async def boot(self, mode: BrainCliMode | str) -> None:
        await self._handle.boot(mode)

    def kill(self) -> None:
        self._handle.kill()

    async def shutdown(self) -> None:
        await self._handle.shutdown()


class BrainTerminal:
    """Raw i/o surface; listeners persist across process reboots."""

    def __init__(self, handle: BrainCliHandle) -> None:
        self._handle = handle

    def write(self, data: str | bytes) -> None:
        self._handle._write(data)  # noqa: SLF001

    def resize(self, cols: int, rows: int) -> None:
        """Resize the pty; dispatch mode has no terminal and ignores it."""

        self._handle._resize(cols, rows)  # noqa: SLF001

    def on_data(self, callback: DataCallback) -> None:
        self._handle._data_listeners.append(callback)  # noqa: SLF001

    def on_exit(self, callback: ExitCallback) -> None:
        self._handle._exit_listeners.append(callback)  # noqa: SLF001


def _exit_info(returncode: int) -> ExitInfo:
    if returncode >= 0:
        return ExitInfo(code=returncode, signal=None)
    try:
        signal_name = signal.Signals(-returncode).name
    except ValueError:
        signal_name = str(-returncode)
    return ExitInfo(code=1, signal=signal_name)
