"""Pipe and pseudo-terminal transports for one spawned brain CLI process."""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import errno
import fcntl
import logging
import os
import pty
import struct
import termios
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Protocol

from brain_cli.errors import TransportUnavailableError

logger = logging.getLogger(__name__)

_READ_CHUNK = 65_536
_TERM_NAME = "xterm-256color"

TextSink = Callable[[str], None]


class StreamListener(Protocol):
    """Receiver of one process output stream."""

    def on_data(self, chunk: bytes) -> None: ...

    def on_end(self) -> None: ...

    def on_error(self, error: BaseException) -> None: ...


class OutputChannel:
    """Fan-out of one byte stream to its current listeners.

    End and error are sticky: a listener that subscribes after the stream
    closed is settled immediately.
    """

    def __init__(self) -> None:
        self._listeners: list[StreamListener] = []
        self._ended = False
        self._error: BaseException | None = None

    @property
    def closed(self) -> bool:
        return self._ended or self._error is not None

    def subscribe(self, listener: StreamListener) -> None:
        if self._error is not None:
            listener.on_error(self._error)
            return
        if self._ended:
            listener.on_end()
            return
        self._listeners.append(listener)

    def unsubscribe(self, listener: StreamListener) -> None:
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    def emit_data(self, chunk: bytes) -> None:
        for listener in list(self._listeners):
            try:
                listener.on_data(chunk)
            except Exception:
                logger.exception("Output listener failed on data")

    def emit_end(self) -> None:
        if self.closed:
            return
        self._ended = True
        for listener in list(self._listeners):
            try:
                listener.on_end()
            except Exception:
                logger.exception("Output listener failed on end")

    def emit_error(self, error: BaseException) -> None:
        if self.closed:
            return
        self._error = error
        for listener in list(self._listeners):
            try:
                listener.on_error(error)
            except Exception:
                logger.exception("Output listener failed on error")


class PipeTransport:
    """Dispatch transport: stdin, stdout and stderr pipes."""

    def __init__(self, process: asyncio.subprocess.Process, on_text: TextSink) -> None:
        self.process = process
        self.output = OutputChannel()
        self._on_text = on_text
        self._pumps = [
            asyncio.create_task(self._pump(process.stdout, channel=self.output)),
            asyncio.create_task(self._pump(process.stderr, channel=None)),
        ]

    @classmethod
    async def spawn(
        cls,
        *,
        binary: str,
        args: list[str],
        cwd: Path,
        env: Mapping[str, str],
        on_text: TextSink,
    ) -> PipeTransport:
        process = await asyncio.create_subprocess_exec(
            binary,
            *args,
            cwd=cwd,
            env=dict(env),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        return cls(process, on_text)

    @property
    def pid(self) -> int:
        return self.process.pid

    def write(self, data: str | bytes) -> None:
        stdin = self.process.stdin
        if stdin is None or stdin.is_closing():
            raise TransportUnavailableError(
                "dispatch process has no writable stdin",
                details={"pid": self.pid},
            )
        stdin.write(data.encode("utf-8") if isinstance(data, str) else data)

    async def drain(self) -> None:
        stdin = self.process.stdin
        if stdin is None:
            raise TransportUnavailableError(
                "dispatch process has no stdin",
                details={"pid": self.pid},
            )
        try:
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as error:
            raise TransportUnavailableError(
                "dispatch process closed its stdin",
                details={"pid": self.pid},
            ) from error

    def resize(self, cols: int, rows: int) -> None:  # noqa: ARG002
        """No terminal to resize in dispatch mode."""

    def terminate(self) -> None:
        with contextlib.suppress(ProcessLookupError):
            self.process.terminate()

    def kill(self) -> None:
        with contextlib.suppress(ProcessLookupError):
            self.process.kill()

    async def wait(self) -> int:
        return await self.process.wait()

    async def _pump(
        self,
        stream: asyncio.StreamReader | None,
        *,
        channel: OutputChannel | None,
    ) -> None:
        if stream is None:
            return
        text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while chunk := await stream.read(_READ_CHUNK):
                if channel is not None:
                    channel.emit_data(chunk)
                text = text_decoder.decode(chunk)
                if text:
                    self._on_text(text)
        except OSError as error:
            logger.debug("Pipe read failed for pid=%s: %s", self.pid, error)
            if channel is not None:
                channel.emit_error(error)
            return
        if channel is not None:
            channel.emit_end()


class PtyTransport:
    """Interact transport: one pseudo-terminal shared by stdin, stdout and stderr."""

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        master_fd: int,
        on_text: TextSink,
    ) -> None:
        self.process = process
        self.output = OutputChannel()
        self._master_fd: int | None = master_fd
        self._on_text = on_text
        self._text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._loop = asyncio.get_running_loop()
        os.set_blocking(master_fd, False)
        self._loop.add_reader(master_fd, self._on_readable)

    @classmethod
    async def spawn(  # noqa: PLR0913
        cls,
        *,
        binary: str,
        args: list[str],
        cwd: Path,
        env: Mapping[str, str],
        cols: int,
        rows: int,
        on_text: TextSink,
    ) -> PtyTransport:
        master_fd, slave_fd = pty.openpty()
        try:
            _set_window_size(master_fd, cols=cols, rows=rows)
            process = await asyncio.create_subprocess_exec(
                binary,
                *args,
                cwd=cwd,
                env={**env, "TERM": _TERM_NAME},
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                start_new_session=True,
                preexec_fn=_acquire_controlling_terminal,  # noqa: PLW1509
            )
        except BaseException:
            os.close(master_fd)
            raise
        finally:
            os.close(slave_fd)
        return cls(process, master_fd, on_text)

    @property
    def pid(self) -> int:
        return self.process.pid

    def write(self, data: str | bytes) -> None:
        if self._master_fd is None:
            raise TransportUnavailableError("pty is closed", details={"pid": self.pid})
        payload = data.encode("utf-8") if isinstance(data, str) else data
        try:
            os.write(self._master_fd, payload)
        except OSError as error:
            raise TransportUnavailableError(
                "pty write failed",
                details={"pid": self.pid, "error": str(error)},
            ) from error

    async def drain(self) -> None:
        """Writes to the pty are unbuffered."""

    def resize(self, cols: int, rows: int) -> None:
        if self._master_fd is None:
            return
        _set_window_size(self._master_fd, cols=cols, rows=rows)

    def terminate(self) -> None:
        with contextlib.suppress(ProcessLookupError):
            self.process.terminate()

    def kill(self) -> None:
        with contextlib.suppress(ProcessLookupError):
            self.process.kill()

    async def wait(self) -> int:
        returncode = await self.process.wait()
        self._drain_and_close()
        return returncode

    def _on_readable(self) -> None:
        if self._master_fd is None:
            return
        try:
            data = os.read(self._master_fd, _READ_CHUNK)
        except BlockingIOError:
            return
        except OSError as error:
            # EIO once every slave side is closed
            if error.errno == errno.EIO:
                self._close()
                return
            self._close(error)
            return
        if not data:
            self._close()
            return
        self._deliver(data)

    def _deliver(self, data: bytes) -> None:
        self.output.emit_data(data)
        text = self._text_decoder.decode(data)
        if text:
            self._on_text(text)

    def _drain_and_close(self) -> None:
        while self._master_fd is not None:
            try:
                data = os.read(self._master_fd, _READ_CHUNK)
            except OSError:
                break
            if not data:
                break
            self._deliver(data)
        self._close()

    def _close(self, error: BaseException | None = None) -> None:
        master_fd = self._master_fd
        if master_fd is None:
            return
        self._master_fd = None
        self._loop.remove_reader(master_fd)
        os.close(master_fd)
        if error is not None:
            self.output.emit_error(error)
        else:
            self.output.emit_end()


def _set_window_size(fd: int, *, cols: int, rows: int) -> None:
    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, cols, 0, 0))


def _acquire_controlling_terminal() -> None:
    # child side, after setsid: the pty on stdin becomes the controlling tty
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)
