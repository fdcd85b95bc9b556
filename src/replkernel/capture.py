"""Scoped, exclusive redirection of the process-wide standard streams.

While a :class:`CaptureSession` is armed, ``sys.stdout`` and ``sys.stderr``
are replaced by :class:`CapturingStream` proxies that forward every write to
the stream they replaced and, when capturing, keep a byte copy. Both text
writes and writes to the proxy's binary ``buffer`` are teed. The input
stream is swapped for an empty source so evaluated code cannot block on the
kernel's own stdin.

Only one session may be armed per process: :meth:`OutputCapture.begin`
waits for the current session to be restored, and refuses outright when the
waiting thread is the one holding it.
"""

from __future__ import annotations

import contextlib
import io
import sys
import threading
from collections.abc import Callable, Generator
from typing import TextIO

from loguru import logger

from replkernel.errors import CaptureBusyError, StreamRestoreError

DEFAULT_ENCODING = "utf-8"
# Lossless for lone surrogates and undecodable bytes alike.
ENCODING_ERRORS = "backslashreplace"

_armed = threading.Lock()
_owner: int | None = None


def null_when_blank(text: str) -> str | None:
    return None if not text or text.isspace() else text


def empty_stdin() -> TextIO:
    return io.StringIO("")


class _BinaryTee(io.RawIOBase):
    """Binary side of a :class:`CapturingStream`."""

    def __init__(self, stream: CapturingStream) -> None:
        super().__init__()
        self._stream = stream

    def writable(self) -> bool:
        return True

    def write(self, data: bytes | bytearray | memoryview) -> int:
        chunk = bytes(data)
        self._stream.forward_bytes(chunk)
        if self._stream.capturing:
            self._stream.captured.extend(chunk)
        return len(chunk)

    def flush(self) -> None:
        self._stream.flush()


class CapturingStream(io.TextIOBase):
    """Tee proxy over an original text stream.

    Text is stored encoded with :data:`ENCODING_ERRORS`, and decoded the same
    way by :meth:`text`.
    """

    def __init__(self, original: TextIO, *, capturing: bool, encoding: str = DEFAULT_ENCODING) -> None:
        super().__init__()
        self.original = original
        self.capturing = capturing
        self.captured = bytearray()
        self._encoding = encoding
        self._binary = _BinaryTee(self)

    @property
    def encoding(self) -> str:
        return self._encoding

    @property
    def errors(self) -> str:
        return ENCODING_ERRORS

    @property
    def buffer(self) -> _BinaryTee:
        return self._binary

    def writable(self) -> bool:
        return True

    def isatty(self) -> bool:
        return False

    def write(self, text: str) -> int:
        if not isinstance(text, str):
            raise TypeError(f"write() argument must be str, not {type(text).__name__}")
        self.original.write(text)
        if self.capturing:
            self.captured.extend(text.encode(self._encoding, errors=ENCODING_ERRORS))
        return len(text)

    def forward_bytes(self, data: bytes) -> None:
        target = getattr(self.original, "buffer", None)
        if target is None:
            self.original.write(data.decode(self._encoding, errors=ENCODING_ERRORS))
            return
        # Pending text must reach the binary layer before these bytes.
        self.original.flush()
        target.write(data)
        target.flush()

    def flush(self) -> None:
        self.original.flush()

    @property
    def captured_bytes(self) -> bytes:
        return bytes(self.captured)

    def text(self) -> str | None:
        """Captured output decoded as text, ``None`` when blank."""
        return null_when_blank(self.captured.decode(self._encoding, errors=ENCODING_ERRORS))


def _release() -> None:
    global _owner
    _owner = None
    _armed.release()


class CaptureSession:
    """One armed redirection; :meth:`restore` puts the original streams back."""

    def __init__(
        self,
        stdout: CapturingStream,
        stderr: CapturingStream,
        original_stdin: TextIO,
    ) -> None:
        self.stdout = stdout
        self.stderr = stderr
        self._original_stdin = original_stdin
        self._restored = False

    @property
    def restored(self) -> bool:
        return self._restored

    def stdout_text(self) -> str | None:
        return self.stdout.text()

    def stderr_text(self) -> str | None:
        return self.stderr.text()

    def restore(self) -> None:
        """Restore stdin, stderr and stdout. Calling it again does nothing.

        Raises :class:`StreamRestoreError` when any stream could not be put
        back; the capture is released either way.
        """
        if self._restored:
            return
        self._restored = True
        try:
            for name, proxy in (("stdout", self.stdout), ("stderr", self.stderr)):
                with contextlib.suppress(ValueError, OSError):
                    proxy.flush()
                if getattr(sys, name) is not proxy:
                    logger.warning("capture.replaced stream=sys.{}", name)
            failure: StreamRestoreError | None = None
            for name, original in (
                ("stdin", self._original_stdin),
                ("stderr", self.stderr.original),
                ("stdout", self.stdout.original),
            ):
                try:
                    self._put_back(name, original)
                except StreamRestoreError as exc:
                    failure = failure or exc
            if failure is not None:
                raise failure
        finally:
            _release()

    @staticmethod
    def _put_back(name: str, original: TextIO) -> None:
        try:
            setattr(sys, name, original)
        except Exception as exc:
            raise StreamRestoreError(name) from exc
        if getattr(sys, name) is not original:
            raise StreamRestoreError(name)


class OutputCapture:
    """Factory for capture sessions with a fixed stdout/stderr policy."""

    def __init__(
        self,
        *,
        capture_stdout: bool = True,
        capture_stderr: bool = False,
        encoding: str = DEFAULT_ENCODING,
        stdin_factory: Callable[[], TextIO] = empty_stdin,
    ) -> None:
        self.capture_stdout = capture_stdout
        self.capture_stderr = capture_stderr
        self.encoding = encoding
        self._stdin_factory = stdin_factory

    def begin(self, *, timeout: float | None = None) -> CaptureSession:
        """Arm a session, waiting up to ``timeout`` seconds (forever by default)."""
        global _owner
        if _owner == threading.get_ident():
            raise CaptureBusyError("standard streams are already being captured by this thread")
        if not _armed.acquire(timeout=-1 if timeout is None else timeout):
            raise CaptureBusyError("standard streams are already being captured")
        _owner = threading.get_ident()
        try:
            stdout = CapturingStream(sys.stdout, capturing=self.capture_stdout, encoding=self.encoding)
            stderr = CapturingStream(sys.stderr, capturing=self.capture_stderr, encoding=self.encoding)
            session = CaptureSession(stdout, stderr, sys.stdin)
            replacement_stdin = self._stdin_factory()
            sys.stdout = stdout
            sys.stderr = stderr
            sys.stdin = replacement_stdin
        except BaseException:
            _release()
            raise
        return session

    @contextlib.contextmanager
    def captured(self) -> Generator[CaptureSession, None, None]:
        session = self.begin()
        try:
            yield session
        finally:
            session.restore()
