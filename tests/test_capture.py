import io
import sys
import threading

import pytest
from conftest import RefusingSys

from replkernel.capture import CapturingStream, OutputCapture, null_when_blank
from replkernel.errors import CaptureBusyError, StreamRestoreError


def test_stdout_is_teed_to_original_and_buffer(capsys: pytest.CaptureFixture[str]) -> None:
    capture = OutputCapture()
    with capture.captured() as session:
        print("héllo wörld")
        sys.stdout.write("second")

    assert session.stdout_text() == "héllo wörld\nsecond"
    assert session.stdout.captured_bytes == "héllo wörld\nsecond".encode()
    assert capsys.readouterr().out == "héllo wörld\nsecond"


def test_stderr_is_forwarded_but_not_captured_by_default(capsys: pytest.CaptureFixture[str]) -> None:
    with OutputCapture().captured() as session:
        sys.stderr.write("warning")

    assert session.stderr_text() is None
    assert capsys.readouterr().err == "warning"


def test_stderr_capture_is_independent_of_stdout() -> None:
    with OutputCapture(capture_stdout=False, capture_stderr=True).captured() as session:
        print("out")
        print("err", file=sys.stderr)

    assert session.stdout_text() is None
    assert session.stderr_text() == "err\n"


def test_blank_output_is_reported_as_absent() -> None:
    with OutputCapture().captured() as session:
        print("   ")

    assert session.stdout_text() is None


def test_streams_are_restored_when_body_raises() -> None:
    original = (sys.stdout, sys.stderr, sys.stdin)
    with pytest.raises(RuntimeError), OutputCapture().captured():
        assert sys.stdout is not original[0]
        raise RuntimeError("boom")

    assert (sys.stdout, sys.stderr, sys.stdin) == original


def test_restore_is_idempotent() -> None:
    original_stdout = sys.stdout
    session = OutputCapture().begin()
    session.restore()
    session.restore()

    assert session.restored
    assert sys.stdout is original_stdout


def test_stdin_is_replaced_with_empty_source() -> None:
    with OutputCapture().captured():
        with pytest.raises(EOFError):
            input()


def test_restore_undoes_stream_replaced_by_evaluated_code() -> None:
    original_stdout = sys.stdout
    with OutputCapture().captured():
        sys.stdout = sys.stderr

    assert sys.stdout is original_stdout


def test_only_one_capture_may_be_armed() -> None:
    capture = OutputCapture()
    session = capture.begin()
    try:
        with pytest.raises(CaptureBusyError):
            capture.begin()
    finally:
        session.restore()

    capture.begin().restore()


def test_capturing_stream_rejects_bytes() -> None:
    stream = CapturingStream(sys.stdout, capturing=True)
    with pytest.raises(TypeError):
        stream.write(b"raw")  # type: ignore[arg-type]


def test_null_when_blank() -> None:
    assert null_when_blank("") is None
    assert null_when_blank(" \n\t") is None
    assert null_when_blank("x\n") == "x\n"


def test_binary_writes_are_teed(capsys: pytest.CaptureFixture[str]) -> None:
    with OutputCapture().captured() as session:
        sys.stdout.write("text ")
        sys.stdout.buffer.write("bytes é".encode())
        sys.stdout.flush()

    assert session.stdout.captured_bytes == "text bytes é".encode()
    assert session.stdout_text() == "text bytes é"
    assert capsys.readouterr().out == "text bytes é"


def test_binary_writes_to_text_only_original_are_decoded() -> None:
    original = io.StringIO()
    stream = CapturingStream(original, capturing=True)

    assert stream.buffer.write(b"raw \xff") == 5

    assert original.getvalue() == "raw \\xff"
    assert stream.captured_bytes == b"raw \xff"
    assert stream.text() == "raw \\xff"


def test_lone_surrogates_are_kept_escaped() -> None:
    stream = CapturingStream(io.StringIO(), capturing=True)
    stream.write("a\udc80b")

    assert stream.text() == "a\\udc80b"


def test_failed_restore_raises_and_releases_capture(monkeypatch: pytest.MonkeyPatch) -> None:
    original = (sys.stdout, sys.stderr, sys.stdin)
    session = OutputCapture().begin()
    monkeypatch.setattr("replkernel.capture.sys", RefusingSys(sys, "stdout"))
    try:
        with pytest.raises(StreamRestoreError) as excinfo:
            session.restore()
    finally:
        monkeypatch.undo()
        sys.stdout = original[0]

    assert excinfo.value.stream_name == "stdout"
    assert (sys.stderr, sys.stdin) == original[1:]
    OutputCapture().begin().restore()


def test_other_threads_wait_for_the_armed_session() -> None:
    session = OutputCapture().begin()
    results: list[object] = []

    def contender(timeout: float | None) -> None:
        try:
            OutputCapture().begin(timeout=timeout).restore()
            results.append("armed")
        except CaptureBusyError as exc:
            results.append(exc)

    impatient = threading.Thread(target=contender, args=(0.05,))
    impatient.start()
    impatient.join()
    patient = threading.Thread(target=contender, args=(None,))
    patient.start()
    patient.join(timeout=0.1)
    assert patient.is_alive()

    session.restore()
    patient.join(timeout=5)

    assert isinstance(results[0], CaptureBusyError)
    assert results[1:] == ["armed"]
