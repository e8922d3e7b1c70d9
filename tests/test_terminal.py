from __future__ import annotations

import asyncio
import os

import pytest

from termprobe.core.detector import detect_termcap
from termprobe.core.errors import TransportWriteError
from termprobe.core.model import DetectionResult
from termprobe.transports.rawmode import RawModeController
from termprobe.transports.terminal import TerminalInput, TerminalOutput


@pytest.fixture
def pipe():
    read_fd, write_fd = os.pipe()
    yield read_fd, write_fd
    for fd in (read_fd, write_fd):
        try:
            os.close(fd)
        except OSError:
            pass


def test_pipes_are_not_terminals(pipe) -> None:
    read_fd, write_fd = pipe
    assert TerminalInput(read_fd).isatty() is False
    assert TerminalOutput(write_fd).isatty() is False


def test_detection_on_pipe_skips_io(pipe) -> None:
    read_fd, write_fd = pipe
    result = asyncio.run(detect_termcap(TerminalInput(read_fd), TerminalOutput(write_fd), 5.0))
    assert result == DetectionResult(ready=True)


def test_output_writes_all_bytes(pipe) -> None:
    read_fd, write_fd = pipe
    written = TerminalOutput(write_fd).write(b"\x1b[?u\x1b[c")
    assert written == 7
    assert os.read(read_fd, 64) == b"\x1b[?u\x1b[c"


def test_output_write_failure_is_wrapped(pipe) -> None:
    read_fd, write_fd = pipe
    os.close(read_fd)
    with pytest.raises(TransportWriteError):
        TerminalOutput(write_fd).write(b"\x1b[c")


def test_input_delivers_chunks_and_detaches(pipe) -> None:
    read_fd, write_fd = pipe
    source = TerminalInput(read_fd)
    received: list[bytes] = []

    async def scenario() -> None:
        got_data = asyncio.get_running_loop().create_future()

        def listener(data: bytes) -> None:
            received.append(data)
            if not got_data.done():
                got_data.set_result(None)

        source.add_listener(listener)
        os.write(write_fd, b"\x1b[?62;22c")
        await asyncio.wait_for(got_data, 1.0)
        source.remove_listener(listener)
        # Nothing is registered with the loop any more.
        os.write(write_fd, b"ignored")
        await asyncio.sleep(0.02)

    asyncio.run(scenario())

    assert received == [b"\x1b[?62;22c"]


def test_raw_mode_is_noop_for_non_terminals(pipe) -> None:
    read_fd, _ = pipe
    controller = RawModeController(read_fd)
    with controller:
        assert controller.enabled is False


def test_raw_mode_toggles_echo_on_pseudo_terminal() -> None:
    termios = pytest.importorskip("termios")
    pty = pytest.importorskip("pty")
    master, slave = pty.openpty()
    try:
        controller = RawModeController(slave)
        with controller:
            assert controller.enabled is True
            lflag = termios.tcgetattr(slave)[3]
            assert not lflag & termios.ECHO
            assert not lflag & termios.ICANON
        assert controller.enabled is False
        assert termios.tcgetattr(slave)[3] & termios.ECHO
    finally:
        os.close(master)
        os.close(slave)


def test_detection_over_pseudo_terminal() -> None:
    pytest.importorskip("termios")
    pty = pytest.importorskip("pty")
    master, slave = pty.openpty()
    seen = bytearray()

    async def scenario() -> DetectionResult:
        loop = asyncio.get_running_loop()

        def emulate_terminal() -> None:
            seen.extend(os.read(master, 1024))
            if seen.endswith(b"\x1b[c"):
                os.write(master, b"\x1b]11;rgb:ffff/ffff/ffff\x1b\\\x1bP>|pty-term(1)\x1b\\\x1b[?62;22c")

        loop.add_reader(master, emulate_terminal)
        try:
            return await detect_termcap(TerminalInput(slave), TerminalOutput(slave), 2.0)
        finally:
            loop.remove_reader(master)

    try:
        with RawModeController(slave):
            result = asyncio.run(scenario())
    finally:
        os.close(master)
        os.close(slave)

    assert result == DetectionResult(ready=True, background_color="#ffffff", terminal_name="pty-term(1)")


def test_input_keeps_no_listener_when_reader_registration_fails() -> None:
    # Far above any descriptor the process has open.
    source = TerminalInput(1 << 20)

    async def scenario() -> None:
        with pytest.raises(OSError):
            source.add_listener(lambda data: None)

    asyncio.run(scenario())

    assert source._listeners == []
    assert source._loop is None
