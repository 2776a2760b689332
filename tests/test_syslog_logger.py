import socket

import pytest

from procsupervisor.faults import Fault, FaultCode
from procsupervisor.syslog_logger import (
    LOG_DEBUG,
    LOG_LOCAL7,
    BackendSysLogWriter,
    SysLogger,
    new_remote_sys_logger,
    parse_syslog_config,
)


class RecordingEmitter:
    def __init__(self):
        self.data = []

    def emit_log_event(self, data):
        self.data.append(data)


@pytest.fixture
def udp_server():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(5)
    yield sock
    sock.close()


def _closed_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.mark.parametrize(
    "config, expected",
    [
        ("loghost", ("udp", "loghost", 514)),
        ("tcp:loghost", ("tcp", "loghost", 6514)),
        ("udp:loghost", ("udp", "loghost", 514)),
        ("loghost:1000", ("udp", "loghost", 1000)),
        ("tcp:loghost:1000", ("tcp", "loghost", 1000)),
    ],
)
def test_parse_syslog_config(config, expected):
    assert parse_syslog_config(config) == expected


@pytest.mark.parametrize("config", ["a:b:c:d", "loghost:abc", "tcp:loghost:x"])
def test_parse_syslog_config_invalid(config):
    with pytest.raises(ValueError):
        parse_syslog_config(config)


def test_unconnected_logger_emits_then_fails():
    emitter = RecordingEmitter()
    logger = SysLogger(None, emitter)
    with pytest.raises(ConnectionError):
        logger.write(b"data")
    assert emitter.data == ["data"]
    with pytest.raises(ConnectionError):
        logger.close()


def test_syslog_logger_has_no_log_file():
    logger = SysLogger(None, RecordingEmitter())
    with pytest.raises(Fault) as info:
        logger.read_log(0, 0)
    assert info.value.code == FaultCode.NO_FILE
    with pytest.raises(Fault) as info:
        logger.read_tail_log(0, 10)
    assert info.value.code == FaultCode.NO_FILE
    with pytest.raises(Fault) as info:
        logger.clear_all_log_file()
    assert info.value.code == FaultCode.NO_FILE
    with pytest.raises(OSError):
        logger.clear_cur_log_file()


def test_remote_udp_logger_sends_message(udp_server):
    port = udp_server.getsockname()[1]
    emitter = RecordingEmitter()
    logger = new_remote_sys_logger("myprog", f"udp:127.0.0.1:{port}", emitter)
    try:
        assert logger.write(b"hello syslog") == len(b"hello syslog")
        message, _ = udp_server.recvfrom(65536)
    finally:
        logger.close()
    assert message.startswith(f"<{LOG_LOCAL7 | LOG_DEBUG}>".encode())
    assert b" myprog[" in message
    assert message.endswith(b"hello syslog\n")
    assert emitter.data == ["hello syslog"]


def test_trailing_newline_is_not_doubled(udp_server):
    port = udp_server.getsockname()[1]
    emitter = RecordingEmitter()
    logger = new_remote_sys_logger("myprog", f"127.0.0.1:{port}", emitter)
    try:
        written = logger.write(b"line\n")
        message, _ = udp_server.recvfrom(65536)
    finally:
        logger.close()
    assert written == len(b"line\n")
    assert emitter.data == ["line\n"]
    assert message.endswith(b": line\n")
    assert message.count(b"\n") == 1


def test_backend_writer_delivers_in_background(udp_server):
    port = udp_server.getsockname()[1]
    writer = BackendSysLogWriter("udp", f"127.0.0.1:{port}", LOG_DEBUG, "bgtag")
    try:
        assert writer.write(b"background data") == len(b"background data")
        message, _ = udp_server.recvfrom(65536)
    finally:
        writer.close()
    assert message.startswith(f"<{LOG_DEBUG}>".encode())
    assert b"bgtag[" in message
    assert message.endswith(b"background data\n")


def test_backend_writer_rejects_write_after_close():
    writer = BackendSysLogWriter("udp", "127.0.0.1:9", LOG_DEBUG, "tag")
    writer.close()
    with pytest.raises(ValueError):
        writer.write(b"late")


def test_unreachable_tcp_server_uses_background_writer():
    port = _closed_port()
    logger = new_remote_sys_logger("myprog", f"tcp:127.0.0.1:{port}", RecordingEmitter())
    try:
        assert isinstance(logger.log_writer, BackendSysLogWriter)
        assert logger.write(b"queued") == len(b"queued")
    finally:
        logger.close()