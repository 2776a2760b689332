"""Loggers that send program output to a local or remote syslog daemon."""

from __future__ import annotations

import contextlib
import datetime
import logging
import os
import queue
import socket
import threading

from procsupervisor.faults import Fault, FaultCode

log = logging.getLogger(__name__)

LOG_DEBUG = 7
LOG_LOCAL7 = 23 << 3

_LOCAL_SOCKETS = ("/dev/log", "/var/run/syslog", "/var/run/log")
_CONNECT_TIMEOUT = 5.0


def _as_bytes(data):
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


def _as_text(data):
    return data if isinstance(data, str) else bytes(data).decode("utf-8", errors="replace")


def _connect_network(network, raddr):
    host, sep, port_text = raddr.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {raddr}")
    port = int(port_text)
    host = host.strip("[]")
    if network in ("tcp", "tcp4", "tcp6"):
        sock = socket.create_connection((host, port), timeout=_CONNECT_TIMEOUT)
        return sock
    if network in ("udp", "udp4", "udp6"):
        last_error: OSError | None = None
        for family, socktype, proto, _, address in socket.getaddrinfo(
            host, port, type=socket.SOCK_DGRAM
        ):
            sock = socket.socket(family, socktype, proto)
            try:
                sock.connect(address)
            except OSError as exc:
                sock.close()
                last_error = exc
                continue
            return sock
        raise last_error or OSError(f"unable to resolve {raddr}")
    raise ValueError(f"unknown network {network}")


def _connect_local():
    if not hasattr(socket, "AF_UNIX"):
        raise OSError("unix sockets are not available")
    for path in _LOCAL_SOCKETS:
        for socktype in (socket.SOCK_DGRAM, socket.SOCK_STREAM):
            sock = socket.socket(socket.AF_UNIX, socktype)
            try:
                sock.connect(path)
            except OSError:
                sock.close()
                continue
            return sock
    raise OSError("unable to connect to the local syslog daemon")


class _SyslogConnection:
    """A connected syslog writer that formats every message with a header."""

    def __init__(self, connect, priority, tag, local):
        self._connect = connect
        self.priority = priority
        self.tag = tag
        self._local = local
        self._hostname = socket.gethostname()
        self._lock = threading.Lock()
        self._sock = connect()

    def _format(self, message):
        newline = "" if message.endswith("\n") else "\n"
        now = datetime.datetime.now()
        pid = os.getpid()
        if self._local:
            stamp = f"{now:%b} {now.day:2d} {now:%H:%M:%S}"
            return f"<{self.priority}>{stamp} {self.tag}[{pid}]: {message}{newline}"
        stamp = now.astimezone().isoformat(timespec="seconds")
        return (f"<{self.priority}>{stamp} {self._hostname} {self.tag}[{pid}]: "
                f"{message}{newline}")

    def write(self, data):
        packet = self._format(_as_text(data)).encode("utf-8")
        with self._lock:
            try:
                self._sock.sendall(packet)
            except OSError:
                with contextlib.suppress(OSError):
                    self._sock.close()
                self._sock = self._connect()
                self._sock.sendall(packet)
        return len(data)

    def close(self):
        with self._lock:
            self._sock.close()


def _dial(network, raddr, priority, tag):
    return _SyslogConnection(lambda: _connect_network(network, raddr), priority, tag, local=False)


class SysLogger:
    """Writes log data to syslog; without a connection every write fails."""

    def __init__(self, log_writer, log_event_emitter):
        self.log_writer = log_writer
        self._emitter = log_event_emitter

    def set_pid(self, pid):
        """Syslog output does not depend on the process id."""

    def write(self, data):
        self._emitter.emit_log_event(_as_text(data))
        if self.log_writer is None:
            raise ConnectionError("not connect to syslog server")
        return self.log_writer.write(data)

    def close(self):
        if self.log_writer is None:
            raise ConnectionError("not connect to syslog server")
        return self.log_writer.close()

    def read_log(self, offset, length):
        raise Fault(FaultCode.NO_FILE, "NO_FILE")

    def read_tail_log(self, offset, length):
        raise Fault(FaultCode.NO_FILE, "NO_FILE")

    def clear_cur_log_file(self):
        raise OSError("No log")

    def clear_all_log_file(self):
        raise Fault(FaultCode.NO_FILE, "NO_FILE")


class BackendSysLogWriter:
    """Sends data to a syslog server from a background thread, reconnecting as needed."""

    def __init__(self, network, raddr, priority, tag):
        self.network = network
        self.raddr = raddr
        self.priority = priority
        self.tag = tag
        self._queue: queue.Queue[bytes | None] = queue.Queue()
        self._closed = False
        self._thread = threading.Thread(target=self._run, name=f"syslog-{tag}", daemon=True)
        self._thread.start()

    def _run(self):
        writer = None
        while True:
            item = self._queue.get()
            if item is None:
                if writer is not None:
                    with contextlib.suppress(OSError):
                        writer.close()
                return
            if writer is None:
                try:
                    writer = _dial(self.network, self.raddr, self.priority, self.tag)
                except (OSError, ValueError):
                    writer = None
            if writer is not None:
                try:
                    writer.write(item)
                except OSError:
                    with contextlib.suppress(OSError):
                        writer.close()
                    writer = None

    def write(self, data):
        if self._closed:
            raise ValueError("write to a closed syslog writer")
        data = _as_bytes(data)
        self._queue.put(data)
        return len(data)

    def close(self):
        if not self._closed:
            self._closed = True
            self._queue.put(None)


def parse_syslog_config(config):
    """Parse ``[protocol:]host[:port]`` into (protocol, host, port).

    Without a port, tcp uses 6514 and udp uses 514. Raises ValueError on a
    malformed setting.
    """
    fields = config.split(":")
    if len(fields) == 1:
        return "udp", fields[0], 514
    if len(fields) == 2:
        if fields[0] == "tcp":
            return "tcp", fields[1], 6514
        if fields[0] == "udp":
            return "udp", fields[1], 514
        return "udp", fields[0], int(fields[1])
    if len(fields) == 3:
        return fields[0], fields[1], int(fields[2])
    raise ValueError("invalid format")


def new_sys_logger(name, log_event_emitter):
    """A logger writing to the local syslog daemon, if one can be reached."""
    try:
        writer = _SyslogConnection(_connect_local, LOG_DEBUG, name, local=True)
    except OSError:
        writer = None
    return SysLogger(writer, log_event_emitter)


def new_remote_sys_logger(name, config, log_event_emitter):
    """A logger writing to the syslog server described by ``config``."""
    if not config:
        return new_sys_logger(name, log_event_emitter)
    try:
        protocol, host, port = parse_syslog_config(config)
    except ValueError:
        return new_sys_logger(name, log_event_emitter)
    raddr = f"{host}:{port}"
    priority = LOG_LOCAL7 | LOG_DEBUG
    try:
        writer = _dial(protocol, raddr, priority, name)
    except (OSError, ValueError):
        writer = BackendSysLogWriter(protocol, raddr, priority, name)
    return SysLogger(writer, log_event_emitter)