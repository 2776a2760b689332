"""Loggers that store or forward the output of supervised programs."""

from __future__ import annotations

import contextlib
import logging
import os
import queue
import sys
import threading
from abc import ABC, abstractmethod

from procsupervisor.event_listener import ProcCommEventCapture, emit_event
from procsupervisor.events import create_process_log_stderr_event, create_process_log_stdout_event
from procsupervisor.faults import Fault, FaultCode
from procsupervisor.syslog_logger import new_remote_sys_logger, new_sys_logger

log = logging.getLogger(__name__)


def _as_bytes(data):
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


def _as_text(data):
    return data if isinstance(data, str) else bytes(data).decode("utf-8", errors="replace")


class Logger(ABC):
    """A writable, closable log that may also be read back."""

    def set_pid(self, pid):
        """Tell the logger the pid of the process it logs for."""

    @abstractmethod
    def write(self, data):
        """Write bytes; return the number of bytes written."""

    @abstractmethod
    def close(self):
        """Release the resources of the logger."""

    def read_log(self, offset, length):
        raise Fault(FaultCode.NO_FILE, "NO_FILE")

    def read_tail_log(self, offset, length):
        raise Fault(FaultCode.NO_FILE, "NO_FILE")

    def clear_cur_log_file(self):
        raise OSError("No log")

    def clear_all_log_file(self):
        raise Fault(FaultCode.NO_FILE, "NO_FILE")

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class NullLogEventEmitter:
    """An emitter that drops log events."""

    def emit_log_event(self, data):
        """Log events are not forwarded anywhere."""


class StdLogEventEmitter:
    """Emits PROCESS_LOG_STDOUT or PROCESS_LOG_STDERR events for a process."""

    def __init__(self, type, process_name, group_name, pid_func):
        self.type = type
        self.process_name = process_name
        self.group_name = group_name
        self.pid_func = pid_func

    def emit_log_event(self, data):
        create = (create_process_log_stdout_event if self.type == "stdout"
                  else create_process_log_stderr_event)
        emit_event(create(self.process_name, self.group_name, self.pid_func(), data))


class FileLogger(Logger):
    """A log file rotated into ``name.1`` .. ``name.<backups>`` when it grows too big."""

    def __init__(self, name, max_size, backups, log_event_emitter, locker):
        self.name = os.fspath(name)
        self.max_size = max_size
        self.backups = backups
        self._emitter = log_event_emitter
        self._locker = locker if locker is not None else contextlib.nullcontext()
        self._file = None
        self._file_size = 0
        with contextlib.suppress(OSError):
            self._open_file(False)

    def _open_file(self, trunc):
        self._close_file()
        try:
            if not trunc:
                try:
                    self._file_size = os.stat(self.name).st_size
                except OSError:
                    trunc = True
            if trunc:
                self._file = open(self.name, "wb", buffering=0)
                self._file_size = 0
            else:
                self._file = open(self.name, "ab", buffering=0)
        except OSError as exc:
            log.error("Fail to open log file --%s-- with error %s", self.name, exc)
            raise

    def _close_file(self):
        if self._file is not None:
            file, self._file = self._file, None
            file.close()

    def _backup_files(self):
        for i in range(self.backups - 1, 0, -1):
            src = f"{self.name}.{i}"
            if os.path.exists(src):
                with contextlib.suppress(OSError):
                    os.replace(src, f"{self.name}.{i + 1}")
        with contextlib.suppress(OSError):
            os.replace(self.name, f"{self.name}.1")

    def write(self, data):
        data = _as_bytes(data)
        with self._locker:
            if self._file is None:
                raise OSError(f"log file {self.name} is not open")
            written = self._file.write(data)
            self._emitter.emit_log_event(_as_text(data))
            self._file_size += written
            if self._file_size >= self.max_size:
                self._file_size = os.stat(self.name).st_size
            if self._file_size >= self.max_size:
                self._close_file()
                self._backup_files()
                self._open_file(True)
            return written

    def close(self):
        self._close_file()

    def read_log(self, offset, length):
        """Read ``length`` bytes at ``offset``; a negative offset counts from the end."""
        if (offset < 0 and length != 0) or (offset >= 0 and length < 0):
            raise Fault(FaultCode.BAD_ARGUMENTS, "BAD_ARGUMENTS")
        with self._locker:
            try:
                with open(self.name, "rb") as handle:
                    file_len = os.fstat(handle.fileno()).st_size
                    if offset < 0:
                        offset = max(file_len + offset, 0)
                        length = file_len - offset
                    elif length == 0:
                        if offset > file_len:
                            return ""
                        length = file_len - offset
                    else:
                        if offset >= file_len:
                            return ""
                        length = min(length, file_len - offset)
                    handle.seek(offset)
                    data = handle.read(length)
            except OSError as exc:
                raise Fault(FaultCode.FAILED, "FAILED") from exc
        return data.decode("utf-8", errors="replace")

    def read_tail_log(self, offset, length):
        """Return (text, next offset, overflow flag) for the bytes at ``offset``."""
        if offset < 0:
            raise ValueError("offset should not be less than 0")
        if length < 0:
            raise ValueError("length should not be less than 0")
        with self._locker:
            with open(self.name, "rb") as handle:
                file_len = os.fstat(handle.fileno()).st_size
                if offset >= file_len:
                    return "", file_len, True
                length = min(length, file_len - offset)
                handle.seek(offset)
                data = handle.read(length)
        return data.decode("utf-8", errors="replace"), offset + len(data), False

    def clear_cur_log_file(self):
        with self._locker:
            self._open_file(True)

    def clear_all_log_file(self):
        with self._locker:
            for i in range(self.backups, 0, -1):
                backup = f"{self.name}.{i}"
                if os.path.exists(backup):
                    try:
                        os.remove(backup)
                    except OSError as exc:
                        raise Fault(FaultCode.FAILED, str(exc)) from exc
            try:
                self._open_file(True)
            except OSError as exc:
                raise Fault(FaultCode.FAILED, str(exc)) from exc


class NullLogger(Logger):
    """Discards the data but still emits log events."""

    def __init__(self, log_event_emitter):
        self._emitter = log_event_emitter

    def write(self, data):
        self._emitter.emit_log_event(_as_text(data))
        return len(data)

    def close(self):
        return None


class ChanLogger(Logger):
    """Puts every written chunk on a queue; closing puts ``None`` as end marker."""

    def __init__(self, channel):
        self.channel = channel
        self._closed = False

    def write(self, data):
        if self._closed:
            raise ValueError("write to a closed channel logger")
        self.channel.put(data)
        return len(data)

    def close(self):
        if not self._closed:
            self._closed = True
            self.channel.put(None)


class StdLogger(NullLogger):
    """Writes to a standard stream; a log event is emitted only if the write fails."""

    def __init__(self, log_event_emitter, stream):
        super().__init__(log_event_emitter)
        self.stream = stream

    def write(self, data):
        data = _as_bytes(data)
        target = getattr(self.stream, "buffer", self.stream)
        try:
            written = target.write(data)
            target.flush()
        except OSError:
            self._emitter.emit_log_event(_as_text(data))
            raise
        return len(data) if written is None else written


class LogCaptureLogger(Logger):
    """Passes data to another logger and captures process communication events from it."""

    def __init__(self, underline_logger, capture_max_bytes, std_type, proc_name, group_name):
        self.underline_logger = underline_logger
        read_fd, write_fd = os.pipe()
        self._reader = os.fdopen(read_fd, "rb", buffering=0)
        self._writer = os.fdopen(write_fd, "wb", buffering=0)
        self._capture = ProcCommEventCapture(
            self._reader, capture_max_bytes, std_type, proc_name, group_name
        )

    def set_pid(self, pid):
        self._capture.pid = pid

    def write(self, data):
        view = memoryview(_as_bytes(data))
        try:
            while view:
                view = view[self._writer.write(view):]
        except (OSError, ValueError):
            pass
        return self.underline_logger.write(data)

    def close(self):
        with contextlib.suppress(OSError):
            self._writer.close()
        return self.underline_logger.close()

    def read_log(self, offset, length):
        return self.underline_logger.read_log(offset, length)

    def read_tail_log(self, offset, length):
        return self.underline_logger.read_tail_log(offset, length)

    def clear_cur_log_file(self):
        return self.underline_logger.clear_cur_log_file()

    def clear_all_log_file(self):
        return self.underline_logger.clear_all_log_file()


class CompositeLogger(Logger):
    """Writes to several loggers; the first one decides results and reads."""

    def __init__(self, loggers):
        self._lock = threading.Lock()
        self.loggers = list(loggers)

    def add_logger(self, logger):
        with self._lock:
            self.loggers.append(logger)

    def remove_logger(self, logger):
        with self._lock:
            for index, existing in enumerate(self.loggers):
                if existing is logger:
                    del self.loggers[index]
                    break

    def set_pid(self, pid):
        with self._lock:
            for logger in self.loggers:
                logger.set_pid(pid)

    def write(self, data):
        with self._lock:
            result = 0
            error = None
            for index, logger in enumerate(self.loggers):
                try:
                    written = logger.write(data)
                except (OSError, ValueError) as exc:
                    if index == 0:
                        error = exc
                    continue
                if index == 0:
                    result = written
            if error is not None:
                raise error
            return result

    def close(self):
        with self._lock:
            error = None
            for index, logger in enumerate(self.loggers):
                try:
                    logger.close()
                except (OSError, ValueError) as exc:
                    if index == 0:
                        error = exc
            if error is not None:
                raise error

    def read_log(self, offset, length):
        return self.loggers[0].read_log(offset, length)

    def read_tail_log(self, offset, length):
        return self.loggers[0].read_tail_log(offset, length)

    def clear_cur_log_file(self):
        return self.loggers[0].clear_cur_log_file()

    def clear_all_log_file(self):
        return self.loggers[0].clear_all_log_file()


class BackgroundWriteCloser:
    """Hands writes to a background thread that passes them to ``write_closer``."""

    def __init__(self, write_closer):
        self.write_closer = write_closer
        self._queue: queue.Queue[bytes | None] = queue.Queue()
        self._closed = False
        self._thread = threading.Thread(target=self._run, name="background-writer", daemon=True)
        self._thread.start()

    def _run(self):
        while (item := self._queue.get()) is not None:
            with contextlib.suppress(OSError, ValueError):
                self.write_closer.write(item)

    def write(self, data):
        if self._closed:
            raise ValueError("write to a closed background writer")
        self._queue.put(data)
        return len(data)

    def close(self):
        if not self._closed:
            self._closed = True
            self._queue.put(None)
            self._thread.join()
        return self.write_closer.close()


def split_log_file(log_file):
    """Split a comma separated list of log destinations."""
    return [part.strip() for part in log_file.split(",")]


def create_logger(program_name, log_file, locker, max_bytes, backups, log_event_emitter):
    """Create the logger for a single destination."""
    if log_file == "/dev/stdout":
        return StdLogger(log_event_emitter, sys.stdout)
    if log_file == "/dev/stderr":
        return StdLogger(log_event_emitter, sys.stderr)
    if log_file == "/dev/null":
        return NullLogger(log_event_emitter)
    if log_file == "syslog":
        return new_sys_logger(program_name, log_event_emitter)
    if log_file.startswith("syslog"):
        fields = [field.strip() for field in log_file.split("@")]
        if len(fields) == 2 and fields[0] == "syslog":
            return new_remote_sys_logger(program_name, fields[1], log_event_emitter)
    if log_file:
        return FileLogger(log_file, max_bytes, backups, log_event_emitter, locker)
    return NullLogger(log_event_emitter)


def new_logger(program_name, log_file, locker, max_bytes, backups, log_event_emitter):
    """Create a logger for every destination in ``log_file``.

    Only the first destination uses ``locker`` and emits log events.
    """
    loggers = []
    for index, destination in enumerate(split_log_file(log_file)):
        if index == 0:
            loggers.append(create_logger(program_name, destination, locker,
                                         max_bytes, backups, log_event_emitter))
        else:
            loggers.append(create_logger(program_name, destination, None,
                                         max_bytes, backups, NullLogEventEmitter()))
    return CompositeLogger(loggers)