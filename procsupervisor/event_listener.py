"""Delivery of events to listener programs and capture of process messages."""

from __future__ import annotations

import codecs
import collections
import logging
import threading
import time

from procsupervisor.events import ProcCommEvent, TickEvent

log = logging.getLogger(__name__)

EVENT_SYS_VERSION = "3.0"
PROC_COMM_BEGIN_STR = "<!--XSUPERVISOR:BEGIN-->"
PROC_COMM_END_STR = "<!--XSUPERVISOR:END-->"

EVENT_TYPE_DERIVES = {
    "PROCESS_STATE_STARTING": ("EVENT", "PROCESS_STATE"),
    "PROCESS_STATE_RUNNING": ("EVENT", "PROCESS_STATE"),
    "PROCESS_STATE_BACKOFF": ("EVENT", "PROCESS_STATE"),
    "PROCESS_STATE_STOPPING": ("EVENT", "PROCESS_STATE"),
    "PROCESS_STATE_EXITED": ("EVENT", "PROCESS_STATE"),
    "PROCESS_STATE_STOPPED": ("EVENT", "PROCESS_STATE"),
    "PROCESS_STATE_FATAL": ("EVENT", "PROCESS_STATE"),
    "PROCESS_STATE_UNKNOWN": ("EVENT", "PROCESS_STATE"),
    "REMOTE_COMMUNICATION": ("EVENT",),
    "PROCESS_LOG_STDOUT": ("EVENT", "PROCESS_LOG"),
    "PROCESS_LOG_STDERR": ("EVENT", "PROCESS_LOG"),
    "PROCESS_COMMUNICATION_STDOUT": ("EVENT", "PROCESS_COMMUNICATION"),
    "PROCESS_COMMUNICATION_STDERR": ("EVENT", "PROCESS_COMMUNICATION"),
    "SUPERVISOR_STATE_CHANGE_RUNNING": ("EVENT", "SUPERVISOR_STATE_CHANGE"),
    "SUPERVISOR_STATE_CHANGE_STOPPING": ("EVENT", "SUPERVISOR_STATE_CHANGE"),
    "TICK_5": ("EVENT", "TICK"),
    "TICK_60": ("EVENT", "TICK"),
    "TICK_3600": ("EVENT", "TICK"),
    "PROCESS_GROUP_ADDED": ("EVENT", "PROCESS_GROUP"),
    "PROCESS_GROUP_REMOVED": ("EVENT", "PROCESS_GROUP"),
}

_TICK_PERIODS = {"TICK_5": 5, "TICK_60": 60, "TICK_3600": 3600}


class EventPoolSerial:
    """Per-pool serial numbers, starting at 1."""

    def __init__(self):
        self._lock = threading.Lock()
        self._serials: dict[str, int] = {}

    def next_serial(self, pool):
        with self._lock:
            serial = self._serials.get(pool, 1)
            self._serials[pool] = serial + 1
            return serial


_event_pool_serial = EventPoolSerial()


class EventListener:
    """Sends queued events to a listener program speaking the READY/RESULT protocol.

    ``stdin`` is the binary stream the listener writes to (we read from it);
    ``stdout`` is the binary stream the listener reads events from.
    """

    def __init__(self, pool, server, stdin, stdout, buffer_size):
        self.pool = pool
        self.server = server
        self._stdin = stdin
        self._stdout = stdout
        self.buffer_size = buffer_size
        self._events: collections.deque[bytes] = collections.deque()
        self._cond = threading.Condition()
        threading.Thread(target=self._run, name=f"event-listener-{pool}", daemon=True).start()

    @property
    def pending(self):
        """Number of events waiting to be accepted by the listener."""
        with self._cond:
            return len(self._events)

    def _first_event(self):
        with self._cond:
            self._cond.wait_for(lambda: self._events)
            return self._events[0]

    def _remove_first_event(self):
        with self._cond:
            if self._events:
                self._events.popleft()

    def _run(self):
        while True:
            if not self._wait_for_ready():
                log.warning("fail to read from event listener %s, the event listener may exit",
                            self.pool)
                return
            while True:
                data = self._first_event()
                try:
                    self._stdout.write(data)
                    self._stdout.flush()
                except (OSError, ValueError):
                    log.warning("fail to send event to listener %s", self.pool)
                    break
                try:
                    result = self._read_result()
                except (OSError, ValueError, EOFError):
                    log.warning("fail to read result from listener %s", self.pool)
                    break
                if result == "OK":
                    log.info("succeed to send the event to listener %s", self.pool)
                    self._remove_first_event()
                    break
                if result == "FAIL":
                    log.warning("listener %s failed to handle the event", self.pool)
                    break
                log.warning("unknown result %r from listener %s", result, self.pool)

    def _wait_for_ready(self):
        log.debug("start to check if event listener program is ready")
        while True:
            try:
                line = self._stdin.readline()
            except (OSError, ValueError):
                return False
            if not line:
                return False
            if line == b"READY\n":
                log.debug("the event listener %s is ready", self.pool)
                return True

    def _read_result(self):
        line = self._stdin.readline()
        if not line.endswith(b"\n"):
            raise EOFError("listener closed its output")
        fields = line.split()
        if len(fields) != 2 or fields[0] != b"RESULT":
            raise ValueError("Fail to read the result")
        length = int(fields[1])
        if length < 0:
            raise ValueError("Fail to read the result because the result bytes is less than 0")
        data = self._stdin.read(length) if length else b""
        if len(data) < length:
            raise EOFError("listener closed its output")
        return data.decode("utf-8", errors="replace")

    def handle_event(self, event):
        """Queue an event; it is dropped when the buffer is full."""
        encoded = self.encode_event(event)
        with self._cond:
            if len(self._events) <= self.buffer_size:
                self._events.append(encoded)
                self._cond.notify()
            else:
                log.error("events of listener %s reach the buffer_size, discard the event",
                          self.pool)

    def encode_event(self, event):
        """Header line followed by the event body, as bytes."""
        body = event.body().encode("utf-8")
        header = (
            f"ver:{EVENT_SYS_VERSION} server:{self.server} serial:{event.serial} "
            f"pool:{self.pool} poolserial:{_event_pool_serial.next_serial(self.pool)} "
            f"eventname:{event.event_type} len:{len(body)}\n"
        )
        return header.encode("utf-8") + body


class EventListenerManager:
    """Routes events to the listeners registered for their types."""

    def __init__(self):
        self._lock = threading.Lock()
        self._named_listeners: dict[str, object] = {}
        self._event_listeners: dict[str, dict[object, None]] = {}

    def register_event_listener(self, event_listener_name, events, listener):
        """Register a listener for event types or abstract types such as ``PROCESS_STATE``."""
        wanted = set(events)
        all_events = [
            name for name, parents in EVENT_TYPE_DERIVES.items()
            if name in wanted or wanted.intersection(parents)
        ]
        with self._lock:
            self._named_listeners[event_listener_name] = listener
            for event in all_events:
                log.info("register event listener %s for %s", event_listener_name, event)
                self._event_listeners.setdefault(event, {})[listener] = None

    def unregister_event_listener(self, event_listener_name):
        """Remove a listener by name; return it, or None if it was unknown."""
        with self._lock:
            listener = self._named_listeners.pop(event_listener_name, None)
            if listener is None:
                return None
            for event, listeners in self._event_listeners.items():
                if listeners.pop(listener, 0) is None:
                    log.info("unregister event listener %s for %s", event_listener_name, event)
            return listener

    def emit_event(self, event):
        with self._lock:
            listeners = list(self._event_listeners.get(event.event_type, ()))
        if not listeners:
            return
        log.info("process event %s", event.event_type)
        for listener in listeners:
            log.info("receive event %s on listener %s",
                     event.event_type, getattr(listener, "pool", ""))
            listener.handle_event(event)


_manager = EventListenerManager()


def register_event_listener(event_listener_name, events, listener):
    _manager.register_event_listener(event_listener_name, events, listener)


def unregister_event_listener(event_listener_name):
    return _manager.unregister_event_listener(event_listener_name)


def emit_event(event):
    _manager.emit_event(event)


class ProcCommEventCapture:
    """Reads process output and emits the text found between communication markers."""

    def __init__(self, reader, capture_max_bytes, std_type, proc_name, group_name):
        self.capture_max_bytes = capture_max_bytes
        self.std_type = std_type
        self.proc_name = proc_name
        self.group_name = group_name
        self.pid = -1
        self._reader = reader
        self._buffer = ""
        self._begin = -1
        threading.Thread(target=self._capture, name=f"capture-{proc_name}", daemon=True).start()

    def _capture(self):
        read = getattr(self._reader, "read1", None) or self._reader.read
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            try:
                chunk = read(10240)
            except (OSError, ValueError):
                break
            if not chunk:
                break
            self._buffer += decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
            while (event := self._capture_event()) is not None:
                emit_event(event)

    def _capture_event(self):
        self._find_begin()
        end = self._find_end()
        if end == -1:
            return None
        data = self._buffer[self._begin + len(PROC_COMM_BEGIN_STR):end]
        self._buffer = self._buffer[end + len(PROC_COMM_END_STR):]
        self._begin = -1
        return ProcCommEvent(self.std_type, self.proc_name, self.group_name, self.pid, data)

    def _find_begin(self):
        if self._begin != -1:
            return
        self._begin = self._buffer.find(PROC_COMM_BEGIN_STR)
        if self._begin == -1 and len(self._buffer) > len(PROC_COMM_BEGIN_STR):
            self._buffer = self._buffer[-len(PROC_COMM_BEGIN_STR):]

    def _find_end(self):
        if self._begin == -1:
            return -1
        end = self._buffer.find(PROC_COMM_END_STR, self._begin + len(PROC_COMM_BEGIN_STR))
        if end == -1 and len(self._buffer) > self.capture_max_bytes:
            log.warning("the capture buffer of %s overflows, discard the content", self.proc_name)
            self._begin = -1
            self._buffer = ""
        return end


def start_tick_timer():
    """Emit TICK_5, TICK_60 and TICK_3600 events; set the returned event to stop."""
    stop = threading.Event()

    def run():
        last_slice: dict[str, int] = {}
        while not stop.wait(1.0):
            now = int(time.time())
            for tick_type, period in _TICK_PERIODS.items():
                current = now // period
                previous = last_slice.get(tick_type)
                last_slice[tick_type] = current
                if previous is not None and previous != current:
                    emit_event(TickEvent(tick_type, now))

    threading.Thread(target=run, name="tick-timer", daemon=True).start()
    return stop