"""Events raised by the supervisor and the bodies sent to listeners."""

from __future__ import annotations

import itertools
import threading

_serial_counter = itertools.count(1)
_serial_lock = threading.Lock()


def next_event_serial():
    """Return the next serial number shared by all events."""
    with _serial_lock:
        return next(_serial_counter)


class Event:
    """An event of a given type with a unique, increasing serial number."""

    def __init__(self, event_type):
        self.event_type = event_type
        self.serial = next_event_serial()

    def body(self):
        """The payload sent to event listeners after the header."""
        return ""

    def __repr__(self):
        return f"{type(self).__name__}(type={self.event_type!r}, serial={self.serial})"


class RemoteCommunicationEvent(Event):
    """A message sent to the supervisor by a remote client."""

    def __init__(self, typ, data):
        super().__init__("REMOTE_COMMUNICATION")
        self.typ = typ
        self.data = data

    def body(self):
        return f"type:{self.typ}\n{self.data}"


class ProcCommEvent(Event):
    """Data a process wrapped in communication markers on its output."""

    def __init__(self, event_type, proc_name, group_name, pid, data):
        super().__init__(event_type)
        self.process_name = proc_name
        self.group_name = group_name
        self.pid = pid
        self.data = data

    def body(self):
        return (f"processname:{self.process_name} groupname:{self.group_name} "
                f"pid:{self.pid}\n{self.data}")


class TickEvent(Event):
    """A periodic tick such as ``TICK_5``."""

    def __init__(self, tick_type, when):
        super().__init__(tick_type)
        self.when = when

    def body(self):
        return f"when:{self.when}"


class ProcessStateEvent(Event):
    """A change in the state of a supervised process."""

    def __init__(self, event_type, process_name, group_name, from_state, tries, expected, pid):
        super().__init__(event_type)
        self.process_name = process_name
        self.group_name = group_name
        self.from_state = from_state
        self.tries = tries
        self.expected = expected
        self.pid = pid

    def body(self):
        text = (f"processname:{self.process_name} groupname:{self.group_name} "
                f"from_state:{self.from_state}")
        if self.tries >= 0:
            text += f" tries:{self.tries}"
        if self.expected != -1:
            text += f" expected:{self.expected}"
        if self.pid != 0:
            text += f" pid:{self.pid}"
        return text


class SupervisorStateChangeEvent(Event):
    """The supervisor itself started running or is stopping."""

    def __init__(self, event_type):
        super().__init__(event_type)


class ProcessLogEvent(Event):
    """Output written by a process to its stdout or stderr log."""

    def __init__(self, event_type, process_name, group_name, pid, data):
        super().__init__(event_type)
        self.process_name = process_name
        self.group_name = group_name
        self.pid = pid
        self.data = data

    def body(self):
        return (f"processname:{self.process_name} groupname:{self.group_name} "
                f"pid:{self.pid}\n{self.data}")


class ProcessGroupEvent(Event):
    """A process group was added or removed."""

    def __init__(self, event_type, group_name):
        super().__init__(event_type)
        self.group_name = group_name

    def body(self):
        return f"groupname:{self.group_name}"


def create_process_starting_event(process, group, from_state, tries):
    return ProcessStateEvent("PROCESS_STATE_STARTING", process, group, from_state, tries, -1, 0)


def create_process_running_event(process, group, from_state, pid):
    return ProcessStateEvent("PROCESS_STATE_RUNNING", process, group, from_state, -1, -1, pid)


def create_process_backoff_event(process, group, from_state, tries):
    return ProcessStateEvent("PROCESS_STATE_BACKOFF", process, group, from_state, tries, -1, 0)


def create_process_stopping_event(process, group, from_state, pid):
    return ProcessStateEvent("PROCESS_STATE_STOPPING", process, group, from_state, -1, -1, pid)


def create_process_exited_event(process, group, from_state, expected, pid):
    return ProcessStateEvent("PROCESS_STATE_EXITED", process, group, from_state, -1, expected, pid)


def create_process_stopped_event(process, group, from_state, pid):
    return ProcessStateEvent("PROCESS_STATE_STOPPED", process, group, from_state, -1, -1, pid)


def create_process_fatal_event(process, group, from_state):
    return ProcessStateEvent("PROCESS_STATE_FATAL", process, group, from_state, -1, -1, 0)


def create_process_unknown_event(process, group, from_state):
    return ProcessStateEvent("PROCESS_STATE_UNKNOWN", process, group, from_state, -1, -1, 0)


def create_supervisor_state_change_running():
    return SupervisorStateChangeEvent("SUPERVISOR_STATE_CHANGE_RUNNING")


def create_supervisor_state_change_stopping():
    return SupervisorStateChangeEvent("SUPERVISOR_STATE_CHANGE_STOPPING")


def create_process_log_stdout_event(process_name, group_name, pid, data):
    return ProcessLogEvent("PROCESS_LOG_STDOUT", process_name, group_name, pid, data)


def create_process_log_stderr_event(process_name, group_name, pid, data):
    return ProcessLogEvent("PROCESS_LOG_STDERR", process_name, group_name, pid, data)


def create_process_group_added_event(group_name):
    return ProcessGroupEvent("PROCESS_GROUP_ADDED", group_name)


def create_process_group_removed_event(group_name):
    return ProcessGroupEvent("PROCESS_GROUP_REMOVED", group_name)