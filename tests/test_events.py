import pytest

from procsupervisor import events


def test_event_serial_increases():
    v1 = events.next_event_serial()
    v2 = events.next_event_serial()
    assert v2 > v1


def test_each_event_gets_new_serial():
    e1 = events.create_process_fatal_event("p", "g", "BACKOFF")
    e2 = events.create_process_fatal_event("p", "g", "BACKOFF")
    assert e2.serial > e1.serial


def test_process_starting_event():
    event = events.create_process_starting_event("proc-1", "group-1", "STOPPED", 0)
    assert event.event_type == "PROCESS_STATE_STARTING"
    assert event.body() == "processname:proc-1 groupname:group-1 from_state:STOPPED tries:0"


def test_process_running_event():
    event = events.create_process_running_event("proc-1", "group-1", "STARTING", 2766)
    assert event.event_type == "PROCESS_STATE_RUNNING"
    assert event.body() == "processname:proc-1 groupname:group-1 from_state:STARTING pid:2766"


def test_process_backoff_event():
    event = events.create_process_backoff_event("proc-1", "group-1", "STARTING", 1)
    assert event.event_type == "PROCESS_STATE_BACKOFF"
    assert event.body() == "processname:proc-1 groupname:group-1 from_state:STARTING tries:1"


def test_process_stopping_event():
    event = events.create_process_stopping_event("proc-1", "group-1", "STARTING", 2766)
    assert event.event_type == "PROCESS_STATE_STOPPING"
    assert event.body() == "processname:proc-1 groupname:group-1 from_state:STARTING pid:2766"


def test_process_exited_event():
    event = events.create_process_exited_event("proc-1", "group-1", "RUNNING", 1, 2766)
    assert event.event_type == "PROCESS_STATE_EXITED"
    assert event.body() == (
        "processname:proc-1 groupname:group-1 from_state:RUNNING expected:1 pid:2766"
    )


def test_process_stopped_event():
    event = events.create_process_stopped_event("proc-1", "group-1", "STOPPING", 2766)
    assert event.event_type == "PROCESS_STATE_STOPPED"
    assert event.body() == "processname:proc-1 groupname:group-1 from_state:STOPPING pid:2766"


def test_process_fatal_event():
    event = events.create_process_fatal_event("proc-1", "group-1", "BACKOFF")
    assert event.event_type == "PROCESS_STATE_FATAL"
    assert event.body() == "processname:proc-1 groupname:group-1 from_state:BACKOFF"


def test_process_unknown_event():
    event = events.create_process_unknown_event("proc-1", "group-1", "BACKOFF")
    assert event.event_type == "PROCESS_STATE_UNKNOWN"
    assert event.body() == "processname:proc-1 groupname:group-1 from_state:BACKOFF"


def test_remote_communication_event():
    event = events.RemoteCommunicationEvent("type-1", "hello")
    assert event.event_type == "REMOTE_COMMUNICATION"
    assert event.body() == "type:type-1\nhello"


def test_proc_comm_event():
    event = events.ProcCommEvent("PROCESS_COMMUNICATION_STDOUT", "proc-1", "group-1", 99, "data")
    assert event.event_type == "PROCESS_COMMUNICATION_STDOUT"
    assert event.body() == "processname:proc-1 groupname:group-1 pid:99\ndata"


def test_tick_event():
    event = events.TickEvent("TICK_60", 1200)
    assert event.event_type == "TICK_60"
    assert event.body() == "when:1200"


@pytest.mark.parametrize(
    "factory, expected_type",
    [
        (events.create_supervisor_state_change_running, "SUPERVISOR_STATE_CHANGE_RUNNING"),
        (events.create_supervisor_state_change_stopping, "SUPERVISOR_STATE_CHANGE_STOPPING"),
    ],
)
def test_supervisor_state_change(factory, expected_type):
    event = factory()
    assert event.event_type == expected_type
    assert event.body() == ""


def test_process_log_events():
    out = events.create_process_log_stdout_event("proc-1", "group-1", 10, "line\n")
    err = events.create_process_log_stderr_event("proc-1", "group-1", 10, "oops")
    assert out.event_type == "PROCESS_LOG_STDOUT"
    assert err.event_type == "PROCESS_LOG_STDERR"
    assert out.body() == "processname:proc-1 groupname:group-1 pid:10\nline\n"
    assert err.body() == "processname:proc-1 groupname:group-1 pid:10\noops"


def test_process_group_events():
    added = events.create_process_group_added_event("web")
    removed = events.create_process_group_removed_event("web")
    assert added.event_type == "PROCESS_GROUP_ADDED"
    assert removed.event_type == "PROCESS_GROUP_REMOVED"
    assert added.body() == "groupname:web"
    assert removed.body() == "groupname:web"