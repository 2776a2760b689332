# procsupervisor

Building blocks for a process supervisor. The package reads supervisord-style
ini configuration, works out the order in which programs start, checks whether
a program is ready, routes events to event listener programs and writes
program logs to files, standard streams or syslog.

It has no dependencies outside the standard library.

## Installation

```
pip install .
```

## Configuration

```python
from procsupervisor.config import Config

config = Config("/etc/supervisord.conf")
loaded = config.load()                # names of the loaded processes

for entry in config.get_programs():   # depends_on first, then by priority
    print(entry.get_program_name(), entry.group)
    print(entry.get_string("command", ""))
    print(entry.get_env("environment"))       # e.g. ["A=env1", "B=env2"]
    print(entry.get_bytes("stdout_logfile_maxbytes", 50 * 1024 * 1024))
```

- `Config.load()` reads the file, then every file matched by `[include] files`.
  Patterns use `*` and `?`; a relative pattern is looked up in the directory of
  the main file, an absolute one in its own directory.
- A program with `numprocs` greater than one yields one entry per process,
  named from its `process_name` setting.
- `[group:name] programs = a,b` puts programs into a group; otherwise a program
  is its own group. `Config.program_group` is a `ProcessGroup`, and
  `ProcessGroup.sub(other)` returns the groups added, changed and removed.
- `get_supervisord()`, `get_supervisorctl()`, `get_unix_http_server()` and
  `get_inet_http_server()` return those sections as `ConfigEntry` objects, or
  `None`.
- `ConfigEntry` offers `get_string`, `get_int`, `get_bool`, `get_bytes`
  (`1024`, `2KB`, `3MB`, `4GB`), `get_env`, `get_string_array` and
  `get_string_expression`.

`procsupervisor.process_sort.sort_program(entries)` orders program entries on
its own: programs that take part in `depends_on` come first with dependencies
before dependants, then the rest by `priority` (default 999). A dependency cycle
raises `ValueError`.

### Expressions

Values can refer to variables with `%(name)s` or a printf integer format such as
`%(name)02d`. Every environment variable is available as `ENV_<VAR>`, together
with `host_node_name` and, where they apply, `program_name`, `process_num`,
`group_name` and `here`:

```python
from procsupervisor.string_expression import StringExpression

expr = StringExpression().add("var1", "ok").add("var2", "2")
expr.eval("%(var1)s_test_%(var2)02d")   # "ok_test_02"
```

An unknown variable or a malformed expression raises `ValueError`.

## Readiness checks

```python
from procsupervisor.content_checker import BaseChecker, HttpChecker, ScriptChecker, TcpChecker

TcpChecker("127.0.0.1", 8999, ["Hello", "world"], 10).check()
HttpChecker("http://127.0.0.1:8999", 2).check()
ScriptChecker(["/usr/local/bin/healthcheck"]).check()
```

- `BaseChecker(includes, timeout)` is ready once every text in `includes` has
  been fed to `write()` before the timeout (in seconds).
- `TcpChecker` connects, retrying until the timeout, and checks what the server
  sends.
- `HttpChecker` retries a GET until the timeout and is ready on a 2xx status.
- `ScriptChecker` runs the command and is ready when it exits with status 0.

## Events

```python
from procsupervisor.events import create_process_running_event

event = create_process_running_event("proc-1", "group-1", "STARTING", 2766)
event.event_type   # "PROCESS_STATE_RUNNING"
event.body()       # "processname:proc-1 groupname:group-1 from_state:STARTING pid:2766"
```

`procsupervisor.event_listener` delivers events to listener programs:

- `EventListener(pool, server, stdin, stdout, buffer_size)` reads `READY` lines
  and `RESULT n` replies from the binary stream `stdin` and writes encoded
  events to `stdout`. An event is dropped from its queue only after an `OK`
  result; after `FAIL` it is sent again at the next `READY`.
- `register_event_listener(name, events, listener)` subscribes a listener to
  event types or to abstract types such as `PROCESS_STATE` or `TICK`;
  `emit_event(event)` hands an event to every subscribed listener, and
  `unregister_event_listener(name)` removes one.
- `ProcCommEventCapture` reads process output and emits the text between
  `<!--XSUPERVISOR:BEGIN-->` and `<!--XSUPERVISOR:END-->` as a
  `ProcCommEvent`.
- `start_tick_timer()` emits `TICK_5`, `TICK_60` and `TICK_3600` events from a
  background thread and returns a `threading.Event` that stops it when set.

## Program logs

```python
import threading
from procsupervisor.logger import NullLogEventEmitter, new_logger

log = new_logger("web", "web.log, /dev/stdout", threading.Lock(),
                 50 * 1024 * 1024, 10, NullLogEventEmitter())
log.write(b"started\n")
print(log.read_log(0, 0))
log.close()
```

The log file setting may list several destinations separated by commas: a file
path, `/dev/stdout`, `/dev/stderr`, `/dev/null`, `syslog` or
`syslog@[protocol:]host[:port]` (udp port 514 and tcp port 6514 by default).
The first destination decides what `write` returns and serves the read and
clear calls; only it emits log events.

- `FileLogger` rotates its file into `name.1` … `name.<backups>` once it
  reaches its size limit. `read_log(offset, length)` reads part of the file (a
  negative offset with length 0 counts from the end);
  `read_tail_log(offset, length)` returns the text, the next offset and an
  overflow flag.
- `StdLogEventEmitter` turns written output into `PROCESS_LOG_STDOUT` or
  `PROCESS_LOG_STDERR` events.
- `LogCaptureLogger` wraps another logger and also captures process
  communication events from the output.
- `procsupervisor.syslog_logger` holds `SysLogger`, `BackendSysLogWriter` and
  `parse_syslog_config`.

`FileLogger.read_log` and `clear_all_log_file`, and every read on a logger
without a file, raise `procsupervisor.faults.Fault`, which carries a
`FaultCode`. Bad arguments to `read_tail_log` raise `ValueError`.

## What the package does not do

It does not start, watch or restart processes itself, runs no daemon, no
control command and no remote-control server. It provides the configuration,
ordering, readiness, event and logging pieces that such a program is built
from.