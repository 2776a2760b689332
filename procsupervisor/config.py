"""Loading of the supervisor configuration file and its includes."""

from __future__ import annotations

import logging
import os
import re

from procsupervisor.config_entry import ConfigEntry
from procsupervisor.process_group import ProcessGroup
from procsupervisor.process_sort import sort_program
from procsupervisor.string_expression import StringExpression

log = logging.getLogger(__name__)

_PROGRAM = "program:"
_EVENT_LISTENER = "eventlistener:"
_GROUP = "group:"


def to_regexp(pattern):
    """Convert a file pattern with ``*`` and ``?`` into a regular expression."""
    parts = (part.replace("*", ".*").replace("?", ".") for part in pattern.split("."))
    return "\\.".join(parts)


def _read_ini(path, sections):
    """Merge the sections of an ini file into ``sections``; missing files are ignored."""
    try:
        with open(path, encoding="utf-8") as handle:
            lines = handle.read().splitlines()
    except OSError:
        return
    current = None
    for raw in lines:
        line = raw.strip()
        if not line or line[0] in ";#":
            continue
        if line.startswith("[") and line.endswith("]"):
            current = sections.setdefault(line[1:-1].strip(), {})
            continue
        if current is None:
            continue
        key, sep, value = line.partition("=")
        current[key.strip()] = value.strip() if sep else ""


def _to_int(text):
    try:
        return int(text)
    except (TypeError, ValueError):
        return None


class Config:
    """The parsed configuration: one entry per section or program process."""

    def __init__(self, config_file):
        self.config_file = config_file
        self.entries: dict[str, ConfigEntry] = {}
        self.program_group = ProcessGroup()

    def _create_entry(self, name, config_dir):
        entry = self.entries.get(name)
        if entry is None:
            entry = ConfigEntry(config_dir)
            self.entries[name] = entry
        return entry

    def load(self):
        """Read the file and its includes; return the names of the loaded programs."""
        sections: dict[str, dict[str, str]] = {}
        self.program_group = ProcessGroup()
        _read_ini(self.config_file, sections)
        for include in self._get_include_files(sections):
            _read_ini(include, sections)
        return self._parse(sections)

    def _get_include_files(self, sections):
        include = sections.get("include")
        if include is None or "files" not in include:
            return []
        config_dir = self.get_config_file_dir()
        env = StringExpression("here", config_dir)
        result = []
        for raw in include["files"].split():
            directory = config_dir
            try:
                pattern_path = env.eval(raw)
            except ValueError:
                continue
            if os.path.isabs(pattern_path):
                directory = os.path.dirname(pattern_path)
            try:
                names = sorted(os.listdir(directory))
            except OSError:
                continue
            pattern = to_regexp(os.path.basename(pattern_path))
            try:
                regex = re.compile(pattern)
            except re.error:
                continue
            result.extend(os.path.join(directory, name) for name in names if regex.search(name))
        return result

    def _parse(self, sections):
        self._parse_group(sections)
        loaded = self._parse_program(sections)
        config_dir = self.get_config_file_dir()
        for name, items in sections.items():
            if name.startswith((_GROUP, _PROGRAM, _EVENT_LISTENER)):
                continue
            self._create_entry(name, config_dir).parse(name, items.items())
        return loaded

    def _parse_group(self, sections):
        for name, items in sections.items():
            if not name.startswith(_GROUP):
                continue
            entry = self._create_entry(name, self.get_config_file_dir())
            entry.parse(name, items.items())
            group_name = entry.get_group_name()
            for program in entry.get_programs():
                self.program_group.add(group_name, program)

    def _parse_program(self, sections):
        loaded = []
        config_dir = self.get_config_file_dir()
        for name, items in sections.items():
            if name.startswith(_PROGRAM):
                prefix = _PROGRAM
            elif name.startswith(_EVENT_LISTENER):
                prefix = _EVENT_LISTENER
            else:
                continue
            program_name = name[len(prefix):]
            num_procs = _to_int(items.get("numprocs"))
            if num_procs is None:
                num_procs = 1
            proc_name_template = items.get("process_name")
            if num_procs > 1 and (
                proc_name_template is None or "%(process_num)" not in proc_name_template
            ):
                log.error("no process_num in process name: numprocs=%d process_name=%s",
                          num_procs, proc_name_template)
            original_proc_name = program_name if proc_name_template is None else proc_name_template
            command_template = items.get("command", "")

            for num in range(1, num_procs + 1):
                group = self.program_group.get_group(program_name, program_name)
                env = StringExpression(
                    "program_name", program_name,
                    "process_num", str(num),
                    "group_name", group,
                    "here", config_dir,
                )
                try:
                    command = env.eval(command_template)
                    proc_name = env.eval(original_proc_name)
                except ValueError:
                    continue
                items["command"] = command
                items["process_name"] = proc_name
                items["numprocs_start"] = str(num - 1)
                items["process_num"] = str(num)
                entry = self._create_entry(proc_name, config_dir)
                entry.parse(name, items.items())
                entry.name = prefix + proc_name
                entry.group = group
                loaded.append(proc_name)
        return loaded

    def get_config_file_dir(self):
        return os.path.dirname(self.config_file) or "."

    def get_unix_http_server(self):
        return self.entries.get("unix_http_server")

    def get_supervisord(self):
        return self.entries.get("supervisord")

    def get_inet_http_server(self):
        return self.entries.get("inet_http_server")

    def get_supervisorctl(self):
        return self.entries.get("supervisorctl")

    def get_entries(self, filter_func):
        return [entry for entry in self.entries.values() if filter_func(entry)]

    def get_groups(self):
        return self.get_entries(lambda entry: entry.is_group())

    def get_programs(self):
        """Program entries in start order."""
        return sort_program(self.get_entries(lambda entry: entry.is_program()))

    def get_event_listeners(self):
        return self.get_entries(lambda entry: entry.is_event_listener())

    def get_program_names(self):
        return [entry.get_program_name() for entry in self.get_programs()]

    def get_program(self, name):
        """The entry of the named program, or None."""
        for entry in self.entries.values():
            if entry.is_program() and entry.get_program_name() == name:
                return entry
        return None

    def remove_program(self, program_name):
        self.entries.pop(program_name, None)
        self.program_group.remove(program_name)

    def __str__(self):
        parts = [f"configFile:{self.config_file}\n"]
        for key, entry in self.entries.items():
            parts.append(f"[program:{key}]\n")
            parts.append(f"{entry}\n")
        return "".join(parts)