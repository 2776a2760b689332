"""A single section of the configuration file."""

from __future__ import annotations

import logging
import re
import socket

from procsupervisor.string_expression import StringExpression

log = logging.getLogger(__name__)

_INTEGER = re.compile(r"[+-]?\d+")
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}
_BYTE_UNITS = {"KB": 1024, "MB": 1024 * 1024, "GB": 1024 * 1024 * 1024}


def _to_int(text, factor, def_value):
    if _INTEGER.fullmatch(text):
        return int(text) * factor
    return def_value


def _split_env(value):
    """Split ``A="x",B=y`` into ``["A=x", "B=y"]``."""
    pairs = []
    n = len(value)
    start = 0
    while True:
        eq = value.find("=", start)
        if eq == -1:
            eq = n
        key = value[start:eq].strip()
        start = eq + 1
        if start < n and value[start] == '"':
            close = value.find('"', start + 1)
            if close == -1:
                break
            pairs.append(f"{key}={value[start + 1:close].strip()}")
            if close + 1 < n and value[close + 1] == ",":
                start = close + 2
            else:
                break
        else:
            comma = value.find(",", start)
            if comma == -1:
                pairs.append(f"{key}={value[start:].strip()}")
                break
            pairs.append(f"{key}={value[start:comma].strip()}")
            start = comma + 1
    return pairs


class ConfigEntry:
    """Key/value settings of one named configuration section."""

    def __init__(self, config_dir):
        self.config_dir = config_dir
        self.group = ""
        self.name = ""
        self.key_values: dict[str, str] = {}

    def set(self, key, value):
        self.key_values[key] = value

    def parse(self, name, items):
        """Take the section name and its key/value pairs."""
        self.name = name
        self.key_values.update(dict(items))

    def _suffix(self, prefix):
        return self.name[len(prefix):] if self.name.startswith(prefix) else ""

    def is_program(self):
        return self.name.startswith("program:")

    def get_program_name(self):
        return self._suffix("program:")

    def is_event_listener(self):
        return self.name.startswith("eventlistener:")

    def get_event_listener_name(self):
        return self._suffix("eventlistener:")

    def is_group(self):
        return self.name.startswith("group:")

    def get_group_name(self):
        return self._suffix("group:")

    def get_programs(self):
        """Program names listed by a group section."""
        if not self.is_group():
            return []
        return [p.strip() for p in self.get_string_array("programs", ",")]

    def get_bool(self, key, def_value):
        value = self.key_values.get(key)
        if value in _TRUE:
            return True
        if value in _FALSE:
            return False
        return def_value

    def has_parameter(self, key):
        return key in self.key_values

    def get_int(self, key, def_value):
        if key in self.key_values:
            return _to_int(self.key_values[key], 1, def_value)
        return def_value

    def _expression(self, **extra):
        se = StringExpression(
            "program_name", self.get_program_name(),
            "process_num", self.get_string("process_num", "0"),
            "group_name", self.get_group_name(),
            "here", self.config_dir,
        )
        for key, value in extra.items():
            se.add(key, value)
        return se

    def get_env(self, key):
        """Environment settings such as ``A="env 1",B=other`` as ``NAME=value`` strings."""
        if key not in self.key_values:
            return []
        se = self._expression()
        result = []
        for item in _split_env(self.key_values[key]):
            try:
                result.append(se.eval(item))
            except ValueError:
                continue
        return result

    def get_string(self, key, def_value):
        if key not in self.key_values:
            return def_value
        try:
            return StringExpression("here", self.config_dir).eval(self.key_values[key])
        except ValueError as exc:
            log.warning("Unable to parse expression: program=%s key=%s error=%s",
                        self.get_program_name(), key, exc)
            return def_value

    def get_string_expression(self, key, def_value):
        """Expand the value with program variables; empty when the key is unset."""
        raw = self.key_values.get(key, "")
        if raw == "":
            return ""
        try:
            host_name = socket.gethostname()
        except OSError:
            host_name = "Unknown"
        try:
            return self._expression(host_node_name=host_name).eval(raw)
        except ValueError as exc:
            log.warning("unable to parse expression: program=%s key=%s error=%s",
                        self.get_program_name(), key, exc)
            return raw

    def get_string_array(self, key, sep):
        if key not in self.key_values:
            return []
        return self.key_values[key].split(sep)

    def get_bytes(self, key, def_value):
        """Size settings such as ``1024``, ``2KB``, ``3MB`` or ``4GB``."""
        if key not in self.key_values:
            return def_value
        value = self.key_values[key]
        if len(value) > 2 and value[-2:] in _BYTE_UNITS:
            return _to_int(value[:-2], _BYTE_UNITS[value[-2:]], def_value)
        return _to_int(value, 1, def_value)

    def __str__(self):
        lines = [f"configDir={self.config_dir}", f"group={self.group}"]
        lines.extend(f"{k}={v}" for k, v in self.key_values.items())
        return "".join(line + "\n" for line in lines)