"""Mapping between processes and the groups they belong to."""

from __future__ import annotations


class ProcessGroup:
    """Keeps, for every process name, the name of its group."""

    def __init__(self):
        self._groups: dict[str, str] = {}

    def clone(self):
        """Return an independent copy."""
        copy = ProcessGroup()
        copy._groups.update(self._groups)
        return copy

    def sub(self, other):
        """Compare with ``other``; return (added, changed, removed) groups."""
        this_groups = self.get_all_group()
        other_groups = other.get_all_group()
        added = [g for g in this_groups if g not in other_groups]
        removed = [g for g in other_groups if g not in this_groups]
        changed = []
        for group in this_groups:
            mine = self.get_all_process(group)
            theirs = other.get_all_process(group)
            if theirs and sorted(mine) != sorted(theirs):
                changed.append(group)
        return added, changed, removed

    def add(self, group, proc_name):
        self._groups[proc_name] = group

    def remove(self, proc_name):
        self._groups.pop(proc_name, None)

    def get_all_group(self):
        return list(dict.fromkeys(self._groups.values()))

    def get_all_process(self, group):
        return [proc for proc, g in self._groups.items() if g == group]

    def in_group(self, proc_name, group):
        return self._groups.get(proc_name) == group

    def for_each_process(self, proc_func):
        """Call ``proc_func(group, proc_name)`` for every process."""
        for proc_name, group in list(self._groups.items()):
            proc_func(group, proc_name)

    def get_group(self, proc_name, def_group):
        """Return the group of a process, assigning ``def_group`` if it has none."""
        return self._groups.setdefault(proc_name, def_group)

    def __str__(self):
        return "".join(
            f"{group}:{','.join(self.get_all_process(group))};"
            for group in self.get_all_group()
        )