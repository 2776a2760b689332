"""Start order of programs from their dependencies and priorities."""

from __future__ import annotations


class ProcessSorter:
    """Orders program entries: dependencies first, then by priority."""

    def __init__(self):
        self._depends_on: dict[str, list[str]] = {}
        self._without_depends: list = []

    def _init_depends(self, program_configs):
        for config in program_configs:
            if config.is_program() and config.has_parameter("depends_on"):
                name = config.get_program_name()
                for dep in config.get_string("depends_on", "").split(","):
                    dep = dep.strip()
                    if dep:
                        self._depends_on.setdefault(name, []).append(dep)

    def _depends_info(self):
        names: dict[str, None] = {}
        for name, deps in self._depends_on.items():
            names[name] = None
            names.update(dict.fromkeys(deps))
        return list(names)

    def _init_without_depends(self, program_configs):
        involved = set(self._depends_info())
        self._without_depends = [
            c for c in program_configs
            if c.is_program() and c.get_program_name() not in involved
        ]

    def _sort_depends(self):
        involved = self._depends_info()
        order = [name for name in involved if name not in self._depends_on]
        finished = set(order)
        while len(finished) < len(involved):
            progressed = False
            for name, deps in self._depends_on.items():
                if name not in finished and all(d in finished for d in deps):
                    finished.add(name)
                    order.append(name)
                    progressed = True
            if not progressed:
                pending = sorted(set(self._depends_on) - finished)
                raise ValueError(f"circular dependency among programs: {', '.join(pending)}")
        return order

    def sort_program(self, program_configs):
        """Return the program entries in start order."""
        program_configs = list(program_configs)
        self._depends_on = {}
        self._init_depends(program_configs)
        self._init_without_depends(program_configs)
        result = [
            config
            for prog in self._sort_depends()
            for config in program_configs
            if config.is_program() and config.get_program_name() == prog
        ]
        result.extend(sorted(self._without_depends, key=lambda c: c.get_int("priority", 999)))
        return result


def sort_program(configs):
    """Order program entries for starting."""
    return ProcessSorter().sort_program(configs)