[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "procsupervisor"
version = "0.1.0"
description = "Building blocks for a process supervisor: configuration, start ordering, readiness checks, events and program logs"
requires-python = ">=3.10"
dependencies = []
keywords = ["supervisor", "process", "configuration", "events", "logging", "syslog"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["procsupervisor"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
