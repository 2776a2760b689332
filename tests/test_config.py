import re

import pytest

from procsupervisor.config import Config, to_regexp


@pytest.fixture
def parse(tmp_path):
    def _parse(text):
        path = tmp_path / "supervisord.conf"
        path.write_text(text)
        config = Config(str(path))
        config.load()
        return config

    return _parse


def test_program_config(parse):
    config = parse("[program:test]\ncommand=/bin/ls")
    assert len(config.get_programs()) == 1
    assert config.get_program("test").get_program_name() == "test"
    assert config.get_program("app") is None


def test_get_bool_value(parse):
    entry = parse("[program:test]\na=true\nb=false\n").get_program("test")
    assert entry.get_bool("a", False) is True
    assert entry.get_bool("b", True) is False
    assert entry.get_bool("c", False) is False


def test_get_int_value(parse):
    entry = parse("[program:test]\na=1\nb=2\n").get_program("test")
    assert entry.get_int("a", 0) == 1
    assert entry.get_int("b", 0) == 2
    assert entry.get_int("c", 9) == 9


def test_get_string_value(parse):
    entry = parse("[program:test]\na=test\nb=hello\n").get_program("test")
    assert entry.get_string("a", "") == "test"
    assert entry.get_string("b", "") == "hello"
    assert entry.get_string("c", "") == ""


@pytest.mark.parametrize("value", ['A="env1",B=env2', 'A=env1,B="env2"'])
def test_get_env_value(parse, value):
    entry = parse(f"[program:test]\na={value}").get_program("test")
    assert entry.get_env("a") == ["A=env1", "B=env2"]


def test_get_bytes(parse):
    entry = parse("[program:test]\nA=1024\nB=2KB\nC=3MB\nD=4GB\nE=test").get_program("test")
    assert entry.get_bytes("A", 0) == 1024
    assert entry.get_bytes("B", 0) == 2048
    assert entry.get_bytes("C", 0) == 3 * 1024 * 1024
    assert entry.get_bytes("D", 0) == 4 * 1024 * 1024 * 1024
    assert entry.get_bytes("E", 0) == 0
    assert entry.get_bytes("F", -1) == -1


def test_get_unix_http_server(parse):
    config = parse("[program:test]\nA=1024\nB=2KB\n[unix_http_server]\n")
    entry = config.get_unix_http_server()
    assert entry.get_program_name() == ""
    assert config.get_supervisord() is None


def test_program_in_group(parse):
    config = parse(
        "[program:test1]\nA=123\n[group:test]\nprograms=test1,test2\n"
        "[program:test2]\nB=hello\n[program:test3]\nC=tt"
    )
    assert config.get_program("test1").group == "test"
    assert config.get_program("test2").group == "test"
    assert config.get_program("test3").group == "test3"
    assert [g.get_group_name() for g in config.get_groups()] == ["test"]


def test_to_regexp():
    pattern = to_regexp("/an/absolute/*.conf")
    assert pattern == r"/an/absolute/.*\.conf"
    assert bool(re.search(pattern, "/an/absolute/ab.conf")) is True
    assert bool(re.search(pattern, "/an/absolute/abconf")) is False

    pattern = to_regexp("/an/absolute/??.conf")
    assert pattern == r"/an/absolute/..\.conf"
    assert bool(re.search(pattern, "/an/absolute/ab.conf")) is True
    assert bool(re.search(pattern, "/an/absolute/abconf")) is False
    assert bool(re.search(pattern, "/an/absolute/abc.conf")) is False


def test_config_with_include(tmp_path):
    (tmp_path / "file1").write_text("[program:cat]\ncommand=pwd\nA=abc\n[include]\nfiles=*.conf")
    (tmp_path / "file2.conf").write_text("[program:ls]\ncommand=ls\n")
    config = Config(str(tmp_path / "file1"))
    loaded = config.load()
    assert sorted(loaded) == ["cat", "ls"]
    assert config.get_program("ls").get_string("command", "") == "ls"


def test_numprocs_expands_processes(parse):
    config = parse(
        "[program:x]\ncommand=run\nprocess_name=x_%(process_num)02d\nnumprocs=2\n"
    )
    assert sorted(config.get_program_names()) == ["x_01", "x_02"]
    assert config.get_program("x_02").get_string("process_num", "") == "2"
    assert config.get_program("x_01").group == "x"


def test_here_expands_to_config_dir(parse, tmp_path):
    entry = parse("[program:a]\ncommand=%(here)s/run\n").get_program("a")
    assert entry.get_string("command", "") == f"{tmp_path}/run"


def test_program_order_follows_priority(parse):
    config = parse("[program:a]\npriority=20\n[program:b]\npriority=10\n")
    assert config.get_program_names() == ["b", "a"]


def test_remove_program(parse):
    config = parse("[program:a]\ncommand=x\n[program:b]\ncommand=y\n")
    config.remove_program("a")
    assert config.get_program("a") is None
    assert config.get_program_names() == ["b"]


def test_missing_file_loads_nothing(tmp_path):
    config = Config(str(tmp_path / "absent.conf"))
    assert config.load() == []
    assert config.get_programs() == []


def test_supervisorctl_section(parse):
    config = parse("[supervisorctl]\nserverurl=http://localhost:9001\n")
    assert config.get_supervisorctl().get_string("serverurl", "") == "http://localhost:9001"