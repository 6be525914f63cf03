"""Tests for the Sandbox builder and its argument compiler."""

from __future__ import annotations

import pytest

from hlsandbox.config import DEFAULT_SANDBOX_PATH, set_sandbox_path
from hlsandbox.sandbox import FileEntry, MountEntry, Sandbox


# -- Builder ----------------------------------------------------------------


class TestBuilder:
    def test_defaults(self):
        sb = Sandbox("/x")
        assert sb.path == "/x"
        assert sb.files == []
        assert sb.mount_dirs == []
        assert sb.env == []
        assert sb.no_new_net is False
        assert sb.cgroup == ""
        assert sb.cpu_set == ""
        assert sb.mem_limit == 0
        assert sb.save_usage_stat == ""
        assert sb.exec_dir == ""

    def test_setters_return_same_instance(self):
        sb = Sandbox("/x")
        assert sb.add_file("/a", "/b") is sb
        assert sb.mount_dir("/c", "/d") is sb
        assert sb.add_env("A=1") is sb
        assert sb.set_no_new_net(True) is sb
        assert sb.set_cgroup("g") is sb
        assert sb.set_cpu_set("0-1") is sb
        assert sb.set_mem_limit(1) is sb
        assert sb.set_save_usage_stat("/s") is sb
        assert sb.set_exec_dir("/w") is sb

    def test_last_write_wins(self):
        sb = (
            Sandbox("/x")
            .set_cgroup("first")
            .set_mem_limit(100)
            .set_cgroup("second")
            .set_cpu_set("0")
            .set_mem_limit(200)
            .set_no_new_net(True)
            .set_no_new_net(False)
            .set_exec_dir("/a")
            .set_exec_dir("/b")
        )
        assert sb.cgroup == "second"
        assert sb.mem_limit == 200
        assert sb.cpu_set == "0"
        assert sb.no_new_net is False
        assert sb.exec_dir == "/b"

    def test_lists_keep_insertion_order_and_duplicates(self):
        sb = (
            Sandbox("/x")
            .add_file("/a", "/dup")
            .add_file("/b", "/dup", with_libs=True)
            .mount_dir("/m1", "/in1")
            .mount_dir("/m2", "/in2")
        )
        assert sb.files == [
            FileEntry("/a", "/dup", False),
            FileEntry("/b", "/dup", True),
        ]
        assert sb.mount_dirs == [MountEntry("/m1", "/in1"), MountEntry("/m2", "/in2")]

    def test_env_entries_are_not_parsed(self):
        sb = Sandbox("/x").add_env("not-a-pair").add_env("A=1").add_env("A=2")
        assert sb.env == ["not-a-pair", "A=1", "A=2"]

    def test_path_keyword(self):
        sb = Sandbox(path="/x")
        assert sb.path == "/x"
        assert repr(sb).startswith("Sandbox(path='/x'")
        assert sb.build_exec_args("p") == ["/x", "--", "p"]

    def test_no_new_net_defaults_to_true_when_called(self):
        assert Sandbox("/x").set_no_new_net().no_new_net is True


# -- Argument compiler ------------------------------------------------------


class TestBuildExecArgs:
    def test_unconfigured(self):
        assert Sandbox("/x").build_exec_args("echo", ["hi"]) == ["/x", "--", "echo", "hi"]

    def test_go_test_example(self):
        sb = (
            Sandbox("/tmp/sb")
            .add_file("/bin/go", "/bin/go", True)
            .add_env("PATH=/usr/bin")
            .set_no_new_net(True)
            .set_mem_limit(536870912)
        )
        assert sb.build_exec_args("go", ["test", "./..."]) == [
            "/tmp/sb",
            "--add_elf_file", "/bin/go", "/bin/go",
            "--env", "PATH=/usr/bin",
            "--no_new_net",
            "--mem_limit", "536870912",
            "--", "go", "test", "./...",
        ]

    def test_full_ordering(self):
        # Setters called in a scrambled order; output order is fixed.
        sb = (
            Sandbox("/root")
            .set_exec_dir("/work")
            .add_env("A=1")
            .set_save_usage_stat("/tmp/usage")
            .mount_dir("/host/dir", "/dir")
            .set_mem_limit(1024)
            .set_cpu_set("2-3")
            .add_file("/etc/hosts", "/etc/hosts")
            .set_cgroup("judge")
            .set_no_new_net(True)
            .add_file("/bin/sh", "/bin/sh", with_libs=True)
            .add_env("B=2")
        )
        assert sb.build_exec_args("/bin/sh", ["-c", "true"]) == [
            "/root",
            "--add_file", "/etc/hosts", "/etc/hosts",
            "--add_elf_file", "/bin/sh", "/bin/sh",
            "--mount_dir", "/host/dir", "/dir",
            "--env", "A=1",
            "--env", "B=2",
            "--no_new_net",
            "--cgroup", "judge",
            "--cpuset", "2-3",
            "--mem_limit", "1024",
            "--save_usage_stat", "/tmp/usage",
            "--exec_dir", "/work",
            "--", "/bin/sh", "-c", "true",
        ]

    def test_no_args(self):
        assert Sandbox("/x").build_exec_args("true") == ["/x", "--", "true"]

    @pytest.mark.parametrize(
        "setter, value, expected",
        [
            ("set_cgroup", "g1", ["--cgroup", "g1"]),
            ("set_cpu_set", "0,2", ["--cpuset", "0,2"]),
            ("set_mem_limit", 4096, ["--mem_limit", "4096"]),
            ("set_save_usage_stat", "/u.json", ["--save_usage_stat", "/u.json"]),
            ("set_exec_dir", "/w", ["--exec_dir", "/w"]),
        ],
    )
    def test_optional_scalar_adds_exactly_two_tokens(self, setter, value, expected):
        sb = Sandbox("/x").add_env("A=1")
        before = sb.build_exec_args("p", ["a"])
        getattr(sb, setter)(value)
        after = sb.build_exec_args("p", ["a"])

        assert len(after) == len(before) + 2
        sep = before.index("--")
        assert after[:sep] == before[:sep]
        assert after[sep:sep + 2] == expected
        assert after[sep + 2:] == before[sep:]

    @pytest.mark.parametrize(
        "setter, unset",
        [
            ("set_cgroup", ""),
            ("set_cpu_set", ""),
            ("set_mem_limit", 0),
            ("set_save_usage_stat", ""),
            ("set_exec_dir", ""),
        ],
    )
    def test_resetting_to_default_omits_flag(self, setter, unset):
        sb = Sandbox("/x")
        getattr(sb, setter)("v" if unset == "" else 7)
        getattr(sb, setter)(unset)
        assert sb.build_exec_args("p") == ["/x", "--", "p"]

    def test_no_new_net_is_a_bare_flag(self):
        sb = Sandbox("/x")
        assert "--no_new_net" not in sb.build_exec_args("p")
        sb.set_no_new_net(True)
        out = sb.build_exec_args("p")
        assert out == ["/x", "--no_new_net", "--", "p"]

    def test_separator_appears_once_before_program(self):
        sb = (
            Sandbox("/x")
            .add_file("/a", "/b")
            .add_env("X=--")
            .set_cgroup("g")
        )
        out = sb.build_exec_args("prog", ["--", "--flag"])
        prog_idx = out.index("prog")
        assert out[prog_idx - 1] == "--"
        assert out[:prog_idx].count("--") == 1
        assert out[prog_idx + 1:] == ["--", "--flag"]

    def test_idempotent_and_does_not_mutate(self):
        sb = Sandbox("/x").add_file("/a", "/b", True).mount_dir("/c", "/d").set_mem_limit(5)
        first = sb.build_exec_args("p", ["1"])
        second = sb.build_exec_args("p", ["1"])
        assert first == second
        assert first is not second
        assert sb.files == [FileEntry("/a", "/b", True)]
        assert sb.mem_limit == 5

    def test_same_config_against_different_programs(self):
        sb = Sandbox("/x").add_env("A=1")
        assert sb.build_exec_args("a", ["1"]) == ["/x", "--env", "A=1", "--", "a", "1"]
        assert sb.build_exec_args("b", []) == ["/x", "--env", "A=1", "--", "b"]

    def test_mutating_returned_list_does_not_leak(self):
        sb = Sandbox("/x")
        out = sb.build_exec_args("p")
        out.append("junk")
        assert sb.build_exec_args("p") == ["/x", "--", "p"]

    def test_large_mem_limit_is_decimal(self):
        sb = Sandbox("/x").set_mem_limit(2**64 - 1)
        assert sb.build_exec_args("p")[1:3] == ["--mem_limit", "18446744073709551615"]


# -- Command construction ---------------------------------------------------


class TestCommand:
    def test_uses_process_wide_path(self):
        cmd = Sandbox("/x").command("echo", "hi")
        assert cmd.executable == DEFAULT_SANDBOX_PATH
        assert cmd.argv == [DEFAULT_SANDBOX_PATH, "/x", "--", "echo", "hi"]

    def test_path_read_at_command_time(self):
        sb = Sandbox("/x")
        set_sandbox_path("/opt/sandbox")
        assert sb.command("true").executable == "/opt/sandbox"

    def test_explicit_executable_override(self):
        cmd = Sandbox("/x").command("true", executable="/custom/sandbox")
        assert cmd.argv[0] == "/custom/sandbox"

    def test_command_is_not_started(self):
        cmd = Sandbox("/x").command("true")
        assert cmd.process is None
        assert cmd.pid is None
        assert cmd.returncode is None

    def test_async_command_args(self):
        cmd = Sandbox("/x").set_no_new_net().command_async("echo", "hi")
        assert cmd.args == ["/x", "--no_new_net", "--", "echo", "hi"]
        assert cmd.process is None
