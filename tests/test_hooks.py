from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from otter.command_runner import CommandResult, RecordingCommandRunner, SubprocessCommandRunner
from otter.console import RecordingConsole
from otter.environment import RuntimeContext
from otter.errors import HookError, MergeError
from otter.hooks import HookExecutor


class HookExecutorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name).resolve()
        self.console = RecordingConsole()
        self.context = RuntimeContext(
            os_name="linux",
            architecture="amd64",
            cwd=self.root,
            environ={"SHELL": "/bin/sh"},
        )

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def executor(self, runner=None) -> HookExecutor:
        return HookExecutor(self.root, runner or SubprocessCommandRunner(), self.console, self.context)

    def test_commands_run_in_working_directory(self) -> None:
        self.executor().run(["echo one > first.txt", "pwd > where.txt"], "BEFORE")

        self.assertEqual((self.root / "first.txt").read_text(encoding="utf-8"), "one\n")
        self.assertEqual((self.root / "where.txt").read_text(encoding="utf-8").strip(), str(self.root))
        self.assertEqual(
            self.console.lines("info"),
            ["  Executing BEFORE commands:", "    [1/2] echo one > first.txt", "    [2/2] pwd > where.txt"],
        )

    def test_stops_at_first_failure(self) -> None:
        with self.assertRaises(HookError) as ctx:
            self.executor().run(["true", "false", "touch unreachable"], "BEFORE")

        self.assertEqual(ctx.exception.command, "false")
        self.assertEqual(ctx.exception.returncode, 1)
        self.assertEqual(ctx.exception.hook_phase, "BEFORE")
        self.assertIn("failed to execute BEFORE command 'false': exit status 1", str(ctx.exception))
        self.assertFalse((self.root / "unreachable").exists())

    def test_empty_list_does_nothing(self) -> None:
        runner = RecordingCommandRunner()
        self.executor(runner).run([], "AFTER")
        self.assertEqual(runner.commands, [])
        self.assertEqual(self.console.messages, [])

    def test_blank_command_is_an_error(self) -> None:
        with self.assertRaises(HookError):
            self.executor(RecordingCommandRunner()).run(["   "], "AFTER")

    def test_shell_selection(self) -> None:
        runner = RecordingCommandRunner()
        self.executor(runner).run(["make build"], "ON_BEFORE_BUILD")
        self.assertEqual(list(runner.iter_commands()), [["/bin/sh", "-c", "make build"]])
        self.assertEqual(runner.commands[0].cwd, str(self.root))
        self.assertTrue(runner.commands[0].stream)

        explicit = HookExecutor(self.root, runner, self.console, self.context, shell="/bin/bash")
        self.assertEqual(explicit.shell_command("ls"), ["/bin/bash", "-c", "ls"])

        no_shell = RuntimeContext(os_name="linux", architecture="amd64", cwd=self.root)
        self.assertEqual(
            HookExecutor(self.root, runner, self.console, no_shell).shell_command("ls"),
            ["/bin/sh", "-c", "ls"],
        )

        windows = RuntimeContext(os_name="windows", architecture="amd64", cwd=self.root)
        self.assertEqual(
            HookExecutor(self.root, runner, self.console, windows).shell_command("dir"),
            ["cmd", "/c", "dir"],
        )

    def test_cleanup_runs_and_original_error_propagates(self) -> None:
        runner = RecordingCommandRunner(
            {("/bin/sh", "-c", "make"): CommandResult(command=[], returncode=2, stdout="", stderr="")}
        )
        with self.assertRaises(HookError) as ctx:
            self.executor(runner).run_with_cleanup(["make", "echo never"], "ON_AFTER_BUILD", ["make clean"])

        self.assertEqual(ctx.exception.command, "make")
        self.assertEqual(
            list(runner.iter_commands()),
            [["/bin/sh", "-c", "make"], ["/bin/sh", "-c", "make clean"]],
        )

    def test_cleanup_on_failure_wraps_any_build_error(self) -> None:
        runner = RecordingCommandRunner()
        executor = self.executor(runner)

        with self.assertRaises(MergeError):
            with executor.cleanup_on_failure(["rm -rf out"], "ON_ERROR"):
                raise MergeError("disk full")

        self.assertEqual(list(runner.iter_commands()), [["/bin/sh", "-c", "rm -rf out"]])
        self.assertIn("  Error occurred, running ON_ERROR commands:", self.console.lines("info"))

    def test_cleanup_on_failure_is_idle_on_success(self) -> None:
        runner = RecordingCommandRunner()
        with self.executor(runner).cleanup_on_failure(["rm -rf out"], "ON_ERROR"):
            pass
        self.assertEqual(runner.commands, [])

    def test_best_effort_reports_failure(self) -> None:
        error = self.executor().run_best_effort(["exit 3"], "ON_ERROR")

        self.assertIsInstance(error, HookError)
        self.assertEqual(error.returncode, 3)
        self.assertTrue(any("ON_ERROR commands failed" in line for line in self.console.lines("warn")))

    def test_best_effort_success(self) -> None:
        self.assertIsNone(self.executor().run_best_effort(["true"], "ON_ERROR"))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
