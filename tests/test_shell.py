"""Tests for the subprocess seam."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from minienv.secrets import SecretMasker
from minienv.shell import Shell


def _completed(returncode=0, stdout=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr="")


class TestShellRun:
    """Tests for state-changing commands."""

    @patch("minienv.shell.subprocess.run")
    def test_run_passes_arguments(self, mock_run):
        mock_run.return_value = _completed()
        Shell().run(["kubectl", "apply", "-f", "x.yaml"], check=False)

        args, kwargs = mock_run.call_args
        assert args[0] == ["kubectl", "apply", "-f", "x.yaml"]
        assert kwargs["check"] is False
        assert kwargs["text"] is True
        assert kwargs["env"] is None

    @patch("minienv.shell.subprocess.run")
    def test_run_capture_and_quiet(self, mock_run):
        mock_run.return_value = _completed()
        shell = Shell()

        shell.run(["kubectl", "version"], capture=True)
        assert mock_run.call_args.kwargs["capture_output"] is True

        shell.run(["kubectl", "wait"], quiet=True)
        assert mock_run.call_args.kwargs["stdout"] is subprocess.DEVNULL
        assert mock_run.call_args.kwargs["stderr"] is subprocess.DEVNULL

    @patch("minienv.shell.subprocess.run")
    def test_run_propagates_called_process_error(self, mock_run):
        mock_run.side_effect = subprocess.CalledProcessError(1, ["kubectl"])
        with pytest.raises(subprocess.CalledProcessError):
            Shell().run(["kubectl", "apply"])

    @patch("minienv.shell.subprocess.run")
    def test_dry_run_does_not_execute(self, mock_run, capsys):
        result = Shell(dry_run=True).run(["kubectl", "delete", "-f", "x.yaml"])

        mock_run.assert_not_called()
        assert result.returncode == 0
        assert "[dry-run] kubectl delete -f x.yaml" in capsys.readouterr().out

    @patch("minienv.shell.subprocess.run")
    def test_dry_run_masks_secrets(self, mock_run, capsys):
        masker = SecretMasker()
        masker.register_secret("s3cret-pw")
        Shell(dry_run=True, masker=masker).run(["psql", "--password=s3cret-pw"])

        out = capsys.readouterr().out
        assert "s3cret-pw" not in out
        assert "--password=***" in out

    @patch("minienv.shell.subprocess.run")
    def test_env_is_merged_with_os_environ(self, mock_run, monkeypatch):
        monkeypatch.setenv("EXISTING", "1")
        mock_run.return_value = _completed()
        Shell(env={"PROJECT_NAME": "demo"}).run(["true"])

        env = mock_run.call_args.kwargs["env"]
        assert env["PROJECT_NAME"] == "demo"
        assert env["EXISTING"] == "1"


class TestShellRunToFile:
    """Tests for commands whose stdout goes to a local file."""

    @patch("minienv.shell.subprocess.run")
    def test_writes_stdout_to_file(self, mock_run, tmp_path):
        def dump(args, stdout=None, **kwargs):
            stdout.write("-- dump\n")
            return _completed()
        mock_run.side_effect = dump
        target = tmp_path / "nested" / "backup.sql"

        assert Shell().run_to_file(["pg_dump", "shop"], target) is True
        assert target.read_text() == "-- dump\n"

    @patch("minienv.shell.subprocess.run")
    def test_binary_mode(self, mock_run, tmp_path):
        mock_run.return_value = _completed()
        Shell().run_to_file(["mongodump", "--archive"], tmp_path / "shop.archive.gz", binary=True)
        assert "b" in mock_run.call_args.kwargs["stdout"].mode

    @patch("minienv.shell.subprocess.run")
    def test_failure_removes_partial_file(self, mock_run, tmp_path):
        def fail(args, stdout=None, **kwargs):
            stdout.write("partial")
            raise subprocess.CalledProcessError(1, args)
        mock_run.side_effect = fail
        target = tmp_path / "backup.sql"

        with pytest.raises(subprocess.CalledProcessError):
            Shell().run_to_file(["pg_dump", "shop"], target)
        assert not target.exists()

    @patch("minienv.shell.subprocess.run")
    def test_dry_run_writes_nothing(self, mock_run, tmp_path, capsys):
        target = tmp_path / "out" / "orders.json"

        assert Shell(dry_run=True).run_to_file(["mongoexport", "--jsonArray"], target) is False
        mock_run.assert_not_called()
        assert not target.parent.exists()
        assert f"[dry-run] mongoexport --jsonArray > {target}" in capsys.readouterr().out


class TestShellQueries:
    """Tests for read-only commands, which run even in dry-run mode."""

    @patch("minienv.shell.subprocess.run")
    def test_output_returns_stripped_stdout(self, mock_run):
        mock_run.return_value = _completed(stdout="192.168.49.2\n")
        assert Shell(dry_run=True).output(["minikube", "ip"]) == "192.168.49.2"

    @patch("minienv.shell.subprocess.run")
    def test_output_is_empty_on_failure(self, mock_run):
        mock_run.return_value = _completed(returncode=1, stdout="partial")
        assert Shell().output(["kubectl", "get", "pods"]) == ""

    @patch("minienv.shell.subprocess.run", side_effect=FileNotFoundError("kubectl"))
    def test_output_is_empty_when_tool_missing(self, mock_run):
        assert Shell().output(["kubectl", "get", "pods"]) == ""

    @patch("minienv.shell.subprocess.run")
    def test_succeeds(self, mock_run):
        mock_run.return_value = _completed()
        assert Shell().succeeds(["kubectl", "get", "namespace", "test"]) is True

        mock_run.return_value = _completed(returncode=1)
        assert Shell().succeeds(["kubectl", "get", "namespace", "test"]) is False

    @patch("minienv.shell.subprocess.run", side_effect=FileNotFoundError("minikube"))
    def test_succeeds_false_when_tool_missing(self, mock_run):
        assert Shell().succeeds(["minikube", "status"]) is False


class TestShellInteractive:
    """Tests for terminal-attached and background commands."""

    @patch("minienv.shell.subprocess.call", return_value=3)
    def test_interactive_returns_exit_code(self, mock_call):
        assert Shell().interactive(["kubectl", "exec", "-it", "pod", "--", "psql"]) == 3

    @patch("minienv.shell.subprocess.call")
    def test_interactive_dry_run(self, mock_call):
        assert Shell(dry_run=True).interactive(["kubectl", "logs", "pod"]) == 0
        mock_call.assert_not_called()

    @patch("minienv.shell.subprocess.Popen")
    def test_spawn_starts_new_session(self, mock_popen):
        process = MagicMock(pid=99)
        mock_popen.return_value = process

        assert Shell().spawn(["minikube", "mount", "/a:/a"]) is process
        assert mock_popen.call_args.kwargs["start_new_session"] is True

    @patch("minienv.shell.subprocess.Popen")
    def test_spawn_dry_run(self, mock_popen):
        assert Shell(dry_run=True).spawn(["minikube", "mount", "/a:/a"]) is None
        mock_popen.assert_not_called()

    @patch("minienv.shell.shutil.which")
    def test_which(self, mock_which):
        mock_which.return_value = "/usr/local/bin/kubectl"
        assert Shell.which("kubectl") is True
        mock_which.return_value = None
        assert Shell.which("kubectl") is False
