"""
Global pytest configuration for minienv tests.

No test talks to a real cluster: services and workflows run against
``FakeShell``, which records every command and answers from scripted rules.
"""

import subprocess
from typing import List, Optional, Tuple
from unittest.mock import MagicMock

import pytest

from minienv.config import PACKAGE_MANIFESTS_DIR, EnvConfig, MinikubeConfig
from minienv.secrets import SecretMasker
from minienv.shell import Shell

ISOLATED_ENV_VARS = (
    "NAMESPACE",
    "MINIENV_MANIFESTS_DIR",
    "MINIENV_DRY_RUN",
    "PROJECT_ROOT",
    "PROJECT_MANIFESTS_DIR",
    "SPARK_PROJECT_PATH",
    "MINIKUBE_CPUS",
    "MINIKUBE_MEMORY",
    "MINIKUBE_DISK_SIZE",
    "MINIKUBE_DRIVER",
    "MINIKUBE_RUNTIME",
    "MINIKUBE_PROFILE",
    "KUBERNETES_VERSION",
    "LOG_FORMAT",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """Keep the developer's shell settings out of the tests.

    A NAMESPACE or MINIKUBE_* exported in the shell that runs pytest would
    otherwise leak into every resolved configuration. NO_COLOR keeps console
    output free of ANSI codes so assertions can match plain text.
    """
    for name in ISOLATED_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NO_COLOR", "1")


@pytest.fixture(autouse=True)
def _no_sleep(monkeypatch):
    """Readiness loops poll with time.sleep; make them instant."""
    monkeypatch.setattr("time.sleep", lambda seconds: None)


class FakeShell(Shell):
    """A Shell that records commands instead of running them.

    Rules match on a substring of the space-joined command:

    - ``outputs``: (pattern, text) answers for ``output`` and captured ``run``
    - ``succeeding``: patterns for which ``succeeds`` returns True
    - ``failing``: patterns whose ``run``/``interactive`` exit non-zero and
      whose ``succeeds`` returns False
    """

    def __init__(self, dry_run: bool = False, tools=("minikube", "kubectl", "curl")):
        super().__init__(dry_run=dry_run, masker=SecretMasker())
        self.calls: List[Tuple[str, List[str], dict]] = []
        self.outputs: List[Tuple[str, str]] = []
        self.succeeding: List[str] = []
        self.failing: List[str] = []
        self.tools = set(tools)

    # Scripting

    def on_output(self, pattern: str, text: str) -> "FakeShell":
        self.outputs.append((pattern, text))
        return self

    def succeed(self, *patterns: str) -> "FakeShell":
        self.succeeding.extend(patterns)
        return self

    def fail(self, *patterns: str) -> "FakeShell":
        self.failing.extend(patterns)
        return self

    # Inspection

    @property
    def commands(self) -> List[str]:
        return [" ".join(args) for _, args, _ in self.calls]

    def ran(self, pattern: str) -> bool:
        return any(pattern in command for command in self.commands)

    def find(self, pattern: str) -> Optional[Tuple[str, List[str], dict]]:
        for call in self.calls:
            if pattern in " ".join(call[1]):
                return call
        return None

    # Shell interface

    def _match_output(self, command: str) -> str:
        for pattern, text in self.outputs:
            if pattern in command:
                return text
        return ""

    def _fails(self, command: str) -> bool:
        return any(pattern in command for pattern in self.failing)

    def run(self, args, check=True, capture=False, input=None, stdout=None, quiet=False):
        args = [str(a) for a in args]
        self.calls.append(("run", args, {"input": input, "check": check}))
        command = " ".join(args)
        code = 1 if self._fails(command) else 0
        if check and code:
            raise subprocess.CalledProcessError(code, args)
        text = self._match_output(command)
        if stdout is not None and text:
            stdout.write(text.encode() if "b" in getattr(stdout, "mode", "") else text)
        return subprocess.CompletedProcess(args=args, returncode=code, stdout=text, stderr="")

    def output(self, args):
        args = [str(a) for a in args]
        self.calls.append(("output", args, {}))
        command = " ".join(args)
        if self._fails(command):
            return ""
        return self._match_output(command)

    def succeeds(self, args):
        args = [str(a) for a in args]
        self.calls.append(("succeeds", args, {}))
        command = " ".join(args)
        if self._fails(command):
            return False
        return any(pattern in command for pattern in self.succeeding)

    def interactive(self, args, stdin=None):
        args = [str(a) for a in args]
        self.calls.append(("interactive", args, {"stdin": stdin}))
        return 1 if self._fails(" ".join(args)) else 0

    def spawn(self, args):
        args = [str(a) for a in args]
        self.calls.append(("spawn", args, {}))
        return MagicMock(pid=4242)

    def which(self, tool):
        return tool in self.tools


@pytest.fixture
def shell():
    """A recording shell with nothing deployed."""
    return FakeShell()


@pytest.fixture
def env_config(tmp_path):
    """Service configuration for the 'test' namespace using the packaged manifests."""
    return EnvConfig(
        namespace="test",
        manifests_dir=str(PACKAGE_MANIFESTS_DIR),
        spark_project_path=str(tmp_path),
    )


@pytest.fixture
def minikube_config():
    return MinikubeConfig(cpus="4", memory="8192", disk_size="40g")
