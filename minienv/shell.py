"""Subprocess seam for everything minienv runs on the host.

kubectl, minikube and the odd local tool (ps, mail, open) all go through
``Shell`` so commands are logged with credentials masked, dry-run is honoured
in one place, and tests can swap in a recording fake.
"""

import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Dict, IO, Optional, Sequence

from minienv.logging import logger, print_color
from minienv.secrets import SecretMasker, get_default_masker


class Shell:
    """Runs host commands with masking and dry-run support."""

    def __init__(
        self,
        dry_run: bool = False,
        masker: Optional[SecretMasker] = None,
        env: Optional[Dict[str, str]] = None,
    ):
        self.dry_run = dry_run
        self.masker = masker or get_default_masker()
        self.env = dict(env) if env else {}
        self.log = logger.with_component("shell")

    def display(self, args: Sequence[str]) -> str:
        """Return the command as a masked, shell-quoted string."""
        return shlex.join(self.masker.mask_command_args([str(a) for a in args]))

    def _environ(self) -> Optional[Dict[str, str]]:
        if not self.env:
            return None
        environ = os.environ.copy()
        environ.update(self.env)
        return environ

    def _dry(self, args: Sequence[str]) -> None:
        print_color("yellow", f"[dry-run] {self.display(args)}")

    def run(
        self,
        args: Sequence[str],
        check: bool = True,
        capture: bool = False,
        input: Optional[str] = None,
        stdout: Optional[IO] = None,
        quiet: bool = False,
    ) -> subprocess.CompletedProcess:
        """Run a command that changes state.

        Args:
            args: Command and arguments
            check: Raise CalledProcessError on a non-zero exit
            capture: Capture stdout and stderr as text
            input: Text fed to the command's stdin
            stdout: File object receiving stdout (backups)
            quiet: Discard output

        Returns:
            The completed process. In dry-run mode a successful empty result.
        """
        args = [str(a) for a in args]
        self.log.debug("Running command", fields={"cmd": self.display(args)})

        if self.dry_run:
            self._dry(args)
            return subprocess.CompletedProcess(args=args, returncode=0, stdout="", stderr="")

        kwargs = {}
        if capture:
            kwargs["capture_output"] = True
        elif quiet:
            kwargs["stdout"] = subprocess.DEVNULL
            kwargs["stderr"] = subprocess.DEVNULL
        elif stdout is not None:
            kwargs["stdout"] = stdout

        return subprocess.run(
            args,
            check=check,
            input=input,
            text=True,
            env=self._environ(),
            **kwargs,
        )

    def run_to_file(self, args: Sequence[str], path: Path, binary: bool = False) -> bool:
        """Run a command with stdout written to a local file.

        Nothing is written in dry-run mode. A partial file is removed when the
        command fails.

        Returns:
            True if the file was written

        Raises:
            CalledProcessError: If the command exits non-zero
        """
        path = Path(path)
        if self.dry_run:
            print_color("yellow", f"[dry-run] {self.display(args)} > {shlex.quote(str(path))}")
            return False

        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(path, "wb" if binary else "w") as f:
                self.run(args, stdout=f)
        except (subprocess.CalledProcessError, KeyboardInterrupt):
            path.unlink(missing_ok=True)
            raise
        return True

    def output(self, args: Sequence[str]) -> str:
        """Run a read-only command and return its stripped stdout, or "" on failure."""
        args = [str(a) for a in args]
        self.log.debug("Querying", fields={"cmd": self.display(args)})
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                env=self._environ(),
            )
        except FileNotFoundError:
            return ""
        if result.returncode != 0:
            return ""
        return result.stdout.strip()

    def succeeds(self, args: Sequence[str]) -> bool:
        """Run a read-only command and report whether it exited 0."""
        args = [str(a) for a in args]
        self.log.debug("Checking", fields={"cmd": self.display(args)})
        try:
            result = subprocess.run(
                args,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                env=self._environ(),
            )
        except FileNotFoundError:
            return False
        return result.returncode == 0

    def interactive(self, args: Sequence[str], stdin: Optional[IO] = None) -> int:
        """Run a command attached to the terminal and return its exit code."""
        args = [str(a) for a in args]
        self.log.debug("Running interactive command", fields={"cmd": self.display(args)})

        if self.dry_run:
            self._dry(args)
            return 0

        return subprocess.call(args, stdin=stdin, env=self._environ())

    def spawn(self, args: Sequence[str]) -> Optional[subprocess.Popen]:
        """Start a background process. Returns None in dry-run mode."""
        args = [str(a) for a in args]
        self.log.info("Starting background process", fields={"cmd": self.display(args)})

        if self.dry_run:
            self._dry(args)
            return None

        return subprocess.Popen(
            args,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            env=self._environ(),
            start_new_session=True,
        )

    @staticmethod
    def which(tool: str) -> bool:
        """Check whether a tool is on PATH."""
        return shutil.which(tool) is not None
