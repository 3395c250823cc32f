"""Value-based masking of credentials in echoed commands.

Service commands frequently carry passwords on the command line (mongosh -p,
PGPASSWORD=..., mc alias set ...). Every command is echoed or logged before it
runs, so the known credential values are replaced wherever they appear.
"""

import re
from typing import List, Set, Any
from threading import Lock


class SecretMasker:
    """Handles masking of known secret values in logs and output."""

    def __init__(self, redaction_text: str = "***"):
        """Initialize the secret masker.

        Args:
            redaction_text: Text to replace secrets with (default: "***")
        """
        self._secrets: Set[str] = set()
        self._lock = Lock()
        self._redaction_text = redaction_text
        self._min_secret_length = 3  # Don't mask very short strings to avoid false positives

    def register_secret(self, value: Any) -> None:
        """Register a secret value that should be masked."""
        if value is None:
            return

        str_value = str(value)
        if not str_value:
            return

        with self._lock:
            self._secrets.add(str_value)

    def register_secrets(self, values: List[Any]) -> None:
        """Register multiple secret values at once."""
        for value in values:
            self.register_secret(value)

    def mask_string(self, text: str) -> str:
        """Replace all known secret values in a string with redaction text.

        Args:
            text: The text to mask secrets in

        Returns:
            Text with all known secrets replaced with redaction text
        """
        if not text:
            return text

        with self._lock:
            masked = text
            # Longest first so a secret that contains another is masked whole
            for secret in sorted(self._secrets, key=len, reverse=True):
                if len(secret) >= self._min_secret_length:
                    masked = re.sub(re.escape(secret), self._redaction_text, masked)
            return masked

    def mask_command_args(self, args: List[str]) -> List[str]:
        """Mask secret values in command arguments."""
        return [self.mask_string(arg) for arg in args]

    def clear(self) -> None:
        """Remove all registered secrets."""
        with self._lock:
            self._secrets.clear()

    def has_secret(self, value: str) -> bool:
        """Check if a value is registered as a secret."""
        with self._lock:
            return value in self._secrets


_default_masker = SecretMasker()


def register_secret(value: Any) -> None:
    """Register a secret value with the default masker."""
    _default_masker.register_secret(value)


def register_secrets(values: List[Any]) -> None:
    """Register multiple secrets with the default masker."""
    _default_masker.register_secrets(values)


def mask_string(text: str) -> str:
    """Mask secrets in a string using the default masker."""
    return _default_masker.mask_string(text)


def clear_secrets() -> None:
    """Clear all registered secrets from the default masker."""
    _default_masker.clear()


def get_default_masker() -> SecretMasker:
    """Get the default masker instance."""
    return _default_masker
