"""Validation of host tools and project configuration."""

import re
import shutil
from dataclasses import dataclass
from typing import List, Optional, Sequence

from minienv.services import SERVICES

DEFAULT_ENABLED_SERVICES = ("minio", "spark", "airflow")

INSTALL_HINTS = {
    "minikube": "Install minikube: https://minikube.sigs.k8s.io/docs/start/",
    "kubectl": "Install kubectl: https://kubernetes.io/docs/tasks/tools/",
    "curl": "curl is usually pre-installed or available via your package manager",
}

_DNS_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")


@dataclass
class ValidationError:
    """Represents a validation error or warning."""
    field: str
    message: str
    suggestion: Optional[str] = None


@dataclass
class ValidationResult:
    """Result of a validation run."""
    is_valid: bool
    errors: List[ValidationError]
    warnings: List[ValidationError]

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0


def validate_tools(
    required: Sequence[str] = ("minikube", "kubectl"),
    optional: Sequence[str] = ("curl",),
) -> ValidationResult:
    """Check that the command-line tools minienv drives are on PATH.

    Missing required tools are errors, missing optional tools are warnings.
    """
    errors = []
    warnings = []

    for tool in required:
        if not shutil.which(tool):
            errors.append(ValidationError(
                field=tool,
                message=f"{tool} is not available in PATH",
                suggestion=INSTALL_HINTS.get(tool),
            ))

    for tool in optional:
        if not shutil.which(tool):
            warnings.append(ValidationError(
                field=tool,
                message=f"{tool} is not available in PATH",
                suggestion=INSTALL_HINTS.get(tool),
            ))

    return ValidationResult(is_valid=len(errors) == 0, errors=errors, warnings=warnings)


def validate_services(names: Sequence[str]) -> ValidationResult:
    """Check a list of service names against the registry."""
    errors = []
    warnings = []

    if not names:
        warnings.append(ValidationError(
            field="ENABLED_SERVICES",
            message=f"No services enabled, using default: {','.join(DEFAULT_ENABLED_SERVICES)}",
        ))

    available = ", ".join(SERVICES)
    for name in names:
        if name not in SERVICES:
            errors.append(ValidationError(
                field="ENABLED_SERVICES",
                message=f"Unknown service: {name}",
                suggestion=f"Available services: {available}",
            ))

    return ValidationResult(is_valid=len(errors) == 0, errors=errors, warnings=warnings)


def validate_project(project) -> ValidationResult:
    """Validate a loaded project configuration.

    Args:
        project: A ProjectConfig (or anything with ``project_name``,
            ``namespace`` and ``enabled_services``)
    """
    result = validate_services(project.enabled_services)
    errors = list(result.errors)
    warnings = list(result.warnings)

    if not project.project_name:
        errors.append(ValidationError(
            field="PROJECT_NAME",
            message="Project name is not set",
            suggestion="Set PROJECT_NAME in the project's .env file",
        ))

    if project.namespace and not _DNS_LABEL.match(project.namespace):
        errors.append(ValidationError(
            field="NAMESPACE",
            message=f"'{project.namespace}' is not a valid Kubernetes namespace",
            suggestion="Use lowercase letters, digits and '-', starting and ending with a letter or digit",
        ))

    return ValidationResult(is_valid=len(errors) == 0, errors=errors, warnings=warnings)


def format_validation_result(result: ValidationResult, subject: str = "Configuration") -> str:
    """Format a validation result for display."""
    lines = []

    if result.is_valid and not result.has_warnings:
        lines.append(f"✅ {subject} is valid")
        return "\n".join(lines)

    if result.has_errors:
        lines.append(f"❌ {subject} has errors:")
        for error in result.errors:
            lines.append(f"  • {error.field}: {error.message}")
            if error.suggestion:
                lines.append(f"    💡 {error.suggestion}")
        lines.append("")

    if result.has_warnings:
        lines.append(f"⚠️  {subject} warnings:")
        for warning in result.warnings:
            lines.append(f"  • {warning.field}: {warning.message}")
            if warning.suggestion:
                lines.append(f"    💡 {warning.suggestion}")
        lines.append("")

    if result.is_valid:
        lines.append(f"✅ {subject} is valid (with warnings)")

    return "\n".join(lines)
