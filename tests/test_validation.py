"""Tests for tool and project validation."""

from unittest.mock import patch

from minienv.project import ProjectConfig
from minienv.validation import (
    ValidationError,
    ValidationResult,
    format_validation_result,
    validate_project,
    validate_services,
    validate_tools,
)


def _project(name="analytics", namespace="analytics", services=("minio", "spark")):
    return ProjectConfig(
        script_dir="/work/analytics/scripts",
        project_name=name,
        project_description="Analytics stack",
        namespace=namespace,
        enabled_services=list(services),
        project_root="/work/analytics",
    )


class TestValidateTools:
    """Tests for host tool checks."""

    @patch("minienv.validation.shutil.which")
    def test_all_tools_present(self, mock_which):
        mock_which.return_value = "/usr/bin/tool"
        result = validate_tools()

        assert result.is_valid
        assert not result.has_warnings

    @patch("minienv.validation.shutil.which")
    def test_missing_required_tool(self, mock_which):
        mock_which.side_effect = lambda tool: None if tool == "kubectl" else f"/usr/bin/{tool}"
        result = validate_tools()

        assert not result.is_valid
        assert result.errors[0].field == "kubectl"
        assert "kubernetes.io" in result.errors[0].suggestion

    @patch("minienv.validation.shutil.which")
    def test_missing_curl_is_a_warning(self, mock_which):
        mock_which.side_effect = lambda tool: None if tool == "curl" else f"/usr/bin/{tool}"
        result = validate_tools()

        assert result.is_valid
        assert result.warnings[0].field == "curl"


class TestValidateServices:
    """Tests for ENABLED_SERVICES checks."""

    def test_known_services(self):
        assert validate_services(["minio", "spark", "airflow"]).is_valid

    def test_unknown_service(self):
        result = validate_services(["minio", "cassandra"])

        assert not result.is_valid
        assert result.errors[0].message == "Unknown service: cassandra"
        assert "postgres" in result.errors[0].suggestion

    def test_empty_list_warns(self):
        result = validate_services([])
        assert result.is_valid
        assert result.has_warnings


class TestValidateProject:
    """Tests for project configuration checks."""

    def test_valid_project(self):
        assert validate_project(_project()).is_valid

    def test_missing_name(self):
        result = validate_project(_project(name=""))
        assert not result.is_valid
        assert result.errors[0].field == "PROJECT_NAME"

    def test_invalid_namespace(self):
        result = validate_project(_project(namespace="My_Project"))
        assert not result.is_valid
        assert result.errors[0].field == "NAMESPACE"

    def test_unknown_service(self):
        result = validate_project(_project(services=("minio", "kafka")))
        assert not result.is_valid
        assert result.errors[0].field == "ENABLED_SERVICES"


class TestFormatValidationResult:
    """Tests for validation output formatting."""

    def test_valid(self):
        result = ValidationResult(is_valid=True, errors=[], warnings=[])
        assert format_validation_result(result, subject="Tools") == "✅ Tools is valid"

    def test_errors_with_suggestions(self):
        result = ValidationResult(
            is_valid=False,
            errors=[ValidationError(field="kubectl", message="kubectl is not available in PATH",
                                    suggestion="Install kubectl")],
            warnings=[],
        )
        text = format_validation_result(result, subject="Tools")

        assert "❌ Tools has errors:" in text
        assert "  • kubectl: kubectl is not available in PATH" in text
        assert "    💡 Install kubectl" in text

    def test_valid_with_warnings(self):
        result = ValidationResult(
            is_valid=True,
            errors=[],
            warnings=[ValidationError(field="curl", message="curl is not available in PATH")],
        )
        text = format_validation_result(result)

        assert "⚠️  Configuration warnings:" in text
        assert text.endswith("✅ Configuration is valid (with warnings)")
