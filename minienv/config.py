"""Configuration management for minienv with environment variable hierarchy."""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Mapping

PACKAGE_MANIFESTS_DIR = Path(__file__).parent / "manifests"

_VAR_REF = re.compile(r"\$\{(\w+)\}|\$(\w+)")


@dataclass
class EnvConfig:
    """Configuration shared by every service command."""
    namespace: str
    manifests_dir: str
    project_root: Optional[str] = None  # Root of a downstream project using these services
    project_manifests_dir: Optional[str] = None  # Project-specific manifest overrides
    spark_project_path: Optional[str] = None  # Host path mounted into minikube for Spark
    dry_run: bool = False

    def manifest(self, service_name: str) -> Path:
        """Return the packaged (default) manifest path for a service."""
        return Path(self.manifests_dir) / f"{service_name}.yaml"


@dataclass
class MinikubeConfig:
    """Resources and runtime used when starting minikube."""
    cpus: str
    memory: str
    disk_size: str
    driver: str = ""
    runtime: str = ""
    kubernetes_version: str = ""
    profile: str = "minikube"

    @property
    def memory_gb(self) -> int:
        try:
            return int(self.memory) // 1024
        except ValueError:
            return 0


class ConfigManager:
    """Manages configuration with hierarchy: defaults < env vars < CLI args."""

    DEFAULTS = {
        'namespace': 'default',
        'manifests_dir': str(PACKAGE_MANIFESTS_DIR),
    }

    ENV_VARS = {
        'namespace': 'NAMESPACE',
        'manifests_dir': 'MINIENV_MANIFESTS_DIR',
        'project_root': 'PROJECT_ROOT',
        'project_manifests_dir': 'PROJECT_MANIFESTS_DIR',
        'spark_project_path': 'SPARK_PROJECT_PATH',
        'dry_run': 'MINIENV_DRY_RUN',
    }

    # Used when a service deploy finds minikube stopped
    ENSURE_DEFAULTS = {
        'cpus': '4',
        'memory': '8192',
        'disk_size': '40g',
        'driver': '',
        'runtime': '',
        'kubernetes_version': '',
        'profile': 'minikube',
    }

    # Used by `minienv cluster start`, sized for a large workstation
    CLUSTER_DEFAULTS = {
        'cpus': '10',
        'memory': '20480',
        'disk_size': '100g',
        'driver': 'vfkit',
        'runtime': 'containerd',
        'kubernetes_version': 'v1.28.0',
        'profile': 'minikube',
    }

    MINIKUBE_ENV_VARS = {
        'cpus': 'MINIKUBE_CPUS',
        'memory': 'MINIKUBE_MEMORY',
        'disk_size': 'MINIKUBE_DISK_SIZE',
        'driver': 'MINIKUBE_DRIVER',
        'runtime': 'MINIKUBE_RUNTIME',
        'kubernetes_version': 'KUBERNETES_VERSION',
        'profile': 'MINIKUBE_PROFILE',
    }

    def get_config(self, **cli_overrides) -> EnvConfig:
        """Get the resolved configuration using hierarchy: defaults < env vars < CLI args.

        Args:
            **cli_overrides: CLI argument overrides

        Returns:
            EnvConfig with resolved values
        """
        config = dict(self.DEFAULTS)

        for key, env_var in self.ENV_VARS.items():
            env_value = os.getenv(env_var)
            if env_value is not None and env_value != "":
                config[key] = env_value

        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

        if not config.get('spark_project_path'):
            config['spark_project_path'] = os.getcwd()

        return EnvConfig(
            namespace=config['namespace'],
            manifests_dir=config['manifests_dir'],
            project_root=config.get('project_root'),
            project_manifests_dir=config.get('project_manifests_dir'),
            spark_project_path=config['spark_project_path'],
            dry_run=_as_bool(config.get('dry_run', False)),
        )

    def get_minikube_config(self, cluster: bool = False, **cli_overrides) -> MinikubeConfig:
        """Resolve minikube settings.

        Args:
            cluster: Use the full cluster defaults instead of the lighter
                defaults used when a deploy has to start minikube itself
            **cli_overrides: CLI argument overrides
        """
        config = dict(self.CLUSTER_DEFAULTS if cluster else self.ENSURE_DEFAULTS)

        for key, env_var in self.MINIKUBE_ENV_VARS.items():
            env_value = os.getenv(env_var)
            if env_value is not None and env_value != "":
                config[key] = env_value

        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = str(value)

        return MinikubeConfig(**config)

    def parse_env_content(self, content: str, environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Parse KEY=value lines as written in a project .env file.

        Comments, blank lines and an optional ``export`` prefix are skipped.
        Quotes around values are removed and ``${VAR}`` references are
        expanded against keys defined earlier in the file, then ``environ``.

        Raises:
            ValueError: If a line is not a KEY=value assignment
        """
        if environ is None:
            environ = os.environ

        env_vars: Dict[str, str] = {}

        for line in content.strip().split('\n'):
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            if line.startswith('export '):
                line = line[len('export '):].strip()

            if '=' not in line:
                raise ValueError(f"Invalid environment variable format: {line}")

            key, value = line.split('=', 1)
            key = key.strip()
            value = _strip_inline_comment(value.strip())

            if not key:
                raise ValueError(f"Empty environment variable key in: {line}")

            quoted_single = len(value) >= 2 and value[0] == value[-1] == "'"
            if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                value = value[1:-1]

            if not quoted_single:
                value = _expand(value, env_vars, environ)

            env_vars[key] = value

        return env_vars

    def parse_env_file(self, path: Path) -> Dict[str, str]:
        """Read and parse a .env file.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        try:
            content = Path(path).read_text()
        except FileNotFoundError:
            raise FileNotFoundError(f"Environment file not found: {path}")
        return self.parse_env_content(content)


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def _strip_inline_comment(value: str) -> str:
    # Only unquoted values can carry a trailing "# comment"
    if value[:1] in ('"', "'"):
        closing = value.find(value[0], 1)
        if closing != -1:
            return value[:closing + 1]
        return value
    if ' #' in value:
        return value.split(' #', 1)[0].rstrip()
    return value


def _expand(value: str, local: Mapping[str, str], environ: Mapping[str, str]) -> str:
    def replace(match):
        name = match.group(1) or match.group(2)
        if name in local:
            return local[name]
        return environ.get(name, "")
    return _VAR_REF.sub(replace, value)


config_manager = ConfigManager()


def get_config(**cli_overrides) -> EnvConfig:
    """Convenience function to get configuration."""
    return config_manager.get_config(**cli_overrides)


def get_minikube_config(cluster: bool = False, **cli_overrides) -> MinikubeConfig:
    """Convenience function to get minikube configuration."""
    return config_manager.get_minikube_config(cluster=cluster, **cli_overrides)
