"""Configuration management for the remediate CLI tool.

Handles configuration loading from multiple sources with precedence:
CLI args > environment variables > .remediaterc > pyproject.toml > defaults
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from remediate.errors import ConfigError

# tomllib is only available in Python 3.11+
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[import-not-found]

CHECKPOINT_BACKENDS = ("auto", "git", "store")

# Keys accepted inside each [[fixers]] table
FIXER_KEYS = frozenset(
    {"id", "category", "command", "per_category_target", "max_attempts", "timeout"}
)


@dataclass
class RemediateConfig:
    """Configuration for the remediate CLI tool.

    Attributes:
        validation_command: Command whose output is probed for diagnostics.
        global_target: Run succeeds once the total drops below this value.
        max_allowed_increase: Largest tolerated total increase per attempt.
        max_passes: Upper bound on passes over the fixer registry.
        probe_timeout: Timeout in seconds of the first probe attempt.
        probe_timeout_step: Seconds added to the timeout on each retry.
        probe_attempts: Total probe attempts before the sentinel is used.
        probe_backoff: Base delay in seconds between probe attempts.
        probe_sentinel_total: Total reported when every probe attempt failed.
        fixer_timeout: Default timeout in seconds for a fixer invocation.
        per_category_target: Default per-category convergence target.
        max_attempts_per_pass: Default attempts per fixer per pass.
        checkpoint_backend: One of "auto", "git" or "store".
        state_dir: Directory (relative to the project root) for run state.
        report_name: File name of the JSON report inside state_dir.
        exclude: Path names skipped by the store checkpoint backend.
        commit_accepted: Commit each accepted change (git backend only).
        pause_between_fixers: Seconds to sleep between fixers.
        fixers: Ordered fixer tables (id, category, command, ...).
    """

    validation_command: str = "npx tsc --noEmit --pretty false"
    global_target: int = 10
    max_allowed_increase: int = 100
    max_passes: int = 10
    probe_timeout: float = 30.0
    probe_timeout_step: float = 15.0
    probe_attempts: int = 3
    probe_backoff: float = 2.0
    probe_sentinel_total: int = 500
    fixer_timeout: float = 120.0
    per_category_target: int = 5
    max_attempts_per_pass: int = 3
    checkpoint_backend: str = "auto"
    state_dir: str = ".remediate"
    report_name: str = "remediate-report.json"
    exclude: list[str] = field(default_factory=lambda: ["node_modules", "dist", "build"])
    commit_accepted: bool = False
    pause_between_fixers: float = 0.0
    fixers: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self) -> None:
        """Validate configuration values.

        Raises:
            ConfigError: If any configuration value is invalid.
        """
        if not self.validation_command or not isinstance(self.validation_command, str):
            raise ConfigError("validation_command must be a non-empty string")

        for name in ("global_target", "max_allowed_increase", "probe_sentinel_total"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ConfigError(f"{name} must be a non-negative integer")

        for name in ("max_passes", "probe_attempts", "max_attempts_per_pass"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ConfigError(f"{name} must be a positive integer")

        if not isinstance(self.per_category_target, int) or self.per_category_target < 0:
            raise ConfigError("per_category_target must be a non-negative integer")

        for name in ("probe_timeout", "fixer_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")

        for name in ("probe_timeout_step", "probe_backoff", "pause_between_fixers"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must not be negative")

        if self.checkpoint_backend not in CHECKPOINT_BACKENDS:
            raise ConfigError(
                f"checkpoint_backend must be one of {', '.join(CHECKPOINT_BACKENDS)}"
            )

        if not self.state_dir or not isinstance(self.state_dir, str):
            raise ConfigError("state_dir must be a non-empty string")

        if not self.report_name.endswith(".json"):
            raise ConfigError("report_name must end with .json")

        seen: set[str] = set()
        for index, table in enumerate(self.fixers):
            if not isinstance(table, dict):
                raise ConfigError(f"fixers[{index}] must be a table")
            unknown = set(table) - FIXER_KEYS
            if unknown:
                raise ConfigError(
                    f"fixers[{index}] has unknown keys: {', '.join(sorted(unknown))}"
                )
            for key in ("id", "category", "command"):
                if not table.get(key):
                    raise ConfigError(f"fixers[{index}] is missing '{key}'")
            if table["id"] in seen:
                raise ConfigError(f"duplicate fixer id: {table['id']}")
            seen.add(table["id"])

    def get_state_path(self, base_path: Path | None = None) -> Path:
        """Get the full path to the state directory.

        Args:
            base_path: Base path to resolve from. Defaults to current directory.

        Returns:
            Path to the state directory.
        """
        base = base_path or Path.cwd()
        return base / self.state_dir

    def get_report_path(self, base_path: Path | None = None) -> Path:
        """Get the full path to the JSON report.

        Args:
            base_path: Base path to resolve from. Defaults to current directory.

        Returns:
            Path to the report file.
        """
        return self.get_state_path(base_path) / self.report_name

    def probe_timeout_for(self, attempt: int) -> float:
        """Timeout for the zero-based probe attempt."""
        return self.probe_timeout + attempt * self.probe_timeout_step


def _get_config_field_names() -> set[str]:
    """Get the set of valid configuration field names.

    Returns:
        Set of field names from RemediateConfig.
    """
    return {f.name for f in fields(RemediateConfig)}


def find_config_file(filename: str = ".remediaterc", start_dir: Path | None = None) -> Path | None:
    """Find a configuration file by traversing up the directory tree.

    Searches for the specified file starting from start_dir (or current directory)
    and traversing up to the filesystem root.

    Args:
        filename: Name of the config file to find.
        start_dir: Directory to start searching from. Defaults to current directory.

    Returns:
        Path to the config file if found, None otherwise.
    """
    current = start_dir or Path.cwd()
    current = current.resolve()

    while True:
        config_path = current / filename
        if config_path.is_file():
            return config_path

        parent = current.parent
        if parent == current:
            # Reached filesystem root
            return None
        current = parent


def _load_toml_file(path: Path) -> dict[str, Any]:
    """Load a TOML file and return its contents.

    Args:
        path: Path to the TOML file.

    Returns:
        Dictionary containing the parsed TOML content.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        tomllib.TOMLDecodeError: If the file is not valid TOML.
    """
    with open(path, "rb") as f:
        result: dict[str, Any] = tomllib.load(f)
        return result


def _load_from_remediaterc(start_dir: Path | None = None) -> dict[str, Any]:
    """Load configuration from .remediaterc file.

    Args:
        start_dir: Directory to start searching from.

    Returns:
        Dictionary containing configuration from .remediaterc, or empty dict if not found.

    Raises:
        ConfigError: If the file exists but is not valid TOML.
    """
    config_path = find_config_file(".remediaterc", start_dir)
    if config_path is None:
        return {}

    try:
        data = _load_toml_file(config_path)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{config_path} is not valid TOML: {e}") from e
    except OSError:
        return {}

    valid_fields = _get_config_field_names()
    return {k: v for k, v in data.items() if k in valid_fields}


def _load_from_pyproject(start_dir: Path | None = None) -> dict[str, Any]:
    """Load configuration from pyproject.toml [tool.remediate] section.

    Args:
        start_dir: Directory to start searching from.

    Returns:
        Dictionary containing configuration from pyproject.toml, or empty dict if not found.
    """
    config_path = find_config_file("pyproject.toml", start_dir)
    if config_path is None:
        return {}

    try:
        data = _load_toml_file(config_path)
        tool_section = data.get("tool", {})
        remediate_section = tool_section.get("remediate", {})

        valid_fields = _get_config_field_names()
        return {k: v for k, v in remediate_section.items() if k in valid_fields}
    except (tomllib.TOMLDecodeError, OSError):
        return {}


# Environment variable -> (config key, converter)
ENV_MAPPING: dict[str, tuple[str, type]] = {
    "REMEDIATE_VALIDATION_COMMAND": ("validation_command", str),
    "REMEDIATE_GLOBAL_TARGET": ("global_target", int),
    "REMEDIATE_MAX_ALLOWED_INCREASE": ("max_allowed_increase", int),
    "REMEDIATE_MAX_PASSES": ("max_passes", int),
    "REMEDIATE_PROBE_TIMEOUT": ("probe_timeout", float),
    "REMEDIATE_PROBE_ATTEMPTS": ("probe_attempts", int),
    "REMEDIATE_FIXER_TIMEOUT": ("fixer_timeout", float),
    "REMEDIATE_CHECKPOINT_BACKEND": ("checkpoint_backend", str),
    "REMEDIATE_STATE_DIR": ("state_dir", str),
}


def _load_from_env() -> dict[str, Any]:
    """Load configuration from environment variables.

    Environment variables are prefixed with REMEDIATE_ and use uppercase names.
    For example: REMEDIATE_GLOBAL_TARGET, REMEDIATE_MAX_PASSES

    Returns:
        Dictionary containing configuration from environment variables.

    Raises:
        ConfigError: If a numeric variable cannot be converted.
    """
    result: dict[str, Any] = {}
    for env_var, (config_key, convert) in ENV_MAPPING.items():
        value = os.environ.get(env_var)
        if value is None:
            continue
        try:
            result[config_key] = convert(value)
        except ValueError as e:
            raise ConfigError(f"{env_var} has an invalid value: {value!r}") from e

    return result


def _merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Merge multiple configuration dictionaries.

    Later dictionaries take precedence over earlier ones.

    Args:
        *configs: Configuration dictionaries to merge, in order of increasing precedence.

    Returns:
        Merged configuration dictionary.
    """
    result: dict[str, Any] = {}
    for config in configs:
        for key, value in config.items():
            if value is not None:
                result[key] = value
    return result


def load_config(
    cli_overrides: dict[str, Any] | None = None,
    start_dir: Path | None = None,
) -> RemediateConfig:
    """Load configuration with full precedence chain.

    Loads configuration from multiple sources and merges them with the following
    precedence (highest to lowest):
    1. CLI arguments (cli_overrides)
    2. Environment variables (REMEDIATE_*)
    3. .remediaterc file
    4. pyproject.toml [tool.remediate] section
    5. Default values

    Args:
        cli_overrides: Configuration overrides from CLI arguments.
        start_dir: Directory to start searching for config files.

    Returns:
        Fully resolved RemediateConfig instance.

    Raises:
        ConfigError: If the resulting configuration is invalid.
    """
    pyproject_config = _load_from_pyproject(start_dir)
    remediaterc_config = _load_from_remediaterc(start_dir)
    env_config = _load_from_env()
    cli_config = cli_overrides or {}

    valid_fields = _get_config_field_names()
    cli_config = {k: v for k, v in cli_config.items() if k in valid_fields and v is not None}

    merged = _merge_configs(
        pyproject_config,
        remediaterc_config,
        env_config,
        cli_config,
    )

    try:
        return RemediateConfig(**merged)
    except TypeError as e:
        # Wrong value types coming from TOML (e.g. a table where a list is expected)
        raise ConfigError(str(e)) from e
