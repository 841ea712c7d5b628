"""
Configuration management and loading.

Handles log source locations, scan limits and the daily cache directory.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Optional

import yaml


DEFAULT_MAX_DEPTH = 5
DEFAULT_MAX_FILES = 2000


@dataclass(frozen=True)
class ScanConfig:
    """Bounds applied to every directory walk."""
    max_depth: int = DEFAULT_MAX_DEPTH
    max_files: int = DEFAULT_MAX_FILES

    def __post_init__(self):
        """Validate scan bounds are positive."""
        if self.max_depth <= 0:
            raise ValueError("max_depth must be > 0")
        if self.max_files <= 0:
            raise ValueError("max_files must be > 0")


@dataclass(frozen=True)
class SourceConfig:
    """Location of one assistant's usage logs."""
    path: Path
    enabled: bool = True


@dataclass(frozen=True)
class UsageConfig:
    """Complete usage aggregation configuration."""
    home_dir: Path
    cache_dir: Path
    scan: ScanConfig
    stream_logs: SourceConfig
    cumulative_logs: SourceConfig
    snapshot_files: SourceConfig

    def to_dict(self) -> Dict:
        return {
            "home_dir": str(self.home_dir),
            "cache": {"dir": str(self.cache_dir)},
            "scan": {
                "max_depth": self.scan.max_depth,
                "max_files": self.scan.max_files,
            },
            "sources": {
                name: {"path": str(source.path), "enabled": source.enabled}
                for name, source in (
                    ("stream_logs", self.stream_logs),
                    ("cumulative_logs", self.cumulative_logs),
                    ("snapshot_files", self.snapshot_files),
                )
            },
        }


def default_usage_config(home_dir: Optional[str] = None) -> UsageConfig:
    """Build the configuration used when no config file is given.

    Args:
        home_dir: Home directory to resolve default locations against
            (defaults to the current user's home)

    Returns:
        UsageConfig pointing at the standard assistant log directories
    """
    home = Path(home_dir) if home_dir else Path.home()
    return UsageConfig(
        home_dir=home,
        cache_dir=home / ".ai-workbench" / "daily-stats",
        scan=ScanConfig(),
        stream_logs=SourceConfig(path=home / ".claude" / "projects"),
        cumulative_logs=SourceConfig(path=home / ".codex" / "sessions"),
        snapshot_files=SourceConfig(path=home / ".factory" / "sessions", enabled=False),
    )


def load_usage_config(path: str, home_dir: Optional[str] = None) -> UsageConfig:
    """Load and validate usage configuration from YAML file.

    Every section is optional and falls back to the defaults, but unknown
    keys are rejected so a typo never silently points a scan elsewhere.

    Args:
        path: Path to YAML configuration file
        home_dir: Home directory used to expand ``~`` in paths

    Returns:
        Validated UsageConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Usage config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    defaults = default_usage_config(home_dir)
    if raw_config is None:
        return defaults
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'cache', 'scan', 'sources'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    config = defaults

    # Cache directory
    if 'cache' in raw_config:
        cache_data = raw_config['cache']
        if not isinstance(cache_data, dict):
            raise ValueError("'cache' must be a dictionary")
        unknown_cache_keys = set(cache_data.keys()) - {'dir'}
        if unknown_cache_keys:
            raise ValueError(f"Unknown cache keys: {unknown_cache_keys}")
        if 'dir' in cache_data:
            config = replace(
                config,
                cache_dir=_parse_path(cache_data['dir'], "cache.dir", defaults.home_dir),
            )

    # Scan bounds
    if 'scan' in raw_config:
        scan_data = raw_config['scan']
        if not isinstance(scan_data, dict):
            raise ValueError("'scan' must be a dictionary")
        unknown_scan_keys = set(scan_data.keys()) - {'max_depth', 'max_files'}
        if unknown_scan_keys:
            raise ValueError(f"Unknown scan keys: {unknown_scan_keys}")
        config = replace(config, scan=ScanConfig(
            max_depth=_parse_positive_int(scan_data, 'max_depth', DEFAULT_MAX_DEPTH),
            max_files=_parse_positive_int(scan_data, 'max_files', DEFAULT_MAX_FILES),
        ))

    # Log sources
    if 'sources' in raw_config:
        sources_data = raw_config['sources']
        if not isinstance(sources_data, dict):
            raise ValueError("'sources' must be a dictionary")
        allowed_sources = {'stream_logs', 'cumulative_logs', 'snapshot_files'}
        unknown_sources = set(sources_data.keys()) - allowed_sources
        if unknown_sources:
            raise ValueError(f"Unknown sources: {unknown_sources}")
        overrides = {}
        for source_name, source_data in sources_data.items():
            overrides[source_name] = _parse_source_config(
                source_data,
                f"sources.{source_name}",
                getattr(defaults, source_name),
                defaults.home_dir,
            )
        config = replace(config, **overrides)

    return config


def _parse_positive_int(data: Dict, key: str, default: int) -> int:
    if key not in data:
        return default
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"'{key}' in scan must be a positive integer")
    return value


def _parse_path(value, path: str, home_dir: Path) -> Path:
    """Validate a path value and expand a leading ``~`` against home_dir."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{path}' must be a non-empty string")
    if value == "~":
        return home_dir
    if value.startswith("~/") or value.startswith("~" + os.sep):
        return home_dir / value[2:]
    return Path(value)


def _parse_source_config(data, path: str, default: SourceConfig, home_dir: Path) -> SourceConfig:
    """Parse and validate a single log source section.

    Args:
        data: Source configuration data
        path: Path for error messages
        default: Source used for keys that are not given
        home_dir: Home directory for ``~`` expansion

    Returns:
        Validated SourceConfig

    Raises:
        ValueError: If configuration is invalid
    """
    if not isinstance(data, dict):
        raise ValueError(f"Source '{path}' must be a dictionary")

    allowed_keys = {'path', 'enabled'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    source_path = default.path
    if 'path' in data:
        source_path = _parse_path(data['path'], f"{path}.path", home_dir)

    enabled = default.enabled
    if 'enabled' in data:
        if not isinstance(data['enabled'], bool):
            raise ValueError(f"'enabled' in {path} must be a boolean")
        enabled = data['enabled']

    return SourceConfig(path=source_path, enabled=enabled)
