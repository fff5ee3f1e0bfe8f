"""
Scan configuration - defaults, YAML config files and environment overrides

Example config file:

    max_depth: 8
    extensions: [.java]
    vulnerabilities: [sql_injection, command_injection]
    catalog_dir: ./my-knowledge-base
    exclude_patterns: ["*/generated/*"]
    max_file_size: 1048576
    trusted_directive: "taintscan:trusted"

TAINTSCAN_CATALOG_DIR and TAINTSCAN_MAX_DEPTH override the file values;
command line options override both.
"""

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .dataflow.engine import MAXIMUM_DEPTH
from .java_parser import DEFAULT_TRUSTED_DIRECTIVE
from .models import VulnerabilityClass

logger = logging.getLogger(__name__)

ENV_CATALOG_DIR = "TAINTSCAN_CATALOG_DIR"
ENV_MAX_DEPTH = "TAINTSCAN_MAX_DEPTH"

# Maximum file size to analyse (10 MB)
MAX_FILE_SIZE = 10 * 1024 * 1024


class ConfigError(Exception):
    """Invalid configuration value or unreadable config file"""


@dataclass
class ScanConfig:
    """Configuration for a taint scan"""
    max_depth: int = MAXIMUM_DEPTH
    extensions: List[str] = field(default_factory=lambda: ['.java'])
    vulnerabilities: List[VulnerabilityClass] = field(default_factory=list)
    catalog_dir: Optional[Path] = None
    exclude_patterns: List[str] = field(default_factory=list)
    max_file_size: int = MAX_FILE_SIZE
    trusted_directive: str = DEFAULT_TRUSTED_DIRECTIVE

    def __post_init__(self):
        if self.catalog_dir is not None:
            self.catalog_dir = Path(self.catalog_dir)
        self.extensions = [_normalize_extension(e) for e in self.extensions]
        self.vulnerabilities = [
            v if isinstance(v, VulnerabilityClass) else _parse_vulnerability(v)
            for v in self.vulnerabilities
        ]
        self.validate()

    def validate(self) -> None:
        if isinstance(self.max_depth, bool) or not isinstance(self.max_depth, int) or self.max_depth < 1:
            raise ConfigError(f"max_depth must be a positive integer, got {self.max_depth!r}")
        if not self.extensions:
            raise ConfigError("At least one file extension is required")
        if isinstance(self.max_file_size, bool) or not isinstance(self.max_file_size, int) or self.max_file_size <= 0:
            raise ConfigError(f"max_file_size must be positive, got {self.max_file_size!r}")
        if not self.trusted_directive.strip():
            raise ConfigError("trusted_directive must not be empty")

    @property
    def selected_vulnerabilities(self) -> List[VulnerabilityClass]:
        """Configured classes, or every class when none are configured"""
        return list(self.vulnerabilities) or list(VulnerabilityClass)

    def apply_environment(self, environ: Optional[Dict[str, str]] = None) -> ScanConfig:
        """Return a copy with TAINTSCAN_* environment overrides applied"""
        environ = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}
        if environ.get(ENV_CATALOG_DIR):
            overrides['catalog_dir'] = Path(environ[ENV_CATALOG_DIR])
        if environ.get(ENV_MAX_DEPTH):
            overrides['max_depth'] = _parse_int(environ[ENV_MAX_DEPTH], ENV_MAX_DEPTH)
        if overrides:
            logger.debug(f"Environment overrides: {sorted(overrides)}")
        return replace(self, **overrides)

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None,
             environ: Optional[Dict[str, str]] = None) -> ScanConfig:
        """Defaults, then the config file (if any), then the environment"""
        config = cls.from_file(path) if path else cls()
        return config.apply_environment(environ)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ScanConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration key(s): {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> ScanConfig:
        """Load a YAML config file"""
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        logger.debug(f"Loaded configuration from {path}")
        try:
            return cls.from_dict(data)
        except TypeError as e:
            raise ConfigError(f"Invalid configuration in {path}: {e}") from e


def _parse_int(value: str, name: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _parse_vulnerability(value: Any) -> VulnerabilityClass:
    try:
        return VulnerabilityClass.from_name(str(value))
    except ValueError as e:
        raise ConfigError(str(e)) from None


def _normalize_extension(extension: str) -> str:
    extension = str(extension).strip().lower()
    if not extension.startswith('.'):
        extension = '.' + extension
    return extension
