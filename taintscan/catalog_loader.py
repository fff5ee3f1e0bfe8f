"""
Catalog loader - parses YAML knowledge base files into PointCatalog objects

Layout of a knowledge base directory:

    entry_point.yaml                  shared taint sources
    exit_point/<class>.yaml           sinks, one file per vulnerability class
    sanitization_point/common.yaml    sanitizers valid for every class
    sanitization_point/<class>.yaml   class-specific sanitizers (optional)
"""

import os
import yaml
from pathlib import Path
from typing import List, Dict, Any, Optional, Tuple, Union
import logging

from .models import VulnerabilityClass
from .points import EntryPoint, ExitPoint, ParameterRule, PointCatalog, SanitizationPoint
from .signatures import erase_type
from .syntax import NodeKind

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_DIR = Path(__file__).parent / "knowledge_base"
ENTRY_POINT_FILE = "entry_point.yaml"
EXIT_POINT_DIR = "exit_point"
SANITIZATION_POINT_DIR = "sanitization_point"
COMMON_SANITIZERS = "common"
IGNORE_RULE = "ignore"


class CatalogError(Exception):
    """Catalog data for a vulnerability class is missing or malformed"""


class CatalogLoader:
    """Loads and caches point catalogs per vulnerability class"""

    def __init__(self, catalog_dir: Optional[Union[str, Path]] = None):
        self.catalog_dir = Path(catalog_dir) if catalog_dir else DEFAULT_CATALOG_DIR
        self._catalogs: Dict[VulnerabilityClass, PointCatalog] = {}
        self._entry_points: Optional[Tuple[EntryPoint, ...]] = None
        self._common_sanitizers: Optional[Tuple[SanitizationPoint, ...]] = None

    def load(self, vulnerability: VulnerabilityClass) -> PointCatalog:
        """Load the catalog for one vulnerability class (cached)

        Raises:
            CatalogError: the entry-point file or the class's exit-point
                file is absent or malformed.
        """
        catalog = self._catalogs.get(vulnerability)
        if catalog is not None:
            return catalog

        catalog = PointCatalog(
            vulnerability=vulnerability,
            entry_points=self.load_entry_points(),
            exit_points=self.load_exit_points(vulnerability),
            sanitization_points=self.load_sanitization_points(vulnerability),
        )
        self._catalogs[vulnerability] = catalog
        logger.info(
            f"Loaded catalog for {vulnerability.value}: "
            f"{len(catalog.entry_points)} entry, {len(catalog.exit_points)} exit, "
            f"{len(catalog.sanitization_points)} sanitization points"
        )
        return catalog

    def load_entry_points(self) -> Tuple[EntryPoint, ...]:
        """Load the shared entry points"""
        if self._entry_points is None:
            path = self.catalog_dir / ENTRY_POINT_FILE
            data = self._read_yaml(path, required=True)
            self._entry_points = tuple(
                EntryPoint(*self._parse_signature(raw, path))
                for raw in self._section(data, 'entry_points', path)
            )
        return self._entry_points

    def load_exit_points(self, vulnerability: VulnerabilityClass) -> Tuple[ExitPoint, ...]:
        """Load the exit points of one vulnerability class"""
        path = self.catalog_dir / EXIT_POINT_DIR / f"{vulnerability.value}.yaml"
        data = self._read_yaml(path, required=True)

        exit_points = []
        for raw in self._section(data, 'exit_points', path):
            qualified_name, method_name, parameter_types = self._parse_signature(raw, path)
            rules = []
            for parameter in self._parameters(raw, path):
                if not isinstance(parameter, dict):
                    raise CatalogError(
                        f"Exit point {qualified_name}.{method_name} in {path} "
                        f"needs type and rules for every parameter: {parameter!r}"
                    )
                rules.append(self._parse_rules(parameter.get('rules', IGNORE_RULE), path))
            exit_points.append(ExitPoint(qualified_name, method_name, parameter_types, tuple(rules)))

        if not exit_points:
            raise CatalogError(f"No exit points defined in {path}")
        return tuple(exit_points)

    def load_sanitization_points(self, vulnerability: VulnerabilityClass) -> Tuple[SanitizationPoint, ...]:
        """Load common plus class-specific sanitization points"""
        if self._common_sanitizers is None:
            self._common_sanitizers = self._load_sanitizers(COMMON_SANITIZERS)
        return self._common_sanitizers + self._load_sanitizers(vulnerability.value)

    def available_classes(self) -> List[VulnerabilityClass]:
        """Vulnerability classes that have an exit-point file"""
        exit_dir = self.catalog_dir / EXIT_POINT_DIR
        return [
            vulnerability for vulnerability in VulnerabilityClass
            if (exit_dir / f"{vulnerability.value}.yaml").exists()
        ]

    def clear_cache(self) -> None:
        self._catalogs.clear()
        self._entry_points = None
        self._common_sanitizers = None

    def _load_sanitizers(self, name: str) -> Tuple[SanitizationPoint, ...]:
        path = self.catalog_dir / SANITIZATION_POINT_DIR / f"{name}.yaml"
        data = self._read_yaml(path, required=False)
        if data is None:
            return ()
        return tuple(
            SanitizationPoint(*self._parse_signature(raw, path))
            for raw in self._section(data, 'sanitization_points', path)
        )

    def _read_yaml(self, path: Path, required: bool) -> Optional[Dict[str, Any]]:
        """Read a catalog file; a missing optional file yields None"""
        if not path.exists():
            if required:
                raise CatalogError(f"Catalog file not found: {path}")
            logger.debug(f"No catalog file at {path}")
            return None

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise CatalogError(f"Failed to read catalog {path}: {e}") from e

        if not isinstance(data, dict):
            raise CatalogError(f"Catalog {path} must be a mapping")
        return data

    def _section(self, data: Dict[str, Any], key: str, path: Path) -> List[Dict[str, Any]]:
        entries = data.get(key) or []
        if not isinstance(entries, list):
            raise CatalogError(f"'{key}' in {path} must be a list")
        for entry in entries:
            if not isinstance(entry, dict):
                raise CatalogError(f"Malformed entry in {path}: {entry!r}")
        return entries

    def _parse_signature(self, raw: Dict[str, Any], path: Path) -> Tuple[str, str, Tuple[str, ...]]:
        """Parse qualifiedName / methodName / parameter types of one entry"""
        qualified_name = raw.get('qualifiedName')
        method_name = raw.get('methodName')
        if not qualified_name or not method_name:
            raise CatalogError(f"Entry in {path} needs qualifiedName and methodName: {raw!r}")

        parameter_types = []
        for parameter in self._parameters(raw, path):
            if isinstance(parameter, str):
                type_name = parameter
            elif isinstance(parameter, dict) and parameter.get('type'):
                type_name = parameter['type']
            else:
                raise CatalogError(f"Malformed parameter of {qualified_name}.{method_name} in {path}")
            parameter_types.append(erase_type(str(type_name)))

        return str(qualified_name), str(method_name), tuple(parameter_types)

    def _parameters(self, raw: Dict[str, Any], path: Path) -> List[Any]:
        parameters = raw.get('parameters') or []
        if not isinstance(parameters, list):
            raise CatalogError(f"'parameters' of {raw.get('methodName')} in {path} must be a list")
        return parameters

    def _parse_rules(self, raw: Any, path: Path) -> ParameterRule:
        """Parse a rule set: "ignore", a category or a list of categories"""
        if isinstance(raw, str) and raw.strip().lower() == IGNORE_RULE:
            return ParameterRule.ignored()
        if not isinstance(raw, list):
            raw = [raw]

        accepted = set()
        for value in raw:
            if isinstance(value, bool):
                raise CatalogError(f"Invalid rule value {value!r} in {path}")
            if isinstance(value, int):
                accepted.add(value)
            elif isinstance(value, str) and value.strip().upper() in NodeKind.__members__:
                accepted.add(int(NodeKind[value.strip().upper()]))
            else:
                raise CatalogError(f"Invalid rule value {value!r} in {path}")
        return ParameterRule(accepted=frozenset(accepted))

    @property
    def stats(self) -> Dict[str, Any]:
        """Get statistics about loaded catalogs"""
        return {
            'catalog_dir': os.fspath(self.catalog_dir),
            'catalogs_loaded': len(self._catalogs),
            'by_class': {v.value: c.stats for v, c in self._catalogs.items()},
        }
