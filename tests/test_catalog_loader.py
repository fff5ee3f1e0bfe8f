"""Tests for taintscan.catalog_loader"""

import textwrap

import pytest

from taintscan.catalog_loader import DEFAULT_CATALOG_DIR, CatalogError, CatalogLoader
from taintscan.models import VulnerabilityClass
from taintscan.signatures import STRING_TYPE
from taintscan.syntax import NodeKind

ENTRY_POINTS = """
entry_points:
  - qualifiedName: javax.servlet.ServletRequest
    methodName: getParameter
    parameters: [java.lang.String]
"""

EXIT_POINTS = """
exit_points:
  - qualifiedName: java.lang.Runtime
    methodName: exec
    parameters:
      - type: java.lang.String
        rules: [LITERAL, simple_name]
      - type: java.util.List<java.lang.String>
        rules: ignore
      - type: java.lang.String
"""


def _write(path, content):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content))


@pytest.fixture
def catalog_dir(tmp_path):
    _write(tmp_path / "entry_point.yaml", ENTRY_POINTS)
    _write(tmp_path / "exit_point" / "command_injection.yaml", EXIT_POINTS)
    return tmp_path


class TestBundledCatalogs:
    @pytest.mark.parametrize("vulnerability", list(VulnerabilityClass))
    def test_every_class_loads(self, vulnerability):
        catalog = CatalogLoader().load(vulnerability)
        assert catalog.vulnerability is vulnerability
        assert catalog.entry_points
        assert catalog.exit_points

    def test_every_class_available(self):
        assert CatalogLoader().available_classes() == list(VulnerabilityClass)

    def test_common_sanitizers_shared(self):
        loader = CatalogLoader()
        sql = loader.load(VulnerabilityClass.SQL_INJECTION)
        command = loader.load(VulnerabilityClass.COMMAND_INJECTION)
        parse_int = [s for s in command.sanitization_points if s.method_name == "parseInt"]
        assert parse_int
        assert parse_int[0] in sql.sanitization_points
        assert len(sql.sanitization_points) > len(command.sanitization_points)

    def test_known_sink(self):
        catalog = CatalogLoader(DEFAULT_CATALOG_DIR).load(VulnerabilityClass.SQL_INJECTION)
        execute_query = next(e for e in catalog.exit_points if e.method_name == "executeQuery")
        assert execute_query.qualified_name == "java.sql.Statement"
        assert execute_query.rules[0].accepts_literals


class TestCatalogLoader:
    def test_load_custom_catalog(self, catalog_dir):
        catalog = CatalogLoader(catalog_dir).load(VulnerabilityClass.COMMAND_INJECTION)

        assert len(catalog.entry_points) == 1
        assert catalog.entry_points[0].parameter_types == (STRING_TYPE,)
        assert catalog.sanitization_points == ()

        exit_point = catalog.exit_points[0]
        assert exit_point.parameter_types == (STRING_TYPE, "java.util.List", STRING_TYPE)
        first, second, third = exit_point.rules
        assert first.accepted == frozenset({int(NodeKind.LITERAL), int(NodeKind.SIMPLE_NAME)})
        assert second.ignore
        # A parameter without rules is not checked
        assert third.ignore

    def test_catalog_is_cached(self, catalog_dir):
        loader = CatalogLoader(catalog_dir)
        first = loader.load(VulnerabilityClass.COMMAND_INJECTION)
        assert loader.load(VulnerabilityClass.COMMAND_INJECTION) is first
        assert loader.stats['catalogs_loaded'] == 1

        loader.clear_cache()
        assert loader.stats['catalogs_loaded'] == 0
        assert loader.load(VulnerabilityClass.COMMAND_INJECTION) is not first

    def test_sanitizers_common_and_specific(self, catalog_dir):
        _write(catalog_dir / "sanitization_point" / "common.yaml", """
            sanitization_points:
              - qualifiedName: java.lang.Integer
                methodName: parseInt
                parameters: [java.lang.String]
        """)
        _write(catalog_dir / "sanitization_point" / "command_injection.yaml", """
            sanitization_points:
              - qualifiedName: com.example.Shell
                methodName: quote
                parameters: [java.lang.String]
        """)
        catalog = CatalogLoader(catalog_dir).load(VulnerabilityClass.COMMAND_INJECTION)
        assert [s.method_name for s in catalog.sanitization_points] == ["parseInt", "quote"]

    def test_available_classes(self, catalog_dir):
        assert CatalogLoader(catalog_dir).available_classes() == [VulnerabilityClass.COMMAND_INJECTION]

    def test_missing_exit_points(self, catalog_dir):
        with pytest.raises(CatalogError, match="not found"):
            CatalogLoader(catalog_dir).load(VulnerabilityClass.SQL_INJECTION)

    def test_missing_entry_points(self, tmp_path):
        _write(tmp_path / "exit_point" / "command_injection.yaml", EXIT_POINTS)
        with pytest.raises(CatalogError):
            CatalogLoader(tmp_path).load(VulnerabilityClass.COMMAND_INJECTION)

    def test_empty_exit_points(self, catalog_dir):
        _write(catalog_dir / "exit_point" / "command_injection.yaml", "exit_points: []\n")
        with pytest.raises(CatalogError, match="No exit points"):
            CatalogLoader(catalog_dir).load(VulnerabilityClass.COMMAND_INJECTION)

    def test_invalid_yaml(self, catalog_dir):
        _write(catalog_dir / "entry_point.yaml", "entry_points: [\n")
        with pytest.raises(CatalogError, match="Failed to read"):
            CatalogLoader(catalog_dir).load_entry_points()

    def test_not_a_mapping(self, catalog_dir):
        _write(catalog_dir / "entry_point.yaml", "- just a list\n")
        with pytest.raises(CatalogError, match="mapping"):
            CatalogLoader(catalog_dir).load_entry_points()

    def test_missing_method_name(self, catalog_dir):
        _write(catalog_dir / "entry_point.yaml", """
            entry_points:
              - qualifiedName: javax.servlet.ServletRequest
        """)
        with pytest.raises(CatalogError, match="methodName"):
            CatalogLoader(catalog_dir).load_entry_points()

    @pytest.mark.parametrize("rules", ["[true]", "[NOT_A_KIND]", "[1.5]"])
    def test_invalid_rule_values(self, catalog_dir, rules):
        _write(catalog_dir / "exit_point" / "command_injection.yaml", f"""
            exit_points:
              - qualifiedName: java.lang.Runtime
                methodName: exec
                parameters:
                  - type: java.lang.String
                    rules: {rules}
        """)
        with pytest.raises(CatalogError, match="Invalid rule value"):
            CatalogLoader(catalog_dir).load_exit_points(VulnerabilityClass.COMMAND_INJECTION)

    @pytest.mark.parametrize("parameters", [
        "[java.lang.String]",
        "java.lang.String",
        "[{rules: [LITERAL]}]",
    ])
    def test_malformed_exit_point_parameters(self, catalog_dir, parameters):
        _write(catalog_dir / "exit_point" / "command_injection.yaml", f"""
            exit_points:
              - qualifiedName: java.lang.Runtime
                methodName: exec
                parameters: {parameters}
        """)
        with pytest.raises(CatalogError):
            CatalogLoader(catalog_dir).load_exit_points(VulnerabilityClass.COMMAND_INJECTION)
