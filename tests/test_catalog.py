"""Tests for CapabilityCatalog and schema-based capability inference."""

import pytest

from toolbench.catalog import (
    DEFAULT_CAPABILITIES,
    CapabilityCatalog,
    default_catalog,
    infer_from_schema,
)
from toolbench.exceptions import ChainNotFoundError


@pytest.fixture
def catalog():
    return default_catalog()


# ---------------------------------------------------------------------------
# TestCatalogTable
# ---------------------------------------------------------------------------

class TestCatalogTable:
    """Verify lookup over the built-in capability table."""

    def test_all_defaults_present(self, catalog):
        assert len(catalog) == len(DEFAULT_CAPABILITIES)
        for name in DEFAULT_CAPABILITIES:
            assert name in catalog

    def test_list_all_is_sorted(self, catalog):
        names = catalog.list_all()
        assert names == sorted(names)

    def test_get_returns_definition(self, catalog):
        definition = catalog.get("code_generation")
        assert definition is not None
        assert "code" in definition.output_kinds
        assert "testing" in definition.composable_with

    def test_get_unknown_returns_none(self, catalog):
        assert catalog.get("teleportation") is None

    def test_testing_requires_code_analysis(self, catalog):
        assert catalog.get("testing").requirements == frozenset({"code_analysis"})

    def test_default_catalog_is_cached(self):
        assert default_catalog() is default_catalog()


# ---------------------------------------------------------------------------
# TestComposable
# ---------------------------------------------------------------------------

class TestComposable:
    """Verify the symmetric composability check."""

    def test_one_directional_declaration_is_symmetric(self):
        """Declaring only a -> b makes both orders composable."""
        catalog = CapabilityCatalog.from_mapping({
            "alpha": {"composable_with": ["beta"]},
            "beta": {},
        })
        assert catalog.composable("alpha", "beta") is True
        assert catalog.composable("beta", "alpha") is True

    def test_builtin_one_directional_pair(self, catalog):
        """testing lists documentation; documentation does not list testing."""
        assert "testing" not in catalog.get("documentation").composable_with
        assert catalog.composable("documentation", "testing") is True
        assert catalog.composable("testing", "documentation") is True

    def test_unrelated_capabilities_not_composable(self, catalog):
        assert catalog.composable("code_generation", "search") is False
        assert catalog.composable("search", "code_generation") is False

    def test_unknown_capability_not_composable(self, catalog):
        assert catalog.composable("teleportation", "search") is False


# ---------------------------------------------------------------------------
# TestKindsAndChains
# ---------------------------------------------------------------------------

class TestKindsAndChains:
    """Verify kind-based lookup and capability chain building."""

    def test_find_by_kinds_filters_both_sides(self, catalog):
        found = catalog.find_by_kinds(input_kinds=["code"], output_kinds=["report"])
        assert "code_analysis" in found
        assert "testing" in found
        assert "code_generation" not in found

    def test_find_by_kinds_empty_filter_matches_all(self, catalog):
        assert len(catalog.find_by_kinds()) == len(catalog)

    def test_single_hop_chain(self, catalog):
        chain = catalog.build_chain("code", "report")
        assert len(chain) == 1
        definition = catalog.get(chain[0])
        assert "code" in definition.input_kinds
        assert "report" in definition.output_kinds

    def test_two_hop_chain(self):
        catalog = CapabilityCatalog.from_mapping({
            "parse": {
                "input_kinds": ["raw"],
                "output_kinds": ["tree"],
                "composable_with": ["render"],
            },
            "render": {"input_kinds": ["tree"], "output_kinds": ["html"]},
        })
        assert catalog.build_chain("raw", "html") == ["parse", "render"]

    def test_two_hop_requires_composable_pair(self):
        catalog = CapabilityCatalog.from_mapping({
            "parse": {"input_kinds": ["raw"], "output_kinds": ["tree"]},
            "render": {"input_kinds": ["tree"], "output_kinds": ["html"]},
        })
        with pytest.raises(ChainNotFoundError):
            catalog.build_chain("raw", "html")

    def test_no_chain_raises(self, catalog):
        with pytest.raises(ChainNotFoundError, match="video"):
            catalog.build_chain("video", "hologram")


# ---------------------------------------------------------------------------
# TestInferFromSchema
# ---------------------------------------------------------------------------

class TestInferFromSchema:
    """Verify capability inference from input schemas."""

    def test_json_schema_properties(self):
        schema = {"properties": {"file_path": {"type": "string"}}}
        assert infer_from_schema(schema) == frozenset({"file_operations"})

    def test_parameter_list(self):
        schema = {"parameters": [{"name": "async"}, {"name": "stream"}]}
        assert infer_from_schema(schema) == frozenset({"async_execution", "streaming"})

    def test_bare_name_list(self):
        assert infer_from_schema(["workflow_id"]) == frozenset({"workflow_execution"})

    def test_async_must_be_whole_token(self):
        assert infer_from_schema(["asynchronous"]) == frozenset()

    def test_run_async_token(self):
        assert "async_execution" in infer_from_schema(["run_async"])

    def test_file_and_path_must_be_whole_tokens(self):
        schema = {"properties": {"profile": {}, "compile_flags": {}, "xpath_query": {}}}
        assert infer_from_schema(schema) == frozenset()

    def test_file_token_variants(self):
        for name in ("input_file", "filename", "source_path", "dirPath"):
            assert infer_from_schema([name]) == frozenset({"file_operations"}), name

    def test_empty_schema(self):
        assert infer_from_schema({}) == frozenset()
        assert infer_from_schema(None) == frozenset()

    def test_unrelated_names(self):
        assert infer_from_schema({"properties": {"query": {}, "limit": {}}}) == frozenset()
