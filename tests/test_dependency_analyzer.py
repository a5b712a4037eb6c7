"""
Tests for the module catalog and dependency analysis.
"""

from pathlib import Path

import pytest

from rokukit.core.models.linking import DependencyResult, ModuleCatalog
from rokukit.core.services.catalog import build_catalog, index_manifests
from rokukit.core.services.dependency_analyzer import (
    RegexSymbolScanner,
    analyze_file,
    analyze_fragment,
)


@pytest.fixture
def catalog() -> ModuleCatalog:
    return ModuleCatalog(
        runtime={
            "coreRuntime": "source/coreRuntime.brs",
            "Kotlin": "source/Kotlin.brs",
            "ArrayList": "source/ArrayList.brs",
        },
        primary={"Shared": "source/Shared.brs", "Api": "source/net/Api.brs"},
        component={
            "Alpha": "components/Alpha.brs",
            "Beta": "components/Beta.brs",
            "Main_Layout": "components/Main_Layout.brs",
        },
    )


# ═══════════════════════════════════════════════════════════════════
#  Scanner
# ═══════════════════════════════════════════════════════════════════


class TestRegexSymbolScanner:
    def test_prefixes_of_call_targets(self):
        found = RegexSymbolScanner().candidates("x = Foo_bar_baz(1)")
        assert found == {"Foo", "Foo_bar"}

    def test_plain_calls_ignored(self):
        assert RegexSymbolScanner().candidates("print(x)\nfoo ()") == set()

    def test_whitespace_before_paren(self):
        assert "Api" in RegexSymbolScanner().candidates("Api_get  (url)")

    def test_non_call_reference_ignored(self):
        assert RegexSymbolScanner().candidates("x = Api_get") == set()


# ═══════════════════════════════════════════════════════════════════
#  analyze_fragment
# ═══════════════════════════════════════════════════════════════════


class TestAnalyzeFragment:
    def test_zero_matches_gives_exactly_the_runtime_core(self, catalog: ModuleCatalog):
        result = analyze_fragment("sub init()\nend sub\n", catalog)
        assert result.runtime == frozenset({"coreRuntime", "Kotlin"})
        assert result.primary == frozenset()
        assert result.component == frozenset()

    def test_alpha_scenario_excludes_self(self, catalog: ModuleCatalog):
        text = "sub init()\n  Shared_greet()\n  Alpha_helper()\nend sub\n"
        result = analyze_fragment(text, catalog, own_path="components/Alpha.brs")
        assert result.primary == frozenset({"Shared"})
        assert result.component == frozenset()

    def test_sibling_component_included(self, catalog: ModuleCatalog):
        result = analyze_fragment("Beta_render()", catalog, own_path="components/Alpha.brs")
        assert result.component == frozenset({"Beta"})

    def test_underscored_module_name(self, catalog: ModuleCatalog):
        result = analyze_fragment("Main_Layout_build(m.top)", catalog)
        assert "Main_Layout" in result.component

    def test_runtime_reference(self, catalog: ModuleCatalog):
        result = analyze_fragment("l = ArrayList_new()", catalog)
        assert result.runtime == frozenset({"coreRuntime", "Kotlin", "ArrayList"})

    def test_name_in_several_catalogs_counted_under_each(self):
        cat = ModuleCatalog(
            runtime={"Util": "source/Util.brs"},
            primary={"Util": "source/app/Util.brs"},
        )
        result = analyze_fragment("Util_x()", cat)
        assert "Util" in result.runtime
        assert "Util" in result.primary

    def test_always_required_is_case_insensitive(self):
        cat = ModuleCatalog(runtime={"CoreRuntime": "source/CoreRuntime.brs", "kotlin": "source/kotlin.brs"})
        assert analyze_fragment("", cat).runtime == frozenset({"CoreRuntime", "kotlin"})

    def test_always_required_only_when_present(self):
        assert analyze_fragment("", ModuleCatalog()).is_empty

    def test_custom_scanner(self, catalog: ModuleCatalog):
        class Fixed:
            def candidates(self, text: str) -> set[str]:
                return {"Api"}

        result = analyze_fragment("nothing here", catalog, scanner=Fixed())
        assert result.primary == frozenset({"Api"})


class TestAnalyzeFile:
    def test_missing_path_is_empty(self, catalog: ModuleCatalog):
        assert analyze_file(None, catalog) == DependencyResult.empty()

    def test_unreadable_is_empty(self, tmp_path: Path, catalog: ModuleCatalog):
        assert analyze_file(tmp_path / "gone.brs", catalog).is_empty

    def test_reads_file(self, tmp_path: Path, catalog: ModuleCatalog):
        f = tmp_path / "Alpha.brs"
        f.write_text("Shared_greet()\n")
        assert analyze_file(f, catalog).primary == frozenset({"Shared"})


# ═══════════════════════════════════════════════════════════════════
#  Catalog
# ═══════════════════════════════════════════════════════════════════


class TestBuildCatalog:
    def _snapshot(self, root: Path):
        overlay = root / "build" / "brs" / "brs" / "main"
        return build_catalog(
            manifests=root / "components",
            component_fragments=overlay / "components",
            primary_fragments=overlay / "source",
            runtime_fragments=root / "build" / "brs" / "runtime",
        )

    def test_package_paths(self, channel_project: Path):
        catalog = self._snapshot(channel_project).catalog
        assert catalog.primary == {"Shared": "source/Shared.brs", "Api": "source/net/Api.brs"}
        assert catalog.component["Home"] == "components/screens/Home.brs"
        assert catalog.component["Home_Layout"] == "components/screens/Home_Layout.brs"
        assert catalog.component["Alpha"] == "components/Alpha.brs"
        assert catalog.runtime["ArrayList"] == "source/ArrayList.brs"

    def test_empty_fragments_left_out(self, channel_project: Path):
        assert "Empty" not in self._snapshot(channel_project).catalog.runtime

    def test_descriptors(self, channel_project: Path):
        snapshot = self._snapshot(channel_project)
        by_name = {d.name: d for d in snapshot.components}
        assert set(by_name) == {"Alpha", "Home", "Plain"}
        assert by_name["Home"].manifest == "screens/Home.xml"
        assert by_name["Home"].fragment_path == "components/screens/Home.brs"
        assert not by_name["Plain"].has_fragment

    def test_hybrid_source_prefix(self, channel_project: Path):
        overlay = channel_project / "build" / "brs" / "brs" / "main"
        snapshot = build_catalog(
            manifests=channel_project / "components",
            primary_fragments=overlay / "source",
            source_prefix="source/kotlin",
        )
        assert snapshot.catalog.primary["Shared"] == "source/kotlin/Shared.brs"

    def test_catalog_is_read_only(self, channel_project: Path):
        catalog = self._snapshot(channel_project).catalog
        with pytest.raises(TypeError):
            catalog.primary["X"] = "source/X.brs"  # type: ignore[index]

    def test_missing_dirs(self, tmp_path: Path):
        snapshot = build_catalog(manifests=tmp_path / "nope")
        assert snapshot.components == ()
        assert snapshot.catalog.to_dict() == {"runtime": {}, "primary": {}, "component": {}}


class TestIndexManifests:
    def test_first_in_sorted_order_wins(self, tmp_path: Path, tree):
        tree(tmp_path, {"a/Home.xml": "<component/>", "b/Home.xml": "<component/>"})
        assert index_manifests(tmp_path) == {"Home": "a"}

    def test_root_is_empty_string(self, tmp_path: Path, tree):
        tree(tmp_path, {"Home.xml": "<component/>"})
        assert index_manifests(tmp_path) == {"Home": ""}
