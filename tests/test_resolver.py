"""Tests for variant resolution and the filesystem probe."""

import pytest

from middleware_chain.compiler.assembler import assemble
from middleware_chain.compiler.resolver import (
    FilesystemProbe,
    Variant,
    VariantResolver,
    resolve_variant,
)
from middleware_chain.exceptions import UnresolvedModuleError


class RecordingProbe:
    """Probe backed by a dict that records every lookup."""

    def __init__(self, variants):
        self.variants = variants
        self.calls = []

    def __call__(self, module_path):
        self.calls.append(module_path)
        return self.variants.get(module_path)


# ============================================================
# VARIANT
# ============================================================


class TestVariant:
    def test_ordered_by_strictness(self):
        assert Variant.PLAIN < Variant.TYPED
        assert max(Variant) is Variant.TYPED

    def test_weakest(self):
        assert Variant.weakest() is Variant.PLAIN

    def test_extension_and_template(self):
        assert Variant.PLAIN.extension == "py"
        assert Variant.TYPED.template == "typed.py.j2"


# ============================================================
# RESOLUTION
# ============================================================


class TestResolveVariant:
    def test_all_plain(self):
        pipeline = assemble([], ["a.h", "b.h"], [])
        probe = RecordingProbe({"a": Variant.PLAIN, "b": Variant.PLAIN})
        assert resolve_variant(pipeline, probe) is Variant.PLAIN

    @pytest.mark.parametrize("typed_module", ["a", "b", "c"])
    def test_one_typed_module_upgrades_pipeline(self, typed_module):
        pipeline = assemble(["a.h"], [{"then": "b.h", "catch": "c.h"}], [])
        variants = {"a": Variant.PLAIN, "b": Variant.PLAIN, "c": Variant.PLAIN}
        variants[typed_module] = Variant.TYPED
        assert resolve_variant(pipeline, RecordingProbe(variants)) is Variant.TYPED

    def test_empty_pipeline_is_weakest(self):
        assert resolve_variant(assemble([], [], []), RecordingProbe({})) is Variant.PLAIN

    def test_each_module_probed_once(self):
        pipeline = assemble([], ["a.h", "a.g", {"then": "b.h", "catch": "a.c"}], [])
        probe = RecordingProbe({"a": Variant.PLAIN, "b": Variant.PLAIN})
        resolve_variant(pipeline, probe)
        assert probe.calls == ["a", "b"]

    def test_deterministic(self):
        pipeline = assemble([], ["a.h", "b.h"], [])
        probe = RecordingProbe({"a": Variant.TYPED, "b": Variant.PLAIN})
        assert resolve_variant(pipeline, probe) is resolve_variant(pipeline, probe)

    def test_unresolved_module_named(self):
        pipeline = assemble([], ["a.h", "missing.h", "gone.h"], [])
        with pytest.raises(UnresolvedModuleError) as exc_info:
            resolve_variant(pipeline, RecordingProbe({"a": Variant.PLAIN}))
        assert exc_info.value.module_path == "missing"
        assert "missing" in str(exc_info.value)

    def test_unresolved_catch_side(self):
        pipeline = assemble([], [{"then": "a.h", "catch": "lost.h"}], [])
        with pytest.raises(UnresolvedModuleError, match="lost"):
            resolve_variant(pipeline, RecordingProbe({"a": Variant.TYPED}))


class TestVariantResolver:
    def test_result_cached_per_pipeline(self):
        pipeline = assemble([], ["a.h"], [], "fn")
        probe = RecordingProbe({"a": Variant.TYPED})
        resolver = VariantResolver(probe)
        assert resolver.resolve(pipeline) is Variant.TYPED
        assert resolver.resolve(pipeline) is Variant.TYPED
        assert probe.calls == ["a"]

    def test_separate_resolvers_do_not_share_state(self):
        pipeline = assemble([], ["a.h"], [], "fn")
        VariantResolver(RecordingProbe({"a": Variant.TYPED})).resolve(pipeline)
        other = VariantResolver(RecordingProbe({"a": Variant.PLAIN}))
        assert other.resolve(pipeline) is Variant.PLAIN


# ============================================================
# FILESYSTEM PROBE
# ============================================================


class TestFilesystemProbe:
    def test_plain_module(self, service_root):
        service_root.handler("handlers/auth")
        assert FilesystemProbe(service_root.path)("handlers/auth") is Variant.PLAIN

    def test_dotted_module_path(self, service_root):
        service_root.handler("handlers/auth")
        assert FilesystemProbe(service_root.path)("handlers.auth") is Variant.PLAIN

    def test_stub_makes_module_typed(self, service_root):
        service_root.handler("handlers/auth", typed=True)
        assert FilesystemProbe(service_root.path)("handlers/auth") is Variant.TYPED

    def test_py_typed_marker(self, service_root):
        service_root.handler("handlers/auth")
        (service_root.path / "handlers" / "py.typed").write_text("")
        assert FilesystemProbe(service_root.path)("handlers/auth") is Variant.TYPED

    def test_package_module(self, service_root):
        service_root.module("handlers", package=True)
        assert FilesystemProbe(service_root.path)("handlers") is Variant.PLAIN

    def test_typed_package(self, service_root):
        service_root.module("handlers", package=True, typed=True)
        assert FilesystemProbe(service_root.path)("handlers") is Variant.TYPED

    def test_package_marker(self, service_root):
        service_root.module("handlers", package=True)
        (service_root.path / "handlers" / "py.typed").write_text("")
        assert FilesystemProbe(service_root.path)("handlers") is Variant.TYPED

    def test_missing_module(self, service_root):
        assert FilesystemProbe(service_root.path)("handlers/auth") is None

    def test_stub_without_source_is_missing(self, service_root):
        (service_root.path / "auth.pyi").write_text("")
        assert FilesystemProbe(service_root.path)("auth") is None

    def test_scenario_unresolved_module(self, service_root):
        service_root.handler("m1")
        pipeline = assemble([], ["m1.handler", "nowhere.handler"], [])
        with pytest.raises(UnresolvedModuleError, match="nowhere"):
            resolve_variant(pipeline, FilesystemProbe(service_root.path))
