"""Tests for lazy import system in banbooru.__init__."""

from __future__ import annotations

import importlib
import sys

import pytest


class TestLazyImports:
    """Test PEP 562 lazy loading in banbooru.__init__."""

    def test_lazy_import_does_not_eagerly_load(self) -> None:
        """Importing banbooru does not eagerly load subpackages."""
        saved = {name: mod for name, mod in sys.modules.items() if name.startswith("banbooru")}
        try:
            for name in saved:
                del sys.modules[name]

            importlib.import_module("banbooru")

            assert "banbooru.core" not in sys.modules
            assert "banbooru.models" not in sys.modules
            assert "banbooru.services" not in sys.modules
            assert "banbooru.nips" not in sys.modules
        finally:
            for name in [n for n in sys.modules if n.startswith("banbooru")]:
                del sys.modules[name]
            sys.modules.update(saved)

    def test_lazy_import_resolves_on_access(self) -> None:
        from banbooru import FileServer
        from banbooru.services.server.service import FileServer as DirectFileServer

        assert FileServer is DirectFileServer

    def test_lazy_import_caches_after_first_access(self) -> None:
        import banbooru

        _ = banbooru.Role
        assert "Role" in vars(banbooru)

    def test_lazy_import_invalid_attribute(self) -> None:
        import banbooru

        with pytest.raises(AttributeError, match="no_such_thing"):
            _ = getattr(banbooru, "no_such_thing")  # noqa: B009

    def test_all_exports_are_in_lazy_imports(self) -> None:
        import banbooru

        assert set(banbooru.__all__) == set(banbooru._LAZY_IMPORTS)

    def test_version(self) -> None:
        import banbooru

        assert isinstance(banbooru.__version__, str)
