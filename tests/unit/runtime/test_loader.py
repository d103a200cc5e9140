"""Tests for the dynamic session factory loader."""

from __future__ import annotations

import sys
import types
from collections.abc import Iterator

import pytest

from voucher_pipeline.core.config import AdaptersConfig
from voucher_pipeline.core.errors import AdapterLoadError, ErrorKind
from voucher_pipeline.examples.scripted import ScriptedSessionFactory
from voucher_pipeline.runtime.loader import instantiate_factory, load_factory_class, validate_factory_class

SCRIPTED = "voucher_pipeline.examples.scripted.ScriptedSessionFactory"
FAKES = "voucher_test_factories"


class PlainFactory:
    """Factory without ``from_config``; built from keyword options."""

    def __init__(self, label: str = "default") -> None:
        self.label = label

    def open_browser(self):
        return None

    def open_workbook(self):
        return None

    def open_approval(self, window, credentials):
        return None


class HalfFactory:
    def open_browser(self):
        return None


@pytest.fixture(autouse=True)
def fake_factory_module(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    module = types.ModuleType(FAKES)
    module.PlainFactory = PlainFactory  # type: ignore[attr-defined]
    module.HalfFactory = HalfFactory  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, FAKES, module)
    yield


class TestLoadFactoryClass:
    def test_loads_class(self) -> None:
        assert load_factory_class(SCRIPTED) is ScriptedSessionFactory

    @pytest.mark.parametrize("path", ["NoDots", ".Leading", "trailing."])
    def test_malformed_path(self, path: str) -> None:
        with pytest.raises(AdapterLoadError, match="Invalid class path"):
            load_factory_class(path)

    def test_missing_module(self) -> None:
        with pytest.raises(AdapterLoadError) as exc_info:
            load_factory_class("no.such.module.Factory")
        assert isinstance(exc_info.value.cause, ImportError)
        assert exc_info.value.kind is ErrorKind.FATAL

    def test_missing_attribute(self) -> None:
        with pytest.raises(AdapterLoadError):
            load_factory_class("voucher_pipeline.examples.scripted.Nope")

    def test_not_a_class(self) -> None:
        with pytest.raises(AdapterLoadError, match="not a class"):
            load_factory_class("voucher_pipeline.examples.scripted.SAMPLE_ROWS")


class TestValidateFactoryClass:
    def test_valid(self) -> None:
        assert validate_factory_class(SCRIPTED) == []

    def test_missing_methods(self) -> None:
        warnings = validate_factory_class(f"{FAKES}.HalfFactory")

        assert len(warnings) == 1
        assert "open_workbook, open_approval" in warnings[0]


class TestInstantiateFactory:
    def test_uses_from_config(self) -> None:
        factory = instantiate_factory(
            AdaptersConfig(factory=SCRIPTED, options={"missing_refs": ["inquiry.export"], "download_available": False})
        )

        assert isinstance(factory, ScriptedSessionFactory)
        assert factory.missing_refs == {"inquiry.export"}
        assert factory.download_available is False

    def test_falls_back_to_constructor(self) -> None:
        factory = instantiate_factory(AdaptersConfig(factory=f"{FAKES}.PlainFactory", options={"label": "x"}))

        assert factory.label == "x"

    def test_bad_options_wrapped(self) -> None:
        with pytest.raises(AdapterLoadError):
            instantiate_factory(AdaptersConfig(factory=f"{FAKES}.PlainFactory", options={"unknown": 1}))

    def test_not_a_session_factory(self) -> None:
        with pytest.raises(AdapterLoadError, match="SessionFactory"):
            instantiate_factory(AdaptersConfig(factory=f"{FAKES}.HalfFactory"))

    def test_unset_factory(self) -> None:
        with pytest.raises(AdapterLoadError, match="not configured"):
            instantiate_factory(AdaptersConfig())
