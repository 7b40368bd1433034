"""Unit tests for the feature module registry."""

import pytest

from cleanslate.core import module_registry
from cleanslate.modules.appointments import AppointmentsModule
from cleanslate.modules.directory import DirectoryModule


class _FakeModule:
    def __init__(self, name: str, tables: dict[str, str]) -> None:
        self._name = name
        self._tables = tables

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return "fake"

    def get_table_schemas(self) -> dict[str, str]:
        return self._tables

    def get_indexes(self) -> list[str]:
        return [f"CREATE INDEX IF NOT EXISTS idx_{self._name} ON {next(iter(self._tables))}(id)"]


@pytest.fixture(autouse=True)
def empty_registry(monkeypatch):
    """Isolate each test from globally registered modules."""
    monkeypatch.setattr(module_registry._RegistryState, "modules", {})


@pytest.mark.unit
class TestModuleRegistry:
    """Tests for module registration and schema collection."""

    def test_register_and_lookup(self):
        """Test a registered module is returned by name."""
        module = _FakeModule("alpha", {"alpha": "CREATE TABLE alpha (id INTEGER)"})

        module_registry.register_module(module)

        assert module_registry.get_module("alpha") is module
        assert module_registry.get_module("missing") is None
        assert list(module_registry.get_modules()) == ["alpha"]

    def test_duplicate_name_rejected(self):
        """Test a name can only be registered once."""
        module_registry.register_module(_FakeModule("alpha", {"alpha": "..."}))

        with pytest.raises(ValueError, match="already registered"):
            module_registry.register_module(_FakeModule("alpha", {"beta": "..."}))

    def test_duplicate_table_rejected(self):
        """Test two modules cannot declare the same table."""
        module_registry.register_module(_FakeModule("alpha", {"shared": "..."}))
        module_registry.register_module(_FakeModule("beta", {"shared": "..."}))

        with pytest.raises(ValueError, match="Duplicate table schema 'shared'"):
            module_registry.get_all_table_schemas()

    def test_built_in_modules_cover_engine_tables(self):
        """Test the directory and appointments modules declare every engine table."""
        module_registry.register_module(DirectoryModule())
        module_registry.register_module(AppointmentsModule())

        tables = module_registry.get_all_table_schemas()

        assert set(tables) == {"members", "customers", "appointments", "checklist_items", "transactions"}
        assert any("idx_appointments_slot" in ddl for ddl in module_registry.get_all_indexes())
