"""Module Protocol defining the plugin interface for modular architecture."""

from typing import Protocol


class Module(Protocol):
    """Protocol defining the interface for feature modules. Self-contained plugins that own their tables."""

    @property
    def name(self) -> str:
        """Module name (unique identifier)."""
        ...

    @property
    def description(self) -> str:
        """Module description (human-readable)."""
        ...

    def get_table_schemas(self) -> dict[str, str]:
        """Return table schemas for this module.

        Returns:
            Dictionary mapping table names to CREATE TABLE SQL statements
        """
        ...

    def get_indexes(self) -> list[str]:
        """Return indexes for this module's tables.

        Returns:
            List of CREATE INDEX SQL statements
        """
        ...
