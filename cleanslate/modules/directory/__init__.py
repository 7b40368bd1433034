"""Directory module: the customers and team members appointments refer to."""


class DirectoryModule:
    """Minimal customer and worker directory.

    Provides:
    - Tenant-scoped customers (name, notes, declared service cadence)
    - Team members (the owner and their helpers) with payout configuration
    """

    @property
    def name(self) -> str:
        """Module name (unique identifier)."""
        return "directory"

    @property
    def description(self) -> str:
        """Module description (human-readable)."""
        return "Customers and team members with helper payout configuration"

    def get_table_schemas(self) -> dict[str, str]:
        """Return table schemas for this module."""
        return {
            "members": """CREATE TABLE IF NOT EXISTS members (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        name TEXT NOT NULL,
        email TEXT,
        role TEXT NOT NULL DEFAULT 'HELPER' CHECK (role IN ('OWNER', 'HELPER')),
        company_id INTEGER REFERENCES members(id),
        payout_mode TEXT NOT NULL DEFAULT 'FIXED' CHECK (payout_mode IN ('FIXED', 'PERCENTAGE')),
        payout_value REAL NOT NULL DEFAULT 0
    )""",
            "customers": """CREATE TABLE IF NOT EXISTS customers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        owner_id INTEGER NOT NULL,
        name TEXT NOT NULL,
        notes TEXT,
        service_type TEXT,
        phone TEXT,
        address TEXT
    )""",
        }

    def get_indexes(self) -> list[str]:
        """Return indexes for this module's tables."""
        return [
            "CREATE INDEX IF NOT EXISTS idx_members_company ON members(company_id, role)",
            "CREATE INDEX IF NOT EXISTS idx_customers_owner ON customers(owner_id)",
        ]
