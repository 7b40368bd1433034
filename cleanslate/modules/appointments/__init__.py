"""Appointments module for service appointment scheduling."""


class AppointmentsModule:
    """Appointment lifecycle and recurrence engine.

    Provides:
    - Appointment CRUD scoped by tenant
    - State machine for the appointment lifecycle
    - Rolling-window recurrence generation
    - Revenue ledger kept in sync with completed work
    - Per-appointment checklists
    - Helper payout calculation and day summaries
    """

    @property
    def name(self) -> str:
        """Module name (unique identifier)."""
        return "appointments"

    @property
    def description(self) -> str:
        """Module description (human-readable)."""
        return "Appointment lifecycle, recurrence, checklists, and revenue ledger"

    def get_table_schemas(self) -> dict[str, str]:
        """Return table schemas for this module."""
        return {
            "appointments": """CREATE TABLE IF NOT EXISTS appointments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        owner_id INTEGER NOT NULL,
        customer_id INTEGER REFERENCES customers(id),
        assigned_helper_id INTEGER REFERENCES members(id) ON DELETE SET NULL,
        date TEXT NOT NULL,
        start_time TEXT,
        end_time TEXT,
        estimated_duration_minutes INTEGER,
        price REAL NOT NULL DEFAULT 0,
        helper_fee REAL,
        status TEXT NOT NULL DEFAULT 'SCHEDULED'
            CHECK (status IN ('NOT_CONFIRMED', 'SCHEDULED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED')),
        started_at TEXT,
        finished_at TEXT,
        is_recurring INTEGER NOT NULL DEFAULT 0,
        recurrence_rule TEXT,
        recurrence_series_id TEXT,
        notes TEXT,
        checklist_snapshot TEXT,
        invoice_token TEXT,
        invoice_number TEXT,
        invoice_sent_at TEXT
    )""",
            "checklist_items": """CREATE TABLE IF NOT EXISTS checklist_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        appointment_id INTEGER NOT NULL REFERENCES appointments(id) ON DELETE CASCADE,
        title TEXT NOT NULL,
        sort_order INTEGER NOT NULL DEFAULT 0,
        completed_at TEXT,
        completed_by_id INTEGER,
        CHECK ((completed_at IS NULL) = (completed_by_id IS NULL))
    )""",
            "transactions": """CREATE TABLE IF NOT EXISTS transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        owner_id INTEGER NOT NULL,
        appointment_id INTEGER REFERENCES appointments(id) ON DELETE SET NULL,
        type TEXT NOT NULL DEFAULT 'REVENUE' CHECK (type IN ('REVENUE', 'EXPENSE')),
        status TEXT NOT NULL DEFAULT 'PENDING' CHECK (status IN ('PENDING', 'PAID')),
        amount REAL NOT NULL,
        due_date TEXT,
        paid_at TEXT,
        description TEXT,
        UNIQUE (appointment_id, type)
    )""",
        }

    def get_indexes(self) -> list[str]:
        """Return indexes for this module's tables."""
        return [
            # One active appointment per customer slot; closes the check-then-create race in recurrence
            """CREATE UNIQUE INDEX IF NOT EXISTS idx_appointments_slot
        ON appointments(owner_id, customer_id, date, start_time) WHERE status != 'CANCELLED'""",
            "CREATE INDEX IF NOT EXISTS idx_appointments_owner_date ON appointments(owner_id, date)",
            "CREATE INDEX IF NOT EXISTS idx_appointments_series ON appointments(recurrence_series_id)",
            "CREATE INDEX IF NOT EXISTS idx_appointments_helper_date ON appointments(assigned_helper_id, date)",
            "CREATE INDEX IF NOT EXISTS idx_checklist_items_appointment ON checklist_items(appointment_id, sort_order)",
            "CREATE INDEX IF NOT EXISTS idx_transactions_owner ON transactions(owner_id, status)",
        ]
