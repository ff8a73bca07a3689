"""001 – Initial schema: employees, leave ledger tables, enums, seed leave types.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 10:00:00.000000+00:00
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("employment_status", ["active", "probation", "inactive"]),
    ("user_role", ["employee", "admin"]),
    ("leave_status", ["pending", "approved", "rejected", "cancelled"]),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code   VARCHAR(20) UNIQUE,
            email           VARCHAR(255) NOT NULL UNIQUE,
            slack_user_id   VARCHAR(20),
            first_name      VARCHAR(100) NOT NULL,
            last_name       VARCHAR(100) NOT NULL,
            department      VARCHAR(100),
            join_date       DATE,
            status          employment_status DEFAULT 'active',
            role            user_role DEFAULT 'employee',
            is_active       BOOLEAN DEFAULT TRUE,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. leave_types ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name            VARCHAR(50) NOT NULL UNIQUE,
            description     TEXT,
            default_days    NUMERIC(5,2) DEFAULT 0,
            is_active       BOOLEAN DEFAULT TRUE,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 3. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id     UUID NOT NULL REFERENCES employees(id),
            leave_type_id   UUID NOT NULL REFERENCES leave_types(id),
            year            INTEGER NOT NULL,
            entitled_days   NUMERIC(5,2) NOT NULL DEFAULT 0,
            used_days       NUMERIC(5,2) NOT NULL DEFAULT 0,
            pending_days    NUMERIC(5,2) NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_balance UNIQUE (employee_id, leave_type_id, year),
            CONSTRAINT ck_leave_balance_non_negative CHECK (
                entitled_days >= 0 AND used_days >= 0 AND pending_days >= 0
            )
        )
    """)

    # ── 4. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id       UUID NOT NULL REFERENCES employees(id),
            leave_type_id     UUID NOT NULL REFERENCES leave_types(id),
            start_date        DATE NOT NULL,
            end_date          DATE NOT NULL,
            total_days        NUMERIC(5,2) NOT NULL,
            reason            TEXT,
            status            leave_status DEFAULT 'pending',
            admin_remarks     TEXT,
            requested_by      UUID REFERENCES employees(id),
            approved_by       UUID REFERENCES employees(id),
            decided_at        TIMESTAMPTZ,
            is_multi_type     BOOLEAN DEFAULT FALSE,
            balance_breakdown JSONB NOT NULL,
            unpaid_days       NUMERIC(5,2) DEFAULT 0,
            is_historic       BOOLEAN DEFAULT FALSE,
            created_at        TIMESTAMPTZ DEFAULT NOW(),
            updated_at        TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_request_dates CHECK (end_date >= start_date)
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_req_emp_dates "
        "ON leave_requests (employee_id, start_date, end_date)"
    )
    op.execute("CREATE INDEX ix_leave_req_status ON leave_requests (status)")

    # ── 5. leave_entitlement_logs ─────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_entitlement_logs (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id     UUID NOT NULL REFERENCES employees(id),
            leave_type_id   UUID NOT NULL REFERENCES leave_types(id),
            year            INTEGER NOT NULL,
            days_added      NUMERIC(5,2) NOT NULL,
            reason          VARCHAR(255),
            created_by      UUID REFERENCES employees(id),
            created_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_entitlement_log_emp_year "
        "ON leave_entitlement_logs (employee_id, year)"
    )

    # ── Seed data ─────────────────────────────────────────────────────────
    op.execute("""
        INSERT INTO leave_types (name, description, default_days) VALUES
            ('Casual Leave', 'Tenure-based vacation allowance', 14),
            ('Sick Leave',   'Illness and medical appointments', 3),
            ('Flex Leave',   'Flat flexible days for everyone', 3),
            ('Paid Leave',   'Discretionary paid leave; never cascades', 0),
            ('Unpaid Leave', 'Leave without pay; overflow bucket', 0)
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    tables = [
        "leave_entitlement_logs",
        "leave_requests",
        "leave_balances",
        "leave_types",
        "employees",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
