import sqlite3
from typing import Iterable, List

try:
    import psycopg2
    import psycopg2.extras
except ImportError:  # pragma: no cover - optional dependency for postgres
    psycopg2 = None

from flask import current_app, g


class Database:
    def __init__(self, backend: str, connection):
        self.backend = backend
        self._conn = connection

    def execute(self, sql: str, params: Iterable | None = None):
        if self.backend == "postgres":
            cursor = self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            if params:
                sql = _convert_qmark_to_pg(sql)
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
            return cursor
        return self._conn.execute(sql, params or ())

    def executescript(self, sql: str):
        if self.backend != "postgres":
            return self._conn.executescript(sql)
        for statement in _split_sql_statements(sql):
            if statement.strip():
                self.execute(statement)

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()


def _split_sql_statements(sql: str) -> List[str]:
    statements = []
    current = []
    in_single = False
    for ch in sql:
        if ch == "'":
            in_single = not in_single
        elif ch == ";" and not in_single:
            statements.append("".join(current))
            current = []
            continue
        current.append(ch)
    if current:
        statements.append("".join(current))
    return statements


def _convert_qmark_to_pg(sql: str) -> str:
    return sql.replace("?", "%s")


def connect_database(db_path: str) -> Database:
    if db_path.lower().startswith("postgres"):
        if psycopg2 is None:
            raise RuntimeError("psycopg2 is not installed.")
        conn = psycopg2.connect(db_path)
        return Database("postgres", conn)

    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.row_factory = sqlite3.Row
    return Database("sqlite", conn)


def get_db():
    if "db" not in g:
        db_path = current_app.config["DB_PATH"]
        g.db = connect_database(db_path)
    return g.db


def close_db(_error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS partners (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('vehicle_owner','material_supplier')),
    business_name TEXT NOT NULL,
    verification_status TEXT NOT NULL DEFAULT 'pending' CHECK (
        verification_status IN ('pending','under_review','approved','rejected','suspended')
    ),
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS materials (
    id TEXT PRIMARY KEY,
    supplier_id TEXT NOT NULL,
    name TEXT NOT NULL,
    category TEXT NOT NULL DEFAULT 'other',
    unit TEXT NOT NULL,
    price_per_unit TEXT NOT NULL,
    minimum_order INTEGER NOT NULL DEFAULT 1 CHECK (minimum_order >= 1),
    available_quantity INTEGER NOT NULL DEFAULT 0 CHECK (available_quantity >= 0),
    is_available INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS vehicles (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    name TEXT NOT NULL,
    category TEXT NOT NULL DEFAULT 'other',
    price_per_hour TEXT NOT NULL,
    price_per_day TEXT NOT NULL,
    is_available INTEGER NOT NULL DEFAULT 1,
    status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active','inactive','maintenance')),
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS service_requests (
    id TEXT PRIMARY KEY,
    requester_id TEXT NOT NULL,
    kind TEXT NOT NULL CHECK (kind IN ('material','vehicle')),
    material_id TEXT,
    vehicle_id TEXT,
    quantity INTEGER,
    duration INTEGER,
    duration_unit TEXT CHECK (duration_unit IS NULL OR duration_unit IN ('hours','days')),
    total_price TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending' CHECK (
        status IN ('pending','confirmed','in_progress','completed','cancelled','rejected')
    ),
    request_date TEXT NOT NULL,
    required_by_date TEXT NOT NULL,
    completed_date TEXT,
    address TEXT NOT NULL,
    contact_name TEXT NOT NULL,
    contact_phone TEXT NOT NULL,
    contact_email TEXT NOT NULL,
    notes TEXT,
    special_requirements TEXT NOT NULL DEFAULT '[]',
    assigned_partner_id TEXT,
    order_number TEXT NOT NULL,
    estimated_delivery TEXT,
    actual_delivery TEXT,
    delivery_status TEXT NOT NULL DEFAULT 'pending',
    payment_method TEXT,
    payment_status TEXT NOT NULL DEFAULT 'pending',
    payment_transaction_id TEXT,
    paid_amount TEXT NOT NULL DEFAULT '0.00',
    paid_date TEXT,
    feedback_rating INTEGER CHECK (feedback_rating IS NULL OR (feedback_rating BETWEEN 1 AND 5)),
    feedback_comment TEXT,
    feedback_date TEXT,
    cancellation_reason TEXT,
    cancelled_by TEXT,
    cancelled_date TEXT,
    stock_reserved INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    CHECK (
        (kind = 'material' AND material_id IS NOT NULL AND vehicle_id IS NULL
            AND quantity IS NOT NULL AND duration IS NULL AND duration_unit IS NULL)
        OR
        (kind = 'vehicle' AND vehicle_id IS NOT NULL AND material_id IS NULL
            AND quantity IS NULL AND duration IS NOT NULL AND duration_unit IS NOT NULL)
    )
);

CREATE UNIQUE INDEX IF NOT EXISTS ux_service_requests_order_number ON service_requests (order_number);
CREATE INDEX IF NOT EXISTS ix_service_requests_requester_status ON service_requests (requester_id, status);
CREATE INDEX IF NOT EXISTS ix_service_requests_partner_status ON service_requests (assigned_partner_id, status);
CREATE INDEX IF NOT EXISTS ix_service_requests_request_date ON service_requests (request_date);

CREATE TABLE IF NOT EXISTS status_events (
    id TEXT PRIMARY KEY,
    entity TEXT NOT NULL,
    entity_id TEXT NOT NULL,
    from_status TEXT,
    to_status TEXT NOT NULL,
    reason TEXT,
    actor_id TEXT,
    sequence INTEGER NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS ix_status_events_entity ON status_events (entity, entity_id, sequence)
"""


def init_db():
    db = get_db()
    db.executescript(SCHEMA_SQL)
    db.commit()
