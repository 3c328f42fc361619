from threading import Lock

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from clinic_scheduler.core import config


def _connect_args(url: str) -> dict:
    # SQLite connections are shared across FastAPI worker threads.
    if url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": config.SQLITE_BUSY_TIMEOUT_SECONDS}
    return {}


def configure_sqlite_locking(target_engine) -> None:
    """Start every SQLite transaction with ``BEGIN IMMEDIATE``.

    The write lock is held from the first statement, so a conflict check and the
    insert that follows it run with no other writer in between.
    """

    @event.listens_for(target_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target_engine, "begin")
    def _begin_immediate(connection):
        connection.exec_driver_sql("BEGIN IMMEDIATE")


engine = create_engine(config.DATABASE_URL, connect_args=_connect_args(config.DATABASE_URL))
if config.DATABASE_URL.startswith("sqlite"):
    configure_sqlite_locking(engine)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

ACTIVE_SLOT_PREDICATE = "status NOT IN ('CANCELLED', 'NO_SHOW')"
SLOT_UNIQUE_INDEX = "uq_appointments_practitioner_slot"

_schema_lock = Lock()
_template_schema_checked = False
_appointment_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_template_schema() -> None:
    global _template_schema_checked

    if _template_schema_checked:
        return

    with _schema_lock:
        if _template_schema_checked:
            return

        inspector = inspect(engine)

        if 'availability_templates' not in inspector.get_table_names():
            _template_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('availability_templates')}
        migration_steps = [
            ('max_concurrent', 'ALTER TABLE availability_templates ADD COLUMN max_concurrent INTEGER DEFAULT 1'),
            ('active', 'ALTER TABLE availability_templates ADD COLUMN active BOOLEAN DEFAULT TRUE'),
            ('updated_at', 'ALTER TABLE availability_templates ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_templates_practitioner_day '
                    'ON availability_templates(practitioner_id, day_of_week, active)'
                )
            )

        _template_schema_checked = True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('cancel_reason', 'ALTER TABLE appointments ADD COLUMN cancel_reason VARCHAR'),
            ('cancelled_at', 'ALTER TABLE appointments ADD COLUMN cancelled_at TIMESTAMP'),
            ('confirmation_code', 'ALTER TABLE appointments ADD COLUMN confirmation_code VARCHAR(6)'),
            ('source', "ALTER TABLE appointments ADD COLUMN source VARCHAR(20) DEFAULT 'WALK_IN'"),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_practitioner_start '
                    'ON appointments(practitioner_id, scheduled_at)'
                )
            )
            connection.execute(
                text(
                    f'CREATE UNIQUE INDEX IF NOT EXISTS {SLOT_UNIQUE_INDEX} '
                    f'ON appointments(practitioner_id, scheduled_at) WHERE {ACTIVE_SLOT_PREDICATE}'
                )
            )

        _appointment_schema_checked = True
