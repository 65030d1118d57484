"""
Alembic migrations for the venue booking store.

The app runs on async drivers; Alembic runs synchronously, so the URL is
taken from DATABASE_URL_SYNC, or derived from DATABASE_URL for a local SQLite
file. SQLite migrations use batch mode since it cannot ALTER most columns.

Schema drift on older deployments is also repaired at startup by
venue_booking.db.schema.ensure_schema; migrations remain the way to change it.
"""

from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import make_url

from alembic import context
from venue_booking.core.config import get_settings
from venue_booking.db.base import Base
from venue_booking.models import Booking, ReservationLog, Venue  # noqa: F401 - registers tables on Base.metadata

config = context.config
settings = get_settings()


def _sync_url() -> str:
    url = make_url(settings.DATABASE_URL)
    if url.get_backend_name() == "sqlite":
        return url.set(drivername="sqlite").render_as_string(hide_password=False)
    return settings.DATABASE_URL_SYNC


# configparser treats % as interpolation
config.set_main_option("sqlalchemy.url", _sync_url().replace("%", "%%"))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _configure_options(url) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "compare_server_default": True,
        "render_as_batch": make_url(url).get_backend_name() == "sqlite",
    }


def run_migrations_offline() -> None:
    """Emit the migration SQL without a database connection."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_options(connectable.url))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
