from alembic import context
from sqlmodel import SQLModel
from lokalny.core.database import engine

# Registers every table model on SQLModel.metadata for autogenerate
from lokalny.models import models  # noqa: F401

config = context.config

# Same URL as the application engine, with postgres:// already rewritten; configparser needs % escaped
config.set_main_option("sqlalchemy.url", engine.url.render_as_string(hide_password=False).replace("%", "%%"))

target_metadata = SQLModel.metadata


def _configure_options(dialect_name: str) -> dict:
    """Options shared by offline and online runs; SQLite alters tables in batch mode."""
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": dialect_name == "sqlite",
    }


def run_migrations_offline() -> None:
    """Emit the migration SQL for the configured URL without connecting."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(engine.dialect.name),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations through the application engine."""
    with engine.connect() as connection:
        context.configure(connection=connection, **_configure_options(connection.dialect.name))

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
