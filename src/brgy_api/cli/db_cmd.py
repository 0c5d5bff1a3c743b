"""Database migration CLI commands using Alembic programmatically."""

from typing import TYPE_CHECKING

import typer
from loguru import logger

if TYPE_CHECKING:
    from alembic.config import Config

db_app = typer.Typer()

ALEMBIC_CONFIG_OPTION = typer.Option("alembic.ini", "--config", "-c", help="Path to alembic.ini")


def _alembic_config(path: str) -> "Config":
    from alembic.config import Config

    return Config(path)


@db_app.command()
def upgrade(
    revision: str = typer.Argument("head", help="Target revision"),
    config_path: str = ALEMBIC_CONFIG_OPTION,
) -> None:
    """Create or migrate the users and OTP tables up to the target revision."""
    from alembic import command

    logger.info(f"Upgrading database to {revision}")
    command.upgrade(_alembic_config(config_path), revision)
    logger.info("Database upgrade complete")


@db_app.command()
def downgrade(
    revision: str = typer.Argument("-1", help="Target revision"),
    config_path: str = ALEMBIC_CONFIG_OPTION,
) -> None:
    """Roll the schema back to the target revision."""
    from alembic import command

    logger.info(f"Downgrading database to {revision}")
    command.downgrade(_alembic_config(config_path), revision)
    logger.info("Database downgrade complete")


@db_app.command()
def current(config_path: str = ALEMBIC_CONFIG_OPTION) -> None:
    """Show the current database migration revision."""
    from alembic import command

    command.current(_alembic_config(config_path), verbose=True)
