"""Database engine, session factory and declarative base."""

import logging
import os

import sqlalchemy
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from scanjobs.config import settings

logger = logging.getLogger(__name__)

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    # Deferred batches run on the scheduler thread
    connect_args["check_same_thread"] = False

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

ALEMBIC_INI = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "alembic.ini")


def init_db(bind=None):
    """Create tables: run migrations when alembic.ini is present, else create_all."""
    import scanjobs.models  # noqa: F401

    bind = bind or engine

    if sqlalchemy.inspect(bind).has_table("options"):
        logger.info("Database tables already exist, skipping migrations")
        return

    if bind is engine and os.path.exists(ALEMBIC_INI):
        from alembic import command
        from alembic.config import Config

        logger.info("Running database migrations...")
        command.upgrade(Config(ALEMBIC_INI), "head")
        logger.info("Database migrations completed successfully")
        return

    Base.metadata.create_all(bind=bind)
