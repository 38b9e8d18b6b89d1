# init_db.py
"""
Drop and recreate every lending table in the configured database.

    DATABASE_URL=sqlite:///library.db python init_db.py
"""
import logging

from sqlalchemy import create_engine

from lending_service.config import Config
from lending_service.models import Base

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def reset_database(url):
    engine = create_engine(url, future=True)
    try:
        Base.metadata.drop_all(engine)
        Base.metadata.create_all(engine)
        logger.info("Database synced successfully")
    finally:
        engine.dispose()


def main():
    try:
        reset_database(Config.SQLALCHEMY_DATABASE_URI)
    except Exception:
        logger.exception("Error syncing database")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
