import logging
import os
import sys
from flask_migrate import upgrade
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from app import create_app
from config import Config
from models import db

# Configure logging
logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "migrations")


def check_connection(url):
    engine = create_engine(url)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    finally:
        engine.dispose()


def main():
    try:
        check_connection(Config.SQLALCHEMY_DATABASE_URI)
        logger.info("Database connection successful")
    except OperationalError as e:
        logger.error(f"Database connection failed: {e}")
        sys.exit(1)

    app = create_app(Config)
    with app.app_context():
        try:
            if os.path.isdir(MIGRATIONS_DIR):
                upgrade(directory=MIGRATIONS_DIR)  # Apply migrations
                logger.info("Database migrations applied successfully")
            else:
                db.create_all()
                logger.info("No migrations directory, created tables from models")
        except Exception as e:
            logger.error(f"Failed to apply migrations: {e}")
            sys.exit(1)


if __name__ == "__main__":
    main()
