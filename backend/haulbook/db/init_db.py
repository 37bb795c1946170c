"""
Database initialization script.

    python -m haulbook.db.init_db [--seed-aliases]
"""
import logging
import sys

from haulbook.core.logging_config import configure_logging
from haulbook.db.session import SessionLocal, init_db

logger = logging.getLogger(__name__)


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    configure_logging()
    logger.info("Initializing database...")
    init_db()

    if "--seed-aliases" in argv:
        from haulbook.services.region_normalize_service import initialize_common_aliases
        db = SessionLocal()
        try:
            added = initialize_common_aliases(db)
            db.commit()
            logger.info(f"Seeded {added} region aliases")
        finally:
            db.close()

    logger.info("Database initialized successfully!")


if __name__ == "__main__":
    main()
