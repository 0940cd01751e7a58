import logging

from salon_booking.database import engine, Base
# Import all models to ensure they are registered with Base.metadata
from salon_booking.models import Reservation, Review  # noqa: F401

logger = logging.getLogger(__name__)


def create_tables():
    logger.info("Creating tables in database...")
    # This checks the DB and creates any missing tables defined in the models.
    # On PostgreSQL the overlap exclusion constraint is added with the table.
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created successfully")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s [%(name)s] %(message)s")
    create_tables()
