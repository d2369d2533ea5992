"""
Application startup helpers: logging setup and schema creation.
"""

import logging

from sqlalchemy.engine import Engine

from reviewiq.core.config import settings
from reviewiq.core.database import Base

# Register models on the metadata
from reviewiq.modules.reviews.models import review_models  # noqa: F401

logger = logging.getLogger(__name__)


def configure_logging(level: str = None):
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_tables(engine: Engine):
    """Create any missing tables"""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables verified")
