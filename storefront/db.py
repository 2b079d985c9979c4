import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from storefront.base import Base
from storefront.config import load_settings

# Setup logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

# Load DATABASE_URL from environment or use default
DATABASE_URL = load_settings().DATABASE_URL

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def init_db() -> None:
    """
    Creates all defined tables and seeds the products table from the catalog.
    """
    from storefront import schema
    from storefront.utils import seed_products
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        inserted = seed_products(db)
        db.commit()
        if inserted:
            logger.info(f"Seeded {inserted} catalog products")
    finally:
        db.close()

def get_db():
    """
    Dependency for generating a new SQLAlchemy session.

    Yields:
        An active database session.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

if __name__ == "__main__":
    init_db()
