"""
Database connection and setup
SQLAlchemy engine for the reference type table
"""
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.models import Base
from config.settings import settings

logger = logging.getLogger("db")

DATABASE_URL = settings.database_url

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

# Create engine with echo=False (set to True for SQL debugging)
engine = create_engine(DATABASE_URL, connect_args=connect_args, echo=False)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None):
    """
    Initialize database - create all tables
    Safe to call multiple times (won't recreate existing tables)
    """
    Base.metadata.create_all(bind=bind or engine)
    logger.info(f"Database initialized at: {(bind or engine).url}")
