import os
from sqlalchemy import create_engine, func, Column, String, Text, DateTime
from sqlalchemy.orm import sessionmaker, declarative_base
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Database Setup
# Default to local SQLite, but allow override for a hosted Postgres
DB_URL = os.getenv("DATABASE_URL", "sqlite:///finance_tracker.db")

engine = create_engine(DB_URL, connect_args={"check_same_thread": False} if "sqlite" in DB_URL else {})
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# --- Models ---

class Blob(Base):
    """One serialized JSON document per storage key."""
    __tablename__ = "blobs"

    key = Column(String, primary_key=True, index=True)  # e.g. fintrack_expenses_<user id>
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

# --- Init DB ---
def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)
