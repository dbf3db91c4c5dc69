# database.py
import logging
import uuid
from datetime import datetime, timezone

from fastapi.requests import HTTPConnection
from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, String, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()

RECORD_ID_PATTERN = r"^[0-9a-f]{32}$"
DEFAULT_CATEGORY = "Uncategorized"


def new_record_id():
    return uuid.uuid4().hex


def utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"
    username = Column(String(50), primary_key=True, index=True)
    password_hash = Column(String, nullable=False)


class Expense(Base):
    __tablename__ = "expenses"
    id = Column(String(32), primary_key=True, default=new_record_id)
    owner = Column(String(50), ForeignKey("users.username"), nullable=False, index=True)
    description = Column(String(100), nullable=False)
    amount = Column(Float, nullable=False)
    category = Column(String, nullable=False, default=DEFAULT_CATEGORY, index=True)
    date = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class Category(Base):
    __tablename__ = "categories"
    id = Column(String(32), primary_key=True, default=new_record_id)
    owner = Column(String(50), ForeignKey("users.username"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Database:
    """Owns the engine and session factory for the lifetime of the app."""

    def __init__(self, url: str):
        self.url = url
        self.engine = None
        self.SessionLocal = None

    def connect(self):
        connect_args = {}
        if self.url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine = create_engine(self.url, connect_args=connect_args)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        Base.metadata.create_all(bind=self.engine)
        logger.info("Connected to database %s", self.engine.url.render_as_string())

    def session(self) -> Session:
        if self.SessionLocal is None:
            raise RuntimeError("Database is not connected")
        return self.SessionLocal()

    def dispose(self):
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database connection closed")
        self.engine = None
        self.SessionLocal = None


def get_db(connection: HTTPConnection):
    db = connection.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
