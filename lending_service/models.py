# lending_service/models.py
import enum
from datetime import datetime

from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Index,
    text,
)

Base = declarative_base()

# range of a signed 64-bit INTEGER column
MIN_INTEGER = -(2 ** 63)
MAX_INTEGER = 2 ** 63 - 1


class LoanState(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


class User(Base):
    __tablename__ = "user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)

    loans = relationship("UserBook", back_populates="user")


class Book(Base):
    __tablename__ = "book"

    # PK as Integer autoincrement so SQLite happily generates IDs
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    loans = relationship("UserBook", back_populates="book")


class UserBook(Base):
    """
    Link between a user and a book. One row per (user, book) pair: it is
    reopened on every re-borrow and closed with the user's score on return.
    """
    __tablename__ = "user_book"
    __table_args__ = (
        # a book has a single copy, so only one open link per book
        Index(
            "uq_user_book_open_book",
            "book_id",
            unique=True,
            sqlite_where=text("is_currently_borrowed = 1"),
            postgresql_where=text("is_currently_borrowed"),
        ),
    )

    user_id = Column(Integer, ForeignKey("user.id"), primary_key=True)
    book_id = Column(Integer, ForeignKey("book.id"), primary_key=True)
    user_score = Column(Integer, nullable=False, default=0)
    is_currently_borrowed = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    user = relationship("User", back_populates="loans")
    book = relationship("Book", back_populates="loans")

    @property
    def state(self):
        return LoanState.OPEN if self.is_currently_borrowed else LoanState.CLOSED

    def reopen(self):
        self.is_currently_borrowed = True
        self.user_score = 0

    def close(self, score):
        self.is_currently_borrowed = False
        self.user_score = score
