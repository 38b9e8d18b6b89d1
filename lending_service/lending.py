import logging
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from .errors import Conflict, InvalidState, NotFound, PersistenceError
from .models import MAX_INTEGER, MIN_INTEGER, Book, LoanState, User, UserBook

logger = logging.getLogger(__name__)

NO_SCORE = -1


class LendingService:
    """
    Borrow/return bookkeeping over an explicit SQLAlchemy session.

    The caller owns the session: open it, hand it in, close it afterwards.
    Every operation either returns plain data ready for ``jsonify`` or
    raises one of the errors in ``lending_service.errors``.
    """

    def __init__(self, session):
        self.session = session

    @contextmanager
    def _persistence_guard(self, message):
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception(message)
            raise PersistenceError(message) from exc

    def _find(self, model, record_id):
        # ids outside the INTEGER column range cannot exist
        if not MIN_INTEGER <= record_id <= MAX_INTEGER:
            return None
        return self.session.execute(
            select(model).where(model.id == record_id)
        ).scalar_one_or_none()

    def _get_user_and_book(self, user_id, book_id):
        user = self._find(User, user_id)
        book = self._find(Book, book_id)
        if not user or not book:
            raise NotFound("User or Book not found")
        return user, book

    def _get_link(self, user_id, book_id):
        return self.session.execute(
            select(UserBook).where(
                (UserBook.user_id == user_id) & (UserBook.book_id == book_id)
            )
        ).scalar_one_or_none()

    # ----------------- users -----------------

    def list_users(self):
        with self._persistence_guard("An error occurred while fetching users"):
            users = self.session.execute(select(User).order_by(User.id)).scalars().all()
            return [{"id": u.id, "name": u.name} for u in users]

    def create_user(self, name):
        with self._persistence_guard("An error occurred while creating the user"):
            user = User(name=name)
            self.session.add(user)
            self.session.commit()
            logger.info("Created user %s (%s)", user.id, name)
            return {"id": user.id, "name": user.name}

    def get_user_with_loans(self, user_id):
        with self._persistence_guard("An error occurred while fetching the user"):
            user = self._find(User, user_id)
            if not user:
                raise NotFound("User not found")

            links = self.session.execute(
                select(UserBook)
                .options(selectinload(UserBook.book))
                .where(UserBook.user_id == user.id)
                .order_by(UserBook.book_id)
            ).scalars().all()

            return {
                "id": user.id,
                "name": user.name,
                "books": {
                    "past": [
                        {"name": link.book.name, "userScore": link.user_score}
                        for link in links
                        if link.state is LoanState.CLOSED
                    ],
                    "present": [
                        {"name": link.book.name}
                        for link in links
                        if link.state is LoanState.OPEN
                    ],
                },
            }

    # ----------------- books -----------------

    def list_books(self):
        with self._persistence_guard("An error occurred while fetching books"):
            books = self.session.execute(select(Book).order_by(Book.id)).scalars().all()
            return [{"id": b.id, "name": b.name} for b in books]

    def create_book(self, name):
        with self._persistence_guard("An error occurred while creating the book"):
            book = Book(name=name)
            self.session.add(book)
            self.session.commit()
            logger.info("Created book %s (%s)", book.id, name)
            return {"id": book.id, "name": book.name}

    def get_book_with_average_score(self, book_id):
        """
        Mean of ``user_score`` over every link of the book, rounded to two
        decimals. Open links still count with their 0 score. A total of
        exactly 0 is reported as ``NO_SCORE`` (-1).
        """
        with self._persistence_guard("An error occurred while fetching the book"):
            book = self._find(Book, book_id)
            if not book:
                raise NotFound("Book not found")

            scores = self.session.execute(
                select(UserBook.user_score).where(UserBook.book_id == book.id)
            ).scalars().all()

            total = sum(s for s in scores if s is not None)
            score = round(total / len(scores), 2) if total != 0 else NO_SCORE

            return {"id": book.id, "name": book.name, "score": score}

    # ----------------- loans -----------------

    def borrow_book(self, user_id, book_id):
        with self._persistence_guard("An error occurred while borrowing the book"):
            user, book = self._get_user_and_book(user_id, book_id)

            holder = self.session.execute(
                select(UserBook).where(
                    (UserBook.book_id == book.id)
                    & (UserBook.is_currently_borrowed.is_(True))
                )
            ).scalar_one_or_none()
            if holder:
                by_whom = "this user" if holder.user_id == user.id else "someone else"
                logger.warning(
                    "Borrow rejected: book %s already held by user %s",
                    book.id,
                    holder.user_id,
                )
                raise Conflict(f"Book is already borrowed by {by_whom}")

            link = self._get_link(user.id, book.id)
            if link is None:
                self.session.add(UserBook(user_id=user.id, book_id=book.id))
            elif link.state is LoanState.CLOSED:
                link.reopen()

            try:
                self.session.commit()
            except IntegrityError:
                # another request opened a link for this book first
                self.session.rollback()
                logger.warning("Borrow of book %s lost a race", book.id)
                raise Conflict("Book is already borrowed by someone else")

            logger.info("User %s borrowed book %s", user.id, book.id)
            return "Book borrowed successfully"

    def return_book(self, user_id, book_id, score):
        with self._persistence_guard("An error occurred while returning the book"):
            user, book = self._get_user_and_book(user_id, book_id)

            link = self._get_link(user.id, book.id)
            if link is None or link.state is not LoanState.OPEN:
                logger.warning(
                    "Return rejected: book %s is not held by user %s", book.id, user.id
                )
                raise InvalidState("This book is not currently borrowed by the user")

            link.close(score)
            self.session.commit()

            logger.info("User %s returned book %s with score %s", user.id, book.id, score)
            return "Book returned successfully"
