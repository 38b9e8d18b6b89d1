import logging

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import LendingError, ValidationError
from .lending import LendingService
from .models import MAX_INTEGER, MIN_INTEGER, Base

logger = logging.getLogger(__name__)

api = Blueprint("lending", __name__)


# ---------------------------------------------------------
# Flask + DB setup
# ---------------------------------------------------------

def create_app(config=None):
    """
    Build the Flask app. ``config`` is an optional mapping applied on top of
    ``Config``, e.g. ``{"SQLALCHEMY_DATABASE_URI": "sqlite:///test.db"}``.
    """
    app = Flask(__name__, static_folder=None)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    logging.basicConfig(level=app.config["LOG_LEVEL"])
    CORS(app)

    engine = create_engine(
        app.config["SQLALCHEMY_DATABASE_URI"],
        echo=app.config["SQLALCHEMY_ECHO"],
        future=True,
    )
    # Create tables if not present
    Base.metadata.create_all(engine)

    app.extensions["lending_engine"] = engine
    app.extensions["lending_sessionmaker"] = sessionmaker(
        bind=engine, autoflush=False, autocommit=False
    )

    app.register_blueprint(api)
    app.register_error_handler(LendingError, handle_lending_error)
    app.register_error_handler(HTTPException, handle_http_error)

    logger.info("Lending service using %s", engine.url.render_as_string(hide_password=True))
    return app


def get_session():
    return current_app.extensions["lending_sessionmaker"]()


# ---------------------------------------------------------
# Error handling
# ---------------------------------------------------------

def handle_lending_error(err):
    return jsonify(err.to_dict()), err.status_code


def handle_http_error(err):
    # routing redirects are HTTPExceptions too
    if err.code is None or err.code < 400:
        return err
    return jsonify({"error": err.description}), err.code


# ---------------------------------------------------------
# Helpers
# ---------------------------------------------------------

def read_name():
    data = request.get_json(force=True, silent=True) or {}
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Name is required")
    return name.strip()


def read_score():
    data = request.get_json(force=True, silent=True) or {}
    score = data.get("score")
    # JSON clients may send 4.0 for 4
    if isinstance(score, float) and score.is_integer():
        score = int(score)
    # bool is an int subclass but never a valid score
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValidationError("score must be an integer")
    if not MIN_INTEGER <= score <= MAX_INTEGER:
        raise ValidationError("score is out of range")
    return score


# ---------------------------------------------------------
# Health
# ---------------------------------------------------------

@api.get("/")
def index():
    return "Library Management Application!"


@api.get("/health")
def health_check():
    return jsonify({"status": "ok", "service": current_app.config["SERVICE_NAME"]}), 200


# ---------------------------------------------------------
# Users
# ---------------------------------------------------------

@api.get("/users")
def list_users():
    session = get_session()
    try:
        return jsonify(LendingService(session).list_users())
    finally:
        session.close()


@api.post("/users")
def create_user():
    name = read_name()

    session = get_session()
    try:
        return jsonify(LendingService(session).create_user(name)), 201
    finally:
        session.close()


@api.get("/users/<int:user_id>")
def get_user(user_id):
    session = get_session()
    try:
        return jsonify(LendingService(session).get_user_with_loans(user_id))
    finally:
        session.close()


@api.post("/users/<int:user_id>/borrow/<int:book_id>")
def borrow_book(user_id, book_id):
    session = get_session()
    try:
        message = LendingService(session).borrow_book(user_id, book_id)
        return jsonify({"message": message}), 200
    finally:
        session.close()


@api.post("/users/<int:user_id>/return/<int:book_id>")
def return_book(user_id, book_id):
    score = read_score()

    session = get_session()
    try:
        message = LendingService(session).return_book(user_id, book_id, score)
        return jsonify({"message": message}), 200
    finally:
        session.close()


# ---------------------------------------------------------
# Books
# ---------------------------------------------------------

@api.get("/books")
def list_books():
    session = get_session()
    try:
        return jsonify(LendingService(session).list_books())
    finally:
        session.close()


@api.post("/books")
def create_book():
    name = read_name()

    session = get_session()
    try:
        return jsonify(LendingService(session).create_book(name)), 201
    finally:
        session.close()


@api.get("/books/<int:book_id>")
def get_book(book_id):
    session = get_session()
    try:
        return jsonify(LendingService(session).get_book_with_average_score(book_id))
    finally:
        session.close()


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=app.config["PORT"], debug=True)
