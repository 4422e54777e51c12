import uuid

import pytest

from library_api.core.errors import ConflictError, NotFoundError, UnavailableError, ValidationError
from library_api.services import inventory


def _isbn() -> str:
    return f"979-{uuid.uuid4().int % 10**10:010d}"


def _register(db, total_copies=2, **overrides):
    fields = {"title": "Rayuela", "author": "Julio Cortazar", "isbn": _isbn(), "total_copies": total_copies}
    fields.update(overrides)
    return inventory.register_book(db, **fields)


def test_register_book_starts_fully_available(db_session):
    book = _register(db_session, total_copies=3, category=None)

    assert book.id is not None
    assert book.total_copies == 3
    assert book.available_copies == 3
    assert book.category == "Other"


def test_register_book_strips_text_fields(db_session):
    book = _register(db_session, title="  Ficciones  ", author=" Borges ")
    assert book.title == "Ficciones"
    assert book.author == "Borges"


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"title": ""}, "title"),
        ({"author": None}, "author"),
        ({"isbn": "abc-123"}, "isbn"),
        ({"total_copies": -1}, "total_copies"),
        ({"total_copies": "3"}, "total_copies"),
        ({"published_year": 999}, "published_year"),
        ({"category": "Poetry"}, "category"),
    ],
)
def test_register_book_rejects_bad_input(db_session, overrides, field):
    with pytest.raises(ValidationError) as exc:
        _register(db_session, **overrides)
    assert field in exc.value.message


def test_register_book_duplicate_isbn(db_session):
    isbn = _isbn()
    _register(db_session, isbn=isbn)
    with pytest.raises(ConflictError):
        _register(db_session, isbn=isbn)


def test_decrement_until_empty(db_session):
    book = _register(db_session, total_copies=2)

    assert inventory.decrement_available(db_session, book.id) == 1
    assert inventory.decrement_available(db_session, book.id) == 0
    with pytest.raises(UnavailableError):
        inventory.decrement_available(db_session, book.id)

    db_session.commit()
    assert inventory.get_book(db_session, book.id).available_copies == 0


def test_decrement_unknown_book(db_session):
    with pytest.raises(NotFoundError):
        inventory.decrement_available(db_session, 999999)


def test_increment_is_capped_at_total(db_session):
    book = _register(db_session, total_copies=2)
    inventory.decrement_available(db_session, book.id)

    assert inventory.increment_available(db_session, book.id) == 2
    # ya en el tope: no cambia ni rompe el invariante
    assert inventory.increment_available(db_session, book.id) == 2

    db_session.commit()
    refreshed = inventory.get_book(db_session, book.id)
    assert refreshed.available_copies == refreshed.total_copies == 2


def test_increment_unknown_book(db_session):
    with pytest.raises(NotFoundError):
        inventory.increment_available(db_session, 999999)


def test_update_copy_count_clamps_available_down(db_session):
    book = _register(db_session, total_copies=3)

    updated = inventory.update_copy_count(db_session, book.id, 1)
    assert (updated.total_copies, updated.available_copies) == (1, 1)


def test_update_copy_count_keeps_available_when_total_grows(db_session):
    book = _register(db_session, total_copies=3)
    inventory.decrement_available(db_session, book.id)
    db_session.commit()

    updated = inventory.update_copy_count(db_session, book.id, 5)
    assert (updated.total_copies, updated.available_copies) == (5, 2)


def test_update_copy_count_to_zero(db_session):
    book = _register(db_session, total_copies=2)
    updated = inventory.update_copy_count(db_session, book.id, 0)
    assert (updated.total_copies, updated.available_copies) == (0, 0)


def test_update_copy_count_rejects_negative(db_session):
    book = _register(db_session, total_copies=2)
    with pytest.raises(ValidationError):
        inventory.update_copy_count(db_session, book.id, -1)

    assert inventory.get_book(db_session, book.id).total_copies == 2


def test_update_copy_count_unknown_book(db_session):
    with pytest.raises(NotFoundError):
        inventory.update_copy_count(db_session, 999999, 3)


def test_update_book_isbn_conflict(db_session):
    first = _register(db_session)
    second = _register(db_session)

    with pytest.raises(ConflictError):
        inventory.update_book(db_session, second.id, {"isbn": first.isbn})
