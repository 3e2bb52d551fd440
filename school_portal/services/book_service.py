from fastapi import HTTPException, status
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from school_portal.core.logging import get_logger
from school_portal.db.models import Book
from school_portal.schemas.book import BookUpdate

logger = get_logger("services.books")


def _raise_integrity(db: Session, exc: IntegrityError) -> None:
    db.rollback()
    # Solo la restricción única del ISBN se traduce a 409
    if "isbn" in str(exc.orig).lower():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="ISBN already exists",
        )
    raise exc


def save_new_book(db: Session, book: Book) -> Book:
    db.add(book)
    try:
        db.commit()
    except IntegrityError as exc:
        _raise_integrity(db, exc)
    db.refresh(book)
    return book


def update_book(db: Session, book_id: int, payload: BookUpdate) -> Book:
    """
    Actualiza datos y copias de un libro.

    Las copias se escriben de forma condicional sobre los valores leídos
    (total y disponibles): si un préstamo o devolución cambió la fila entre
    medias, no se pisa su ajuste y se responde 409.
    """
    book = db.get(Book, book_id)
    if not book:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Book not found",
        )

    update_data = payload.model_dump(exclude_unset=True)
    read_total = book.total_copies
    read_available = book.available_copies

    new_total = update_data.pop("total_copies", read_total)
    if "available_copies" in update_data:
        new_available = update_data.pop("available_copies")
    else:
        # Si cambia total_copies sin available_copies, el disponible se
        # desplaza por la misma diferencia
        new_available = read_available + (new_total - read_total)

    if new_available < 0 or new_available > new_total:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="available_copies must be between 0 and total_copies",
        )

    try:
        if (new_total, new_available) != (read_total, read_available):
            result = db.execute(
                update(Book)
                .where(
                    Book.id == book_id,
                    Book.total_copies == read_total,
                    Book.available_copies == read_available,
                )
                .values(total_copies=new_total, available_copies=new_available)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                db.rollback()
                logger.warning(
                    "book_copies_changed_concurrently",
                    extra={
                        "operation": "book_update",
                        "resource": "book",
                        "book_id": book_id,
                        "status_code": 409,
                    },
                )
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Book copies were modified by another request",
                )

        for field, value in update_data.items():
            setattr(book, field, value)

        db.commit()
    except IntegrityError as exc:
        _raise_integrity(db, exc)

    db.refresh(book)
    return book
