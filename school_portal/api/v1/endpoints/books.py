from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import asc, desc
from sqlalchemy.orm import Session

from school_portal.api.v1.dependencies import get_db
from school_portal.api.v1.dependencies_auth import get_current_user, require_role
from school_portal.db.models import Book, BookIssue, User, UserRole
from school_portal.schemas.book import BookCreate, BookUpdate, BookRead
from school_portal.services.book_service import save_new_book, update_book as apply_book_update

router = APIRouter(
    prefix="/api/v1/books",
    tags=["books"],
)


@router.get("/", response_model=List[BookRead])
def list_books(
    title: Optional[str] = Query(None),
    author: Optional[str] = Query(None),
    available_only: bool = False,
    skip: int = 0,
    limit: int = 100,
    order_by: str = "title",       # "id", "title", "created_at"
    order_dir: str = "asc",        # "asc" o "desc"
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Book)

    if title:
        query = query.filter(Book.title.ilike(f"%{title}%"))
    if author:
        query = query.filter(Book.author.ilike(f"%{author}%"))
    if available_only:
        query = query.filter(Book.available_copies > 0)

    orderable_fields = {
        "id": Book.id,
        "title": Book.title,
        "created_at": Book.created_at,
    }
    column = orderable_fields.get(order_by, Book.title)

    if order_dir.lower() == "desc":
        query = query.order_by(desc(column))
    else:
        query = query.order_by(asc(column))

    return query.offset(skip).limit(limit).all()


@router.post(
    "/",
    response_model=BookRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_role(UserRole.LIBRARIAN))],
)
def create_book(
    payload: BookCreate,
    db: Session = Depends(get_db),
):
    book = Book(
        title=payload.title,
        author=payload.author,
        isbn=payload.isbn,
        total_copies=payload.total_copies,
        available_copies=payload.total_copies,  # al inicio, todas disponibles
    )
    return save_new_book(db, book)


@router.get("/{book_id}", response_model=BookRead)
def get_book(
    book_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    book = db.query(Book).filter(Book.id == book_id).first()
    if not book:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Book not found",
        )
    return book


@router.put(
    "/{book_id}",
    response_model=BookRead,
    dependencies=[Depends(require_role(UserRole.LIBRARIAN))],
)
def update_book(
    book_id: int,
    payload: BookUpdate,
    db: Session = Depends(get_db),
):
    return apply_book_update(db, book_id, payload)


@router.delete(
    "/{book_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_role(UserRole.ADMIN))],
)
def delete_book(
    book_id: int,
    db: Session = Depends(get_db),
):
    book = db.query(Book).filter(Book.id == book_id).first()
    if not book:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Book not found",
        )

    # No borrar libros con historial de préstamos
    has_issues = db.query(BookIssue.id).filter(BookIssue.book_id == book_id).first()
    if has_issues:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Book has issue history and cannot be deleted",
        )

    db.delete(book)
    db.commit()
    return None
