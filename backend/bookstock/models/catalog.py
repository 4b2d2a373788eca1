from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Book(db.Model):
    """
    Catalog identity for a title.

    The catalog itself (pricing, authorship, descriptive metadata) lives in
    another service; the ledger only needs a row to reference and to answer
    NotFound for unknown ids. title/isbn are carried for display.
    """
    __tablename__ = "books"
    __table_args__ = (
        db.UniqueConstraint("isbn", name="uq_books_isbn"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    isbn = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Book id={self.id} title={self.title!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "isbn": self.isbn,
            "created_at": to_utc_z(self.created_at),
        }
