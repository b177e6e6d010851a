from __future__ import annotations

from ..extensions import db


class DocumentSequence(db.Model):
    """
    Monotonic counters for human-facing document numbers.

    One row per sequence name ("SALE", "NFCE-1" for invoice series 1, ...).
    next_number is the number the next allocation will return.
    """
    __tablename__ = "document_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "next_number": self.next_number}
