"""
Model de livro: uma única unidade física em circulação.
"""

import uuid
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookrelay.db.session import Base
from bookrelay.models.base import UUIDMixin, TimestampMixin
from bookrelay.models.enums import BookStatus, HELD_STATUSES, enum_values

if TYPE_CHECKING:
    from bookrelay.models.user import User


class Book(Base, UUIDMixin, TimestampMixin):
    """
    Livro físico da biblioteca comunitária.

    Não existe cópia: cada registro é um único exemplar. O livro pertence à
    biblioteca; o portador atual é apenas uma referência.

    Regras de negócio:
        - current_holder_id é preenchido se e somente se status é
          READING ou ON_HOLD
        - status e portador são alterados sempre juntos, por update
          condicional (BookRepository.transition)

    Attributes:
        id: UUID único do livro
        title: Título
        author: Autor
        status: AVAILABLE, REQUESTED, READING, ON_HOLD ou RESERVED
        max_reading_days: Prazo de leitura de cada leitor
        current_holder_id: FK para o usuário com o livro em mãos
        created_by: FK para o membro que cadastrou o livro (primeiro portador)
    """
    __tablename__ = "books"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    author: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    status: Mapped[BookStatus] = mapped_column(
        SQLEnum(
            BookStatus,
            name="book_status",
            create_type=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=BookStatus.AVAILABLE,
        index=True,
    )
    max_reading_days: Mapped[int] = mapped_column(Integer, nullable=False, default=14)
    current_holder_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Relationships
    current_holder: Mapped[Optional["User"]] = relationship(
        "User",
        foreign_keys=[current_holder_id],
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "(current_holder_id IS NOT NULL) = (status IN ({}))".format(
                ", ".join(f"'{s.value}'" for s in HELD_STATUSES)
            ),
            name="ck_books_holder_matches_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Book {self.title} - {self.status.value}>"

    @property
    def is_held(self) -> bool:
        """Retorna True se o livro está fisicamente com um portador registrado."""
        return self.status in HELD_STATUSES
