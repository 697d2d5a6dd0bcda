"""
Model de histórico de leitura (linha do tempo de portadores de um livro).
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, ForeignKey, DateTime, Index, Enum as SQLEnum, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookrelay.db.session import Base
from bookrelay.models.base import UUIDMixin, TimestampMixin, utcnow
from bookrelay.models.enums import DeliveryStatus, enum_values

if TYPE_CHECKING:
    from bookrelay.models.book import Book


class ReadingHistory(Base, UUIDMixin, TimestampMixin):
    """
    Um período contínuo em que um leitor esteve com o livro.

    "Concluído" (is_completed) significa que o leitor terminou a leitura;
    "fechado" (end_date preenchido) significa que o livro saiu das mãos
    dele. Uma entrada concluída aguardando entrega tem is_completed=True,
    delivery_status=IN_TRANSIT e end_date=None até o próximo leitor
    confirmar o recebimento.

    Regras de negócio:
        - No máximo uma entrada ativa (end_date IS NULL) por livro
          - índice único parcial
        - next_reader_id aponta para o sucessor já definido (se houver)

    Attributes:
        id: UUID único da entrada
        book_id: FK para o livro
        reader_id: Leitor que está/esteve com o livro
        start_date: Início do período
        end_date: Fim do período (None = entrada ativa)
        due_date: Prazo de leitura
        is_completed: Leitor marcou a leitura como concluída
        completed_at: Quando a leitura foi concluída
        next_reader_id: Próximo leitor definido pela varredura
        delivery_status: NOT_STARTED, IN_TRANSIT ou DELIVERED
        marked_delivered_at: Quando o próximo leitor confirmou o recebimento
    """
    __tablename__ = "reading_history"

    book_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("books.id", ondelete="CASCADE"),
        nullable=False,
    )
    reader_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    due_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    next_reader_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    delivery_status: Mapped[DeliveryStatus] = mapped_column(
        SQLEnum(
            DeliveryStatus,
            name="delivery_status",
            create_type=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=DeliveryStatus.NOT_STARTED,
    )
    marked_delivered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    book: Mapped["Book"] = relationship("Book", lazy="selectin")

    __table_args__ = (
        Index("ix_reading_history_reader_id", "reader_id"),
        # Último histórico concluído de um livro (portador físico atual)
        Index(
            "ix_reading_history_last_completed",
            "book_id",
            "is_completed",
            "completed_at",
        ),
        # Varredura de vencimentos próximos
        Index("ix_reading_history_due_date", "due_date", "end_date"),
        # Uma única entrada ativa por livro
        Index(
            "uq_reading_history_active_per_book",
            "book_id",
            unique=True,
            postgresql_where=text("end_date IS NULL"),
        ),
    )

    def __repr__(self) -> str:
        state = "active" if self.end_date is None else "closed"
        return f"<ReadingHistory {self.id} - {state}>"

    @property
    def is_active(self) -> bool:
        """Retorna True se o leitor ainda está com o livro."""
        return self.end_date is None

    @property
    def has_next_reader(self) -> bool:
        """Retorna True se já existe sucessor definido."""
        return self.next_reader_id is not None

    @property
    def is_overdue(self) -> bool:
        """Retorna True se a entrada ativa passou do prazo."""
        if self.end_date is not None or self.due_date is None:
            return False
        return utcnow() > self.due_date
