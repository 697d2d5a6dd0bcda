"""
Model de membro da comunidade.
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from bookrelay.db.session import Base
from bookrelay.models.base import UUIDMixin, TimestampMixin


class User(Base, UUIDMixin, TimestampMixin):
    """
    Membro da biblioteca comunitária.

    A circulação referencia usuários apenas por ID; o model guarda os
    contadores que a circulação e a pontuação atualizam.

    Attributes:
        id: UUID único do usuário
        name: Nome completo
        email: Email único
        success_score: Pontuação de reputação (ajustada pelo scorer)
        books_received: Quantidade de pedidos aprovados para o usuário
        books_shared: Quantidade de livros compartilhados pelo usuário
    """
    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    success_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    books_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    books_shared: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<User {self.email}>"
