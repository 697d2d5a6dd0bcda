"""
Repository base com operações genéricas.

Convenção de transação:
    - create() grava e faz commit (operação isolada)
    - add() e conditional_update() só fazem flush/execute; quem chama
      decide o commit, para agrupar várias escritas numa única transação
"""

from typing import Any, Generic, Type, TypeVar
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bookrelay.db.session import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Repository base.

    Fornece métodos genéricos para:
    - get_by_id: Buscar por ID
    - create: Criar registro com commit
    - add: Incluir registro na transação corrente (flush, sem commit)
    - conditional_update: UPDATE ... WHERE <condições> retornando linhas afetadas
    - count: Contar registros
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    async def get_by_id(self, id: UUID) -> ModelType | None:
        """Busca registro por ID."""
        result = await self.db.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def create(self, **kwargs: Any) -> ModelType:
        """Cria novo registro e faz commit."""
        instance = self.model(**kwargs)
        self.db.add(instance)
        await self.db.commit()
        await self.db.refresh(instance)
        return instance

    async def add(self, instance: ModelType) -> ModelType:
        """
        Inclui registro na transação corrente.

        O flush dispara as constraints do banco (ex.: índices únicos
        parciais), então IntegrityError aparece aqui e não no commit.
        """
        self.db.add(instance)
        await self.db.flush()
        return instance

    async def conditional_update(
        self,
        *conditions: Any,
        **values: Any,
    ) -> int:
        """
        Executa UPDATE apenas nas linhas que satisfazem as condições.

        Usado para transições de estado: se outro escritor concorrente mudou
        o estado antes, nenhuma linha é afetada e o chamador reporta erro.
        Objetos já carregados na sessão recebem os novos valores (fetch).

        Returns:
            Número de linhas afetadas
        """
        result = await self.db.execute(
            update(self.model)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def count(self) -> int:
        """Conta total de registros."""
        result = await self.db.execute(
            select(func.count(self.model.id))
        )
        return result.scalar_one()
