"""
Schemas base reutilizáveis em toda a aplicação.
"""

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict

from bookrelay.core.exceptions import CirculationError


class BaseSchema(BaseModel):
    """Schema base com configurações padrão."""
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
    )


class TimestampSchema(BaseSchema):
    """Schema com timestamps."""
    created_at: datetime
    updated_at: datetime


class ErrorDetail(BaseModel):
    """Detalhe de um erro."""
    field: str | None = None
    message: str


class ErrorResponse(BaseModel):
    """
    Resposta de erro padrão.

    Uso na camada de requisições:
        except CirculationError as e:
            body = ErrorResponse.from_error(e).model_dump()
    """
    error: str
    message: str
    details: List[ErrorDetail] | None = None

    @classmethod
    def from_error(cls, error: CirculationError) -> "ErrorResponse":
        """Constrói a partir de um erro de domínio."""
        return cls(error=error.code, message=error.detail)


class MessageResponse(BaseModel):
    """Resposta simples com mensagem."""
    message: str
