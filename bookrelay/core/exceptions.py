"""
Erros de domínio da circulação de livros.

Cada erro carrega um status HTTP sugerido e uma mensagem (detail), no mesmo
formato que a camada de requisições usa para responder ao cliente:

    try:
        await service.approve(request_id, due_date)
    except CirculationError as e:
        return JSONResponse({"error": e.code, "detail": e.detail}, e.status_code)

Famílias:
    - NotFoundError (404): entidade ausente
    - InvalidStateError (409): operação ilegal no estado atual
    - ForbiddenError (403): chamador sem relação com a entidade
    - CannotDetermineHolderError (409): dado inconsistente, sem portador físico
"""

from http import HTTPStatus


class CirculationError(Exception):
    """Erro base de todas as regras de circulação."""

    status_code: HTTPStatus = HTTPStatus.BAD_REQUEST
    code: str = "circulation_error"
    default_detail: str = "Operação de circulação inválida"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


# ==========================================
# Not found
# ==========================================

class NotFoundError(CirculationError):
    status_code = HTTPStatus.NOT_FOUND
    code = "not_found"
    default_detail = "Recurso não encontrado"


class BookNotFoundError(NotFoundError):
    code = "book_not_found"
    default_detail = "Livro não encontrado"


class RequestNotFoundError(NotFoundError):
    code = "request_not_found"
    default_detail = "Pedido não encontrado"


class ReadingHistoryNotFoundError(NotFoundError):
    code = "reading_history_not_found"
    default_detail = "Histórico de leitura não encontrado"


class ThreadNotFoundError(NotFoundError):
    code = "thread_not_found"
    default_detail = "Conversa de entrega não encontrada"


class NoActiveThreadError(NotFoundError):
    code = "no_active_thread"
    default_detail = "Não há conversa de entrega ativa para este livro"


# ==========================================
# Invalid state
# ==========================================

class InvalidStateError(CirculationError):
    status_code = HTTPStatus.CONFLICT
    code = "invalid_state"
    default_detail = "Operação não permitida no estado atual"


class AlreadyRequestedError(InvalidStateError):
    code = "already_requested"
    default_detail = "Você já possui um pedido pendente para este livro"


class BookNotAvailableError(InvalidStateError):
    code = "book_not_available"
    default_detail = "Livro não está disponível para pedidos"


class ActiveReadingExistsError(InvalidStateError):
    code = "active_reading_exists"
    default_detail = "Este livro já possui uma leitura em andamento"


class AlreadyCompletedError(InvalidStateError):
    code = "already_completed"
    default_detail = "Leitura já marcada como concluída"


class AlreadyCompletedByThisUserError(InvalidStateError):
    code = "already_completed_by_user"
    default_detail = "Você já marcou este livro como concluído"


class AlreadyDeliveredError(InvalidStateError):
    code = "already_delivered"
    default_detail = "Livro já marcado como entregue"


# ==========================================
# Forbidden
# ==========================================

class ForbiddenError(CirculationError):
    status_code = HTTPStatus.FORBIDDEN
    code = "forbidden"
    default_detail = "Você não tem permissão para esta operação"


class NotCurrentHolderError(ForbiddenError):
    code = "not_current_holder"
    default_detail = "Você não é o portador atual deste livro"


class NotNextHolderError(ForbiddenError):
    code = "not_next_holder"
    default_detail = "Você não é o próximo portador deste livro"


class NotParticipantError(ForbiddenError):
    code = "not_participant"
    default_detail = "Você não participa desta entrega"


# ==========================================
# Inconsistência
# ==========================================

class CannotDetermineHolderError(CirculationError):
    status_code = HTTPStatus.CONFLICT
    code = "cannot_determine_holder"
    default_detail = "Não foi possível determinar o portador atual do livro"
