"""
Ошибки движка совместного редактирования.

Каждая ошибка знает, каким событием она уходит отправителю:
``warning`` для отказа в правах, ``error`` для остального.
Соединение при этом не закрывается.
"""

from typing import Any, Dict, Optional


class CollaborationError(Exception):
    """Базовая ошибка движка"""

    event = "error"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message}


class AuthorizationDenied(CollaborationError):
    """VIEWER или неаутентифицированное соединение пытается изменить диаграмму"""

    event = "warning"


class NotFound(CollaborationError):
    """Комната (проект) не найдена при join"""

    def __init__(self, project_id: str, message: Optional[str] = None):
        super().__init__(message or "Project not found", context={"project_id": project_id})
        self.project_id = project_id


class MalformedInput(CollaborationError):
    """Некорректное или неизвестное входящее событие"""


class MissingFields(MalformedInput):
    """В join не переданы identity или room"""

    def __init__(self, message: str = "Missing identity or room"):
        super().__init__(message)


class PersistenceFailure(CollaborationError):
    """Ошибка хранилища при применении мутации"""
