class DomainError(Exception):
    pass


class InvalidCredentials(DomainError):
    pass


class ValidationError(DomainError, ValueError):
    """Ошибка данных формы: пароли не совпадают, логин занят, неизвестная роль."""


class PersistenceError(DomainError):
    """Одна запись в хранилище не удалась."""


class ConcurrencyConflict(PersistenceError):
    """Запись опоздала: версия агрегата уже изменилась."""


class LoginRequired(DomainError):
    def __init__(self, return_to: str | None = None):
        super().__init__("Authentication required")
        self.return_to = return_to


class ForbiddenRole(DomainError):
    def __init__(self, expected, actual):
        super().__init__(f"Role {expected} required")
        self.expected = expected
        self.actual = actual
