from ..domain.entities import Course, Identity, Role


class IUserRepository:
    def get_by_id(self, user_id: int) -> Identity | None: ...
    def get_by_username(self, username: str) -> Identity | None: ...
    def list_by_ids(self, ids) -> list[Identity]: ...
    def create(self, fullname: str, role: Role, username: str, password_hash: str) -> Identity: ...
    # запись условна: проходит только если версия в хранилище == identity.version
    def save(self, identity: Identity) -> Identity: ...


class ICourseRepository:
    def get_by_id(self, course_id: int) -> Course | None: ...
    def find_by_name(self, key: str) -> list[Course]: ...
    def list_by_ids(self, ids) -> list[Course]: ...
    def create(self, name: str, description: str, price: float,
               author_name: str, author_id: int) -> Course: ...
    def save(self, course: Course) -> Course: ...
    def delete(self, course_id: int) -> None: ...


class IPasswordHasher:
    def hash(self, plain: str) -> str: ...
    def verify(self, plain: str, hashed: str) -> bool: ...
