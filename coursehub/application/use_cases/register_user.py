from ...domain.entities import Identity, Role
from ...domain.errors import ValidationError
from ..dto import RegisterUserInput
from ..ports import IPasswordHasher, IUserRepository


class RegisterUser:
    def __init__(self, repo: IUserRepository, hasher: IPasswordHasher):
        self.repo = repo
        self.hasher = hasher

    def execute(self, data: RegisterUserInput) -> Identity:
        if data.password != data.password2:
            raise ValidationError("Passwords don't match. Please check.")
        try:
            role = Role.parse(data.usertype)
        except ValueError:
            raise ValidationError("Please choose Student or Teacher.")
        username = data.username.strip()
        if not username or not data.password:
            raise ValidationError("Username and password are required.")
        if self.repo.get_by_username(username):
            raise ValidationError("Username has already been registered. Please check.")
        # гонка двух регистраций ловится уникальным индексом в репозитории
        pwd_hash = self.hasher.hash(data.password)
        return self.repo.create(data.fullname.strip(), role, username, pwd_hash)
