"""Репозитории в памяти с версиями и управляемыми сбоями записи."""
import itertools
import threading
from dataclasses import replace

from coursehub.application.ports import ICourseRepository, IUserRepository
from coursehub.domain.entities import Course, Identity, Role
from coursehub.domain.errors import ConcurrencyConflict, PersistenceError


class _VersionedStore:
    def __init__(self):
        self.rows = {}
        self.lock = threading.Lock()
        self.ids = itertools.count(1)
        # сколько следующих save() должны упасть
        self.fail_saves = 0
        self.saves = 0

    def _save(self, item):
        with self.lock:
            self.saves += 1
            if self.fail_saves:
                self.fail_saves -= 1
                raise PersistenceError("injected write failure")
            stored = self.rows.get(item.id)
            if stored is None or stored.version != item.version:
                raise ConcurrencyConflict(f"{item.id} is stale")
            updated = replace(item, version=item.version + 1)
            self.rows[item.id] = updated
            return updated


class FakeUsers(_VersionedStore, IUserRepository):
    def get_by_id(self, user_id):
        return self.rows.get(user_id)

    def get_by_username(self, username):
        return next((u for u in self.rows.values() if u.username == username), None)

    def list_by_ids(self, ids):
        return [self.rows[i] for i in dict.fromkeys(ids) if i in self.rows]

    def create(self, fullname, role, username, password_hash):
        with self.lock:
            user = Identity(id=next(self.ids), fullname=fullname, role=role,
                            username=username, password_hash=password_hash)
            self.rows[user.id] = user
            return user

    def save(self, identity):
        return self._save(identity)

    def add(self, username, role=Role.STUDENT):
        return self.create(username.title(), role, username, "x")


class FakeCourses(_VersionedStore, ICourseRepository):
    def __init__(self):
        super().__init__()
        self.fail_creates = 0
        self.fail_deletes = 0

    def get_by_id(self, course_id):
        return self.rows.get(course_id)

    def find_by_name(self, key):
        return [c for c in self.rows.values() if key.lower() in c.name.lower()]

    def list_by_ids(self, ids):
        return [self.rows[i] for i in dict.fromkeys(ids) if i in self.rows]

    def create(self, name, description, price, author_name, author_id):
        with self.lock:
            if self.fail_creates:
                self.fail_creates -= 1
                raise PersistenceError("injected create failure")
            course = Course(id=next(self.ids), name=name, description=description, price=price,
                            author_name=author_name, author_id=author_id)
            self.rows[course.id] = course
            return course

    def save(self, course):
        return self._save(course)

    def delete(self, course_id):
        with self.lock:
            if self.fail_deletes:
                self.fail_deletes -= 1
                raise PersistenceError("injected delete failure")
            self.rows.pop(course_id, None)

    def add(self, teacher, name="Algebra"):
        return self.create(name, "", 0.0, teacher.fullname, teacher.id)
