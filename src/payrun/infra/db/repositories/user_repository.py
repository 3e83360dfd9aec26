"""Repository for User accounts. No business logic; caller owns the transaction."""
from __future__ import annotations

from sqlalchemy import func
from sqlmodel import Session, select

from payrun.models.core import User


class UserRepository:
    def __init__(self, session: Session) -> None:
        self._s = session

    def get_by_id(self, user_id: int) -> User | None:
        return self._s.get(User, user_id)

    def get_by_email(self, email: str) -> User | None:
        return self._s.exec(select(User).where(User.email == email)).first()

    def count(self) -> int:
        return self._s.exec(select(func.count()).select_from(User)).one()

    def create(self, **fields) -> User:
        user = User(**fields)
        self._s.add(user)
        self._s.flush()  # get generated PK without committing
        return user

    def update(self, user: User, **fields) -> User:
        for key, value in fields.items():
            setattr(user, key, value)
        self._s.add(user)
        self._s.flush()
        return user
