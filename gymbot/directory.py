from __future__ import annotations

from typing import Iterable

from gymbot.domain import Trainer, User


def trainer_by_id(trainers: Iterable[Trainer], trainer_id: int) -> Trainer | None:
    # Каталог маленький, индекс не нужен.
    for t in trainers:
        if t.id == trainer_id:
            return t
    return None


def user_by_id(users: dict[int, User], user_id: int) -> User | None:
    return users.get(user_id)


def get_or_create_user(users: dict[int, User], user_id: int, name: str) -> User:
    user = users.get(user_id)
    if user is None:
        user = User(id=user_id, name=name, has_paid=False)
        users[user_id] = user
    return user
