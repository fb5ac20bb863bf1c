from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from gymbot.booking import book_slot
from gymbot.directory import get_or_create_user, trainer_by_id, user_by_id
from gymbot.domain import AppState, Booking, BookingRuleViolation, NotFoundError, Trainer, User
from gymbot.state_file import load_state, state_to_dict, write_state_dict

logger = logging.getLogger(__name__)


class GymStore:
    """Единственный владелец состояния приложения.

    Создаётся один раз при старте и передаётся во все обработчики.
    Все чтения и изменения идут через transaction(); наружу отдаются только
    копии, чтобы никто не держал блокировку во время сетевых вызовов.
    """

    def __init__(self, state: AppState, path: str) -> None:
        self._state = state
        self._path = path
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()

    @property
    def path(self) -> str:
        return self._path

    @contextmanager
    def transaction(self) -> Iterator[AppState]:
        with self._lock:
            yield self._state

    def snapshot(self) -> AppState:
        with self.transaction() as state:
            return copy.deepcopy(state)

    def flush(self) -> bool:
        # _save_lock берётся первым: так более старый снимок никогда не
        # перезапишет более новый.
        with self._save_lock:
            with self.transaction() as state:
                data = state_to_dict(state)
            try:
                write_state_dict(self._path, data)
            except OSError as e:
                # Изменения в памяти не откатываются.
                logger.error("Failed to save state to %s (%s: %s)", self._path, type(e).__name__, e)
                return False
        logger.debug("State saved to %s", self._path)
        return True

    def resolve_user(self, user_id: int, name: str) -> User:
        with self.transaction() as state:
            user = get_or_create_user(state.users, user_id, name)
            return copy.copy(user)

    def get_user(self, user_id: int) -> User | None:
        with self.transaction() as state:
            user = user_by_id(state.users, user_id)
            return copy.copy(user) if user is not None else None

    def grant_payment_entitlement(self, user_id: int) -> User:
        with self.transaction() as state:
            user = user_by_id(state.users, user_id)
            if user is None:
                raise NotFoundError(f"user {user_id} not found")
            if not user.has_paid:
                user.has_paid = True
                logger.info("Payment entitlement granted: user=%s", user_id)
            return copy.copy(user)

    def list_trainers(self) -> list[Trainer]:
        with self.transaction() as state:
            return copy.deepcopy(state.trainers)

    def get_trainer(self, trainer_id: int) -> Trainer | None:
        with self.transaction() as state:
            trainer = trainer_by_id(state.trainers, trainer_id)
            return copy.deepcopy(trainer) if trainer is not None else None

    def user_bookings(self, user_id: int) -> list[Booking]:
        with self.transaction() as state:
            return [b for b in state.bookings if b.user_id == user_id]

    def book(self, user_id: int, trainer_id: int, slot: str) -> Booking | BookingRuleViolation:
        with self.transaction() as state:
            return book_slot(state, user_id, trainer_id, slot)


def initialize(path: str) -> GymStore:
    """Загрузить (или создать) состояние. StorageFatalError пробрасывается наверх."""
    state = load_state(path)
    logger.info(
        "State loaded from %s: users=%d trainers=%d bookings=%d",
        path,
        len(state.users),
        len(state.trainers),
        len(state.bookings),
    )
    return GymStore(state, path)
