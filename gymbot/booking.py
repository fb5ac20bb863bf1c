from __future__ import annotations

import logging
import time

from gymbot.directory import trainer_by_id
from gymbot.domain import (
    MAX_BOOKINGS_PER_TRAINER,
    AppState,
    Booking,
    BookingRuleViolation,
    DifferentTrainerError,
    LimitExceededError,
    SlotUnavailableError,
    TrainerNotFoundError,
)

logger = logging.getLogger(__name__)


def committed_trainer(state: AppState, user_id: int) -> int | None:
    """Тренер первой записи пользователя; None, если записей ещё нет."""
    for b in state.bookings:
        if b.user_id == user_id:
            return b.trainer
    return None


def book_slot(
    state: AppState,
    user_id: int,
    trainer_id: int,
    slot: str,
    *,
    now: int | None = None,
) -> Booking | BookingRuleViolation:
    """Проверить правила и занять слот.

    Должна вызываться только внутри критической секции хранилища
    (GymStore.transaction()): проверка и изменение состояния неделимы.
    Нарушение правил возвращается как значение, состояние при этом не меняется.
    """
    existing = committed_trainer(state, user_id)
    if existing is not None and existing != trainer_id:
        return DifferentTrainerError()

    with_this_trainer = sum(1 for b in state.bookings if b.user_id == user_id and b.trainer == trainer_id)
    if with_this_trainer >= MAX_BOOKINGS_PER_TRAINER:
        return LimitExceededError()

    trainer = trainer_by_id(state.trainers, trainer_id)
    if trainer is None:
        return TrainerNotFoundError()

    try:
        pos = trainer.slots.index(slot)
    except ValueError:
        return SlotUnavailableError()

    del trainer.slots[pos]

    booking = Booking(
        user_id=user_id,
        trainer=trainer_id,
        time_slot=slot,
        booked_at=int(time.time()) if now is None else now,
    )
    state.bookings.append(booking)
    logger.info("Booked: user=%s trainer=%s slot=%s", user_id, trainer_id, slot)
    return booking
