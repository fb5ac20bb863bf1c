from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict
from typing import Any

from gymbot.domain import AppState, Booking, StorageFatalError, Trainer, User, default_trainers

logger = logging.getLogger(__name__)


def fresh_state() -> AppState:
    return AppState(users={}, trainers=default_trainers(), bookings=[])


def _parse_user(key: str, item: dict[str, Any]) -> User:
    has_paid = item.get("has_paid", False)
    if not isinstance(has_paid, bool):
        raise TypeError(f"has_paid must be a boolean, got {has_paid!r}")
    return User(
        id=int(item.get("id", key)),
        name=str(item.get("name") or ""),
        has_paid=has_paid,
    )


def _parse_trainer(item: dict[str, Any]) -> Trainer:
    return Trainer(
        id=int(item["id"]),
        name=str(item.get("name") or ""),
        bio=str(item.get("bio") or ""),
        achievements=[str(a) for a in item.get("achievements") or []],
        slots=[str(s) for s in item.get("slots") or []],
    )


def _parse_booking(item: dict[str, Any]) -> Booking:
    return Booking(
        user_id=int(item["user_id"]),
        trainer=int(item["trainer"]),
        time_slot=str(item["time_slot"]),
        booked_at=int(item.get("booked_at") or 0),
    )


def state_from_dict(raw: Any) -> AppState:
    if not isinstance(raw, dict):
        raise StorageFatalError(f"State root must be an object, got {type(raw).__name__}")

    try:
        users_raw = raw.get("users") or {}
        users: dict[int, User] = {}
        for key, item in users_raw.items():
            user = _parse_user(key, item)
            users[user.id] = user

        trainers = [_parse_trainer(item) for item in raw.get("trainers") or []]
        bookings = [_parse_booking(item) for item in raw.get("bookings") or []]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise StorageFatalError(f"Malformed state record ({type(e).__name__}: {e})") from e

    ids = [t.id for t in trainers]
    if len(set(ids)) != len(ids):
        raise StorageFatalError(f"Duplicate trainer ids in state record: {sorted(ids)}")

    if not trainers:
        # Каталог тренеров пустой или обрезан: восстанавливаем стартовый,
        # пользователей и записи оставляем как есть.
        logger.warning("Trainer catalogue is empty, reseeding with defaults")
        trainers = default_trainers()

    return AppState(users=users, trainers=trainers, bookings=bookings)


def state_to_dict(state: AppState) -> dict[str, Any]:
    return {
        # JSON object keys are always strings.
        "users": {str(uid): asdict(u) for uid, u in state.users.items()},
        "trainers": [asdict(t) for t in state.trainers],
        "bookings": [asdict(b) for b in state.bookings],
    }


def load_state(path: str) -> AppState:
    if not os.path.exists(path):
        logger.info("State file %s not found, creating a fresh one", path)
        state = fresh_state()
        save_state(path, state)
        return state

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise StorageFatalError(f"Cannot read state file {path} ({type(e).__name__}: {e})") from e

    return state_from_dict(raw)


def write_state_dict(path: str, data: dict[str, Any]) -> None:
    folder = os.path.dirname(os.path.abspath(path))
    if folder and not os.path.exists(folder):
        os.makedirs(folder, exist_ok=True)

    # Atomic write
    with tempfile.NamedTemporaryFile("w", delete=False, encoding="utf-8", dir=folder, suffix=".tmp") as tf:
        tmp_name = tf.name
        try:
            json.dump(data, tf, ensure_ascii=False, indent=2)
            tf.flush()
            os.fsync(tf.fileno())
        except BaseException:
            tf.close()
            os.unlink(tmp_name)
            raise

    try:
        os.replace(tmp_name, path)
    except OSError:
        os.unlink(tmp_name)
        raise


def save_state(path: str, state: AppState) -> None:
    write_state_dict(path, state_to_dict(state))
