from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    id: int
    name: str
    has_paid: bool = False


@dataclass
class Trainer:
    id: int
    name: str
    bio: str
    achievements: list[str] = field(default_factory=list)
    # Свободные слоты. Забронированный слот отсюда удаляется навсегда.
    slots: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Booking:
    user_id: int
    trainer: int
    time_slot: str
    booked_at: int  # unix seconds


@dataclass
class AppState:
    users: dict[int, User] = field(default_factory=dict)
    trainers: list[Trainer] = field(default_factory=list)
    bookings: list[Booking] = field(default_factory=list)


MAX_BOOKINGS_PER_TRAINER = 3


def default_slots() -> list[str]:
    return [f"{hour:02d}:00" for hour in range(8, 21)]


def default_trainers() -> list[Trainer]:
    """Стартовый каталог тренеров: им заполняется пустое или новое хранилище."""
    return [
        Trainer(
            id=1,
            name="Айдос Нуртаев",
            bio="Силовой тренинг, функциональная подготовка.",
            achievements=["МС по пауэрлифтингу", "Победитель Almaty Open 2022"],
            slots=default_slots(),
        ),
        Trainer(
            id=2,
            name="Алия Жаксылыкова",
            bio="Фитнес для женщин, послеродовое восстановление.",
            achievements=["Сертифицированный персональный тренер NASM"],
            slots=default_slots(),
        ),
        Trainer(
            id=3,
            name="Расул Абдрахман",
            bio="Бокс, ОФП, выносливость.",
            achievements=["Чемпион РК среди юниоров по боксу"],
            slots=default_slots(),
        ),
        Trainer(
            id=4,
            name="Динара Есмухан",
            bio="Йога, гибкость, дыхательные практики.",
            achievements=["RYT-500 Yoga Alliance"],
            slots=default_slots(),
        ),
        Trainer(
            id=5,
            name="Мади Бекен",
            bio="Кроссфит, снижение веса.",
            achievements=["Сертифицированный тренер CrossFit L1"],
            slots=default_slots(),
        ),
    ]


class StorageFatalError(RuntimeError):
    """Файл состояния не читается или повреждён: стартовать с таким состоянием нельзя."""


class NotFoundError(LookupError):
    pass


class BookingRuleViolation(Exception):
    """Отказ в записи по бизнес-правилам.

    Такие ошибки не бросаются, а возвращаются из book_slot() как обычный
    результат. Текст сообщения показывается пользователю как есть.
    """

    message = "запись невозможна"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class DifferentTrainerError(BookingRuleViolation):
    message = "вы уже записаны к другому тренеру. Можно записываться только к одному тренеру."


class LimitExceededError(BookingRuleViolation):
    message = f"лимит: максимум {MAX_BOOKINGS_PER_TRAINER} записи у одного тренера."


class TrainerNotFoundError(BookingRuleViolation):
    message = "тренер не найден"


class SlotUnavailableError(BookingRuleViolation):
    message = "слот уже занят или не существует"
