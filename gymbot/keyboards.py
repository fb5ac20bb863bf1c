from __future__ import annotations

from typing import Any, Iterable

from gymbot.domain import Booking, Trainer

BTN_TRAINERS = "Тренеры"
BTN_PRICES = "Прайс абонементов"
BTN_MY_BOOKINGS = "Мои записи"

PLANS: tuple[tuple[str, str, int], ...] = (
    ("gold", "Gold", 25_000),
    ("silver", "Silver", 18_000),
    ("bronze", "Bronze", 12_000),
    ("student", "Студенческий", 9_000),
)

SLOTS_PER_ROW = 4


def _money(amount: int) -> str:
    return f"{amount:,}".replace(",", " ") + " ₸"


def _button(text: str, data: str) -> dict[str, str]:
    return {"text": text, "callback_data": data}


def price_text() -> str:
    lines = [f"• {title} — {_money(amount)} / мес" for _, title, amount in PLANS]
    return (
        "Прайсы абонементов (тенге):\n\n"
        + "\n".join(lines)
        + "\n\nНажмите \"Оплатить\" для симуляции оплаты."
    )


def trainer_details_text(t: Trainer) -> str:
    text = f"{t.name}\n\nОписание: {t.bio}"
    if t.achievements:
        text += "\n\nДостижения:\n• " + "\n• ".join(t.achievements)
    return text


def bookings_text(bookings: Iterable[Booking], trainers: Iterable[Trainer]) -> str:
    names = {t.id: t.name for t in trainers}
    lines = [f"• {names.get(b.trainer, f'Тренер #{b.trainer}')}, {b.time_slot}" for b in bookings]
    if not lines:
        return "У вас пока нет записей."
    return "Ваши записи:\n" + "\n".join(lines)


def main_menu() -> dict[str, Any]:
    return {
        "keyboard": [
            [{"text": BTN_TRAINERS}, {"text": BTN_PRICES}],
            [{"text": BTN_MY_BOOKINGS}],
        ],
        "resize_keyboard": True,
    }


def trainers_list(trainers: Iterable[Trainer], *, has_paid: bool) -> dict[str, Any]:
    rows: list[list[dict[str, str]]] = []
    for t in trainers:
        row = [_button("👤 " + t.name, f"trainer_{t.id}")]
        if has_paid:
            row.append(_button("🗓 Запись", f"book_{t.id}"))
        rows.append(row)
    rows.append([_button("⬅️ В меню", "menu")])
    return {"inline_keyboard": rows}


def trainer_details(t: Trainer, *, has_paid: bool) -> dict[str, Any]:
    row: list[dict[str, str]] = []
    if has_paid:
        row.append(_button("🗓 Запись", f"book_{t.id}"))
    row.append(_button("⬅️ Назад", "trainers"))
    return {"inline_keyboard": [row]}


def schedule(t: Trainer) -> dict[str, Any]:
    rows: list[list[dict[str, str]]] = []
    for i in range(0, len(t.slots), SLOTS_PER_ROW):
        rows.append([_button(s, f"slot_{t.id}_{s}") for s in t.slots[i : i + SLOTS_PER_ROW]])
    rows.append([_button("⬅️ Назад", "trainers")])
    return {"inline_keyboard": rows}


def pricing() -> dict[str, Any]:
    rows = [[_button(f"Оплатить {title} ({_money(amount)})", f"pay_{code}")] for code, title, amount in PLANS]
    rows.append([_button("⬅️ В меню", "menu")])
    return {"inline_keyboard": rows}
