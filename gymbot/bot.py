from __future__ import annotations

import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any

from gymbot import keyboards
from gymbot.config import Settings
from gymbot.domain import BookingRuleViolation, User
from gymbot.store import GymStore
from gymbot.telegram_api import TelegramClient

logger = logging.getLogger(__name__)

POLL_ERROR_PAUSE_SECONDS = 5


def _parse_id(raw: str) -> int | None:
    try:
        return int(raw)
    except ValueError:
        return None


def _display_name(sender: dict[str, Any]) -> str:
    name = f"{sender.get('first_name', '')} {sender.get('last_name', '')}".strip()
    return name or sender.get("username", "")


class GymBot:
    """Обработчики апдейтов Telegram.

    Вся бизнес-логика живёт в GymStore; здесь только разбор апдейтов,
    проверка оплаты перед записью и отправка ответов.
    """

    def __init__(self, settings: Settings, store: GymStore, client: TelegramClient) -> None:
        self.settings = settings
        self.store = store
        self.client = client

    def _send(self, chat_id: int, text: str, reply_markup: dict[str, Any] | None = None) -> None:
        try:
            self.client.send_message(chat_id=chat_id, text=text, reply_markup=reply_markup)
        except Exception as e:
            # Best-effort: ошибка отправки не должна ронять обработку.
            logger.warning("Failed to send message to chat_id=%s (%s: %s)", chat_id, type(e).__name__, e)

    def _resolve_user(self, sender: dict[str, Any]) -> User:
        user_id = int(sender["id"])
        is_new = self.store.get_user(user_id) is None
        user = self.store.resolve_user(user_id, _display_name(sender))
        if is_new:
            logger.info("New user: id=%s", user_id)
            self.store.flush()
        return user

    def welcome_text(self) -> str:
        return f"Вас приветствует фитнес зал {self.settings.gym_name}!\nВыберите раздел ниже."

    def handle_update(self, update: dict[str, Any]) -> None:
        if "message" in update:
            self.handle_message(update["message"])
        if "callback_query" in update:
            self.handle_callback(update["callback_query"])

    def handle_message(self, message: dict[str, Any]) -> None:
        sender = message.get("from")
        if not sender:
            return
        chat_id = message["chat"]["id"]
        user = self._resolve_user(sender)
        text = (message.get("text") or "").strip()

        if text.startswith("/"):
            self._send(chat_id, self.welcome_text(), keyboards.main_menu())
        elif text == keyboards.BTN_TRAINERS:
            self.show_trainers(chat_id, user)
        elif text == keyboards.BTN_PRICES:
            self._send(chat_id, keyboards.price_text(), keyboards.pricing())
        elif text == keyboards.BTN_MY_BOOKINGS:
            bookings = self.store.user_bookings(user.id)
            self._send(chat_id, keyboards.bookings_text(bookings, self.store.list_trainers()), keyboards.main_menu())
        else:
            self._send(chat_id, "Не понял команду. Пожалуйста, выберите пункт меню.", keyboards.main_menu())

    def handle_callback(self, cq: dict[str, Any]) -> None:
        user = self._resolve_user(cq["from"])
        data = cq.get("data") or ""
        chat_id = cq["message"]["chat"]["id"] if cq.get("message") else user.id

        try:
            self.client.answer_callback_query(callback_query_id=cq["id"])
        except Exception as e:
            logger.warning("Failed to answer callback query (%s: %s)", type(e).__name__, e)

        if data == "menu":
            self._send(chat_id, f"Вас приветствует фитнес зал {self.settings.gym_name}!", keyboards.main_menu())
        elif data == "trainers":
            self.show_trainers(chat_id, user)
        elif data.startswith("trainer_"):
            self.show_trainer(chat_id, user, data.removeprefix("trainer_"))
        elif data.startswith("book_"):
            self.show_schedule(chat_id, user, data.removeprefix("book_"))
        elif data.startswith("slot_"):
            self.book(chat_id, user, data.removeprefix("slot_"))
        elif data.startswith("pay_"):
            self.pay(chat_id, user)
        else:
            logger.info("Unknown callback data: %r", data)

    def show_trainers(self, chat_id: int, user: User) -> None:
        trainers = self.store.list_trainers()
        self._send(
            chat_id,
            "Наши тренеры (нажмите имя, чтобы узнать подробнее):",
            keyboards.trainers_list(trainers, has_paid=user.has_paid),
        )

    def show_trainer(self, chat_id: int, user: User, raw_id: str) -> None:
        trainer_id = _parse_id(raw_id)
        trainer = self.store.get_trainer(trainer_id) if trainer_id is not None else None
        if trainer is None:
            self._send(chat_id, "Тренер не найден")
            return
        self._send(
            chat_id,
            keyboards.trainer_details_text(trainer),
            keyboards.trainer_details(trainer, has_paid=user.has_paid),
        )

    def show_schedule(self, chat_id: int, user: User, raw_id: str) -> None:
        if not user.has_paid:
            self._send(chat_id, "Чтобы записаться, сначала оплатите абонемент в разделе \"Прайс абонементов\".")
            return
        trainer_id = _parse_id(raw_id)
        trainer = self.store.get_trainer(trainer_id) if trainer_id is not None else None
        if trainer is None:
            self._send(chat_id, "Тренер не найден")
            return
        self._send(chat_id, f"Выберите время для тренера {trainer.name}:", keyboards.schedule(trainer))

    def book(self, chat_id: int, user: User, payload: str) -> None:
        raw_id, sep, slot = payload.partition("_")
        trainer_id = _parse_id(raw_id)
        if not sep or trainer_id is None:
            logger.info("Malformed slot callback: %r", payload)
            return

        # Оплата проверяется здесь, до транзакции записи.
        if not user.has_paid:
            self._send(chat_id, "Сначала оплатите абонемент.")
            return

        result = self.store.book(user.id, trainer_id, slot)
        if isinstance(result, BookingRuleViolation):
            logger.info("Booking rejected: user=%s trainer=%s slot=%s (%s)", user.id, trainer_id, slot, type(result).__name__)
            self._send(chat_id, "Не удалось записаться: " + result.message)
            return

        self.store.flush()
        self._send(chat_id, f"Запись подтверждена! Тренер #{trainer_id}, время {slot}.")

        trainer = self.store.get_trainer(trainer_id)
        if trainer is not None:
            self._send(chat_id, f"Свободные слоты у {trainer.name} обновлены:", keyboards.schedule(trainer))

    def pay(self, chat_id: int, user: User) -> None:
        # Симуляция оплаты: просто выставляем флаг.
        self.store.grant_payment_entitlement(user.id)
        self.store.flush()
        self._send(chat_id, "Операция прошла успешно!")
        self._send(
            chat_id,
            "Теперь вы можете записаться к тренеру в разделе \"Тренеры\":",
            keyboards.trainers_list(self.store.list_trainers(), has_paid=True),
        )


def _handle_safely(bot: GymBot, update: dict[str, Any]) -> None:
    try:
        bot.handle_update(update)
    except Exception:
        logger.exception("Failed to handle update_id=%s", update.get("update_id"))


def poll_once(bot: GymBot, executor: Executor, offset: int | None) -> int | None:
    """Забрать одну пачку апдейтов и раздать их воркерам. Возвращает новый offset."""
    updates = bot.client.get_updates(offset=offset, timeout_seconds=bot.settings.poll_timeout_seconds)
    for update in updates:
        executor.submit(_handle_safely, bot, update)
        offset = int(update["update_id"]) + 1
    return offset


def run_forever(settings: Settings, store: GymStore) -> None:
    logger.info("Bot started. Workers=%s", settings.worker_threads)
    offset: int | None = None
    with (
        TelegramClient(bot_token=settings.telegram_bot_token, retry_attempts=settings.telegram_retry_attempts) as client,
        ThreadPoolExecutor(max_workers=settings.worker_threads, thread_name_prefix="update") as executor,
    ):
        bot = GymBot(settings, store, client)
        while True:
            try:
                offset = poll_once(bot, executor, offset)
            except Exception as e:
                logger.error("Polling failed (%s: %s)", type(e).__name__, e)
                time.sleep(POLL_ERROR_PAUSE_SECONDS)


def run_once(settings: Settings, store: GymStore) -> None:
    with TelegramClient(bot_token=settings.telegram_bot_token, retry_attempts=settings.telegram_retry_attempts) as client:
        with ThreadPoolExecutor(max_workers=settings.worker_threads, thread_name_prefix="update") as executor:
            offset = poll_once(GymBot(settings, store, client), executor, None)

        # Все апдейты обработаны: подтверждаем пачку, иначе Telegram
        # отдаст её снова при следующем запуске.
        if offset is not None:
            client.get_updates(offset=offset, timeout_seconds=0)
            logger.info("Confirmed updates up to offset=%s", offset)
