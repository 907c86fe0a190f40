"""A survey component that collects answers to fields and asks the user to confirm them."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

from homesystem.message_store import MessageStorage, MsgType, StoredMessage
from homesystem.messaging import (
    CONFIRM_YES,
    PARSE_MODE_HTML,
    Bot,
    HandlerType,
    MatchType,
    TelegramError,
    confirm_keyboard,
    random_prefix,
    start_keyboard,
)
from homesystem.updates import Message, Update, get_chat_message

log = logging.getLogger(__name__)

FIRST_QUESTION_TEXT = "Первый вопрос: "
NEXT_QUESTION_TEXT = "Следующий вопрос: "
RESTART_TEXT = "Ну хорошо давай заново: "


class CollectState(Enum):
    DEFAULT = 0
    ASK_FIELDS = 1
    CONFIRM = 2


@dataclass
class CollectItem:
    field_id: str
    field_name: str
    content: str
    answer: str = ""


@dataclass(frozen=True)
class CollectResult:
    chat_id: int
    user_first_name: str
    user_lastname: str
    username: str
    question: list[CollectItem] = field(default_factory=list)
    messages_ids: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class CollectorTexts:
    confirm_text: str
    start_text: str


@dataclass(frozen=True)
class _Status:
    state: CollectState = CollectState.DEFAULT
    question_index: int = 0


def fill_confirm_text(confirm_text: str, questions: Sequence[CollectItem]) -> str:
    """Replace name_<i> and value_<i> in the template with each field's name and answer."""
    result = confirm_text
    for index, item in enumerate(questions):
        result = result.replace(f"name_{index}", item.field_name)
        result = result.replace(f"value_{index}", item.answer)
    return result


class Collector:
    """Asks each chat the questions in turn, then shows the answers for confirmation."""

    def __init__(
        self,
        bot: Bot,
        questions: Sequence[CollectItem],
        proceed_result: Callable[[CollectResult], object],
        set_user_input: Callable[[bool, int], object],
        texts: CollectorTexts,
        message_storage: MessageStorage | None = None,
    ) -> None:
        self.bot = bot
        self.questions = list(questions)
        self.texts = texts
        self.message_storage = message_storage if message_storage is not None else MessageStorage()
        self._proceed_result = proceed_result
        self._set_user_input = set_user_input
        self._statuses: dict[int, _Status] = {}
        self.prefix = random_prefix(16)
        self.callback_handler_id = bot.register_handler(
            HandlerType.CALLBACK_QUERY_DATA, self.prefix, MatchType.PREFIX, self._callback
        )

    def collect(self, update: Update) -> None:
        """Send the opening text with the button that starts the questions."""
        source = get_chat_message(update)
        sent = None
        try:
            sent = self.bot.send_message(
                source.chat.id, self.texts.start_text, start_keyboard(self.prefix), PARSE_MODE_HTML
            )
        except TelegramError as exc:
            log.error("%s", exc)
        self._store(source.chat.id, source, MsgType.USER)
        if sent is not None:
            self._store(source.chat.id, sent, MsgType.BOT)

    def proceed_user_answer(self, update: Update) -> None:
        """Handle the user's typed answer."""
        self._callback(update)

    def clear_state(self, chat_id: int) -> None:
        """Drop the chat's progress and the answers collected so far."""
        for item in self.questions:
            item.answer = ""
        self._statuses.pop(chat_id, None)

    def _store(self, chat_id: int, message: Message, msg_type: MsgType) -> None:
        self.message_storage.add(chat_id, StoredMessage(message.id, message.text, msg_type))

    def _callback(self, update: Update) -> None:
        message = get_chat_message(update)
        chat_id = message.chat.id
        msg_type = MsgType.BOT if update.callback_query is not None else MsgType.USER
        self._store(chat_id, message, msg_type)

        status = self._statuses.get(chat_id, _Status())
        text = ""
        keyboard = None
        complete = False

        if status.state is CollectState.DEFAULT:
            text = FIRST_QUESTION_TEXT + self.questions[status.question_index].content
            status = _Status(CollectState.ASK_FIELDS)
            self._set_user_input(True, chat_id)
        elif status.state is CollectState.ASK_FIELDS:
            self.questions[status.question_index].answer = message.text
            index = status.question_index + 1
            if index == len(self.questions):
                status = _Status(CollectState.CONFIRM)
                text = fill_confirm_text(self.texts.confirm_text, self.questions)
                keyboard = confirm_keyboard(self.prefix)
            else:
                status = _Status(CollectState.ASK_FIELDS, index)
                text = NEXT_QUESTION_TEXT + self.questions[index].content
        else:
            self._set_user_input(False, chat_id)
            data = update.callback_query.data if update.callback_query is not None else ""
            command = data[len(self.prefix):] if data.startswith(self.prefix) else data
            if command == CONFIRM_YES:
                complete = True
            else:
                text = RESTART_TEXT + self.questions[0].content
                status = _Status(CollectState.ASK_FIELDS)

        self._statuses[chat_id] = status
        if complete:
            self._send_result(message)
            return
        sent = self.bot.send_message(chat_id, text, keyboard, PARSE_MODE_HTML)
        if sent is not None:
            self._store(sent.chat.id, sent, msg_type)

    def _send_result(self, message: Message) -> None:
        chat = message.chat
        ids = [stored.id for stored in self.message_storage.get_all(chat.id)]
        self._proceed_result(
            CollectResult(
                chat_id=chat.id,
                user_first_name=chat.first_name,
                user_lastname=chat.last_name,
                username=chat.username,
                question=[dataclasses.replace(item) for item in self.questions],
                messages_ids=ids,
            )
        )