"""A step-by-step survey that asks a user questions and confirms the answers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence

from homesystem.messaging import (
    CONFIRM_NO,
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
from homesystem.sessions import CommandRegistry, InMemorySessionStorage, UserSession
from homesystem.updates import Update, get_chat_message, get_user_id

log = logging.getLogger(__name__)

RESTART_TEXT = "Ну хорошо, давай заново: "


@dataclass(frozen=True)
class TextMeta:
    confirm_text: str
    start_text: str


@dataclass(frozen=True)
class QuestionItem:
    field_desc: str
    content: str
    answer: str = ""


@dataclass(frozen=True)
class EchoResult:
    chat_id: int
    question: list[QuestionItem] = field(default_factory=list)


def merge_answers(questions: Sequence[QuestionItem], answers: Sequence[str]) -> list[QuestionItem]:
    """Copies of the questions, each carrying the answer at its position."""
    if len(answers) < len(questions):
        raise ValueError(f"expected {len(questions)} answers, got {len(answers)}")
    return [
        QuestionItem(field_desc=q.field_desc, content=q.content, answer=answer)
        for q, answer in zip(questions, answers)
    ]


def format_confirmation_text(header: str, questions: Sequence[QuestionItem]) -> str:
    """The header, a blank line, then one "description: answer" line per question."""
    lines = "".join(f"{q.field_desc}: {q.answer}\n" for q in questions)
    return f"{header}\n\n{lines}"


class Echo:
    """Collects answers to questions from each user, then asks for confirmation."""

    def __init__(
        self,
        bot: Bot,
        questions: Sequence[QuestionItem],
        texts: TextMeta,
        registry: CommandRegistry,
        proceed_result: Callable[[EchoResult], object],
        session_storage: InMemorySessionStorage,
    ) -> None:
        self.bot = bot
        self.questions = list(questions)
        self.texts = texts
        self.registry = registry
        self._proceed_result = proceed_result
        self._sessions = session_storage
        self.prefix = random_prefix(16)
        self.callback_handler_id = bot.register_handler(
            HandlerType.CALLBACK_QUERY_DATA, self.prefix, MatchType.PREFIX, self._callback
        )

    def start(self, update: Update) -> None:
        """Send the opening text with the button that begins the survey."""
        source = get_chat_message(update)
        try:
            self.bot.send_message(
                source.chat.id, self.texts.start_text, start_keyboard(self.prefix), PARSE_MODE_HTML
            )
        except TelegramError as exc:
            log.error("%s", exc)

    def proceed_user_input(self, update: Update) -> None:
        """Handle a typed answer or a pressed button of the survey."""
        self._callback(update)

    def _callback(self, update: Update) -> None:
        user_id = get_user_id(update)
        session = self._session(user_id)
        if update.callback_query is not None:
            self._handle_confirmation(update, user_id, session)
        elif update.message is not None:
            self._handle_answer(update, user_id, session)

    def _session(self, user_id: int) -> UserSession:
        session = self._sessions.get(user_id)
        if session is None:
            session = UserSession(step=0, answers=[""] * len(self.questions))
            self._sessions.set(user_id, session)
        return session

    def _handle_answer(self, update: Update, user_id: int, session: UserSession) -> None:
        if 0 < session.step <= len(session.answers):
            session.answers[session.step - 1] = update.message.text
        if session.step < len(self.questions):
            self._send_next_question(user_id, session)
        else:
            self._send_confirmation_request(user_id, session)

    def _send_next_question(self, user_id: int, session: UserSession) -> None:
        question = self.questions[session.step]
        session.step += 1
        self.bot.send_message(user_id, question.content)

    def _handle_confirmation(self, update: Update, user_id: int, session: UserSession) -> None:
        data = update.callback_query.data
        command = data[len(self.prefix):] if data.startswith(self.prefix) else data
        if command == CONFIRM_YES:
            result = EchoResult(chat_id=user_id, question=merge_answers(self.questions, session.answers))
            self.bot.send_message(user_id, self.texts.confirm_text)
            self._proceed_result(result)
            self.registry.delete(user_id)
            self._sessions.delete(user_id)
        elif command == CONFIRM_NO:
            self._sessions.reset(user_id, len(self.questions))
            self.bot.send_message(user_id, RESTART_TEXT + self.questions[0].content)
        else:
            self._send_next_question(user_id, session)

    def _send_confirmation_request(self, user_id: int, session: UserSession) -> None:
        text = format_confirmation_text(
            self.texts.confirm_text, merge_answers(self.questions, session.answers)
        )
        self.bot.send_message(user_id, text, confirm_keyboard(self.prefix), PARSE_MODE_HTML)