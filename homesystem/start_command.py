"""The /start registration command of the bot core and the wiring of configured commands."""

from __future__ import annotations

import logging
from typing import Callable

from homesystem.config import BotCoreConfig
from homesystem.messaging import Bot, HandlerType, MatchType
from homesystem.sessions import CommandRegistry, InMemorySessionStorage
from homesystem.survey import Echo, EchoResult, QuestionItem, TextMeta
from homesystem.updates import Update, get_user_id

log = logging.getLogger(__name__)

START_COMMAND = "START"
UNKNOWN_INPUT_TEXT = "Не понимаю к чему относится твое сообщение :("

START_TEXTS = TextMeta(
    confirm_text="А теперь подтверди данные. Все ли корректно?",
    start_text="Начнем регаться!",
)

START_QUESTIONS = (
    QuestionItem(field_desc="Обращение", content="Как мне к тебе обращаться?"),
    QuestionItem(field_desc="email", content="Введи свой Email"),
)


class StartCommand:
    """Registers a user by asking for a name and an e-mail address."""

    name = "/start"

    def __init__(
        self,
        bot: Bot,
        registry: CommandRegistry,
        session_storage: InMemorySessionStorage,
        on_result: Callable[[EchoResult], object] | None = None,
    ) -> None:
        self.bot = bot
        self.registry = registry
        self._on_result = on_result
        self.callback_handler_id: str | None = None
        self.component = Echo(
            bot, START_QUESTIONS, START_TEXTS, registry, self._proceed_result, session_storage
        )

    def register_handler(self) -> str:
        """Listen for the /start message."""
        self.callback_handler_id = self.bot.register_handler(
            HandlerType.MESSAGE_TEXT, self.name, MatchType.EXACT, self._callback
        )
        return self.callback_handler_id

    def proceed_user_input(self, update: Update) -> None:
        """Pass the user's input on to the survey."""
        self.component.proceed_user_input(update)

    def _callback(self, update: Update) -> None:
        self.registry.set(get_user_id(update), self)
        self.component.start(update)

    def _proceed_result(self, result: EchoResult) -> None:
        log.info("registration collected: %s", result)
        if self._on_result is not None:
            self._on_result(result)


def create_and_register_commands(config: BotCoreConfig, bot: Bot) -> list[StartCommand]:
    """Create the commands listed in the config, register them and the free-text handler."""
    created = []
    for order, name in enumerate(config.commands_to_init, start=1):
        log.info("Create command : %s. With order: %x", name, order)
        registry = CommandRegistry()
        sessions = InMemorySessionStorage()
        if name != START_COMMAND:
            log.error("Неизвестная команда")
            raise ValueError(f"Неизвестная команда: {name}")
        command = StartCommand(bot, registry, sessions)
        command.register_handler()
        created.append(command)
        bot.register_handler(
            HandlerType.MESSAGE_TEXT, "", MatchType.CONTAINS, _user_input_handler(bot, registry)
        )
    return created


def _user_input_handler(bot: Bot, registry: CommandRegistry) -> Callable[[Update], None]:
    def handle(update: Update) -> None:
        user_id = get_user_id(update)
        command = registry.get(user_id)
        if command is not None:
            command.proceed_user_input(update)
        else:
            bot.send_message(user_id, UNKNOWN_INPUT_TEXT)

    return handle