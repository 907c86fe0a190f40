"""The /menu command that shows the main menu keyboard."""

from __future__ import annotations

from homesystem.actions import ActionDispatcher, BaseCommand
from homesystem.message_store import MessageStorage
from homesystem.messaging import Bot, HandlerType, MatchType, menu_keyboard
from homesystem.updates import Update, get_chat_and_msg_id

MENU_TEXT = "Выбери то что тебе интересно"


class MenuCommand(BaseCommand):
    """Shows the main menu, in place of a pressed button or as a new message."""

    name = "/menu"

    def __init__(self, dispatcher: ActionDispatcher, message_storage: MessageStorage, bot: Bot) -> None:
        self.dispatcher = dispatcher
        self.message_storage = message_storage
        self.bot = bot
        self.callback_handler_id: str | None = None

    def register_handler(self) -> str:
        """Listen for the /menu message."""
        self.callback_handler_id = self.bot.register_handler(
            HandlerType.MESSAGE_TEXT, self.name, MatchType.EXACT, self.handle
        )
        return self.callback_handler_id

    def handle(self, update: Update) -> None:
        """Edit the pressed message into the menu, or send the menu and delete the command."""
        chat_id, msg_id = get_chat_and_msg_id(update)
        self.dispatcher.log(chat_id, self.name, False, True)
        if update.callback_query is not None:
            self.bot.edit_message_text(chat_id, msg_id, MENU_TEXT, menu_keyboard())
            return
        sent = self.bot.send_message(chat_id, MENU_TEXT, menu_keyboard())
        self.bot.delete_message(chat_id, msg_id)
        if sent is not None:
            self.dispatcher.log(sent.chat.id, self.name, False, True)

    def proceed_user_answer(self, update: Update) -> None:
        """The menu takes no typed input."""
        return None

    def clear_state(self, chat_id: int) -> None:
        """The menu keeps no state."""
        return None