import sqlite3

import pytest

from homesystem.actions import ActionDispatcher, BaseCommand, SqliteActionRepository
from homesystem.messaging import Bot
from homesystem.updates import Chat, Message, Update, User


class FakeTransport:
    def __init__(self):
        self.calls = []

    def __call__(self, method, params):
        self.calls.append((method, params))
        if method == "sendMessage":
            return {"message_id": len(self.calls), "chat": {"id": params["chat_id"]}, "text": params["text"]}
        return True


class FakeCommand(BaseCommand):
    name = "/fake"

    def __init__(self):
        self.answers = []
        self.cleared = []

    def register_handler(self):
        return "id"

    def proceed_user_answer(self, update):
        self.answers.append(update)

    def clear_state(self, chat_id):
        self.cleared.append(chat_id)


def text_update(chat_id, text):
    return Update(message=Message(id=1, chat=Chat(id=chat_id), text=text, from_user=User(id=chat_id)))


@pytest.fixture
def repo():
    repository = SqliteActionRepository()
    yield repository
    repository.close()


@pytest.fixture
def setup(repo):
    transport = FakeTransport()
    dispatcher = ActionDispatcher(repo, Bot(transport), "Команда %s уже закончена")
    command = FakeCommand()
    dispatcher.add_command(command)
    return transport, dispatcher, command


def test_missing_action_is_none(repo):
    assert repo.get_by_tg_id(42) is None


def test_save_creates_row(repo):
    saved = repo.save_or_update(42, True, 7, "/notes", True)
    assert saved == repo.get_by_tg_id(42)
    assert (saved.telegram_user_id, saved.need_user_input, saved.last_sent_message_id) == (42, True, 7)
    assert (saved.command_name, saved.is_running) == ("/notes", True)


def test_save_twice_updates_same_row(repo):
    first = repo.save_or_update(42, True, 7, "/notes", True)
    second = repo.save_or_update(42, False, 0, "/menu", False)
    assert second.id == first.id
    assert second.command_name == "/menu"
    assert second.need_user_input is False
    assert second.is_running is False


def test_update_keeps_command_name(repo):
    repo.save_or_update(42, False, 0, "/start", True)
    repo.update(42, True, 3, False)
    action = repo.get_by_tg_id(42)
    assert action.command_name == "/start"
    assert action.need_user_input is True
    assert action.last_sent_message_id == 3
    assert action.is_running is False


def test_context_manager_closes():
    with SqliteActionRepository() as repository:
        repository.save_or_update(1, False, 0, "/menu", True)
    with pytest.raises(sqlite3.ProgrammingError):
        repository.get_by_tg_id(1)


def test_log_records_zero_message_id(setup, repo):
    _, dispatcher, _ = setup
    dispatcher.log(5, "/fake", True, True)
    action = repo.get_by_tg_id(5)
    assert action.last_sent_message_id == 0
    assert action.need_user_input is True


def test_proceed_routes_to_waiting_command(setup):
    transport, dispatcher, command = setup
    dispatcher.log(5, "/fake", True, True)
    update = text_update(5, "answer")
    dispatcher.proceed(update)
    assert command.answers == [update]
    assert transport.calls == []


def test_proceed_without_need_for_input(setup, repo):
    transport, dispatcher, command = setup
    dispatcher.log(5, "/fake", False, True)
    dispatcher.proceed(text_update(5, "stray"))
    method, params = transport.calls[-1]
    assert method == "sendMessage"
    assert params["text"] == "Команда /fake уже закончена"
    assert params["parse_mode"] == "HTML"
    assert command.cleared == [5]
    assert repo.get_by_tg_id(5).is_running is False


def test_proceed_without_any_action(setup):
    transport, dispatcher, command = setup
    dispatcher.proceed(text_update(9, "hello"))
    assert transport.calls[-1][1]["text"] == "Команда  уже закончена"
    assert command.cleared == []


def test_proceed_unknown_waiting_command(setup):
    _, dispatcher, _ = setup
    dispatcher.log(5, "/missing", True, True)
    with pytest.raises(LookupError):
        dispatcher.proceed(text_update(5, "answer"))