from types import SimpleNamespace

import pytest

from homesystem.collector import (
    CollectItem,
    Collector,
    CollectorTexts,
    fill_confirm_text,
)
from homesystem.message_store import MessageStorage, MsgType
from homesystem.messaging import Bot
from homesystem.updates import CallbackQuery, Chat, Message, Update, User

TEXTS = CollectorTexts(confirm_text="Тестовый конфирм текст", start_text="Тестовый start текст")


def make_questions():
    return [
        CollectItem(field_id="username", field_name="Логин: ", content="Как мне к тебе обращаться?"),
        CollectItem(field_id="email", field_name="Почта: ", content="Введи свой Email"),
    ]


class FakeTransport:
    def __init__(self):
        self.calls = []
        self._next_id = 100

    def __call__(self, method, params):
        self.calls.append((method, params))
        if method == "sendMessage":
            self._next_id += 1
            return {"message_id": self._next_id, "chat": {"id": params["chat_id"]}, "text": params["text"]}
        return True

    @property
    def last_params(self):
        return self.calls[-1][1]


def chat(chat_id):
    return Chat(id=chat_id, first_name="Ivan", last_name="Petrov", username="ivanp")


def text_update(chat_id, text, message_id=1):
    return Update(message=Message(id=message_id, chat=chat(chat_id), text=text, from_user=User(id=chat_id)))


def callback_update(chat_id, data, message_id=2):
    message = Message(id=message_id, chat=chat(chat_id), text="bot text")
    return Update(callback_query=CallbackQuery(id="q", from_user=User(id=chat_id), data=data, message=message))


@pytest.fixture
def env():
    transport = FakeTransport()
    bot = Bot(transport)
    storage = MessageStorage()
    results = []
    inputs = []
    collector = Collector(
        bot,
        make_questions(),
        results.append,
        lambda flag, chat_id: inputs.append((flag, chat_id)),
        TEXTS,
        message_storage=storage,
    )
    return SimpleNamespace(
        transport=transport, bot=bot, storage=storage, results=results, inputs=inputs, collector=collector
    )


def answer_all(env, chat_id):
    env.collector.collect(text_update(chat_id, "/test"))
    env.bot.process_update(callback_update(chat_id, env.collector.prefix))
    env.collector.proceed_user_answer(text_update(chat_id, "Ivan", message_id=3))
    env.collector.proceed_user_answer(text_update(chat_id, "ivan@example.com", message_id=4))


def test_fill_confirm_text():
    questions = make_questions()
    questions[0].answer = "Ivan"
    questions[1].answer = "ivan@example.com"
    template = "name_0value_0\nname_1value_1"
    assert fill_confirm_text(template, questions) == "Логин: Ivan\nПочта: ivan@example.com"


def test_fill_confirm_text_without_placeholders():
    assert fill_confirm_text(TEXTS.confirm_text, make_questions()) == "Тестовый конфирм текст"


def test_collect_sends_start_text(env):
    env.collector.collect(text_update(5, "/test"))
    params = env.transport.last_params
    assert params["text"] == "Тестовый start текст"
    assert params["parse_mode"] == "HTML"
    assert params["reply_markup"]["inline_keyboard"][0][0]["callback_data"] == env.collector.prefix
    assert [m.msg_type for m in env.storage.get_all(5)] == [MsgType.USER, MsgType.BOT]


def test_start_button_asks_first_question(env):
    env.collector.collect(text_update(5, "/test"))
    assert env.bot.process_update(callback_update(5, env.collector.prefix))
    assert env.transport.last_params["text"] == "Первый вопрос: Как мне к тебе обращаться?"
    assert env.inputs == [(True, 5)]


def test_answers_lead_to_confirmation(env):
    env.collector.collect(text_update(5, "/test"))
    env.bot.process_update(callback_update(5, env.collector.prefix))
    env.collector.proceed_user_answer(text_update(5, "Ivan", message_id=3))
    assert env.transport.last_params["text"] == "Следующий вопрос: Введи свой Email"
    env.collector.proceed_user_answer(text_update(5, "ivan@example.com", message_id=4))
    params = env.transport.last_params
    assert params["text"] == "Тестовый конфирм текст"
    buttons = params["reply_markup"]["inline_keyboard"][0]
    assert [b["callback_data"] for b in buttons] == [env.collector.prefix + "yes", env.collector.prefix + "no"]
    assert [q.answer for q in env.collector.questions] == ["Ivan", "ivan@example.com"]


def test_yes_delivers_result(env):
    answer_all(env, 5)
    sent_before = len(env.transport.calls)
    env.bot.process_update(callback_update(5, env.collector.prefix + "yes", message_id=9))
    assert len(env.transport.calls) == sent_before
    assert len(env.results) == 1
    result = env.results[0]
    assert result.chat_id == 5
    assert result.user_first_name == "Ivan"
    assert result.user_lastname == "Petrov"
    assert result.username == "ivanp"
    assert [(q.field_id, q.answer) for q in result.question] == [
        ("username", "Ivan"),
        ("email", "ivan@example.com"),
    ]
    assert result.messages_ids == [m.id for m in env.storage.get_all(5)]
    assert 9 in result.messages_ids
    assert env.inputs[-1] == (False, 5)


def test_no_restarts_questions(env):
    answer_all(env, 5)
    env.bot.process_update(callback_update(5, env.collector.prefix + "no"))
    assert env.transport.last_params["text"] == "Ну хорошо давай заново: Как мне к тебе обращаться?"
    assert env.results == []
    env.collector.proceed_user_answer(text_update(5, "Petr", message_id=7))
    assert env.transport.last_params["text"] == "Следующий вопрос: Введи свой Email"
    assert env.collector.questions[0].answer == "Petr"


def test_clear_state_starts_over(env):
    env.collector.collect(text_update(5, "/test"))
    env.bot.process_update(callback_update(5, env.collector.prefix))
    env.collector.proceed_user_answer(text_update(5, "Ivan", message_id=3))
    env.collector.clear_state(5)
    assert [q.answer for q in env.collector.questions] == ["", ""]
    env.bot.process_update(callback_update(5, env.collector.prefix))
    assert env.transport.last_params["text"] == "Первый вопрос: Как мне к тебе обращаться?"


def test_default_storage_is_used_without_option():
    transport = FakeTransport()
    bot = Bot(transport)
    results = []
    collector = Collector(bot, make_questions(), results.append, lambda flag, chat_id: None, TEXTS)
    collector.collect(text_update(8, "/test"))
    assert [m.text for m in collector.message_storage.get_all(8)] == ["/test", "Тестовый start текст"]