# homesystem

`homesystem` is a library of the pieces behind a small home-system chat bot
and the backend services it talks to. It needs Python 3.10 or newer and
PyYAML.

## What is in it

- **`homesystem.config`**: YAML configuration for the bot core
  (`BotCoreConfig`), the note backend (`NoteBackendConfig`), the migrator
  (`MigratorConfig`), the HTTP services (`ServiceConfig`) and the chat
  backend (`TelegramBackendConfig`). The loaders `load_bot_core_config`,
  `load_note_backend_config`, `load_migrator_config`, `load_service_config`
  and `load_telegram_backend_config` pick the file from environment variables
  (`CONFIG_PATH`, `CONFIG_FILE`, `APP_PROFILE`, `DB_URL`, `MODE`).
  `APP_PROFILE=local` selects `configs/config-local.yaml`. Problems raise
  `ConfigError`, except in `load_telegram_backend_config`, which logs them and
  returns an empty configuration.
- **`homesystem.updates`**: frozen data classes for incoming updates
  (`Update`, `Message`, `Chat`, `User`, `CallbackQuery`). `Update.from_dict`
  builds them from Bot API JSON. The helpers `get_chat_message`,
  `get_chat_and_msg_id` and `get_user_id` raise `ValueError` when an update
  lacks what they look for.
- **`homesystem.messaging`**: `Bot` routes updates to handlers registered with
  `register_handler` (by `HandlerType` and `MatchType`). It also makes Bot API
  calls (`send_message`, `edit_message_text`, `delete_message`,
  `delete_messages`) through a transport callable. `HttpTransport` is a
  transport that posts JSON with `urllib`. `Bot.run_polling` long-polls
  `getUpdates`. The module also holds the inline keyboards (`start_keyboard`,
  `confirm_keyboard`, `menu_keyboard`, `notes_keyboard`, `profile_keyboard`)
  and `random_prefix`.
- **`homesystem.sessions`**: `InMemorySessionStorage` of `UserSession`s, and
  `CommandRegistry`, which records the command each user is running.
- **`homesystem.message_store`**: `MessageStorage` keeps the `StoredMessage`s
  of each chat, each tagged `MsgType.USER` or `MsgType.BOT`.
- **`homesystem.survey`**: `Echo` asks a user the `QuestionItem`s one by one.
  It shows the answers with yes/no buttons and passes an `EchoResult` to a
  callback.
- **`homesystem.collector`**: `Collector` is a survey built on `CollectItem`s.
  It records exchanged messages in a `MessageStorage` and fills a confirmation
  template with `fill_confirm_text`. That function replaces `name_<i>` and
  `value_<i>` in the template.
- **`homesystem.start_command`**: `StartCommand`, the `/start` registration
  survey. `create_and_register_commands` wires the commands listed in a
  `BotCoreConfig`; only `START` is known, and any other name raises
  `ValueError`.
- **`homesystem.actions`**: `SqliteActionRepository` stores each user's last
  `UserAction` in SQLite and creates its table if missing. `ActionDispatcher`
  routes free text to the `BaseCommand` that waits for it.
- **`homesystem.menu`**: `MenuCommand`, the `/menu` command.
- **`homesystem.notes`**: `NoteRepository` stores notes in SQLite and creates
  its table. `NoteService` provides save, get and delete. Save returns the
  existing note when one with the same name exists. The module also holds
  `dto_from_request`, `present_note` and `present_notes`, and the query
  helpers `fetch_one`, `fetch_all` and `execute`.
- **`homesystem.boards`**: records for shared-expense boards (`Board`,
  `Participant`, `Expense`, …). It has a `PrepareRegistry` of named
  preparation steps and the SQL repositories `SqlBoardRepository` and
  `SqlParticipantRepository`. `BoardDelegate` creates and lists boards, and
  the presenters are `present_board` and `present_boards`.
- **`homesystem.identity`**: `UserIdentityLink`, `Profile`, and
  `RegisterAccountService`, which creates the user at an identity provider and
  then stores the link. The presenters are `present_identity` and
  `present_profile`.
- **`homesystem.middleware`**: WSGI middleware:
  - `TokenIntrospectionMiddleware` checks bearer tokens. Paths matched by
    `is_allowed` skip the check.
  - `TraceMiddleware` sets a trace id and a logger per request.
  - `RequestLogMiddleware` logs each request and its response.
- **`homesystem.errors`**: `AppError` and its subclasses (`NotFoundError`,
  `ValidationError`, `MarshallError`, `ConflictError`, `ActionError`), and
  `wrap_error`. `error_status` and `error_response` map errors to HTTP
  statuses and JSON bodies. `fail` logs an error and wraps it.

## Examples

Sending messages through a bot whose transport just records the calls:

```python
from homesystem.messaging import Bot, menu_keyboard

calls = []

def transport(method, params):
    calls.append((method, params))
    return {"message_id": 1, "chat": {"id": params["chat_id"]}, "text": params.get("text", "")}

bot = Bot(transport)
sent = bot.send_message(42, "Hello", menu_keyboard())
print(sent.id, calls[0][0])   # 1 sendMessage
```

Keeping track of a user's place in a survey:

```python
from homesystem.sessions import InMemorySessionStorage

storage = InMemorySessionStorage()
session = storage.reset(42, 2)   # step 1, two empty answers
storage.delete(42)
```

Building the confirmation text shown at the end of a survey:

```python
from homesystem.survey import QuestionItem, format_confirmation_text

questions = [
    QuestionItem(field_desc="email", content="Enter your email", answer="user@example.com"),
]
print(format_confirmation_text("Is everything correct?", questions))
```

Saving and listing notes in an in-memory database:

```python
import sqlite3
from homesystem.notes import CreateNoteDto, NoteRepository, NoteService, present_notes

service = NoteService(NoteRepository(sqlite3.connect(":memory:")))
service.save(CreateNoteDto(tg_id=1, name="groceries", description="milk", link=""))
print(present_notes(service.get_by_tg_id(1), "/notes/1"))
```

Turning an error into a response:

```python
from homesystem.errors import NotFoundError, error_response

status, body = error_response(NotFoundError(), "/notes/1")
print(int(status))   # 404
```

Protecting a WSGI application with token introspection:

```python
from homesystem.middleware import TokenIntrospectionMiddleware, is_allowed

def app(environ, start_response):
    start_response("200 OK", [("Content-Type", "text/plain")])
    return [b"ok"]

protected = TokenIntrospectionMiddleware(app, introspect=lambda token: token == "token")
is_allowed("/docs")          # True
is_allowed("/accounts/1")    # False
```

## What it does not do

- There is no command-line program and no ready-made bot or server to start.
  You build a `Bot` and the commands yourself, and you run the WSGI middleware
  around an application of your own. The package has no HTTP routes or
  handlers for notes, boards or accounts, only the services and presenters
  behind them.
- No identity-provider client or identity repository is included.
  `RegisterAccountService` is given objects with `create_user` and `save`
  methods.
- `SqlBoardRepository` and `SqlParticipantRepository` do not create their
  `board` and `participant` tables; the database must already have them. No
  schema migrations are included.