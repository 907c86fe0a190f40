"""In-memory storage of survey sessions and of the command each user is running."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class UserSession:
    """Progress of one user through a survey: the next step and the answers so far."""

    step: int = 0
    answers: list[str] = field(default_factory=list)


class InMemorySessionStorage:
    """Survey sessions kept in a dictionary keyed by user id."""

    def __init__(self) -> None:
        self._data: dict[int, UserSession] = {}

    def get(self, user_id: int) -> UserSession | None:
        """The user's session, or None if there is none."""
        return self._data.get(user_id)

    def set(self, user_id: int, session: UserSession) -> None:
        """Store the user's session, replacing any earlier one."""
        self._data[user_id] = session

    def delete(self, user_id: int) -> None:
        """Forget the user's session; a missing session is ignored."""
        self._data.pop(user_id, None)

    def reset(self, user_id: int, total_questions: int) -> UserSession:
        """Start the user over at step 1 with empty answers for every question."""
        session = UserSession(step=1, answers=[""] * total_questions)
        self._data[user_id] = session
        return session


class CommandRegistry:
    """The command each user is currently running."""

    def __init__(self) -> None:
        self._sessions: dict[int, Any] = {}

    def set(self, user_id: int, command: Any) -> None:
        """Make command the user's active command."""
        self._sessions[user_id] = command

    def get(self, user_id: int) -> Any | None:
        """The user's active command, or None if the user runs none."""
        return self._sessions.get(user_id)

    def delete(self, user_id: int) -> None:
        """Drop the user's active command once it has finished."""
        self._sessions.pop(user_id, None)