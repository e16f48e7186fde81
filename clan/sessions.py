"""Per-user conversation sessions with inactivity timeouts."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .config import SESSION_TIMEOUT_MINUTES
from .models import Player, StatType

logger = logging.getLogger(__name__)

EXPIRY_NOTICE = "Sua sessão expirou por inatividade."


class ConversationStep(str, Enum):
    """Every node of the conversation state machine."""
    NEW_PLAYER_NAME = "awaiting_new_player_name"
    NEW_PLAYER_LEVEL = "awaiting_new_player_level"
    NEW_PLAYER_TOWER = "awaiting_new_player_tower"
    NEW_PLAYER_TROPHIES = "awaiting_new_player_trophies"
    NEW_PLAYER_NAVAL = "awaiting_new_player_naval"
    UPDATE_LEVEL = "awaiting_update_level"
    UPDATE_TOWER = "awaiting_update_tower"
    UPDATE_TROPHIES = "awaiting_update_trophies"
    UPDATE_NAVAL = "awaiting_update_naval"
    MENU_CHOICE = "awaiting_menu_choice"
    DAY_CHOICE = "awaiting_day_choice"
    POINTS_INPUT = "awaiting_points_input"
    CONFIRMATION = "awaiting_confirmation"
    AMBIGUOUS_PUNISH = "awaiting_ambiguous_choice_punir"
    AMBIGUOUS_EDIT = "awaiting_ambiguous_choice_edit"
    AMBIGUOUS_REMOVE = "awaiting_ambiguous_choice_remove"
    EDIT_CONFIRMATION = "awaiting_edit_confirmation"
    REMOVE_CONFIRMATION = "awaiting_remove_confirmation"


@dataclass
class ConversationState:
    """Mutable payload of an active conversation."""
    step: ConversationStep
    channel_id: str
    player_id: Optional[str] = None
    player_name: Optional[str] = None
    registration: Dict[str, Any] = field(default_factory=dict)
    stat: Optional[StatType] = None
    day_index: Optional[int] = None
    points: Optional[int] = None
    suggestions: List[Player] = field(default_factory=list)
    new_name: Optional[str] = None
    is_admin: bool = False


class SessionActiveError(Exception):
    """Raised when a flow is started while the user already has one."""

    def __init__(self, user_id: str, step: ConversationStep):
        super().__init__(f"User {user_id} already has an active session at {step.value}")
        self.user_id = user_id
        self.step = step


class SessionStore(ABC):
    """Storage of conversation states keyed by user."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[ConversationState]:
        """Active state of a user, if any."""

    @abstractmethod
    def start(self, user_id: str, state: ConversationState) -> ConversationState:
        """Open a session. Raises SessionActiveError if one is already active."""

    @abstractmethod
    def touch(self, user_id: str):
        """Restart the inactivity timer."""

    @abstractmethod
    def delete(self, user_id: str) -> bool:
        """End a session. Returns whether one existed."""

    @abstractmethod
    def clear(self):
        """End every session."""


ExpiryCallback = Callable[[str, ConversationState], Awaitable[None]]


class _Entry:
    def __init__(self, state: ConversationState):
        self.state = state
        self.timer: Optional[asyncio.Task] = None


class InMemorySessionStore(SessionStore):
    """Process-local session store; each entry owns its timeout task."""

    def __init__(self, timeout_seconds: float = SESSION_TIMEOUT_MINUTES * 60,
                 on_expire: Optional[ExpiryCallback] = None):
        self.timeout_seconds = timeout_seconds
        self.on_expire = on_expire
        self._entries: Dict[str, _Entry] = {}

    def __len__(self):
        return len(self._entries)

    def get(self, user_id):
        entry = self._entries.get(user_id)
        return entry.state if entry else None

    def start(self, user_id, state):
        existing = self._entries.get(user_id)
        if existing is not None:
            raise SessionActiveError(user_id, existing.state.step)
        entry = _Entry(state)
        self._entries[user_id] = entry
        self._arm(user_id, entry)
        logger.debug(f"Session started for {user_id} at {state.step.value}")
        return state

    def touch(self, user_id):
        entry = self._entries.get(user_id)
        if entry is not None:
            self._arm(user_id, entry)

    def delete(self, user_id):
        entry = self._entries.pop(user_id, None)
        if entry is None:
            return False
        if entry.timer is not None:
            entry.timer.cancel()
        logger.debug(f"Session ended for {user_id}")
        return True

    def clear(self):
        for user_id in list(self._entries):
            self.delete(user_id)

    def _arm(self, user_id: str, entry: _Entry):
        if entry.timer is not None:
            entry.timer.cancel()
        entry.timer = asyncio.get_running_loop().create_task(self._expire_after(user_id, entry))

    async def _expire_after(self, user_id: str, entry: _Entry):
        await asyncio.sleep(self.timeout_seconds)
        if self._entries.get(user_id) is not entry:
            return
        del self._entries[user_id]
        logger.info(f"Session for {user_id} expired at {entry.state.step.value}")
        if self.on_expire is None:
            return
        try:
            await self.on_expire(user_id, entry.state)
        except Exception as e:
            logger.error(f"Failed to send expiry notice to {user_id}: {e}")
