"""Shared test fixtures."""

import datetime
from zoneinfo import ZoneInfo

import pytest

from clan.admin_commands import AdminCommands
from clan.commands import PlayerCommands
from clan.conversation import ConversationHandler
from clan.logic import WarLogic
from clan.messaging import CommandContext, Group, Messenger
from clan.models import Player
from clan.passive import PassiveResponder
from clan.quick_add import QuickScoreHandler
from clan.router import CommandRouter, build_registry
from clan.sessions import InMemorySessionStore
from clan.storage import PlayerStorage
from clan.warnings import WarningEngine

TZ = ZoneInfo("America/Sao_Paulo")
# 2026-10-22 is a Thursday
THURSDAY_NOON = datetime.datetime(2026, 10, 22, 12, 0, tzinfo=TZ)
SATURDAY_NOON = datetime.datetime(2026, 10, 24, 12, 0, tzinfo=TZ)
TUESDAY_NOON = datetime.datetime(2026, 10, 20, 12, 0, tzinfo=TZ)
LEADER = "999"


class ReplyRecorder:
    """Stands in for ``CommandContext.reply`` and keeps every text."""

    def __init__(self):
        self.messages = []

    async def __call__(self, text, mentions=()):
        self.messages.append(text)

    @property
    def last(self):
        return self.messages[-1] if self.messages else None


class FakeMessenger(Messenger):
    """In-memory messenger recording sends and removals."""

    def __init__(self, groups=None, members=None, failing_groups=(), groups_error=None):
        self.sent = []
        self.removed = []
        self.groups = groups if groups is not None else [Group("g1", "Clã Principal")]
        self.members = members or {}
        self.failing_groups = set(failing_groups)
        self.member_lookups = 0
        self.groups_error = groups_error

    async def send(self, channel_id, text, mentions=(), reply_to=None):
        self.sent.append((channel_id, text, list(mentions)))

    async def list_groups(self):
        if self.groups_error is not None:
            raise self.groups_error
        return list(self.groups)

    async def get_group_members(self, group_id):
        self.member_lookups += 1
        if group_id in self.failing_groups:
            raise RuntimeError("group unavailable")
        return list(self.members.get(group_id, []))

    async def remove_member(self, group_id, member_id):
        if group_id in self.failing_groups:
            raise RuntimeError("missing permission")
        self.removed.append((group_id, member_id))

    @property
    def texts(self):
        return [text for _, text, _ in self.sent]


@pytest.fixture
def make_ctx():
    def _make(text, user_id="100", channel_id="chan", is_admin=False, group_id="g1"):
        return CommandContext(
            user_id=user_id,
            channel_id=channel_id,
            text=text,
            reply=ReplyRecorder(),
            group_id=group_id,
            is_admin=is_admin,
        )
    return _make


@pytest.fixture
async def storage(tmp_path):
    store = PlayerStorage(str(tmp_path / "clan.db"))
    await store.initialize()
    return store


@pytest.fixture
async def sessions():
    store = InMemorySessionStore(timeout_seconds=60)
    yield store
    store.clear()


@pytest.fixture
def messenger():
    return FakeMessenger()


@pytest.fixture
def warnings(storage, messenger):
    return WarningEngine(storage, messenger, leader_id=LEADER, delay_range=(0, 0))


@pytest.fixture
def add_player(storage):
    async def _add(name, member_id=None, daily_points=None, **fields):
        player = Player(
            id="",
            name=name,
            member_id=member_id,
            daily_points=list(daily_points) if daily_points is not None else [0, 0, 0, 0],
            **fields,
        )
        return await storage.add_player(player)
    return _add


@pytest.fixture
def build_router(storage, sessions, warnings, messenger):
    """Wire the full message pipeline with a fixed clock."""
    def _build(moment=THURSDAY_NOON, on_error=None):
        clock = lambda: moment  # noqa: E731
        player_commands = PlayerCommands(storage, sessions, clock=clock)
        admin_commands = AdminCommands(storage, sessions, warnings, WarLogic(storage, warnings), messenger)
        registry = build_registry(player_commands, admin_commands)
        conversation = ConversationHandler(storage, sessions, warnings, player_commands, admin_commands, clock=clock)
        return CommandRouter(
            registry,
            sessions,
            conversation,
            QuickScoreHandler(storage, warnings, clock=clock),
            PassiveResponder(registry),
            on_error=on_error,
        )
    return _build


@pytest.fixture
def chat(make_ctx):
    """Send one message through a router and return its context."""
    async def _chat(router, text, **kwargs):
        ctx = make_ctx(text, **kwargs)
        await router.handle_message(ctx)
        return ctx
    return _chat
