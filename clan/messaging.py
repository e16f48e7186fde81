"""Messaging layer: the transport interface the clan logic talks to."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence

import discord

from .config import MESSAGE_CHUNK_SIZE

logger = logging.getLogger(__name__)


@dataclass
class Group:
    """A group (guild) the bot manages."""
    id: str
    name: str


@dataclass
class GroupMember:
    """A member of a group and whether they administer it."""
    member_id: str
    is_admin: bool = False


def mention(member_id: str) -> str:
    """Inline mention for a member id."""
    return f"<@{member_id}>"


def split_message(text: str, size: int = MESSAGE_CHUNK_SIZE) -> List[str]:
    """Split a long text into chunks, preferring line boundaries."""
    if len(text) <= size:
        return [text]
    chunks = []
    current = ""
    for line in text.split("\n"):
        while len(line) > size:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:size])
            line = line[size:]
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > size:
            chunks.append(current)
            current = line
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks


class Messenger(ABC):
    """Outbound operations the bot needs from the chat transport."""

    @abstractmethod
    async def send(self, channel_id: str, text: str, mentions: Sequence[str] = (),
                   reply_to: Optional[str] = None):
        """Send a text to a channel, optionally quoting a message and pinging members."""

    @abstractmethod
    async def list_groups(self) -> List[Group]:
        """Every group the bot is part of."""

    @abstractmethod
    async def get_group_members(self, group_id: str) -> List[GroupMember]:
        """Members of a group with their admin flag."""

    @abstractmethod
    async def remove_member(self, group_id: str, member_id: str):
        """Remove a member from a group. Raises on failure."""


class DiscordMessenger(Messenger):
    """Messenger backed by a discord.py client."""

    def __init__(self, bot: discord.Client):
        self.bot = bot

    async def _resolve_channel(self, channel_id: str):
        channel = self.bot.get_channel(int(channel_id))
        if channel is None:
            channel = await self.bot.fetch_channel(int(channel_id))
        return channel

    async def send(self, channel_id, text, mentions=(), reply_to=None):
        channel = await self._resolve_channel(channel_id)
        allowed = discord.AllowedMentions(
            everyone=False,
            roles=False,
            users=[discord.Object(id=int(member_id)) for member_id in mentions],
        )
        reference = None
        if reply_to:
            reference = discord.MessageReference(message_id=int(reply_to), channel_id=int(channel_id),
                                                 fail_if_not_exists=False)
        for index, chunk in enumerate(split_message(text)):
            await channel.send(chunk, allowed_mentions=allowed, reference=reference if index == 0 else None)

    async def list_groups(self):
        return [Group(str(guild.id), guild.name) for guild in self.bot.guilds]

    async def get_group_members(self, group_id):
        guild = self.bot.get_guild(int(group_id))
        if guild is None:
            guild = await self.bot.fetch_guild(int(group_id))
        members = guild.members
        if not members:
            members = [member async for member in guild.fetch_members(limit=None)]
        return [
            GroupMember(str(member.id), member.guild_permissions.administrator)
            for member in members
            if not member.bot
        ]

    async def remove_member(self, group_id, member_id):
        guild = self.bot.get_guild(int(group_id))
        if guild is None:
            guild = await self.bot.fetch_guild(int(group_id))
        await guild.kick(discord.Object(id=int(member_id)), reason="Removido da lista do clã")
        logger.info(f"Removed member {member_id} from guild {guild.name}")


@dataclass
class CommandContext:
    """Everything a handler needs to know about an inbound message."""
    user_id: str
    channel_id: str
    text: str
    reply: Callable[..., Awaitable[None]]
    group_id: Optional[str] = None
    is_admin: bool = False
    message_id: Optional[str] = None

    @property
    def args(self) -> List[str]:
        """Whitespace-separated tokens after the command name."""
        return self.text.strip().split()[1:]

    @property
    def arg_text(self) -> str:
        """Raw text after the command name."""
        parts = self.text.strip().split(None, 1)
        return parts[1].strip() if len(parts) > 1 else ""
