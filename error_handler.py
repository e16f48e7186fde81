"""Owner notifications for failures inside the clan bot."""

import logging
import traceback
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import discord
from discord.ext import commands


logger = logging.getLogger(__name__)

FIELD_LIMIT = 1000
RED = 0xE74C3C
GREEN = 0x2ECC71


def format_traceback(error: BaseException, limit: int = FIELD_LIMIT) -> str:
    """Last `limit` characters of the formatted traceback."""
    text = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return text[-limit:]


def build_embed(title: str, description: str, color: int,
                fields: Optional[List[Tuple[str, str]]] = None) -> discord.Embed:
    embed = discord.Embed(
        title=title,
        description=description[:4000],
        color=color,
        timestamp=datetime.now(timezone.utc),
    )
    for name, value in fields or []:
        embed.add_field(name=name, value=value[:1024], inline=False)
    embed.set_footer(text="Clan Bot")
    return embed


class ErrorHandler:
    """DMs the owner about failures, throttled per exception type.

    An owner id of 0 turns every notification into a no-op.
    """

    def __init__(self, bot: commands.Bot, owner_id: int, cooldown_seconds: int = 300):
        self.bot = bot
        self.owner_id = owner_id
        self.cooldown = timedelta(seconds=cooldown_seconds)
        self.error_counts: Dict[str, int] = {}
        self.last_sent: Dict[str, datetime] = {}

    async def _owner(self) -> Optional[discord.User]:
        if not self.owner_id:
            return None
        return self.bot.get_user(self.owner_id) or await self.bot.fetch_user(self.owner_id)

    async def _deliver(self, embed: discord.Embed) -> bool:
        try:
            owner = await self._owner()
            if owner is None:
                logger.debug(f"No owner configured; dropped notification: {embed.title}")
                return False
            await owner.send(embed=embed)
        except discord.DiscordException as e:
            logger.error(f"Could not DM the owner ({embed.title}): {e}")
            return False
        logger.info(f"Owner notified: {embed.title}")
        return True

    async def notify_owner(self, title: str, description: str, error: Optional[BaseException] = None) -> bool:
        fields = []
        if error is not None:
            fields.append(("Error", f"```{str(error)[:FIELD_LIMIT]}```"))
            fields.append(("Traceback", f"```{format_traceback(error)}```"))
        return await self._deliver(build_embed(f"🚨 {title}", description, RED, fields))

    def should_notify(self, error: BaseException) -> bool:
        """Count the error and tell whether its type is out of cooldown."""
        error_type = type(error).__name__
        now = datetime.now(timezone.utc)
        self.error_counts[error_type] = self.error_counts.get(error_type, 0) + 1

        last = self.last_sent.get(error_type)
        if last is not None and now - last <= self.cooldown:
            return False
        self.last_sent[error_type] = now
        return True

    async def report_error(self, label: str, ctx, error: BaseException) -> bool:
        """Report a failed command or conversation step for the member in `ctx`."""
        error_type = type(error).__name__
        if not self.should_notify(error):
            logger.debug(f"{error_type} in {label} not reported (cooldown)")
            return False
        description = (
            f"**Handler:** `{label}`\n"
            f"**Member:** <@{ctx.user_id}>\n"
            f"**Channel:** <#{ctx.channel_id}>\n"
            f"**Message:** {ctx.text[:200]}\n"
            f"**Occurrences:** {self.error_counts[error_type]} since start"
        )
        return await self.notify_owner(f"{error_type} in {label}", description, error)

    async def send_startup_notification(self) -> bool:
        guilds = ", ".join(guild.name for guild in self.bot.guilds) or "none"
        embed = build_embed("✅ Clan bot online", f"Connected to: {guilds}", GREEN)
        return await self._deliver(embed)
