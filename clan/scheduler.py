"""Automatic pending-points reminders for the clan channel."""

import datetime
import logging
from typing import Optional

from discord.ext import commands, tasks

from .config import AUTO_REMINDER_ENABLED, CLAN_CHANNEL_ID, DAY_NAMES, REMINDER_HOUR, SUNDAY_REMINDER_HOUR
from .logic import pending_players
from .timeutils import auto_war_day, get_timezone, now
from .view import format_pending

logger = logging.getLogger(__name__)

SUNDAY = 6


def reminder_day(moment: datetime.datetime) -> Optional[int]:
    """War day to remind about at this moment, or None when no reminder is due.

    Thursday to Saturday remind at 21:00, Sunday at 20:00.
    """
    day_index = auto_war_day(moment)
    if day_index is None:
        return None
    due_hour = SUNDAY_REMINDER_HOUR if moment.weekday() == SUNDAY else REMINDER_HOUR
    return day_index if moment.hour == due_hour else None


class ReminderScheduler:
    """Posts who still owes war points for the current day."""

    def __init__(self, bot: commands.Bot, enabled: bool = AUTO_REMINDER_ENABLED, channel_id: int = CLAN_CHANNEL_ID):
        self.bot = bot
        self.enabled = enabled
        self.channel_id = channel_id
        if self.enabled and self.channel_id:
            self.pending_reminder.start()
        else:
            logger.info("Automatic reminders disabled")

    def cog_unload(self):
        self.pending_reminder.cancel()

    async def send_reminder(self, moment: datetime.datetime) -> bool:
        """Post the pending list if a reminder is due. Returns True if one was posted."""
        day_index = reminder_day(moment)
        if day_index is None:
            return False

        players = await self.bot.storage.get_all_players()
        if not players:
            logger.info("Reminder skipped: roster is empty")
            return False
        pending = pending_players(players, day_index)
        await self.bot.messenger.send(str(self.channel_id), format_pending(DAY_NAMES[day_index], pending))
        logger.info(f"Reminder for {DAY_NAMES[day_index]} posted: {len(pending)} pending player(s)")
        return True

    @tasks.loop(time=[
        datetime.time(hour=SUNDAY_REMINDER_HOUR, tzinfo=get_timezone()),
        datetime.time(hour=REMINDER_HOUR, tzinfo=get_timezone()),
    ])
    async def pending_reminder(self):
        try:
            await self.send_reminder(now())
        except Exception as e:
            logger.error(f"Error in reminder task: {e}")

    @pending_reminder.before_loop
    async def before_pending_reminder(self):
        await self.bot.wait_until_ready()
        logger.info("Reminder scheduler initialized")


async def setup(bot: commands.Bot):
    """Attach the reminder scheduler to the bot."""
    bot.reminder_scheduler = ReminderScheduler(bot)
