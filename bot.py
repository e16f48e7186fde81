"""Main entry point for the clan war Discord bot."""

import os
import sys
import asyncio
import logging

import discord
from discord.ext import commands
from dotenv import load_dotenv

# Configuration is read from the environment at import time
load_dotenv()

from clan.admin_commands import AdminCommands  # noqa: E402
from clan.commands import PlayerCommands  # noqa: E402
from clan.config import CLAN_CHANNEL_ID, DATABASE_PATH  # noqa: E402
from clan.conversation import ConversationHandler  # noqa: E402
from clan.logic import WarLogic  # noqa: E402
from clan.messaging import CommandContext, DiscordMessenger, mention  # noqa: E402
from clan.passive import PassiveResponder  # noqa: E402
from clan.quick_add import QuickScoreHandler  # noqa: E402
from clan.router import AdminResolver, CommandRouter, build_registry  # noqa: E402
from clan.sessions import EXPIRY_NOTICE, ConversationState, ConversationStep, InMemorySessionStore  # noqa: E402
from clan.storage import PlayerStorage  # noqa: E402
from clan.warnings import WarningEngine  # noqa: E402
from error_handler import ErrorHandler  # noqa: E402

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler('clan_bot.log')
    ]
)
logger = logging.getLogger(__name__)

WELCOME_TEXT = (
    "Olá, {mention}! Seja bem-vindo(a) ao nosso clã! 🥳\n\n"
    "Eu sou o bot que registra os pontos da guerra. Vou fazer algumas perguntas para cadastrar você:\n\n"
    "📝 Nome no jogo\n📝 Nível XP\n📝 Torre Rei\n📝 Troféus\n⚓ Defesa Naval\n\n"
    "Vamos começar! Qual é o seu *nick (nome de usuário) no jogo*?"
)


class ClanBot(commands.Bot):
    """The clan war bot: reads chat messages and routes them."""

    def __init__(self):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True

        super().__init__(
            command_prefix=commands.when_mentioned,  # Commands are routed by CommandRouter
            intents=intents,
            help_command=None,
            description="A Discord bot that tracks clan war points and discipline"
        )

        owner_id = int(os.getenv('BOT_OWNER_ID', '0') or 0)
        self.error_handler = ErrorHandler(self, owner_id)
        self.storage = PlayerStorage(DATABASE_PATH)
        self.messenger = DiscordMessenger(self)
        self.sessions = InMemorySessionStore(on_expire=self.on_session_expired)
        self.router = None
        self.admin_resolver = None

    async def setup_hook(self):
        """Setup hook called before the bot connects."""
        logger.info("Setting up clan bot...")

        try:
            await self.storage.initialize()
        except Exception as e:
            await self.error_handler.notify_owner("Failed to initialize storage", str(e), e)
            logger.error(f"Failed to initialize storage: {e}")
            raise

        warnings = WarningEngine(self.storage, self.messenger)
        logic = WarLogic(self.storage, warnings)
        player_commands = PlayerCommands(self.storage, self.sessions)
        admin_commands = AdminCommands(self.storage, self.sessions, warnings, logic, self.messenger)
        registry = build_registry(player_commands, admin_commands)
        self.admin_resolver = AdminResolver(self.messenger)
        self.router = CommandRouter(
            registry,
            self.sessions,
            ConversationHandler(self.storage, self.sessions, warnings, player_commands, admin_commands),
            QuickScoreHandler(self.storage, warnings),
            PassiveResponder(registry),
            on_error=self.error_handler.report_error,
            resolve_admin=self.admin_resolver.is_admin,
        )
        logger.info(f"Registered {len(registry.commands)} command(s)")

        try:
            await self.load_extension('clan.scheduler')
            logger.info("Loaded reminder scheduler")
        except Exception as e:
            await self.error_handler.notify_owner("Failed to load scheduler", str(e), e)
            logger.error(f"Failed to load scheduler: {e}")
            # Don't raise - reminders are optional

    async def on_ready(self):
        """Called when the bot is ready."""
        logger.info(f"Clan bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guild(s)")

        try:
            await self.change_presence(activity=discord.Game(name="Guerra do clã | /ajuda"))
            await self.error_handler.send_startup_notification()
        except discord.DiscordException as e:
            logger.error(f"Error in on_ready: {e}")

    async def on_message(self, message: discord.Message):
        """Route every clan channel message."""
        if message.author.bot:
            return
        if CLAN_CHANNEL_ID and message.channel.id != CLAN_CHANNEL_ID:
            return

        channel_id = str(message.channel.id)
        message_id = str(message.id)

        async def reply(text, mentions=()):
            await self.messenger.send(channel_id, text, mentions=mentions, reply_to=message_id)

        group_id = str(message.guild.id) if message.guild else None
        user_id = str(message.author.id)
        ctx = CommandContext(
            user_id=user_id,
            channel_id=channel_id,
            text=message.content,
            reply=reply,
            group_id=group_id,
            message_id=message_id,
        )
        await self.router.handle_message(ctx)

    async def on_member_join(self, member: discord.Member):
        """Welcome a new member and start their registration."""
        if member.bot:
            return
        user_id = str(member.id)
        self.admin_resolver.invalidate(str(member.guild.id))

        if await self.storage.find_player_by_member(user_id) is not None:
            logger.info(f"{member} rejoined and is already registered")
            return

        if CLAN_CHANNEL_ID:
            channel_id = str(CLAN_CHANNEL_ID)
        elif member.guild.system_channel is not None:
            channel_id = str(member.guild.system_channel.id)
        else:
            logger.warning(f"No channel to welcome {member} in {member.guild.name}")
            return

        if self.sessions.get(user_id) is None:
            self.sessions.start(user_id, ConversationState(
                step=ConversationStep.NEW_PLAYER_NAME,
                channel_id=channel_id,
            ))
        await self.messenger.send(channel_id, WELCOME_TEXT.format(mention=mention(user_id)), mentions=[user_id])
        logger.info(f"Welcomed {member} in {member.guild.name}")

    async def on_member_remove(self, member: discord.Member):
        self.admin_resolver.invalidate(str(member.guild.id))

    async def on_session_expired(self, user_id: str, state: ConversationState):
        """Tell the user their conversation timed out."""
        await self.messenger.send(state.channel_id, f"{mention(user_id)} {EXPIRY_NOTICE}", mentions=[user_id])

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors."""
        exc_type, exc_value, exc_traceback = sys.exc_info()
        logger.error(f"Bot error in event {event}", exc_info=True)
        if exc_value:
            await self.error_handler.notify_owner(f"Unhandled error in {event}", f"Args: {str(args)[:500]}", exc_value)

    async def close(self):
        """Clean shutdown."""
        logger.info("Shutting down clan bot...")
        self.sessions.clear()
        await self.error_handler.notify_owner("Bot Shutdown", "Clan bot is shutting down normally")
        await super().close()


async def main():
    """Main function to run the bot."""
    token = os.getenv('DISCORD_TOKEN')
    if not token:
        logger.error("DISCORD_TOKEN is not set. Add it to the environment or a .env file.")
        sys.exit(1)

    bot = ClanBot()
    try:
        await bot.start(token)
    except Exception as e:
        logger.error(f"Bot crashed: {e}", exc_info=True)
        await bot.error_handler.notify_owner("Bot Crashed", "Fatal error while running", e)
        raise
    finally:
        if not bot.is_closed():
            await bot.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
