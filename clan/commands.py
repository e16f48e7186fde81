"""Player command handlers."""

import logging
import re
from typing import Callable

from .config import DAY_MAP, DAY_NAMES
from .logic import NAVAL_KEYWORD, pending_players, rank_players
from .messaging import CommandContext
from .models import Player, ResolveStatus
from .names import find_player_by_name, resolve_or_prompt
from .sessions import ConversationState, ConversationStep, SessionStore
from .storage import PlayerStorage
from .timeutils import initial_daily_points, now
from .view import (
    format_hall_of_fame, format_pending, format_profile, format_ranking, format_stat_menu, format_status,
    format_warnings,
)

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"^<@!?(\d+)>$")
ADMIN_EDIT_PATTERN = re.compile(r"^(.*?)\s+para\s+(.*)$", re.IGNORECASE)
NOT_REGISTERED = "Seu número não está cadastrado no bot. Para começar, use o comando:\n\n*/nome SEU_NICK_NO_JOGO*"


class PlayerCommands:
    """Commands available to every clan member."""

    def __init__(self, storage: PlayerStorage, sessions: SessionStore, clock: Callable = now):
        self.storage = storage
        self.sessions = sessions
        self.clock = clock

    async def me(self, ctx: CommandContext):
        """Show the sender's profile, or another player's by mention or name."""
        target = ctx.arg_text
        if not target:
            player = await self.storage.find_player_by_member(ctx.user_id)
            if player is None:
                await ctx.reply("ℹ️ Você não está registrado. Use */nome [seu nick no jogo]* para se registrar.")
                return
        elif MENTION_PATTERN.match(target):
            member_id = MENTION_PATTERN.match(target).group(1)
            player = await self.storage.find_player_by_member(member_id)
            if player is None:
                await ctx.reply("❌ Esse membro não está registrado.")
                return
        else:
            resolution = await find_player_by_name(self.storage, target)
            if not resolution.found:
                await ctx.reply(f'❌ Jogador "{target}" não encontrado.')
                return
            player = resolution.player
        await ctx.reply(format_profile(player))

    async def nome(self, ctx: CommandContext):
        """Register the sender and start the full registration questions."""
        name = ctx.arg_text
        if not name:
            await ctx.reply("Por favor, digite seu nome. Ex: */nome Mestre Yoda*")
            return

        existing = await self.storage.find_player_by_member(ctx.user_id)
        if existing is not None:
            await ctx.reply(
                f"ℹ️ Você já está cadastrado como *{existing.name}*!\n\n"
                "Use */cadastro* para atualizar suas informações."
            )
            return

        taken = await self.storage.find_player_by_lowercase_name(name)
        if taken is not None:
            await ctx.reply(f"❌ O nome *{taken.name}* já está na lista!")
            return

        player = await self.storage.add_player(Player(
            id="",
            name=name,
            member_id=ctx.user_id,
            daily_points=initial_daily_points(self.clock()),
        ))
        logger.info(f"New player {player.name} registered by {ctx.user_id}")
        self.sessions.start(ctx.user_id, ConversationState(
            step=ConversationStep.NEW_PLAYER_LEVEL,
            channel_id=ctx.channel_id,
            player_id=player.id,
            player_name=player.name,
            registration={"name": player.name},
        ))
        await ctx.reply(
            "👋 *Bem-vindo! Vamos fazer seu cadastro completo.*\n\n"
            f"✅ Nome: *{name}*\n\n"
            "Agora digite seu *Nível XP*:"
        )

    async def cadastro(self, ctx: CommandContext):
        """Start the profile update flow."""
        player = await self.storage.find_player_by_member(ctx.user_id)
        if player is None:
            await ctx.reply(
                "❌ Você não está cadastrado no sistema!\n\n"
                "Use */nome* para fazer seu primeiro cadastro com todas as informações."
            )
            return

        self.sessions.start(ctx.user_id, ConversationState(
            step=ConversationStep.UPDATE_LEVEL,
            channel_id=ctx.channel_id,
            player_id=player.id,
            player_name=player.name,
        ))
        await ctx.reply(
            f"📝 *Vamos atualizar suas informações, {player.name}!*\n\n"
            f"*Nível XP* (atual: {player.level_xp or 'Não informado'})\n"
            'Digite o novo valor ou "." para manter:'
        )

    async def edit(self, ctx: CommandContext):
        """Rename yourself, or (admins) rename another player with confirmation."""
        content = ctx.arg_text
        admin_match = ADMIN_EDIT_PATTERN.match(content)

        if admin_match and ctx.is_admin:
            old_name, new_name = admin_match.group(1).strip(), admin_match.group(2).strip()
            if not old_name or not new_name:
                await ctx.reply("Formato incorreto para admins. Use: `/edit [nome_antigo] para [novo_nome]`")
                return
            resolution = await resolve_or_prompt(
                ctx, self.storage, self.sessions, old_name, ConversationStep.AMBIGUOUS_EDIT, new_name=new_name,
            )
            if resolution is None:
                return
            if resolution.status == ResolveStatus.SIMILAR:
                await ctx.reply(f"Aviso: O nome mais próximo encontrado foi *{resolution.player.name}*. Alterando nome.")
            await self.begin_rename(ctx, resolution.player, new_name)
            return

        if admin_match:
            await ctx.reply("Formato incorreto para o comando /edit. Verifique o uso correto.")
            return

        if not content:
            await ctx.reply(
                "Formato incorreto. Use: `/edit [seu novo nome]` ou, se for admin, "
                "`/edit [nome_antigo] para [nome_novo]`"
            )
            return

        player = await self.storage.find_player_by_member(ctx.user_id)
        if player is None:
            await ctx.reply("❌ Você não está na lista. Use `/nome [seu nick]` para se registrar.")
            return
        taken = await self.storage.find_player_by_lowercase_name(content)
        if taken is not None and taken.id != player.id:
            await ctx.reply(f"❌ O nome *{taken.name}* já está na lista!")
            return
        await self.storage.update_player_fields(player.id, {"name": content})
        logger.info(f"{player.name} renamed themselves to {content}")
        await ctx.reply(f"✅ Seu nome foi alterado com sucesso para *{content}*.")

    async def begin_rename(self, ctx: CommandContext, player: Player, new_name: str):
        """Ask the admin to confirm renaming ``player``."""
        self.sessions.start(ctx.user_id, ConversationState(
            step=ConversationStep.EDIT_CONFIRMATION,
            channel_id=ctx.channel_id,
            player_id=player.id,
            player_name=player.name,
            new_name=new_name,
            is_admin=ctx.is_admin,
        ))
        await ctx.reply(f"Confirma a alteração de nome de *{player.name}* para *{new_name}*? Responda *sim*.")

    async def perform_rename(self, ctx: CommandContext, state: ConversationState) -> str:
        """Apply a confirmed rename. Returns the reply for the admin."""
        updated = await self.storage.update_player_fields(state.player_id, {"name": state.new_name})
        if not updated:
            return f"❌ O jogador *{state.player_name}* não foi encontrado."
        logger.info(f"{ctx.user_id} renamed {state.player_name} to {state.new_name}")
        return f"✅ Sucesso! *{state.player_name}* foi renomeado para *{state.new_name}*."

    async def lista(self, ctx: CommandContext):
        """Start the guided points entry for the sender."""
        player = await self.storage.find_player_by_member(ctx.user_id)
        if player is None:
            await ctx.reply(NOT_REGISTERED)
            return
        self.sessions.start(ctx.user_id, ConversationState(
            step=ConversationStep.MENU_CHOICE,
            channel_id=ctx.channel_id,
            player_id=player.id,
            player_name=player.name,
            is_admin=ctx.is_admin,
        ))
        await ctx.reply(format_stat_menu(player.name))

    async def campeoes(self, ctx: CommandContext):
        await ctx.reply(format_hall_of_fame(await self.storage.get_hall_of_fame()))

    async def status(self, ctx: CommandContext):
        await ctx.reply(format_status(await self.storage.get_all_players()))

    async def ranking(self, ctx: CommandContext):
        players = await self.storage.get_all_players()
        if not players:
            await ctx.reply("Nenhum jogador na lista para criar um ranking.")
            return
        await ctx.reply(format_ranking(rank_players(players)))

    async def lembrete(self, ctx: CommandContext):
        """List who still has to register points for a day or for naval defense."""
        target = ctx.arg_text.lower()
        if not target:
            await ctx.reply("Uso incorreto. Especifique o dia ou 'naval'.\nEx: */lembrete quinta*")
            return

        if target == NAVAL_KEYWORD:
            key, title = NAVAL_KEYWORD, "Defesa Naval"
        elif target in DAY_MAP:
            key = DAY_MAP[target]
            title = DAY_NAMES[key]
        else:
            await ctx.reply("Opção inválida. Use 'quinta', 'sexta', 'sabado', 'domingo' ou 'naval'.")
            return

        players = await self.storage.get_all_players()
        if not players:
            await ctx.reply("Nenhum jogador na lista para verificar.")
            return
        await ctx.reply(format_pending(title, pending_players(players, key)))

    async def adv(self, ctx: CommandContext):
        await ctx.reply(format_warnings(await self.storage.get_all_players()))
