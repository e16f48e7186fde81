"""Admin-only command handlers for roster and war management."""

import logging

from .config import MANUAL_WARNING_REASON
from .logic import WarLogic
from .messaging import CommandContext, Messenger, mention
from .models import Player, ResolveStatus
from .names import resolve_or_prompt
from .sessions import ConversationState, ConversationStep, SessionStore
from .storage import PlayerStorage
from .warnings import WarningEngine

logger = logging.getLogger(__name__)


class AdminCommands:
    """Admin-only commands for discipline and roster management."""

    def __init__(self, storage: PlayerStorage, sessions: SessionStore, warnings: WarningEngine,
                 logic: WarLogic, messenger: Messenger):
        self.storage = storage
        self.sessions = sessions
        self.warnings = warnings
        self.logic = logic
        self.messenger = messenger

    async def punir(self, ctx: CommandContext):
        """Give a player one manual warning."""
        name = ctx.arg_text
        if not name:
            await ctx.reply("Formato incorreto. Use: `/punir [nome]`")
            return
        resolution = await resolve_or_prompt(ctx, self.storage, self.sessions, name, ConversationStep.AMBIGUOUS_PUNISH)
        if resolution is None:
            return
        if resolution.status == ResolveStatus.SIMILAR:
            await ctx.reply(f"Aviso: O nome mais próximo encontrado foi *{resolution.player.name}*. Aplicando punição.")
        await self.punish_player(ctx, resolution.player)

    async def punish_player(self, ctx: CommandContext, player: Player) -> int:
        logger.warning(f"Manual warning for {player.name} by {ctx.user_id}")
        return await self.warnings.apply_warning(player, MANUAL_WARNING_REASON, ctx)

    async def remover(self, ctx: CommandContext):
        """Remove a player from the roster and every group, after confirmation."""
        name = ctx.arg_text
        if not name:
            await ctx.reply("Digite o nome a remover.")
            return
        resolution = await resolve_or_prompt(
            ctx, self.storage, self.sessions, name, ConversationStep.AMBIGUOUS_REMOVE,
            ambiguous_header="Qual destes para remover?\n",
        )
        if resolution is None:
            return
        await self.begin_removal(ctx, resolution.player, similar=resolution.status == ResolveStatus.SIMILAR)

    async def begin_removal(self, ctx: CommandContext, player: Player, similar: bool = False):
        self.sessions.start(ctx.user_id, ConversationState(
            step=ConversationStep.REMOVE_CONFIRMATION,
            channel_id=ctx.channel_id,
            player_id=player.id,
            player_name=player.name,
            is_admin=ctx.is_admin,
        ))
        if similar:
            await ctx.reply(f"Nome próximo: *{player.name}*. Remover?\n\nResponda *sim*.")
        else:
            await ctx.reply(f"Remover *{player.name}* da lista e dos grupos?\n\nResponda *sim*.")

    async def perform_removal(self, ctx: CommandContext, state: ConversationState) -> str:
        """Remove a confirmed player. Returns the report for the admin."""
        player = await self.storage.get_player(state.player_id)
        if player is None:
            return f"❌ O jogador *{state.player_name}* não foi encontrado."

        failed_groups = await self.warnings.remove_from_groups(player)
        await self.storage.delete_player(player.id)
        logger.warning(f"{player.name} removed by {ctx.user_id}")

        text = f"✅ Sucesso! *{player.name}* foi removido da lista."
        if failed_groups:
            text += (
                "\n\n⚠️ *Atenção:* Não foi possível remover o usuário dos seguintes grupos "
                "(verifique se o bot tem permissão):\n- " + "\n- ".join(failed_groups)
            )
        return text

    async def verificar(self, ctx: CommandContext):
        """Compare the group's members with the roster."""
        if not ctx.group_id:
            await ctx.reply("❌ Este comando só pode ser usado em um grupo.")
            return
        await ctx.reply("🔎 Verificando a lista de membros... Isso pode levar um momento.")

        members = await self.messenger.get_group_members(ctx.group_id)
        member_ids = {member.member_id for member in members}
        players = await self.storage.get_all_players()
        registered = {player.member_id for player in players if player.member_id}

        unregistered = [member.member_id for member in members if member.member_id not in registered]
        gone = [player.name for player in players if player.member_id and player.member_id not in member_ids]

        lines = ["📋 *Relatório de Verificação de Membros* 📋", ""]
        if unregistered:
            lines += [
                "*👤 Membros no grupo que NÃO estão registrados no bot:*",
                "(Devem usar o comando `/nome [nick]`)",
            ]
            lines += [f"- {mention(member_id)}" for member_id in unregistered]
        else:
            lines.append("✅ Todos os membros do grupo estão registrados no bot.")
        lines += ["", "--------------------", ""]
        if gone:
            lines += [
                "*👋 Jogadores na lista do bot que NÃO estão mais no grupo:*",
                "(Considere usar `/remover [nome]` para limpar a lista)",
            ]
            lines += [f"- {name}" for name in gone]
        else:
            lines.append("✅ Todos os jogadores registrados no bot estão no grupo.")

        await self.messenger.send(ctx.channel_id, "\n".join(lines), mentions=unregistered)

    async def resetar_advs(self, ctx: CommandContext):
        count = await self.logic.reset_warnings()
        if count == 0:
            await ctx.reply("Nenhum jogador na lista.")
            return
        await ctx.reply("✅ Todas as advertências foram zeradas com sucesso.")

    async def nova_guerra(self, ctx: CommandContext):
        await self.logic.close_war(ctx)

    async def restaurar_backup(self, ctx: CommandContext):
        """Replace the roster with the last backup."""
        await ctx.reply("Restaurando a lista... Isso pode levar um momento.")
        restored = await self.logic.restore_backup()
        if restored is None:
            await ctx.reply("❌ Nenhum backup encontrado para restaurar.")
        elif restored == 0:
            await ctx.reply("⚠️ O backup está vazio. Nenhuma ação foi tomada.")
        else:
            await ctx.reply(f"✅ Sucesso! A lista com os dados de *{restored}* jogadores foi restaurada.")
