"""Conversation state machine driving every multi-step dialog.

Each active session sits at one ConversationStep; the handler for that step
validates the user's answer and either re-prompts (state unchanged), moves the
session to the next step, or ends it. Persistence failures while reading keep
the session so the user can retry; failures while writing cancel it.
"""

import logging
from typing import Awaitable, Callable, Dict, Optional

from .config import DAY_MAP, DAY_NAMES, MAX_WARNINGS
from .messaging import CommandContext
from .models import Player, StatType, parse_int
from .sessions import ConversationState, ConversationStep, SessionStore
from .storage import PlayerStorage, StorageError
from .timeutils import CLOSED_WEEK_INDEX, current_war_day, initial_daily_points, is_day_closed, now
from .view import format_confirmation, format_day_menu, format_stat_menu
from .warnings import WarningEngine

logger = logging.getLogger(__name__)

CANCEL_WORD = "cancelar"
CONFIRM_WORD = "sim"
KEEP_WORDS = (".", "pular")

# Player attribute holding each stat
STAT_ATTRIBUTES = {
    StatType.NAVAL: "naval_defense_points",
    StatType.KING_TOWER: "king_tower",
    StatType.TROPHIES: "trophies",
    StatType.LEVEL_XP: "level_xp",
}

# step -> (stat asked, next step, label, prompt for the next stat)
_REGISTRATION = {
    ConversationStep.NEW_PLAYER_LEVEL: (
        StatType.LEVEL_XP, ConversationStep.NEW_PLAYER_TOWER, "Nível XP", "Agora digite sua *Torre Rei*:"),
    ConversationStep.NEW_PLAYER_TOWER: (
        StatType.KING_TOWER, ConversationStep.NEW_PLAYER_TROPHIES, "Torre Rei", "Agora digite seus *Troféus*:"),
    ConversationStep.NEW_PLAYER_TROPHIES: (
        StatType.TROPHIES, ConversationStep.NEW_PLAYER_NAVAL, "Troféus",
        "Por último, digite seus pontos de *Defesa Naval* (ou 0 se não tiver):"),
    ConversationStep.NEW_PLAYER_NAVAL: (StatType.NAVAL, None, "Defesa Naval", None),
}

# step -> (stat asked, next step, label, name of the next stat)
_UPDATE = {
    ConversationStep.UPDATE_LEVEL: (StatType.LEVEL_XP, ConversationStep.UPDATE_TOWER, "Nível XP", StatType.KING_TOWER),
    ConversationStep.UPDATE_TOWER: (StatType.KING_TOWER, ConversationStep.UPDATE_TROPHIES, "Torre Rei", StatType.TROPHIES),
    ConversationStep.UPDATE_TROPHIES: (StatType.TROPHIES, ConversationStep.UPDATE_NAVAL, "Troféus", StatType.NAVAL),
    ConversationStep.UPDATE_NAVAL: (StatType.NAVAL, None, "Defesa Naval", None),
}

_VALIDATION_HINTS = {
    StatType.LEVEL_XP: "o Nível XP (número inteiro positivo)",
    StatType.KING_TOWER: "a Torre Rei (número inteiro positivo)",
    StatType.TROPHIES: "os Troféus (número inteiro positivo ou zero)",
    StatType.NAVAL: "a Defesa Naval (número inteiro positivo ou zero)",
}


class ConversationHandler:
    """Routes a message from a user with an active session to its step handler."""

    def __init__(self, storage: PlayerStorage, sessions: SessionStore, warnings: WarningEngine,
                 player_commands, admin_commands, clock: Callable = now):
        self.storage = storage
        self.sessions = sessions
        self.warnings = warnings
        self.player_commands = player_commands
        self.admin_commands = admin_commands
        self.clock = clock
        self._steps: Dict[ConversationStep, Callable[[CommandContext, ConversationState], Awaitable[None]]] = {
            ConversationStep.NEW_PLAYER_NAME: self._new_player_name,
            ConversationStep.MENU_CHOICE: self._menu_choice,
            ConversationStep.DAY_CHOICE: self._day_choice,
            ConversationStep.POINTS_INPUT: self._points_input,
            ConversationStep.CONFIRMATION: self._points_confirmation,
            ConversationStep.AMBIGUOUS_PUNISH: self._ambiguous_choice,
            ConversationStep.AMBIGUOUS_EDIT: self._ambiguous_choice,
            ConversationStep.AMBIGUOUS_REMOVE: self._ambiguous_choice,
            ConversationStep.EDIT_CONFIRMATION: self._edit_confirmation,
            ConversationStep.REMOVE_CONFIRMATION: self._remove_confirmation,
        }
        for step in _REGISTRATION:
            self._steps[step] = self._registration_value
        for step in _UPDATE:
            self._steps[step] = self._update_value

    async def finish(self, ctx: CommandContext, message: Optional[str] = None):
        """End the user's session, optionally replying."""
        self.sessions.delete(ctx.user_id)
        if message:
            await ctx.reply(message)

    async def handle(self, ctx: CommandContext, state: ConversationState):
        """Process one message for an active session."""
        handler = self._steps.get(state.step)
        if handler is None:
            logger.warning(f"Invalid conversation step for {ctx.user_id}: {state.step}")
            await self.finish(ctx, "🤔 Estado de conversa inválido. A operação foi cancelada para segurança.")
            return

        try:
            await handler(ctx, state)
        except StorageError as e:
            if e.during_write:
                logger.error(f"Write failed at {state.step.value} for {ctx.user_id}: {e}")
                await self.finish(ctx, "❌ Ocorreu um erro ao salvar os dados. A operação foi cancelada.")
            else:
                logger.error(f"Read failed at {state.step.value} for {ctx.user_id}: {e}")
                await ctx.reply("❌ Não consegui acessar os dados agora. Tente responder novamente.")

    # Registration

    async def _new_player_name(self, ctx: CommandContext, state: ConversationState):
        name = ctx.text.strip()
        if name.lower() == CANCEL_WORD:
            await self.finish(ctx, "❌ Registro cancelado.")
            return
        if not name:
            await ctx.reply("❌ Por favor, digite um nome válido:")
            return

        if await self.storage.find_player_by_lowercase_name(name) is not None:
            await self.finish(ctx, f"❌ O nome *{name}* já está cadastrado na lista!")
            return

        player = await self.storage.add_player(Player(
            id="",
            name=name,
            member_id=ctx.user_id,
            daily_points=initial_daily_points(self.clock()),
        ))
        logger.info(f"New member registered as {player.name} ({ctx.user_id})")
        state.player_id = player.id
        state.player_name = player.name
        state.registration["name"] = player.name
        state.step = ConversationStep.NEW_PLAYER_LEVEL
        await ctx.reply(f"✅ Nome: *{name}*\n\nAgora digite seu *Nível XP*:")

    async def _registration_value(self, ctx: CommandContext, state: ConversationState):
        if ctx.text.strip().lower() == CANCEL_WORD:
            await self.finish(ctx, "❌ Registro cancelado.")
            return

        stat, next_step, label, next_prompt = _REGISTRATION[state.step]
        value = stat.parse(ctx.text)
        if value is None:
            await ctx.reply(f"❌ Por favor, digite um número válido para {_VALIDATION_HINTS[stat]}:")
            return

        state.registration[stat.field_name] = value
        if next_step is not None:
            state.step = next_step
            await ctx.reply(f"✅ {label}: *{value}*\n\n{next_prompt}")
            return

        fields = {key: value for key, value in state.registration.items() if key != "name"}
        if not await self.storage.update_player_fields(state.player_id, fields):
            await self.finish(ctx, "❌ Erro: Jogador não encontrado no banco de dados.")
            return
        logger.info(f"Registration completed for {state.player_name} ({ctx.user_id})")
        await self.finish(
            ctx,
            "✅ *Cadastro concluído com sucesso!*\n\n"
            f"👤 *{state.player_name}*\n"
            f"📝 Nível XP: {fields[StatType.LEVEL_XP.field_name]}\n"
            f"📝 Torre Rei: {fields[StatType.KING_TOWER.field_name]}\n"
            f"📝 Troféus: {fields[StatType.TROPHIES.field_name]}\n"
            f"⚓ Defesa Naval: {fields[StatType.NAVAL.field_name]} pontos\n\n"
            "Use */me* para ver seu status completo!",
        )

    # Profile update

    async def _update_value(self, ctx: CommandContext, state: ConversationState):
        text = ctx.text.strip()
        if text.lower() == CANCEL_WORD:
            await self.finish(ctx, "❌ Atualização cancelada.")
            return

        player = await self.storage.get_player(state.player_id)
        if player is None:
            await self.finish(ctx, "❌ Erro: Jogador não encontrado no banco de dados.")
            return

        stat, next_step, label, next_stat = _UPDATE[state.step]
        current = getattr(player, STAT_ATTRIBUTES[stat]) or 0
        if text.lower() in KEEP_WORDS:
            value = current
        else:
            value = stat.parse(text)
            if value is None:
                await ctx.reply(f'❌ Por favor, digite um número válido para {label} ou "." para manter o atual:')
                return

        state.registration[stat.field_name] = value
        changed = value != current
        summary = f"{'✅' if changed else '⏭️'} {label}: {value if changed else f'mantido ({value})'}"

        if next_step is not None:
            state.step = next_step
            next_current = getattr(player, STAT_ATTRIBUTES[next_stat]) or "Não informado"
            await ctx.reply(
                f"{summary}\n\n*{next_stat.label}* (atual: {next_current})\n"
                'Digite o novo valor ou "." para manter:'
            )
            return

        changes = {}
        lines = []
        for each, _, each_label, _ in _UPDATE.values():
            old_value = getattr(player, STAT_ATTRIBUTES[each]) or 0
            new_value = state.registration.get(each.field_name, old_value)
            if new_value != old_value:
                changes[each.field_name] = new_value
            lines.append(f"📝 {each_label}: {new_value}{' ✨' if new_value != old_value else ' (mantido)'}")

        if changes:
            await self.storage.update_player_fields(player.id, changes)
            logger.info(f"{player.name} updated {', '.join(changes)}")
        verb = "atualizadas" if changes else "verificadas"
        await self.finish(ctx, f"{summary}\n\n✅ *Informações {verb} com sucesso!*\n\n" + "\n".join(lines))

    # Points entry

    def _stat_prompt(self, state: ConversationState) -> str:
        return state.stat.prompt.format(name=state.player_name)

    async def _menu_choice(self, ctx: CommandContext, state: ConversationState):
        stat = StatType.from_menu(ctx.text.strip())
        if stat is None:
            await ctx.reply("Opção inválida. Vamos tentar de novo.\n\n" + format_stat_menu(state.player_name))
            return

        state.stat = stat
        if stat is StatType.WAR:
            state.step = ConversationStep.DAY_CHOICE
            await ctx.reply(format_day_menu())
            return
        state.step = ConversationStep.POINTS_INPUT
        await ctx.reply(f"Ok, *{stat.label}*. {self._stat_prompt(state)}\n\n(Digite /sair para cancelar)")

    async def _day_choice(self, ctx: CommandContext, state: ConversationState):
        day_index = DAY_MAP.get(ctx.text.strip().lower())
        if day_index is None:
            await ctx.reply("Dia inválido. Vamos tentar de novo.\n\n" + format_day_menu())
            return

        moment = self.clock()
        if is_day_closed(day_index, moment):
            today = current_war_day(moment)
            if today >= CLOSED_WEEK_INDEX:
                when = "A semana de guerra já encerrou."
            else:
                when = f"Hoje, para o bot, é *{DAY_NAMES[today]}*."
            await self.finish(ctx, f"❌ O prazo para registrar pontos de *{DAY_NAMES[day_index]}* já encerrou. {when}")
            return

        state.day_index = day_index
        state.step = ConversationStep.POINTS_INPUT
        await ctx.reply(f"Ok, *{DAY_NAMES[day_index]}*. {self._stat_prompt(state)}\n\n(Digite /sair para cancelar)")

    async def _points_input(self, ctx: CommandContext, state: ConversationState):
        value = state.stat.parse(ctx.text)
        if value is None:
            await ctx.reply(f"Valor inválido. Digite apenas números.\n\nVamos tentar de novo: {self._stat_prompt(state)}")
            return

        if state.stat is StatType.WAR:
            player = await self.storage.get_player(state.player_id)
            if player is None:
                await self.finish(
                    ctx, f"❌ O jogador *{state.player_name}* não foi encontrado no banco de dados. Lançamento cancelado."
                )
                return
            player = await self.warnings.backfill_absences(player, state.day_index, ctx)
            if player is None or player.warnings >= MAX_WARNINGS:
                logger.info(f"Points entry cancelled: {state.player_name} was removed by accumulated warnings")
                await self.finish(
                    ctx,
                    f"❌ Lançamento cancelado: O jogador *{state.player_name}* foi removido "
                    "devido a advertências acumuladas.",
                )
                return

        state.points = value
        state.step = ConversationStep.CONFIRMATION
        await ctx.reply(format_confirmation(state.player_name, state.stat, value, state.day_index))

    async def _points_confirmation(self, ctx: CommandContext, state: ConversationState):
        if ctx.text.strip().lower() != CONFIRM_WORD:
            await self.finish(ctx, "Lançamento de pontos cancelado.")
            return

        if state.stat is StatType.WAR:
            saved = await self.storage.set_daily_points(state.player_id, state.day_index, state.points)
        else:
            saved = await self.storage.update_player_fields(state.player_id, {state.stat.field_name: state.points})
        if not saved:
            await self.finish(ctx, f"❌ Erro: O jogador {state.player_name} não foi encontrado para salvar os pontos.")
            return

        if state.stat in (StatType.WAR, StatType.NAVAL):
            tip = f"*Dica:* Da próxima vez, use o comando rápido: `/{state.points}`"
        else:
            tip = "*Dica:* Use */me* para verificar suas informações atualizadas!"
        logger.info(f"{state.stat.label} points {state.points} saved for {state.player_name}")
        await self.finish(ctx, f"✅ Sucesso! Pontos registrados para *{state.player_name}*.\n\n{tip}")
        await self.warnings.run_post_score_checks(state.player_id, state.stat, state.points, ctx)

    # Admin disambiguation and confirmations

    async def _ambiguous_choice(self, ctx: CommandContext, state: ConversationState):
        text = ctx.text.strip()
        choice = parse_int(text) or 0
        if not 1 <= choice <= len(state.suggestions):
            await ctx.reply("Opção inválida. Por favor, digite um dos números da lista ou /cancelar.")
            return

        selected = state.suggestions[choice - 1]
        player = await self.storage.get_player(selected.id)
        await self.finish(ctx)
        if player is None:
            await ctx.reply(f"❌ O jogador *{selected.name}* não foi encontrado.")
            return

        ctx.is_admin = state.is_admin
        if state.step == ConversationStep.AMBIGUOUS_PUNISH:
            await ctx.reply(f"{choice} escolhido: *{player.name}*. Continuando a punição...")
            await self.admin_commands.punish_player(ctx, player)
        elif state.step == ConversationStep.AMBIGUOUS_EDIT:
            await ctx.reply(f"{choice} escolhido: *{player.name}*. Continuando a edição...")
            await self.player_commands.begin_rename(ctx, player, state.new_name)
        else:
            await ctx.reply(f"{choice} escolhido: *{player.name}*. Continuando a remoção...")
            await self.admin_commands.begin_removal(ctx, player)

    async def _edit_confirmation(self, ctx: CommandContext, state: ConversationState):
        if ctx.text.strip().lower() != CONFIRM_WORD:
            await self.finish(ctx, "Ok, a renomeação foi cancelada.")
            return
        await self.finish(ctx, await self.player_commands.perform_rename(ctx, state))

    async def _remove_confirmation(self, ctx: CommandContext, state: ConversationState):
        if ctx.text.strip().lower() != CONFIRM_WORD:
            await self.finish(ctx, "Ok, remoção cancelada.")
            return
        await self.finish(ctx, await self.admin_commands.perform_removal(ctx, state))
