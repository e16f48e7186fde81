"""Quick-score shorthand: ``/980``, ``/980 sabado``, ``/Ana 980 sexta``."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .config import DAY_MAP, DAY_NAMES, DENIED_MESSAGE, MAX_WARNINGS, NAVAL_THRESHOLD
from .messaging import CommandContext
from .models import StatType, parse_int
from .names import find_player_by_name
from .timeutils import CLOSED_WEEK_INDEX, auto_war_day, current_war_day, now

logger = logging.getLogger(__name__)


@dataclass
class QuickScore:
    """A parsed shorthand entry; ``player_name`` is None for self-service."""
    value: int
    day_index: Optional[int] = None
    player_name: Optional[str] = None


def parse_quick_score(text: str) -> Optional[QuickScore]:
    """Parse a shorthand entry, returning None for anything malformed."""
    parts = text.strip().lstrip("/").split()
    if not parts:
        return None

    first = parse_int(parts[0])
    if first is not None:
        if len(parts) > 2:
            return None
        day_index = None
        if len(parts) == 2:
            day_index = DAY_MAP.get(parts[1].lower())
            if day_index is None:
                return None
        return QuickScore(first, day_index)

    if len(parts) < 2:
        return None
    day_index = DAY_MAP.get(parts[-1].lower())
    if day_index is not None and len(parts) > 2:
        value_token, name_parts = parts[-2], parts[:-2]
    else:
        day_index = None
        value_token, name_parts = parts[-1], parts[:-1]

    value = parse_int(value_token)
    name = " ".join(name_parts).strip()
    if value is None or not name:
        return None
    return QuickScore(value, day_index, name)


class QuickScoreHandler:
    """Writes shorthand entries, bypassing the guided conversation."""

    def __init__(self, storage, warnings, clock: Callable = now):
        self.storage = storage
        self.warnings = warnings
        self.clock = clock

    async def handle(self, ctx: CommandContext):
        entry = parse_quick_score(ctx.text)
        if entry is None:
            logger.debug(f"Dropped malformed shorthand from {ctx.user_id}: {ctx.text!r}")
            return

        if entry.player_name is None:
            player = await self.storage.find_player_by_member(ctx.user_id)
            if player is None:
                await ctx.reply("❌ Seu número não está cadastrado. Use */nome SEU_NICK* para se registrar.")
                return
        else:
            if not ctx.is_admin:
                await ctx.reply(DENIED_MESSAGE)
                return
            resolution = await find_player_by_name(self.storage, entry.player_name)
            if not resolution.found:
                await ctx.reply(f'Jogador "{entry.player_name}" não encontrado.')
                return
            player = resolution.player

        if entry.value > NAVAL_THRESHOLD:
            await self.storage.update_player_fields(player.id, {StatType.NAVAL.field_name: entry.value})
            await ctx.reply(f"✅ *Defesa Naval* registrada para *{player.name}*: {entry.value} pontos.")
            return

        moment = self.clock()
        day_index = entry.day_index
        if day_index is None:
            day_index = auto_war_day(moment)
            if day_index is None:
                await ctx.reply(
                    "❌ Lançamento rápido sem dia só funciona durante os dias de guerra "
                    "(de Quinta 06:00 a Segunda 05:59)."
                )
                return

        today = current_war_day(moment)
        if day_index < today:
            if today >= CLOSED_WEEK_INDEX:
                when = "A semana de guerra já encerrou."
            else:
                when = f"Hoje, para o bot, é *{DAY_NAMES[today]}*."
            await ctx.reply(f"❌ O prazo para registrar pontos de *{DAY_NAMES[day_index]}* já encerrou. {when}")
            return

        current = await self.storage.get_player(player.id)
        if current is None:
            await ctx.reply(f"❌ O jogador *{player.name}* não foi encontrado. Lançamento cancelado.")
            return

        current = await self.warnings.backfill_absences(current, day_index, ctx)
        if current is None or current.warnings >= MAX_WARNINGS:
            logger.info(f"Quick score cancelled: {player.name} was removed by accumulated warnings")
            await ctx.reply(
                f"❌ Lançamento cancelado: O jogador *{player.name}* foi removido devido a advertências acumuladas."
            )
            return

        await self.storage.set_daily_points(current.id, day_index, entry.value)
        await ctx.reply(
            f"✅ *Guerra* de *{DAY_NAMES[day_index]}* registrada para *{current.name}*: {entry.value} pontos."
        )
        await self.warnings.run_post_score_checks(current.id, StatType.WAR, entry.value, ctx)
