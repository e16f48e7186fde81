"""Warning escalation and absence back-filling."""

import asyncio
import logging
import random
from typing import List, Optional, Tuple

from .config import (
    ABSENCE_SWEEP_DELAY, DAY_NAMES, LEADER_ID, MANUAL_WARNING_REASON, MAX_WARNINGS, MIN_WAR_SCORE, WAR_DAYS,
)
from .messaging import CommandContext, Messenger, mention
from .models import Player, StatType

logger = logging.getLogger(__name__)

LOW_SCORE_REASON = f"pontuação abaixo do mínimo ({MIN_WAR_SCORE})"


def late_absence_reason(day_index: int) -> str:
    return f"não participar da guerra de {DAY_NAMES[day_index]} (advertência tardia)"


def final_absence_reason(day_index: int) -> str:
    return f"não participar da guerra de {DAY_NAMES[day_index]} (verificação pós-guerra)"


class WarningEngine:
    """Applies warnings, escalates notices and removes players at the ceiling."""

    def __init__(self, storage, messenger: Messenger, leader_id: str = LEADER_ID,
                 delay_range: Tuple[float, float] = ABSENCE_SWEEP_DELAY):
        self.storage = storage
        self.messenger = messenger
        self.leader_id = leader_id
        self.delay_range = delay_range

    def _tags(self, player: Player) -> Tuple[str, List[str]]:
        if player.member_id:
            return mention(player.member_id), [player.member_id]
        return player.name, []

    async def notify(self, player: Player, count: int, reason: str, ctx: CommandContext):
        """Send the notice matching the player's new warning count."""
        tag, mentions = self._tags(player)
        leader = mention(self.leader_id) if self.leader_id else "da liderança"
        leader_mentions = [self.leader_id] if self.leader_id else []

        if count >= MAX_WARNINGS:
            text = (
                f"🚨 {tag} (Nick: *{player.name}*) foi advertido(a) por *{reason}*.\n\n"
                f"📵 ATINGIU {MAX_WARNINGS} ADVERTÊNCIAS E FOI REMOVIDO(A) DA LISTA 📵"
            )
            await self.messenger.send(ctx.channel_id, text, mentions)
        elif count == 4:
            text = (
                "☠️ *SENTENÇA FINAL - EXPULSÃO IMINENTE* ☠️\n\n"
                f"{tag} (Nick: *{player.name}*), sua permanência no clã está por um fio. "
                f"Você atingiu **4/{MAX_WARNINGS} advertências**.\n\n"
                "*NÃO HÁ MAIS MARGEM PARA ERROS.*\n\n"
                "Considere esta a sua notificação final. A próxima infração, não importa qual seja, "
                "resultará na sua *remoção imediata e definitiva*.\n\n"
                f"Sua última esperança é contatar o líder {leader} *AGORA* e justificar por que você deve permanecer."
            )
            await self.messenger.send(ctx.channel_id, text, leader_mentions + mentions)
        elif count == 3:
            text = (
                "🔥 *ATENÇÃO: ZONA DE ALERTA* 🔥\n\n"
                f"{tag} (Nick: *{player.name}*), você atingiu **3/{MAX_WARNINGS} advertências**.\n\n"
                "Este é um aviso sério. Para evitar futuras penalidades, você precisa agir.\n\n"
                "*Sua missão:*\n"
                f"1. Converse com o líder {leader} para entender como melhorar.\n"
                "2. Adote a TAG oficial do clã.\n\n"
                "Ao fazer isso, a liderança poderá reavaliar seu caso. Não deixe para depois!"
            )
            await self.messenger.send(ctx.channel_id, text, leader_mentions + mentions)
        elif count == 2:
            text = f"🔥 {tag} (Nick: *{player.name}*) entrou na *ZONA DE RISCO*. Total agora: {count}/{MAX_WARNINGS}."
            await self.messenger.send(ctx.channel_id, text, mentions)
        elif reason == MANUAL_WARNING_REASON:
            await ctx.reply(f"✅ Advertência manual aplicada a *{player.name}*. Total agora: {count}/{MAX_WARNINGS}.")
        else:
            text = f"🚨 {tag} (Nick: *{player.name}*) foi advertido(a) por *{reason}*. Total agora: {count}/{MAX_WARNINGS}."
            await self.messenger.send(ctx.channel_id, text, mentions)

    async def remove_from_groups(self, player: Player) -> List[str]:
        """Remove the player's member from every group. Returns the groups where it failed."""
        if not player.member_id:
            return []
        try:
            groups = await self.messenger.list_groups()
        except Exception as e:
            logger.error(f"Could not list groups to remove {player.name}: {e}")
            return []
        failed = []
        for group in groups:
            try:
                await self.messenger.remove_member(group.id, player.member_id)
            except Exception as e:
                logger.error(f"Failed to remove {player.name} from group {group.name}: {e}")
                failed.append(group.name)
        return failed

    async def apply_warning(self, player: Player, reason: str, ctx: CommandContext) -> int:
        """Add one warning to the player; at the ceiling the player is removed. Returns the new count."""
        current = await self.storage.get_player(player.id)
        if current is None:
            logger.error(f"Tried to warn missing player {player.name} ({player.id})")
            return player.warnings

        count = current.warnings + 1
        logger.warning(f"Warning {count}/{MAX_WARNINGS} for {current.name}: {reason}")

        if count >= MAX_WARNINGS:
            await self.notify(current, count, reason, ctx)
            await self.remove_from_groups(current)
            await self.storage.delete_player(current.id)
            logger.warning(f"{current.name} reached {MAX_WARNINGS} warnings and was removed")
        else:
            await self.storage.update_player_fields(current.id, {"warnings": count})
            await self.notify(current, count, reason, ctx)
        return count

    async def _warn_absences(self, player: Player, days, reason_for, ctx: CommandContext) -> Optional[Player]:
        current = player
        for day_index in days:
            if current is None or current.warnings >= MAX_WARNINGS:
                break
            if current.daily_points[day_index] != 0 or day_index in current.warned_absences:
                continue

            logger.warning(f"Absence on {DAY_NAMES[day_index]} for {current.name}")
            await self.storage.add_warned_absence(current.id, day_index)
            current = await self.storage.get_player(current.id)
            if current is None:
                break
            await self.apply_warning(current, reason_for(day_index), ctx)
            current = await self.storage.get_player(current.id)
        return current

    async def backfill_absences(self, player: Player, upto_day_index: int, ctx: CommandContext) -> Optional[Player]:
        """Warn for every un-warned missed day before ``upto_day_index``.

        Returns the refreshed player, or None if the player was removed.
        """
        logger.debug(f"Checking absences for {player.name} before day {upto_day_index}")
        return await self._warn_absences(player, range(min(upto_day_index, WAR_DAYS)), late_absence_reason, ctx)

    async def check_all_absences(self, ctx: CommandContext):
        """Final absence sweep over every player and every war day."""
        players = await self.storage.get_all_players()
        logger.info(f"Running final absence sweep over {len(players)} player(s)")
        for player in players:
            try:
                await self._warn_absences(player, range(WAR_DAYS), final_absence_reason, ctx)
            except Exception:
                logger.exception(f"Failed to check absences for {player.name} ({player.id})")
            await asyncio.sleep(random.uniform(*self.delay_range))
        logger.info("Final absence sweep complete")

    async def run_post_score_checks(self, player_id: str, stat: StatType, points: int, ctx: CommandContext):
        """Warn after a war score below the minimum. Never raises."""
        try:
            if stat is not StatType.WAR or not 0 < points < MIN_WAR_SCORE:
                return
            player = await self.storage.get_player(player_id)
            if player is None:
                return
            await self.apply_warning(player, LOW_SCORE_REASON, ctx)
        except Exception:
            logger.exception(f"Post-score checks failed for player {player_id}")
