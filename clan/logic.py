"""War-cycle logic: ranking, champions, closing the week and backups."""

import logging
import uuid
from typing import Dict, List, Optional, Sequence, Tuple

from .config import RANKING_DIVISIONS, WAR_DAYS
from .messaging import CommandContext
from .models import Division, Player
from .storage import HALL_OF_FAME, PLAYERS, PlayerStorage
from .warnings import WarningEngine

logger = logging.getLogger(__name__)

NAVAL_KEYWORD = "naval"


def default_divisions() -> List[Division]:
    """Ranking divisions from configuration, highest minimum first."""
    divisions = [Division(name, emoji, minimum) for name, emoji, minimum in RANKING_DIVISIONS]
    return sorted(divisions, key=lambda division: division.min_points, reverse=True)


def rank_players(players: Sequence[Player],
                 divisions: Optional[List[Division]] = None) -> List[Tuple[Division, List[Player]]]:
    """Place every scoring player in the highest division whose minimum they meet.

    Players without points are left out. Divisions with nobody in them are
    omitted from the result.
    """
    divisions = sorted(divisions or default_divisions(), key=lambda d: d.min_points, reverse=True)
    scorers = sorted(
        (player for player in players if player.total_war_points > 0),
        key=lambda player: player.total_war_points,
        reverse=True,
    )
    placed: Dict[str, List[Player]] = {division.name: [] for division in divisions}
    for player in scorers:
        for division in divisions:
            if player.total_war_points >= division.min_points:
                placed[division.name].append(player)
                break
    return [(division, placed[division.name]) for division in divisions if placed[division.name]]


def pending_players(players: Sequence[Player], target) -> List[Player]:
    """Players who still owe points for a war day index, or for naval defense."""
    if target == NAVAL_KEYWORD:
        pending = [player for player in players if player.naval_defense_points == 0]
    else:
        pending = [player for player in players if player.daily_points[target] == 0]
    return sorted(pending, key=lambda player: player.name.lower())


def crown_champions(players: Sequence[Player]) -> Tuple[int, List[Player]]:
    """Top weekly score and every player sharing it; nobody wins a week without points."""
    if not players:
        return 0, []
    top = max(player.total_war_points for player in players)
    if top <= 0:
        return 0, []
    return top, [player for player in players if player.total_war_points == top]


class WarLogic:
    """Operations that act on the whole roster at once."""

    def __init__(self, storage: PlayerStorage, warnings: WarningEngine):
        self.storage = storage
        self.warnings = warnings

    async def record_champions(self, winners: List[Player]):
        """Add one win to every winner's hall-of-fame entry in a single batch."""
        batch = self.storage.batch()
        for winner in winners:
            batch.increment(HALL_OF_FAME, winner.name, "wins", 1, defaults={"name": winner.name, "wins": 0})
        await batch.commit()

    async def reset_week(self) -> int:
        """Zero the weekly scores of every player. Returns how many players were reset."""
        players = await self.storage.get_all_players()
        batch = self.storage.batch()
        for player in players:
            batch.update(PLAYERS, player.id, {
                "dailyPoints": [0] * WAR_DAYS,
                "warnedAbsences": [],
                "navalDefensePoints": 0,
            })
        await batch.commit()
        return len(players)

    async def close_war(self, ctx: CommandContext):
        """Close the war week, reporting each step to the caller."""
        await ctx.reply("🚨 *Atenção!* Iniciando o processo de fechamento da semana...")

        await ctx.reply("1️⃣ Calculando o campeão da semana... 🏆")
        players = await self.storage.get_all_players()
        top, winners = crown_champions(players)
        if winners:
            if len(winners) > 1:
                names = " & ".join(winner.name for winner in winners)
                text = f"🏆 Tivemos um empate! Os campeões da semana com *{top}* pontos são:\n*{names}*"
            else:
                text = f"🏆 O grande campeão da semana é *{winners[0].name}* com *{top}* pontos!"
            await ctx.reply(text + "\n\nRegistrando no Hall da Fama...")
            await self.record_champions(winners)
            logger.info(f"Weekly champion(s): {', '.join(w.name for w in winners)} with {top} points")
        elif players:
            await ctx.reply("⚠️ Ninguém pontuou nesta guerra, então não há campeão esta semana.")

        await ctx.reply("2️⃣ Realizando a verificação final de faltas da guerra anterior... Isso pode levar um momento.")
        await self.warnings.check_all_absences(ctx)

        await ctx.reply("3️⃣ Faltas verificadas! Agora, zerando os placares para a nova guerra...")
        reset = await self.reset_week()
        if reset == 0:
            await ctx.reply("Nenhum jogador na lista para resetar.")
            return

        await self.storage.save_backup()
        logger.info(f"New war started; {reset} player(s) reset")
        await ctx.reply(
            "✅ *Nova Guerra Iniciada!* O campeão foi coroado, as faltas foram aplicadas "
            "e todos os placares foram zerados."
        )

    async def reset_warnings(self) -> int:
        """Clear the warnings of every player in one batch. Returns how many players were touched."""
        players = await self.storage.get_all_players()
        if not players:
            return 0
        batch = self.storage.batch()
        for player in players:
            batch.update(PLAYERS, player.id, {"warnings": 0})
        await batch.commit()
        logger.info(f"Warnings reset for {len(players)} player(s)")
        return len(players)

    async def restore_backup(self) -> Optional[int]:
        """Replace the whole roster with the backup.

        Returns the number of restored players, or None when there is no backup.
        An empty backup restores nothing and returns 0.
        """
        backup = await self.storage.load_backup()
        if backup is None:
            return None
        if not backup:
            return 0

        current = await self.storage.get_all_players()
        batch = self.storage.batch()
        for player in current:
            batch.delete(PLAYERS, player.id)
        for document in backup:
            data = dict(document)
            doc_id = data.pop("id", None) or uuid.uuid4().hex
            batch.set(PLAYERS, doc_id, data)
        await batch.commit()
        logger.warning(f"Roster restored from backup: {len(backup)} player(s) replaced {len(current)}")
        return len(backup)
