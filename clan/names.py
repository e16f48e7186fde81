"""Fuzzy player-name resolution."""

import logging
import re
from typing import List, Optional

from .config import AMBIGUOUS_DISTANCE, MAX_SUGGESTIONS, SEARCH_TOLERANCE, SUGGESTION_DISTANCE
from .models import Player, Resolution, ResolveStatus
from .sessions import ConversationState

logger = logging.getLogger(__name__)

# Stylized letters players put in their nicknames
_CHARACTER_MAP = {
    'ᴀ': 'a', 'À': 'a', 'Á': 'a', 'Ä': 'a', 'ᴬ': 'a', 'ᵃ': 'a',
    'ʙ': 'b', 'ᴮ': 'b', 'ᵇ': 'b',
    'ᴄ': 'c', 'Ç': 'c', 'ᶜ': 'c',
    'ᴅ': 'd', 'ᴰ': 'd', 'ᵈ': 'd',
    'ᴇ': 'e', 'È': 'e', 'É': 'e', 'Ë': 'e', 'ᴱ': 'e', 'ᵉ': 'e',
    'ꜰ': 'f', 'ᶠ': 'f',
    'ɢ': 'g', 'ᴳ': 'g', 'ᵍ': 'g',
    'ʜ': 'h', 'ᴴ': 'h', 'ʰ': 'h',
    'ɪ': 'i', 'Ì': 'i', 'Í': 'i', 'Ï': 'i', 'ᴵ': 'i', 'ⁱ': 'i',
    'ᴊ': 'j', 'ᴶ': 'j', 'ʲ': 'j',
    'ᴋ': 'k', 'ᴷ': 'k', 'ᵏ': 'k',
    'ʟ': 'l', 'ᴸ': 'l', 'ˡ': 'l',
    'ᴍ': 'm', 'ᴹ': 'm', 'ᵐ': 'm',
    'ɴ': 'n', 'Ñ': 'n', 'ᴺ': 'n', 'ⁿ': 'n',
    'ᴏ': 'o', 'Ò': 'o', 'Ó': 'o', 'Ö': 'o', 'ᴼ': 'o', 'ᵒ': 'o',
    'ᴘ': 'p', 'ᴾ': 'p', 'ᵖ': 'p',
    'ǫ': 'q',
    'ʀ': 'r', 'ᴿ': 'r', 'ʳ': 'r',
    'ꜱ': 's', 'ˢ': 's',
    'ᴛ': 't', 'ᵀ': 't', 'ᵗ': 't',
    'ᴜ': 'u', 'Ù': 'u', 'Ú': 'u', 'Ü': 'u', 'ᵁ': 'u', 'ᵘ': 'u',
    'ᴠ': 'v', 'ⱽ': 'v', 'ᵛ': 'v',
    'ᴡ': 'w', 'ᵂ': 'w', 'ʷ': 'w',
    'ˣ': 'x',
    'ʏ': 'y', 'ʸ': 'y',
    'ᴢ': 'z', 'ᶻ': 'z',
}
_NON_ALNUM = re.compile(r"[^a-z0-9]")


def sanitize_name(name: Optional[str]) -> str:
    """Lower-case a name, fold stylized letters to ASCII and drop everything else."""
    if not name:
        return ""
    folded = "".join(_CHARACTER_MAP.get(char, char) for char in name.lower())
    return _NON_ALNUM.sub("", folded)


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        for j, char_b in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b),
            ))
        previous = current
    return previous[-1]


def resolve(name: str, roster: List[Player]) -> Resolution:
    """Match a free-text name against the roster.

    Candidates are ranked by edit distance between sanitized names. More than
    one candidate within AMBIGUOUS_DISTANCE is ambiguous, even when some are
    exact; otherwise the best candidate is accepted within SEARCH_TOLERANCE.
    """
    if not roster:
        return Resolution(ResolveStatus.EMPTY_LIST)

    target = sanitize_name(name)
    ranked = sorted(
        ((levenshtein(target, sanitize_name(player.name)), player) for player in roster),
        key=lambda pair: pair[0],
    )

    plausible = [player for distance, player in ranked if distance <= AMBIGUOUS_DISTANCE]
    if len(plausible) > 1:
        return Resolution(ResolveStatus.AMBIGUOUS, suggestions=plausible)

    best_distance, best = ranked[0]
    if best_distance <= SEARCH_TOLERANCE:
        status = ResolveStatus.EXACT if best_distance == 0 else ResolveStatus.SIMILAR
        return Resolution(status, player=best, distance=best_distance)

    suggestions = [player for distance, player in ranked if distance < SUGGESTION_DISTANCE]
    return Resolution(ResolveStatus.NOT_FOUND, suggestions=suggestions[:MAX_SUGGESTIONS])


async def find_player_by_name(storage, name: str) -> Resolution:
    """Resolve a name against the live roster."""
    roster = await storage.get_all_players()
    resolution = resolve(name, roster)
    logger.debug(f"Resolved '{name}' -> {resolution.status.value}")
    return resolution


def format_choices(header: str, players: List[Player]) -> str:
    lines = [header]
    lines.extend(f"{index} - {player.name}" for index, player in enumerate(players, 1))
    return "\n".join(lines) + "\n\n(Digite o número ou /cancelar)"


async def resolve_or_prompt(ctx, storage, sessions, name: str, step,
                            ambiguous_header: str = "Você quis dizer um destes?",
                            **payload) -> Optional[Resolution]:
    """Resolve a name for a command, or ask the user to pick one.

    Returns the resolution when a player was found. Otherwise replies (opening
    an ambiguous-choice session at ``step`` when there is something to choose
    from) and returns None.
    """
    resolution = await find_player_by_name(storage, name)
    if resolution.found:
        return resolution

    if resolution.status == ResolveStatus.EMPTY_LIST:
        await ctx.reply("A lista de jogadores está vazia.")
        return None

    if resolution.status == ResolveStatus.NOT_FOUND and not resolution.suggestions:
        await ctx.reply(f"❌ Jogador *{name}* não encontrado.")
        return None

    if resolution.status == ResolveStatus.NOT_FOUND:
        header = f"❌ Jogador *{name}* não encontrado.\n\nVocê quis dizer?"
    else:
        header = ambiguous_header

    sessions.start(ctx.user_id, ConversationState(
        step=step,
        channel_id=ctx.channel_id,
        suggestions=resolution.suggestions,
        is_admin=ctx.is_admin,
        **payload,
    ))
    await ctx.reply(format_choices(header, resolution.suggestions))
    return None
