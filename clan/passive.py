"""Passive intent matching for plain chat messages."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .config import PASSIVE_COOLDOWN_SECONDS
from .messaging import CommandContext

logger = logging.getLogger(__name__)

# command -> (priority, keywords); action commands rank above queries
INTENT_KEYWORDS = {
    "lista": (3, [
        "lançar", "lançamento", "adicionar pontos", "colocar meus pontos", "como lança",
        "como coloco meus pontos", "pontuar", "registrar ataque", "lançar pt", "lançar pts",
        "botar os pontos", "quero adicionar pontos",
    ]),
    "nome": (3, [
        "registrar", "registro", "adiciono meu nome", "entrar na lista", "cadastrar", "novo membro",
        "cadastrar nome", "bot n tem meu nome", "sou novo",
    ]),
    "edit": (3, [
        "mudar nome", "corrigir nome", "editar nome", "arrumar meu nome", "meu nome ta errado",
        "alterar nome", "troca o nome", "edita o nome", "nome errado", "arrumar nick",
    ]),
    "punir": (3, [
        "punir", "dar advertência", "aplicar advertência", "como punir", "dar adv", "punir o cara",
        "aplicar punição",
    ]),
    "lembrete": (2, [
        "lembrete", "quem falta", "quem não atacou", "quem não fez", "cobrar", "falta atacar",
        "quem n atacou", "cobrança", "zerado",
    ]),
    "ranking": (2, [
        "ranking", "rank", "ranquin", "classificação", "quem ta ganhando", "quem ganhou", "primeiro lugar",
        "top 3", "pódio", "quem ta na frente", "top players",
    ]),
    "me": (2, [
        "meu status", "minha pontuação", "ver meus pontos", "como eu to", "minhas adv", "quantos adv eu tenho",
        "meus pts", "como estou", "to com quantas adv", "tenho quantos adv",
    ]),
    "adv": (2, [
        "advertência", "advertencias", "avisos", "lista de adv", "quem tem adv", "ver advs",
        "lista de punidos", "adv",
    ]),
    "ajuda": (2, [
        "ajuda", "socorro", "help", "comandos", "cmd", "o que você faz", "como funciona",
        "não sei o que fazer", "quais os comandos",
    ]),
    "status": (1, [
        "pontos", "pts", "placar", "pontuação", "ver os pontos", "quem já fez", "como tá a guerra", "guerra",
        "placar da guerra",
    ]),
}


@dataclass
class IntentMatch:
    command: str
    keyword: str
    priority: int


def match_intent(text: str, table: Optional[Dict] = None) -> Optional[IntentMatch]:
    """Find the command a message most likely refers to.

    Higher priority wins; between keywords of equal priority the longer one
    wins.
    """
    lowered = text.lower()
    best = None
    for command, (priority, keywords) in (table or INTENT_KEYWORDS).items():
        for keyword in keywords:
            if keyword not in lowered:
                continue
            if (best is None or priority > best.priority
                    or (priority == best.priority and len(keyword) > len(best.keyword))):
                best = IntentMatch(command, keyword, priority)
    return best


class PassiveResponder:
    """Suggests a command when a chat message looks like it wants one."""

    def __init__(self, registry, cooldown: float = PASSIVE_COOLDOWN_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.registry = registry
        self.cooldown = cooldown
        self.clock = clock
        self._last_reply: Dict[str, float] = {}

    def on_cooldown(self, channel_id: str) -> bool:
        last = self._last_reply.get(channel_id)
        return last is not None and self.clock() - last < self.cooldown

    async def handle(self, ctx: CommandContext) -> bool:
        """Reply with a suggestion. Returns True if one was sent."""
        if self.on_cooldown(ctx.channel_id):
            logger.debug(f"Passive cooldown active for {ctx.channel_id}")
            return False

        match = match_intent(ctx.text)
        if match is None:
            return False
        command = self.registry.get(match.command)
        if command is None:
            return False

        intent = command.description.lower().replace(".", "", 1)
        await ctx.reply(
            f'Olá! 👋 Parece que você falou sobre "*{match.keyword}*".\n\n'
            f'Acho que posso ajudar! Se a sua intenção é "{intent}", o comando é:\n\n➡️ *{command.usage}*'
        )
        self._last_reply[ctx.channel_id] = self.clock()
        logger.debug(f"Suggested /{command.name} in {ctx.channel_id} for keyword '{match.keyword}'")
        return True
