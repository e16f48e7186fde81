"""Command registry and message routing."""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from .config import ADMIN_CACHE_SECONDS, DENIED_MESSAGE, GENERIC_ERROR_MESSAGE
from .messaging import CommandContext, Messenger
from .sessions import SessionStore
from .view import format_command_help, format_help

logger = logging.getLogger(__name__)

CANCEL_COMMANDS = ("/sair", "/cancelar")

Handler = Callable[[CommandContext], Awaitable[None]]


@dataclass
class Command:
    """A slash command and the metadata shown by the help."""
    name: str
    handler: Handler
    admin: bool
    description: str
    usage: str
    example: str


class CommandRegistry:
    """Commands by lowercase name, in registration order."""

    def __init__(self, commands: Iterable[Command] = ()):
        self._commands: Dict[str, Command] = {}
        for command in commands:
            self.add(command)

    def add(self, command: Command):
        self._commands[command.name.lower()] = command

    def get(self, name: str) -> Optional[Command]:
        return self._commands.get(name.lower())

    @property
    def commands(self) -> Tuple[Command, ...]:
        return tuple(self._commands.values())

    async def help(self, ctx: CommandContext):
        """General help, or the details of one command."""
        if not ctx.args:
            await ctx.reply(format_help(self.commands, ctx.is_admin))
            return
        name = ctx.args[0].lstrip("/")
        command = self.get(name)
        if command is None or (command.admin and not ctx.is_admin):
            await ctx.reply(f"❌ Comando `/{name}` não encontrado. Digite `/ajuda` para ver a lista de comandos.")
            return
        await ctx.reply(format_command_help(command))


def build_registry(player_commands, admin_commands) -> CommandRegistry:
    """Build the registry of every slash command the bot answers."""
    registry = CommandRegistry()
    for command in (
        Command("me", player_commands.me, False,
                "Mostra o seu status pessoal ou o de outro jogador.",
                "`/me` ou `/me [nome|@menção]`",
                "Mostra seus pontos de Guerra, Naval e advertências atuais."),
        Command("nome", player_commands.nome, False,
                "Registra um novo jogador na lista.",
                "`/nome [Seu Nome Completo]`",
                "`Ex: /nome Mestre Yoda`"),
        Command("cadastro", player_commands.cadastro, False,
                "Atualiza suas informações pessoais (nível XP, torre do rei, troféus, pontos navais).",
                "`/cadastro`",
                "Inicia um guia interativo para atualizar suas informações."),
        Command("edit", player_commands.edit, False,
                "Corrige o nome de um jogador. Membros comuns só podem editar o próprio nome.",
                "`/edit [Nome Novo]` ou `/edit [Nome Antigo] para [Nome Novo]`",
                "`Ex: /edit Yado para Yoda`"),
        Command("lista", player_commands.lista, False,
                "Inicia o guia para lançar seus pontos.",
                "`/lista`",
                "Basta digitar o comando."),
        Command("campeoes", player_commands.campeoes, False,
                "Mostra o Hall da Fama com os maiores campeões.",
                "`/campeoes`",
                "Exibe um ranking de quem mais venceu guerras."),
        Command("status", player_commands.status, False,
                "Mostra o placar de pontos da semana.",
                "`/status`",
                "Mostra os pontos de Guerra e Naval de todos."),
        Command("ranking", player_commands.ranking, False,
                "Mostra o ranking de pontos da Guerra.",
                "`/ranking`",
                "Exibe a lista ordenada por pontos."),
        Command("lembrete", player_commands.lembrete, False,
                "Vê quem ainda não registrou pontos.",
                "`/lembrete [dia|naval]`",
                "`/lembrete sexta` ou `/lembrete naval`"),
        Command("adv", player_commands.adv, False,
                "Mostra a lista de jogadores com advertências.",
                "`/adv`",
                "Exibe a lista de advertências."),
        Command("ajuda", registry.help, False,
                "Mostra os comandos disponíveis ou os detalhes de um comando.",
                "`/ajuda` ou `/ajuda [comando]`",
                "`/ajuda status`"),
        Command("punir", admin_commands.punir, True,
                "Aplica 1 advertência. Com 5, o jogador é removido.",
                "`/punir [Nome do Jogador]`",
                "`/punir Mestre Yoda`"),
        Command("remover", admin_commands.remover, True,
                "⚠️ Remove um jogador da lista e de todos os grupos do bot.",
                "`/remover [Nome Exato]`",
                "`Ex: /remover Mestre Yoda`"),
        Command("verificar", admin_commands.verificar, True,
                "Compara a lista de membros do grupo com a lista do bot.",
                "`/verificar`",
                "Gera um relatório de quem está no grupo e não está no bot, e vice-versa."),
        Command("resetar_advs", admin_commands.resetar_advs, True,
                "🚨 ZERA as advertências de TODOS os jogadores.",
                "`/resetar_advs`",
                "Use para começar uma nova contagem."),
        Command("nova_guerra", admin_commands.nova_guerra, True,
                "🚨 ZERA todos os pontos de TODOS os jogadores.",
                "`/nova_guerra`",
                "Use no início de uma nova guerra."),
        Command("restaurar_backup", admin_commands.restaurar_backup, True,
                "🚨 Restaura a lista de jogadores do último backup.",
                "`/restaurar_backup`",
                "Use em caso de perda de dados."),
    ):
        registry.add(command)
    return registry


class AdminResolver:
    """Answers whether a member administers a group, caching member lists briefly."""

    def __init__(self, messenger: Messenger, ttl: float = ADMIN_CACHE_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.messenger = messenger
        self.ttl = ttl
        self.clock = clock
        self._cache: Dict[str, Tuple[float, Dict[str, bool]]] = {}

    async def is_admin(self, group_id: Optional[str], user_id: str) -> bool:
        if not group_id:
            return False
        cached = self._cache.get(group_id)
        if cached is None or self.clock() - cached[0] >= self.ttl:
            try:
                members = await self.messenger.get_group_members(group_id)
            except Exception as e:
                logger.warning(f"Could not fetch members of group {group_id}: {e}")
                return False
            cached = (self.clock(), {member.member_id: member.is_admin for member in members})
            self._cache[group_id] = cached
        return cached[1].get(user_id, False)

    def invalidate(self, group_id: Optional[str] = None):
        if group_id is None:
            self._cache.clear()
        else:
            self._cache.pop(group_id, None)


class CommandRouter:
    """Decides what handles each inbound message.

    Order: cancellation, active conversation, slash command, quick score
    shorthand, passive suggestion. Messages from one user are handled one at
    a time in arrival order; different users interleave freely.
    """

    def __init__(self, registry: CommandRegistry, sessions: SessionStore, conversation, quick_score, passive,
                 on_error: Optional[Callable[[str, CommandContext, Exception], Awaitable[None]]] = None,
                 resolve_admin: Optional[Callable[[Optional[str], str], Awaitable[bool]]] = None):
        self.registry = registry
        self.sessions = sessions
        self.conversation = conversation
        self.quick_score = quick_score
        self.passive = passive
        self.on_error = on_error
        self.resolve_admin = resolve_admin
        self._locks: Dict[str, List] = {}  # user id -> [lock, holders and waiters]

    @asynccontextmanager
    async def _user_turn(self, user_id: str):
        entry = self._locks.setdefault(user_id, [asyncio.Lock(), 0])
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[user_id]

    async def handle_message(self, ctx: CommandContext):
        text = ctx.text.strip()
        if not text:
            return

        async with self._user_turn(ctx.user_id):
            if self.resolve_admin is not None:
                ctx.is_admin = await self.resolve_admin(ctx.group_id, ctx.user_id)
            await self._route(ctx, text)

    async def _route(self, ctx: CommandContext, text: str):
        state = self.sessions.get(ctx.user_id)
        if text.lower() in CANCEL_COMMANDS:
            if state is not None:
                self.sessions.delete(ctx.user_id)
                logger.debug(f"Session of {ctx.user_id} cancelled at {state.step.value}")
                await ctx.reply("Operação cancelada.")
            return

        if state is not None:
            self.sessions.touch(ctx.user_id)
            await self._dispatch(f"conversation:{state.step.value}", ctx,
                                 lambda: self.conversation.handle(ctx, state))
            return

        if text.startswith("/"):
            tokens = text[1:].split()
            command = self.registry.get(tokens[0]) if tokens else None
            if command is None:
                await self._dispatch("quick_score", ctx, lambda: self.quick_score.handle(ctx))
                return
            if command.admin and not ctx.is_admin:
                logger.info(f"{ctx.user_id} denied /{command.name}")
                await ctx.reply(DENIED_MESSAGE)
                return
            logger.debug(f"{ctx.user_id} ran /{command.name}")
            await self._dispatch(f"/{command.name}", ctx, lambda: command.handler(ctx))
            return

        await self._dispatch("passive", ctx, lambda: self.passive.handle(ctx))

    async def _dispatch(self, label: str, ctx: CommandContext, call: Callable[[], Awaitable]):
        try:
            await call()
        except Exception as e:
            logger.exception(f"Error handling {label} for {ctx.user_id}")
            self.sessions.delete(ctx.user_id)
            if self.on_error is not None:
                try:
                    await self.on_error(label, ctx, e)
                except Exception as notify_error:
                    logger.error(f"Failed to report error: {notify_error}")
            try:
                await ctx.reply(GENERIC_ERROR_MESSAGE)
            except Exception as reply_error:
                logger.error(f"Failed to send error reply to {ctx.user_id}: {reply_error}")
