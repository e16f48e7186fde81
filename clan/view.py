"""Text formatting for clan displays."""

from typing import List, Sequence, Tuple

from .config import DAY_NAMES, MAX_WARNINGS
from .models import Division, HallOfFameEntry, Player, StatType

NOT_SET = "Não informado"
MEDALS = ["🥇", "🥈", "🥉"]


def short_day(day_index: int) -> str:
    return DAY_NAMES[day_index].split("-")[0]


def conduct_label(warnings: int) -> str:
    """Conduct rating shown on the profile."""
    if warnings == 0:
        return "Limpa"
    if warnings <= 2:
        return "Requer Atenção"
    return "Em Risco"


def format_day_status(points: int) -> str:
    if points == -1:
        return "⚫ (Aguardando)"
    if points == 0:
        return "🔴 (Não atacou)"
    return f"✅ ({points} pts)"


def format_profile(player: Player) -> str:
    """Format a player's battle status."""
    lines = [
        f"👤 *Status de Batalha: {player.name}*",
        "",
        "📝 *Informações do Jogador:*",
        f" › Nível XP: {player.level_xp or NOT_SET}",
        f" › Torre Rei: {player.king_tower or NOT_SET}",
        f" › Troféus: {player.trophies if player.trophies is not None else NOT_SET}",
        "",
        "*Desempenho na Guerra:*",
    ]
    for index, points in enumerate(player.daily_points):
        lines.append(f" › {short_day(index)}: {format_day_status(points)}")
    lines += [
        "",
        f"⚓ *Defesa Naval:* {player.naval_defense_points} pontos",
        f"⚠️ *Conduta:* {player.warnings}/{MAX_WARNINGS} Advertências - *{conduct_label(player.warnings)}*",
    ]
    return "\n".join(lines)


def format_status(players: Sequence[Player]) -> str:
    """Weekly scoreboard of every player."""
    if not players:
        return "Nenhum jogador na lista. Use */nome [seu nome]* para se registrar."
    lines = ["*📊 Status de Pontos da Guerra 📊*", ""]
    for player in players:
        lines += [
            f"*{player.name}*",
            f" ⚔️ Guerra: {' | '.join(str(points) for points in player.daily_points)}",
            f" 🛡️ Def. Naval: {player.naval_defense_points}",
            "--------------------",
        ]
    return "\n".join(lines)


def format_ranking(ranked: List[Tuple[Division, List[Player]]]) -> str:
    """Division ranking of the war week."""
    if not ranked:
        return "Ninguém pontuou na guerra ainda."
    lines = ["🏆 *Ranking de Pontos de Guerra* 🏆"]
    for division, players in ranked:
        lines += ["", f"{division.emoji} *{division.name} ({division.min_points}+)*"]
        lines += [f"• {player.name}: *{player.total_war_points} pts*" for player in players]
    return "\n".join(lines)


def format_pending(title: str, players: Sequence[Player]) -> str:
    """Players who still have to register points."""
    if not players:
        return f"🎉 Todos já registraram os pontos para *{title}*!"
    lines = [f"🚨 *Jogadores com pontuação pendente para {title}:*", ""]
    lines += [f"• {player.name}" for player in players]
    lines += ["", "*Não esqueçam de lançar os pontos!*"]
    return "\n".join(lines)


def format_warnings(players: Sequence[Player]) -> str:
    """Warned players grouped by risk."""
    warned = [player for player in players if player.warnings > 0]
    if not warned:
        return "🎉 Ninguém possui advertências."

    high = sorted((p for p in warned if p.warnings >= 3), key=lambda p: -p.warnings)
    risk = sorted((p for p in warned if p.warnings == 2), key=lambda p: p.name.lower())
    single = sorted((p for p in warned if p.warnings == 1), key=lambda p: p.name.lower())

    lines = ["⚠ *Lista de Advertências* ⚠", ""]
    for title, group in (
        ("🚨 *RISCO MÁXIMO (3+ ADVs)* 🚨", high),
        ("🔥 *ZONA DE RISCO (2 ADVs)* 🔥", risk),
        ("⚠️ *1 Advertência*", single),
    ):
        if group:
            lines.append(title)
            lines += [f"📌 {player.name} ({player.warnings}/{MAX_WARNINGS})" for player in group]
            lines.append("")
    return "\n".join(lines).rstrip()


def format_hall_of_fame(entries: Sequence[HallOfFameEntry]) -> str:
    if not entries:
        return "🏆 O Hall da Fama ainda está vazio. Seja o primeiro a conquistá-lo!"
    lines = ["🏆 *Hall da Fama - Maiores Campeões* 🏆", ""]
    for index, entry in enumerate(entries):
        medal = MEDALS[index] if index < len(MEDALS) else "🏅"
        label = "vitórias" if entry.wins > 1 else "vitória"
        lines.append(f"{medal} *{entry.name}* - {entry.wins} {label}")
    return "\n".join(lines)


def format_stat_menu(name: str, greeting: str = "Olá") -> str:
    """Stat selection menu of the points flow."""
    options = "\n".join(f"*{index}.* {stat.label}" for index, stat in enumerate(StatType, 1))
    return f"{greeting}, *{name}*. Lançar pontos para qual evento?\n\n{options}\n\n(Digite /sair para cancelar)"


def format_day_menu() -> str:
    days = "\n".join(f"*{day}*" for day in DAY_NAMES)
    return f"Entendido, *Guerra*. Em qual dia?\n\n{days}\n\n(Digite /sair para cancelar)"


def format_confirmation(player_name: str, stat: StatType, points: int, day_index=None) -> str:
    lines = ["📝 *CONFIRMAÇÃO*", "", f"*Jogador:* {player_name}", f"*Evento:* {stat.label}"]
    if stat is StatType.WAR:
        lines.append(f"*Dia:* {DAY_NAMES[day_index]}")
    lines += [
        f"*Pontos:* {points}",
        "",
        "Está tudo certo? Responda com *sim* para salvar.",
        "",
        "(Digite /sair para cancelar)",
    ]
    return "\n".join(lines)


def format_command_help(command) -> str:
    """Details of a single command."""
    text = (
        f"*Detalhes do Comando: /{command.name}* 🧐\n\n"
        f"*O que faz:*\n{command.description}\n\n"
        f"*Como usar:*\n{command.usage}\n\n"
        f"*Exemplo:*\n{command.example}"
    )
    if command.admin:
        text += "\n\n*Nota: Este é um comando apenas para administradores.*"
    return text


def format_help(commands, is_admin: bool) -> str:
    """General help generated from the command registry."""
    lines = ["*Guia de Comandos do Bot* 🤖", "", "Aqui está o que você pode fazer:", "", "*➡️ Comandos para Todos:*"]
    lines += [f"*/{command.name}* - {command.description}" for command in commands if not command.admin]
    lines += [
        "*/sair* - Cancela uma operação.",
        "",
        "*⚡ Comandos Rápidos de Lançamento de Pontos:*",
        "*/[pontos] [dia]* - Lança pontos de guerra diretamente (ex: `/980 quinta`).",
        "*/[pontos]* - Lança pontos de guerra para o dia atual (ex: `/980`).",
        "*👑 /[nome_do_jogador] [pontos] [dia]* - (Admin) Lança pontos para outro jogador "
        "(ex: `/Mestre Yoda 980 sexta`).",
    ]
    if is_admin:
        lines += ["", "*👑 Comandos de Administrador:*"]
        lines += [f"*/{command.name}* - {command.description}" for command in commands if command.admin]
    lines += ["", "Para saber mais detalhes, digite `/ajuda [comando]`", "(ex: `/ajuda status`)"]
    return "\n".join(lines)
