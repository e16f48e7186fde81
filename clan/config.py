"""Clan bot configuration constants and settings."""

import os


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to the default."""
    value = os.getenv(name)
    try:
        return int(value) if value not in (None, "") else default
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    """Read a boolean environment variable ('true' or '1')."""
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return value.lower() in ("true", "1")


TIMEZONE = os.getenv("TIMEZONE", "America/Sao_Paulo")
DATABASE_PATH = os.getenv("DATABASE_PATH", "clan_bot.db")

# Channel the bot listens to (0 means every channel it can read)
CLAN_CHANNEL_ID = _env_int("CLAN_CHANNEL_ID", 0)
LEADER_ID = os.getenv("LEADER_ID", "")

# Name search
SEARCH_TOLERANCE = _env_int("SEARCH_TOLERANCE", 3)
AMBIGUOUS_DISTANCE = 1
SUGGESTION_DISTANCE = 5
MAX_SUGGESTIONS = 3

# Conversations
SESSION_TIMEOUT_MINUTES = _env_int("SESSION_TIMEOUT_MINUTES", 5)
ADMIN_CACHE_SECONDS = _env_int("ADMIN_CACHE_SECONDS", 30)
PASSIVE_COOLDOWN_SECONDS = _env_int("PASSIVE_COOLDOWN_SECONDS", 60)

# War week: Thursday through Sunday
WAR_DAYS = 4
DAY_MAP = {
    "quinta": 0, "quinta-feira": 0,
    "sexta": 1, "sexta-feira": 1,
    "sabado": 2, "sábado": 2,
    "domingo": 3,
}
DAY_NAMES = ["Quinta-feira", "Sexta-feira", "Sábado", "Domingo"]
# A war day runs from 06:00 to 05:59 of the next day (clan time)
DAY_TOLERANCE_HOURS = _env_int("DAY_TOLERANCE_HOURS", 6)

# Discipline
MAX_WARNINGS = 5
MIN_WAR_SCORE = _env_int("MIN_WAR_SCORE", 550)
NAVAL_THRESHOLD = _env_int("NAVAL_THRESHOLD", 5000)
MANUAL_WARNING_REASON = "advertência manual"
ABSENCE_SWEEP_DELAY = (0.2, 0.7)  # seconds between players

RANKING_DIVISIONS = [
    ("DIVISÃO DE ELITE", "👑", _env_int("RANKING_ELITE_MIN_POINTS", 3000)),
    ("ALTO DESEMPENHO", "🔥", _env_int("RANKING_HIGH_PERFORMANCE_MIN_POINTS", 2500)),
    ("EM DIA", "✅", _env_int("RANKING_ON_TRACK_MIN_POINTS", 2000)),
    ("ZONA DE ATENÇÃO", "⚠️", _env_int("RANKING_ATTENTION_ZONE_MIN_POINTS", 0)),
]

# Automatic reminders (hour of day, clan time)
AUTO_REMINDER_ENABLED = _env_bool("AUTO_REMINDER_ENABLED")
REMINDER_HOUR = 21
SUNDAY_REMINDER_HOUR = 20

MESSAGE_CHUNK_SIZE = 2000

DENIED_MESSAGE = "❌ Você não tem permissão para usar este comando."
GENERIC_ERROR_MESSAGE = "❌ Ocorreu um erro ao processar sua solicitação. Tente novamente."
