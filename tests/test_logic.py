"""Tests for ranking, the weekly close and backups."""

from clan.logic import WarLogic, crown_champions, pending_players, rank_players
from clan.models import Division, Player

DIVISIONS = [
    Division("DIVISÃO DE ELITE", "👑", 3000),
    Division("ALTO DESEMPENHO", "🔥", 2500),
    Division("EM DIA", "✅", 2000),
    Division("ZONA DE ATENÇÃO", "⚠️", 0),
]


def player(name, daily_points, naval=0):
    return Player(id=name, name=name, daily_points=daily_points, naval_defense_points=naval)


def test_ranking_places_each_scorer_once():
    players = [
        player("Zero", [0, 0, 0, 0]),
        player("Mid", [600, 600, 600, 0]),
        player("Top", [800, 800, 800, 800]),
        player("High", [650, 650, 650, 650]),
    ]

    ranked = rank_players(players, DIVISIONS)

    assert [(division.name, [p.name for p in members]) for division, members in ranked] == [
        ("DIVISÃO DE ELITE", ["Top"]),
        ("ALTO DESEMPENHO", ["High"]),
        ("ZONA DE ATENÇÃO", ["Mid"]),
    ]


def test_ranking_ignores_pending_slots():
    ranked = rank_players([player("Ana", [-1, -1, 1000, 1000])], DIVISIONS)
    assert ranked[0][0].name == "EM DIA"


def test_pending_players():
    players = [
        player("bruno", [900, 0, 0, 0]),
        player("Ana", [0, 0, 0, 0], naval=300),
        player("Carla", [-1, 900, 0, 0]),
    ]
    assert [p.name for p in pending_players(players, 0)] == ["Ana", "bruno"]
    assert [p.name for p in pending_players(players, "naval")] == ["bruno", "Carla"]


def test_crown_champions_with_tie():
    top, winners = crown_champions([
        player("Ana", [1000, 1000, 0, 0]),
        player("Bruno", [500, 500, 500, 500]),
        player("Carla", [100, 0, 0, 0]),
    ])
    assert top == 2000
    assert [w.name for w in winners] == ["Ana", "Bruno"]


def test_no_champion_without_points():
    assert crown_champions([player("Ana", [-1, 0, 0, 0])]) == (0, [])
    assert crown_champions([]) == (0, [])


async def test_close_war(storage, warnings, make_ctx, add_player):
    logic = WarLogic(storage, warnings)
    champion = await add_player("Ana", daily_points=[1000, 1000, 1000, 1000], naval_defense_points=300)
    absent = await add_player("Bruno", daily_points=[800, 0, 800, 800])
    ctx = make_ctx("/nova_guerra", is_admin=True)

    await logic.close_war(ctx)

    hall = await storage.get_hall_of_fame()
    assert [(entry.name, entry.wins) for entry in hall] == [("Ana", 1)]

    stored_absent = await storage.get_player(absent.id)
    assert stored_absent.warnings == 1
    assert stored_absent.daily_points == [0, 0, 0, 0]
    assert stored_absent.warned_absences == []

    stored_champion = await storage.get_player(champion.id)
    assert stored_champion.naval_defense_points == 0
    assert stored_champion.daily_points == [0, 0, 0, 0]

    backup = await storage.load_backup()
    assert {doc["id"] for doc in backup} == {champion.id, absent.id}
    assert all(doc["dailyPoints"] == [0, 0, 0, 0] for doc in backup)

    assert ctx.reply.messages[0].startswith("🚨")
    assert "*Ana*" in ctx.reply.messages[2]
    assert ctx.reply.messages[-1].startswith("✅ *Nova Guerra Iniciada!*")


async def test_reset_warnings(storage, warnings, add_player):
    first = await add_player("Ana", warnings=3)
    second = await add_player("Bruno", warnings=1)

    assert await WarLogic(storage, warnings).reset_warnings() == 2
    assert (await storage.get_player(first.id)).warnings == 0
    assert (await storage.get_player(second.id)).warnings == 0


async def test_restore_backup_replaces_roster(storage, warnings, add_player):
    logic = WarLogic(storage, warnings)
    assert await logic.restore_backup() is None

    kept = await add_player("Ana", member_id="7", warnings=2)
    await storage.save_backup()
    await storage.delete_player(kept.id)
    intruder = await add_player("Bruno")

    assert await logic.restore_backup() == 1

    players = await storage.get_all_players()
    assert [p.id for p in players] == [kept.id]
    assert players[0].warnings == 2
    assert await storage.get_player(intruder.id) is None


async def test_empty_backup_restores_nothing(storage, warnings, add_player):
    await storage.save_backup()
    survivor = await add_player("Ana")

    assert await WarLogic(storage, warnings).restore_backup() == 0
    assert await storage.get_player(survivor.id) is not None
