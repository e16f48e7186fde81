"""Tests for the document storage layer."""

import pytest

from clan.models import Player
from clan.storage import HALL_OF_FAME, PLAYERS, PlayerStorage, StorageError


async def test_add_and_find_player(storage, add_player):
    added = await add_player("Mestre Yoda", member_id="42", level_xp=30)

    assert added.id
    assert added.registered_at is not None
    by_member = await storage.find_player_by_member("42")
    by_name = await storage.find_player_by_lowercase_name("MESTRE YODA")
    assert by_member.id == added.id
    assert by_name.id == added.id
    assert by_member.level_xp == 30
    assert by_member.king_tower is None

    document = await storage.get_document(PLAYERS, added.id)
    assert document["name_lowercase"] == "mestre yoda"
    assert document["sanitizedName"] == "mestreyoda"
    assert "kingTower" not in document


async def test_get_all_players_orders_by_lowercase_name(storage, add_player):
    for name in ("carla", "Bruno", "ana"):
        await add_player(name)
    players = await storage.get_all_players()
    assert [player.name for player in players] == ["ana", "Bruno", "carla"]


async def test_update_fields_refreshes_name_keys(storage, add_player):
    player = await add_player("Yado")
    assert await storage.update_player_fields(player.id, {"name": "Yoda", "trophies": 5000})

    document = await storage.get_document(PLAYERS, player.id)
    assert document["name_lowercase"] == "yoda"
    assert document["sanitizedName"] == "yoda"
    assert document["trophies"] == 5000
    assert await storage.update_player_fields("missing", {"warnings": 1}) is False


async def test_set_daily_points_and_warned_absences(storage, add_player):
    player = await add_player("Ana", daily_points=[-1, 0, 0, 0])

    assert await storage.set_daily_points(player.id, 2, 980)
    await storage.add_warned_absence(player.id, 1)
    await storage.add_warned_absence(player.id, 1)
    await storage.add_warned_absence(player.id, 0)

    stored = await storage.get_player(player.id)
    assert stored.daily_points == [-1, 0, 980, 0]
    assert stored.warned_absences == [0, 1]
    assert stored.total_war_points == 980


async def test_missing_fields_are_tolerated(storage):
    batch = storage.batch()
    batch.set(PLAYERS, "legacy", {"name": "Antigo", "name_lowercase": "antigo"})
    await batch.commit()

    player = await storage.get_player("legacy")
    assert player.daily_points == [-1, -1, -1, -1]
    assert player.warnings == 0
    assert player.warned_absences == []


async def test_batch_is_atomic(storage, add_player):
    player = await add_player("Ana")
    batch = storage.batch()
    batch.update(PLAYERS, player.id, {"warnings": 3})
    batch.update(PLAYERS, "missing", {"warnings": 1})

    with pytest.raises(StorageError) as excinfo:
        await batch.commit()

    assert excinfo.value.during_write
    assert (await storage.get_player(player.id)).warnings == 0


async def test_increment_creates_and_counts(storage):
    await storage.increment_field(HALL_OF_FAME, "Ana", "wins", defaults={"name": "Ana", "wins": 0})
    await storage.increment_field(HALL_OF_FAME, "Ana", "wins", defaults={"name": "Ana", "wins": 0})
    await storage.increment_field(HALL_OF_FAME, "Bruno", "wins", defaults={"name": "Bruno", "wins": 0})

    entries = await storage.get_hall_of_fame()
    assert [(entry.name, entry.wins) for entry in entries] == [("Ana", 2), ("Bruno", 1)]


async def test_delete_player(storage, add_player):
    player = await add_player("Ana")
    await storage.delete_player(player.id)
    assert await storage.get_player(player.id) is None


async def test_backup_roundtrip_keeps_ids(storage, add_player):
    assert await storage.load_backup() is None

    player = await add_player("Ana", member_id="7")
    await storage.save_backup()

    backup = await storage.load_backup()
    assert len(backup) == 1
    assert backup[0]["id"] == player.id
    assert backup[0]["memberId"] == "7"


async def test_read_failure_is_not_a_write(tmp_path):
    broken = PlayerStorage(str(tmp_path / "clan.db"))
    # no initialize(): the documents table does not exist
    with pytest.raises(StorageError) as excinfo:
        await broken.get_player("anything")
    assert not excinfo.value.during_write

    with pytest.raises(StorageError) as excinfo:
        await broken.add_player(Player(id="", name="Ana"))
    assert excinfo.value.during_write
