"""Tests for fuzzy name resolution."""

from clan.models import Player, ResolveStatus
from clan.names import levenshtein, resolve, resolve_or_prompt, sanitize_name
from clan.sessions import ConversationStep


def roster(*names):
    return [Player(id=str(index), name=name) for index, name in enumerate(names, 1)]


def test_sanitize_folds_stylized_letters():
    assert sanitize_name("ᴍᴇsᴛʀᴇ Yoda!") == "mestreyoda"
    assert sanitize_name("Ana_2!") == "ana2"
    assert sanitize_name(None) == ""


def test_levenshtein():
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("", "abc") == 3
    assert levenshtein("yoda", "yoda") == 0


def test_empty_roster():
    assert resolve("Ana", []).status == ResolveStatus.EMPTY_LIST


def test_exact_match_ignores_case_and_symbols():
    result = resolve("mestre-yoda", roster("Mestre Yoda", "Darth Vader", "Luke"))
    assert result.status == ResolveStatus.EXACT
    assert result.player.name == "Mestre Yoda"
    assert result.distance == 0


def test_similar_match():
    result = resolve("Mestre Yodo", roster("Mestre Yoda", "Darth Vader", "Luke"))
    assert result.status == ResolveStatus.SIMILAR
    assert result.player.name == "Mestre Yoda"
    assert result.found


def test_two_close_names_are_ambiguous():
    result = resolve("ana", roster("Ana", "Ane", "Bruno"))
    assert result.status == ResolveStatus.AMBIGUOUS
    assert [player.name for player in result.suggestions] == ["Ana", "Ane"]
    assert not result.found


def test_duplicate_names_are_ambiguous():
    result = resolve("Ana", roster("Ana", "ana"))
    assert result.status == ResolveStatus.AMBIGUOUS
    assert len(result.suggestions) == 2


def test_not_found_with_suggestions():
    result = resolve("Mestre Yxxxx", roster("Mestre Yoda", "Darth Vader"))
    assert result.status == ResolveStatus.NOT_FOUND
    assert [player.name for player in result.suggestions] == ["Mestre Yoda"]


def test_not_found_without_suggestions():
    result = resolve("Zebedeu Silva", roster("Luke", "Leia"))
    assert result.status == ResolveStatus.NOT_FOUND
    assert result.suggestions == []


async def test_resolve_or_prompt_empty_list(storage, sessions, make_ctx):
    ctx = make_ctx("/punir Ana", is_admin=True)
    assert await resolve_or_prompt(ctx, storage, sessions, "Ana", ConversationStep.AMBIGUOUS_PUNISH) is None
    assert ctx.reply.last == "A lista de jogadores está vazia."
    assert sessions.get(ctx.user_id) is None


async def test_resolve_or_prompt_opens_choice(storage, sessions, make_ctx, add_player):
    await add_player("Ana")
    await add_player("Ane")
    ctx = make_ctx("/edit ana para Anna", is_admin=True)

    result = await resolve_or_prompt(
        ctx, storage, sessions, "ana", ConversationStep.AMBIGUOUS_EDIT, new_name="Anna",
    )

    assert result is None
    state = sessions.get(ctx.user_id)
    assert state.step == ConversationStep.AMBIGUOUS_EDIT
    assert state.new_name == "Anna"
    assert state.is_admin
    assert [player.name for player in state.suggestions] == ["Ana", "Ane"]
    assert "1 - Ana\n2 - Ane" in ctx.reply.last


async def test_resolve_or_prompt_returns_found(storage, sessions, make_ctx, add_player):
    await add_player("Mestre Yoda")
    ctx = make_ctx("/punir yoda mestre", is_admin=True)
    result = await resolve_or_prompt(ctx, storage, sessions, "Mestre Yoda", ConversationStep.AMBIGUOUS_PUNISH)
    assert result.status == ResolveStatus.EXACT
    assert ctx.reply.messages == []
