"""Tests for the player and admin commands."""

from clan.messaging import Group, GroupMember

from conftest import THURSDAY_NOON


async def test_me_unregistered(build_router, chat):
    ctx = await chat(build_router(), "/me")
    assert ctx.reply.last.startswith("ℹ️ Você não está registrado.")


async def test_me_profile(build_router, chat, add_player):
    await add_player("Ana", member_id="100", daily_points=[980, 0, -1, 0], warnings=1, level_xp=30)

    ctx = await chat(build_router(), "/me")

    profile = ctx.reply.last
    assert profile.startswith("👤 *Status de Batalha: Ana*")
    assert " › Nível XP: 30" in profile
    assert " › Torre Rei: Não informado" in profile
    assert " › Quinta: ✅ (980 pts)" in profile
    assert " › Sexta: 🔴 (Não atacou)" in profile
    assert " › Sábado: ⚫ (Aguardando)" in profile
    assert "1/5 Advertências - *Requer Atenção*" in profile


async def test_me_other_player_by_mention_and_name(build_router, chat, add_player):
    await add_player("Mestre Yoda", member_id="42")
    router = build_router()

    by_mention = await chat(router, "/me <@42>")
    assert by_mention.reply.last.startswith("👤 *Status de Batalha: Mestre Yoda*")
    by_name = await chat(router, "/me mestre yoda")
    assert by_name.reply.last.startswith("👤 *Status de Batalha: Mestre Yoda*")
    unknown = await chat(router, "/me <@43>")
    assert unknown.reply.last == "❌ Esse membro não está registrado."


async def test_nome_refusals(build_router, chat, add_player):
    await add_player("Ana", member_id="100")
    router = build_router()

    again = await chat(router, "/nome Outra")
    assert again.reply.last.startswith("ℹ️ Você já está cadastrado como *Ana*!")
    taken = await chat(router, "/nome ANA", user_id="200")
    assert taken.reply.last == "❌ O nome *Ana* já está na lista!"
    empty = await chat(router, "/nome", user_id="200")
    assert empty.reply.last.startswith("Por favor, digite seu nome.")


async def test_cadastro_requires_registration(sessions, build_router, chat):
    ctx = await chat(build_router(), "/cadastro")
    assert ctx.reply.last.startswith("❌ Você não está cadastrado no sistema!")
    assert sessions.get("100") is None


async def test_self_rename(storage, build_router, chat, add_player):
    ana = await add_player("Ana", member_id="100")
    await add_player("Bruno", member_id="200")
    router = build_router()

    taken = await chat(router, "/edit bruno")
    assert taken.reply.last == "❌ O nome *Bruno* já está na lista!"
    done = await chat(router, "/edit Anna")
    assert done.reply.last == "✅ Seu nome foi alterado com sucesso para *Anna*."
    stored = await storage.get_player(ana.id)
    assert stored.name == "Anna"
    assert (await storage.find_player_by_lowercase_name("anna")).id == ana.id


async def test_member_cannot_rename_others(storage, build_router, chat, add_player):
    bruno = await add_player("Bruno")
    ctx = await chat(build_router(), "/edit Bruno para Beto")

    assert ctx.reply.last == "Formato incorreto para o comando /edit. Verifique o uso correto."
    assert (await storage.get_player(bruno.id)).name == "Bruno"


async def test_lembrete(build_router, chat, add_player):
    await add_player("bruno", daily_points=[900, 0, 0, 0], naval_defense_points=100)
    await add_player("Ana", daily_points=[0, 700, 0, 0])
    router = build_router()

    thursday = await chat(router, "/lembrete quinta")
    assert "🚨 *Jogadores com pontuação pendente para Quinta-feira:*" in thursday.reply.last
    assert "• Ana" in thursday.reply.last and "• bruno" not in thursday.reply.last

    naval = await chat(router, "/lembrete naval")
    assert "• Ana" in naval.reply.last and "• bruno" not in naval.reply.last

    friday = await chat(router, "/lembrete SEXTA")
    assert "• bruno" in friday.reply.last

    invalid = await chat(router, "/lembrete ontem")
    assert invalid.reply.last.startswith("Opção inválida.")
    usage = await chat(router, "/lembrete")
    assert usage.reply.last.startswith("Uso incorreto.")


async def test_lembrete_everyone_done(build_router, chat, add_player):
    await add_player("Ana", daily_points=[700, 0, 0, 0])
    ctx = await chat(build_router(), "/lembrete quinta")
    assert ctx.reply.last == "🎉 Todos já registraram os pontos para *Quinta-feira*!"


async def test_adv_groups_by_risk(build_router, chat, add_player):
    await add_player("Ana", warnings=3)
    await add_player("Bruno", warnings=2)
    await add_player("Carla", warnings=1)
    await add_player("Dani")

    text = (await chat(build_router(), "/adv")).reply.last

    assert "🚨 *RISCO MÁXIMO (3+ ADVs)* 🚨\n📌 Ana (3/5)" in text
    assert "🔥 *ZONA DE RISCO (2 ADVs)* 🔥\n📌 Bruno (2/5)" in text
    assert "⚠️ *1 Advertência*\n📌 Carla (1/5)" in text
    assert "Dani" not in text


async def test_ranking_and_hall_of_fame_when_empty(build_router, chat):
    router = build_router()
    assert (await chat(router, "/ranking")).reply.last == "Nenhum jogador na lista para criar um ranking."
    assert (await chat(router, "/campeoes")).reply.last.startswith("🏆 O Hall da Fama ainda está vazio.")


async def test_ranking_divisions(build_router, chat, add_player):
    await add_player("Ana", daily_points=[800, 800, 800, 800])
    await add_player("Bruno", daily_points=[500, 500, 500, 300])

    text = (await chat(build_router(), "/ranking")).reply.last

    assert "👑 *DIVISÃO DE ELITE (3000+)*\n• Ana: *3200 pts*" in text
    assert "⚠️ *ZONA DE ATENÇÃO (0+)*\n• Bruno: *1800 pts*" in text


async def test_punir_similar_name(storage, build_router, chat, add_player):
    yoda = await add_player("Mestre Yoda")

    ctx = await chat(build_router(), "/punir Mestre Yodo", user_id="1", is_admin=True)

    assert ctx.reply.messages[0].startswith("Aviso: O nome mais próximo encontrado foi *Mestre Yoda*.")
    assert (await storage.get_player(yoda.id)).warnings == 1


async def test_punir_unknown_name(build_router, chat, add_player):
    await add_player("Ana")
    ctx = await chat(build_router(), "/punir Zebedeu Silva", user_id="1", is_admin=True)
    assert ctx.reply.last == "❌ Jogador *Zebedeu Silva* não encontrado."


async def test_remover_reports_failed_groups(storage, messenger, build_router, chat, add_player):
    messenger.groups = [Group("g1", "Clã A"), Group("g2", "Clã B")]
    messenger.failing_groups = {"g2"}
    yoda = await add_player("Mestre Yoda", member_id="42")
    router = build_router()

    await chat(router, "/remover Mestre Yoda", user_id="1", is_admin=True)
    done = await chat(router, "sim", user_id="1", is_admin=True)

    assert done.reply.last.startswith("✅ Sucesso! *Mestre Yoda* foi removido da lista.")
    assert "- Clã B" in done.reply.last
    assert await storage.get_player(yoda.id) is None


async def test_verificar(messenger, build_router, chat, add_player):
    messenger.members = {"g1": [GroupMember("100", True), GroupMember("55")]}
    await add_player("Ana", member_id="100")
    await add_player("Bruno", member_id="77")

    await chat(build_router(), "/verificar", is_admin=True)

    channel, report, mentions = messenger.sent[-1]
    assert channel == "chan"
    assert "- <@55>" in report
    assert "- Bruno" in report
    assert "- Ana" not in report
    assert mentions == ["55"]


async def test_verificar_needs_group(build_router, chat):
    ctx = await chat(build_router(), "/verificar", is_admin=True, group_id=None)
    assert ctx.reply.last == "❌ Este comando só pode ser usado em um grupo."


async def test_resetar_advs(storage, build_router, chat, add_player):
    ana = await add_player("Ana", warnings=4)
    ctx = await chat(build_router(), "/resetar_advs", is_admin=True)

    assert ctx.reply.last == "✅ Todas as advertências foram zeradas com sucesso."
    assert (await storage.get_player(ana.id)).warnings == 0


async def test_nova_guerra_then_restore(storage, build_router, chat, add_player):
    ana = await add_player("Ana", daily_points=[900, 900, 900, 900])
    router = build_router(THURSDAY_NOON)

    await chat(router, "/nova_guerra", is_admin=True)
    await storage.update_player_fields(ana.id, {"dailyPoints": [1, 1, 1, 1]})
    ctx = await chat(router, "/restaurar_backup", is_admin=True)

    assert ctx.reply.last == "✅ Sucesso! A lista com os dados de *1* jogadores foi restaurada."
    assert (await storage.get_player(ana.id)).daily_points == [0, 0, 0, 0]
    assert (await chat(router, "/campeoes")).reply.last.endswith("*Ana* - 1 vitória")


async def test_restaurar_backup_without_backup(build_router, chat):
    ctx = await chat(build_router(), "/restaurar_backup", is_admin=True)
    assert ctx.reply.last == "❌ Nenhum backup encontrado para restaurar."
