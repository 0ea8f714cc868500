import pytest

from transconnect_core import MemoryStore, NotFoundError, ValidationError
from transconnect_core.history import HISTORY_KEY, TranslationHistory
from transconnect_core.preferences import THEME_KEY, ThemePreference


@pytest.mark.asyncio
async def test_entries_are_newest_first(clock):
    history = TranslationHistory(MemoryStore(), clock=clock)

    first = await history.add("Hello", "Hola", "en", "es", user_id="1")
    clock.advance(minutes=1)
    second = await history.add("Thanks", "Gracias", "en", "es", "voice", user_id="1")

    entries = await history.list_entries("1")
    assert [entry.id for entry in entries] == [second.id, first.id]
    assert entries[0].timestamp > entries[1].timestamp


@pytest.mark.asyncio
async def test_filters_by_user_type_and_query(clock):
    history = TranslationHistory(MemoryStore(), clock=clock)
    await history.add("Good morning", "Buenos días", "en", "es", "text", user_id="1")
    await history.add("Good night", "Bonne nuit", "en", "fr", "voice", user_id="1")
    await history.add("Good night", "Gute Nacht", "en", "de", "text", user_id="2")
    guest = await history.add("Hi", "Hola", "en", "es")

    assert len(await history.list_entries()) == 4
    assert len(await history.list_entries("1")) == 2
    assert [e.translated for e in await history.list_entries("1", "voice")] == ["Bonne nuit"]
    assert len(await history.list_entries("1", "all")) == 2
    assert [e.translated for e in await history.list_entries(query="NACHT")] == ["Gute Nacht"]
    assert guest.user_id == "guest"


@pytest.mark.asyncio
async def test_rejects_unknown_type(clock):
    history = TranslationHistory(MemoryStore(), clock=clock)

    with pytest.raises(ValidationError):
        await history.add("a", "b", "en", "es", "video")


@pytest.mark.asyncio
async def test_delete_and_clear(clock):
    store = MemoryStore()
    history = TranslationHistory(store, clock=clock)
    mine = await history.add("One", "Uno", "en", "es", user_id="1")
    await history.add("Two", "Dos", "en", "es", user_id="1")
    await history.add("Three", "Tres", "en", "es", user_id="2")

    await history.delete(mine.id)
    with pytest.raises(NotFoundError):
        await history.delete(mine.id)

    await history.clear("1")
    assert [e.user_id for e in await history.list_entries()] == ["2"]

    await history.clear()
    assert await store.get(HISTORY_KEY) is None


@pytest.mark.asyncio
async def test_reads_entries_written_by_the_mobile_app():
    store = MemoryStore(
        {
            HISTORY_KEY: [
                {
                    "id": "1",
                    "original": "Hello",
                    "translated": "Hola",
                    "fromLang": "English",
                    "toLang": "Spanish",
                    "timestamp": "2024-05-01T10:00:00.000Z",
                    "type": "text",
                }
            ]
        }
    )
    history = TranslationHistory(store)

    [entry] = await history.list_entries()

    assert entry.user_id == "guest"
    assert entry.source_language == "English"
    assert entry.target_language == "Spanish"


@pytest.mark.asyncio
async def test_theme_preference():
    store = MemoryStore({THEME_KEY: "sepia"})
    theme = ThemePreference(store)

    assert await theme.get() == "light"
    assert await theme.toggle() == "dark"
    assert await theme.get() == "dark"
    assert await theme.toggle() == "light"
    with pytest.raises(ValidationError):
        await theme.set("sepia")


@pytest.mark.asyncio
async def test_delete_scoped_to_owner(clock):
    history = TranslationHistory(MemoryStore(), clock=clock)
    entry = await history.add("One", "Uno", "en", "es", user_id="1")

    with pytest.raises(NotFoundError):
        await history.delete(entry.id, user_id="2")
    await history.delete(entry.id, user_id="1")

    assert await history.list_entries() == []
