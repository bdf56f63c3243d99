"""Tests for the in-memory and SQL catalog stores."""
import uuid

import pytest
import pytest_asyncio

from scentbase.db.database import create_engine, create_session_maker, create_tables
from scentbase.schemas.perfume import Accord, Gender, Notes
from scentbase.services.catalog_store import (
    InMemoryCatalogStore,
    SqlCatalogStore,
    create_catalog_store,
)

URL = "https://www.fragrantica.com/perfume/Dior/Sauvage-31861.html"


@pytest_asyncio.fixture(params=["memory", "sql"])
async def any_store(request, tmp_path):
    """Each store test runs against both implementations."""
    if request.param == "memory":
        yield InMemoryCatalogStore()
        return

    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    await create_tables(engine)
    try:
        yield SqlCatalogStore(create_session_maker(engine))
    finally:
        await engine.dispose()


def _full_record(make_record):
    return make_record(
        URL,
        year=2015,
        perfumer="Francois Demachy",
        gender=Gender.MASCULINE,
        concentration="Eau de Toilette",
        notes=Notes(top=["Bergamot"], heart=["Lavender"], base=["Ambroxan"]),
        accords=[Accord(name="fresh spicy", percentage=100, color="#fff")],
        rating=4.2,
    )


@pytest.mark.asyncio
async def test_add_and_get(any_store, make_record):
    record = _full_record(make_record)

    saved = await any_store.add(record)
    loaded = await any_store.get_by_id(saved.id)

    assert loaded.id == record.id
    assert loaded.name == "Sauvage"
    assert loaded.gender == Gender.MASCULINE
    assert loaded.notes.heart == ["Lavender"]
    assert loaded.accords[0].name == "fresh spicy"
    assert loaded.rating == 4.2


@pytest.mark.asyncio
async def test_get_accepts_string_id(any_store, make_record):
    saved = await any_store.add(make_record(URL))
    assert (await any_store.get_by_id(str(saved.id))).id == saved.id


@pytest.mark.asyncio
async def test_get_unknown_or_malformed_id(any_store):
    assert await any_store.get_by_id(uuid.uuid4()) is None
    assert await any_store.get_by_id("not-a-uuid") is None


@pytest.mark.asyncio
async def test_update_merges_known_fields(any_store, make_record):
    saved = await any_store.add(_full_record(make_record))

    updated = await any_store.update(saved.id, {
        "name": "Sauvage Elixir",
        "notes": {"top": ["Cinnamon"], "heart": [], "base": []},
        "id": uuid.uuid4(),
        "unknown_field": "ignored",
    })

    assert updated.id == saved.id
    assert updated.name == "Sauvage Elixir"
    assert updated.notes.top == ["Cinnamon"]
    assert updated.brand == "Dior"
    assert (await any_store.get_by_id(saved.id)).name == "Sauvage Elixir"


@pytest.mark.asyncio
async def test_update_unknown_returns_none(any_store):
    assert await any_store.update(uuid.uuid4(), {"name": "x"}) is None


@pytest.mark.asyncio
async def test_delete(any_store, make_record):
    saved = await any_store.add(make_record(URL))
    assert await any_store.delete(saved.id) is True
    assert await any_store.delete(saved.id) is False
    assert await any_store.get_by_id(saved.id) is None


@pytest.mark.asyncio
async def test_get_all_source_urls(any_store, make_record):
    await any_store.add(make_record(URL))
    await any_store.add(make_record("https://www.fragrantica.com/perfume/Chanel/No-5-40069.html"))
    await any_store.add(make_record(""))

    urls = await any_store.get_all_source_urls()

    assert sorted(urls) == sorted([URL, "https://www.fragrantica.com/perfume/Chanel/No-5-40069.html"])


@pytest.mark.asyncio
async def test_memory_store_returns_copies(make_record):
    store = InMemoryCatalogStore()
    saved = await store.add(make_record(URL))
    saved.name = "Mutated"
    assert (await store.get_by_id(saved.id)).name == "Sauvage"


def test_create_catalog_store_falls_back_to_memory():
    assert isinstance(create_catalog_store(None), InMemoryCatalogStore)
