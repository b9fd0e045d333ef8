import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from stockbridge.core.enums import MovementReason
from stockbridge.core.exceptions import SkuNotFoundError, StockStorageError
from stockbridge.models import StockLedgerEntry


async def ledger_rows(session_factory, sku):
    async with session_factory() as session:
        result = await session.execute(
            select(StockLedgerEntry).where(StockLedgerEntry.sku == sku).order_by(StockLedgerEntry.id)
        )
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_apply_movement_updates_stock_and_appends_entry(ledger, seed, session_factory):
    await seed.sku("ABC-1", stock=10)

    result = await ledger.apply_movement("ABC-1", 7, MovementReason.SALE_ML, "order_id:123")

    assert result.duplicate is False
    assert result.delta == -3
    assert result.sku.stock == 7

    rows = await ledger_rows(session_factory, "ABC-1")
    assert [(r.delta, r.reason, r.ref) for r in rows] == [(-3, "sale_ml", "order_id:123")]
    assert (await ledger.get_sku("ABC-1")).stock == 7


@pytest.mark.asyncio
async def test_apply_movement_same_key_is_reported_as_duplicate(ledger, seed, session_factory):
    await seed.sku("ABC-1", stock=10)
    await ledger.apply_movement("ABC-1", 7, "sale_ml", "order_id:123")

    result = await ledger.apply_movement("ABC-1", 4, "sale_ml", "order_id:123")

    assert result.duplicate is True
    assert result.delta == 0
    assert result.sku.stock == 7
    assert len(await ledger_rows(session_factory, "ABC-1")) == 1


@pytest.mark.asyncio
async def test_same_ref_with_other_reason_is_a_new_movement(ledger, seed):
    await seed.sku("ABC-1", stock=10)
    await ledger.apply_movement("ABC-1", 9, "sale_ml", "order_id:1")

    result = await ledger.apply_movement("ABC-1", 8, "sale_tn", "order_id:1")

    assert result.duplicate is False
    assert result.sku.stock == 8


@pytest.mark.asyncio
async def test_movements_without_ref_are_never_deduplicated(ledger, seed, session_factory):
    await seed.sku("ABC-1", stock=10)

    first = await ledger.apply_movement("ABC-1", 5, "manual_update")
    second = await ledger.apply_movement("ABC-1", 5, "manual_update")

    assert not first.duplicate and not second.duplicate
    assert [r.delta for r in await ledger_rows(session_factory, "ABC-1")] == [-5, 0]


@pytest.mark.asyncio
async def test_apply_movement_unknown_sku_writes_nothing(ledger, session_factory):
    with pytest.raises(SkuNotFoundError):
        await ledger.apply_movement("NOPE", 3, "manual_update")

    async with session_factory() as session:
        assert await session.scalar(select(func.count()).select_from(StockLedgerEntry)) == 0


@pytest.mark.asyncio
async def test_negative_stock_is_rejected_by_the_database(ledger, seed, session_factory):
    await seed.sku("ABC-1", stock=2)

    with pytest.raises(StockStorageError):
        await ledger.apply_movement("ABC-1", -1, "manual_update")

    assert (await ledger.get_sku("ABC-1")).stock == 2
    assert await ledger_rows(session_factory, "ABC-1") == []


@pytest.mark.asyncio
async def test_has_movement(ledger, seed):
    await seed.sku("ABC-1", stock=10)
    await ledger.apply_movement("ABC-1", 9, "sale_tn", "order_id:9")

    assert await ledger.has_movement("ABC-1", "sale_tn", "order_id:9") is True
    assert await ledger.has_movement("ABC-1", "sale_ml", "order_id:9") is False
    assert await ledger.has_movement("ABC-1", "manual_update", None) is False


@pytest.mark.asyncio
async def test_has_movement_lookup_failure_defers_to_constraint(ledger, mocker):
    ledger.session_factory = mocker.MagicMock(
        side_effect=OperationalError("SELECT 1", {}, Exception("connection lost"))
    )

    assert await ledger.has_movement("ABC-1", "sale_ml", "order_id:1") is False


@pytest.mark.asyncio
async def test_sources_listing(ledger, seed):
    await seed.sku("BOTH", stock=1)
    await seed.sku("ML-ONLY", stock=2)
    await seed.sku("NONE", stock=3)
    await seed.ml_item("MLA1", "BOTH")
    await seed.tn_item(10, 11, "BOTH")
    await seed.ml_item("MLA2", "ML-ONLY")

    with_sources = {row["sku"]: row for row in await ledger.list_skus_with_sources()}
    assert (with_sources["BOTH"]["has_ml"], with_sources["BOTH"]["has_tn"]) == (True, True)
    assert (with_sources["ML-ONLY"]["has_ml"], with_sources["ML-ONLY"]["has_tn"]) == (True, False)
    assert (with_sources["NONE"]["has_ml"], with_sources["NONE"]["has_tn"]) == (False, False)

    linked = await ledger.list_linked_skus()
    assert [row["sku"] for row in linked] == ["BOTH"]

    assert {record.sku for record in await ledger.list_skus()} == {"BOTH", "ML-ONLY", "NONE"}


@pytest.mark.asyncio
async def test_list_movements_newest_first(ledger, seed):
    await seed.sku("ABC-1", stock=10)
    await ledger.apply_movement("ABC-1", 8, "sale_ml", "order_id:1")
    await ledger.apply_movement("ABC-1", 12, "manual_update")

    movements = await ledger.list_movements("ABC-1")

    assert [(m.delta, m.reason) for m in movements] == [(4, "manual_update"), (-2, "sale_ml")]
    assert len(await ledger.list_movements("ABC-1", limit=1)) == 1


@pytest.mark.asyncio
async def test_get_sku_missing(ledger):
    assert await ledger.get_sku("missing") is None
