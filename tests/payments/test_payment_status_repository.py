from datetime import datetime, timedelta, timezone

import pytest

from domain.payment.entity import PaymentStatus


@pytest.mark.asyncio
async def test_upsert_creates_then_updates(uow_factory):
    async with uow_factory() as uow:
        created = await uow.payment_status_repository.upsert_status("ORD-1", PaymentStatus.PENDING)
    assert created.status == PaymentStatus.PENDING
    assert created.numeric_id is None

    async with uow_factory() as uow:
        updated = await uow.payment_status_repository.upsert_status(
            "ORD-1", PaymentStatus.PAID, numeric_id="9001", identifier_id="idf-1"
        )
    assert updated.status == PaymentStatus.PAID
    assert updated.numeric_id == "9001"
    assert updated.identifier_id == "idf-1"
    assert updated.id == created.id


@pytest.mark.asyncio
async def test_upsert_never_nulls_known_ids(uow_factory):
    async with uow_factory() as uow:
        await uow.payment_status_repository.upsert_status(
            "ORD-1", PaymentStatus.PAID, numeric_id="9001", identifier_id="idf-1"
        )
    async with uow_factory() as uow:
        record = await uow.payment_status_repository.upsert_status("ORD-1", PaymentStatus.REFUNDED)
    assert record.status == PaymentStatus.REFUNDED
    assert record.numeric_id == "9001"
    assert record.identifier_id == "idf-1"


@pytest.mark.asyncio
async def test_correlation_id_is_kept_and_searchable(uow_factory):
    async with uow_factory() as uow:
        await uow.payment_status_repository.upsert_status("ORD-1", PaymentStatus.PENDING, correlation_id="corr-1")
    async with uow_factory() as uow:
        await uow.payment_status_repository.upsert_status("ORD-1", PaymentStatus.TIMEOUT)
    async with uow_factory(readonly=True) as uow:
        record = await uow.payment_status_repository.get_by_correlation_id("corr-1")
    assert record.order_id == "ORD-1"
    assert record.status == PaymentStatus.TIMEOUT
    assert record.correlation_id == "corr-1"


@pytest.mark.asyncio
async def test_upsert_is_idempotent(uow_factory):
    for _ in range(3):
        async with uow_factory() as uow:
            await uow.payment_status_repository.upsert_status("ORD-1", PaymentStatus.PAID, numeric_id="9001")
    async with uow_factory(readonly=True) as uow:
        by_order = await uow.payment_status_repository.get_by_order_id("ORD-1")
        by_numeric = await uow.payment_status_repository.get_by_numeric_id("9001")
        candidates = await uow.payment_status_repository.find_pending_without_numeric_id()
    assert by_order.status == PaymentStatus.PAID
    assert by_numeric.order_id == "ORD-1"
    assert candidates == []


@pytest.mark.asyncio
async def test_lookups_miss_return_none(uow_factory):
    async with uow_factory(readonly=True) as uow:
        assert await uow.payment_status_repository.get_by_order_id("missing") is None
        assert await uow.payment_status_repository.get_by_numeric_id("404") is None
        assert await uow.payment_status_repository.get_by_correlation_id("corr-x") is None


@pytest.mark.asyncio
async def test_find_pending_without_numeric_id_newest_first_and_bounded(uow_factory):
    async with uow_factory() as uow:
        repo = uow.payment_status_repository
        for i in range(7):
            await repo.upsert_status(f"ORD-{i}", PaymentStatus.PENDING)
        await repo.upsert_status("ORD-linked", PaymentStatus.PENDING, numeric_id="1")
        await repo.upsert_status("ORD-paid", PaymentStatus.PAID)

    async with uow_factory(readonly=True) as uow:
        rows = await uow.payment_status_repository.find_pending_without_numeric_id(limit=5)
    assert [r.order_id for r in rows] == ["ORD-6", "ORD-5", "ORD-4", "ORD-3", "ORD-2"]


@pytest.mark.asyncio
async def test_demote_pending_only_touches_pending_rows(uow_factory):
    async with uow_factory() as uow:
        repo = uow.payment_status_repository
        await repo.upsert_status("ORD-pending", PaymentStatus.PENDING)
        await repo.upsert_status("ORD-paid", PaymentStatus.PAID)

    async with uow_factory() as uow:
        repo = uow.payment_status_repository
        assert await repo.demote_pending("ORD-pending", PaymentStatus.TIMEOUT) is True
        assert await repo.demote_pending("ORD-paid", PaymentStatus.TIMEOUT) is False
        assert await repo.demote_pending("ORD-missing", PaymentStatus.TIMEOUT) is False

    async with uow_factory(readonly=True) as uow:
        repo = uow.payment_status_repository
        assert (await repo.get_by_order_id("ORD-pending")).status == PaymentStatus.TIMEOUT
        assert (await repo.get_by_order_id("ORD-paid")).status == PaymentStatus.PAID


@pytest.mark.asyncio
async def test_list_stale_pending(uow_factory):
    async with uow_factory() as uow:
        await uow.payment_status_repository.upsert_status("ORD-1", PaymentStatus.PENDING)
        await uow.payment_status_repository.upsert_status("ORD-2", PaymentStatus.PAID)

    future = datetime.now(timezone.utc) + timedelta(minutes=1)
    past = datetime.now(timezone.utc) - timedelta(minutes=1)
    async with uow_factory(readonly=True) as uow:
        stale = await uow.payment_status_repository.list_stale_pending(future)
        fresh = await uow.payment_status_repository.list_stale_pending(past)
    assert [r.order_id for r in stale] == ["ORD-1"]
    assert fresh == []
