import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from models.receipt import ReceiptInput
from services import receipts_service
from tests.helpers.mongo_stub import FakeCollection

T0 = datetime(2024, 2, 1, 9, 0, tzinfo=timezone.utc)


def _doc(user_id, day, shop, amount, minutes):
    return {
        "_id": ObjectId(),
        "user_id": user_id,
        "date": day,
        "shop_name": shop,
        "amount": amount,
        "description": None,
        "created_at": T0 + timedelta(minutes=minutes),
    }


@pytest.fixture
def collection() -> FakeCollection:
    return FakeCollection(
        "receipts",
        [
            _doc("u1", "2024-02-01", "Bakery", 7.25, 5),
            _doc("u1", "2024-02-01", "Grocer", 12.5, 1),
            _doc("u1", "2024-02-15", "Books", 30.0, 2),
            _doc("u1", "2024-03-01", "Cafe", 3.0, 3),
            _doc("u2", "2024-02-01", "Other user", 99.0, 4),
        ],
    )


def test_fetch_day_orders_oldest_first_and_scopes_user(collection):
    receipts = asyncio.run(receipts_service.fetch_receipts_for_day(collection, "u1", "2024-02-01"))

    assert [r.shop_name for r in receipts] == ["Grocer", "Bakery"]
    assert all(r.id for r in receipts)


def test_fetch_day_descending(collection):
    receipts = asyncio.run(
        receipts_service.fetch_receipts_for_day(collection, "u1", "2024-02-01", ascending=False)
    )

    assert [r.shop_name for r in receipts] == ["Bakery", "Grocer"]


def test_fetch_month_uses_inclusive_range(collection):
    receipts = asyncio.run(
        receipts_service.fetch_receipts_for_month(collection, "u1", "2024-02-01", "2024-02-29")
    )

    assert sorted(r.shop_name for r in receipts) == ["Bakery", "Books", "Grocer"]


def test_fetch_skips_documents_that_do_not_validate(collection):
    collection.docs.append({"_id": ObjectId(), "user_id": "u1", "date": "2024-02-01", "created_at": T0})

    receipts = asyncio.run(receipts_service.fetch_receipts_for_day(collection, "u1", "2024-02-01"))

    assert len(receipts) == 2


def test_store_failure_becomes_connection_error(collection):
    collection.fail_with = RuntimeError("server selection timeout")

    with pytest.raises(ConnectionError):
        asyncio.run(receipts_service.fetch_receipts_for_day(collection, "u1", "2024-02-01"))


def test_insert_returns_receipt_with_id_and_timestamp(collection):
    fields = {"shop_name": "Deli", "amount": 4.5, "description": "lunch"}

    receipt = asyncio.run(receipts_service.insert_receipt(collection, "u1", "2024-02-02", fields))

    assert ObjectId.is_valid(receipt.id)
    assert receipt.created_at is not None
    assert receipt.date == "2024-02-02"
    stored = [d for d in collection.docs if str(d["_id"]) == receipt.id]
    assert stored and stored[0]["shop_name"] == "Deli"


def test_delete_only_matches_owner(collection):
    foreign_id = str(collection.docs[4]["_id"])
    own_id = str(collection.docs[0]["_id"])

    assert asyncio.run(receipts_service.delete_receipt(collection, "u1", "2024-02-01", foreign_id)) is False
    assert asyncio.run(receipts_service.delete_receipt(collection, "u1", "2024-02-01", own_id)) is True
    assert len(collection.docs) == 4


def test_delete_requires_matching_day(collection):
    own_id = str(collection.docs[0]["_id"])

    assert asyncio.run(receipts_service.delete_receipt(collection, "u1", "2024-02-02", own_id)) is False
    assert len(collection.docs) == 5


def test_delete_malformed_id_touches_nothing(collection):
    assert asyncio.run(receipts_service.delete_receipt(collection, "u1", "2024-02-01", "not-an-id")) is False
    assert "delete_one" not in collection.calls


@pytest.mark.parametrize(
    "form",
    [
        ReceiptInput(shop_name="", amount="3"),
        ReceiptInput(shop_name="   ", amount="3"),
        ReceiptInput(shop_name="Deli", amount=None),
        ReceiptInput(shop_name="Deli", amount=" "),
        ReceiptInput(shop_name="Deli", amount="-2"),
        ReceiptInput(shop_name="Deli", amount="1e30"),
        ReceiptInput(shop_name="Deli", amount=1e30),
        ReceiptInput(shop_name="Deli", amount="1000000000.01"),
    ],
)
def test_validate_rejects_incomplete_forms(form):
    assert receipts_service.validate_receipt_input(form) is None


def test_validate_treats_non_numeric_amount_as_zero():
    fields = receipts_service.validate_receipt_input(ReceiptInput(shop_name=" Deli ", amount="abc"))

    assert fields == {"shop_name": "Deli", "amount": 0.0, "description": None}


def test_validate_rounds_amount_to_cents():
    fields = receipts_service.validate_receipt_input(
        ReceiptInput(shop_name="Deli", amount="12.345", description=" soup ")
    )

    assert fields == {"shop_name": "Deli", "amount": 12.35, "description": "soup"}


def test_validate_keeps_leading_number():
    fields = receipts_service.validate_receipt_input(ReceiptInput(shop_name="Deli", amount="12abc"))

    assert fields["amount"] == 12.0


def test_oversized_stored_amount_is_skipped(collection):
    collection.docs.append(_doc("u1", "2024-02-01", "Broken", 1e30, 9))

    receipts = asyncio.run(receipts_service.fetch_receipts_for_day(collection, "u1", "2024-02-01"))

    assert [r.shop_name for r in receipts] == ["Grocer", "Bakery"]
