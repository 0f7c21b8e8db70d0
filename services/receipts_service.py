"""Service layer for reading and writing receipts in the record store."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorCollection # Type hint for collection
from pydantic import ValidationError

from models.receipt import Receipt, ReceiptInput
from utils.money import MAX_AMOUNT, leading_decimal, parse_amount

logger = logging.getLogger(__name__)

ASCENDING = 1
DESCENDING = -1

# --- Document helpers ---

def _receipt_from_doc(doc: Dict[str, Any]) -> Optional[Receipt]:
    """Converts a stored document into a Receipt, or None if it does not validate."""
    doc = dict(doc)
    if '_id' in doc: doc['id'] = str(doc.pop('_id'))
    try:
        return Receipt(**doc)
    except ValidationError as e:
        logger.error(f"Data validation error for receipt document ID {doc.get('id', 'N/A')}: {e}")
        return None

async def _collect(cursor) -> List[Receipt]:
    receipts = []
    async for doc in cursor:
        receipt = _receipt_from_doc(doc)
        if receipt is not None:
            receipts.append(receipt)
    return receipts

def validate_receipt_input(data: ReceiptInput) -> Optional[Dict[str, Any]]:
    """
    Checks the add-receipt form. Returns the fields to store, or None when the
    form should be ignored (missing shop name or amount, or an amount that is
    negative or above MAX_AMOUNT). A non-numeric amount is stored as 0.
    """
    shop_name = (data.shop_name or "").strip()
    raw_amount = data.amount
    if not shop_name or raw_amount is None or (isinstance(raw_amount, str) and not raw_amount.strip()):
        logger.info("Add-receipt form ignored: shop name and amount are required.")
        return None
    leading = leading_decimal(raw_amount)
    if leading is not None and leading > MAX_AMOUNT:
        logger.info(f"Add-receipt form ignored: amount {raw_amount!r} above {MAX_AMOUNT}.")
        return None
    amount = parse_amount(raw_amount)
    if amount < 0:
        logger.info(f"Add-receipt form ignored: negative amount {raw_amount!r}.")
        return None
    description = (data.description or "").strip() or None
    return {"shop_name": shop_name, "amount": float(amount), "description": description}

# --- Database Interaction Functions (Depend on collection passed from route) ---

async def fetch_receipts_for_day(
    collection: AsyncIOMotorCollection,
    user_id: str,
    day_key: str,
    ascending: bool = True,
) -> List[Receipt]:
    """Fetches one user's receipts for a single `YYYY-MM-DD` day, ordered by creation time."""
    order = ASCENDING if ascending else DESCENDING
    logger.info(f"Fetching receipts for user {user_id} on {day_key} ({'asc' if ascending else 'desc'})...")
    try:
        cursor = collection.find({"user_id": user_id, "date": day_key}).sort("created_at", order)
        receipts = await _collect(cursor)
    except Exception as e:
        logger.error(f"Database error fetching receipts for {day_key}: {e}")
        raise ConnectionError(f"Database error fetching receipts: {e}")
    logger.info(f"Fetched {len(receipts)} receipts for {day_key}.")
    return receipts

async def fetch_receipts_for_month(
    collection: AsyncIOMotorCollection,
    user_id: str,
    first_key: str,
    last_key: str,
) -> List[Receipt]:
    """Fetches one user's receipts whose date lies in `[first_key, last_key]`."""
    logger.info(f"Fetching receipts for user {user_id} between {first_key} and {last_key}...")
    try:
        cursor = collection.find(
            {"user_id": user_id, "date": {"$gte": first_key, "$lte": last_key}}
        ).sort("created_at", ASCENDING)
        receipts = await _collect(cursor)
    except Exception as e:
        logger.error(f"Database error fetching receipts for {first_key}..{last_key}: {e}")
        raise ConnectionError(f"Database error fetching receipts: {e}")
    logger.info(f"Fetched {len(receipts)} receipts for {first_key}..{last_key}.")
    return receipts

async def insert_receipt(
    collection: AsyncIOMotorCollection,
    user_id: str,
    day_key: str,
    fields: Dict[str, Any],
) -> Receipt:
    """Stores a validated receipt and returns it with its generated id and timestamp."""
    document = {
        "user_id": user_id,
        "date": day_key,
        "shop_name": fields["shop_name"],
        "amount": fields["amount"],
        "description": fields.get("description"),
        "created_at": datetime.now(timezone.utc),
    }
    receipt = Receipt(**document) # Validate before touching the store
    logger.info(f"Inserting receipt for user {user_id} on {day_key}: {receipt.shop_name} {receipt.amount}")
    try:
        result = await collection.insert_one(document)
    except Exception as e:
        logger.error(f"Database error inserting receipt: {e}")
        raise ConnectionError(f"Database error inserting receipt: {e}")
    receipt.id = str(result.inserted_id)
    logger.info(f"Inserted receipt {receipt.id}.")
    return receipt

async def delete_receipt(collection: AsyncIOMotorCollection, user_id: str, day_key: str, receipt_id: str) -> bool:
    """Deletes one of the user's receipts on `day_key`. Returns False if nothing matched."""
    try:
        object_id = ObjectId(receipt_id)
    except (InvalidId, TypeError):
        logger.warning(f"Refusing to delete receipt with malformed id {receipt_id!r}.")
        return False
    logger.warning(f"Deleting receipt {receipt_id} on {day_key} for user {user_id}.")
    try:
        result = await collection.delete_one({"_id": object_id, "user_id": user_id, "date": day_key})
    except Exception as e:
        logger.error(f"Database error deleting receipt {receipt_id}: {e}")
        raise ConnectionError(f"Database error deleting receipt: {e}")
    return result.deleted_count > 0
