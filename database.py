"""MongoDB access: connection, serialization helpers and collection stores.

Each store wraps one collection and speaks plain dicts with a string `id`
in place of the BSON `_id`. Lookups of missing documents raise
`NotFoundError`; identifiers that aren't ObjectIds raise `ValidationError`.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import config
from errors import DuplicateEmailError, InsufficientStockError, NotFoundError, ValidationError
from schemas import OrderStatus, User, utcnow

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None


def get_db() -> Database:
    """FastAPI dependency returning the configured database."""
    global _client
    if _client is None:
        _client = MongoClient(config.MONGODB_URI)
        logger.info("MongoDB client created for database %s", config.DATABASE_NAME)
    return _client[config.DATABASE_NAME]


def ensure_indexes(db: Database) -> None:
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["order"].create_index([("user_id", ASCENDING)])
    db["order"].create_index([("stripe_payment_id", ASCENDING)])


def to_object_id(value: str, kind: str = "document") -> ObjectId:
    if not ObjectId.is_valid(value):
        raise ValidationError(f"Invalid {kind.lower()} id")
    return ObjectId(value)


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.get("_id")
    if isinstance(_id, ObjectId):
        doc["id"] = str(_id)
        del doc["_id"]
    # Convert ObjectId in nested fields if any
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc


class DocumentStore:
    """CRUD over a single collection."""

    kind = "Document"
    collection_name = ""
    page_size = 100

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[self.collection_name]

    def create(self, document: Dict[str, Any]) -> str:
        result = self.collection.insert_one(dict(document))
        return str(result.inserted_id)

    def find_by_id(self, doc_id: str) -> Dict[str, Any]:
        doc = self.collection.find_one({"_id": to_object_id(doc_id, self.kind)})
        if not doc:
            raise NotFoundError(self.kind, doc_id)
        return serialize_doc(doc)

    def find_all(self, query: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        cursor = self.collection.find(query or {}).limit(self.page_size)
        return [serialize_doc(d) for d in cursor]

    def update(self, doc_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        obj_id = to_object_id(doc_id, self.kind)
        if fields:
            res = self.collection.update_one({"_id": obj_id}, {"$set": fields})
            if res.matched_count == 0:
                raise NotFoundError(self.kind, doc_id)
        return self.find_by_id(doc_id)


class CatalogStore(DocumentStore):
    kind = "Product"
    collection_name = "product"
    page_size = config.PRODUCT_PAGE_SIZE

    def reserve_stock(self, product_id: str, quantity: int) -> None:
        """Decrement stock by `quantity` only if enough is left."""
        obj_id = to_object_id(product_id, self.kind)
        res = self.collection.update_one(
            {"_id": obj_id, "stock": {"$gte": quantity}},
            {"$inc": {"stock": -quantity}},
        )
        if res.matched_count == 0:
            if self.collection.count_documents({"_id": obj_id}) == 0:
                raise NotFoundError(self.kind, product_id)
            raise InsufficientStockError(product_id, quantity)

    def release_stock(self, product_id: str, quantity: int) -> None:
        self.collection.update_one(
            {"_id": to_object_id(product_id, self.kind)},
            {"$inc": {"stock": quantity}},
        )

    def add_review(self, product_id: str, review: Dict[str, Any]) -> Dict[str, Any]:
        obj_id = to_object_id(product_id, self.kind)
        res = self.collection.update_one({"_id": obj_id}, {"$push": {"reviews": review}})
        if res.matched_count == 0:
            raise NotFoundError(self.kind, product_id)
        product = self.find_by_id(product_id)
        ratings = [r["rating"] for r in product.get("reviews", [])]
        rating = round(sum(ratings) / len(ratings), 2)
        return self.update(product_id, {"rating": rating})


class AccountStore(DocumentStore):
    kind = "User"
    collection_name = "user"

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        user = self.collection.find_one({"email": email.lower()})
        return serialize_doc(user) if user else None

    def create_user(self, user: User) -> str:
        if self.find_by_email(user.email):
            raise DuplicateEmailError(user.email)
        document = user.model_dump()
        document["email"] = document["email"].lower()
        try:
            return self.create(document)
        except DuplicateKeyError:
            raise DuplicateEmailError(user.email)

    def save_cart(self, user_id: str, cart: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        # Whole-document overwrite; concurrent writers race and the last one wins.
        cart = list(cart)
        res = self.collection.update_one(
            {"_id": to_object_id(user_id, self.kind)},
            {"$set": {"cart": cart}},
        )
        if res.matched_count == 0:
            raise NotFoundError(self.kind, user_id)
        return cart

    def record_order(self, email: str, order_id: str) -> bool:
        """Link an order to the account with `email` and empty its cart."""
        res = self.collection.update_one(
            {"email": email.lower()},
            {"$push": {"orders": order_id}, "$set": {"cart": []}},
        )
        return res.matched_count > 0


OPEN_STATUSES = [OrderStatus.PENDING.value, OrderStatus.PROCESSING.value]


class OrderStore(DocumentStore):
    kind = "Order"
    collection_name = "order"
    page_size = config.ORDER_PAGE_SIZE

    def find_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return self.find_all({"user_id": user_id.lower()})

    def find_by_payment_reference(self, reference: str) -> Optional[Dict[str, Any]]:
        order = self.collection.find_one({"stripe_payment_id": reference})
        return serialize_doc(order) if order else None

    def transition(self, reference: str, status: OrderStatus) -> Optional[Dict[str, Any]]:
        """Move an open order to `status`; returns None when nothing changed."""
        res = self.collection.update_one(
            {"stripe_payment_id": reference, "status": {"$in": OPEN_STATUSES}},
            {"$set": {"status": status.value, "updated_at": utcnow()}},
        )
        if res.modified_count == 0:
            return None
        return self.find_by_payment_reference(reference)
