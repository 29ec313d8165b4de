"""
MongoDB persistence for accounts, catalog images and orders.

Collection names and camelCase field names match the documents the storefront
has always written, so existing data stays readable.
"""
import logging
from typing import Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import ASCENDING

logger = logging.getLogger(__name__)

WITHOUT_PASSWORD = {"password": 0}


class AccountRepository:
    """Users and admins share one document shape in separate collections."""

    def __init__(self, collection):
        self.collection = collection

    def find_by_email(self, email: str, include_password: bool = False) -> Optional[Dict]:
        projection = None if include_password else WITHOUT_PASSWORD
        return self.collection.find_one({"email": email}, projection)

    def find_by_id(self, account_id: ObjectId) -> Optional[Dict]:
        return self.collection.find_one({"_id": account_id}, WITHOUT_PASSWORD)

    def find_by_ids(self, account_ids: Iterable[ObjectId], fields: Iterable[str]) -> Dict[ObjectId, Dict]:
        projection = {field: 1 for field in fields}
        cursor = self.collection.find({"_id": {"$in": list(account_ids)}}, projection)
        return {document["_id"]: document for document in cursor}

    def email_taken(self, email: str) -> bool:
        return self.collection.find_one({"email": email}, {"_id": 1}) is not None

    def create(self, document: Dict) -> ObjectId:
        return self.collection.insert_one(document).inserted_id

    def list_all(self) -> List[Dict]:
        return list(self.collection.find({}, WITHOUT_PASSWORD))


class ImageRepository:
    def __init__(self, collection):
        self.collection = collection

    def create(self, url: str, name: str, price: float, description: str = "") -> Dict:
        document = {
            "url": url,
            "name": name,
            "price": price,
            "description": description or "",
        }
        document["_id"] = self.collection.insert_one(document).inserted_id
        return document

    def list_all(self) -> List[Dict]:
        return list(self.collection.find())

    def find_by_id(self, image_id: ObjectId) -> Optional[Dict]:
        return self.collection.find_one({"_id": image_id})

    def find_by_ids(self, image_ids: Iterable[ObjectId], fields: Optional[Iterable[str]] = None) -> Dict[ObjectId, Dict]:
        projection = {field: 1 for field in fields} if fields else None
        cursor = self.collection.find({"_id": {"$in": list(image_ids)}}, projection)
        return {document["_id"]: document for document in cursor}

    def count_existing(self, image_ids: Iterable[ObjectId]) -> int:
        return self.collection.count_documents({"_id": {"$in": list(image_ids)}})

    def delete(self, image_id: ObjectId) -> bool:
        return self.collection.delete_one({"_id": image_id}).deleted_count == 1


class OrderRepository:
    def __init__(self, collection):
        self.collection = collection

    def create(self, document: Dict) -> Dict:
        document = dict(document)
        document["_id"] = self.collection.insert_one(document).inserted_id
        return document

    def list_all(self) -> List[Dict]:
        return list(self.collection.find())

    def find_by_id(self, order_id: ObjectId) -> Optional[Dict]:
        return self.collection.find_one({"_id": order_id})


class Datastore:
    def __init__(self, db):
        self.db = db
        self.users = AccountRepository(db.users)
        self.admins = AccountRepository(db.admins)
        self.images = ImageRepository(db.images)
        self.orders = OrderRepository(db.orders)

    def ensure_indexes(self) -> None:
        for repository in (self.users, self.admins):
            try:
                repository.collection.create_index([("email", ASCENDING)], unique=True)
            except Exception as exc:
                logger.warning(
                    "Unable to ensure unique email index on %s: %s",
                    repository.collection.name,
                    exc,
                )
