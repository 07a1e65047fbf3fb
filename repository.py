import logging
from contextlib import contextmanager
from typing import Optional, Any, Dict, List

from pymongo import ASCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from database import ACCOUNT_COLLECTION, POST_COLLECTION, create_document, get_documents, oid
from errors import DuplicateIdentity, InternalError
from schemas import POST_STATUSES, ROLE_CANTEEN, ROLE_NGO, STATUS_EXPIRED, STATUS_OPEN, utcnow

logger = logging.getLogger(__name__)


@contextmanager
def storage_errors(action: str):
    """Surface driver failures as an opaque InternalError."""
    try:
        yield
    except PyMongoError:
        logger.error(f"Storage failure during {action}", exc_info=True)
        raise InternalError(f"Server error during {action}")


class PostRepository:
    """Storage for the "post" collection."""

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[POST_COLLECTION]

    def create(self, record: Dict[str, Any]) -> str:
        with storage_errors("post creation"):
            return create_document(self.db, POST_COLLECTION, record)

    def get_by_id(self, post_id: str) -> Optional[Dict[str, Any]]:
        _id = oid(post_id)
        if _id is None:
            return None
        with storage_errors("post lookup"):
            return self.collection.find_one({"_id": _id})

    def list(self, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        with storage_errors("post listing"):
            return get_documents(self.db, POST_COLLECTION, query, sort=[("ready_by", ASCENDING)])

    def update(
        self,
        post_id: str,
        patch: Dict[str, Any],
        precondition: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Apply patch as one conditional write.

        Returns the updated document, or None when no document matched
        the id together with the precondition.
        """
        _id = oid(post_id)
        if _id is None:
            return None
        filt = {"_id": _id}
        filt.update(precondition or {})
        update = dict(patch)
        update["updated_at"] = utcnow()
        with storage_errors("post update"):
            return self.collection.find_one_and_update(
                filt, {"$set": update}, return_document=ReturnDocument.AFTER
            )

    def delete(self, post_id: str) -> bool:
        _id = oid(post_id)
        if _id is None:
            return False
        with storage_errors("post deletion"):
            res = self.collection.delete_one({"_id": _id})
        return res.deleted_count > 0

    def expire_overdue(self, now) -> int:
        with storage_errors("expiry sweep"):
            res = self.collection.update_many(
                {"status": STATUS_OPEN, "ready_by": {"$lt": now}},
                {"$set": {"status": STATUS_EXPIRED, "updated_at": now}},
            )
        return res.modified_count

    def count_by_status(self) -> Dict[str, int]:
        with storage_errors("post counting"):
            return {s: self.collection.count_documents({"status": s}) for s in POST_STATUSES}


class AccountRepository:
    """Storage for the "account" collection."""

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[ACCOUNT_COLLECTION]

    def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        with storage_errors("account lookup"):
            return self.collection.find_one({"email": email})

    def create(self, record: Dict[str, Any]) -> str:
        with storage_errors("registration"):
            try:
                return create_document(self.db, ACCOUNT_COLLECTION, record)
            except DuplicateKeyError:
                raise DuplicateIdentity()

    def count_by_role(self) -> Dict[str, int]:
        with storage_errors("account counting"):
            return {
                "ngos": self.collection.count_documents({"account_type": ROLE_NGO}),
                "canteens": self.collection.count_documents({"account_type": ROLE_CANTEEN}),
            }
