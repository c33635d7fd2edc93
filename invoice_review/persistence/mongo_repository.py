"""Durable invoice repository backed by MongoDB.

Production-grade implementation with:
- Lazy client creation with a bounded server selection timeout
- Unique index on fileId, so duplicate creates are rejected atomically
- Liveness check (ping) used to decide between this store and the fallback
- Driver errors converted to UpstreamError

Based on PyMongo documentation:
https://pymongo.readthedocs.io/en/stable/api/pymongo/collection.html
"""

import logging
import re

from pymongo import DESCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from invoice_review.persistence.base import InvoicePage, InvoiceRepository, Record
from invoice_review.shared.config import Settings
from invoice_review.shared.errors import ConflictError, UpstreamError

logger = logging.getLogger(__name__)

_NO_ID = {"_id": 0}


class MongoInvoiceRepository(InvoiceRepository):
    """Invoice collection in MongoDB keyed by a unique ``fileId`` index."""

    def __init__(self, settings: Settings, client: MongoClient | None = None) -> None:
        """Initialize repository.

        Args:
            settings: Application settings with MongoDB configuration
            client: Pre-built client (tests, shared connection pools)
        """
        self.settings = settings
        self._client = client
        self._index_ready = False

    @property
    def backend_name(self) -> str:
        return "mongodb"

    def is_configured(self) -> bool:
        """Check whether a connection string (or client) was provided."""
        return self._client is not None or bool(self.settings.mongodb_uri)

    def _get_client(self) -> MongoClient:
        """Get or create the MongoDB client (lazy initialization).

        Raises:
            ValueError: If no connection string is configured
        """
        if self._client is None:
            if not self.settings.mongodb_uri:
                raise ValueError(
                    "MongoDB URI not configured. Set APP_MONGODB_URI environment variable."
                )

            self._client = MongoClient(
                self.settings.mongodb_uri,
                serverSelectionTimeoutMS=self.settings.mongodb_timeout_ms,
            )
            logger.info(f"MongoDB client initialized (database: {self.settings.mongodb_database})")

        return self._client

    def _get_collection(self) -> Collection:
        collection = self._get_client()[self.settings.mongodb_database][
            self.settings.mongodb_collection
        ]
        if not self._index_ready:
            collection.create_index("fileId", unique=True)
            self._index_ready = True
        return collection

    def is_available(self) -> bool:
        """Check if MongoDB is configured and answers a ping.

        Returns:
            True if the server responded within the selection timeout
        """
        if not self.is_configured():
            return False

        try:
            self._get_client().admin.command("ping")
            return True
        except PyMongoError as e:
            logger.debug(f"MongoDB ping failed: {e}")
            return False

    def list_invoices(self, query: str | None, page: int, limit: int) -> InvoicePage:
        filter_: Record = {}
        if query:
            pattern = {"$regex": re.escape(query), "$options": "i"}
            filter_ = {"$or": [{"vendor.name": pattern}, {"invoice.number": pattern}]}

        try:
            collection = self._get_collection()
            cursor = (
                collection.find(filter_, _NO_ID)
                .sort("createdAt", DESCENDING)
                .skip((page - 1) * limit)
                .limit(limit)
            )
            invoices = list(cursor)
            total = collection.count_documents(filter_)
        except PyMongoError as e:
            logger.error(f"MongoDB error listing invoices: {e}")
            raise UpstreamError("Failed to fetch invoices") from e

        return InvoicePage(invoices=invoices, total=total)

    def get_invoice(self, file_id: str) -> Record | None:
        try:
            return self._get_collection().find_one({"fileId": file_id}, _NO_ID)
        except PyMongoError as e:
            logger.error(f"MongoDB error fetching invoice {file_id}: {e}")
            raise UpstreamError("Failed to fetch invoice") from e

    def insert_invoice(self, record: Record) -> Record:
        try:
            # insert_one adds _id to the dict it is given
            self._get_collection().insert_one(dict(record))
        except DuplicateKeyError as e:
            raise ConflictError("Invoice with this fileId already exists") from e
        except PyMongoError as e:
            logger.error(f"MongoDB error creating invoice {record.get('fileId')}: {e}")
            raise UpstreamError("Failed to create invoice") from e

        logger.info(f"Stored invoice {record['fileId']} in MongoDB")
        return dict(record)

    def update_invoice(self, file_id: str, changes: Record) -> Record | None:
        try:
            return self._get_collection().find_one_and_update(
                {"fileId": file_id},
                {"$set": changes},
                projection=_NO_ID,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error(f"MongoDB error updating invoice {file_id}: {e}")
            raise UpstreamError("Failed to update invoice") from e

    def delete_invoice(self, file_id: str) -> bool:
        try:
            result = self._get_collection().delete_one({"fileId": file_id})
        except PyMongoError as e:
            logger.error(f"MongoDB error deleting invoice {file_id}: {e}")
            raise UpstreamError("Failed to delete invoice") from e

        return result.deleted_count == 1

    def close(self) -> None:
        """Close the client connection pool if one was opened."""
        if self._client is not None:
            self._client.close()
