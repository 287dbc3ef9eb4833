"""
Template Repository

Repository interface for the templates collection.

Invariant: at most one template per owner is marked default. The system-wide
default is the template with no owner. Saving a template as default clears
the previous default of the same owner first; MongoDB additionally enforces
it with a partial unique index on (userId, isDefault).
"""

import logging
import os
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, MongoClient

from jobref.common.types import Template

logger = logging.getLogger(__name__)


class TemplateRepositoryInterface(ABC):
    """Abstract interface for template storage."""

    @abstractmethod
    def find_default(self, owner_id: Optional[str]) -> Optional[Template]:
        """
        Find the default template of an owner.

        Args:
            owner_id: Owner user id, or None for the system default

        Returns:
            Template or None
        """
        pass

    @abstractmethod
    def save(self, template: Template) -> Template:
        """
        Insert or update a template, keeping one default per owner.

        Returns:
            The stored template (with id assigned)
        """
        pass


class InMemoryTemplateRepository(TemplateRepositoryInterface):
    """Process-local template store, used when no MongoDB is configured."""

    def __init__(self, templates: Optional[List[Template]] = None):
        self._templates: Dict[str, Template] = {}
        self._lock = threading.Lock()
        for template in templates or []:
            self.save(template)

    def find_default(self, owner_id: Optional[str]) -> Optional[Template]:
        with self._lock:
            for template in self._templates.values():
                if template.is_default and template.owner_id == owner_id:
                    return template
        return None

    def save(self, template: Template) -> Template:
        with self._lock:
            if not template.id:
                template.id = uuid.uuid4().hex
            if template.is_default:
                for other in self._templates.values():
                    if other.id != template.id and other.owner_id == template.owner_id:
                        other.is_default = False
            self._templates[template.id] = template
            return template


class AtlasTemplateRepository(TemplateRepositoryInterface):
    """
    MongoDB implementation of TemplateRepository.

    Documents: {_id, name, content, isDefault, userId?}. System templates
    have no userId field.
    """

    _client: Optional[MongoClient] = None

    def __init__(
        self,
        mongodb_uri: Optional[str] = None,
        database: Optional[str] = None,
        collection: str = "templates",
    ):
        """
        Initialize the repository.

        Args:
            mongodb_uri: MongoDB connection string (defaults to MONGODB_URI env var)
            database: Database name (defaults to MONGO_DB_NAME env var)
            collection: Collection name
        """
        self._mongodb_uri = mongodb_uri or os.getenv("MONGODB_URI")
        self._database = database or os.getenv("MONGO_DB_NAME", "jobref")
        self._collection_name = collection

        if not self._mongodb_uri:
            raise ValueError("MongoDB URI is required")

    def _get_client(self) -> MongoClient:
        """Get or create the MongoDB client (shared across instances)."""
        if AtlasTemplateRepository._client is None:
            AtlasTemplateRepository._client = MongoClient(self._mongodb_uri)
            logger.info("Created new MongoDB client for templates repository")
        return AtlasTemplateRepository._client

    def _get_collection(self):
        return self._get_client()[self._database][self._collection_name]

    @classmethod
    def reset_connection(cls) -> None:
        """Reset the MongoDB client connection."""
        if cls._client is not None:
            cls._client.close()
            cls._client = None
            logger.info("Templates repository connection reset")

    def ensure_indexes(self) -> None:
        """One default per owner, enforced by a partial unique index."""
        self._get_collection().create_index(
            [("userId", ASCENDING), ("isDefault", ASCENDING)],
            unique=True,
            partialFilterExpression={"isDefault": True},
            name="one_default_per_owner",
        )

    @staticmethod
    def _owner_filter(owner_id: Optional[str]) -> Dict[str, Any]:
        if owner_id is None:
            return {"userId": {"$exists": False}}
        return {"userId": owner_id}

    @staticmethod
    def _to_template(doc: Optional[Dict[str, Any]]) -> Optional[Template]:
        if not doc:
            return None
        owner = doc.get("userId")
        return Template(
            id=str(doc["_id"]),
            name=doc.get("name", "Template"),
            content=doc.get("content", ""),
            is_default=bool(doc.get("isDefault", False)),
            owner_id=str(owner) if owner is not None else None,
        )

    def find_default(self, owner_id: Optional[str]) -> Optional[Template]:
        query = {**self._owner_filter(owner_id), "isDefault": True}
        return self._to_template(self._get_collection().find_one(query))

    def save(self, template: Template) -> Template:
        collection = self._get_collection()
        if template.is_default:
            # Clear the owner's previous default before setting the new one
            collection.update_many(
                {**self._owner_filter(template.owner_id), "isDefault": True},
                {"$set": {"isDefault": False}},
            )

        doc: Dict[str, Any] = {
            "name": template.name,
            "content": template.content,
            "isDefault": template.is_default,
        }
        if template.owner_id is not None:
            doc["userId"] = template.owner_id

        if template.id and ObjectId.is_valid(template.id):
            collection.update_one({"_id": ObjectId(template.id)}, {"$set": doc}, upsert=True)
        else:
            result = collection.insert_one(doc)
            template.id = str(result.inserted_id)
        return template
