"""
Repository Pattern for Template Storage

Public API:
- get_template_repository(): MongoDB-backed when MONGODB_URI is set,
  in-memory otherwise
- TemplateRepositoryInterface: Abstract interface for the templates collection
"""

import logging
import os
from typing import Optional

from .template_repository import (
    AtlasTemplateRepository,
    InMemoryTemplateRepository,
    TemplateRepositoryInterface,
)

logger = logging.getLogger(__name__)


def get_template_repository(mongodb_uri: Optional[str] = None) -> TemplateRepositoryInterface:
    """
    Build the template repository for this process.

    The MongoDB repository has its indexes ensured before it is returned,
    so the one-default-per-owner rule holds from the first write.

    Args:
        mongodb_uri: Overrides the MONGODB_URI env var

    Returns:
        Repository instance
    """
    uri = mongodb_uri or os.getenv("MONGODB_URI")
    if uri:
        repository = AtlasTemplateRepository(mongodb_uri=uri)
        repository.ensure_indexes()
        logger.info("Template repository indexes ensured")
        return repository
    logger.info("MONGODB_URI not set; using in-memory template repository")
    return InMemoryTemplateRepository()


__all__ = [
    "get_template_repository",
    "TemplateRepositoryInterface",
    "AtlasTemplateRepository",
    "InMemoryTemplateRepository",
]
