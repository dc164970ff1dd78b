"""
Elasticsearch client wrapper for the subscriptions index.
"""

from functools import lru_cache, wraps
from typing import Any, Dict, Optional

from elasticsearch import Elasticsearch

from churn_analytics.config.settings import settings
from churn_analytics.core.exceptions import ConfigurationError
from churn_analytics.core.logging import get_logger

logger = get_logger(__name__)


def verify_index(method):
    @wraps(method)
    def wrapper(self, index: str, *args, **kwargs):
        if not self.client.indices.exists(index=index):
            logger.error("Index does not exist", index=index)
            raise ConfigurationError(
                f"Index '{index}' does not exist.",
                details={"index": index},
            )
        return method(self, index, *args, **kwargs)
    return wrapper


class ElasticClient:
    def __init__(self, client: Optional[Elasticsearch] = None):
        self.client = client or Elasticsearch(
            settings.get_elasticsearch_hosts(),
            basic_auth=(settings.ELASTIC_USERNAME, settings.ELASTIC_PASSWORD),
        )

    def create_index(self, index: str, body: Dict[str, Any]) -> bool:
        if not self.client.indices.exists(index=index):
            self.client.indices.create(index=index, body=body)
            logger.info("Created index", index=index)
            return True
        logger.info("Index already exists", index=index)
        return False

    @verify_index
    def index_document(self, index: str, document: Dict[str, Any], id: str = None):
        response = self.client.index(index=index, document=document, id=id)
        logger.debug("Indexed document", index=index, document_id=response["_id"])
        return response

    @verify_index
    def delete_document(self, index: str, id: str):
        response = self.client.delete(index=index, id=id)
        logger.debug("Deleted document", index=index, document_id=id)
        return response

    @verify_index
    def refresh(self, index: str):
        return self.client.indices.refresh(index=index)

    @verify_index
    def search(self, index: str, body: Dict[str, Any]) -> Dict[str, Any]:
        response = self.client.search(index=index, body=body)
        logger.debug("Searched index", index=index)
        return response


@lru_cache()
def get_elastic_client() -> ElasticClient:
    return ElasticClient()
