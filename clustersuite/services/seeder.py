from typing import Any, Callable, Dict, List, Type
from pydantic import BaseModel
import logging

from clustersuite.errors import SeedingError
from clustersuite.models.dataset import BreweryDocument
from clustersuite.services.fixtures import load_dataset

logger = logging.getLogger(__name__)


class DatasetSeeder:
    """Writes fixture datasets into a collection under a partition label"""

    def __init__(
        self,
        collection,
        loader: Callable[[str], List[Dict[str, Any]]] = load_dataset,
        document_model: Type[BaseModel] = BreweryDocument
    ):
        self.collection = collection
        self.loader = loader
        self.document_model = document_model

    def seed(self, dataset_name: str, partition_label: str) -> int:
        """
        Load ``dataset_name`` and upsert every record as
        ``<partition_label><index>``, tagged with the label

        Writes are sequential and not atomic: on failure, documents
        written so far stay in place.

        Args:
            dataset_name: Fixture to load
            partition_label: Label namespacing the keys and the ``service`` field

        Returns:
            int: Number of documents written

        Raises:
            SeedingError: On the first load, validation or write failure
        """
        try:
            records = self.loader(dataset_name)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load dataset '{dataset_name}': {e}")
            raise SeedingError(dataset_name, partition_label, 0, e) from e

        written = 0
        for index, record in enumerate(records):
            key = f"{partition_label}{index}"
            try:
                document = self.document_model.model_validate({**record, "service": partition_label})
                self.collection.upsert(key, document)
            except Exception as e:
                logger.error(f"Failed to write '{key}' of dataset '{dataset_name}': {e}")
                raise SeedingError(dataset_name, partition_label, written, e) from e
            written += 1

        logger.info(f"Seeded {written} documents of '{dataset_name}' as '{partition_label}'")
        return written
