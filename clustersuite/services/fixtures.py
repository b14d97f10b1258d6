from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json
import logging

from clustersuite.config import settings

logger = logging.getLogger(__name__)

PACKAGED_TESTDATA = Path(__file__).resolve().parent.parent / "testdata"


def _testdata_dir(directory: Optional[Union[str, Path]]) -> Path:
    if directory is not None:
        return Path(directory)
    if settings.testdata_dir:
        return Path(settings.testdata_dir)
    return PACKAGED_TESTDATA


def load_dataset(name: str, directory: Optional[Union[str, Path]] = None) -> List[Dict[str, Any]]:
    """
    Load the fixture ``<name>.json``

    Args:
        name: Dataset name
        directory: Directory to read from; defaults to the configured
            test data directory, then the packaged one

    Returns:
        List[Dict]: The records, in file order
    """
    path = _testdata_dir(directory) / f"{name}.json"
    if not path.is_file():
        raise FileNotFoundError(f"Dataset '{name}' not found at {path}")

    with path.open(encoding="utf-8") as f:
        records = json.load(f)

    if not isinstance(records, list):
        raise ValueError(f"Dataset '{name}' must be a JSON array, got {type(records).__name__}")

    logger.debug(f"Loaded {len(records)} records from {path}")
    return records
