"""Data persistence utilities for crawled records.

Records are written as indented UTF-8 JSON so exports stay diffable and
can be re-validated into the same pydantic models later.
"""

import json
from pathlib import Path
from typing import Sequence, Type, TypeVar, Union

from pydantic import BaseModel

from marketcrawler.utils.logger import get_logger

logger = get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def save_records(records: Union[BaseModel, Sequence[BaseModel]], path: Path) -> Path:
    """Save one record or a list of records to a JSON file.

    Args:
        records: Record or records to save
        path: Output file, parent directories are created

    Returns:
        Path the data was written to
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if isinstance(records, BaseModel):
        data = records.model_dump(mode='json')
        count = 1
    else:
        data = [record.model_dump(mode='json') for record in records]
        count = len(data)

    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)

    logger.info(f"Saved {count} record(s) to {path}")
    return path


def load_records(path: Path, model: Type[RecordT]) -> list[RecordT]:
    """Load records saved with ``save_records``.

    Args:
        path: JSON file
        model: Record type to validate each entry against

    Returns:
        List of records (a single saved record is returned as a one-item list)

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the stored data doesn't match ``model``
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Records file not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = [data]

    records = [model.model_validate(entry) for entry in data]

    logger.debug(f"Loaded {len(records)} {model.__name__} record(s) from {path}")
    return records
