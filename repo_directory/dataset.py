"""
Curated dataset loading
Reads data/repos.yaml and turns its items into CuratedEntry records
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

import jsonschema
import yaml

from .errors import DatasetError

logger = logging.getLogger(__name__)

# Only the document shape is enforced here; per-entry rules belong to the
# validation gate so that every bad entry can be reported.
DATASET_SCHEMA = {
    "type": "object",
    "required": ["repos"],
    "properties": {
        "repos": {
            "type": "array",
            "items": {"type": "object"},
        },
    },
}


@dataclass(frozen=True)
class CuratedEntry:
    """A human-authored directory record."""

    slug: str
    category: str
    notes: str

    @classmethod
    def from_dict(cls, item: dict) -> "CuratedEntry":
        missing = [key for key in ('slug', 'category', 'notes') if not item.get(key)]
        if missing:
            raise DatasetError(
                f"Entry {item.get('slug', '<no slug>')!r} is missing: {', '.join(missing)}"
            )
        return cls(
            slug=str(item['slug']).strip(),
            category=str(item['category']),
            notes=str(item['notes']).strip(),
        )

    @property
    def owner(self) -> str:
        return self.slug.split('/', 1)[0]

    @property
    def name(self) -> str:
        return self.slug.split('/', 1)[-1]


def parse_dataset(raw: str, source: str = "<string>") -> List[dict]:
    """Parse dataset YAML and return the raw `repos` items."""
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise DatasetError(f"YAML parse error in {source}: {e}") from e

    try:
        jsonschema.validate(instance=data, schema=DATASET_SCHEMA)
    except jsonschema.ValidationError as e:
        raise DatasetError(
            f'Invalid {source}: expected a "repos" array ({e.message})'
        ) from e

    return data['repos']


def load_dataset(path: Union[str, Path]) -> List[dict]:
    """Read the dataset file and return its raw `repos` items."""
    path = Path(path)
    try:
        raw = path.read_text(encoding='utf-8')
    except OSError as e:
        raise DatasetError(f"Cannot read dataset {path}: {e}") from e

    items = parse_dataset(raw, source=str(path))
    logger.debug(f"Loaded {len(items)} entries from {path}")
    return items


def load_entries(path: Union[str, Path]) -> List[CuratedEntry]:
    """Read the dataset file and build a CuratedEntry per item."""
    return [CuratedEntry.from_dict(item) for item in load_dataset(path)]
