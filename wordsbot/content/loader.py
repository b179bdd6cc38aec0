"""
Task group loader.

Reads task groups from YAML files in a content directory and turns them into
catalog entries. Each file looks like::

    theme: Padeži
    category: genitiv
    tasks:
      - sentence: Nema ovde kuće.
        masked_sentence: Nema ovde *****.
        correct: kuće
        base: kuća
        filters:
          - {name: case, value: genitiv}
        wrong_answers: [kuća, kući, kuću]
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from wordsbot.engine.catalog import CatalogEntry

PATTERNS = ("*.yaml", "*.yml")


class FilterValue(BaseModel):
    name: str
    value: str


class TaskEntry(BaseModel):
    """One exercise; every field besides filters goes into the payload."""

    model_config = ConfigDict(extra="allow")

    filters: list[FilterValue] = Field(default_factory=list)

    def tags(self) -> dict[str, str]:
        return {f.name: f.value for f in self.filters}

    def payload(self) -> dict[str, Any]:
        data = self.model_dump(exclude={"filters"})
        # Source ids are file-local; the catalog assigns its own
        data.pop("id", None)
        return data


class TaskGroup(BaseModel):
    theme: str | None = None
    category: str | None = None
    tasks: list[TaskEntry] = Field(default_factory=list)

    def entries(self) -> Iterator[CatalogEntry]:
        for task in self.tasks:
            tags = task.tags()
            if self.theme:
                tags.setdefault("theme", self.theme)
            if self.category:
                tags.setdefault("category", self.category)
            yield tags, task.payload()


def read_task_group(file_path: Path) -> TaskGroup:
    with open(file_path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return TaskGroup.model_validate(data)


def load_task_groups(directory: Path | str) -> list[TaskGroup]:
    """
    Load every task group file in a directory.

    Files that cannot be read or validated are logged and skipped.
    """
    path = Path(directory)
    if not path.is_dir():
        raise FileNotFoundError(f"Content directory not found: {path}")

    groups = []
    files = sorted({p for pattern in PATTERNS for p in path.glob(pattern)})
    for file_path in files:
        try:
            groups.append(read_task_group(file_path))
        except (OSError, yaml.YAMLError, ValidationError) as e:
            logger.warning("Skipping task file {}: {}", file_path, e)
    logger.info("Loaded {} task groups from {}", len(groups), path)
    return groups


def catalog_entries(groups: Iterable[TaskGroup]) -> list[CatalogEntry]:
    return [entry for group in groups for entry in group.entries()]
