"""The scenario catalog: role-play prompts grouped by category."""

import logging
import random
from importlib import resources
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from .errors import ResourceLoadFailed
from .models import ScenarioCategory, ScenarioDocument

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES: List[ScenarioCategory] = [
    ScenarioCategory(
        category="Meeting on the Street",
        scenarios=[
            "Two good friends meet in a park, greet each other warmly and discuss "
            "what activities they could do together in the park"
        ],
    ),
    ScenarioCategory(
        category="Ordering Food",
        scenarios=[
            "A customer enters a traditional Italian restaurant and asks the waiter "
            "about today's special dishes and wine recommendations"
        ],
    ),
]


def parse_document(text: Union[str, bytes]) -> List[ScenarioCategory]:
    """Parse a scenarios JSON document.

    Raises
    ------
    ResourceLoadFailed
        If the document is not valid JSON of the expected shape.
    """
    try:
        return ScenarioDocument.model_validate_json(text).scenarios
    except ValidationError as e:
        raise ResourceLoadFailed(f"Malformed scenarios document: {e}") from e


def read_document(path: Optional[Union[str, Path]] = None) -> List[ScenarioCategory]:
    """Read the document at ``path``, or the packaged one when no path is given."""
    try:
        if path is None:
            text = (
                resources.files("pocket_polyglot")
                .joinpath("data")
                .joinpath("scenarios.json")
                .read_bytes()
            )
        else:
            text = Path(path).read_bytes()
    except OSError as e:
        raise ResourceLoadFailed(f"Could not load scenarios document: {e}") from e
    return parse_document(text)


class ScenarioCatalog:
    """Read-only mapping of category name to its scenario prompts."""

    def __init__(self, categories: Optional[List[ScenarioCategory]] = None):
        if categories is None:
            categories = DEFAULT_CATEGORIES
        self._categories: List[ScenarioCategory] = list(categories)

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "ScenarioCatalog":
        """Load a catalog, falling back to the built-in defaults on any failure.

        A document without a single category also falls back, so the
        application never starts with nothing to practise.
        """
        try:
            categories = read_document(path)
        except ResourceLoadFailed as e:
            logger.warning("%s; using built-in scenarios", e)
            return cls()
        if not categories:
            logger.warning("Scenarios document has no categories; using built-in scenarios")
            return cls()
        return cls(categories)

    @classmethod
    def from_mapping(cls, mapping: Dict[str, List[str]]) -> "ScenarioCatalog":
        return cls(
            [ScenarioCategory(category=name, scenarios=list(prompts)) for name, prompts in mapping.items()]
        )

    @property
    def categories(self) -> List[str]:
        return [c.name for c in self._categories]

    def prompts_for(self, category: str) -> List[str]:
        """Prompts registered under ``category``; empty for unknown or empty names."""
        if not category:
            return []
        for entry in self._categories:
            if entry.name == category:
                return list(entry.scenarios)
        return []

    def random_prompt(self, category: str, rng: Optional[random.Random] = None) -> Optional[str]:
        prompts = self.prompts_for(category)
        if not prompts:
            return None
        return (rng or random).choice(prompts)

    def __contains__(self, category: str) -> bool:
        return category in self.categories

    def __len__(self) -> int:
        return len(self._categories)
