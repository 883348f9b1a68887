"""
Credit Rule Catalog

Loads declarative credit definitions from YAML into frozen pydantic models.
A catalog is read-only once built: ``with_credit`` returns a new catalog
snapshot and never changes the one evaluations may already hold.

Example usage:
    from core.catalog import default_catalog

    catalog = default_catalog()
    definition = catalog.get("EACr6")
    print(f"{definition.name}: {len(definition.groups)} options")
"""

import logging
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from core.errors import CreditNotFoundError, StructuralError
from core.models import CreditDefinition
from core.policy import get_settings

logger = logging.getLogger(__name__)

BUILTIN_CATALOG_PATH = Path(__file__).parent / "credits.yaml"


class CreditCatalog:
    """Immutable mapping of credit id to CreditDefinition."""

    def __init__(self, definitions: Optional[Mapping[str, CreditDefinition]] = None):
        self._definitions: Mapping[str, CreditDefinition] = MappingProxyType(dict(definitions or {}))

    def get(self, credit_id: str) -> CreditDefinition:
        """
        Look up a credit definition.

        Raises:
            CreditNotFoundError: If the credit is not registered
        """
        try:
            return self._definitions[credit_id]
        except KeyError:
            raise CreditNotFoundError(credit_id, available=self.credit_ids())

    def credit_ids(self) -> List[str]:
        return list(self._definitions.keys())

    def with_credit(self, definition: CreditDefinition) -> "CreditCatalog":
        """Return a new catalog snapshot that also contains ``definition``."""
        definitions = dict(self._definitions)
        if definition.credit_id in definitions:
            logger.info(f"Replacing credit definition {definition.credit_id} in new catalog snapshot")
        definitions[definition.credit_id] = definition
        return CreditCatalog(definitions)

    def __contains__(self, credit_id: object) -> bool:
        return credit_id in self._definitions

    def __iter__(self) -> Iterator[CreditDefinition]:
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)


def parse_catalog(data: Any, source: str = "<memory>") -> CreditCatalog:
    """
    Build a catalog from a ``{"credits": {id: definition}}`` structure.

    Raises:
        StructuralError: If the structure or any definition is malformed
    """
    if not isinstance(data, dict) or not isinstance(data.get("credits"), dict):
        raise StructuralError(f"Catalog {source} must contain a 'credits' mapping")

    definitions: Dict[str, CreditDefinition] = {}
    issues: List[Dict[str, Any]] = []

    for credit_id, body in data["credits"].items():
        if not isinstance(body, dict):
            issues.append({"credit_id": credit_id, "message": "Definition must be a mapping"})
            continue
        try:
            definitions[credit_id] = CreditDefinition(credit_id=credit_id, **body)
        except (ValidationError, TypeError) as e:
            issues.append({"credit_id": credit_id, "message": str(e)})

    if issues:
        raise StructuralError(
            f"Catalog {source} has {len(issues)} malformed credit definition(s)",
            issues=issues,
        )

    logger.info(f"Loaded {len(definitions)} credit definitions from {source}")
    return CreditCatalog(definitions)


def load_catalog(path: Union[str, Path]) -> CreditCatalog:
    """
    Load a catalog from a YAML file.

    Raises:
        StructuralError: If the file is not valid YAML or a definition is malformed
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise StructuralError(f"Catalog {path} is not valid YAML: {e}")

    return parse_catalog(data, source=str(path))


@lru_cache(maxsize=1)
def default_catalog() -> CreditCatalog:
    """
    Process-wide catalog, loaded once.

    Uses CREDITKIT_CATALOG_PATH when set, otherwise the built-in credits.
    """
    override = get_settings()['catalog_path']
    return load_catalog(override or BUILTIN_CATALOG_PATH)
