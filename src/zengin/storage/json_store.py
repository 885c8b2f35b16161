"""JSON persistence for harvested catalogs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError

from zengin.entities.core import Catalog, Institution, LiveInstitution
from zengin.utils.logging import get_logger


class FormatError(Exception):
    """Raised when a persisted catalog is malformed or violates the schema."""


class CatalogIOError(Exception):
    """Raised when the catalog sink cannot be read or written."""


_ENCODER = json.JSONEncoder(ensure_ascii=False, indent=2, sort_keys=True)


class JsonCatalogStore:
    """Reads and writes a catalog as one JSON object keyed by institution code.

    Output is deterministic, so ``save(load(save(c)))`` reproduces the bytes of
    ``save(c)``. Query tokens are dropped by converting live institutions to
    their persisted form before encoding.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._logger = get_logger(component="json_store", path=str(self.path))

    @staticmethod
    def to_document(catalog: Catalog[Institution] | Catalog[LiveInstitution]) -> Dict[str, Any]:
        persisted = catalog.to_persisted()
        return {code: institution.model_dump(mode="json") for code, institution in persisted.items()}

    @staticmethod
    def from_document(document: Any) -> Catalog[Institution]:
        if not isinstance(document, dict):
            raise FormatError("Catalog document must be a JSON object keyed by institution code")
        catalog: Catalog[Institution] = Catalog()
        for code, payload in document.items():
            try:
                institution = Institution.model_validate(payload)
            except ValidationError as exc:
                raise FormatError(f"Invalid institution record under key {code!r}: {exc}") from exc
            if institution.code != code:
                raise FormatError(f"Key {code!r} does not match record code {institution.code!r}")
            catalog.insert(institution)
        return catalog

    def save(self, catalog: Catalog[Institution] | Catalog[LiveInstitution]) -> Path:
        document = self.to_document(catalog)
        try:
            with self.path.open("w", encoding="utf-8") as handle:
                for chunk in _ENCODER.iterencode(document):
                    handle.write(chunk)
                handle.write("\n")
        except OSError as exc:
            raise CatalogIOError(f"Unable to write catalog to {self.path}: {exc}") from exc
        self._logger.info("Saved catalog", institutions=len(document))
        return self.path

    def load(self) -> Catalog[Institution]:
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                document = json.load(handle)
        except json.JSONDecodeError as exc:
            raise FormatError(f"Malformed catalog JSON in {self.path}: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise FormatError(f"Catalog file {self.path} is not UTF-8 encoded: {exc}") from exc
        except OSError as exc:
            raise CatalogIOError(f"Unable to read catalog from {self.path}: {exc}") from exc
        catalog = self.from_document(document)
        self._logger.debug("Loaded catalog", institutions=len(catalog))
        return catalog


__all__ = ["CatalogIOError", "FormatError", "JsonCatalogStore"]
