"""Apply a batch of provider translations onto a reconciled catalog."""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

import jsonschema
from tqdm import tqdm

from xcstrings_translator.catalog_model import (
    DEFAULT_UNIT_STATE,
    Catalog,
    Localization,
    LocalizationUnit,
    TraceEntry,
    format_change,
)

logger = logging.getLogger(__name__)

BATCH_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "translations": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "key": {"type": "string"},
                    "translations": {
                        "type": "object",
                        "additionalProperties": {"type": "string"}
                    }
                },
                "required": ["key", "translations"]
            }
        }
    },
    "required": ["translations"]
}


class ProviderResponseError(ValueError):
    """Raised when a provider response does not have the batch translation shape."""


@dataclass
class TranslationResult:
    key: str
    translations: Dict[str, str] = field(default_factory=dict)


@dataclass
class BatchTranslationResponse:
    translations: List[TranslationResult] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "BatchTranslationResponse":
        try:
            jsonschema.validate(instance=data, schema=BATCH_RESPONSE_SCHEMA)
        except jsonschema.ValidationError as schema_exc:
            raise ProviderResponseError(
                f"Translation response did not match the expected schema: {schema_exc.message}"
            ) from schema_exc
        return cls(translations=[
            TranslationResult(key=item['key'], translations=dict(item['translations']))
            for item in data['translations']
        ])


@dataclass
class TranslationChanges:
    added: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    stale_removed: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.added) + len(self.updated) + len(self.stale_removed)


@dataclass
class MergeResult:
    catalog: Catalog
    changes: TranslationChanges
    applied_modified: bool = False
    unsatisfied: List[str] = field(default_factory=list)


def _write_value(catalog: Catalog, key: str, language: str, value: str) -> None:
    entry = catalog.strings[key]
    if entry.localizations is None:
        entry.localizations = {}
    localization = entry.localizations.setdefault(language, Localization())
    if localization.string_unit is None:
        localization.string_unit = LocalizationUnit()
    localization.string_unit.state = DEFAULT_UNIT_STATE
    localization.string_unit.value = value


def merge_translations(
        working_catalog: Catalog,
        trace: Dict[str, TraceEntry],
        batch_response: BatchTranslationResponse
) -> MergeResult:
    """
    Write provider translations into a copy of the working catalog.

    Only pairs recorded in ``trace`` are written. Results for unknown keys and
    languages nobody asked for are logged and dropped; requested pairs without
    a usable value keep their empty placeholder and are listed in
    ``MergeResult.unsatisfied``.

    Args:
        working_catalog: The catalog produced by ``reconcile``.
        trace: The per-key trace produced by ``reconcile``.
        batch_response: The provider's answer.

    Returns:
        MergeResult: The final catalog, the change summary and the unsatisfied pairs.
    """
    catalog = working_catalog.copy()
    changes = TranslationChanges()
    satisfied = set()

    for result in tqdm(batch_response.translations, desc="Applying translations", unit="string", disable=None):
        trace_entry = trace.get(result.key)
        if trace_entry is None or result.key not in catalog.strings:
            logger.warning("Ignoring translations for key '%s': it was not requested.", result.key)
            continue

        for language, value in result.translations.items():
            if language not in trace_entry.languages:
                logger.warning("Ignoring unrequested language '%s' for key '%s'.", language, result.key)
                continue
            if (result.key, language) in satisfied:
                logger.warning("Duplicate translation for '%s'; keeping the first one.", format_change(result.key, language))
                continue
            if not value:
                logger.warning("Empty translation returned for '%s'.", format_change(result.key, language))
                continue

            _write_value(catalog, result.key, language, value)
            satisfied.add((result.key, language))
            if trace_entry.is_new.get(language, False):
                changes.added.append(format_change(result.key, language))
            else:
                changes.updated.append(format_change(result.key, language))

    unsatisfied = [
        format_change(key, language)
        for key, trace_entry in trace.items()
        for language in trace_entry.languages
        if (key, language) not in satisfied
    ]
    if unsatisfied:
        logger.warning(
            "%d translation(s) were requested but not returned and still need translation: %s",
            len(unsatisfied),
            ", ".join(unsatisfied)
        )

    return MergeResult(
        catalog=catalog,
        changes=changes,
        applied_modified=bool(satisfied),
        unsatisfied=unsatisfied
    )
