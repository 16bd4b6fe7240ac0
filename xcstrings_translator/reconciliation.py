"""Decide which (key, language) pairs of a catalog need translation."""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from xcstrings_translator.catalog_model import (
    Catalog,
    Localization,
    LocalizationUnit,
    StringEntry,
    TraceEntry,
    TranslationRequest,
)

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    working_catalog: Catalog
    requests: List[TranslationRequest] = field(default_factory=list)
    trace: Dict[str, TraceEntry] = field(default_factory=dict)
    stale_removed: List[str] = field(default_factory=list)
    modified: bool = False


def _unique_languages(target_languages: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(lang for lang in target_languages if lang))


def _materialize_placeholder(entry: StringEntry, language: str) -> None:
    """Make sure ``entry`` has a (possibly empty) string unit for ``language``."""
    if entry.localizations is None:
        entry.localizations = {}
    localization = entry.localizations.get(language)
    if localization is None:
        entry.localizations[language] = Localization(string_unit=LocalizationUnit())
    elif localization.string_unit is None:
        localization.string_unit = LocalizationUnit()


def reconcile(catalog: Catalog, target_languages: Iterable[str]) -> ReconciliationResult:
    """
    Classify every entry of ``catalog`` against ``target_languages``.

    The input catalog is left untouched. Stale entries are dropped from the
    working copy, entries with ``shouldTranslate: false`` are carried over as
    they are, and every other entry gets one request listing the languages
    whose translation is missing or empty.

    Args:
        catalog: The parsed catalog.
        target_languages: Locale codes to cover, in the order they should be requested.

    Returns:
        ReconciliationResult: The working catalog plus requests, trace and removed keys.
    """
    languages = _unique_languages(target_languages)
    working_catalog = catalog.copy()
    result = ReconciliationResult(working_catalog=working_catalog)

    if not languages:
        logger.info("No target languages given; nothing to reconcile.")
        return result

    for key in list(working_catalog.strings):
        entry = working_catalog.strings[key]

        if entry.is_stale:
            del working_catalog.strings[key]
            result.stale_removed.append(key)
            logger.info("Removing stale string key '%s'.", key)
            continue

        if entry.is_excluded:
            logger.debug("Skipping '%s': marked shouldTranslate=false.", key)
            continue

        trace_entry = TraceEntry()
        for language in languages:
            if not entry.needs_translation(language):
                continue
            trace_entry.is_new[language] = entry.localizations is None or language not in entry.localizations
            _materialize_placeholder(entry, language)
            trace_entry.languages.append(language)

        if trace_entry.languages:
            logger.info("String key '%s' needs translation for: %s", key, ", ".join(trace_entry.languages))
            result.requests.append(TranslationRequest(
                key=key,
                text=key,
                target_languages=list(trace_entry.languages),
                comment=entry.comment
            ))
            result.trace[key] = trace_entry

    result.modified = bool(result.stale_removed or result.requests)
    logger.info(
        "Reconciliation found %d string(s) to translate and %d stale string(s) to remove.",
        len(result.requests),
        len(result.stale_removed)
    )
    return result
