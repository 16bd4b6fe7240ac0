"""Typed in-memory model of an Xcode String Catalog (``.xcstrings``)."""
import copy
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import jsonschema

STALE_EXTRACTION_STATE = "stale"
DEFAULT_UNIT_STATE = "translated"

# Only the parts the reconciliation relies on are constrained; anything else
# the authoring tool writes is carried through untouched.
CATALOG_SCHEMA = {
    "type": "object",
    "properties": {
        "sourceLanguage": {"type": "string", "minLength": 1},
        "version": {"type": "string"},
        "strings": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "comment": {"type": "string"},
                    "extractionState": {"type": "string"},
                    "shouldTranslate": {"type": "boolean"},
                    "localizations": {
                        "type": "object",
                        "additionalProperties": {
                            "type": "object",
                            "properties": {
                                "stringUnit": {
                                    "type": "object",
                                    "properties": {
                                        "state": {"type": "string"},
                                        "value": {"type": "string"}
                                    }
                                }
                            }
                        }
                    }
                }
            }
        }
    },
    "required": ["sourceLanguage", "strings"]
}


class CatalogFormatError(ValueError):
    """Raised when catalog text is not valid JSON or has the wrong shape."""


def _sorted_attributes(attributes: Dict[str, Any]) -> Dict[str, Any]:
    # Xcode writes attribute names in sorted order.
    return {name: attributes[name] for name in sorted(attributes)}


@dataclass
class LocalizationUnit:
    state: str = DEFAULT_UNIT_STATE
    value: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocalizationUnit":
        extra = {k: v for k, v in data.items() if k not in ('state', 'value')}
        return cls(state=data.get('state', DEFAULT_UNIT_STATE), value=data.get('value', ''), extra=extra)

    def to_dict(self) -> Dict[str, Any]:
        attributes = dict(self.extra)
        attributes['state'] = self.state
        attributes['value'] = self.value
        return _sorted_attributes(attributes)


@dataclass
class Localization:
    """One language's record inside an entry's ``localizations`` map."""
    string_unit: Optional[LocalizationUnit] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Localization":
        unit_data = data.get('stringUnit')
        extra = {k: v for k, v in data.items() if k != 'stringUnit'}
        return cls(
            string_unit=LocalizationUnit.from_dict(unit_data) if unit_data is not None else None,
            extra=extra
        )

    def to_dict(self) -> Dict[str, Any]:
        attributes = dict(self.extra)
        if self.string_unit is not None:
            attributes['stringUnit'] = self.string_unit.to_dict()
        return _sorted_attributes(attributes)


@dataclass
class StringEntry:
    """
    One translatable unit of the catalog.

    The key doubles as the source text: String Catalogs generated from
    ``Text("...")`` literals use the English text itself as the key.
    """
    key: str
    comment: Optional[str] = None
    extraction_state: Optional[str] = None
    should_translate: Optional[bool] = None
    localizations: Optional[Dict[str, Localization]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, key: str, data: Dict[str, Any]) -> "StringEntry":
        known = ('comment', 'extractionState', 'shouldTranslate', 'localizations')
        localizations = None
        if 'localizations' in data:
            localizations = {
                language: Localization.from_dict(localization)
                for language, localization in data['localizations'].items()
            }
        return cls(
            key=key,
            comment=data.get('comment'),
            extraction_state=data.get('extractionState'),
            should_translate=data.get('shouldTranslate'),
            localizations=localizations,
            extra={k: v for k, v in data.items() if k not in known}
        )

    def to_dict(self) -> Dict[str, Any]:
        attributes = dict(self.extra)
        if self.comment is not None:
            attributes['comment'] = self.comment
        if self.extraction_state is not None:
            attributes['extractionState'] = self.extraction_state
        if self.should_translate is not None:
            attributes['shouldTranslate'] = self.should_translate
        if self.localizations is not None:
            attributes['localizations'] = {
                language: localization.to_dict()
                for language, localization in self.localizations.items()
            }
        return _sorted_attributes(attributes)

    @property
    def is_stale(self) -> bool:
        return self.extraction_state == STALE_EXTRACTION_STATE

    @property
    def is_excluded(self) -> bool:
        return self.should_translate is False

    def needs_translation(self, language: str) -> bool:
        """
        Check whether ``language`` still lacks a usable translation.

        An empty value counts as missing, so a provider that returned nothing
        for a pair gets asked again on the next run.
        """
        if not self.localizations:
            return True
        localization = self.localizations.get(language)
        if localization is None or localization.string_unit is None:
            return True
        return not localization.string_unit.value


@dataclass
class Catalog:
    source_language: str
    strings: Dict[str, StringEntry] = field(default_factory=dict)
    version: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Catalog":
        known = ('sourceLanguage', 'strings', 'version')
        return cls(
            source_language=data['sourceLanguage'],
            strings={key: StringEntry.from_dict(key, entry) for key, entry in data['strings'].items()},
            version=data.get('version'),
            extra={k: v for k, v in data.items() if k not in known}
        )

    def to_dict(self) -> Dict[str, Any]:
        attributes = dict(self.extra)
        attributes['sourceLanguage'] = self.source_language
        attributes['strings'] = {key: entry.to_dict() for key, entry in self.strings.items()}
        if self.version is not None:
            attributes['version'] = self.version
        return _sorted_attributes(attributes)

    def copy(self) -> "Catalog":
        """Return a deep copy that shares no mutable state with this catalog."""
        return copy.deepcopy(self)


def parse_catalog(text: str) -> Catalog:
    """
    Parse the JSON text of a String Catalog.

    Args:
        text: The raw ``.xcstrings`` file content.

    Returns:
        Catalog: The parsed catalog.

    Raises:
        CatalogFormatError: If the text is not JSON or violates the catalog shape.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as json_exc:
        raise CatalogFormatError(f"Catalog is not valid JSON: {json_exc}") from json_exc

    try:
        jsonschema.validate(instance=data, schema=CATALOG_SCHEMA)
    except jsonschema.ValidationError as schema_exc:
        location = "/".join(str(part) for part in schema_exc.absolute_path) or "<root>"
        raise CatalogFormatError(
            f"Catalog does not match the String Catalog format at '{location}': {schema_exc.message}"
        ) from schema_exc

    return Catalog.from_dict(data)


def format_change(key: str, language: str) -> str:
    """Format a (key, language) pair the way change summaries list it."""
    return f"{key} ({language})"


@dataclass
class TranslationRequest:
    key: str
    text: str
    target_languages: List[str]
    comment: Optional[str] = None


@dataclass
class TraceEntry:
    """Languages requested for one key, and which of them had no localization before."""
    languages: List[str] = field(default_factory=list)
    is_new: Dict[str, bool] = field(default_factory=dict)
