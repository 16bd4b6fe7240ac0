import copy
import json

import pytest

from xcstrings_translator.catalog_model import Catalog
from xcstrings_translator.result_merger import BatchTranslationResponse


def unit(value, state="translated"):
    return {"stringUnit": {"state": state, "value": value}}


MIXED_CATALOG = {
    "sourceLanguage": "en",
    "version": "1.0",
    "strings": {
        # No localizations at all
        "welcome_message": {"comment": "Welcome message for users"},
        # Partially localized
        "login_button": {"localizations": {"es": unit("Iniciar sesión")}},
        # Empty value for es, missing de
        "logout_button": {"localizations": {"es": unit(""), "fr": unit("Se déconnecter")}},
        # Removed from source
        "old_feature": {"extractionState": "stale", "localizations": {"es": unit("Función antigua")}},
        # Developer-only key
        "debug_key": {"shouldTranslate": False, "localizations": {}},
        # Fully translated
        "save_button": {
            "localizations": {"es": unit("Guardar"), "fr": unit("Enregistrer"), "de": unit("Speichern")}
        }
    }
}

END_TO_END_CATALOG = {
    "sourceLanguage": "en",
    "strings": {
        "hi": {},
        "bye": {"localizations": {"es": unit("Adiós")}},
        "old": {"extractionState": "stale"}
    }
}


@pytest.fixture
def mixed_catalog_dict():
    return copy.deepcopy(MIXED_CATALOG)


@pytest.fixture
def mixed_catalog():
    return Catalog.from_dict(copy.deepcopy(MIXED_CATALOG))


@pytest.fixture
def end_to_end_catalog():
    return Catalog.from_dict(copy.deepcopy(END_TO_END_CATALOG))


@pytest.fixture
def end_to_end_catalog_text():
    return json.dumps(END_TO_END_CATALOG, ensure_ascii=False, indent=2)


class StubProvider:
    """Records the batch it receives and answers with a canned response."""

    def __init__(self, response=None, error=None):
        self.response = response if response is not None else {"translations": []}
        self.error = error
        self.calls = []

    async def translate_batch(self, requests, source_language="en"):
        self.calls.append((list(requests), source_language))
        if self.error is not None:
            raise self.error
        return BatchTranslationResponse.from_dict(self.response)


@pytest.fixture
def stub_provider_factory():
    return StubProvider
