import copy
import unittest

from xcstrings_translator.catalog_model import Catalog
from xcstrings_translator.reconciliation import reconcile
from xcstrings_translator.result_merger import (
    BatchTranslationResponse,
    ProviderResponseError,
    TranslationChanges,
    merge_translations,
)


def _value(catalog, key, language):
    return catalog.strings[key].localizations[language].string_unit.value


class TestMergeTranslations(unittest.TestCase):

    def setUp(self):
        self.catalog = Catalog.from_dict({
            "sourceLanguage": "en",
            "version": "1.0",
            "strings": {
                "hi": {},
                "bye": {"localizations": {"es": {"stringUnit": {"state": "translated", "value": "Adiós"}}}},
                "retry": {"localizations": {"fr": {"stringUnit": {"state": "new", "value": ""}}}},
                "old": {"extractionState": "stale"}
            }
        })
        self.reconciliation = reconcile(self.catalog, ["es", "fr"])

    def _merge(self, response):
        return merge_translations(
            self.reconciliation.working_catalog,
            self.reconciliation.trace,
            BatchTranslationResponse.from_dict(response)
        )

    def test_end_to_end_merge(self):
        result = self._merge({"translations": [
            {"key": "hi", "translations": {"es": "Hola", "fr": "Salut"}},
            {"key": "bye", "translations": {"fr": "Au revoir"}},
            {"key": "retry", "translations": {"es": "Reintentar", "fr": "Réessayer"}}
        ]})

        self.assertEqual(_value(result.catalog, "hi", "es"), "Hola")
        self.assertEqual(_value(result.catalog, "hi", "fr"), "Salut")
        self.assertEqual(_value(result.catalog, "bye", "es"), "Adiós")
        self.assertEqual(_value(result.catalog, "bye", "fr"), "Au revoir")
        self.assertNotIn("old", result.catalog.strings)
        self.assertEqual(result.changes.added, ["hi (es)", "hi (fr)", "bye (fr)", "retry (es)"])
        self.assertEqual(result.changes.updated, ["retry (fr)"])
        self.assertTrue(result.applied_modified)
        self.assertEqual(result.unsatisfied, [])

    def test_written_units_are_marked_translated(self):
        result = self._merge({"translations": [{"key": "retry", "translations": {"fr": "Réessayer"}}]})
        unit = result.catalog.strings["retry"].localizations["fr"].string_unit
        self.assertEqual(unit.state, "translated")
        self.assertEqual(unit.value, "Réessayer")

    def test_unknown_key_is_ignored(self):
        with self.assertLogs("xcstrings_translator.result_merger", level="WARNING") as logs:
            result = self._merge({"translations": [{"key": "never_asked", "translations": {"es": "Nunca"}}]})

        self.assertNotIn("never_asked", result.catalog.strings)
        self.assertEqual(result.changes.added, [])
        self.assertFalse(result.applied_modified)
        self.assertTrue(any("never_asked" in line for line in logs.output))

    def test_unrequested_language_is_ignored(self):
        result = self._merge({"translations": [{"key": "bye", "translations": {"es": "Chau", "fr": "Au revoir", "de": "Tschüss"}}]})

        self.assertEqual(_value(result.catalog, "bye", "es"), "Adiós")
        self.assertNotIn("de", result.catalog.strings["bye"].localizations)
        self.assertEqual(result.changes.added, ["bye (fr)"])

    def test_partial_coverage_keeps_placeholders_and_reports_them(self):
        result = self._merge({"translations": [{"key": "hi", "translations": {"es": "Hola"}}]})

        self.assertEqual(_value(result.catalog, "hi", "fr"), "")
        self.assertEqual(_value(result.catalog, "bye", "fr"), "")
        self.assertEqual(result.unsatisfied, ["hi (fr)", "bye (fr)", "retry (es)", "retry (fr)"])
        self.assertEqual(result.changes.added, ["hi (es)"])

    def test_empty_translation_is_not_written(self):
        result = self._merge({"translations": [{"key": "hi", "translations": {"es": "", "fr": "Salut"}}]})

        self.assertEqual(_value(result.catalog, "hi", "es"), "")
        self.assertIn("hi (es)", result.unsatisfied)
        self.assertEqual(result.changes.added, ["hi (fr)"])

    def test_duplicate_results_keep_the_first_value(self):
        result = self._merge({"translations": [
            {"key": "hi", "translations": {"es": "Hola"}},
            {"key": "hi", "translations": {"es": "Buenas"}}
        ]})

        self.assertEqual(_value(result.catalog, "hi", "es"), "Hola")
        self.assertEqual(result.changes.added, ["hi (es)"])

    def test_empty_response(self):
        result = self._merge({"translations": []})

        self.assertFalse(result.applied_modified)
        self.assertEqual(result.changes, TranslationChanges())
        self.assertEqual(len(result.unsatisfied), 5)

    def test_inputs_are_not_mutated(self):
        working_before = copy.deepcopy(self.reconciliation.working_catalog)
        original_before = copy.deepcopy(self.catalog)

        self._merge({"translations": [{"key": "hi", "translations": {"es": "Hola", "fr": "Salut"}}]})

        self.assertEqual(self.reconciliation.working_catalog, working_before)
        self.assertEqual(self.catalog, original_before)
        self.assertIsNone(self.catalog.strings["hi"].localizations)


class TestBatchTranslationResponse(unittest.TestCase):

    def test_from_dict(self):
        response = BatchTranslationResponse.from_dict(
            {"translations": [{"key": "hi", "translations": {"es": "Hola"}}]}
        )
        self.assertEqual(response.translations[0].key, "hi")
        self.assertEqual(response.translations[0].translations, {"es": "Hola"})

    def test_rejects_missing_translations(self):
        with self.assertRaises(ProviderResponseError):
            BatchTranslationResponse.from_dict({"results": []})

    def test_rejects_non_string_values(self):
        with self.assertRaises(ProviderResponseError):
            BatchTranslationResponse.from_dict({"translations": [{"key": "hi", "translations": {"es": 1}}]})


class TestTranslationChanges(unittest.TestCase):

    def test_total(self):
        changes = TranslationChanges(added=["a (es)"], updated=["b (fr)", "c (fr)"], stale_removed=["d"])
        self.assertEqual(changes.total, 4)


if __name__ == '__main__':
    unittest.main()
