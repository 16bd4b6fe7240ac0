"""
Entry point: bring a String Catalog up to date for the configured languages
and open a pull request with the result.

Run with ``python -m xcstrings_translator.localize_catalog``.
"""
import asyncio
import logging
import os
import sys
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from xcstrings_translator.app_config import AppConfig, load_app_config
from xcstrings_translator.catalog_model import Catalog, TranslationRequest, format_change, parse_catalog
from xcstrings_translator.catalog_serializer import serialize_catalog
from xcstrings_translator.git_service import (
    create_pull_request,
    get_file_content_at_commit,
    get_sha_refs,
    load_github_event,
    read_working_tree_file,
)
from xcstrings_translator.reconciliation import reconcile
from xcstrings_translator.result_merger import BatchTranslationResponse, TranslationChanges, merge_translations
from xcstrings_translator.translation_provider import OpenAITranslationProvider

logger = logging.getLogger(__name__)


class TranslationProvider(Protocol):
    async def translate_batch(
            self, requests: List[TranslationRequest], source_language: str
    ) -> BatchTranslationResponse:
        ...


@dataclass
class LocalizationOutcome:
    changes: TranslationChanges = field(default_factory=TranslationChanges)
    unsatisfied: List[str] = field(default_factory=list)
    catalog_text: Optional[str] = None
    written: bool = False
    pr_url: Optional[str] = None


def write_file_atomically(file_path: str, content: str) -> None:
    """Replace ``file_path`` with ``content`` so readers never see a partial file."""
    directory = os.path.dirname(os.path.abspath(file_path))
    os.makedirs(directory, exist_ok=True)
    temp_f = tempfile.NamedTemporaryFile(
        mode='w', encoding='utf-8', dir=directory, suffix='.tmp', delete=False
    )
    temp_file_path = temp_f.name
    try:
        with temp_f:
            temp_f.write(content)
        os.replace(temp_file_path, file_path)
    except BaseException:
        # The target is untouched; only the temporary file needs removing.
        if os.path.exists(temp_file_path):
            os.remove(temp_file_path)
        raise


def read_catalog_text(config: AppConfig, event_name: Optional[str], event_payload: Dict[str, Any]) -> Optional[str]:
    """Read the catalog at the head commit of the event, or from the checkout for local runs."""
    if event_name is None:
        logger.info("No GitHub event found; reading %s from the working tree.", config.xcstrings_file_path)
        return read_working_tree_file(config.xcstrings_file_path, config.repo_root)

    base_sha, head_sha = get_sha_refs(event_name, event_payload, config.repo_root)
    logger.info("Base SHA: %s", base_sha)
    logger.info("Head SHA: %s", head_sha)
    return get_file_content_at_commit(head_sha, config.xcstrings_file_path, config.repo_root)


def log_changes(changes: TranslationChanges, file_path: str) -> None:
    if changes.added:
        logger.info("Added translations for %d strings: %s", len(changes.added), ", ".join(changes.added))
    if changes.updated:
        logger.info("Updated translations for %d strings: %s", len(changes.updated), ", ".join(changes.updated))
    if changes.stale_removed:
        logger.info("Removed %d stale strings: %s", len(changes.stale_removed), ", ".join(changes.stale_removed))
    if changes.total == 0:
        logger.info("No new strings requiring translation found in %s", file_path)


async def run_localization(
        config: AppConfig,
        provider: Optional[TranslationProvider],
        event_name: Optional[str] = None,
        event_payload: Optional[Dict[str, Any]] = None
) -> LocalizationOutcome:
    """
    Reconcile the configured catalog, translate what is missing and write the result.

    Args:
        config: The application configuration.
        provider: The batch translation provider; may be None in dry-run mode.
        event_name: The GitHub event name, or None for a local run.
        event_payload: The GitHub event payload.

    Returns:
        LocalizationOutcome: What changed, what is still missing and whether the file was written.

    Raises:
        FileNotFoundError: When the catalog cannot be read.
        CatalogFormatError: When the catalog is malformed.
    """
    event_payload = event_payload or {}
    file_path = config.xcstrings_file_path
    logger.info("XCStrings file: %s", file_path)
    logger.info("Target languages: %s", ", ".join(config.target_languages))

    catalog_text = read_catalog_text(config, event_name, event_payload)
    if catalog_text is None:
        raise FileNotFoundError(f"Could not read {file_path}.")

    catalog = parse_catalog(catalog_text)
    logger.info("Successfully parsed %s. Found %d string keys.", file_path, len(catalog.strings))

    reconciliation = reconcile(catalog, config.target_languages)
    outcome = LocalizationOutcome()
    outcome.changes.stale_removed = list(reconciliation.stale_removed)
    final_catalog: Catalog = reconciliation.working_catalog

    if reconciliation.requests:
        if config.dry_run or provider is None:
            logger.info("[Dry Run] Would request translations for %d strings.", len(reconciliation.requests))
            outcome.unsatisfied = [
                format_change(key, language)
                for key, trace_entry in reconciliation.trace.items()
                for language in trace_entry.languages
            ]
        else:
            # Provider failures propagate; nothing has been written at this point.
            batch_response = await provider.translate_batch(reconciliation.requests, catalog.source_language)
            merge_result = merge_translations(reconciliation.working_catalog, reconciliation.trace, batch_response)
            final_catalog = merge_result.catalog
            outcome.changes.added = merge_result.changes.added
            outcome.changes.updated = merge_result.changes.updated
            outcome.unsatisfied = merge_result.unsatisfied

    log_changes(outcome.changes, file_path)

    if not reconciliation.modified:
        logger.info("No changes needed for %s", file_path)
        return outcome

    outcome.catalog_text = serialize_catalog(final_catalog)
    target_path = os.path.join(config.repo_root, file_path)
    if config.dry_run:
        logger.info("[Dry Run] Would write updated catalog to '%s'.", target_path)
        return outcome

    write_file_atomically(target_path, outcome.catalog_text)
    outcome.written = True
    logger.info("Changes written to %s", target_path)

    if not config.create_pull_request:
        logger.info("Pull request creation disabled; leaving changes in the working tree.")
    elif not config.github_token:
        logger.warning("GITHUB_TOKEN is not set. Skipping PR creation.")
    else:
        logger.info("Localization file %s was updated. Proceeding to create a PR.", file_path)
        outcome.pr_url = create_pull_request(
            file_path,
            [file_path],
            config.github_token,
            config.pr_config,
            translation_changes=outcome.changes,
            target_languages=config.target_languages,
            repo_root=config.repo_root,
            event_name=event_name,
            event_payload=event_payload
        )

    return outcome


async def main():
    """
    Main function to orchestrate the localization run.
    """
    config = load_app_config()
    provider = None
    if config.openai_client is not None:
        provider = OpenAITranslationProvider(
            config.openai_client,
            config.model_name,
            base_system_prompt=config.base_system_prompt,
            max_model_tokens=config.max_model_tokens,
            max_retries=config.max_retries
        )
    event_name, event_payload = load_github_event()

    outcome = await run_localization(config, provider, event_name, event_payload)
    if outcome.unsatisfied:
        logger.warning("Still needing translation: %s", ", ".join(outcome.unsatisfied))
    logger.info("Localization process completed.")


def cli():
    try:
        asyncio.run(main())
    except Exception as main_exc:
        logger.error("An unexpected error occurred during execution: %s", main_exc)
        sys.exit(1)


if __name__ == "__main__":
    cli()
