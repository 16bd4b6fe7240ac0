from typing import List, Optional

from xcstrings_translator.result_merger import TranslationChanges


def _section(title: str, items: List[str]) -> str:
    lines = [f"### {title} ({len(items)})"]
    lines.extend(f"- {item}" for item in items)
    return "\n".join(lines) + "\n\n"


def generate_pr_description(
        base_pr_body: str,
        translation_changes: Optional[TranslationChanges] = None,
        target_languages: Optional[List[str]] = None,
        changed_files: Optional[List[str]] = None
) -> str:
    """
    Build the pull request body with a summary of the translation changes.

    Args:
        base_pr_body: The configured PR body text.
        translation_changes: Added, updated and removed entries of the run.
        target_languages: The languages the run translated into.
        changed_files: Files modified by the run.

    Returns:
        str: The complete PR description.
    """
    final_pr_body = base_pr_body

    if translation_changes and target_languages and translation_changes.total > 0:
        final_pr_body += '\n\n## Translation Changes Summary\n\n'
        final_pr_body += f"**Target Languages:** {', '.join(target_languages)}\n"
        final_pr_body += f"**Total Changes:** {translation_changes.total}\n\n"

        if translation_changes.added:
            final_pr_body += _section("✅ Added Translations", translation_changes.added)
        if translation_changes.updated:
            final_pr_body += _section("🔄 Updated Translations", translation_changes.updated)
        if translation_changes.stale_removed:
            final_pr_body += _section("🗑️ Removed Stale Strings", translation_changes.stale_removed)

    if changed_files:
        final_pr_body += "\n**Updated files:**\n- " + "\n- ".join(changed_files)

    return final_pr_body
