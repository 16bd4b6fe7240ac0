"""Git and GitHub helpers: reading the catalog at a commit and opening the pull request."""
import json
import logging
import os
import re
import subprocess
import time
from typing import Any, Dict, List, Optional, Tuple

import requests

from xcstrings_translator.app_config import PrConfig
from xcstrings_translator.pr_description import generate_pr_description
from xcstrings_translator.result_merger import TranslationChanges

logger = logging.getLogger(__name__)

GITHUB_API_URL = os.environ.get('GITHUB_API_URL', 'https://api.github.com')
ZERO_SHA_PATTERN = re.compile(r'^0+$')


def _run_git(args: List[str], repo_root: str, check: bool = True) -> subprocess.CompletedProcess:
    return subprocess.run(
        ['git', *args],
        cwd=repo_root,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        check=check
    )


def load_github_event() -> Tuple[Optional[str], Dict[str, Any]]:
    """
    Read the triggering GitHub Actions event.

    Returns:
        Tuple of the event name and its payload; ``(None, {})`` outside GitHub Actions.
    """
    event_name = os.environ.get('GITHUB_EVENT_NAME')
    event_path = os.environ.get('GITHUB_EVENT_PATH')
    if not event_name:
        return None, {}

    payload: Dict[str, Any] = {}
    if event_path and os.path.exists(event_path):
        with open(event_path, 'r', encoding='utf-8') as f:
            payload = json.load(f)
    else:
        logger.warning("GITHUB_EVENT_PATH is not set or missing; event payload is empty.")
    return event_name, payload


def get_sha_refs(event_name: str, event_payload: Dict[str, Any], repo_root: str = '.') -> Tuple[str, str]:
    """
    Determine the base and head commits of the triggering event.

    Args:
        event_name: ``pull_request`` or ``push``.
        event_payload: The event payload.
        repo_root: Repository used to resolve the parent commit of a new branch.

    Returns:
        Tuple[str, str]: The base and head SHAs.

    Raises:
        ValueError: For unsupported events or when no valid SHAs can be found.
    """
    base_sha = ''
    head_sha = ''

    if event_name == 'pull_request':
        pull_request = event_payload.get('pull_request') or {}
        base_sha = (pull_request.get('base') or {}).get('sha', '')
        head_sha = (pull_request.get('head') or {}).get('sha', '')
    elif event_name == 'push':
        base_sha = event_payload.get('before', '')
        head_sha = event_payload.get('after', '')
        if base_sha and ZERO_SHA_PATTERN.match(base_sha):
            logger.info("New branch push detected. Comparing against parent of HEAD.")
            commits = event_payload.get('commits') or []
            first_commit_sha = commits[0].get('id') if commits else None
            if first_commit_sha:
                result = _run_git(['rev-parse', f'{first_commit_sha}^'], repo_root, check=False)
                base_sha = result.stdout.strip() if result.returncode == 0 else ''
                if not base_sha:
                    logger.warning("Could not determine parent SHA for new branch's first commit.")
            else:
                logger.warning("Could not determine first commit SHA for new branch push with zero base SHA.")
    else:
        raise ValueError(f"Unsupported event: {event_name}.")

    if not base_sha or not head_sha or ZERO_SHA_PATTERN.match(base_sha) or ZERO_SHA_PATTERN.match(head_sha):
        raise ValueError(f"Could not determine valid base or head SHA. Base: '{base_sha}', Head: '{head_sha}'.")
    return base_sha, head_sha


def get_file_content_at_commit(sha: str, file_path: str, repo_root: str = '.') -> Optional[str]:
    """
    Read ``file_path`` as it is at commit ``sha``.

    Returns:
        Optional[str]: The file content, or None when the file does not exist there.
    """
    result = _run_git(['show', f'{sha}:{file_path}'], repo_root, check=False)
    if result.returncode != 0:
        if result.stderr:
            logger.error(result.stderr.strip())
        logger.warning("File %s not found at commit %s or git show failed.", file_path, sha)
        return None
    return result.stdout


def read_working_tree_file(file_path: str, repo_root: str = '.') -> Optional[str]:
    """Read ``file_path`` from the checkout, or None when it does not exist."""
    full_path = os.path.join(repo_root, file_path)
    if not os.path.exists(full_path):
        logger.warning("File %s not found in '%s'.", file_path, repo_root)
        return None
    with open(full_path, 'r', encoding='utf-8') as f:
        return f.read()


def determine_base_branch(event_name: Optional[str], event_payload: Dict[str, Any], ref: str) -> Optional[str]:
    """The branch the pull request should target."""
    if event_name == 'pull_request':
        return ((event_payload.get('pull_request') or {}).get('base') or {}).get('ref')
    return ref.replace('refs/heads/', '') or None


def build_branch_name(branch_prefix: str, event_name: Optional[str], run_id: str) -> str:
    timestamp_ms = int(time.time() * 1000)
    return f"{branch_prefix}{event_name or 'manual'}-{run_id}-{timestamp_ms}".replace('/', '-')


def create_pull_request(
        xcstrings_file_path: str,
        changed_files: List[str],
        token: str,
        pr_config: PrConfig,
        translation_changes: Optional[TranslationChanges] = None,
        target_languages: Optional[List[str]] = None,
        repo_root: str = '.',
        event_name: Optional[str] = None,
        event_payload: Optional[Dict[str, Any]] = None
) -> str:
    """
    Commit the updated catalog on a new branch and open a pull request for it.

    Returns:
        str: The URL of the created pull request.

    Raises:
        subprocess.CalledProcessError: When a git command fails.
        ValueError: When the repository or base branch cannot be determined.
        RuntimeError: When the GitHub API rejects the pull request.
    """
    event_payload = event_payload or {}
    repository = os.environ.get('GITHUB_REPOSITORY')
    if not repository:
        raise ValueError("GITHUB_REPOSITORY is not set; cannot create a pull request.")

    base_branch = determine_base_branch(event_name, event_payload, os.environ.get('GITHUB_REF', ''))
    if not base_branch:
        raise ValueError("Could not determine base branch for PR creation.")
    logger.info("Base branch for PR will be: %s", base_branch)

    _run_git(['config', 'user.name', pr_config.commit_user_name], repo_root)
    _run_git(['config', 'user.email', pr_config.commit_user_email], repo_root)

    branch_name = build_branch_name(pr_config.branch_prefix, event_name, os.environ.get('GITHUB_RUN_ID', 'local'))
    logger.info("Creating new branch: %s", branch_name)
    _run_git(['checkout', '-b', branch_name], repo_root)

    logger.info("Committing changes to %s...", xcstrings_file_path)
    _run_git(['add', xcstrings_file_path], repo_root)
    _run_git(['commit', '-m', pr_config.commit_message], repo_root)

    logger.info("Pushing new branch...")
    _run_git(['push', '-u', 'origin', branch_name], repo_root)

    body = generate_pr_description(pr_config.pr_body, translation_changes, target_languages, changed_files)

    logger.info("Creating pull request: %s", pr_config.pr_title)
    response = requests.post(
        f"{GITHUB_API_URL}/repos/{repository}/pulls",
        json={
            "title": pr_config.pr_title,
            "head": branch_name,
            "base": base_branch,
            "body": body,
            "draft": False
        },
        headers={
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json"
        },
        timeout=30
    )
    if response.status_code >= 400:
        logger.error("Error creating pull request:")
        logger.error("Status: %s", response.status_code)
        logger.error("Data: %s", response.text)
        raise RuntimeError(f"GitHub API returned {response.status_code} while creating the pull request.")

    pr_url = response.json().get('html_url', '')
    logger.info("Pull request created: %s", pr_url)
    return pr_url
