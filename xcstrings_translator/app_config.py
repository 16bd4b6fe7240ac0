"""Application configuration module for the String Catalog translator."""
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import load_dotenv
from openai import AsyncOpenAI

from xcstrings_translator.logging_config import setup_logger

DEFAULT_XCSTRINGS_FILE_PATH = 'Localizable.xcstrings'
DEFAULT_MODEL_NAME = 'gpt-4o-mini'


@dataclass
class PrConfig:
    """Settings for the branch, commit and pull request opened after a run."""
    branch_prefix: str = 'xcstrings-localization-updates/'
    commit_user_name: str = 'github-actions[bot]'
    commit_user_email: str = 'github-actions[bot]@users.noreply.github.com'
    commit_message: str = 'i18n: Update translations'
    pr_title: str = 'Automated Localization Updates'
    pr_body: str = 'Automated localization updates for the String Catalog.'


@dataclass
class AppConfig:
    """Application configuration dataclass."""
    # Core paths
    project_root: str
    repo_root: str
    xcstrings_file_path: str

    # Languages
    target_languages: List[str]

    # Model configuration
    model_name: str
    base_system_prompt: str
    max_model_tokens: int
    max_retries: int

    # Processing settings
    dry_run: bool
    create_pull_request: bool

    # Publication
    github_token: Optional[str]
    pr_config: PrConfig = field(default_factory=PrConfig)

    # OpenAI client
    openai_client: Optional[AsyncOpenAI] = None


def parse_target_languages(raw: Union[str, List[str], None]) -> List[str]:
    """
    Normalize the configured target languages.

    Accepts a comma-separated string or a list. Entries are trimmed, empty
    entries dropped and duplicates collapsed; case and order are preserved.
    """
    if raw is None:
        return []
    items = raw.split(',') if isinstance(raw, str) else [str(item) for item in raw]
    languages = [item.strip() for item in items]
    return list(dict.fromkeys(lang for lang in languages if lang))


def _compute_project_root() -> str:
    """Compute the project root directory."""
    script_real_path = os.path.realpath(__file__)
    script_dir = os.path.dirname(script_real_path)
    return os.path.abspath(os.path.join(script_dir, os.pardir))


def _load_dotenv_files(project_root: str) -> None:
    """Load .env files from project root or docker directory."""
    dotenv_path_project_root = os.path.join(project_root, '.env')
    dotenv_path_docker_dir = os.path.join(project_root, 'docker', '.env')

    if os.path.exists(dotenv_path_project_root):
        load_dotenv(dotenv_path_project_root)
    elif os.path.exists(dotenv_path_docker_dir):
        load_dotenv(dotenv_path_docker_dir)


def _load_yaml_config(project_root: str) -> Dict[str, Any]:
    """Load the YAML configuration file, falling back to defaults on any problem."""
    default_config_path = os.path.join(project_root, 'config.yaml')
    config_file = os.environ.get('XCSTRINGS_TRANSLATOR_CONFIG_FILE', default_config_path)

    if not os.path.isabs(config_file):
        config_file = os.path.abspath(config_file)

    config = {}
    try:
        if not os.path.exists(config_file):
            print(f"Warning: Configuration file '{config_file}' not found. Using default configuration.",
                  file=sys.stderr)
            return config

        if not os.access(config_file, os.R_OK):
            print(f"Error: Configuration file '{config_file}' exists but is not readable. Check file permissions.",
                  file=sys.stderr)
            return config

        with open(config_file, 'r', encoding='utf-8') as config_file_stream:
            loaded_config = yaml.safe_load(config_file_stream)
            if loaded_config is None:
                print(f"Warning: Configuration file '{config_file}' is empty. Using default configuration.",
                      file=sys.stderr)
            elif isinstance(loaded_config, dict):
                config = loaded_config
                print(f"Successfully loaded configuration from: {config_file}", file=sys.stderr)
            else:
                print(f"Error: Configuration file '{config_file}' must contain a YAML dictionary. Using defaults.",
                      file=sys.stderr)

    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML in configuration file '{config_file}': {e}", file=sys.stderr)
        print("Please check your YAML syntax. Using default configuration.", file=sys.stderr)
    except OSError as e:
        print(f"Error: Could not read configuration file '{config_file}': {e}", file=sys.stderr)
        print("Using default configuration.", file=sys.stderr)

    return config


def _setup_logger_from_config(config: Dict[str, Any]) -> logging.Logger:
    """Set up logger based on configuration."""
    log_config = config.get('logging', {})
    log_level_str = log_config.get('log_level', 'INFO').upper()
    log_file_path = log_config.get('log_file_path', 'logs/xcstrings_translator.log')
    log_to_console = log_config.get('log_to_console', True)
    return setup_logger(log_level_str, log_file_path, log_to_console)


def _log_dotenv_status(logger: logging.Logger, project_root: str) -> None:
    """Log the status of .env file loading."""
    dotenv_path_project_root = os.path.join(project_root, '.env')
    dotenv_path_docker_dir = os.path.join(project_root, 'docker', '.env')

    if os.path.exists(dotenv_path_project_root):
        logger.info("Loaded environment variables from: %s", dotenv_path_project_root)
    elif os.path.exists(dotenv_path_docker_dir):
        logger.info("Loaded environment variables from: %s", dotenv_path_docker_dir)
    else:
        logger.info(
            "No .env file found in project root ('%s') or in docker/ ('%s'). Relying on system environment variables if any.",
            dotenv_path_project_root,
            dotenv_path_docker_dir
        )


def _build_pr_config(pr_section: Dict[str, Any]) -> PrConfig:
    """Overlay the configured pull request settings on the defaults."""
    defaults = PrConfig()
    return PrConfig(
        branch_prefix=pr_section.get('branch_prefix') or defaults.branch_prefix,
        commit_user_name=pr_section.get('commit_user_name') or defaults.commit_user_name,
        commit_user_email=pr_section.get('commit_user_email') or defaults.commit_user_email,
        commit_message=pr_section.get('commit_message') or defaults.commit_message,
        pr_title=pr_section.get('title') or defaults.pr_title,
        pr_body=pr_section.get('body') or defaults.pr_body
    )


def _create_openai_client(dry_run: bool, logger: logging.Logger) -> Optional[AsyncOpenAI]:
    """Create the OpenAI client unless running in dry-run mode."""
    if dry_run:
        logger.info("Running in dry-run mode, OpenAI client will not be initialized")
        return None

    api_key_from_env = os.environ.get('OPENAI_API_KEY')
    if not api_key_from_env:
        logger.critical("CRITICAL: OPENAI_API_KEY environment variable not found.")
        logger.critical("Please set OPENAI_API_KEY or enable dry_run mode in configuration.")
        sys.exit(1)

    if not api_key_from_env.startswith('sk-'):
        logger.warning("Warning: OPENAI_API_KEY does not start with 'sk-'. This may be invalid.")

    try:
        client = AsyncOpenAI(api_key=api_key_from_env)
        logger.info("OpenAI client initialized successfully")
        return client
    except Exception as e:
        logger.critical("Failed to initialize OpenAI client: %s", str(e))
        sys.exit(1)


def load_app_config() -> AppConfig:
    """
    Load application configuration from YAML file and environment variables.

    Environment variables win over the YAML file for the settings a CI job
    usually injects (file path, target languages, model, token).

    Returns:
        AppConfig: The loaded application configuration.
    """
    project_root = _compute_project_root()

    _load_dotenv_files(project_root)

    config = _load_yaml_config(project_root)

    logger = _setup_logger_from_config(config)

    _log_dotenv_status(logger, project_root)

    target_languages = parse_target_languages(
        os.environ.get('TARGET_LANGUAGES', config.get('target_languages'))
    )
    if not target_languages:
        logger.critical("No target languages specified.")
        sys.exit(1)

    max_retries = int(config.get('max_retries', 3))
    if max_retries < 1:
        logger.critical("max_retries must be at least 1, got %d.", max_retries)
        sys.exit(1)

    dry_run = config.get('dry_run', False)
    model_name = os.environ.get('OPENAI_MODEL') or config.get('model_name', DEFAULT_MODEL_NAME)
    repo_root = config.get('repo_root') or os.environ.get('GITHUB_WORKSPACE') or os.getcwd()

    openai_client = _create_openai_client(dry_run, logger)

    return AppConfig(
        project_root=project_root,
        repo_root=repo_root,
        xcstrings_file_path=os.environ.get('XCSTRINGS_FILE_PATH') or config.get(
            'xcstrings_file_path', DEFAULT_XCSTRINGS_FILE_PATH),
        target_languages=target_languages,
        model_name=model_name,
        base_system_prompt=config.get('base_system_prompt', ''),
        max_model_tokens=int(config.get('max_model_tokens', 16000)),
        max_retries=max_retries,
        dry_run=dry_run,
        create_pull_request=config.get('create_pull_request', True),
        github_token=os.environ.get('GITHUB_TOKEN'),
        pr_config=_build_pr_config(config.get('pull_request', {})),
        openai_client=openai_client
    )
