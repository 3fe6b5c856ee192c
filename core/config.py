"""Runtime settings for composer-lsp."""

from dataclasses import dataclass

from .packagist import PACKAGIST_API_URL, PACKAGIST_REPO_URL


@dataclass
class Settings:
    """Settings shared by the CLI and the language server."""

    api_url: str = PACKAGIST_API_URL
    repo_url: str = PACKAGIST_REPO_URL
    timeout: float = 30.0
    max_concurrency: int = 6
    composer_binary: str = "composer"
    open_browser: bool = False
    log_file: str | None = None
    log_level: str = "INFO"
