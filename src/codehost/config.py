"""Application configuration defaults."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DEFAULT_DOMAIN = "dmitri.shuralyov.com"
DEFAULT_MODULE_PREFIX = "/api/module/"


def _get_default_repos_dir() -> Path:
    """Get the default repository store location."""
    # When running from source, prefer local data/ if it exists
    local_dir = Path("data/repositories")
    if local_dir.exists():
        return local_dir

    return Path.home() / ".local" / "share" / "codehost" / "repositories"


@dataclass(slots=True)
class AppConfig:
    repos_dir: Path | None = None
    domain: str = DEFAULT_DOMAIN
    module_prefix: str = DEFAULT_MODULE_PREFIX
    admin_user: str | None = None
    admin_password: str | None = None
    git_upload_pack: str = "git-upload-pack"
    git_receive_pack: str = "git-receive-pack"

    def __post_init__(self) -> None:
        if self.repos_dir is None:
            self.repos_dir = _get_default_repos_dir()
        if not self.module_prefix.startswith("/"):
            self.module_prefix = "/" + self.module_prefix
        if not self.module_prefix.endswith("/"):
            self.module_prefix += "/"

    def resolve_repos_dir(self, base_dir: Path | None = None) -> Path:
        if self.repos_dir is None:
            self.repos_dir = _get_default_repos_dir()
        if Path(self.repos_dir).is_absolute() or base_dir is None:
            return Path(self.repos_dir)
        return base_dir / self.repos_dir
