"""
Credentials Files.

The system announcement produces one global credentials file; each added
repository service gets a copy of it at a path taken from the service URL.
"""

from pathlib import Path
from urllib.parse import parse_qs, urlparse

from structlog import get_logger

from sysreg.config import Settings
from sysreg.exceptions import ServiceAuthError
from sysreg.models.domain import Credentials
from sysreg.services.store import save_bytes, save_text

logger = get_logger(__name__)

NCC_CREDENTIALS_NAME = "NCCcredentials"


def write_credentials(credentials: Credentials) -> Path:
    """Atomically write a credentials file readable by root only."""
    content = f"username={credentials.login}\npassword={credentials.password}\n"
    save_text(credentials.path, content, mode=0o600)
    logger.info("credentials_written", path=str(credentials.path), login=credentials.login)
    return credentials.path


def read_credentials(path: Path) -> Credentials:
    """
    Read a credentials file.

    Raises:
        ServiceAuthError: The file is missing or does not contain a login and password
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ServiceAuthError(f"Credentials file {path} not found, register the system first") from exc

    values: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition("=")
        if sep:
            values[key.strip()] = value.strip()

    login = values.get("username")
    password = values.get("password")
    if not login or not password:
        raise ServiceAuthError(f"Credentials file {path} is incomplete")

    return Credentials(login=login, password=password, path=path)


def credentials_from_url(url: str) -> str | None:
    """
    Credentials file name of a service, taken from its URL.

        >>> credentials_from_url("https://scc.example.com/access/service/42?credentials=SLES_12_x86_64")
        'SLES_12_x86_64'
        >>> credentials_from_url("https://scc.example.com/access/service/42") is None
        True
    """
    values = parse_qs(urlparse(url).query).get("credentials")
    if not values or not values[0]:
        return None
    # only a plain file name is accepted
    return Path(values[0]).name or None


def copy_old_credentials(source_root: Path, settings: Settings) -> Path | None:
    """
    Migrate credentials of a previous installation mounted at ``source_root``.

    The SCC credentials take precedence over the old NCC credentials. The
    global credentials file is replaced atomically.
    """
    logger.info("searching_old_credentials", source_root=str(source_root))
    relative_dir = settings.credentials_dir.relative_to(settings.credentials_dir.anchor)
    old_dir = source_root / relative_dir
    candidates = (old_dir / settings.global_credentials_name, old_dir / NCC_CREDENTIALS_NAME)

    old_file = next((path for path in candidates if path.exists()), None)
    if old_file is None:
        return None

    target = settings.global_credentials_path
    logger.info("copying_old_credentials", source=str(old_file), target=str(target))
    save_bytes(target, old_file.read_bytes(), mode=0o600)
    return target
