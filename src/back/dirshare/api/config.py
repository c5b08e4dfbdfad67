"""Configuration for the dirshare API."""
import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_CHUNK_SIZE = 256 * 1024
MIN_CHUNK_SIZE = 64 * 1024
DEFAULT_PREVIEW_MAX_BYTES = 1024 * 1024


def _default_cors_origins() -> list[str]:
    """Get default CORS origins, supporting env override."""
    env_origins = os.environ.get('CORS_ORIGINS', '')
    if env_origins:
        return [o.strip() for o in env_origins.split(',') if o.strip()]
    return ['*']


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, '').strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Invalid {name}='{raw}': must be an integer")


def parse_bind_address(value: str) -> tuple[str, int]:
    """Split a ``HOST:PORT`` bind address.

    IPv6 hosts may be bracketed (``[::1]:3000``).

    Raises:
        ValueError: If the address has no port or the port is out of range.
    """
    host, sep, port_str = value.rpartition(':')
    if not sep or not host:
        raise ValueError(f'Bind address must be HOST:PORT, got {value!r}')
    if host.startswith('[') and host.endswith(']'):
        host = host[1:-1]
    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f'Invalid port in bind address {value!r}')
    if not 0 < port < 65536:
        raise ValueError(f'Port out of range in bind address {value!r}')
    return host, port


@dataclass
class APIConfig:
    """Central configuration for all API routers.

    This dataclass is passed to every create_*_router() factory,
    enabling dependency injection and avoiding global state.

    ``root_dir`` is the boundary every served path must stay inside.
    It is canonicalized once by validate_startup() and treated as
    read-only afterwards.
    """
    root_dir: Path
    host: str = field(default_factory=lambda: os.environ.get('DIRSHARE_HOST', '127.0.0.1'))
    port: int = field(default_factory=lambda: _env_int('DIRSHARE_PORT', 3000))
    cors_origins: list[str] = field(default_factory=_default_cors_origins)

    # Transfer chunk size in bytes; bounds per-download memory.
    chunk_size: int = field(
        default_factory=lambda: _env_int('DIRSHARE_CHUNK_SIZE', DEFAULT_CHUNK_SIZE)
    )
    preview_max_bytes: int = field(
        default_factory=lambda: _env_int('DIRSHARE_PREVIEW_MAX_BYTES', DEFAULT_PREVIEW_MAX_BYTES)
    )

    # Base for share URLs; falls back to the request's scheme and Host.
    public_base_url: str | None = field(
        default_factory=lambda: os.environ.get('DIRSHARE_PUBLIC_URL') or None
    )

    _validated: bool = field(default=False, init=False, repr=False)

    @classmethod
    def from_env(cls, root_dir: Path | str | None = None) -> 'APIConfig':
        """Build a config from environment variables.

        Args:
            root_dir: Directory to serve. Defaults to DIRSHARE_ROOT,
                then the current working directory.
        """
        if root_dir is None:
            root_dir = os.environ.get('DIRSHARE_ROOT') or Path.cwd()
        return cls(root_dir=Path(root_dir))

    def validate_startup(self) -> None:
        """Canonicalize root_dir and check the remaining settings.

        Safe to call more than once; canonicalization happens on the
        first call only.

        Raises:
            ValueError: If root_dir does not resolve to a directory or a
                numeric setting is out of range.
        """
        if not self._validated:
            try:
                resolved = Path(self.root_dir).expanduser().resolve(strict=True)
            except (OSError, RuntimeError) as e:
                raise ValueError(f"Failed to resolve root directory '{self.root_dir}': {e}")
            if not resolved.is_dir():
                raise ValueError(f"Root path '{resolved}' is not a directory")
            self.root_dir = resolved
            self._validated = True

        if self.chunk_size < MIN_CHUNK_SIZE:
            raise ValueError(
                f'DIRSHARE_CHUNK_SIZE must be at least {MIN_CHUNK_SIZE} bytes, '
                f'got {self.chunk_size}'
            )
        if self.preview_max_bytes <= 0:
            raise ValueError('DIRSHARE_PREVIEW_MAX_BYTES must be positive')
        if self.public_base_url:
            self.public_base_url = self.public_base_url.rstrip('/')
