"""In-memory share-link registry.

A share token is a bearer capability for exactly one file: anyone who
presents it may download that file. Tokens are random UUIDs held only
in process memory, so every link dies with the process. There is no
expiry and no revocation.

The stored path is a point-in-time fact. ``resolve`` never trusts it:
the file may have been deleted, replaced by a symlink or turned into a
directory since the token was minted, so each redemption re-runs the
root-boundary check and the regular-file check.

Concurrency: the token map is split into lock stripes keyed by token,
so inserts and lookups of unrelated tokens do not contend. A lock is
held only for a dict read or write, never across filesystem calls.
"""
from __future__ import annotations

import stat
import threading
import time
import uuid
from dataclasses import dataclass
from pathlib import Path

from ..observability import get_logger
from ..observability.metrics import SHARE_REDEMPTIONS_TOTAL, SHARES_CREATED_TOTAL
from .errors import (
    FileShareError,
    InternalFileError,
    PathNotFoundError,
    ShareNotFoundError,
    SharedItemNotAFileError,
)
from .paths import canonicalize_within

logger = get_logger(__name__)

DEFAULT_STRIPES = 16


@dataclass(frozen=True)
class ShareRecord:
    """Immutable token -> file binding."""
    token: str
    path: Path
    created_at: float


def parse_token(token: str) -> str | None:
    """Return the canonical string form of a token, or None if malformed."""
    try:
        return str(uuid.UUID(token))
    except (ValueError, AttributeError, TypeError):
        return None


class ShareRegistry:
    """Token -> path map with per-redemption revalidation.

    One instance is created per application and handed to the routers
    that need it.
    """

    def __init__(self, root_dir: Path, stripes: int = DEFAULT_STRIPES):
        if stripes < 1:
            raise ValueError(f'stripes must be >= 1, got {stripes}')
        self.root_dir = root_dir
        self._locks = [threading.Lock() for _ in range(stripes)]
        self._shards: list[dict[str, ShareRecord]] = [{} for _ in range(stripes)]

    def _stripe(self, token: str) -> int:
        return hash(token) % len(self._locks)

    def create(self, path: Path) -> str:
        """Mint a token for an already validated file path.

        Always succeeds; callers are responsible for having checked that
        ``path`` is a regular file inside the root.
        """
        token = str(uuid.uuid4())
        record = ShareRecord(token=token, path=path, created_at=time.time())
        idx = self._stripe(token)
        with self._locks[idx]:
            self._shards[idx][token] = record
        SHARES_CREATED_TOTAL.inc()
        logger.info('share_created', token=token, path=str(path))
        return token

    def get(self, token: str) -> ShareRecord | None:
        """Look up a token without revalidating the target."""
        canonical = parse_token(token)
        if canonical is None:
            return None
        idx = self._stripe(canonical)
        with self._locks[idx]:
            return self._shards[idx].get(canonical)

    def resolve(self, token: str) -> Path:
        """Redeem a token, returning the file's current canonical path.

        Raises:
            ShareNotFoundError: Token unknown or malformed.
            PathNotFoundError: Target no longer exists.
            AccessDeniedError: Target now resolves outside the root.
            SharedItemNotAFileError: Target is no longer a regular file.
            InternalFileError: Target could not be inspected.
        """
        record = self.get(token)
        if record is None:
            logger.info('share_not_found')
            SHARE_REDEMPTIONS_TOTAL.labels(outcome='unknown_token').inc()
            raise ShareNotFoundError()

        try:
            resolved = canonicalize_within(
                self.root_dir, record.path, requested=f'share:{record.token}',
            )
            self._require_regular_file(resolved)
        except FileShareError as e:
            logger.warning(
                'share_revalidation_failed',
                token=record.token,
                error=e.code,
            )
            SHARE_REDEMPTIONS_TOTAL.labels(outcome=e.code).inc()
            raise

        SHARE_REDEMPTIONS_TOTAL.labels(outcome='ok').inc()
        return resolved

    @staticmethod
    def _require_regular_file(path: Path) -> None:
        try:
            st = path.stat()
        except FileNotFoundError:
            raise PathNotFoundError('Shared file not found.')
        except OSError:
            raise InternalFileError('Cannot access shared file.')
        if not stat.S_ISREG(st.st_mode):
            raise SharedItemNotAFileError()

    def __len__(self) -> int:
        total = 0
        for lock, shard in zip(self._locks, self._shards):
            with lock:
                total += len(shard)
        return total

    def __contains__(self, token: str) -> bool:
        return self.get(token) is not None
