"""On-disk storage for the serialized msal token cache.

Pure storage: the blob is opaque here. Every failure is logged and
swallowed, since losing the cache only forces a fresh sign-in.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional


logger = logging.getLogger(__name__)


class TokenCacheStore:
    """Reads, writes and deletes one cache file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        """Return the cached blob, or None if absent or unreadable.

        An unreadable file is deleted so the next load starts clean.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Cannot create cache directory %s: %s", self.path.parent, exc)
            return None

        if not self.path.exists():
            return None

        try:
            return self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Unreadable token cache at %s, removing it: %s", self.path, exc)
            self.clear()
            return None

    def save(self, serialized: str):
        """Atomically replace the cache file with ``serialized``."""
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(serialized)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
            tmp_name = None
            logger.debug("Token cache saved to %s", self.path)
        except OSError as exc:
            logger.error("Error saving token cache: %s", exc)
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def clear(self):
        """Delete the cache file if present."""
        try:
            self.path.unlink()
            logger.info("Token cache removed: %s", self.path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.error("Error removing token cache: %s", exc)

    def exists(self) -> bool:
        return self.path.exists()
