"""Token-set persistence: one JSON file per config directory, mode 600.

No locking: concurrent invocations sharing a config directory race on the
file and the last writer wins.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import stat
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from neonctl.errors import CredentialsError

logger = logging.getLogger(__name__)

_KNOWN_FIELDS = ("access_token", "refresh_token", "expires_at", "user_id")


@dataclass
class TokenSet:
    access_token: str
    refresh_token: str | None = None
    expires_at: float | None = None
    user_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_token_response(cls, data: dict[str, Any], *, now: float | None = None) -> TokenSet:
        """Build from an OAuth token endpoint response.

        expires_in is relative to `now`; an absolute expires_at is used only without it.
        """
        issued = time.time() if now is None else now
        extra = {
            k: v
            for k, v in data.items()
            if k not in _KNOWN_FIELDS and k != "expires_in"
        }
        expires_in = data.get("expires_in")
        if expires_in is not None:
            expires_at = issued + float(expires_in)
        elif data.get("expires_at") is not None:
            expires_at = float(data["expires_at"])
        else:
            expires_at = None
        return cls(
            access_token=data.get("access_token") or "",
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at,
            extra=extra,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenSet:
        extra = {k: v for k, v in data.items() if k not in _KNOWN_FIELDS}
        expires_at = data.get("expires_at")
        return cls(
            access_token=data.get("access_token") or "",
            refresh_token=data.get("refresh_token"),
            expires_at=float(expires_at) if expires_at is not None else None,
            user_id=data.get("user_id"),
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extra)
        data["access_token"] = self.access_token
        if self.refresh_token is not None:
            data["refresh_token"] = self.refresh_token
        if self.expires_at is not None:
            data["expires_at"] = self.expires_at
        if self.user_id is not None:
            data["user_id"] = self.user_id
        return data

    def expired(self, *, now: float | None = None) -> bool:
        """A token without a known expiry is treated as valid."""
        if self.expires_at is None:
            return False
        return self.expires_at <= (time.time() if now is None else now)


class CredentialStore:
    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> TokenSet | None:
        """Return the stored token set, or None if there is no file.

        Raises CredentialsError when the file exists but is unusable.
        """
        logger.debug("Trying to read credentials from %s", self.path)
        try:
            contents = self.path.read_text()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CredentialsError(f"Cannot read {self.path}: {e}") from e

        logger.debug("Credentials MD5 hash: %s", _md5(contents))
        try:
            data = json.loads(contents)
        except json.JSONDecodeError as e:
            raise CredentialsError(f"{self.path} is not valid JSON") from e
        if not isinstance(data, dict):
            raise CredentialsError(f"{self.path} does not contain a token set")

        try:
            token_set = TokenSet.from_dict(data)
        except (TypeError, ValueError) as e:
            raise CredentialsError(f"{self.path} has an invalid expires_at") from e
        if not token_set.access_token:
            raise CredentialsError(f"{self.path} has no access token")
        return token_set

    def save(self, token_set: TokenSet) -> Path:
        """Replace the credential file in one rename so readers never see a partial write."""
        contents = json.dumps(token_set.to_dict())
        self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".credentials-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(contents)
            os.chmod(tmp, stat.S_IRUSR | stat.S_IWUSR)  # 0600
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.info("Saved credentials to %s", self.path)
        logger.debug("Credentials MD5 hash: %s", _md5(contents))
        return self.path

    def remove(self) -> bool:
        """Delete the credential file. Returns True if it existed."""
        if self.path.exists():
            self.path.unlink()
            return True
        return False


def _md5(contents: str) -> str:
    return hashlib.md5(contents.encode()).hexdigest()
