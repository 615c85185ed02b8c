# access.py
import enum
import logging
from typing import Iterable, Optional

from .config import Settings, get_settings
from .exceptions import AccessDeniedError


class Permission(enum.Enum):
    READ = "read"  # list, search, download
    WRITE = "write"  # create, rename, move, update, delete, upload


class AccessController:
    """
    Grants capabilities from the role tags a caller presents.
    Tags are compared case-insensitively.
    """

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.read_tags = {tag.lower() for tag in settings.DAM_READ_TAGS}
        self.write_tags = {tag.lower() for tag in settings.DAM_WRITE_TAGS}

    @staticmethod
    def _normalize(user_tags: Iterable[str] | None) -> set:
        return {str(tag).strip().lower() for tag in (user_tags or []) if str(tag).strip()}

    def can_read(self, user_tags: Iterable[str] | None) -> bool:
        # Anyone who may write may also read.
        tags = self._normalize(user_tags)
        return bool(tags & (self.read_tags | self.write_tags))

    def can_write(self, user_tags: Iterable[str] | None) -> bool:
        return bool(self._normalize(user_tags) & self.write_tags)

    def require(self, permission: Permission, user_tags: Iterable[str] | None) -> None:
        """Raises AccessDeniedError unless the tags grant `permission`."""
        allowed = (
            self.can_write(user_tags)
            if permission is Permission.WRITE
            else self.can_read(user_tags)
        )
        if not allowed:
            logging.warning(
                f"Denied {permission.value} access for tags {sorted(self._normalize(user_tags))}"
            )
            raise AccessDeniedError(
                f"Access denied: {permission.value} permission required"
            )
