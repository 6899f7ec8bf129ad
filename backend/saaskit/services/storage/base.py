from __future__ import annotations

from abc import ABC, abstractmethod

from saaskit.services.status import ServiceConfigStatus


class StorageService(ABC):
    """Per-user object storage. Keys are scoped as ``uploads/<user_id>/<file_name>``."""

    required = False

    @abstractmethod
    async def upload_file(
        self, user_id: str, file_name: str, data: bytes, content_type: str | None = None, acl: str = "private"
    ) -> str: ...

    @abstractmethod
    async def get_file_url(self, user_id: str, file_name: str, expires_in: int = 3600) -> str: ...

    @abstractmethod
    async def delete_file(self, user_id: str, file_name: str) -> None: ...

    @abstractmethod
    async def check_configuration(self) -> ServiceConfigStatus: ...

    @abstractmethod
    async def check_connection(self) -> ServiceConfigStatus: ...
