from __future__ import annotations

from abc import ABC, abstractmethod

from saaskit.services.status import ServiceConfigStatus


class EmailDeliveryError(Exception):
    pass


class EmailService(ABC):
    required = True

    @abstractmethod
    async def send_email(self, to: str, subject: str, html: str) -> None:
        """Send one HTML email. Raises EmailDeliveryError on a rejected send."""

    @abstractmethod
    async def check_configuration(self) -> ServiceConfigStatus: ...

    @abstractmethod
    async def check_connection(self) -> ServiceConfigStatus: ...
