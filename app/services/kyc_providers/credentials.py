import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Union

from .results import Failure

if TYPE_CHECKING:
    from .base import KYCProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    token: str
    obtained_at: datetime


class CredentialManager:
    """Bearer credential scoped to a single verification run.

    Each run builds its own manager and passes it to every provider call;
    nothing is shared between runs. A failed acquisition is cached as well,
    so the remaining calls of the run fail fast with the same Failure.
    """

    def __init__(self, provider: "KYCProvider"):
        self._provider = provider
        self._current: Union[Credential, Failure, None] = None

    async def obtain_token(self) -> Union[Credential, Failure]:
        self._current = await self._provider.generate_token()
        if isinstance(self._current, Failure):
            logger.error(f"[CREDENTIALS] token acquisition failed: {self._current.message}")
        return self._current

    async def ensure_token(self) -> Union[Credential, Failure]:
        if self._current is None:
            return await self.obtain_token()
        return self._current
