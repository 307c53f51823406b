"""Abstract audio source."""

from abc import ABC, abstractmethod
from typing import Callable

from ..models.events import AudioEvent


class AudioSource(ABC):
    """Something that pushes audio chunks to a callback while open."""

    sample_rate: int = 16000
    channels: int = 1

    @abstractmethod
    def open(self, callback: Callable[[AudioEvent], None]) -> None:
        """Acquire the device and start delivering chunks.

        The callback may be invoked from another thread.

        Raises:
            PermissionDenied: Access to the microphone was refused
            DeviceNotFound: No usable input device
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Stop delivering chunks and release the device. Idempotent."""
        pass

    @property
    @abstractmethod
    def is_open(self) -> bool:
        pass
