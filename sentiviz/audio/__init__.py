"""Audio capture module.

MicrophoneSource lives in `sentiviz.audio.capture` and needs PyAudio.
"""

from .base import AudioSource

__all__ = [
    'AudioSource',
]
