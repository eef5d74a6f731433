"""Audio-related data models."""

import time
from dataclasses import dataclass, field
from enum import Enum

import numpy as np


@dataclass(frozen=True)
class AudioFormat:
    """PCM format of buffers delivered by an input node."""
    sample_rate: int = 16000
    channels: int = 1
    sample_width: int = 2  # bytes per sample, 16-bit signed

    @property
    def bytes_per_second(self) -> int:
        return self.sample_rate * self.channels * self.sample_width


@dataclass
class AudioBuffer:
    """A block of raw microphone audio handed to a tap."""
    data: bytes
    audio_format: AudioFormat
    sequence_number: int = 0
    timestamp: float = field(default_factory=time.time)

    @property
    def duration_seconds(self) -> float:
        return len(self.data) / self.audio_format.bytes_per_second

    @property
    def peak_level(self) -> float:
        """Peak amplitude normalized to 0.0 - 1.0."""
        if not self.data:
            return 0.0
        samples = np.frombuffer(self.data, dtype=np.int16)
        if samples.size == 0:
            return 0.0
        return float(np.max(np.abs(samples.astype(np.int32)))) / 32768.0


class AudioSessionCategory(Enum):
    PLAYBACK = "playback"
    RECORD = "record"
    PLAY_AND_RECORD = "play_and_record"


class AudioSessionMode(Enum):
    DEFAULT = "default"
    MEASUREMENT = "measurement"


class AudioSessionOption(Enum):
    DUCK_OTHERS = "duck_others"
    DEFAULT_TO_SPEAKER = "default_to_speaker"
    ALLOW_BLUETOOTH = "allow_bluetooth"
