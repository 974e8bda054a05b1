"""PCM16 chunk utilities."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass

import numpy as np

from constants import (
    AUDIO_SAMPLE_RATE_HZ,
    AUDIO_SAMPLE_WIDTH_BYTES,
    AUDIO_SILENCE_LEVEL,
)


def coerce_bytes(chunk: bytes | bytearray | memoryview | str) -> bytes:
    """
    Accept raw bytes or a base64 string (as produced by the capture side).

    Raises:
        ValueError on a string that is not valid base64.
    """
    if isinstance(chunk, str):
        try:
            return base64.b64decode(chunk, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"invalid base64 payload: {e}") from e
    return bytes(chunk)


@dataclass(frozen=True)
class PcmStats:
    """Level summary of one chunk, in raw int16 units."""
    samples: int
    duration_ms: float
    rms: float
    peak: int
    silence_pct: float

    def to_dict(self) -> dict[str, float | int]:
        return {
            "samples": self.samples,
            "duration_ms": round(self.duration_ms, 1),
            "rms": round(self.rms, 1),
            "peak": self.peak,
            "silence_pct": round(self.silence_pct, 1),
        }


def analyze_pcm16(pcm_bytes: bytes, silence_level: int = AUDIO_SILENCE_LEVEL) -> PcmStats:
    """
    Measure one PCM16LE chunk for diagnostics.

    silence_pct is the share of samples whose magnitude is below silence_level.
    """
    usable = len(pcm_bytes) - (len(pcm_bytes) % AUDIO_SAMPLE_WIDTH_BYTES)
    samples = np.frombuffer(pcm_bytes[:usable], dtype="<i2").astype(np.int32)
    if samples.size == 0:
        return PcmStats(samples=0, duration_ms=0.0, rms=0.0, peak=0, silence_pct=100.0)

    magnitude = np.abs(samples)
    return PcmStats(
        samples=int(samples.size),
        duration_ms=samples.size * 1000.0 / AUDIO_SAMPLE_RATE_HZ,
        rms=float(np.sqrt(np.mean(np.square(samples, dtype=np.float64)))),
        peak=int(magnitude.max()),
        silence_pct=float(np.count_nonzero(magnitude < silence_level) * 100.0 / samples.size),
    )
