from __future__ import annotations

import logging
import math
from array import array

import pygame

from .evaluator import SoundKind

logger = logging.getLogger(__name__)

SOUND_VOLUMES: dict[SoundKind, float] = {
    SoundKind.CLICK: 0.2,
    SoundKind.CORRECT: 0.4,
    SoundKind.WRONG: 0.4,
}

# (frequency_hz, duration_s) segments per effect; 0 Hz is a gap.
_SOUND_SHAPES: dict[SoundKind, tuple[tuple[float, float], ...]] = {
    SoundKind.CLICK: ((1320.0, 0.035),),
    SoundKind.CORRECT: ((660.0, 0.08), (0.0, 0.02), (880.0, 0.08), (0.0, 0.02), (1320.0, 0.16)),
    SoundKind.WRONG: ((233.0, 0.12), (0.0, 0.03), (196.0, 0.20)),
}


class SoundBoard:
    """Synthesized UI sounds played through pygame.mixer.

    Playback is fire-and-forget and may overlap; any mixer failure leaves
    the board silent rather than interrupting the game.
    """

    _amp = 32767

    def __init__(self) -> None:
        self._available = False
        self._sample_rate = 22050
        self._channels = 1
        self._sounds: dict[SoundKind, pygame.mixer.Sound] = {}
        try:
            if pygame.mixer.get_init() is None:
                pygame.mixer.init(frequency=self._sample_rate, size=-16, channels=1, buffer=512)
            # pygame.init() may already have opened the mixer in another format.
            self._sample_rate, _, self._channels = pygame.mixer.get_init()
            for kind, shape in _SOUND_SHAPES.items():
                sound = pygame.mixer.Sound(buffer=self._render_shape_pcm(shape).tobytes())
                sound.set_volume(SOUND_VOLUMES[kind])
                self._sounds[kind] = sound
            self._available = True
        except pygame.error as exc:
            logger.debug("sound disabled: %s", exc)
            self._sounds.clear()

    @property
    def available(self) -> bool:
        return self._available

    def play(self, kind: SoundKind) -> None:
        if not self._available:
            return
        sound = self._sounds.get(SoundKind(kind))
        if sound is None:
            return
        try:
            sound.play()
        except pygame.error as exc:
            logger.debug("could not play %s: %s", kind, exc)

    def stop(self) -> None:
        if not self._available:
            return
        try:
            pygame.mixer.stop()
        except pygame.error as exc:
            logger.debug("could not stop mixer: %s", exc)

    def _render_shape_pcm(self, shape: tuple[tuple[float, float], ...]) -> array[int]:
        out = array("h")
        for frequency_hz, duration_s in shape:
            if frequency_hz <= 0.0:
                out.extend(self._render_silence_pcm(duration_s))
            else:
                out.extend(self._render_tone_pcm(frequency_hz, duration_s, gain=0.8))
        return out

    def _render_tone_pcm(self, frequency_hz: float, duration_s: float, *, gain: float) -> array[int]:
        sample_count = max(1, int(self._sample_rate * duration_s))
        fade_n = max(1, int(self._sample_rate * 0.008))
        out = array("h")
        for idx in range(sample_count):
            envelope = 1.0
            if idx < fade_n:
                envelope = idx / float(fade_n)
            tail = sample_count - idx - 1
            if tail < fade_n:
                envelope = min(envelope, tail / float(fade_n))
            phase = (2.0 * math.pi * float(frequency_hz) * idx) / float(self._sample_rate)
            sample = math.sin(phase) * gain * max(0.0, envelope)
            value = int(max(-1.0, min(1.0, sample)) * self._amp)
            for _ in range(self._channels):
                out.append(value)
        return out

    def _render_silence_pcm(self, duration_s: float) -> array[int]:
        sample_count = max(1, int(self._sample_rate * duration_s))
        return array("h", [0] * (sample_count * self._channels))
