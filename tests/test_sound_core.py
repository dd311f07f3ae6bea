from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pygame  # noqa: E402

from little_math_star.evaluator import SoundKind  # noqa: E402
from little_math_star.sound import SOUND_VOLUMES, SoundBoard  # noqa: E402


@pytest.fixture
def dummy_audio(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("SDL_AUDIODRIVER", "dummy")
    pygame.mixer.quit()
    yield
    pygame.mixer.quit()


class FakeSound:
    def __init__(self, *, buffer: bytes) -> None:
        self.buffer = buffer
        self.volume = 1.0
        self.plays = 0

    def set_volume(self, volume: float) -> None:
        self.volume = volume

    def play(self) -> None:
        self.plays += 1


class BrokenSound:
    def play(self) -> None:
        raise pygame.error("device lost")


def _fake_mixer(monkeypatch: pytest.MonkeyPatch, *, channels: int) -> list[FakeSound]:
    built: list[FakeSound] = []

    def make_sound(*, buffer: bytes) -> FakeSound:
        sound = FakeSound(buffer=buffer)
        built.append(sound)
        return sound

    monkeypatch.setattr(pygame.mixer, "get_init", lambda: (22050, -16, channels))
    monkeypatch.setattr(pygame.mixer, "Sound", make_sound)
    return built


def test_volumes_per_kind() -> None:
    assert SOUND_VOLUMES == {
        SoundKind.CLICK: 0.2,
        SoundKind.CORRECT: 0.4,
        SoundKind.WRONG: 0.4,
    }


def test_real_mixer_sounds_carry_configured_volume(dummy_audio: None) -> None:
    board = SoundBoard()
    assert board.available is True
    for kind, volume in SOUND_VOLUMES.items():
        # The mixer stores volume in 1/128 steps.
        assert board._sounds[kind].get_volume() == pytest.approx(volume, abs=0.01)
    board.play(SoundKind.CLICK)
    board.stop()


def test_fake_mixer_builds_one_sound_per_kind(monkeypatch: pytest.MonkeyPatch) -> None:
    built = _fake_mixer(monkeypatch, channels=1)
    board = SoundBoard()
    assert board.available is True
    assert sorted(s.volume for s in built) == [0.2, 0.4, 0.4]

    board.play(SoundKind.WRONG)
    board.play("correct")  # type: ignore[arg-type]
    assert board._sounds[SoundKind.WRONG].plays == 1  # type: ignore[attr-defined]
    assert board._sounds[SoundKind.CORRECT].plays == 1  # type: ignore[attr-defined]


def test_pcm_is_written_once_per_output_channel(monkeypatch: pytest.MonkeyPatch) -> None:
    mono = _fake_mixer(monkeypatch, channels=1)
    SoundBoard()
    stereo = _fake_mixer(monkeypatch, channels=2)
    SoundBoard()
    for one, two in zip(mono, stereo):
        assert len(two.buffer) == 2 * len(one.buffer)


def test_play_swallows_mixer_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    _fake_mixer(monkeypatch, channels=1)
    board = SoundBoard()
    board._sounds[SoundKind.CLICK] = BrokenSound()  # type: ignore[assignment]
    board.play(SoundKind.CLICK)
    assert board.available is True


def test_mixer_init_failure_leaves_board_silent(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(**_: object) -> None:
        raise pygame.error("no audio device")

    monkeypatch.setattr(pygame.mixer, "get_init", lambda: None)
    monkeypatch.setattr(pygame.mixer, "init", fail)
    board = SoundBoard()
    assert board.available is False
    board.play(SoundKind.CORRECT)
    board.stop()
