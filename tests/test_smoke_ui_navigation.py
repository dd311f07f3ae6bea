from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _headless(monkeypatch: pytest.MonkeyPatch) -> None:
    # Headless SDL for CI, no speech, no network stories.
    monkeypatch.setenv("SDL_VIDEODRIVER", "dummy")
    monkeypatch.setenv("SDL_AUDIODRIVER", "dummy")
    monkeypatch.setenv("LMS_DISABLE_TTS", "1")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)


def _key(key: int, unicode: str = "") -> None:
    import pygame

    pygame.event.post(pygame.event.Event(pygame.KEYDOWN, {"key": key, "unicode": unicode}))


def test_ui_smoke_play_counting_then_back_home() -> None:
    import pygame

    from little_math_star.app import run

    def inject(frame: int) -> None:
        # Home -> Counting, answer with every digit, then back to Home.
        if frame == 1:
            _key(pygame.K_RETURN)
        elif 2 <= frame <= 11:
            digit = str(frame - 2)
            _key(getattr(pygame, f"K_{digit}"), digit)
        elif frame == 14:
            _key(pygame.K_ESCAPE)

    assert run(max_frames=20, event_injector=inject) == 0


def test_ui_smoke_adding_with_pictures_toggle() -> None:
    import pygame

    from little_math_star.app import run

    def inject(frame: int) -> None:
        # Home -> harder tier -> Adding, toggle pictures twice, back out.
        if frame == 1:
            _key(pygame.K_RIGHT)
        elif frame == 2:
            _key(pygame.K_DOWN)
        elif frame == 3:
            _key(pygame.K_RETURN)
        elif frame in (5, 7):
            _key(pygame.K_v, "v")
        elif frame == 9:
            _key(pygame.K_BACKSPACE)

    assert run(max_frames=15, event_injector=inject) == 0


def test_ui_smoke_story_mode_offline() -> None:
    import pygame

    from little_math_star.app import run

    def inject(frame: int) -> None:
        # Home -> Magic Story, pick 3, then read again and leave.
        if frame in (1, 2):
            _key(pygame.K_DOWN)
        elif frame == 3:
            _key(pygame.K_RETURN)
        elif frame == 4:
            _key(pygame.K_3, "3")
        elif frame == 20:
            _key(pygame.K_r, "r")
        elif frame == 22:
            _key(pygame.K_ESCAPE)

    assert run(max_frames=30, event_injector=inject) == 0


def test_ui_smoke_escape_on_home_quits() -> None:
    import pygame

    from little_math_star.app import run

    def inject(frame: int) -> None:
        if frame == 1:
            _key(pygame.K_ESCAPE)

    assert run(max_frames=50, event_injector=inject) == 0


def test_game_screen_routes_keys_and_clicks() -> None:
    import pygame

    from little_math_star.app import App, GameScreen
    from little_math_star.difficulty import GameMode
    from little_math_star.evaluator import SessionPhase, SoundKind

    class SilentSpeaker:
        def speak(self, text: str) -> None:
            return

        def stop(self) -> None:
            return

        def update(self) -> None:
            return

    class NoSounds:
        def __init__(self) -> None:
            self.played: list[SoundKind] = []

        def play(self, kind: SoundKind) -> None:
            self.played.append(kind)

        def stop(self) -> None:
            return

    class StillClock:
        def now(self) -> float:
            return 0.0

    pygame.init()
    try:
        surface = pygame.display.set_mode((960, 640))
        sounds = NoSounds()
        app = App(surface, pygame.font.Font(None, 36), clock=StillClock(), speaker=SilentSpeaker(), sounds=sounds)  # type: ignore[arg-type]
        screen = GameScreen(app, mode=GameMode.COUNTING, seed=5)
        app.push(screen)
        app.render()

        question = screen.session.question
        wrong = next(v for v in question.options if v != question.correct_answer)
        screen.handle_event(pygame.event.Event(pygame.MOUSEBUTTONDOWN, {"button": 1, "pos": _center_of(screen, wrong)}))
        assert screen.session.state.wrong_mark == wrong
        assert sounds.played == [SoundKind.WRONG]
        app.render()

        screen.handle_event(
            pygame.event.Event(pygame.MOUSEBUTTONDOWN, {"button": 1, "pos": _center_of(screen, question.correct_answer)})
        )
        assert screen.session.state.phase is SessionPhase.LOCKED
        app.render()
        app.quit()
        assert screen.session.closed
    finally:
        pygame.quit()


def _center_of(screen: object, value: int) -> tuple[int, int]:
    for rect, v in screen._option_hitboxes:  # type: ignore[attr-defined]
        if v == value:
            return rect.center
    raise AssertionError(f"no button for {value}")
