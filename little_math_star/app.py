"""Pygame UI shell for Little Math Star.

Home screen with a difficulty picker, plus three modes:
- Counting (how many glyphs?)
- Adding (a plus b)
- Magic Story (a tiny story about a number)

Deterministic question generation, answer evaluation and timed feedback live
in the core modules; this layer only renders, routes input and owns the
speech/sound adapters.
"""

from __future__ import annotations

import logging
import math
import os
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .difficulty import Difficulty, GameMode
from .evaluator import SessionPhase, SoundKind
from .feedback import Clock, RealClock
from .input_router import InputRouter
from .questions import AdditionOperands, CountingOperands, Question
from .session import GameSession
from .sound import SoundBoard
from .speech import OfflineSpeaker
from .story import STORY_NUMBERS, StoryPhase, StorySession, StoryTeller, model_from_env

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "LMS_LOG_LEVEL"

WINDOW_SIZE = (960, 640)
TARGET_FPS = 60
CONFETTI_S = 2.5

BG = (248, 250, 252)
PANEL_BG = (255, 255, 255)
BORDER = (226, 232, 240)
TEXT_MAIN = (31, 41, 55)
TEXT_MUTED = (148, 163, 184)
BLUE = (59, 130, 246)
GREEN = (74, 222, 128)
YELLOW = (250, 204, 21)
RED = (248, 113, 113)
PURPLE = (147, 51, 234)

GLYPH_COLORS: dict[str, tuple[int, int, int]] = {
    "apple": (239, 68, 68),
    "banana": (250, 204, 21),
    "dog": (180, 120, 70),
    "cat": (251, 146, 60),
    "frog": (34, 197, 94),
    "duck": (253, 224, 71),
    "balloon": (236, 72, 153),
    "star": (234, 179, 8),
    "cookie": (161, 98, 7),
    "car": (59, 130, 246),
}

TIER_COLORS: dict[Difficulty, tuple[int, int, int]] = {
    Difficulty.EASY: GREEN,
    Difficulty.MEDIUM: YELLOW,
    Difficulty.HARD: RED,
}

MODE_LABELS: dict[GameMode, str] = {
    GameMode.COUNTING: "Let's Count!",
    GameMode.ADDITION: "Let's Add!",
}
STORY_LABEL = "Story Time!"


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def update(self) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...
    def close(self) -> None: ...


@dataclass(slots=True)
class _ConfettiPiece:
    x: float
    y: float
    vx: float
    vy: float
    color: tuple[int, int, int]
    size: int


class Confetti:
    """Short celebratory particle burst shown after a correct answer."""

    _colors = (BLUE, GREEN, YELLOW, RED, PURPLE, (236, 72, 153))

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._rng = random.Random()
        self._pieces: list[_ConfettiPiece] = []
        self._ends_at_s = 0.0
        self._last_s = 0.0

    @property
    def active(self) -> bool:
        return bool(self._pieces)

    def burst(self, width: int) -> None:
        now = self._clock.now()
        self._ends_at_s = now + CONFETTI_S
        self._last_s = now
        self._pieces = [
            _ConfettiPiece(
                x=self._rng.uniform(0, width),
                y=self._rng.uniform(-120, 0),
                vx=self._rng.uniform(-40, 40),
                vy=self._rng.uniform(140, 320),
                color=self._rng.choice(self._colors),
                size=self._rng.randint(5, 10),
            )
            for _ in range(90)
        ]

    def update(self) -> None:
        if not self._pieces:
            return
        now = self._clock.now()
        if now >= self._ends_at_s:
            self._pieces = []
            return
        dt = max(0.0, now - self._last_s)
        self._last_s = now
        for piece in self._pieces:
            piece.x += piece.vx * dt
            piece.y += piece.vy * dt

    def render(self, surface: pygame.Surface) -> None:
        for piece in self._pieces:
            pygame.draw.rect(surface, piece.color, pygame.Rect(int(piece.x), int(piece.y), piece.size, piece.size))


class App:
    def __init__(
        self,
        surface: pygame.Surface,
        font: pygame.font.Font,
        *,
        clock: Clock,
        speaker: OfflineSpeaker,
        sounds: SoundBoard,
    ) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True
        self.clock = clock
        self.speaker = speaker
        self.sounds = sounds
        self.difficulty = Difficulty.MEDIUM
        self.score = 0
        self.confetti = Confetti(clock)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop().close()

    def quit(self) -> None:
        for screen in reversed(self._screens):
            screen.close()
        self._screens.clear()
        self.speaker.stop()
        self.sounds.stop()
        self._running = False

    def set_difficulty(self, tier: Difficulty) -> None:
        self.difficulty = Difficulty(tier)
        self.speaker.speak(self.difficulty.value)
        self.sounds.play(SoundKind.CLICK)

    def reward(self) -> None:
        self.score += 1
        self.sounds.play(SoundKind.CORRECT)
        self.confetti.burst(self._surface.get_width())

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def update(self) -> None:
        if self._screens:
            self._screens[-1].update()
        self.speaker.update()
        self.confetti.update()

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)
        self.confetti.render(self._surface)


def _draw_button(
    surface: pygame.Surface,
    rect: pygame.Rect,
    label: str,
    font: pygame.font.Font,
    *,
    fill: tuple[int, int, int],
    text: tuple[int, int, int] = (255, 255, 255),
    ring: tuple[int, int, int] | None = None,
) -> None:
    if ring is not None:
        pygame.draw.rect(surface, ring, rect.inflate(12, 12), border_radius=26)
    shadow = rect.move(0, 5)
    pygame.draw.rect(surface, tuple(max(0, c - 50) for c in fill), shadow, border_radius=22)
    pygame.draw.rect(surface, fill, rect, border_radius=22)
    img = font.render(label, True, text)
    surface.blit(img, img.get_rect(center=rect.center))


def _draw_glyph(surface: pygame.Surface, glyph: str, center: tuple[int, int], radius: int) -> None:
    color = GLYPH_COLORS.get(glyph, BLUE)
    cx, cy = center
    if glyph == "star":
        points = []
        for i in range(10):
            r = radius if i % 2 == 0 else radius * 0.45
            angle = -math.pi / 2 + i * math.pi / 5
            points.append((cx + r * math.cos(angle), cy + r * math.sin(angle)))
        pygame.draw.polygon(surface, color, points)
    elif glyph in ("car", "cookie"):
        rect = pygame.Rect(0, 0, radius * 2, int(radius * 1.4))
        rect.center = center
        pygame.draw.rect(surface, color, rect, border_radius=radius // 2)
    elif glyph == "balloon":
        body_w = int(radius * 1.6)
        pygame.draw.ellipse(surface, color, pygame.Rect(cx - body_w // 2, cy - radius, body_w, radius * 2))
        pygame.draw.line(surface, TEXT_MUTED, (cx, cy + radius), (cx, cy + radius + radius // 2), 2)
    else:
        pygame.draw.circle(surface, color, center, radius)
        pygame.draw.circle(surface, tuple(max(0, c - 40) for c in color), center, radius, 2)


def _layout_glyphs(count: int, area: pygame.Rect) -> tuple[list[tuple[int, int]], int]:
    if count <= 0:
        return [], 0
    cols = max(1, min(count, int(math.ceil(math.sqrt(count * area.w / max(1, area.h))))))
    rows = int(math.ceil(count / cols))
    cell = max(8, min(area.w // cols, area.h // rows))
    radius = max(4, int(cell * 0.38))
    total_w = cols * cell
    total_h = rows * cell
    x0 = area.centerx - total_w // 2 + cell // 2
    y0 = area.centery - total_h // 2 + cell // 2
    centers = [(x0 + (i % cols) * cell, y0 + (i // cols) * cell) for i in range(count)]
    return centers, radius


class HomeScreen:
    _tiers = (Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD)

    def __init__(self, app: App, *, open_mode: Callable[[GameMode], None], open_story: Callable[[], None]) -> None:
        self._app = app
        self._title_font = pygame.font.Font(None, 84)
        self._item_font = pygame.font.Font(None, 40)
        self._hint_font = pygame.font.Font(None, 22)
        self._items: list[tuple[str, Callable[[], None], tuple[int, int, int]]] = [
            ("Counting", lambda: open_mode(GameMode.COUNTING), BLUE),
            ("Adding", lambda: open_mode(GameMode.ADDITION), GREEN),
            ("Magic Story", open_story, YELLOW),
            ("Quit", app.quit, TEXT_MUTED),
        ]
        self._selected = 0
        self._tier_hitboxes: dict[Difficulty, pygame.Rect] = {}
        self._item_hitboxes: list[pygame.Rect] = []

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN:
            self._handle_key(event.key)
            return
        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            for tier, rect in self._tier_hitboxes.items():
                if rect.collidepoint(event.pos):
                    self._app.set_difficulty(tier)
                    return
            for idx, rect in enumerate(self._item_hitboxes):
                if rect.collidepoint(event.pos):
                    self._selected = idx
                    self._items[idx][1]()
                    return

    def _handle_key(self, key: int) -> None:
        if key in (pygame.K_UP, pygame.K_w):
            self._selected = (self._selected - 1) % len(self._items)
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._selected = (self._selected + 1) % len(self._items)
        elif key in (pygame.K_LEFT, pygame.K_RIGHT):
            idx = self._tiers.index(self._app.difficulty)
            step = -1 if key == pygame.K_LEFT else 1
            self._app.set_difficulty(self._tiers[max(0, min(len(self._tiers) - 1, idx + step))])
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._items[self._selected][1]()
        elif key == pygame.K_ESCAPE:
            self._app.quit()

    def update(self) -> None:
        return

    def close(self) -> None:
        return

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)

        title = self._title_font.render("Little Math Star", True, BLUE)
        surface.blit(title, title.get_rect(midtop=(w // 2, max(20, h // 16))))
        sub = self._hint_font.render("Let's play and learn!", True, TEXT_MUTED)
        surface.blit(sub, sub.get_rect(midtop=(w // 2, max(20, h // 16) + title.get_height() + 4)))

        label = self._hint_font.render("SELECT DIFFICULTY", True, TEXT_MUTED)
        tier_top = h // 3
        surface.blit(label, label.get_rect(midbottom=(w // 2, tier_top - 8)))
        tier_w = min(150, (w - 80) // 3)
        gap = 12
        x = w // 2 - (tier_w * 3 + gap * 2) // 2
        self._tier_hitboxes = {}
        for tier in self._tiers:
            rect = pygame.Rect(x, tier_top, tier_w, 52)
            active = tier is self._app.difficulty
            fill = TIER_COLORS[tier] if active else PANEL_BG
            _draw_button(
                surface,
                rect,
                tier.value.capitalize(),
                self._item_font,
                fill=fill,
                text=(255, 255, 255) if active else TEXT_MUTED,
            )
            self._tier_hitboxes[tier] = rect
            x += tier_w + gap

        item_w = min(420, w - 80)
        item_h = 58
        y = tier_top + 90
        self._item_hitboxes = []
        for idx, (text, _, color) in enumerate(self._items):
            rect = pygame.Rect(w // 2 - item_w // 2, y, item_w, item_h)
            ring = PURPLE if idx == self._selected else None
            _draw_button(surface, rect, text, self._item_font, fill=color, ring=ring)
            self._item_hitboxes.append(rect)
            y += item_h + 18

        footer = "Up/Down: Choose  |  Left/Right: Difficulty  |  Enter: Play  |  Esc: Quit"
        foot = self._hint_font.render(footer, True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - 10)))


class GameScreen:
    """Counting or addition game bound to one ``GameSession``."""

    def __init__(self, app: App, *, mode: GameMode, seed: int | None = None) -> None:
        self._app = app
        self._session = GameSession(
            mode=mode,
            difficulty=app.difficulty,
            clock=app.clock,
            speaker=app.speaker,
            sounds=app.sounds,
            on_correct=app.reward,
            seed=seed,
        )
        self._router = InputRouter(submit=self._session.submit, options=self._current_options)
        self._show_visuals = True
        self._title_font = pygame.font.Font(None, 52)
        self._option_font = pygame.font.Font(None, 72)
        self._number_font = pygame.font.Font(None, 96)
        self._small_font = pygame.font.Font(None, 28)
        self._hint_font = pygame.font.Font(None, 22)
        self._option_hitboxes: list[tuple[pygame.Rect, int]] = []

    @property
    def session(self) -> GameSession:
        return self._session

    def _current_options(self) -> tuple[int, ...] | None:
        if self._session.closed:
            return None
        return self._session.question.options

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN:
            if event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
                self._app.pop()
                return
            if event.key == pygame.K_v and self._session.mode is GameMode.ADDITION:
                self._show_visuals = not self._show_visuals
                return
            if event.unicode:
                self._router.key(event.unicode)
            return
        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            for rect, value in self._option_hitboxes:
                if rect.collidepoint(event.pos):
                    self._router.click(value)
                    return

    def update(self) -> None:
        self._session.update()

    def close(self) -> None:
        self._session.teardown()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)
        state = self._session.state
        question = state.question

        is_counting = self._session.mode is GameMode.COUNTING
        title = self._title_font.render("Counting" if is_counting else "Adding", True, BLUE if is_counting else GREEN)
        surface.blit(title, title.get_rect(midtop=(w // 2, 16)))
        score = self._small_font.render(f"Stars: {self._app.score}", True, TEXT_MUTED)
        surface.blit(score, score.get_rect(topright=(w - 20, 24)))
        tier = self._small_font.render(self._session.difficulty.value.capitalize(), True, TEXT_MUTED)
        surface.blit(tier, (20, 24))

        panel = pygame.Rect(40, 80, w - 80, int(h * 0.5))
        pygame.draw.rect(surface, PANEL_BG, panel, border_radius=28)
        pygame.draw.rect(surface, BORDER, panel, 3, border_radius=28)

        prompt = self._small_font.render(question.prompt, True, TEXT_MAIN)
        surface.blit(prompt, prompt.get_rect(midtop=(panel.centerx, panel.y + 12)))
        body = panel.inflate(-40, -60).move(0, 14)
        if isinstance(question.operands, CountingOperands):
            self._render_group(surface, question.glyph, question.operands.count, body)
        elif isinstance(question.operands, AdditionOperands):
            self._render_addition(surface, question, body)

        self._render_options(surface, question, pygame.Rect(40, panel.bottom + 30, w - 80, 110))

        footer = "Number keys or click: Answer  |  Esc: Home"
        if not is_counting:
            footer += "  |  V: Pictures on/off"
        foot = self._hint_font.render(footer, True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - 10)))

    def _render_group(self, surface: pygame.Surface, glyph: str, count: int, area: pygame.Rect) -> None:
        centers, radius = _layout_glyphs(count, area)
        for center in centers:
            _draw_glyph(surface, glyph, center, radius)

    def _render_addition(self, surface: pygame.Surface, question: Question, area: pygame.Rect) -> None:
        operands = question.operands
        assert isinstance(operands, AdditionOperands)
        half_w = (area.w - 80) // 2
        left = pygame.Rect(area.x, area.y, half_w, area.h - 50)
        right = pygame.Rect(area.right - half_w, area.y, half_w, area.h - 50)
        if self._show_visuals:
            self._render_group(surface, question.glyph, operands.a, left)
            self._render_group(surface, question.glyph, operands.b, right)
            font = self._small_font
            label_y = area.bottom - 24
        else:
            font = self._number_font
            label_y = area.centery
        for rect, value, color in ((left, operands.a, BLUE), (right, operands.b, GREEN)):
            img = font.render(str(value), True, color)
            surface.blit(img, img.get_rect(center=(rect.centerx, label_y)))
        plus = self._number_font.render("+", True, TEXT_MUTED)
        surface.blit(plus, plus.get_rect(center=(area.centerx, label_y if not self._show_visuals else area.centery)))

    def _render_options(self, surface: pygame.Surface, question: Question, area: pygame.Rect) -> None:
        state = self._session.state
        gap = 24
        btn_w = (area.w - gap * 2) // 3
        self._option_hitboxes = []
        for idx, value in enumerate(question.options):
            rect = pygame.Rect(area.x + idx * (btn_w + gap), area.y, btn_w, area.h)
            is_answer = value == question.correct_answer
            if state.wrong_mark == value:
                fill = RED
            elif state.phase is SessionPhase.LOCKED and is_answer:
                fill = GREEN
            else:
                fill = BLUE
            ring = YELLOW if state.hint_visible and is_answer else None
            _draw_button(surface, rect, str(value), self._option_font, fill=fill, ring=ring)
            self._option_hitboxes.append((rect, value))


class StoryScreen:
    def __init__(self, app: App, *, teller: StoryTeller) -> None:
        self._app = app
        self._session = StorySession(clock=app.clock, speaker=app.speaker, teller=teller)
        self._title_font = pygame.font.Font(None, 52)
        self._big_font = pygame.font.Font(None, 150)
        self._tile_font = pygame.font.Font(None, 56)
        self._text_font = pygame.font.Font(None, 34)
        self._hint_font = pygame.font.Font(None, 22)
        self._tile_hitboxes: list[tuple[pygame.Rect, int]] = []

    @property
    def session(self) -> StorySession:
        return self._session

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN:
            if event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
                self._app.pop()
                return
            if event.unicode:
                self._session.key(event.unicode)
            return
        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            for rect, value in self._tile_hitboxes:
                if rect.collidepoint(event.pos):
                    self._session.select(value)
                    return

    def update(self) -> None:
        self._session.update()

    def close(self) -> None:
        self._session.teardown()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)
        title = self._title_font.render("Magic Story", True, PURPLE)
        surface.blit(title, title.get_rect(midtop=(w // 2, 16)))
        self._tile_hitboxes = []

        phase = self._session.phase
        if phase is StoryPhase.PICKING:
            self._render_picker(surface)
            footer = "1-9, 0 for 10, or click: Pick a number  |  Esc: Home"
        else:
            number = self._session.number
            big = self._big_font.render(str(number), True, YELLOW)
            surface.blit(big, big.get_rect(midtop=(w // 2, 80)))
            panel = pygame.Rect(60, 220, w - 120, h - 300)
            pygame.draw.rect(surface, PANEL_BG, panel, border_radius=28)
            pygame.draw.rect(surface, (233, 213, 255), panel, 4, border_radius=28)
            if phase is StoryPhase.LOADING:
                text = "Thinking of a story..."
                footer = "Esc: Home"
            else:
                text = self._session.story
                footer = "R: Read again  |  N: New number  |  Esc: Home"
            self._draw_wrapped(surface, text, panel.inflate(-40, -40))

        foot = self._hint_font.render(footer, True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - 10)))

    def _render_picker(self, surface: pygame.Surface) -> None:
        w, _ = surface.get_size()
        prompt = self._text_font.render("Pick a number to hear a magical story!", True, TEXT_MAIN)
        surface.blit(prompt, prompt.get_rect(midtop=(w // 2, 80)))
        cols = 5
        tile = 96
        gap = 20
        x0 = w // 2 - (cols * tile + (cols - 1) * gap) // 2
        y0 = 140
        for idx, number in enumerate(STORY_NUMBERS):
            rect = pygame.Rect(x0 + (idx % cols) * (tile + gap), y0 + (idx // cols) * (tile + gap), tile, tile)
            _draw_button(surface, rect, str(number), self._tile_font, fill=YELLOW)
            self._tile_hitboxes.append((rect, number))

    def _draw_wrapped(self, surface: pygame.Surface, text: str, rect: pygame.Rect) -> None:
        words = text.split()
        lines: list[str] = []
        line = ""
        for word in words:
            trial = word if not line else f"{line} {word}"
            if self._text_font.size(trial)[0] <= rect.w:
                line = trial
            else:
                if line:
                    lines.append(line)
                line = word
        if line:
            lines.append(line)
        line_h = self._text_font.get_linesize()
        y = rect.centery - (line_h * len(lines)) // 2
        for text_line in lines:
            img = self._text_font.render(text_line, True, TEXT_MAIN)
            surface.blit(img, img.get_rect(midtop=(rect.centerx, y)))
            y += line_h


def _configure_logging() -> None:
    level_name = os.environ.get(LOG_LEVEL_ENV, "WARNING").strip().upper()
    level = getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def run(*, max_frames: int | None = None, event_injector: Callable[[int], None] | None = None) -> int:
    _configure_logging()
    pygame.init()

    pygame.display.set_caption("Little Math Star")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    frame_clock = pygame.time.Clock()

    app = App(
        surface=surface,
        font=font,
        clock=RealClock(),
        speaker=OfflineSpeaker(),
        sounds=SoundBoard(),
    )
    teller = StoryTeller(model_from_env())

    def open_mode(mode: GameMode) -> None:
        app.speaker.speak(MODE_LABELS[mode])
        app.push(GameScreen(app, mode=mode))

    def open_story() -> None:
        app.speaker.speak(STORY_LABEL)
        app.push(StoryScreen(app, teller=teller))

    app.push(HomeScreen(app, open_mode=open_mode, open_story=open_story))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)
            if not app.running:
                break

            app.update()
            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            frame_clock.tick(TARGET_FPS)
    finally:
        app.quit()
        pygame.quit()

    return 0
