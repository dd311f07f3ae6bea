"""Magic Story mode: pick a number, hear a tiny story about it.

Stories come from a Gemini text model when an API key is configured.  With
no key, or when the model call fails, a canned story is used instead, so the
mode always has something to say.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from enum import Enum
from typing import Protocol

import google.generativeai as genai

from .feedback import Clock, FeedbackScheduler
from .input_router import digit_from_key
from .session import Speaker

logger = logging.getLogger(__name__)

STORY_NUMBERS: tuple[int, ...] = tuple(range(1, 11))
INTRO_DELAY_S = 1.0

API_KEY_ENVS = ("GEMINI_API_KEY", "API_KEY")
MODEL_ENV = "LMS_STORY_MODEL"
DEFAULT_MODEL = "gemini-2.5-flash"


class StoryTextModel(Protocol):
    def generate(self, prompt: str) -> str: ...


def story_prompt(number: int) -> str:
    return (
        "You are a cheerful preschool teacher. Write a very short, magical, rhyming story "
        f"(maximum 25 words) about the number {number}. Make it fun and simple for a 4-year-old. "
        "Do not include any titles or markdown formatting."
    )


def offline_story(number: int) -> str:
    return f"Once upon a time, there was a number {number} who loved to play hide and seek!"


def fallback_story(number: int) -> str:
    return f"The magical number {number} danced in the sky with the stars!"


class GeminiStoryModel:
    def __init__(self, *, api_key: str, model_name: str = DEFAULT_MODEL) -> None:
        genai.configure(api_key=api_key)
        self._model = genai.GenerativeModel(model_name)

    def generate(self, prompt: str) -> str:
        resp = self._model.generate_content(prompt)
        return (resp.text or "").strip()


def model_from_env() -> GeminiStoryModel | None:
    api_key = ""
    for name in API_KEY_ENVS:
        api_key = os.environ.get(name, "").strip()
        if api_key:
            break
    if not api_key:
        return None
    return GeminiStoryModel(api_key=api_key, model_name=os.environ.get(MODEL_ENV, DEFAULT_MODEL))


class StoryTeller:
    def __init__(self, model: StoryTextModel | None) -> None:
        self._model = model

    def tell(self, number: int) -> str:
        if self._model is None:
            return offline_story(number)
        try:
            text = self._model.generate(story_prompt(number))
        except Exception as exc:  # any client/network failure
            logger.warning("story model failed for %d: %s", number, exc)
            return fallback_story(number)
        return text or fallback_story(number)


class StoryPhase(str, Enum):
    PICKING = "picking"
    LOADING = "loading"
    TELLING = "telling"


class StorySession:
    """Number picker -> loading -> story, driven by :meth:`update` each frame."""

    def __init__(
        self,
        *,
        clock: Clock,
        speaker: Speaker,
        teller: StoryTeller,
        executor: Executor | None = None,
    ) -> None:
        self._speaker = speaker
        self._teller = teller
        self._owns_executor = executor is None
        self._executor: Executor = executor if executor is not None else ThreadPoolExecutor(max_workers=1)
        self._selection_id = 0
        self._closed = False
        self._scheduler = FeedbackScheduler(clock=clock, current_id=self._active_selection)
        self._phase = StoryPhase.PICKING
        self._number: int | None = None
        self._story = ""
        self._future: Future[str] | None = None
        self._intro_token: int | None = None

    @property
    def phase(self) -> StoryPhase:
        return self._phase

    @property
    def number(self) -> int | None:
        return self._number

    @property
    def story(self) -> str:
        return self._story

    def select(self, number: int) -> bool:
        if self._closed or self._phase is StoryPhase.LOADING:
            return False
        if number not in STORY_NUMBERS:
            return False
        self._selection_id += 1
        self._number = number
        self._story = ""
        self._phase = StoryPhase.LOADING
        self._speaker.speak(str(number))
        self._intro_token = self._scheduler.schedule(
            INTRO_DELAY_S,
            self._selection_id,
            self._speak_intro(number),
            label="story intro",
        )
        self._future = self._executor.submit(self._teller.tell, number)
        return True

    def read_again(self) -> bool:
        if self._phase is not StoryPhase.TELLING:
            return False
        self._speaker.speak(self._story)
        return True

    def new_number(self) -> bool:
        if self._phase is not StoryPhase.TELLING:
            return False
        self._phase = StoryPhase.PICKING
        self._number = None
        self._story = ""
        return True

    def key(self, key: str) -> bool:
        # Digits pick a number whenever no story is loading.
        value = digit_from_key(key)
        if value is not None:
            return self.select(value)
        if self._phase is StoryPhase.TELLING:
            if key.lower() == "r":
                return self.read_again()
            if key.lower() == "n":
                return self.new_number()
        return False

    def update(self) -> None:
        if self._closed:
            return
        self._scheduler.update()
        future = self._future
        if self._phase is not StoryPhase.LOADING or future is None or not future.done():
            return
        self._future = None
        self._story = future.result()
        self._phase = StoryPhase.TELLING
        # The story supersedes the intro line if that has not been spoken yet.
        if self._intro_token is not None:
            self._scheduler.cancel(self._intro_token)
            self._intro_token = None
        self._speaker.speak(self._story)

    def teardown(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._scheduler.cancel_all()
        self._speaker.stop()
        if self._future is not None:
            self._future.cancel()
            self._future = None
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def _active_selection(self) -> int | None:
        return None if self._closed else self._selection_id

    def _speak_intro(self, number: int) -> Callable[[], None]:
        def fire() -> None:
            self._intro_token = None
            self._speaker.speak(f"Let's hear a story about the number {number}")

        return fire
