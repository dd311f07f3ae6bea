"""Offline text-to-speech for spoken prompts and feedback.

Speech runs out of process (pyttsx3 in a child interpreter, or the platform's
``say``/PowerShell/``espeak`` command) so a misbehaving engine can never take
the game down.  There is a single utterance slot: every ``speak`` call
preempts whatever is still playing, and only the newest request is heard.
"""

from __future__ import annotations

import importlib.util
import logging
import math
import os
import shutil
import subprocess
import sys
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

PREFERRED_VOICE_NAMES: tuple[str, ...] = ("Google US English", "Samantha")
VOICE_LANGUAGE = "en"
EXCLUDED_VOICE_VENDORS: tuple[str, ...] = ("Microsoft",)

SPEECH_RATE = 0.9
SPEECH_PITCH = 1.1
BASE_WORDS_PER_MIN = 176
BASE_ESPEAK_PITCH = 50

DISABLE_ENV = "LMS_DISABLE_TTS"
BACKEND_ENV = "LMS_TTS_BACKEND"


@dataclass(frozen=True, slots=True)
class VoiceInfo:
    id: str
    name: str
    languages: tuple[str, ...] = ()


def _normalize_language(raw: object) -> str:
    if isinstance(raw, bytes):
        # espeak reports languages as b"\x05en-us" (priority byte + code).
        raw = raw.decode("ascii", errors="ignore")
    text = "".join(ch for ch in str(raw) if ch.isprintable()).strip()
    return text.replace("_", "-").lower()


def select_voice(
    voices: Iterable[VoiceInfo],
    *,
    preferred_names: Sequence[str] = PREFERRED_VOICE_NAMES,
    language: str = VOICE_LANGUAGE,
    excluded_vendors: Sequence[str] = EXCLUDED_VOICE_VENDORS,
) -> VoiceInfo | None:
    """Pick a voice: exact preferred name first, then any voice for ``language``."""

    pool = list(voices)
    for name in preferred_names:
        for voice in pool:
            if voice.name == name:
                return voice

    prefix = language.lower()
    for voice in pool:
        if any(vendor in voice.name for vendor in excluded_vendors):
            continue
        if any(_normalize_language(lang).startswith(prefix) for lang in voice.languages):
            return voice
    return None


def words_per_minute() -> int:
    return int(round(BASE_WORDS_PER_MIN * SPEECH_RATE))


def pitch_percent() -> int:
    return int(round((SPEECH_PITCH - 1.0) * 100))


def pitch_semitones() -> float:
    return 12.0 * math.log2(SPEECH_PITCH)


class OfflineSpeaker:
    """Best-effort preemptive TTS via isolated subprocesses."""

    _max_utterance_s = 12.0

    def __init__(self) -> None:
        self._enabled = False
        self._backends: list[str] = []
        self._backend: str | None = None
        self._pending: str | None = None
        self._active_proc: subprocess.Popen[bytes] | None = None
        self._active_started_s = 0.0
        self._say_voice: str | None = None

        if os.environ.get(DISABLE_ENV, "0") == "1":
            return
        if os.environ.get("SDL_AUDIODRIVER", "").strip().lower() == "dummy":
            # Keep automated/headless runs silent and stable.
            return

        self._backends = self._resolve_backends()
        self._backend = self._backends[0] if self._backends else None
        self._enabled = self._backend is not None
        if self._backend == "say":
            self._say_voice = self._pick_say_voice()
        logger.debug("speech backend: %s", self._backend or "none")

    @property
    def enabled(self) -> bool:
        return bool(self._enabled)

    @property
    def pending_text(self) -> str | None:
        return self._pending

    def speak(self, text: str) -> None:
        if not self._enabled:
            return
        phrase = " ".join(str(text).strip().split())
        if phrase == "":
            return
        self._cancel_active()
        self._pending = phrase

    def update(self) -> None:
        if not self._enabled:
            return

        proc = self._active_proc
        if proc is not None:
            if proc.poll() is None:
                if (time.monotonic() - self._active_started_s) > self._max_utterance_s:
                    self._terminate_process(proc)
                    self._active_proc = None
            else:
                self._active_proc = None

        if self._pending is None:
            return

        while self._pending is not None and self._enabled:
            launched = self._launch_process(self._pending)
            if launched is not None:
                self._pending = None
                self._active_proc = launched
                self._active_started_s = time.monotonic()
                return
            self._drop_current_backend()

        if not self._enabled:
            self._pending = None

    def stop(self) -> None:
        self._pending = None
        self._cancel_active()

    def _cancel_active(self) -> None:
        proc = self._active_proc
        self._active_proc = None
        if proc is not None:
            self._terminate_process(proc)

    @staticmethod
    def _terminate_process(proc: subprocess.Popen[bytes]) -> None:
        try:
            proc.terminate()
        except OSError:
            return
        try:
            proc.wait(timeout=0.5)
        except subprocess.TimeoutExpired:
            try:
                proc.kill()
            except OSError as exc:
                logger.debug("could not kill speech process: %s", exc)

    @staticmethod
    def _resolve_backends() -> list[str]:
        supported = ("pyttsx3-subprocess", "say", "powershell", "espeak")
        forced = os.environ.get(BACKEND_ENV, "").strip().lower()
        if forced in supported and OfflineSpeaker._backend_available(forced):
            return [forced]

        candidates: list[str] = []
        if sys.platform == "darwin":
            candidates.append("say")
        if os.name == "nt":
            candidates.append("powershell")
        candidates.extend(("pyttsx3-subprocess", "espeak"))

        seen: set[str] = set()
        resolved: list[str] = []
        for name in candidates:
            if name in seen:
                continue
            seen.add(name)
            if OfflineSpeaker._backend_available(name):
                resolved.append(name)
        return resolved

    @staticmethod
    def _backend_available(name: str) -> bool:
        if name == "say":
            return (shutil.which("say") is not None) or Path("/usr/bin/say").exists()
        if name == "powershell":
            return (shutil.which("powershell") is not None) or (shutil.which("pwsh") is not None)
        if name == "pyttsx3-subprocess":
            return importlib.util.find_spec("pyttsx3") is not None
        if name == "espeak":
            return shutil.which("espeak") is not None
        return False

    @staticmethod
    def _pick_say_voice() -> str | None:
        say_bin = shutil.which("say") or "/usr/bin/say"
        try:
            listing = subprocess.run([say_bin, "-v", "?"], capture_output=True, text=True, timeout=2.0)
        except (OSError, subprocess.SubprocessError) as exc:
            logger.debug("could not list say voices: %s", exc)
            return None
        voice = select_voice(_parse_say_voices(listing.stdout))
        return None if voice is None else voice.id

    def _drop_current_backend(self) -> None:
        backend = self._backend
        if backend is None:
            self._enabled = False
            return
        logger.debug("speech backend %s failed; dropping it", backend)
        self._backends = [name for name in self._backends if name != backend]
        self._backend = self._backends[0] if self._backends else None
        self._enabled = self._backend is not None

    def _launch_process(self, text: str) -> subprocess.Popen[bytes] | None:
        backend = self._backend
        if backend is None:
            return None
        cmd = self._command_for(backend, text)
        if cmd is None:
            return None
        try:
            return subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as exc:
            logger.debug("speech launch failed on %s: %s", backend, exc)
            return None

    def _command_for(self, backend: str, text: str) -> list[str] | None:
        wpm = words_per_minute()
        if backend == "pyttsx3-subprocess":
            return [sys.executable, "-m", "little_math_star.speech", text]

        if backend == "say":
            cmd = [shutil.which("say") or "/usr/bin/say", "-r", str(wpm)]
            if self._say_voice:
                cmd += ["-v", self._say_voice]
            # Embedded speech command; pbas is in semitones.
            return [*cmd, f"[[pbas +{pitch_semitones():.1f}]] {text}"]

        if backend == "powershell":
            ps_bin = shutil.which("powershell") or shutil.which("pwsh")
            if ps_bin is None:
                return None
            # SpeechSynthesizer.Rate is -10..10 with 0 as normal speed.
            rate = int(round((SPEECH_RATE - 1.0) * 10))
            script = (
                "Add-Type -AssemblyName System.Speech; "
                "$s=New-Object System.Speech.Synthesis.SpeechSynthesizer; "
                f"$s.Rate={rate}; "
                "$txt=[System.Security.SecurityElement]::Escape(($args -join ' ')); "
                "$ssml=\"<speak version='1.0' xmlns='http://www.w3.org/2001/10/synthesis' xml:lang='en-US'>"
                f"<prosody pitch='+{pitch_percent()}%'>$txt</prosody></speak>\"; "
                "$s.SpeakSsml($ssml);"
            )
            return [ps_bin, "-NoProfile", "-NonInteractive", "-Command", script, text]

        if backend == "espeak":
            pitch = int(round(BASE_ESPEAK_PITCH * SPEECH_PITCH))
            return ["espeak", "-v", "en-us", "-s", str(wpm), "-p", str(pitch), text]
        return None


def _parse_say_voices(listing: str) -> list[VoiceInfo]:
    # Lines look like: "Samantha            en_US    # Hello! My name is Samantha."
    voices: list[VoiceInfo] = []
    for line in listing.splitlines():
        head = line.split("#", 1)[0].rstrip()
        parts = head.rsplit(None, 1)
        if len(parts) != 2:
            continue
        name, lang = parts[0].strip(), parts[1].strip()
        voices.append(VoiceInfo(id=name, name=name, languages=(lang,)))
    return voices


def _speak_with_pyttsx3(text: str) -> None:
    import pyttsx3

    engine = pyttsx3.init()
    voices = [
        VoiceInfo(id=str(v.id), name=str(v.name or ""), languages=tuple(v.languages or ()))
        for v in engine.getProperty("voices")
    ]
    voice = select_voice(voices)
    if voice is not None:
        engine.setProperty("voice", voice.id)
    engine.setProperty("rate", words_per_minute())
    engine.setProperty("volume", 0.95)
    engine.say(text)
    engine.runAndWait()


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    text = " ".join(args).strip()
    if text:
        _speak_with_pyttsx3(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
