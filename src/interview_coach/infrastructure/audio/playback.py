"""
Non-blocking WAV playback through the system audio player.
"""
import os
import shutil
import logging
import tempfile
import threading
import subprocess
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence, Tuple

from ...config import PLAYER_COMMANDS

logger = logging.getLogger("playback")

FinishedCallback = Callable[[], None]


class AudioPlayer(ABC):
    """Plays one WAV clip at a time and reports when it ends."""

    @abstractmethod
    def play(self, wav_bytes: bytes, on_finished: FinishedCallback) -> None:
        """Start playback without blocking; call on_finished when it ends."""

    @abstractmethod
    def stop(self) -> None:
        """Stop playback if anything is playing."""

    def close(self) -> None:
        self.stop()


class SubprocessPlayer(AudioPlayer):
    """Plays clips with afplay (macOS) or aplay (Linux)."""

    def __init__(self, commands: Sequence[Tuple[str, ...]] = PLAYER_COMMANDS):
        self.command = _find_command(commands)
        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None

    def is_available(self) -> bool:
        return self.command is not None

    def play(self, wav_bytes: bytes, on_finished: FinishedCallback) -> None:
        if self.command is None:
            logger.warning("No audio player found; skipping playback")
            on_finished()
            return

        self.stop()
        with tempfile.NamedTemporaryFile(suffix=".wav", delete=False) as tmp_file:
            tmp_file.write(wav_bytes)
            wav_path = tmp_file.name

        try:
            process = subprocess.Popen(
                [*self.command, wav_path],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            logger.error("Audio player failed to start: %s", e)
            _unlink_quietly(wav_path)
            on_finished()
            return

        with self._lock:
            self._process = process

        watcher = threading.Thread(
            target=self._wait, args=(process, wav_path, on_finished),
            name="audio-playback", daemon=True,
        )
        watcher.start()

    def _wait(self, process: subprocess.Popen, wav_path: str, on_finished: FinishedCallback) -> None:
        returncode = process.wait()
        if returncode not in (0, -15):
            logger.warning("Audio player exited with status %s", returncode)
        _unlink_quietly(wav_path)
        with self._lock:
            if self._process is process:
                self._process = None
        on_finished()

    def stop(self) -> None:
        with self._lock:
            process = self._process
            self._process = None
        if process is not None and process.poll() is None:
            process.terminate()


def _find_command(commands: Sequence[Tuple[str, ...]]) -> Optional[Tuple[str, ...]]:
    for command in commands:
        if shutil.which(command[0]):
            return tuple(command)
    return None


def _unlink_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except OSError:
        logger.debug("Could not remove temp file %s", path)
