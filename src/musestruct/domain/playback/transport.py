"""
Audio transport: the external player the coordinator drives.

MpvTransport runs mpv in idle mode and talks to it over the JSON IPC unix
socket. A status poll loop reports position/duration and detects when a
track has finished.
"""

import asyncio
import json
import os
import subprocess
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional, Protocol

from loguru import logger

from .errors import TransportError

# Minimum valid duration (seconds) - durations below this indicate metadata errors
MIN_VALID_DURATION = 10.0

# Minimum playback time before allowing "track finished" (seconds)
MIN_PLAYBACK_TIME = 3.0

IPC_TIMEOUT = 2.0
SOCKET_WAIT_TIMEOUT = 5.0


class TransportEventKind(str, Enum):
    PLAYING = "playing"
    POSITION = "position"
    DURATION = "duration"
    COMPLETED = "completed"


@dataclass(frozen=True)
class TransportEvent:
    """Observation from the audio engine.

    value is a bool for PLAYING, seconds for POSITION and DURATION, and
    None for COMPLETED.
    """

    kind: TransportEventKind
    value: Any = None


TransportListener = Callable[[TransportEvent], None]


class AudioTransport(Protocol):
    """What the coordinator needs from an audio engine.

    Commands raise TransportError when the engine rejects them.
    """

    async def play(self, url: str) -> None: ...

    async def pause(self) -> None: ...

    async def resume(self) -> None: ...

    async def stop(self) -> None: ...

    async def seek(self, seconds: float) -> None: ...

    async def set_volume(self, volume: int) -> None: ...

    def add_listener(self, listener: TransportListener) -> Callable[[], None]: ...

    async def close(self) -> None: ...


def check_mpv_available() -> bool:
    """Check if MPV is available on the system."""
    try:
        result = subprocess.run(
            ["mpv", "--version"], capture_output=True, text=True, timeout=5
        )
        return result.returncode == 0
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        return False


def is_track_finished(
    position: float, duration: float, eof: Optional[bool], elapsed: Optional[float]
) -> bool:
    """Check if track finished with multiple validation layers.

    Safeguards:
    1. Minimum playback time (prevents incomplete metadata issues)
    2. Duration sanity check (detects corrupted/incomplete metadata)
    3. Position-based completion check
    4. EOF flag validation (with position confirmation)
    """
    if elapsed is not None and elapsed < MIN_PLAYBACK_TIME:
        return False

    if 0 < duration < MIN_VALID_DURATION:
        # Only trust eof when position is very close
        return eof is True and position >= duration - 0.1

    finished_by_position = duration > 0 and position >= duration - 0.5
    finished_by_eof = eof is True and duration > 0 and position >= duration - 1.0
    return finished_by_position or finished_by_eof


class MpvTransport:
    """AudioTransport backed by an mpv subprocess."""

    def __init__(
        self,
        socket_path: Optional[str] = None,
        volume: int = 50,
        poll_interval: float = 0.5,
    ):
        if socket_path is None:
            socket_path = str(Path(tempfile.gettempdir()) / f"musestruct-mpv-{os.getpid()}")
        self.socket_path = socket_path
        self.volume = volume
        self.poll_interval = poll_interval

        self._process: Optional[asyncio.subprocess.Process] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._listeners: List[TransportListener] = []
        self._request_id = 0
        self._started_at: Optional[float] = None
        self._completion_sent = False
        self._is_playing = False

    @property
    def is_running(self) -> bool:
        return (
            self._process is not None
            and self._process.returncode is None
            and os.path.exists(self.socket_path)
        )

    # Lifecycle

    async def start(self) -> None:
        """Start mpv with JSON IPC and the status poll loop.

        Raises:
            TransportError: If mpv cannot be started or does not answer
        """
        logger.info(f"Starting MPV player with socket: {self.socket_path}")

        if os.path.exists(self.socket_path):
            logger.debug(f"Removing existing socket: {self.socket_path}")
            os.unlink(self.socket_path)

        try:
            self._process = await asyncio.create_subprocess_exec(
                "mpv",
                "--idle=yes",
                "--no-video",
                "--no-terminal",
                f"--input-ipc-server={self.socket_path}",
                f"--volume={self.volume}",
                "--keep-open=yes",
                "--load-scripts=no",
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise TransportError(f"Failed to start MPV: {e}") from e

        loop = asyncio.get_running_loop()
        deadline = loop.time() + SOCKET_WAIT_TIMEOUT
        while not os.path.exists(self.socket_path):
            if loop.time() > deadline:
                await self._kill()
                raise TransportError(
                    f"MPV socket creation timeout after {SOCKET_WAIT_TIMEOUT}s"
                )
            await asyncio.sleep(0.1)

        try:
            await self._command("get_property", "idle-active")
        except TransportError:
            await self._kill()
            raise

        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info("MPV started successfully")

    async def close(self) -> None:
        """Stop the poll loop and the mpv process."""
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        await self._kill()

        if os.path.exists(self.socket_path):
            try:
                os.unlink(self.socket_path)
            except OSError:
                logger.warning(f"Could not remove MPV socket {self.socket_path}")

    async def _kill(self) -> None:
        if self._process is None or self._process.returncode is not None:
            return
        self._process.kill()
        try:
            await asyncio.wait_for(self._process.wait(), timeout=2.0)
        except asyncio.TimeoutError:
            logger.warning("MPV did not exit after kill")

    # Listeners

    def add_listener(self, listener: TransportListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, kind: TransportEventKind, value: Any = None) -> None:
        event = TransportEvent(kind, value)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Transport listener failed on {kind.value}")

    # IPC

    async def _command(self, *args: Any) -> Any:
        """Send one JSON IPC command and return its data.

        mpv interleaves events on the same socket, so replies are matched by
        request_id.
        """
        if not os.path.exists(self.socket_path):
            raise TransportError("MPV is not running")

        self._request_id += 1
        request_id = self._request_id
        payload = json.dumps({"command": list(args), "request_id": request_id}) + "\n"

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_unix_connection(self.socket_path), timeout=IPC_TIMEOUT
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise TransportError(f"Cannot connect to MPV: {e}") from e

        try:
            writer.write(payload.encode("utf-8"))
            await writer.drain()
            while True:
                line = await asyncio.wait_for(reader.readline(), timeout=IPC_TIMEOUT)
                if not line:
                    raise TransportError(f"MPV closed the connection during {args[0]}")
                try:
                    reply = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if reply.get("request_id") == request_id:
                    break
        except (OSError, asyncio.TimeoutError) as e:
            raise TransportError(f"MPV command {args[0]} failed: {e}") from e
        finally:
            writer.close()

        if reply.get("error") != "success":
            raise TransportError(f"MPV rejected {args[0]}: {reply.get('error')}")
        return reply.get("data")

    async def get_property(self, name: str) -> Any:
        """Get a property value from MPV (None when unavailable)."""
        try:
            return await self._command("get_property", name)
        except TransportError:
            return None

    async def _set_property(self, name: str, value: Any) -> None:
        await self._command("set_property", name, value)

    # Commands

    async def play(self, url: str) -> None:
        logger.debug(f"Loading stream: {url}")
        await self._command("loadfile", url, "replace")
        # Explicitly unpause to ensure playback starts
        await self._set_property("pause", False)
        self._started_at = asyncio.get_running_loop().time()
        self._completion_sent = False
        self._set_playing(True)

    async def pause(self) -> None:
        await self._set_property("pause", True)
        self._set_playing(False)

    async def resume(self) -> None:
        await self._set_property("pause", False)
        self._set_playing(True)

    async def stop(self) -> None:
        await self._command("stop")
        self._started_at = None
        self._set_playing(False)

    async def seek(self, seconds: float) -> None:
        await self._command("seek", seconds, "absolute")

    async def set_volume(self, volume: int) -> None:
        volume = max(0, min(100, volume))
        await self._set_property("volume", volume)
        self.volume = volume

    def _set_playing(self, playing: bool) -> None:
        if playing != self._is_playing:
            self._is_playing = playing
            self._emit(TransportEventKind.PLAYING, playing)

    # Status polling

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            if self._started_at is None or not self.is_running:
                continue
            await self.poll_status()

    async def poll_status(self) -> None:
        """Read position/duration/eof once and emit the matching events."""
        position = await self.get_property("time-pos") or 0.0
        duration = await self.get_property("duration") or 0.0
        eof = await self.get_property("eof-reached")

        self._emit(TransportEventKind.POSITION, float(position))
        self._emit(TransportEventKind.DURATION, float(duration))

        if self._completion_sent or self._started_at is None:
            return

        elapsed = asyncio.get_running_loop().time() - self._started_at
        if is_track_finished(position, duration, eof, elapsed):
            logger.debug(
                "Track finished: pos={:.2f}, dur={:.2f}, elapsed={:.2f}s",
                position,
                duration,
                elapsed,
            )
            self._completion_sent = True
            self._set_playing(False)
            self._emit(TransportEventKind.COMPLETED)
