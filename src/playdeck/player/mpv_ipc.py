from __future__ import annotations

import json
import logging
import os
import platform
import queue
import socket
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


# -----------------------------
# Utilities
# -----------------------------

def _is_windows() -> bool:
    return os.name == "nt"


def _default_ipc_endpoint(app_name: str = "playdeck-mpv") -> str:
    r"""
    Windows: named pipe \\.\pipe\<name>
    Unix:    unix socket under /tmp
    """
    if _is_windows():
        return rf"\\.\pipe\{app_name}"
    return f"/tmp/{app_name}-{os.getpid()}.sock"


def _remove_unix_socket_if_exists(path: str) -> None:
    if _is_windows():
        return
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError as e:
        logger.debug("Could not remove stale mpv socket %s: %s", path, e)


def _find_mpv_binary(preferred_path: Optional[str] = None) -> Optional[str]:
    """
    Locate mpv. Priority:
      1) preferred_path if it exists
      2) third_party/mpv/<platform>/ relative to cwd
      3) "mpv" on PATH
    """
    candidates: list[str] = []
    if preferred_path:
        candidates.append(preferred_path)

    cwd = os.getcwd()
    sys_name = platform.system().lower()
    if _is_windows():
        candidates += [
            os.path.join(cwd, "third_party", "mpv", "windows", "mpv.exe"),
            os.path.join(cwd, "third_party", "mpv", "mpv.exe"),
        ]
    else:
        sub = "macos" if sys_name == "darwin" else "linux"
        candidates += [
            os.path.join(cwd, "third_party", "mpv", sub, "mpv"),
            os.path.join(cwd, "third_party", "mpv", "mpv"),
        ]

    for c in candidates:
        if os.path.isfile(c):
            return c
    # Let subprocess resolve it from PATH
    return "mpv"


# -----------------------------
# IPC transport
# -----------------------------

class _MpvJsonIpcTransport:
    """
    Line-delimited JSON over mpv's IPC endpoint.

    Unix uses an AF_UNIX socket; Windows opens the named pipe as a binary file.
    Incoming messages are read on a daemon thread and queued; they are only
    dispatched when the owner calls process_messages() from its own thread.
    """

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        self._stop = threading.Event()

        self._rx_thread: Optional[threading.Thread] = None
        self._rx_queue: "queue.Queue[dict[str, Any]]" = queue.Queue()
        self._tx_lock = threading.Lock()

        self._pipe_fh = None
        self._sock: Optional[socket.socket] = None

    @property
    def connected(self) -> bool:
        return not self._stop.is_set() and (self._sock is not None or self._pipe_fh is not None)

    def connect(self, timeout_s: float = 3.0) -> None:
        deadline = time.time() + timeout_s
        last_err: Optional[Exception] = None

        # mpv creates the endpoint shortly after start; retry until it shows up
        while time.time() < deadline and not self._stop.is_set():
            try:
                if _is_windows():
                    self._pipe_fh = open(self.endpoint, "r+b", buffering=0)
                else:
                    s = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
                    s.connect(self.endpoint)
                    self._sock = s
                last_err = None
                break
            except OSError as e:
                last_err = e
                time.sleep(0.05)

        if self._sock is None and self._pipe_fh is None:
            raise OSError(f"Failed to connect to mpv IPC at {self.endpoint}: {last_err!r}")

        self._rx_thread = threading.Thread(target=self._rx_loop, name="mpv-ipc-rx", daemon=True)
        self._rx_thread.start()

    def close(self) -> None:
        self._stop.set()
        if self._sock is not None:
            try:
                self._sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self._sock.close()
            self._sock = None
        if self._pipe_fh is not None:
            try:
                self._pipe_fh.close()
            except OSError:
                pass
            self._pipe_fh = None

    def send(self, payload: dict[str, Any]) -> None:
        line = (json.dumps(payload) + "\n").encode("utf-8")
        with self._tx_lock:
            if self._pipe_fh is not None:
                self._pipe_fh.write(line)
                self._pipe_fh.flush()
            elif self._sock is not None:
                self._sock.sendall(line)
            else:
                raise RuntimeError("mpv IPC not connected")

    def recv_nowait(self) -> Optional[dict[str, Any]]:
        try:
            return self._rx_queue.get_nowait()
        except queue.Empty:
            return None

    def _read_chunk(self) -> bytes:
        if self._pipe_fh is not None:
            return self._pipe_fh.read(4096)
        if self._sock is not None:
            return self._sock.recv(4096)
        return b""

    def _rx_loop(self) -> None:
        buf = b""
        try:
            while not self._stop.is_set():
                try:
                    chunk = self._read_chunk()
                except OSError:
                    break
                if not chunk:
                    break  # EOF, mpv went away

                buf += chunk
                while b"\n" in buf:
                    line, buf = buf.split(b"\n", 1)
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        msg = json.loads(line.decode("utf-8", errors="replace"))
                    except ValueError:
                        continue
                    if isinstance(msg, dict):
                        self._rx_queue.put(msg)
        finally:
            self._stop.set()


# -----------------------------
# Backend (mpv process + JSON protocol)
# -----------------------------

@dataclass
class MpvBackendConfig:
    mpv_path: Optional[str] = None
    ipc_endpoint: Optional[str] = None

    audio_only: bool = True
    # keep-open=no: mpv goes idle at EOF and reports end-file reason "eof"
    keep_open: bool = False

    cwd: Optional[str] = None


class MpvIpcBackend:
    """
    mpv driven over JSON IPC.

    The owner pumps process_messages() (e.g. from a QTimer) so that every
    observer callback runs on the owner's thread.
    """

    def __init__(self, config: Optional[MpvBackendConfig] = None):
        self.config = config or MpvBackendConfig()
        self._mpv_bin = _find_mpv_binary(self.config.mpv_path)
        self.ipc = self.config.ipc_endpoint or _default_ipc_endpoint()

        self._proc: Optional[subprocess.Popen] = None

        self._req_id = 0
        self._pending: dict[int, "queue.Queue[dict[str, Any]]"] = {}

        # property name -> callbacks(value); event name -> callbacks(msg)
        self._observers: dict[str, list[Callable[[Any], None]]] = {}
        self._event_observers: dict[str, list[Callable[[dict[str, Any]], None]]] = {}

        self._time_pos_s: float = 0.0
        self._duration_s: float = 0.0
        self._paused: bool = True
        self._idle: bool = True

        self._transport = _MpvJsonIpcTransport(self.ipc)

    # ---- lifecycle ----

    def start(self) -> None:
        if self._proc is not None:
            return

        _remove_unix_socket_if_exists(self.ipc)

        args = [self._mpv_bin]
        if self.config.audio_only:
            args += ["--no-video", "--audio-display=no"]
        args += [
            f"--keep-open={'yes' if self.config.keep_open else 'no'}",
            f"--input-ipc-server={self.ipc}",
            "--idle=yes",
            "--pause=yes",
            "--terminal=no",
            "--msg-level=all=warn",
        ]

        creationflags = getattr(subprocess, "CREATE_NO_WINDOW", 0) if _is_windows() else 0

        # FileNotFoundError propagates when mpv is not installed
        self._proc = subprocess.Popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            cwd=self.config.cwd or None,
            creationflags=creationflags,
        )

        try:
            self._transport.connect(timeout_s=3.0)
        except OSError:
            self._proc.terminate()
            self._proc = None
            raise

        self.observe_property("time-pos", self._on_time_pos)
        self.observe_property("duration", self._on_duration)
        self.observe_property("pause", self._on_pause)
        self.observe_property("idle-active", self._on_idle)

    def stop(self) -> None:
        """Terminate the mpv process."""
        try:
            self.command("quit")
        except (OSError, RuntimeError):
            pass
        self._transport.close()
        if self._proc is not None:
            self._proc.terminate()
            self._proc = None

    def is_running(self) -> bool:
        return (
            self._proc is not None
            and self._proc.poll() is None
            and self._transport.connected
        )

    # ---- protocol helpers ----

    def _next_id(self) -> int:
        self._req_id += 1
        return self._req_id

    def command(self, *args: Any) -> None:
        self._transport.send({"command": list(args)})

    def command_wait(self, *args: Any, timeout_s: float = 1.0) -> dict[str, Any]:
        rid = self._next_id()
        q: "queue.Queue[dict[str, Any]]" = queue.Queue()
        self._pending[rid] = q
        self._transport.send({"command": list(args), "request_id": rid})

        deadline = time.time() + timeout_s
        while time.time() < deadline:
            self.process_messages(max_messages=50)
            try:
                return q.get_nowait()
            except queue.Empty:
                time.sleep(0.005)

        self._pending.pop(rid, None)
        raise TimeoutError(f"mpv command timed out: {args!r}")

    def get_property(self, name: str, timeout_s: float = 1.0) -> Any:
        resp = self.command_wait("get_property", name, timeout_s=timeout_s)
        if resp.get("error") == "success":
            return resp.get("data")
        return None

    def set_property(self, name: str, value: Any) -> None:
        self.command("set_property", name, value)

    def observe_property(self, name: str, on_change: Callable[[Any], None]) -> None:
        if name not in self._observers:
            self._observers[name] = []
            self.command("observe_property", self._next_id(), name)
        self._observers[name].append(on_change)

    def observe_event(self, name: str, on_event: Callable[[dict[str, Any]], None]) -> None:
        """Callback for raw mpv events such as "end-file" or "file-loaded"."""
        self._event_observers.setdefault(name, []).append(on_event)

    def process_messages(self, max_messages: int = 200) -> None:
        """
        Drain queued messages and dispatch request replies, property changes
        and events. Must be called regularly from the owner's thread.
        """
        for _ in range(max_messages):
            msg = self._transport.recv_nowait()
            if msg is None:
                break

            if "request_id" in msg:
                rid = msg.get("request_id")
                if isinstance(rid, int):
                    q = self._pending.pop(rid, None)
                    if q is not None:
                        q.put_nowait(msg)
                continue

            event = msg.get("event")
            if event == "property-change":
                name = msg.get("name")
                if isinstance(name, str):
                    self._dispatch(self._observers.get(name), msg.get("data"))
            elif isinstance(event, str):
                self._dispatch(self._event_observers.get(event), msg)

    @staticmethod
    def _dispatch(callbacks: Optional[list[Callable[[Any], None]]], value: Any) -> None:
        for cb in list(callbacks or ()):
            try:
                cb(value)
            except Exception:
                logger.exception("mpv observer %r failed", cb)

    # ---- cached property handlers ----

    def _on_time_pos(self, value: Any) -> None:
        try:
            self._time_pos_s = float(value) if value is not None else 0.0
        except (TypeError, ValueError):
            self._time_pos_s = 0.0

    def _on_duration(self, value: Any) -> None:
        try:
            self._duration_s = float(value) if value is not None else 0.0
        except (TypeError, ValueError):
            self._duration_s = 0.0

    def _on_pause(self, value: Any) -> None:
        self._paused = bool(value)

    def _on_idle(self, value: Any) -> None:
        self._idle = bool(value)

    # ---- high-level controls ----

    def load(self, path: str, *, start_playing: bool = False) -> None:
        self.set_paused(not start_playing)
        self.command("loadfile", path, "replace")
        self._idle = False

    def set_paused(self, paused: bool) -> None:
        self.set_property("pause", bool(paused))
        # cached until mpv confirms
        self._paused = bool(paused)

    def pause(self) -> None:
        self.set_paused(True)

    def play(self) -> None:
        self.set_paused(False)

    def seek_seconds(self, sec: float, *, exact: bool = False) -> None:
        mode = "absolute+exact" if exact else "absolute"
        self.command("seek", max(0.0, float(sec)), mode)

    def set_volume_0_to_1(self, volume: float) -> None:
        v = min(1.0, max(0.0, float(volume)))
        self.set_property("volume", v * 100.0)  # mpv volume is 0..100

    # ---- convenience getters ----

    def position_s(self) -> float:
        return self._time_pos_s

    def duration_s(self) -> float:
        return self._duration_s

    def is_paused(self) -> bool:
        return self._paused

    def is_idle(self) -> bool:
        return self._idle
