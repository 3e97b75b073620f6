"""
Pytest configuration and fixtures for DuoSync tests.

Provides fake channels, stores, processes and a fake mpv IPC server so the
sync engine, orchestrator and control loop can be tested without mpv.
"""

import json
import os
import shutil
import socket
import sys
import tempfile
import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config.session_config import SessionConfig  # noqa: E402
from core.player_process import PlayerProcessHandle, Role  # noqa: E402
from playback.sync_engine import DelaySyncEngine  # noqa: E402


# ==================== PYTEST CONFIGURATION ====================

def pytest_configure(config):
    """Add custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: unit test (fast, no I/O)")
    config.addinivalue_line("markers", "integration: integration test (sockets, fake players)")
    config.addinivalue_line("markers", "slow: slow test (real timing)")


# ==================== FAKES ====================

class RecordingChannel:
    """
    Stand-in for IPCChannel that records every send.

    Sends are appended to a shared event log as ('send', address, text) so
    tests can check ordering against waits recorded in the same log.
    """

    def __init__(self, events, ok=True):
        self.events = events
        self.ok = ok
        self.listening = set()

    def send(self, address, command):
        self.events.append(('send', address, str(command)))
        if callable(self.ok):
            return self.ok(address, command)
        return self.ok

    def is_listening(self, address):
        return address in self.listening

    @property
    def sends(self):
        return [(e[1], e[2]) for e in self.events if e[0] == 'send']


class MemoryDelayStore:
    """In-memory replacement for DelayStore."""

    def __init__(self, value=None, default=0.2):
        self.value = value
        self.default = default
        self.saved = []

    def load(self):
        if self.value is None:
            self.value = self.default
            self.saved.append(self.value)
        return self.value

    def save(self, value):
        self.value = value
        self.saved.append(value)


class FakeProcess:
    """
    Minimal Popen stand-in.

    ``exit_after`` polls report the process as running, after which it exits
    with ``exit_code``. None keeps it running until terminated.
    """

    _next_pid = 4000

    def __init__(self, exit_after=None, exit_code=0):
        FakeProcess._next_pid += 1
        self.pid = FakeProcess._next_pid
        self.exit_after = exit_after
        self.exit_code = exit_code
        self.returncode = None
        self.polls = 0
        self.terminated = False
        self.killed = False

    def poll(self):
        if self.returncode is None and self.exit_after is not None:
            if self.polls >= self.exit_after:
                self.returncode = self.exit_code
            self.polls += 1
        return self.returncode

    def terminate(self):
        self.terminated = True
        self.returncode = -15

    def kill(self):
        self.killed = True
        self.returncode = -9

    def wait(self, timeout=None):
        return self.returncode


class FakeMpvServer:
    """
    Tiny mpv JSON IPC server on a Unix socket.

    Records each received command array into ``log`` as (name, command) and
    replies with ``reply_error`` and the request's request_id.
    """

    def __init__(self, path, name, log, reply_error='success', emit_event=False,
                 respond=True, close_on_quit=False):
        self.path = str(path)
        self.name = name
        self.log = log
        self.reply_error = reply_error
        self.emit_event = emit_event
        self.respond = respond
        self.close_on_quit = close_on_quit
        self._stop = threading.Event()
        self._sock = None
        self._thread = None

    @property
    def received(self):
        return [cmd for name, cmd in self.log if name == self.name]

    def start(self):
        self._sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        self._sock.bind(self.path)
        self._sock.listen(8)
        self._sock.settimeout(0.05)
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()
        return self

    def _serve(self):
        while not self._stop.is_set():
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            with conn:
                self._handle(conn)

    def _handle(self, conn):
        conn.settimeout(2.0)
        data = b''
        try:
            while b'\n' not in data:
                chunk = conn.recv(4096)
                if not chunk:
                    return
                data += chunk
        except OSError:
            return

        message = json.loads(data.split(b'\n', 1)[0])
        command = message['command']
        self.log.append((self.name, command))

        if command[0] == 'quit' and self.close_on_quit:
            return

        if not self.respond:
            self._stall(conn)
            return

        if self.emit_event:
            conn.sendall(b'{"event":"pause"}\n')
        reply = {'data': None, 'error': self.reply_error,
                 'request_id': message.get('request_id')}
        conn.sendall((json.dumps(reply) + '\n').encode('utf-8'))

    def _stall(self, conn):
        """Never reply. With emit_event, keep sending event lines meanwhile."""
        conn.settimeout(0.05)
        while not self._stop.is_set():
            try:
                if self.emit_event:
                    conn.sendall(b'{"event":"playback-restart"}\n')
                if not conn.recv(4096):
                    return
            except socket.timeout:
                continue
            except OSError:
                return

    def stop(self):
        self._stop.set()
        if self._sock is not None:
            self._sock.close()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass


# ==================== FIXTURES ====================

@pytest.fixture
def events():
    """Shared, ordered log of sends and waits."""
    return []


@pytest.fixture
def recording_channel(events):
    return RecordingChannel(events)


@pytest.fixture
def recording_waiter(events):
    """Waiter that records the requested gap instead of sleeping."""
    def waiter(seconds):
        events.append(('wait', seconds))
    return waiter


@pytest.fixture
def channel_factory(events):
    """RecordingChannel constructor bound to the shared event log."""
    def factory(ok=True):
        return RecordingChannel(events, ok)
    return factory


@pytest.fixture
def store_factory():
    """MemoryDelayStore constructor."""
    return MemoryDelayStore


@pytest.fixture
def short_tmp():
    """
    Short temp directory for Unix socket paths.

    pytest's tmp_path can exceed the ~104 byte limit of AF_UNIX addresses.
    """
    path = tempfile.mkdtemp(prefix='ds-', dir='/tmp')
    yield Path(path)
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def session_config(tmp_path, short_tmp):
    """SessionConfig pointing at temp paths with fast polling."""
    return SessionConfig(
        state_dir=tmp_path / "state",
        video_socket=str(short_tmp / "v.sock"),
        audio_socket=str(short_tmp / "a.sock"),
        poll_interval=0.001,
        ready_timeout=2.0,
        ipc_timeout=1.0,
        terminate_timeout=0.5,
    )


@pytest.fixture
def player_pair(session_config):
    """VIDEO and AUDIO_ONLY handles without processes."""
    video = PlayerProcessHandle(Role.VIDEO, session_config.video_socket)
    audio = PlayerProcessHandle(Role.AUDIO_ONLY, session_config.audio_socket)
    return video, audio


@pytest.fixture
def make_engine(recording_channel, recording_waiter, session_config):
    """Factory for a DelaySyncEngine over the recording channel."""
    def factory(delay=0.2, store=None):
        store = store or MemoryDelayStore(value=delay)
        engine = DelaySyncEngine(store, recording_channel, session_config,
                                 waiter=recording_waiter)
        engine.load()
        return engine
    return factory


@pytest.fixture
def fake_mpv_server():
    """Factory starting FakeMpvServer instances, stopped after the test."""
    servers = []

    def factory(path, name='mpv', log=None, **kwargs):
        server = FakeMpvServer(path, name, log if log is not None else [], **kwargs).start()
        servers.append(server)
        return server

    yield factory

    for server in servers:
        server.stop()


@pytest.fixture
def fake_spawner(session_config):
    """
    Spawner replacement for SessionOrchestrator.

    Creates the channel file for each role (unless the role is listed in
    ``spawner.no_channel``) and returns a handle around a FakeProcess whose
    behaviour is configured through ``spawner.process_options[role]``.
    """
    class Spawner:
        def __init__(self):
            self.calls = []
            self.handles = []
            self.no_channel = set()
            self.process_options = {}
            self.fail_roles = set()

        def __call__(self, movie_file, role, audio_track, audio_device, config, mpv_cmd,
                     screen=None):
            from core.errors import PlayerSpawnError
            self.calls.append((movie_file, role, audio_track, audio_device, screen))
            if role in self.fail_roles:
                raise PlayerSpawnError(f"cannot start {role.value}")

            process = FakeProcess(**self.process_options.get(role, {}))
            address = config.video_socket if role == Role.VIDEO else config.audio_socket
            if role not in self.no_channel:
                Path(address).touch()

            handle = PlayerProcessHandle(role, address, process=process,
                                         audio_device=audio_device, audio_track=audio_track)
            self.handles.append(handle)
            return handle

    return Spawner()


@pytest.fixture
def mock_monitors():
    """Monitors as returned by screeninfo.get_monitors()."""
    monitors = []
    for idx, (name, width, height, x, primary) in enumerate([
        ('DP-1', 1920, 1080, 0, True),
        ('HDMI-1', 2560, 1440, 1920, False),
    ]):
        monitor = MagicMock()
        monitor.name = name
        monitor.width = width
        monitor.height = height
        monitor.x = x
        monitor.y = 0
        monitor.is_primary = primary
        monitors.append(monitor)
    return monitors


@pytest.fixture
def mpv_audio_device_help():
    """Output of ``mpv --audio-device=help``."""
    return (
        "List of detected audio devices:\n"
        "  'auto' (Autoselect device)\n"
        "  'pulse' (Default (pulse))\n"
        "  'pulse/alsa_output.pci-0000_00_1f.3.analog-stereo' (Built-in Audio Analog Stereo)\n"
        "  'pulse/alsa_output.usb-Logitech_G435-00.analog-stereo' (G435 Wireless Headset)\n"
        "  'alsa/hdmi:CARD=PCH,DEV=0' (HDA Intel PCH, HDMI 0 (HDMI))\n"
    )
