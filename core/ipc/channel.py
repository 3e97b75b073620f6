"""
IPC command channel for mpv player processes.

Sends one command to a running player over its Unix domain socket and reports
whether mpv acknowledged it. Sends are best-effort: failures are logged as
warnings and returned as False, never raised, and never retried.
"""

import itertools
import json
import logging
import socket
import time
from pathlib import Path

from core.errors import TransportError
from core.ipc.messages import PlayerCommand

logger = logging.getLogger(__name__)


class IPCChannel:
    """
    Best-effort sender for mpv JSON IPC commands.

    Holds no per-player state: every send opens a fresh connection to the
    given address, writes one request and waits for the matching reply.

    Attributes:
        timeout: Socket timeout in seconds for connect + reply
    """

    RECV_SIZE = 4096

    def __init__(self, timeout: float = 2.0):
        self.timeout = timeout
        self._request_ids = itertools.count(1)

    def send(self, address: str, command: PlayerCommand) -> bool:
        """
        Send a command to the player listening on ``address``.

        Args:
            address: Filesystem path of the player's IPC socket
            command: Payload to send

        Returns:
            True if the player acknowledged the command, False otherwise
        """
        command.request_id = next(self._request_ids)
        try:
            self._transmit(address, command)
        except TransportError as e:
            logger.warning(f"IPC send '{command}' to {address} failed: {e}")
            return False

        logger.debug(f"IPC send '{command}' to {address} acknowledged")
        return True

    def is_listening(self, address: str) -> bool:
        """Check whether something accepts connections on ``address``."""
        if not Path(address).exists():
            return False
        try:
            with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
                sock.settimeout(self.timeout)
                sock.connect(address)
            return True
        except OSError:
            return False

    def _transmit(self, address: str, command: PlayerCommand):
        """
        Write one request and wait for its reply.

        Raises:
            TransportError: channel missing, refused, timed out, closed early,
                            or mpv replied with an error
        """
        if not Path(address).exists():
            raise TransportError(f"channel {address} does not exist")

        try:
            with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
                sock.settimeout(self.timeout)
                sock.connect(address)
                sock.sendall(command.to_json().encode('utf-8'))
                reply = self._read_reply(sock, command)
        except socket.timeout:
            raise TransportError("timed out waiting for the player")
        except OSError as e:
            raise TransportError(str(e))

        if reply is None:
            if command.expects_disconnect:
                return
            raise TransportError("connection closed before the player replied")

        status = reply.get('error', 'success')
        if status != 'success':
            raise TransportError(f"player replied '{status}'")

    def _read_reply(self, sock: socket.socket, command: PlayerCommand):
        """
        Read lines until the reply carrying our request_id arrives.

        mpv writes event lines (``{"event": ...}``) to every client, so
        anything without a matching request_id is skipped.

        Returns:
            The reply dict, or None if the player closed the connection first
        """
        deadline = time.monotonic() + self.timeout
        buffer = b''
        while True:
            while b'\n' in buffer:
                line, buffer = buffer.split(b'\n', 1)
                if not line.strip():
                    continue
                try:
                    message = json.loads(line.decode('utf-8'))
                except (UnicodeDecodeError, json.JSONDecodeError):
                    logger.debug(f"Ignoring malformed IPC line: {line!r}")
                    continue
                if 'event' in message:
                    continue
                if message.get('request_id') == command.request_id:
                    return message

            # One deadline for the whole reply, not per recv
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise socket.timeout("no reply before the deadline")
            sock.settimeout(remaining)
            chunk = sock.recv(self.RECV_SIZE)
            if not chunk:
                return None
            buffer += chunk
