import logging
import re
import socket
import time
from typing import List, Optional

from .actions import build_action, serialize_action
from .errors import (
    AuthenticationError,
    ManagerConnectionError,
    ProtocolTimeoutError,
    SessionStateError,
)
from .models import ProtocolResponse, SessionState

logger = logging.getLogger(__name__)

LINE_END = b"\r\n"
BLOCK_END = b"\r\n\r\n"
HEADER_RE = re.compile(r"^([A-Za-z0-9_\-]+):\s?(.*)$")
LINE_SPLIT_RE = re.compile(r"\r?\n")


def parse_block(text: str) -> ProtocolResponse:
    """Parse one response block (without its terminating blank line)"""
    headers = []
    body_lines = []
    for line in LINE_SPLIT_RE.split(text):
        match = HEADER_RE.match(line)
        if match:
            headers.append((match.group(1), match.group(2).strip()))
        elif line.strip():
            body_lines.append(line)
    return ProtocolResponse(
        headers=tuple(headers),
        body="\n".join(body_lines),
        raw=text + "\r\n\r\n",
    )


class ManagerSession:
    """A single conversation with the Asterisk Manager Interface.

    Requests and responses are strictly sequential: one action is written, then
    bytes are read until the blank line that ends the reply or until the deadline
    passes. A session is used for exactly one call request and then closed.
    """

    def __init__(self, host: str = "localhost", port: int = 5038,
                 timeout: float = 5.0, connect_timeout: Optional[float] = None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.connect_timeout = connect_timeout if connect_timeout is not None else timeout
        self.state = SessionState.DISCONNECTED
        self.greeting = ""
        self._socket: Optional[socket.socket] = None
        self._buffer = b""

    def __enter__(self) -> "ManagerSession":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        """Connect to Asterisk AMI and read its greeting line"""
        if self.state != SessionState.DISCONNECTED:
            raise SessionStateError(f"Cannot open a session in state {self.state.value}")
        try:
            self._socket = socket.create_connection((self.host, self.port), timeout=self.connect_timeout)
        except OSError as e:
            self.state = SessionState.CLOSED
            raise ManagerConnectionError(f"Socket connection failed: {e}") from e

        self.state = SessionState.CONNECTED
        self.greeting = self._read_until(LINE_END).decode("utf-8", "replace").strip()
        logger.info(f"Connected to Asterisk AMI at {self.host}:{self.port} ({self.greeting})")

    def login(self, username: str, secret: str):
        """Authenticate; events are switched off so only replies to our actions arrive"""
        if self.state != SessionState.CONNECTED:
            raise SessionStateError(f"Cannot log in from state {self.state.value}")
        response = self._exchange("Login", {"Username": username, "Secret": secret, "Events": "off"})
        if not response.is_success:
            logger.warning(f"AMI login rejected for {username}: {response.message}")
            raise AuthenticationError("Authentication failed")
        self.state = SessionState.AUTHENTICATED
        logger.info(f"Logged in to Asterisk AMI as {username}")

    def send_action(self, name: str, **fields) -> ProtocolResponse:
        """Send one action and return its reply"""
        if self.state != SessionState.AUTHENTICATED:
            raise SessionStateError(f"Cannot send {name} in state {self.state.value}")
        return self._exchange(name, fields)

    def db_get(self, family: str, key: str) -> Optional[str]:
        """Read a value from the Asterisk database, None if absent"""
        response = self.send_action("DBGet", Family=family, Key=key)
        return response.attribute("Val")

    def close(self):
        """Log off and drop the connection; never raises"""
        if self._socket is None:
            self.state = SessionState.CLOSED
            return
        if self.state == SessionState.AUTHENTICATED:
            try:
                self._socket.sendall(serialize_action(build_action("Logoff")))
            except OSError as e:
                logger.debug(f"Logoff failed: {e}")
        try:
            self._socket.close()
        except OSError as e:
            logger.debug(f"Socket close failed: {e}")
        self._socket = None
        self._buffer = b""
        self.state = SessionState.CLOSED
        logger.info("Disconnected from Asterisk AMI")

    def _exchange(self, name: str, fields: dict) -> ProtocolResponse:
        payload = serialize_action(build_action(name, **fields))
        try:
            self._socket.sendall(payload)
        except OSError as e:
            self.close()
            raise ManagerConnectionError(f"Failed to send {name}: {e}") from e

        response = self._read_block()

        # Actions such as DBGet answer with a short reply and deliver the data as events
        if (response.get("EventList") or "").lower() == "start":
            events: List[ProtocolResponse] = []
            while True:
                event = self._read_block()
                events.append(event)
                if (event.get("EventList") or "").lower() == "complete":
                    break
            response = response.with_events(events)
        elif response.is_success and (response.message or "").lower() == "result will follow":
            response = response.with_events([self._read_block()])

        logger.debug(f"AMI {name} -> {response.status}")
        return response

    def _read_block(self) -> ProtocolResponse:
        frame = self._read_until(BLOCK_END)
        return parse_block(frame.decode("utf-8", "replace"))

    def _read_until(self, terminator: bytes) -> bytes:
        """Accumulate bytes until terminator is buffered or the deadline passes"""
        deadline = time.monotonic() + self.timeout
        while terminator not in self._buffer:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._timed_out()
            self._socket.settimeout(remaining)
            try:
                chunk = self._socket.recv(4096)
            except socket.timeout:
                self._timed_out()
            except OSError as e:
                self.close()
                raise ManagerConnectionError(f"Connection to PBX lost: {e}") from e
            if not chunk:
                self.close()
                raise ManagerConnectionError("Connection closed by PBX")
            self._buffer += chunk

        frame, _, self._buffer = self._buffer.partition(terminator)
        return frame

    def _timed_out(self):
        logger.warning(f"No response from Asterisk AMI within {self.timeout}s")
        self.close()
        raise ProtocolTimeoutError("Timed out waiting for PBX response")
