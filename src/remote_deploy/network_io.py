import os
import zlib
import socket
import threading
import logging
from typing import Callable, Optional, Tuple

from .config import ReceiverConfig
from .errors import FrameError
from .protocol import LENGTH_SIZE, RemoteFileRecord, decode_record, read_length

logger = logging.getLogger(__name__)

CONNECTION_TIMEOUT = 5.0


def send_frame(frame: bytes, dest_addr: Tuple[str, int],
               timeout: Optional[float] = None) -> None:
    """
    Open a TCP connection, write the frame and close it.

    No reply is read. Connect, write and close errors propagate as OSError.
    """
    sock = socket.create_connection(dest_addr, timeout=timeout)
    try:
        sock.sendall(frame[:LENGTH_SIZE])
        sock.sendall(frame[LENGTH_SIZE:])
    finally:
        sock.close()
    logger.debug("Sent %d bytes to %s:%d", len(frame), dest_addr[0], dest_addr[1])


def _recv_exact(conn: socket.socket, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = conn.recv(min(remaining, 64 * 1024))
        if not chunk:
            raise FrameError(f"Connection closed with {remaining} bytes outstanding")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


class FrameReceiver:
    """
    TCP listener that accepts remote file frames and writes them below
    output_dir. One frame per connection.
    """

    def __init__(
        self,
        config: ReceiverConfig,
        on_file: Optional[Callable[[RemoteFileRecord, str], None]] = None,
        bind_host: str = "0.0.0.0",
    ):
        self.config = config
        self.bind_host = bind_host
        self.port = config.port
        self.output_dir = config.output_dir
        self.on_file = on_file
        self.socket: Optional[socket.socket] = None
        self.running = False
        self.accept_thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------

    def start(self) -> None:
        """Bind the listening socket and start accepting connections."""
        try:
            os.makedirs(self.output_dir, exist_ok=True)
            self.socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self.socket.bind((self.bind_host, self.port))
            self.socket.listen(16)
            self.socket.settimeout(0.1)
            self.port = self.socket.getsockname()[1]

            self.running = True
            self.accept_thread = threading.Thread(
                target=self._accept_loop, daemon=True
            )
            self.accept_thread.start()

            logger.info("FrameReceiver listening on port %d", self.port)
        except Exception as e:
            logger.error("Failed to start FrameReceiver: %s", e)
            raise

    def stop(self) -> None:
        """Stop accepting connections."""
        self.running = False
        if self.accept_thread:
            self.accept_thread.join(timeout=CONNECTION_TIMEOUT + 1.0)
        if self.socket:
            self.socket.close()
        logger.info("FrameReceiver stopped")

    # ------------------------------------------------------------------

    def _accept_loop(self) -> None:
        while self.running:
            try:
                conn, addr = self.socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self.running:
                    logger.error("Error in accept loop: %s", e)
                continue

            try:
                self.handle_connection(conn, addr)
            except Exception as e:
                logger.error("Dropped frame from %s: %s", addr, e)
            finally:
                conn.close()

    def handle_connection(self, conn: socket.socket, addr) -> str:
        conn.settimeout(CONNECTION_TIMEOUT)
        length = read_length(_recv_exact(conn, LENGTH_SIZE))
        if length > self.config.max_message_size:
            raise FrameError(
                f"Frame of {length} bytes exceeds limit of {self.config.max_message_size}"
            )

        record = decode_record(_recv_exact(conn, length))
        path = self.write_record(record)
        logger.info("Received %s from %s (%d bytes)", record.name, addr, length)
        return path

    def target_path(self, name: str) -> str:
        base = os.path.abspath(self.output_dir)
        path = os.path.abspath(os.path.join(base, *name.split('/')))
        if path == base or not path.startswith(base + os.sep):
            raise FrameError(f"Record name escapes output directory: {name!r}")
        return path

    def write_record(self, record: RemoteFileRecord) -> str:
        path = self.target_path(record.name)
        try:
            content = record.content()
        except (ValueError, OSError, EOFError, zlib.error) as e:
            raise FrameError(f"Could not decode data for {record.name}: {e}") from e

        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'wb') as f:
            f.write(content)

        if self.on_file:
            self.on_file(record, path)
        return path
