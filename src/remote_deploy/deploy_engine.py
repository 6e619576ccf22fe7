import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .config import DeployConfig, Target
from .errors import FileReadError
from .hosts import HostAddress, parse_host
from .network_io import send_frame
from .paths import normalize_remote_name, resolve_file_path
from .protocol import build_frame, encode_record, make_record, select_payload

logger = logging.getLogger(__name__)

BeforeDeployHook = Callable[[str, Target], None]
CompletedHook = Callable[[str, Target, Optional[BaseException]], None]
SendFunc = Callable[[bytes, Tuple[str, int], Optional[float]], None]


@dataclass
class HostDeliveryOutcome:
    host: str
    address: Optional[HostAddress] = None
    ok: bool = False
    error: Optional[BaseException] = None


class DeployEngine:
    """
    Pushes one file to every host of a target.

    The frame is built once (normalize -> read -> compress -> encode -> frame)
    and then written to each host in turn, one connection at a time. Hosts
    are taken from the end of the configured list, so the last configured
    host is contacted first.

    Host failures are logged and never reach the completion hook; only a
    failure before the first host is contacted does.
    """

    def __init__(self, config: DeployConfig, send_func: Optional[SendFunc] = None):
        self.config = config
        self.send = send_func or send_frame

    def deploy_file(
        self,
        file_path: str,
        target: Target,
        on_before_deploy: Optional[BeforeDeployHook] = None,
        on_completed: Optional[CompletedHook] = None,
    ) -> None:
        """Deploy file_path to all hosts of target, then call on_completed once."""
        try:
            hosts = target.host_list()
            if on_before_deploy:
                on_before_deploy(file_path, target)
            frame = self.prepare_frame(file_path)
        except Exception as e:
            logger.error("Could not deploy %s to target %s: %s", file_path, target.name, e)
            self._completed(on_completed, file_path, target, e)
            return

        outcomes = self.dispatch(frame, hosts)
        failed = sum(1 for o in outcomes if not o.ok)
        logger.info(
            "Deployed %s to target %s: %d of %d host(s) succeeded",
            file_path, target.name, len(outcomes) - failed, len(outcomes),
        )
        self._completed(on_completed, file_path, target, None)

    def deploy_files(
        self,
        file_paths: Iterable[str],
        target: Target,
        on_before_deploy: Optional[BeforeDeployHook] = None,
        on_completed: Optional[CompletedHook] = None,
    ) -> None:
        for file_path in file_paths:
            self.deploy_file(file_path, target, on_before_deploy, on_completed)

    # ------------------------------------------------------------------

    def prepare_frame(self, file_path: str) -> bytes:
        """Build the frame for file_path; raises a DeployError on failure."""
        name = normalize_remote_name(file_path, self.config.root)
        source_path = resolve_file_path(file_path, self.config.root)

        try:
            with open(source_path, 'rb') as f:
                data = f.read()
        except OSError as e:
            raise FileReadError(f"Could not read '{file_path}': {e}") from e

        payload, is_compressed = select_payload(data)
        record = make_record(name, payload, is_compressed)
        frame = build_frame(encode_record(record))

        logger.debug(
            "Prepared %s: %d bytes raw, %d bytes sent%s, frame %d bytes",
            name, len(data), len(payload), " (gzip)" if is_compressed else "", len(frame),
        )
        return frame

    def dispatch(self, frame: bytes, hosts: Sequence[str]) -> List[HostDeliveryOutcome]:
        """Write frame to each host sequentially, last host first."""
        todo = list(hosts)
        outcomes = []
        while todo:
            host = todo.pop()
            outcomes.append(self._deliver(frame, host))
        return outcomes

    def _deliver(self, frame: bytes, host: str) -> HostDeliveryOutcome:
        outcome = HostDeliveryOutcome(host=host)
        try:
            outcome.address = parse_host(
                host, self.config.default_host, self.config.default_port
            )
            self.send(frame, outcome.address.as_tuple(), self.config.connect_timeout_sec)
            outcome.ok = True
            logger.info("Sent %d bytes to %s", len(frame), outcome.address)
        except Exception as e:
            outcome.error = e
            logger.error("Failed to deploy to %s: %s", host, e)
        return outcome

    def _completed(self, hook: Optional[CompletedHook], file_path: str,
                   target: Target, error: Optional[BaseException]) -> None:
        if hook:
            hook(file_path, target, error)
