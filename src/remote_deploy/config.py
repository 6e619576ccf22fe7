import os
import yaml
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 23979
DEFAULT_MAX_MESSAGE_SIZE = 16 * 1024 * 1024


@dataclass
class DeployConfig:
    root: str = "."
    default_host: str = DEFAULT_HOST
    default_port: int = DEFAULT_PORT
    connect_timeout_sec: Optional[float] = 10.0


@dataclass
class ReceiverConfig:
    port: int = DEFAULT_PORT
    output_dir: str = "received"
    max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE


@dataclass
class Target:
    name: str
    hosts: Any = field(default_factory=list)

    def host_list(self) -> List[str]:
        """Host specifiers as strings, empty entries dropped."""
        hosts = self.hosts
        if hosts is None:
            return []
        if isinstance(hosts, (str, bytes)) or not hasattr(hosts, '__iter__'):
            hosts = [hosts]
        result = []
        for h in hosts:
            if h is None:
                continue
            if isinstance(h, bytes):
                h = h.decode('utf-8')
            h = str(h)
            if h:
                result.append(h)
        return result


@dataclass
class RemoteDeployConfig:
    deploy: DeployConfig
    receiver: ReceiverConfig
    targets: List[Target] = field(default_factory=list)

    def get_target(self, name: str) -> Target:
        for target in self.targets:
            if target.name == name:
                return target
        raise KeyError(f"Unknown target: {name}")


def _load_targets(raw: Any) -> List[Target]:
    if not raw:
        return []
    if isinstance(raw, dict):
        # mapping form: {name: hosts}
        return [Target(name=str(name), hosts=hosts) for name, hosts in raw.items()]
    return [Target(name=str(t['name']), hosts=t.get('hosts', [])) for t in raw]


def load_config(config_path: Optional[str] = None) -> RemoteDeployConfig:
    """Load configuration from file or use defaults."""
    if config_path and os.path.exists(config_path):
        with open(config_path, 'r') as f:
            config_data: Dict[str, Any] = yaml.safe_load(f) or {}

        deploy_config = DeployConfig(**config_data.get('deploy', {}))
        receiver_config = ReceiverConfig(**config_data.get('receiver', {}))
        targets = _load_targets(config_data.get('targets'))
    else:
        deploy_config = DeployConfig()
        receiver_config = ReceiverConfig()
        targets = []

    return RemoteDeployConfig(
        deploy=deploy_config,
        receiver=receiver_config,
        targets=targets,
    )
