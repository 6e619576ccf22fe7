"""
Remote Deploy: push single files to one or more hosts over TCP

Each file is optionally gzip-compressed, wrapped in a JSON record
(name, isCompressed, base64 data), prefixed with its little-endian
uint32 length and written to every host of a target, one host at a time.
"""

__version__ = "0.1.0"

from .config import RemoteDeployConfig, DeployConfig, ReceiverConfig, Target, load_config
from .deploy_engine import DeployEngine, HostDeliveryOutcome
from .hosts import HostAddress, parse_host
from .network_io import FrameReceiver, send_frame

__all__ = [
    'RemoteDeployConfig', 'DeployConfig', 'ReceiverConfig', 'Target', 'load_config',
    'DeployEngine', 'HostDeliveryOutcome', 'HostAddress', 'parse_host',
    'FrameReceiver', 'send_frame',
]
