"""kubelens: a local Kubernetes cluster registry with isolated credentials."""

__version__ = "0.4.0"

from kubelens.client.factory import ClientFactory, ClientFactoryError
from kubelens.commands import CleanupWarning, KubeLens
from kubelens.config import KubeLensConfig, find_config, init_directories, load_config
from kubelens.credentials.bundle import KubeconfigError
from kubelens.fswatch import KubeconfigDirWatcher
from kubelens.models import (
    Cluster,
    ClusterPatch,
    CommandResult,
    DiscoveredContext,
    ImportCandidate,
    ResourceEvent,
    ResourceEventType,
    ResourceSummary,
)
from kubelens.registry import ClusterRegistry, RegistryError, open_registry
from kubelens.resources import ResourceError
from kubelens.streams import (
    CallbackEventSink,
    DeliveryError,
    EventSink,
    QueueEventSink,
    StreamRegistry,
)
from kubelens.validation import InputValidationError

__all__ = [
    "CallbackEventSink",
    "CleanupWarning",
    "ClientFactory",
    "ClientFactoryError",
    "Cluster",
    "ClusterPatch",
    "ClusterRegistry",
    "CommandResult",
    "DeliveryError",
    "DiscoveredContext",
    "EventSink",
    "ImportCandidate",
    "InputValidationError",
    "KubeLens",
    "KubeLensConfig",
    "KubeconfigDirWatcher",
    "KubeconfigError",
    "QueueEventSink",
    "RegistryError",
    "ResourceError",
    "ResourceEvent",
    "ResourceEventType",
    "ResourceSummary",
    "StreamRegistry",
    "find_config",
    "init_directories",
    "load_config",
    "open_registry",
    "__version__",
]
