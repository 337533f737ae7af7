"""
Helper module to define shared types related to Kube Events
"""

# Standard
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class KubeEventType(Enum):
    """Enum for all possible kubernetes event types"""

    DELETED = "DELETED"
    MODIFIED = "MODIFIED"
    ADDED = "ADDED"


@dataclass
class KubeWatchEvent:
    """DataClass containing the type, resource, and timestamp of a
    particular event"""

    type: KubeEventType
    resource: dict
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def kind(self) -> Optional[str]:
        return self.resource.get("kind")

    @property
    def api_version(self) -> Optional[str]:
        return self.resource.get("apiVersion")

    @property
    def name(self) -> Optional[str]:
        return (self.resource.get("metadata") or {}).get("name")

    @property
    def namespace(self) -> Optional[str]:
        return (self.resource.get("metadata") or {}).get("namespace")

    def __str__(self):
        return f"{self.type.value}[{self.api_version}/{self.kind}/{self.namespace}/{self.name}]"
