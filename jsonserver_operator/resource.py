"""
Typed representation of the JsonServer custom resource, its list wrapper and
the identity used to key reconciles
"""

# Standard
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
import copy

# First Party
import alog

# Local
from . import constants

log = alog.use_channel("RSRCE")


class SyncState(Enum):
    """Values of status.state"""

    SYNCED = "Synced"
    ERROR = "Error"


def _expect_type(value, types, field_name: str, allow_none: bool = True):
    """Raise ValueError if a decoded field does not have the expected type"""
    if value is None and allow_none:
        return value
    # bool is an int subclass but never a valid integer field
    if isinstance(value, bool) and bool not in types:
        raise ValueError(f"Field [{field_name}] has invalid type bool")
    if not isinstance(value, types):
        raise ValueError(
            f"Field [{field_name}] has invalid type {type(value).__name__}"
        )
    return value


def _or_zero(value, value_type, zero):
    """Return value if it has the given type and is set, otherwise zero"""
    if isinstance(value, bool) or not isinstance(value, value_type):
        return zero
    return value or zero


## Identity ####################################################################


@dataclass(frozen=True)
class ResourceIdentity:
    """The namespace/name pair that keys a single JsonServer. This is what the
    work queue dedupes on and what the reconciler is invoked with.
    """

    namespace: str
    name: str

    @classmethod
    def from_manifest(cls, manifest: dict) -> "ResourceIdentity":
        metadata = manifest.get("metadata") or {}
        return cls(
            namespace=metadata.get("namespace") or constants.DEFAULT_NAMESPACE,
            name=metadata.get("name"),
        )

    @classmethod
    def from_owner_reference(
        cls, owner_reference: dict, namespace: str
    ) -> "ResourceIdentity":
        """Owner references are always namespace-local, so the owner lives in
        the child's namespace
        """
        return cls(namespace=namespace, name=owner_reference.get("name"))

    def __str__(self):
        return f"{self.namespace}/{self.name}"


## Spec / Status ###############################################################


@dataclass
class JsonServerSpec:
    """Desired state. replicas=None means unset, which is distinct from an
    explicit zero.
    """

    replicas: Optional[int] = None
    json_config: str = ""
    image: str = ""

    @classmethod
    def from_dict(cls, spec: Optional[dict]) -> "JsonServerSpec":
        spec = _expect_type(spec, (dict,), "spec") or {}
        return cls(
            replicas=_expect_type(spec.get("replicas"), (int,), "spec.replicas"),
            json_config=_expect_type(spec.get("jsonConfig"), (str,), "spec.jsonConfig")
            or "",
            image=_expect_type(spec.get("image"), (str,), "spec.image") or "",
        )

    def to_dict(self) -> dict:
        out = {"jsonConfig": self.json_config}
        if self.replicas is not None:
            out["replicas"] = self.replicas
        if self.image:
            out["image"] = self.image
        return out

    @property
    def desired_replicas(self) -> int:
        return constants.DEFAULT_REPLICAS if self.replicas is None else self.replicas

    @property
    def desired_image(self) -> str:
        return self.image or constants.DEFAULT_IMAGE


@dataclass
class JsonServerStatus:
    """Observed state. Zero values are dropped on serialization."""

    state: Optional[SyncState] = None
    message: str = ""
    replicas: int = 0
    selector: str = ""

    @classmethod
    def from_dict(cls, status: Optional[dict]) -> "JsonServerStatus":
        """Decode leniently. The stored status is only ever overwritten, so
        anything unrecognized is read as its zero value.
        """
        if not isinstance(status, dict):
            if status is not None:
                log.warning("Ignoring status of type %s", type(status).__name__)
            return cls()

        state = status.get("state")
        try:
            state = SyncState(state) if state else None
        except ValueError:
            log.warning("Ignoring unknown status.state [%s]", state)
            state = None
        return cls(
            state=state,
            message=_or_zero(status.get("message"), str, ""),
            replicas=_or_zero(status.get("replicas"), int, 0),
            selector=_or_zero(status.get("selector"), str, ""),
        )

    def to_dict(self) -> dict:
        out = {}
        if self.state is not None:
            out["state"] = self.state.value
        if self.message:
            out["message"] = self.message
        if self.replicas:
            out["replicas"] = self.replicas
        if self.selector:
            out["selector"] = self.selector
        return out


## Resource ####################################################################


@dataclass
class JsonServer:
    """A single JsonServer. The raw metadata is carried as a dict since only
    name, namespace, uid and resourceVersion are interpreted.
    """

    metadata: dict = field(default_factory=dict)
    spec: JsonServerSpec = field(default_factory=JsonServerSpec)
    status: JsonServerStatus = field(default_factory=JsonServerStatus)

    @classmethod
    def from_dict(cls, manifest: dict) -> "JsonServer":
        """Decode a manifest, raising ValueError if it is not a JsonServer"""
        _expect_type(manifest, (dict,), "<root>", allow_none=False)
        _expect_type(manifest.get("metadata"), (dict,), "metadata")
        kind = manifest.get("kind")
        if kind is not None and kind != constants.KIND:
            raise ValueError(f"Cannot parse kind [{kind}] as {constants.KIND}")
        return cls(
            metadata=copy.deepcopy(dict(manifest.get("metadata") or {})),
            spec=JsonServerSpec.from_dict(manifest.get("spec")),
            status=JsonServerStatus.from_dict(manifest.get("status")),
        )

    def to_dict(self) -> dict:
        out = {
            "apiVersion": constants.API_VERSION,
            "kind": constants.KIND,
            "metadata": copy.deepcopy(self.metadata),
            "spec": self.spec.to_dict(),
        }
        status = self.status.to_dict()
        if status:
            out["status"] = status
        return out

    @property
    def name(self) -> str:
        return self.metadata.get("name")

    @property
    def namespace(self) -> str:
        return self.metadata.get("namespace") or constants.DEFAULT_NAMESPACE

    @property
    def uid(self) -> Optional[str]:
        return self.metadata.get("uid")

    @property
    def identity(self) -> ResourceIdentity:
        return ResourceIdentity(namespace=self.namespace, name=self.name)


@dataclass
class JsonServerList:
    """List wrapper returned when listing JsonServers"""

    items: List[JsonServer] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, manifest: dict) -> "JsonServerList":
        items = [JsonServer.from_dict(item) for item in manifest.get("items") or []]
        log.debug3("Parsed %d %s items", len(items), constants.KIND)
        return cls(
            items=items,
            metadata=copy.deepcopy(dict(manifest.get("metadata") or {})),
        )

    def to_dict(self) -> dict:
        return {
            "apiVersion": constants.API_VERSION,
            "kind": constants.LIST_KIND,
            "metadata": copy.deepcopy(self.metadata),
            "items": [item.to_dict() for item in self.items],
        }
