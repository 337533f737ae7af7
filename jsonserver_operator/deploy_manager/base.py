"""
This defines the base class for all DeployManager types.
"""

# Standard
from typing import Iterator, Optional, Tuple
import abc

# Local
from .kube_event import KubeWatchEvent


class DeployManagerBase(abc.ABC):
    """
    Base class for deploy managers which are responsible for reading and
    writing objects in the cluster on behalf of the reconciler
    """

    @abc.abstractmethod
    def get_object_current_state(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> Tuple[bool, Optional[dict]]:
        """Fetch the current state of a given object by name

        Args:
            kind:  str
                The kind of the object to fetch
            name:  str
                The full name of the object to fetch
            namespace:  str
                The namespace to search for the object
            api_version:  str
                The api_version of the resource kind to fetch

        Returns:
            success:  bool
                Whether or not the state fetch operation succeeded
            current_state:  dict or None
                The dict representation of the current object's configuration,
                or None if not present
        """

    @abc.abstractmethod
    def write_object_state(self, resource_definition: dict) -> dict:
        """Persist a full object. An object without metadata.resourceVersion is
        created, otherwise it replaces the stored object only if the stored
        resourceVersion still matches.

        Args:
            resource_definition:  dict
                The full object to write

        Returns:
            current_state:  dict
                The object as stored, with its new resourceVersion

        Raises:
            ConflictError: If the object changed since it was read or a
                create found it already present
            ClusterError: On any other failure
        """

    @abc.abstractmethod
    def set_status(  # pylint: disable=too-many-arguments
        self,
        kind: str,
        name: str,
        namespace: Optional[str],
        status: dict,
        api_version: Optional[str] = None,
        resource_version: Optional[str] = None,
    ) -> Tuple[bool, bool]:
        """Set the status subresource of an object

        Args:
            kind:  str
                The kind of the object
            name:  str
                The full name of the object
            namespace:  Optional[str]
                The namespace of the object
            status:  dict
                The status object to set onto the given object
            api_version:  str
                The api_version of the resource to update
            resource_version:  Optional[str]
                If given, the update only lands on the object at this
                resourceVersion

        Returns:
            success:  bool
                Whether or not the status update succeeded
            changed:  bool
                Whether or not the status update resulted in a change

        Raises:
            ConflictError: If resource_version is given and the object has
                since changed
        """

    @abc.abstractmethod
    def watch_objects(
        self,
        kind: str,
        api_version: Optional[str] = None,
        namespace: Optional[str] = None,
    ) -> Iterator[KubeWatchEvent]:
        """Listen for changes to objects of a kind and return a stream of
        KubeWatchEvents

        Args:
            kind:  str
                The kind of the objects to watch
            api_version:  str
                The api_version of the resource kind to watch
            namespace:  str
                The namespace to watch, or all namespaces if None

        Returns:
            watch_stream: Iterator[KubeWatchEvent]
                A stream of KubeWatchEvents generated while watching
        """
