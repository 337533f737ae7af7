"""
This module holds the functionality used to mark child resources as controlled
by the JsonServer that produced them
"""

# Standard
from typing import Optional

# First Party
import alog

# Local
from ..exceptions import AlreadyOwnedError

log = alog.use_channel("OWNRF")


def set_controller_reference(owner_cr: dict, child_obj: dict) -> dict:
    """Merge a controller reference for the owner into the child's
    ownerReferences in place. References to other owners are kept.

    Args:
        owner_cr:  dict
            The full manifest of the owning resource
        child_obj:  dict
            The child object being mutated

    Returns:
        child_obj:  dict
            The same child object, returned for convenience

    Raises:
        AlreadyOwnedError: If the child is already controlled by a different
            owner
    """
    _validate_object_struct(owner_cr)
    metadata = child_obj.setdefault("metadata", {})
    owner_refs = list(metadata.get("ownerReferences") or [])
    log.debug3("Current owner refs: %s", owner_refs)

    new_ref = _make_owner_reference(owner_cr)
    current_controller = get_controller_reference(child_obj)
    if current_controller is not None and current_controller.get("uid") != new_ref[
        "uid"
    ]:
        raise AlreadyOwnedError(
            f"{child_obj.get('kind')}/{metadata.get('name')} is already controlled "
            f"by {current_controller.get('kind')}/{current_controller.get('name')}"
        )

    # Update an existing reference to the same owner in place so that the
    # order of the list is stable across passes
    for i, ref in enumerate(owner_refs):
        if ref.get("uid") == new_ref["uid"]:
            owner_refs[i] = new_ref
            break
    else:
        owner_refs.append(new_ref)
    log.debug4("Final owner refs: %s", owner_refs)
    metadata["ownerReferences"] = owner_refs
    return child_obj


def get_controller_reference(obj: dict) -> Optional[dict]:
    """Get the ownerReference with controller set, if any"""
    for ref in (obj.get("metadata") or {}).get("ownerReferences") or []:
        if ref.get("controller"):
            return ref
    return None


## Implementation Details ######################################################


def _validate_object_struct(obj: dict):
    """Ensure the owner carries the fields an owner reference is built from"""
    assert "kind" in obj, "Got owner without 'kind'"
    assert "apiVersion" in obj, "Got owner without 'apiVersion'"
    metadata = obj.get("metadata")
    assert isinstance(metadata, dict), "Got owner with non-dict 'metadata'"
    assert "name" in metadata, "Got owner without 'metadata.name'"
    assert "uid" in metadata, "Got owner without 'metadata.uid'"


def _make_owner_reference(owner_cr: dict) -> dict:
    """Make the controller owner reference for the given CR instance"""
    metadata = owner_cr.get("metadata", {})
    return {
        "apiVersion": owner_cr.get("apiVersion"),
        "kind": owner_cr.get("kind"),
        "name": metadata.get("name"),
        "uid": metadata.get("uid"),
        "controller": True,
        # The parent will not be deleted until this object completes its
        # deletion
        "blockOwnerDeletion": True,
    }
