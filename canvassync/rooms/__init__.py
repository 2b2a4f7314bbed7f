"""Room and widget provisioning."""

from canvassync.rooms.provision import ChildRoom, NewWidget, RoomProvisioner

__all__ = ["RoomProvisioner", "ChildRoom", "NewWidget"]
