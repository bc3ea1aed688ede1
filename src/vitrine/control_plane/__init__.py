"""Reference authority server for local and integration use."""

from vitrine.control_plane.server import ReferenceAuthorityServer

__all__ = ["ReferenceAuthorityServer"]
