"""Services acting on behalf of a caller."""

from tetherdb.services.permissions import PermissionsService
from tetherdb.services.relations import RelationsService, filter_forbidden

__all__ = ["PermissionsService", "RelationsService", "filter_forbidden"]
