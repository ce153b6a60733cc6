"""Pure helpers shared by the services."""

from tetherdb.utils.naming import get_default_index_name
from tetherdb.utils.stitch import stitch_relations

__all__ = ["get_default_index_name", "stitch_relations"]
