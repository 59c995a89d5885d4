"""Entity services and their result types."""

from clinicore.core.errors import InvalidArgumentError, NotFoundError, ServiceError
from clinicore.services.entity_service import EntityService, build_services
from clinicore.services.models import build_record_model
from clinicore.services.pagination import validate_pagination
from clinicore.services.patch import PatchDocument, PatchOp, PatchOperation, apply_patch
from clinicore.services.results import InvalidArgument, NotFound, Ok, Result

__all__ = [
    "EntityService",
    "InvalidArgument",
    "InvalidArgumentError",
    "NotFound",
    "NotFoundError",
    "Ok",
    "PatchDocument",
    "PatchOp",
    "PatchOperation",
    "Result",
    "ServiceError",
    "apply_patch",
    "build_record_model",
    "build_services",
    "validate_pagination",
]
