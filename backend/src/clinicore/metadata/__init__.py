"""Entity metadata - YAML definitions, loading and schema validation."""

from clinicore.metadata.loader import (
    EntityModel,
    EntityPermissions,
    FieldDefinition,
    MetadataError,
    MetadataLoader,
    RelationConfig,
    ValidationRules,
)
from clinicore.metadata.validator import ValidationIssue, validate_metadata_dir

__all__ = [
    "EntityModel",
    "EntityPermissions",
    "FieldDefinition",
    "MetadataError",
    "MetadataLoader",
    "RelationConfig",
    "ValidationRules",
    "ValidationIssue",
    "validate_metadata_dir",
]
