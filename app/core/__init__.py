"""
Core Application - Infrastructure & Base Classes

Generic, reusable base classes shared by the domain apps.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - SoftDeleteMixin: Soft delete support (deleted_at)

Managers (import from core.managers):
    - SoftDeleteManager: Filter deleted records by default
    - SoftDeleteQuerySet: QuerySet whose delete() soft deletes

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes

Helpers (import from core.helpers):
    - generate_code: Cryptographically secure random codes
    - parse_uuid: UUID coercion
    - calculate_pagination: Pagination metadata calculation

Note:
    Django models and model mixins are NOT imported here to avoid
    AppRegistryNotReady errors. Import them directly from their modules.
"""

# Services (no Django model dependencies)
from .services import BaseService, ServiceResult

# Exceptions (no Django dependencies)
from .exceptions import BaseApplicationError

# Helpers (no Django model dependencies)
from .helpers import calculate_pagination, generate_code, parse_uuid

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    # Helpers
    "generate_code",
    "parse_uuid",
    "calculate_pagination",
]
