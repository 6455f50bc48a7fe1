"""
Tests for core app.

This package contains test modules for:
- test_managers.py: SoftDeleteManager / SoftDeleteQuerySet
- test_soft_delete_mixin.py: SoftDeleteMixin
- test_services.py: ServiceResult and BaseService
- test_helpers.py: code generation, UUID coercion, pagination
"""
