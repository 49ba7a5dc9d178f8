"""Data models for stackup."""
from stackup.models.records import RepositorySpec, ServiceSpec

__all__ = ['RepositorySpec', 'ServiceSpec']
