"""Import fixtures from sqla_rls.testing for test discovery."""

from sqla_rls.testing._fixtures import fake_clock, memory_store, permission_store, rls_config

__all__ = ["fake_clock", "memory_store", "permission_store", "rls_config"]
