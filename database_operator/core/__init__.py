"""
Core building blocks shared by the reconciliation services.

This package provides:
- Per-database-type profiles (ports, mount paths, credential keys, backup commands)
- Deterministic naming of child objects

Users should import directly from submodules:
# from database_operator.core.profiles import profile_for, credential_keys
# from database_operator.core.naming import ChildRole, child_ref
"""

__all__ = [
    "profiles",
    "naming",
]
