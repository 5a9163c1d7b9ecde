"""
Top-level package for the cold_chain project.

Components live in subpackages; `compliance_validator` holds the
temperature-compliance engine for tracked vaccine batches.
"""

__all__: list[str] = []
