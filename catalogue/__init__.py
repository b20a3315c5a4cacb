"""Library Catalogue - Core Application Package

This package contains the core application modules including:
- Record types (models.py)
- Flat-file codec (codec.py)
- File storage and seed defaults (storage.py)
- Repository and borrow/return workflow (library.py)
- Output helpers and input validators (ui_helpers.py, validators.py)
"""
