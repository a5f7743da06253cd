"""
Cliptrail: local-first clipboard history for the desktop.

A capture daemon that provides:
- Deduplicated, size-bounded clipboard history with pins
- Rule-based tagging and filtering
- Screenshot detection for copied bitmaps
"""

__version__ = "0.1.0"
