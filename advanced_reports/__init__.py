"""
Indicia Advanced Reports

Read-only reporting API answering analytics queries against the occurrence
search index, scoped to the calling user's permissions.

Author: Waqqas Hanafi
Copyright: © 2025 Calaveras County Health and Human Services Agency
"""

__version__ = "1.0.0"
