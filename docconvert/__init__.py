"""
Document conversion between PDF, DOCX, TXT, RTF and ODT.

This package provides local (in-process) conversion by text extraction and
regeneration, and a server conversion path that delegates to a LibreOffice
binary behind the /convert endpoints.
"""

__version__ = "1.0.0"
