"""
Local conversion for docconvert.

Conversions here run in-process: text extraction plus regeneration, and
the image-based PDF to DOCX layout path.
"""

from .factory import LocalConversionFactory

__all__ = ['LocalConversionFactory']
