"""Codec adapters."""

from .grok import GrokCodecAdapter, is_codestream

__all__ = ["GrokCodecAdapter", "is_codestream"]
