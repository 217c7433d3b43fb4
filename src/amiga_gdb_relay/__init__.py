"""Amiga GDB Relay - RSP client and HTTP relay for FS-UAE debug stubs."""

__version__ = "0.1.0"
