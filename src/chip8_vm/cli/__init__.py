"""
chip8-vm Command-Line Interface
===============================

This package provides command-line tools for chip8-vm:

- **c8run**: headless ROM runner (text or PNG screen dump)
- **c8disasm**: ROM disassembler

Each tool is implemented as a Click-based CLI application with
comprehensive help and error reporting.
"""

__all__ = ["c8run", "c8disasm"]
