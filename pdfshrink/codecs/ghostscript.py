"""
Ghostscript Codec: re-distill a PDF through ``gs -sDEVICE=pdfwrite``.

The preset's ``pdfsettings`` selects the distiller profile (/screen,
/ebook, /printer, /prepress); ``compatibility_level`` sets the output PDF
version. Extra ``-d`` switches can be passed as ``extra_args``.

Ghostscript only works on files, so each call allocates an input and an
output scratch file and releases both before returning or raising.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from typing import List, Optional

from ..engine.scratch import ScratchManager
from ..presets.models import PresetSpec
from .base import (
    CodecAdapter,
    CodecInputRejected,
    CodecOutputInvalid,
    CodecTimeout,
    CodecUnavailable,
)

logger = logging.getLogger(__name__)

# Substrings of gs stderr that mean the input itself is bad
_INPUT_ERRORS = (
    "Unrecoverable error",
    "This file requires a password",
    "Couldn't initialise file",
    "No pages will be processed",
)


class GhostscriptCodec(CodecAdapter):
    """Codec backed by the Ghostscript command-line tool."""

    def __init__(self, scratch: ScratchManager, binary: str = "gs"):
        self.scratch = scratch
        self.binary = binary
        self._version: Optional[str] = None

    @property
    def name(self) -> str:
        return "ghostscript"

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def version(self) -> Optional[str]:
        if self._version is not None:
            return self._version
        if not self.is_available():
            return None
        try:
            proc = subprocess.run(
                [self.binary, "--version"],
                capture_output=True,
                text=True,
                timeout=10,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"Could not read Ghostscript version: {e}")
            return None
        if proc.returncode == 0:
            self._version = proc.stdout.strip()
        return self._version

    def build_command(self, preset: PresetSpec, in_path: str, out_path: str) -> List[str]:
        params = preset.params
        cmd = [
            self.binary,
            "-sDEVICE=pdfwrite",
            f"-dCompatibilityLevel={params.get('compatibility_level', '1.4')}",
            f"-dPDFSETTINGS={params.get('pdfsettings', '/ebook')}",
            "-dNOPAUSE", "-dQUIET", "-dBATCH",
        ]
        cmd.extend(params.get("extra_args", []))
        cmd.extend([f"-sOutputFile={out_path}", in_path])
        return cmd

    def compress(self, data: bytes, preset: PresetSpec, timeout: float) -> bytes:
        if not self.is_available():
            raise CodecUnavailable(f"Ghostscript binary '{self.binary}' not found")

        in_handle = self.scratch.allocate(owner="codec")
        out_handle = self.scratch.allocate(owner="codec")
        try:
            in_handle.write_bytes(data)
            cmd = self.build_command(preset, str(in_handle.path), str(out_handle.path))
            logger.debug(f"Executing: {' '.join(cmd)}")

            try:
                proc = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
            except subprocess.TimeoutExpired:
                raise CodecTimeout(
                    f"Ghostscript timed out after {timeout:.0f}s (preset {preset.name})"
                ) from None
            except OSError as e:
                raise CodecUnavailable(f"Ghostscript could not be started: {e}") from e

            if proc.returncode != 0:
                stderr = (proc.stderr or "").strip()
                logger.debug(f"Ghostscript failed (rc={proc.returncode}): {stderr[:500]}")
                if any(marker in stderr for marker in _INPUT_ERRORS):
                    raise CodecInputRejected(
                        f"Ghostscript rejected the input (rc={proc.returncode})"
                    )
                raise CodecUnavailable(f"Ghostscript exited with rc={proc.returncode}")

            if out_handle.size() == 0:
                raise CodecOutputInvalid("Output file is empty")

            return out_handle.read_bytes()
        finally:
            in_handle.release()
            out_handle.release()
