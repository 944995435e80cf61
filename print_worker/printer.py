"""
Printer Module for Print Worker

Hands documents to the operating system print spooler:
1. CUPS `lp` on Linux / macOS
2. SumatraPDF for PDFs on Windows - if available
3. ShellExecute "print" verb on Windows - fallback

The spooler owns everything after the hand-off.
"""

import subprocess
import os
import platform
import logging
import shutil
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)


class Printer:
    """
    Spooler interface for one machine.
    """

    def __init__(self, command_timeout: int = 120):
        self.command_timeout = command_timeout
        self.is_windows = platform.system() == "Windows"
        self.sumatra_path = self._find_sumatra() if self.is_windows else None

        if self.sumatra_path:
            logger.info(f"SumatraPDF found: {self.sumatra_path}")

    def _find_sumatra(self) -> Optional[str]:
        """
        Find SumatraPDF installation.

        SumatraPDF is the recommended tool for silent PDF printing on Windows.
        """
        paths = [
            r"C:\Program Files\SumatraPDF\SumatraPDF.exe",
            r"C:\Program Files (x86)\SumatraPDF\SumatraPDF.exe",
            os.path.expanduser(r"~\AppData\Local\SumatraPDF\SumatraPDF.exe"),
            # Portable version in worker directory
            os.path.join(os.path.dirname(__file__), "SumatraPDF.exe"),
        ]

        for path in paths:
            if os.path.isfile(path):
                return path

        return shutil.which("SumatraPDF")

    def _run(self, cmd: List[str]) -> subprocess.CompletedProcess:
        logger.debug(f"Running: {' '.join(cmd)}")
        return subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=self.command_timeout
        )

    def get_available_printers(self) -> List[str]:
        """
        Get list of printer names known to the spooler.
        """
        try:
            if self.is_windows:
                result = self._run(['wmic', 'printer', 'get', 'name'])
                if result.returncode == 0:
                    lines = result.stdout.strip().split('\n')
                    return [line.strip() for line in lines[1:] if line.strip()]
            else:
                result = self._run(['lpstat', '-e'])
                if result.returncode == 0:
                    return [line.strip() for line in result.stdout.splitlines() if line.strip()]

        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Could not enumerate printers: {e}")

        return []

    def print_file(
        self,
        file_path: str,
        printer_name: str,
        content_type: str = ""
    ) -> Tuple[bool, str]:
        """
        Send a file to a printer.

        Args:
            file_path: Path to file to print
            printer_name: Spooler name of the target printer
            content_type: MIME type of the document

        Returns:
            (success, message)
        """
        if not os.path.exists(file_path):
            logger.error(f"File not found: {file_path}")
            return False, f"File not found: {file_path}"

        logger.info(f"Printing: {file_path} on {printer_name} ({content_type or 'unknown type'})")

        if not self.is_windows:
            return self._print_with_lp(file_path, printer_name)

        is_pdf = content_type == "application/pdf" or file_path.lower().endswith(".pdf")
        if is_pdf and self.sumatra_path:
            return self._print_with_sumatra(file_path, printer_name)
        return self._print_generic(file_path)

    def _print_with_lp(self, file_path: str, printer_name: str) -> Tuple[bool, str]:
        cmd = ['lp']
        if printer_name:
            cmd.extend(['-d', printer_name])
        cmd.append(file_path)

        try:
            result = self._run(cmd)
        except subprocess.TimeoutExpired:
            return False, "Print command timed out"
        except OSError as e:
            return False, f"Cannot run lp: {e}"

        if result.returncode != 0:
            logger.error(f"lp failed: {result.stderr}")
            return False, result.stderr.strip() or f"lp exited with {result.returncode}"
        return True, result.stdout.strip()

    def _print_with_sumatra(self, file_path: str, printer_name: str) -> Tuple[bool, str]:
        """
        SumatraPDF.exe -print-to "Printer Name" -silent file.pdf
        """
        cmd = [self.sumatra_path]
        if printer_name:
            cmd.extend(['-print-to', printer_name])
        else:
            cmd.append('-print-to-default')
        cmd.extend(['-silent', '-print-settings', 'fit', file_path])

        try:
            result = self._run(cmd)
        except subprocess.TimeoutExpired:
            return False, "Print command timed out"
        except OSError as e:
            return False, f"Cannot run SumatraPDF: {e}"

        if result.returncode != 0:
            logger.error(f"SumatraPDF failed: {result.stderr}")
            return False, result.stderr.strip() or f"SumatraPDF exited with {result.returncode}"
        return True, "Sent to SumatraPDF"

    def _print_generic(self, file_path: str) -> Tuple[bool, str]:
        """
        Windows ShellExecute "print" verb on the default printer.
        """
        try:
            os.startfile(file_path, "print")
            return True, "Sent to the default application"
        except OSError as e:
            logger.error(f"Failed to print {file_path}: {e}")
            return False, str(e)
