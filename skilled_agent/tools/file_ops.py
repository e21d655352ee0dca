"""File operations: directory listing and guarded file reading."""

import os
import re
from pathlib import Path, PurePosixPath

from ..errors import ToolValidationError

READ_DENIED_MESSAGE = "Cannot read that file path"

VCS_DIRS = {".git"}
DEPENDENCY_DIRS = {"node_modules", "__pycache__", ".venv"}
BINARY_EXT_RE = re.compile(r"\.(png|jpg|jpeg|gif|bmp|webp|avif|pdf)$", re.IGNORECASE)


class FileOps:
    """Directory listing is unrestricted; reading goes through a denylist.

    The denylist guards against accidental disclosure of secrets and
    binary blobs. It is not a sandbox.
    """

    def __init__(self, max_read_bytes: int = 1_000_000):
        self.max_read_bytes = max_read_bytes

    @staticmethod
    def is_denied(file_path: str) -> bool:
        normalized = str(file_path).replace("\\", "/")
        parts = PurePosixPath(normalized).parts
        for part in parts:
            if part.startswith(".env"):
                return True
            if part in VCS_DIRS or part in DEPENDENCY_DIRS:
                return True
        return bool(BINARY_EXT_RE.search(normalized))

    def validate_read_path(self, file_path: str) -> None:
        if self.is_denied(file_path):
            raise ToolValidationError(READ_DENIED_MESSAGE)

    def read_file(self, file_path: str) -> str:
        self.validate_read_path(file_path)

        fp = Path(file_path)
        try:
            size = fp.stat().st_size
        except FileNotFoundError:
            return "File not found"
        if fp.is_dir():
            return "Not a file"
        if size > self.max_read_bytes:
            return "File too large to read"

        raw = fp.read_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return raw.decode("latin-1")

    @staticmethod
    def list_directory(dir_path: str) -> str:
        """Entry names, one per line, directories suffixed with ``/``.

        Order is whatever the filesystem yields.
        """
        try:
            with os.scandir(dir_path) as it:
                entries = [
                    f"{entry.name}/" if entry.is_dir() else entry.name
                    for entry in it
                ]
        except FileNotFoundError:
            return "Directory not found"
        return "\n".join(entries)
