"""Security validators for input validation."""

from pathlib import Path
from typing import Tuple, Optional


class TargetValidator:
    """Validates the directory the agent is asked to document."""

    @staticmethod
    def validate_target_dir(path_str: str) -> Tuple[bool, str, Optional[Path]]:
        """Validate a local target directory.

        Args:
            path_str: Filesystem path to validate

        Returns:
            Tuple of (is_valid, error_message, resolved_path)
        """
        if not path_str or len(path_str) > 4096:
            return False, "Invalid path length", None

        path = Path(path_str).expanduser()
        if not path.exists():
            return False, f"Path does not exist: {path_str}", None
        if not path.is_dir():
            return False, f"Path is not a directory: {path_str}", None
        return True, "", path.resolve()


class PathValidator:
    """Keeps tool file access inside the target directory."""

    @staticmethod
    def resolve_within(root: Path, relative: str) -> Tuple[bool, str, Optional[Path]]:
        """
        Resolve a model-supplied path against ``root``.

        Prevents:
        - Path traversal (../) out of the root
        - Absolute paths pointing elsewhere
        - Symlinks resolving outside the root
        - Null bytes

        Args:
            root: Resolved target directory
            relative: Path as given by the model (relative to root)

        Returns:
            Tuple of (is_valid, error_message, resolved_path)
        """
        if "\x00" in relative:
            return False, "Null byte in path", None

        cleaned = relative.strip() or "."
        candidate = Path(cleaned)
        if candidate.is_absolute():
            # Tolerate absolute paths that already point inside the root
            resolved = candidate.resolve()
        else:
            resolved = (root / candidate).resolve()

        try:
            resolved.relative_to(root)
        except ValueError:
            return False, f"Path escapes the project root: {relative}", None

        return True, "", resolved
