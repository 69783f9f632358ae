"""Scoped staging of secret material for out-of-process consumers.

Secret bytes are written into a fresh directory with a random name and
mode 0700, one file per item with mode 0600. The directory is removed
when the scope exits, whether it exits normally, by exception, or by
task cancellation. Removal is synchronous, so a cancelled task cannot
interrupt it.
"""

import logging
import os
import secrets
import stat
import tempfile
from collections.abc import Awaitable, Callable, Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from egs.metrics import egs_metrics
from shared.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

SECRET_FILE_NAME = "secret.pem"


class StagingError(Exception):
    """Raised when secret material cannot be staged."""

    pass


def resolve_staging_root(configured: str | Path | None = None) -> Path:
    """Pick the directory under which per-invocation staging directories are made.

    Priority:
    1. The configured directory, which must be private to the current user
    2. $XDG_RUNTIME_DIR (per-user, mode 0700 by convention)
    3. ~/.cache/egs/staging, created with mode 0700

    Raises:
        StagingError: If the configured directory is missing or shared.
    """
    if configured:
        root = Path(configured)
        if not root.is_dir():
            raise StagingError(f"Staging directory does not exist: {root}")
        mode = root.stat().st_mode
        if mode & (stat.S_IRWXG | stat.S_IRWXO):
            raise StagingError(
                f"Staging directory {root} is accessible to other users "
                f"(mode {stat.filemode(mode)})"
            )
        return root

    runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if runtime_dir and Path(runtime_dir).is_dir():
        return Path(runtime_dir)

    root = Path.home() / ".cache" / "egs" / "staging"
    try:
        root.mkdir(mode=0o700, parents=True, exist_ok=True)
        root.chmod(0o700)
    except OSError as e:
        raise StagingError(f"Cannot create staging directory {root}: {e}") from e
    return root


class SecretStager:
    """Stages secret material on disk for exactly the duration of a scope."""

    def __init__(self, root: str | Path | None = None) -> None:
        self._configured_root = root
        self._root: Path | None = None

    @property
    def root(self) -> Path:
        if self._root is None:
            self._root = resolve_staging_root(
                self._configured_root or settings.EGS_STAGING_DIR
            )
        return self._root

    @contextmanager
    def stage(self, files: Mapping[str, str | bytes]) -> Iterator[dict[str, Path]]:
        """Write each item to a private file and yield their paths.

        Args:
            files: Logical name -> content. Names only pick the file suffix;
                on-disk names are random.

        Yields:
            Logical name -> path of the staged file.

        Raises:
            StagingError: If the directory or a file cannot be created.
        """
        try:
            directory = Path(tempfile.mkdtemp(prefix="egs-", dir=self.root))
        except OSError as e:
            raise StagingError(f"Cannot create staging location: {e}") from e

        try:
            paths = {
                name: self._write(directory, name, material) for name, material in files.items()
            }
            logger.debug("secret_material_staged", extra={"files": len(paths)})
            yield paths
        finally:
            self._cleanup(directory)

    async def run_with_staged_secret(
        self,
        material: str | bytes,
        operation: Callable[[Path], Awaitable[T]],
    ) -> T:
        """Stage one secret, await ``operation(path)``, and always remove the secret."""
        with self.stage({SECRET_FILE_NAME: material}) as paths:
            return await operation(paths[SECRET_FILE_NAME])

    @staticmethod
    def _write(directory: Path, name: str, material: str | bytes) -> Path:
        data = material.encode("utf-8") if isinstance(material, str) else material
        path = directory / f"{secrets.token_hex(16)}{Path(name).suffix}"
        flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_NOFOLLOW", 0)
        try:
            fd = os.open(path, flags, 0o600)
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
        except OSError as e:
            raise StagingError(f"Cannot stage secret material: {e}") from e
        return path

    @staticmethod
    def _cleanup(directory: Path) -> None:
        """Remove a staging directory. Never raises; a missing path counts as removed."""
        try:
            for entry in directory.iterdir():
                _overwrite(entry)
                entry.unlink(missing_ok=True)
            directory.rmdir()
        except FileNotFoundError:
            pass
        except OSError as e:
            egs_metrics.record_staging_cleanup_failed()
            logger.error(
                "staging_cleanup_failed",
                extra={"directory": str(directory), "error": str(e)},
            )


def _overwrite(path: Path) -> None:
    """Zero a staged file in place before unlinking it (best effort)."""
    try:
        size = path.stat().st_size
        with open(path, "r+b") as handle:
            handle.write(b"\0" * size)
            handle.flush()
            os.fsync(handle.fileno())
    except OSError as e:
        logger.debug("staged_file_overwrite_skipped", extra={"error": str(e)})
