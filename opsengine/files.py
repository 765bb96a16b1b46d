"""Filesystem actions wrapped into :class:`OperationResult` values."""
from __future__ import annotations

import shutil
from pathlib import Path

from opsengine.errors import InvalidRequest
from opsengine.models import OperationResult

_MAX_READ_BYTES = 2 * 1024 * 1024


class FileOperations:
    """Create, move, copy, delete and read paths relative to ``base_dir``.

    Write, move and copy create missing parent directories of the
    destination. Failures surface as unsuccessful results, never exceptions.
    """

    def __init__(self, base_dir: Path | str | None = None) -> None:
        self._base_dir = Path(base_dir) if base_dir is not None else None

    def _resolve(self, path: str | Path | None, label: str = "path") -> Path:
        raw = str(path or "").strip()
        if not raw:
            raise InvalidRequest(f"A {label} is required")
        resolved = Path(raw).expanduser()
        if not resolved.is_absolute():
            resolved = (self._base_dir or Path.cwd()) / resolved
        return resolved

    def create_file(self, path: str | Path, content: str = "") -> OperationResult:
        try:
            target = self._resolve(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(str(content or ""), encoding="utf-8")
        except (OSError, InvalidRequest) as exc:
            return OperationResult.fail(exc)
        return OperationResult.ok(f"File created: {target}", data={"path": str(target)})

    def create_folder(self, path: str | Path) -> OperationResult:
        try:
            target = self._resolve(path)
            target.mkdir(parents=True, exist_ok=True)
        except (OSError, InvalidRequest) as exc:
            return OperationResult.fail(exc)
        return OperationResult.ok(f"Folder created: {target}", data={"path": str(target)})

    def move(self, source: str | Path, destination: str | Path | None) -> OperationResult:
        try:
            src = self._resolve(source, "source")
            dest = self._resolve(destination, "destination")
            if not src.exists():
                raise FileNotFoundError(f"No such file or directory: {src}")
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(src), str(dest))
        except (OSError, InvalidRequest) as exc:
            return OperationResult.fail(exc)
        return OperationResult.ok(f"File moved from {src} to {dest}", data={"source": str(src), "destination": str(dest)})

    def copy(self, source: str | Path, destination: str | Path | None) -> OperationResult:
        try:
            src = self._resolve(source, "source")
            dest = self._resolve(destination, "destination")
            dest.parent.mkdir(parents=True, exist_ok=True)
            if src.is_dir():
                shutil.copytree(src, dest, dirs_exist_ok=True)
            else:
                shutil.copy2(src, dest)
        except (OSError, InvalidRequest) as exc:
            return OperationResult.fail(exc)
        return OperationResult.ok(f"File copied from {src} to {dest}", data={"source": str(src), "destination": str(dest)})

    def delete(self, path: str | Path) -> OperationResult:
        """Delete a file or directory tree; a missing path counts as deleted."""
        try:
            target = self._resolve(path)
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            elif target.exists() or target.is_symlink():
                target.unlink()
        except (OSError, InvalidRequest) as exc:
            return OperationResult.fail(exc)
        return OperationResult.ok(f"Deleted: {target}", data={"path": str(target)})

    def read(self, path: str | Path, *, max_bytes: int = _MAX_READ_BYTES) -> OperationResult:
        try:
            target = self._resolve(path)
            with target.open("rb") as handle:
                data = handle.read(max_bytes + 1)
        except (OSError, InvalidRequest) as exc:
            return OperationResult.fail(exc)
        truncated = len(data) > max_bytes
        text = data[:max_bytes].decode("utf-8", errors="replace")
        message = "File read successfully" + (" (truncated)" if truncated else "")
        return OperationResult.ok(message, data=text)


__all__ = ["FileOperations"]
