"""Project and goal fingerprints used as cache keys.

A project fingerprint combines two signals:
  1. Content hashes of the manifest and lock files that are present
     (fixed, ordered list). Any dependency change alters the fingerprint.
  2. Hashes of the sorted relative file listing of ``src/`` and ``app/``.
     Names only, never contents, so editing a source file keeps the
     fingerprint stable while adding, removing or renaming one does not.
"""

from __future__ import annotations

import asyncio
import hashlib
import os
from pathlib import Path

import structlog

log = structlog.get_logger()

MANIFEST_FILES: tuple[str, ...] = (
    "package.json",
    "tsconfig.json",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "requirements.txt",
    "pyproject.toml",
    "poetry.lock",
    "uv.lock",
    "Pipfile.lock",
    "go.mod",
    "Cargo.toml",
    "Cargo.lock",
)

SOURCE_DIRS: tuple[str, ...] = ("src", "app")

EXCLUDED_DIRS: frozenset[str] = frozenset(
    {"node_modules", "dist", "build", "target", "venv", "__pycache__"}
)


def _sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def fingerprint_text(text: str) -> str:
    """Fingerprint a free-text value such as the user's goal description."""
    return _sha256(" ".join(text.split()).encode("utf-8"))


def list_source_files(directory: Path) -> list[str]:
    """Sorted POSIX paths of all files under ``directory``, relative to it.

    Hidden entries and build/dependency directories are skipped at any depth.
    """
    files: list[str] = []
    for dirpath, dirnames, filenames in os.walk(directory):
        # Prune in place so os.walk never descends into skipped trees
        dirnames[:] = [d for d in dirnames if not d.startswith(".") and d not in EXCLUDED_DIRS]
        base = Path(dirpath).relative_to(directory)
        files.extend((base / f).as_posix() for f in filenames if not f.startswith("."))
    return sorted(files)


def _compute_project_fingerprint(root: Path) -> str:
    parts: list[str] = []

    for name in MANIFEST_FILES:
        path = root / name
        if path.is_file():
            parts.append(f"{name}:{_sha256(path.read_bytes())}")

    for name in SOURCE_DIRS:
        directory = root / name
        if directory.is_dir():
            files = list_source_files(directory)
            parts.append(f"{name}/:{_sha256(chr(10).join(files).encode('utf-8'))}")
            log.debug("fingerprint_tree_hashed", directory=name, file_count=len(files))

    return _sha256("-".join(parts).encode("utf-8"))


async def compute_project_fingerprint(root: Path | str) -> str:
    """Deterministic fingerprint of a project directory.

    Filesystem work runs in a worker thread so the event loop keeps serving
    other generation tasks.
    """
    fingerprint = await asyncio.to_thread(_compute_project_fingerprint, Path(root))
    log.debug("project_fingerprint", root=str(root), fingerprint=fingerprint)
    return fingerprint
