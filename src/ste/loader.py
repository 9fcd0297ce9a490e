"""
Template file access: path resolution, root-mode checks, reads and the
parsed-template cache.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Tuple

from .config import EngineConfig
from .nodes import Template
from .parser import parse_source
from .types import FileError, PathSecurityError

logger = logging.getLogger(__name__)

def _normalize(path: Path) -> Path:
    return Path(os.path.normpath(path))

class TemplateLoader:
    def __init__(self, config: EngineConfig):
        self.config = config
        self._cache: Dict[Path, Template] = {}

    # ---------- Path resolution ----------

    def resolve_entry(self, path: str | os.PathLike[str]) -> Tuple[Path, Path]:
        """(template path, base path) for the first template of a render tree"""
        entry = Path(path)

        if entry.is_absolute():
            resolved = _normalize(entry)
            return resolved, resolved.parent

        base = _normalize(self.config.base_dir.absolute())
        return _normalize(base / entry), base

    def resolve_include(self, path: str, including: Optional[Path], base: Path) -> Path:
        """
        `./x` and `../x` are relative to the including template; bare and
        `/`-prefixed paths are relative to the render base path.
        """
        if path.startswith(("./", "../")) and including is not None:
            resolved = _normalize(including.parent / path)
        else:
            resolved = _normalize(base / path.lstrip("/"))

        logger.debug("Resolved include %s -> %s", path, resolved)
        return resolved

    def check_path(self, path: Path) -> None:
        root_dir = self.config.root_dir
        if root_dir is not None:
            root = root_dir.resolve()
            target = path.resolve()
            if not target.is_relative_to(root):
                raise PathSecurityError(f"Path {path} resolves outside the template root {root}", path=str(path))

        if path.suffix.lower() not in self.config.allowed_suffixes:
            raise FileError(f"File {path} is not an HTML file", path=str(path))

    # ---------- Reading ----------

    async def read(self, path: Path) -> str:
        try:
            return await asyncio.to_thread(path.read_text, encoding=self.config.encoding)
        except FileNotFoundError as exc:
            raise FileError(f"Template file not found: {path}", path=str(path), cause=exc) from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise FileError(f"Cannot read template {path}: {exc}", path=str(path), cause=exc) from exc

    async def load(self, path: Path) -> Template:
        """Checked, read and parsed template for an already resolved path"""
        self.check_path(path)

        if self.config.cache_templates:
            cached = self._cache.get(path)
            if cached is not None:
                logger.debug("Template cache hit: %s", path)
                return cached
            logger.debug("Template cache miss: %s", path)

        ast = parse_source(await self.read(path))

        if self.config.cache_templates:
            self._cache[path] = ast

        return ast

    # ---------- Cache control ----------

    def clear_cache(self) -> None:
        self._cache.clear()

    def remove_from_cache(self, path: str | os.PathLike[str]) -> bool:
        resolved, _ = self.resolve_entry(path)
        return self._cache.pop(resolved, None) is not None

    def cached_paths(self) -> list[Path]:
        return list(self._cache)
