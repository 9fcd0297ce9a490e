from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Optional, Tuple

DEFAULT_MAX_INCLUDE_DEPTH = 32

def _env_flag(value: str) -> bool:
    return value.strip().lower() not in ("", "0", "false", "no", "off")

@dataclass(frozen=True)
class EngineConfig:
    """Settings for one TemplateEngine.

    `root_dir` switches on root mode: every template path, the entry template
    included, must resolve inside it.
    """

    base_dir: Path = field(default_factory=Path.cwd)
    root_dir: Optional[Path] = None
    allowed_suffixes: Tuple[str, ...] = (".html",)
    cache_templates: bool = True
    max_include_depth: int = DEFAULT_MAX_INCLUDE_DEPTH
    encoding: str = "utf-8"

    def __post_init__(self) -> None:
        # accept plain strings for the path fields
        object.__setattr__(self, "base_dir", Path(self.base_dir))
        if self.root_dir is not None:
            object.__setattr__(self, "root_dir", Path(self.root_dir))
        object.__setattr__(self, "allowed_suffixes", tuple(s.lower() for s in self.allowed_suffixes))

        if self.max_include_depth < 0:
            raise ValueError("max_include_depth must be >= 0")

    @classmethod
    def from_env(cls, **overrides: Any) -> "EngineConfig":
        """Defaults, then STE_* environment variables, then `overrides`."""
        values: dict[str, Any] = {}

        base = os.environ.get("STE_BASE_DIR")
        if base:
            values["base_dir"] = Path(base)

        root = os.environ.get("STE_ROOT_DIR")
        if root:
            values["root_dir"] = Path(root)

        cache = os.environ.get("STE_CACHE")
        if cache is not None:
            values["cache_templates"] = _env_flag(cache)

        depth = os.environ.get("STE_MAX_INCLUDE_DEPTH")
        if depth:
            try:
                values["max_include_depth"] = int(depth)
            except ValueError:
                raise ValueError(f"STE_MAX_INCLUDE_DEPTH must be an integer, got {depth!r}") from None

        values.update(overrides)
        return cls(**values)

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown EngineConfig option(s): {', '.join(sorted(unknown))}")
        return replace(self, **overrides)
