from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Dict, List

import pytest

BASE_DIR = Path(__file__).resolve().parent.parent
SRC_DIR = (BASE_DIR / "src").resolve()

if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))
if str(SRC_DIR) not in sys.path:
    sys.path.append(str(SRC_DIR))


def pytest_collection_modifyitems(
    session: pytest.Session,
    config: pytest.Config,
    items: List[pytest.Item],
) -> None:
    """Fail fast if a scenario table ever produces duplicate node IDs."""
    del session
    del config

    seen: Dict[str, int] = {}
    duplicates: List[str] = []
    for item in items:
        nodeid = item.nodeid
        if nodeid in seen:
            duplicates.append(nodeid)
            continue
        seen[nodeid] = 1

    if not duplicates:
        return

    lines = "\n".join(f"- {nodeid}" for nodeid in sorted(set(duplicates)))
    raise pytest.UsageError(
        "Duplicate pytest nodeids detected during collection:\n" f"{lines}"
    )


@pytest.fixture
def template_dir(tmp_path: Path) -> Path:
    """Empty directory that acts as the engine base_dir."""
    root = tmp_path / "templates"
    root.mkdir()
    return root


@pytest.fixture
def write_template(template_dir: Path) -> Callable[[str, str], Path]:
    """Write `source` to `name` under template_dir, creating parent dirs."""

    def _write(name: str, source: str) -> Path:
        path = template_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source, encoding="utf-8")
        return path

    return _write


@pytest.fixture(autouse=True)
def _no_ste_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "STE_BASE_DIR",
        "STE_ROOT_DIR",
        "STE_CACHE",
        "STE_MAX_INCLUDE_DEPTH",
        "STE_DEBUG_PY_TRACE",
        "STE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
