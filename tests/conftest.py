from __future__ import annotations

from pathlib import Path
from typing import Dict

import pytest

from tests._fixtures.library_builder import LibraryBuilder
from tests._fixtures.sources import ELIXIR_MATH, PYTHON_MATH, RUST_MATH


@pytest.fixture
def library_builder(tmp_path: Path) -> LibraryBuilder:
    """Provide a reusable library builder rooted at the pytest tmp_path."""
    return LibraryBuilder(tmp_path)


@pytest.fixture
def math_libraries(library_builder: LibraryBuilder) -> Dict[str, Path]:
    """Elixir, Python and Rust libraries that share ``add`` and ``concat``."""
    return {
        "elixir": library_builder.write("elixir", {"lib/std/math.ex": ELIXIR_MATH}),
        "python": library_builder.write("python", {"std_math.py": PYTHON_MATH}),
        "rust": library_builder.write("rust", {"src/lib.rs": RUST_MATH}),
    }
