"""Shared fixtures for catalog tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.mocks import build_mo


FRENCH_METADATA = (
    "Project-Id-Version: demo 1.0\n"
    "Language: fr\n"
    "Content-Type: text/plain; charset=UTF-8\n"
    "Plural-Forms: nplurals=2; plural=(n != 1);\n"
)


@pytest.fixture
def french_entries() -> dict[str, str]:
    """Entries covering plain, plural, context and context+plural keys."""
    return {
        "": FRENCH_METADATA,
        "Hello World": "Bonjour le Monde",
        "One item\0Many items": "Un article\0Plusieurs articles",
        "menu\x04View": "Affichage",
        "cart\x04One item\0Many items": "Un article au panier\0Plusieurs articles au panier",
        "Coffee": "Café",
        "Ünïcode key": "Clé unicode",
    }


@pytest.fixture
def french_mo(french_entries: dict[str, str]) -> bytes:
    return build_mo(french_entries)


@pytest.fixture
def french_mo_file(tmp_path: Path, french_mo: bytes) -> Path:
    path = tmp_path / "fr" / "LC_MESSAGES" / "messages.mo"
    path.parent.mkdir(parents=True)
    path.write_bytes(french_mo)
    return path


@pytest.fixture(params=[True, False], ids=["cached", "binary-search"])
def cache_mode(request: pytest.FixtureRequest) -> bool:
    """Run a test against both lookup strategies."""
    return request.param
