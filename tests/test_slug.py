"""Unit tests for slug generation."""

from urllib.parse import quote

from scvl.config import get_settings
from scvl.slug import SLUG_ALPHABET, generate_slug

settings = get_settings()


def test_generate_slug_default_length() -> None:
    slug = generate_slug()
    assert len(slug) == settings.SLUG_LENGTH


def test_generate_slug_custom_length() -> None:
    slug = generate_slug(length=12)
    assert len(slug) == 12


def test_generate_slug_uses_unambiguous_alphabet() -> None:
    for char in "0Oo1lI":
        assert char not in SLUG_ALPHABET
    for _ in range(100):
        slug = generate_slug()
        assert all(c in SLUG_ALPHABET for c in slug)


def test_generate_slug_is_path_safe() -> None:
    for _ in range(100):
        slug = generate_slug()
        assert quote(slug, safe="") == slug


def test_generate_slug_uniqueness() -> None:
    slugs = {generate_slug() for _ in range(1000)}
    # 56^7 possibilities; 1000 draws should not collide
    assert len(slugs) == 1000
