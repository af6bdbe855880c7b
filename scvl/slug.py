"""Short slug generation.

Slugs are sampled uniformly from an alphabet without look-alike characters
(``0 O o 1 l I``), so they survive being read aloud or retyped and are safe as
URL path segments. nanoid draws from the OS CSPRNG, so generation needs no
shared state and is safe to call from concurrent requests.

Uniqueness is not checked here; the page store's unique constraint catches the
rare collision and the caller retries.
"""

from nanoid import generate

from scvl.config import get_settings

__all__ = ["SLUG_ALPHABET", "generate_slug"]

settings = get_settings()

SLUG_ALPHABET = "23456789abcdefghijkmnpqrstuvwxyzABCDEFGHJKLMNPQRSTUVWXYZ"


def generate_slug(length: int = settings.SLUG_LENGTH) -> str:
    assert isinstance(length, int) and length > 0, f"length must be a positive integer, got {length!r}"
    return generate(SLUG_ALPHABET, length)
