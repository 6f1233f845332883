"""Release name validation and generation."""

from __future__ import annotations

import random
import re

from src.app.core.errors import InvalidArgumentError

# DNS-1123 label: lowercase alphanumerics and '-', starting and ending alphanumeric
_DNS1123_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")

MAX_NAME_LENGTH = 53
GENERATE_ATTEMPTS = 5

_ADJECTIVES = [
    "amber", "brave", "calm", "dapper", "eager", "fancy", "gentle", "happy",
    "icy", "jolly", "keen", "lively", "mellow", "nimble", "quiet", "rusty",
    "sunny", "tidy", "vivid", "witty",
]
_NOUNS = [
    "badger", "cheetah", "dolphin", "eagle", "falcon", "gecko", "heron",
    "ibis", "jaguar", "koala", "lemur", "marmot", "narwhal", "otter",
    "panda", "quokka", "raven", "salmon", "tapir", "walrus",
]


def validate_name(name: str, max_length: int = MAX_NAME_LENGTH) -> None:
    """Raise InvalidArgumentError unless ``name`` is a usable release name."""
    if len(name) > max_length:
        raise InvalidArgumentError(
            f"release name {name!r} exceeds max length of {max_length}"
        )
    if not _DNS1123_LABEL.match(name):
        raise InvalidArgumentError(
            f"release name {name!r} must be a lowercase DNS-1123 label"
        )


def generate_name(rng: random.Random | None = None) -> str:
    """Random ``adjective-noun`` name."""
    rng = rng or random.Random()
    return f"{rng.choice(_ADJECTIVES)}-{rng.choice(_NOUNS)}"
