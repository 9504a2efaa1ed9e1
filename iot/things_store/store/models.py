"""Entity records stored by the Things store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

Metadata = dict[str, Any]


@dataclass
class Thing:
    """An addressable endpoint identified by a secret key.

    Attributes:
        id: Unique identifier (UUID), generated on save when empty
        owner: Account that owns the thing
        key: Secret credential used for access checks, empty when unset
        name: Optional display name
        metadata: Arbitrary JSON document
    """

    id: str = ""
    owner: str = ""
    key: str = ""
    name: str = ""
    metadata: Metadata = field(default_factory=dict)


@dataclass
class Channel:
    """A communication topic that things connect to.

    Attributes:
        id: Unique identifier (UUID), generated on save when empty
        owner: Account that owns the channel
        name: Optional display name
        metadata: Arbitrary JSON document
    """

    id: str = ""
    owner: str = ""
    name: str = ""
    metadata: Metadata = field(default_factory=dict)
