"""Shared type definitions (MessageKind, BinaryAnswer, Vocabulary, UnknownMessageError)."""

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from common.constants import BINARY_ANSWER_NO, BINARY_ANSWER_YES, HANDSHAKE_TOKEN


class MessageKind(enum.Enum):
    """Logical messages a peer may send to the server."""
    HANDSHAKE = "HANDSHAKE"
    SYNC_FILES = "SYNC_FILES"
    GET_MANAGED_DIRECTORIES = "GET_MANAGED_DIRECTORIES"
    GET_NUMBER_OF_MANAGED_FILES = "GET_NUMBER_OF_MANAGED_FILES"
    EXIT = "EXIT"


class BinaryAnswer(enum.IntEnum):
    """Peer reply to "do you have this file?"."""
    YES = BINARY_ANSWER_YES
    NO = BINARY_ANSWER_NO


class Vocabulary:
    """
    Immutable table mapping every MessageKind to the literal token used on the wire.

    The table is exhaustive and its literals are unique. The HANDSHAKE literal is
    always HANDSHAKE_TOKEN, since a peer has to send it before learning the rest.
    """

    def __init__(self, literals: Mapping[MessageKind, str]):
        """
        Build a vocabulary from a kind -> literal mapping.

        Args:
            literals: Literal token for each MessageKind

        Raises:
            ValueError: If a kind is missing, a literal is repeated or empty,
                or the HANDSHAKE literal is not HANDSHAKE_TOKEN
        """
        missing = [kind.name for kind in MessageKind if kind not in literals]
        if missing:
            raise ValueError(f"Vocabulary is missing literals for: {', '.join(missing)}")

        ordered = {kind: literals[kind] for kind in MessageKind}
        if any(not literal for literal in ordered.values()):
            raise ValueError("Vocabulary literals must be non-empty strings")
        if len(set(ordered.values())) != len(ordered):
            raise ValueError("Vocabulary literals must be unique")
        if ordered[MessageKind.HANDSHAKE] != HANDSHAKE_TOKEN:
            raise ValueError(f"HANDSHAKE literal must be {HANDSHAKE_TOKEN!r}")

        self._literals = MappingProxyType(ordered)
        self._kinds = MappingProxyType({literal: kind for kind, literal in ordered.items()})

    @classmethod
    def default(cls) -> "Vocabulary":
        """Vocabulary whose literals are the kind names."""
        return cls({kind: kind.value for kind in MessageKind})

    @classmethod
    def with_prefix(cls, prefix: str) -> "Vocabulary":
        """
        Vocabulary whose literals are the kind names behind a common prefix.

        Args:
            prefix: Text prepended to every literal except HANDSHAKE

        Returns:
            New Vocabulary instance
        """
        literals = {kind: f"{prefix}{kind.value}" for kind in MessageKind}
        literals[MessageKind.HANDSHAKE] = HANDSHAKE_TOKEN
        return cls(literals)

    @property
    def handshake(self) -> str:
        return self._literals[MessageKind.HANDSHAKE]

    def literal(self, kind: MessageKind) -> str:
        return self._literals[kind]

    def kind_of(self, token: str) -> Optional[MessageKind]:
        """Return the kind whose literal equals token, or None if unknown."""
        return self._kinds.get(token)

    def to_wire(self) -> Dict[str, str]:
        """Kind name -> literal, in enumeration order."""
        return {kind.name: literal for kind, literal in self._literals.items()}

    def __contains__(self, token: object) -> bool:
        return token in self._kinds

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Vocabulary):
            return NotImplemented
        return dict(self._literals) == dict(other._literals)

    def __hash__(self) -> int:
        return hash(tuple(self._literals.items()))

    def __repr__(self) -> str:
        return f"Vocabulary({self.to_wire()!r})"


@dataclass(frozen=True)
class UnknownMessageError:
    """
    Error object sent to a peer that used a token outside the vocabulary.
    """
    message: str

    def to_wire(self) -> Dict[str, str]:
        return {"error": "unknown_message", "message": self.message}

    @classmethod
    def from_wire(cls, obj: Mapping[str, str]) -> "UnknownMessageError":
        return cls(message=obj["message"])
