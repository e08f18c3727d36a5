"""Unit tests for the message vocabulary and error object."""

import pytest

from common.constants import HANDSHAKE_TOKEN
from common.types import BinaryAnswer, MessageKind, UnknownMessageError, Vocabulary


class TestVocabulary:

    def test_default_literals_are_kind_names(self):
        vocabulary = Vocabulary.default()

        assert all(vocabulary.literal(kind) == kind.value for kind in MessageKind)

    def test_wire_form_follows_enumeration_order(self):
        assert list(Vocabulary.default().to_wire()) == [kind.name for kind in MessageKind]

    def test_kind_of_known_and_unknown_tokens(self):
        vocabulary = Vocabulary.with_prefix("SECURE_")

        assert vocabulary.kind_of("SECURE_SYNC_FILES") is MessageKind.SYNC_FILES
        assert vocabulary.kind_of("SYNC_FILES") is None
        assert "SECURE_EXIT" in vocabulary
        assert "frobnicate" not in vocabulary

    def test_prefix_never_applies_to_handshake(self):
        vocabulary = Vocabulary.with_prefix("SECURE_")

        assert vocabulary.handshake == HANDSHAKE_TOKEN
        assert vocabulary.kind_of(HANDSHAKE_TOKEN) is MessageKind.HANDSHAKE

    def test_missing_kind_is_rejected(self):
        literals = {kind: kind.value for kind in MessageKind if kind is not MessageKind.EXIT}

        with pytest.raises(ValueError, match="EXIT"):
            Vocabulary(literals)

    def test_duplicate_literals_are_rejected(self):
        literals = {kind: kind.value for kind in MessageKind}
        literals[MessageKind.EXIT] = "SYNC_FILES"

        with pytest.raises(ValueError, match="unique"):
            Vocabulary(literals)

    def test_custom_handshake_literal_is_rejected(self):
        literals = {kind: kind.value for kind in MessageKind}
        literals[MessageKind.HANDSHAKE] = "HELLO"

        with pytest.raises(ValueError):
            Vocabulary(literals)

    def test_vocabulary_is_read_only(self):
        vocabulary = Vocabulary.default()

        with pytest.raises(TypeError):
            vocabulary._literals[MessageKind.EXIT] = "QUIT"

    def test_equality(self):
        assert Vocabulary.default() == Vocabulary.with_prefix("")
        assert Vocabulary.default() != Vocabulary.with_prefix("X_")


class TestBinaryAnswer:

    def test_wire_values(self):
        assert int(BinaryAnswer.YES) == 1
        assert int(BinaryAnswer.NO) == 0


class TestUnknownMessageError:

    def test_wire_form_names_offending_token(self):
        error = UnknownMessageError("frobnicate")

        assert error.to_wire() == {"error": "unknown_message", "message": "frobnicate"}
        assert UnknownMessageError.from_wire(error.to_wire()) == error
