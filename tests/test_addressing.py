import pytest

from shared.addressing import derive_conversation_id, other_participant, split_conversation_id
from shared.errors import InvalidParticipants


def test_conversation_id_is_symmetric():
    assert derive_conversation_id("u1", "u2") == "u1_u2"
    assert derive_conversation_id("u2", "u1") == "u1_u2"


def test_conversation_id_sorts_by_code_point():
    # uppercase sorts before lowercase
    assert derive_conversation_id("b", "B") == "B_b"


@pytest.mark.parametrize("a,b", [("", "u2"), ("u1", ""), ("  ", "u2"), ("u1", "u1"), ("a_b", "c"), ("a", "b_c")])
def test_invalid_participants(a, b):
    with pytest.raises(InvalidParticipants):
        derive_conversation_id(a, b)


def test_invalid_participants_is_a_value_error():
    with pytest.raises(ValueError):
        derive_conversation_id("u1", "u1")


def test_split_returns_both_participants():
    assert split_conversation_id("ai-assistant_u1") == ("ai-assistant", "u1")


@pytest.mark.parametrize("cid", ["", "lonely", "a_b_c", "_u2", "u1_"])
def test_split_rejects_malformed_ids(cid):
    with pytest.raises(InvalidParticipants):
        split_conversation_id(cid)


def test_other_participant():
    assert other_participant("u1_u2", "u1") == "u2"
    assert other_participant("u1_u2", "u2") == "u1"
    with pytest.raises(InvalidParticipants):
        other_participant("u1_u2", "u3")
