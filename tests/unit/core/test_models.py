"""Tests for document and chat models."""

from __future__ import annotations

import dataclasses

import pytest

from conftest import make_doc
from repochat.core.models.chat import DialogTurn
from repochat.core.models.document import Document, document_id_for


def test_document_id_is_stable_path_hash():
    assert document_id_for("pkg/a.py") == document_id_for("pkg/a.py")
    assert document_id_for("pkg/a.py") != document_id_for("pkg/b.py")
    assert len(document_id_for("x")) == 16


def test_document_is_immutable():
    doc = make_doc("a.py", "text")
    with pytest.raises(dataclasses.FrozenInstanceError):
        doc.text = "changed"


def test_with_text_creates_new_document():
    doc = make_doc("a.py", "old").with_vector([0.1])
    edited = doc.with_text("new", token_count=1)

    assert doc.text == "old"
    assert edited.text == "new"
    assert edited.id == doc.id
    assert edited.vector is None
    assert edited.metadata.token_count == 1


def test_dict_round_trip_keeps_extras():
    doc = make_doc("a.md", "x", importance="medium", repo_id="r").with_vector([0.5])
    data = doc.to_dict()

    assert data["meta_data"]["repo_id"] == "r"
    assert Document.from_dict(data) == doc


def test_index_payload_is_flat_and_decodes():
    doc = make_doc("pkg/a.py", "body", importance="high", is_code=True)
    payload = doc.to_index_metadata("r1")

    assert all(isinstance(v, str) for v in payload.values())
    decoded = Document.from_index("body", payload)
    assert decoded.id == doc.id
    assert decoded.metadata.is_code
    assert decoded.metadata.extra["repo_id"] == "r1"


def test_dialog_turn_ids_unique():
    assert DialogTurn("q", "a").id != DialogTurn("q", "a").id
