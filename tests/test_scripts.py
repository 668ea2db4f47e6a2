from __future__ import annotations

import pytest

from scratch_git.scripts import ScriptDocument
from scratch_git.transport.base import ProtocolError


def _blocks() -> dict[str, object]:
    return {
        "hat": {
            "opcode": "event_whenflagclicked",
            "next": "ifelse",
            "parent": None,
            "inputs": {},
            "fields": {},
            "topLevel": True,
        },
        "ifelse": {
            "opcode": "control_if_else",
            "next": None,
            "parent": "hat",
            "inputs": {
                "CONDITION": [2, "touching"],
                "SUBSTACK": [2, "say"],
                "SUBSTACK2": [2, "hide"],
            },
            "fields": {},
            "topLevel": False,
        },
        "touching": {
            "opcode": "sensing_mousedown",
            "next": None,
            "parent": "ifelse",
            "inputs": {},
            "fields": {},
            "topLevel": False,
        },
        "say": {
            "opcode": "looks_say",
            "next": None,
            "parent": "ifelse",
            "inputs": {"MESSAGE": [1, [10, "Hello!"]]},
            "fields": {},
            "topLevel": False,
        },
        "hide": {
            "opcode": "looks_hide",
            "next": None,
            "parent": "ifelse",
            "inputs": {},
            "fields": {},
            "topLevel": False,
        },
        "Another": {
            "opcode": "event_whenkeypressed",
            "next": None,
            "parent": None,
            "inputs": {},
            "fields": {"KEY_OPTION": ["space", None]},
            "topLevel": True,
        },
        "var_reporter": [12, "score", "abc", 10, 10],
    }


def test_render_nests_substacks_and_inlines_conditions() -> None:
    document = ScriptDocument.from_payload({"blocks": _blocks()}, "Cat")

    assert document.top_ids == ["hat", "Another"]
    assert document.scripts() == [
        "event_whenflagclicked\n"
        'control_if_else {"CONDITION":[2,"id"],"SUBSTACK":[2,"id"],"SUBSTACK2":[2,"id"]}'
        "\tsensing_mousedown\n"
        '\tlooks_say {"MESSAGE":[1,[10,"Hello!"]]}\n'
        "else\n"
        "\tlooks_hide\n",
        'event_whenkeypressed {"KEY_OPTION":["space",null]}\n',
    ]
    assert document.render().endswith("null]}")


def test_document_from_whole_project() -> None:
    project = {
        "targets": [
            {"isStage": True, "name": "Stage", "blocks": {}},
            {"isStage": False, "name": "Cat", "blocks": _blocks()},
        ]
    }

    assert ScriptDocument.from_payload(project, "Cat").top_ids == ["hat", "Another"]
    assert ScriptDocument.from_payload(project, "Stage").blocks == {}
    with pytest.raises(ProtocolError):
        ScriptDocument.from_payload(project, "Dog")


def test_render_rejects_broken_chains() -> None:
    blocks = {
        "a": {"opcode": "motion_move", "next": "b", "topLevel": True},
        "b": {"opcode": "motion_turn", "next": "a"},
    }
    with pytest.raises(ProtocolError):
        ScriptDocument("Cat", blocks).render()

    with pytest.raises(ProtocolError):
        ScriptDocument("Cat", {"a": {"next": None, "topLevel": True}}).render()


def test_malformed_document() -> None:
    with pytest.raises(ProtocolError):
        ScriptDocument.from_payload(["blocks"], "Cat")


def test_render_rejects_substack_pointing_at_ancestor() -> None:
    blocks = {
        "loop": {
            "opcode": "control_forever",
            "next": None,
            "inputs": {"SUBSTACK": [2, "loop"]},
            "topLevel": True,
        },
    }
    with pytest.raises(ProtocolError, match="Cycle"):
        ScriptDocument("Cat", blocks).render()
