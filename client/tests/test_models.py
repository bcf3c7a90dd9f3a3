"""Tests for gateway payload models."""

from quantel_gateway.models import (
    CCFragment,
    CloneInfo,
    FRAGMENT_TYPES,
    NoteFragment,
    PortInfo,
    Priority,
    ServerFragment,
    ServerFragments,
    PanZoomFragment,
    PortStatus,
    ServerInfo,
    parse_fragment,
)


class TestServerInfo:
    def test_sparse_port_lists(self) -> None:
        server = ServerInfo.model_validate(
            {
                "type": "Server",
                "ident": 1100,
                "numChannels": 3,
                "portNames": ["A", "", None],
                "chanPorts": ["A", None, ""],
            }
        )
        assert server.assigned_port_names() == ["A"]
        assert server.port_on_channel(0) == "A"
        assert server.port_on_channel(1) is None
        assert server.port_on_channel(2) is None
        assert server.port_on_channel(-1) is None

    def test_unknown_keys_are_kept(self) -> None:
        server = ServerInfo.model_validate({"ident": 1, "firmware": "7.2"})
        assert server.to_wire()["firmware"] == "7.2"


class TestFragments:
    def test_every_known_type_is_registered(self) -> None:
        assert len(FRAGMENT_TYPES) == 13
        assert all(name.endswith("Fragment") for name in FRAGMENT_TYPES)

    def test_uppercase_id_aliases(self) -> None:
        cc = parse_fragment(
            {"type": "CCFragment", "start": 0, "finish": 5, "ccID": "cc1", "ccType": 2, "effectID": 7}
        )
        note = parse_fragment(
            {"type": "NoteFragment", "start": 0, "finish": 5, "noteID": 3, "aux": 0, "mask": 1}
        )
        assert isinstance(cc, CCFragment)
        assert (cc.cc_id, cc.effect_id) == ("cc1", 7)
        assert isinstance(note, NoteFragment)
        assert note.to_wire() == {
            "type": "NoteFragment",
            "trackNum": 0,
            "start": 0,
            "finish": 5,
            "noteID": 3,
            "aux": 0,
            "mask": 1,
        }

    def test_unknown_type_falls_back_to_base(self) -> None:
        fragment = parse_fragment({"type": "HologramFragment", "start": 1, "finish": 2})
        assert type(fragment) is ServerFragment
        assert fragment.type == "HologramFragment"

    def test_pan_zoom_uses_gateway_key(self) -> None:
        fragment = parse_fragment(
            {"type": "PanZoomFragment", "start": 0, "finish": 5, "x": 1, "y": 2, "hZoom": 1.5, "vZoon": 0.5}
        )
        assert isinstance(fragment, PanZoomFragment)
        assert fragment.v_zoom == 0.5
        assert fragment.to_wire()["vZoon"] == 0.5
        assert "vZoom" not in fragment.to_wire()

    def test_invalid_known_type_falls_back_to_base(self) -> None:
        fragment = parse_fragment({"type": "FlagsFragment", "start": 0, "finish": 5, "flags": "many"})
        assert type(fragment) is ServerFragment
        assert fragment.to_wire()["flags"] == "many"

    def test_sparse_fragment_is_accepted(self) -> None:
        fragment = parse_fragment({"type": "NoteFragment", "start": 0, "finish": 5, "note": None})
        assert isinstance(fragment, NoteFragment)
        assert fragment.note_id is None

    def test_collection_serializes_subclass_fields(self) -> None:
        fragments = ServerFragments.model_validate(
            {
                "clipID": 5,
                "fragments": [
                    {"type": "FlagsFragment", "start": 0, "finish": 10, "flags": 4},
                ],
            }
        )
        assert fragments.to_wire()["fragments"][0]["flags"] == 4


class TestSparsePayloads:
    def test_port_status_with_only_a_name(self) -> None:
        status = PortStatus.model_validate({"portName": "p1"})
        assert status.port_name == "p1"
        assert status.speed is None

    def test_server_without_ident(self) -> None:
        server = ServerInfo.model_validate({"type": "Server", "down": True})
        assert server.ident is None
        assert server.down is True


class TestAliases:
    def test_port_info_by_name_or_alias(self) -> None:
        by_alias = PortInfo.model_validate({"serverID": 1100, "portName": "p1", "channelNo": 1})
        by_name = PortInfo(server_id=1100, port_name="p1", channel_no=1)
        assert by_alias.to_wire() == by_name.to_wire()
        assert by_alias.to_wire()["serverID"] == 1100

    def test_clone_info_omits_unset_fields(self) -> None:
        info = CloneInfo(clip_id=5, pool_id=11, history=False)
        assert info.to_wire() == {"clipID": 5, "poolID": 11, "history": False}

    def test_priority_values(self) -> None:
        assert Priority("HIGH") is Priority.HIGH
        assert Priority.STANDARD.value == "STANDARD"
