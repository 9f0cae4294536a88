import re

from registry import PeerRegistry, RoomIndex


def test_register_assigns_unique_ids(registry, make_connection):
    ids = {registry.register(make_connection()) for _ in range(500)}
    assert len(ids) == 500
    assert len(registry) == 500


def test_peer_id_format(registry, make_connection):
    peer_id = registry.register(make_connection())
    assert re.fullmatch(r"peer-\d+-[a-z0-9]{9}", peer_id)


def test_register_retries_on_collision(monkeypatch, make_connection):
    registry = PeerRegistry()
    generated = iter(["peer-1-aaaaaaaaa", "peer-1-aaaaaaaaa", "peer-1-bbbbbbbbb"])
    monkeypatch.setattr("registry.generate_peer_id", lambda: next(generated))

    first = registry.register(make_connection())
    second = registry.register(make_connection())

    assert first == "peer-1-aaaaaaaaa"
    assert second == "peer-1-bbbbbbbbb"


def test_registered_peer_has_connection_and_no_room(registry, make_connection):
    connection = make_connection()
    peer = registry.get(registry.register(connection))
    assert peer.connection is connection
    assert peer.room_id is None
    assert peer.created_at > 0
    assert peer.timestamp == peer.created_at


def test_get_unknown_peer_returns_none(registry):
    assert registry.get("peer-missing") is None
    assert registry.get(None) is None


def test_remove_is_noop_when_absent(registry, make_connection):
    peer_id = registry.register(make_connection())
    registry.remove(peer_id)
    registry.remove(peer_id)
    assert peer_id not in registry
    assert len(registry) == 0


def test_room_created_lazily_and_deleted_when_empty():
    rooms = RoomIndex()
    assert "x" not in rooms

    rooms.add_member("x", "a")
    rooms.add_member("x", "b")
    assert rooms.members_of("x") == {"a", "b"}

    rooms.remove_member("x", "a")
    assert "x" in rooms
    rooms.remove_member("x", "b")
    assert "x" not in rooms
    assert len(rooms) == 0


def test_ensure_room_is_idempotent():
    rooms = RoomIndex()
    rooms.ensure_room("x")
    rooms.add_member("x", "a")
    rooms.ensure_room("x")
    assert rooms.members_of("x") == {"a"}
    assert rooms.room_ids() == ["x"]


def test_members_of_unknown_room_is_empty():
    rooms = RoomIndex()
    assert rooms.members_of("nope") == set()
    assert rooms.members_of(None) == set()


def test_members_of_returns_a_snapshot():
    rooms = RoomIndex()
    rooms.add_member("x", "a")
    members = rooms.members_of("x")
    rooms.add_member("x", "b")
    assert members == {"a"}


def test_remove_member_from_unknown_room_is_noop():
    rooms = RoomIndex()
    rooms.remove_member("nope", "a")
    assert len(rooms) == 0
