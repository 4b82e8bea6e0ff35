"""Tests for the state store and the pure state functions."""

import json

from conftest import http_server, stdio_server

from mcp_dock.models import ServerState, StateFile
from mcp_dock.state import (
    StateStore,
    add_or_update,
    default_endpoint,
    get_by_name,
    reconcile,
    update_consent,
    update_status,
)


class TestStateStore:
    """Tests for loading and saving the state file"""

    def test_missing_file_gives_empty_state(self, tmp_path):
        state = StateStore(tmp_path / "state.json").load()
        assert state.servers == []
        assert state.updated_on

    def test_invalid_json_gives_empty_state(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json")
        assert StateStore(path).load().servers == []

    def test_non_object_gives_empty_state(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("[1, 2, 3]")
        assert StateStore(path).load().servers == []

    def test_bad_servers_value_gives_empty_state(self, tmp_path):
        path = tmp_path / "state.json"
        for document in ({"servers": None}, {"servers": 5}, {"mcps": "svc"}):
            path.write_text(json.dumps(document))
            state = StateStore(path).load()
            assert state.servers == []

    def test_online_must_be_a_real_boolean(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(
            json.dumps(
                {
                    "servers": [
                        {"name": "a", "online": "false"},
                        {"name": "b", "online": 1},
                        {"name": "c", "online": True},
                    ]
                }
            )
        )
        state = StateStore(path).load()
        assert [s.online for s in state.servers] == [False, False, True]

    def test_round_trip_rewrites_timestamp(self, tmp_path):
        path = tmp_path / "data" / "state.json"
        store = StateStore(path)
        original = StateFile(
            servers=[
                ServerState(name="svc", endpoint="http://localhost:9001/sse", online=True, manage_cursor_config=True),
                ServerState(name="svcio", endpoint="command:docker:img"),
            ],
            updated_on="2020-01-01T00:00:00+00:00",
        )

        assert store.save(original) is True
        loaded = store.load()

        assert loaded.servers == original.servers
        assert loaded.updated_on != original.updated_on

    def test_saved_document_shape(self, tmp_path):
        path = tmp_path / "state.json"
        StateStore(path).save(StateFile(servers=[ServerState(name="svc", endpoint="e", online=False)]))

        document = json.loads(path.read_text())
        assert set(document) == {"servers", "updatedOn"}
        assert document["servers"] == [{"name": "svc", "endpoint": "e", "online": False}]

    def test_legacy_mcps_key_is_accepted(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"mcps": [{"name": "svc", "endpoint": "e", "online": True}], "updatedOn": "x"}))
        state = StateStore(path).load()
        assert get_by_name(state, "svc").online is True

    def test_save_failure_is_swallowed(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        assert StateStore(blocker / "state.json").save(StateFile()) is False


class TestReconcile:
    """Tests for reconciling state with definitions"""

    def test_one_entry_per_definition(self):
        definitions = [http_server("a"), http_server("b", args=["--port", "9001"]), stdio_server("c")]
        prior = StateFile(servers=[ServerState(name="zombie", endpoint="x")])

        result = reconcile(prior, definitions)

        assert [s.name for s in result.servers] == ["a", "b", "c"]

    def test_defaults_for_new_servers(self):
        definitions = [http_server("a"), http_server("b", args=["--port", "9001"]), stdio_server("c", image="img")]
        result = reconcile(StateFile(), definitions)

        assert get_by_name(result, "a").endpoint == "http://localhost:9000/sse"
        assert get_by_name(result, "b").endpoint == "http://localhost:9001/sse"
        assert get_by_name(result, "c").endpoint == "command:docker:img"
        assert all(s.online is False for s in result.servers)
        assert all(s.manage_cursor_config is None for s in result.servers)

    def test_existing_entries_carry_over(self):
        prior = StateFile(
            servers=[
                ServerState(name="a", endpoint="http://localhost:9555/sse", online=True, manage_cursor_config=False),
            ]
        )
        result = reconcile(prior, [http_server("a")])

        entry = get_by_name(result, "a")
        assert entry.endpoint == "http://localhost:9555/sse"
        assert entry.manage_cursor_config is False
        assert entry.online is True

    def test_env_file_recorded(self, tmp_path):
        result = reconcile(StateFile(), [http_server("a")], lambda name: tmp_path / f"{name}.env")
        assert get_by_name(result, "a").env_file == str(tmp_path / "a.env")

    def test_undefined_servers_dropped_from_output(self):
        prior = StateFile(servers=[ServerState(name="gone"), ServerState(name="a")])
        result = reconcile(prior, [http_server("a")])
        assert get_by_name(result, "gone") is None


class TestUpdates:
    """Tests for the pure update functions"""

    def test_update_status_keeps_endpoint_and_consent(self):
        state = StateFile(servers=[ServerState(name="a", endpoint="http://localhost:9001/sse", manage_cursor_config=True)])

        result = update_status(state, "a", True)

        entry = get_by_name(result, "a")
        assert entry.online is True
        assert entry.endpoint == "http://localhost:9001/sse"
        assert entry.manage_cursor_config is True

    def test_update_status_replaces_endpoint(self):
        state = StateFile(servers=[ServerState(name="a", endpoint="old")])
        assert get_by_name(update_status(state, "a", False, "new"), "a").endpoint == "new"

    def test_update_status_does_not_mutate_input(self):
        state = StateFile(servers=[ServerState(name="a")])
        update_status(state, "a", True)
        assert get_by_name(state, "a").online is False

    def test_update_status_unknown_name_appends(self):
        result = update_status(StateFile(), "new", True, "http://localhost:1/sse")
        assert get_by_name(result, "new").online is True

    def test_update_consent_existing(self):
        state = StateFile(servers=[ServerState(name="a", endpoint="e", online=True)])
        entry = get_by_name(update_consent(state, "a", True), "a")
        assert entry.manage_cursor_config is True
        assert entry.endpoint == "e"
        assert entry.online is True

    def test_update_consent_creates_minimal_entry(self):
        entry = get_by_name(update_consent(StateFile(), "a", False, "/env/a.env"), "a")
        assert entry == ServerState(name="a", endpoint="", online=False, manage_cursor_config=False, env_file="/env/a.env")

    def test_add_or_update_replaces_in_place(self):
        state = StateFile(servers=[ServerState(name="a"), ServerState(name="b")])
        result = add_or_update(state, ServerState(name="a", online=True))
        assert [s.name for s in result.servers] == ["a", "b"]
        assert result.servers[0].online is True

    def test_default_endpoint(self):
        assert default_endpoint(http_server(args=["--port", "9001"])) == "http://localhost:9001/sse"
        assert default_endpoint(stdio_server(image="img")) == "command:docker:img"
