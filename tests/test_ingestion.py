"""
Ingestion Tests

Record fetcher and relation-service clients against httpx.MockTransport.

AXIOM UNDER TEST:
=================
Network and payload failures surface as typed results. Nothing raises.
"""

import json

import httpx
import pytest

from engine.contracts.base import ErrorCode
from ingestion.contracts import FetchStatus
from ingestion.fetcher import RecordFetcher, load_records_file, parse_records
from ingestion.relations import GraphRelationService, HttpRelationService, Neighbor, Triple

from .fixtures import run


def _transport(handler):
    return httpx.MockTransport(handler)


def _json(status, body):
    return lambda request: httpx.Response(status, json=body)


# =============================================================================
# RECORD FETCHER
# =============================================================================

class TestRecordFetcher:

    def test_envelope_success(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["agent"] = request.headers["User-Agent"]
            return httpx.Response(200, json={"success": True, "data": [
                {"id": 1, "name": "Bell", "type": "artifact"},
                "not a record",
                {"name": "missing id"},
            ]})

        fetcher = RecordFetcher("http://data.test/", user_agent="tests/1.0", transport=_transport(handler))
        result = run(fetcher.fetch())

        assert result.success
        assert [r.record_id for r in result.records] == ["1"]
        assert result.skipped == 2
        assert seen == {"url": "http://data.test/api/cultural-entities", "agent": "tests/1.0"}
        assert result.to_error() is None

    def test_empty_list_is_data_unavailable(self):
        fetcher = RecordFetcher("http://data.test", transport=_transport(_json(200, {"success": True, "data": []})))
        result = run(fetcher.fetch())

        assert result.status is FetchStatus.EMPTY
        assert result.to_error().code is ErrorCode.DATA_UNAVAILABLE

    @pytest.mark.parametrize("handler, status", [
        (_json(503, {"success": False}), FetchStatus.HTTP_ERROR),
        (_json(200, {"success": False, "message": "db down"}), FetchStatus.PARSE_ERROR),
        (_json(200, {"success": True, "data": {"oops": 1}}), FetchStatus.PARSE_ERROR),
        (lambda request: httpx.Response(200, content=b"<html>"), FetchStatus.PARSE_ERROR),
    ])
    def test_failures_are_results(self, handler, status):
        result = run(RecordFetcher("http://data.test", transport=_transport(handler)).fetch())
        assert result.status is status
        assert not result.records
        assert result.error_message

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        result = run(RecordFetcher("http://data.test", transport=_transport(handler)).fetch())
        assert result.status is FetchStatus.TIMEOUT

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        result = run(RecordFetcher("http://data.test", transport=_transport(handler)).fetch())
        assert result.status is FetchStatus.NETWORK_ERROR

    def test_sync_fetch(self):
        fetcher = RecordFetcher(
            "http://data.test",
            sync_transport=_transport(_json(200, [{"id": "a", "name": "A", "type": "site"}])),
        )
        result = fetcher.fetch_sync()
        assert result.success
        assert result.records[0].category == "site"
        assert result.http_status == 200


class TestParsingAndFiles:

    def test_bare_list(self):
        records, skipped = parse_records([{"id": 1, "name": "x"}, 5])
        assert len(records) == 1 and skipped == 1

    def test_no_list_raises(self):
        with pytest.raises(ValueError):
            parse_records({"success": True})

    def test_load_records_file(self, tmp_path):
        path = tmp_path / "records.json"
        path.write_text(json.dumps({"success": True, "data": [{"id": 9, "name": "Nine"}]}), encoding="utf-8")
        result = load_records_file(str(path))
        assert result.success
        assert result.records[0].record_id == "9"

    def test_load_missing_file(self, tmp_path):
        result = load_records_file(str(tmp_path / "absent.json"))
        assert not result.success
        assert result.to_error().code is ErrorCode.DATA_UNAVAILABLE

    def test_load_bad_json(self, tmp_path):
        path = tmp_path / "records.json"
        path.write_text("{", encoding="utf-8")
        assert load_records_file(str(path)).status is FetchStatus.PARSE_ERROR


# =============================================================================
# RELATION SERVICES
# =============================================================================

class TestHttpRelationService:

    def test_parses_neighbors_and_triples(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            return httpx.Response(200, json={"success": True, "data": {
                "neighbors": [
                    {"id": 2, "name": "Du Fu", "uuid": 18, "labels": ["Person"]},
                    {"name": "no id"},
                ],
                "triples": [
                    {"head": "Li Bai", "relation": "friend", "tail": "Du Fu"},
                    {"head": "Li Bai", "tail": "?"},
                ],
            }})

        service = HttpRelationService("http://kg.test", transport=_transport(handler))
        result = run(service.neighbors(1.0))

        assert seen["path"] == "/api/knowledge-graph/1"
        assert result.error is None
        assert result.neighbors == (Neighbor("2", "Du Fu", "18", ("Person",)),)
        assert result.triples == (Triple("Li Bai", "friend", "Du Fu"),)

    @pytest.mark.parametrize("handler", [
        _json(404, {"success": False}),
        _json(200, {"success": False, "message": "no such node"}),
        lambda request: httpx.Response(200, content=b"not json"),
    ])
    def test_failures_are_soft(self, handler):
        service = HttpRelationService("http://kg.test", transport=_transport(handler))
        result = run(service.neighbors("k1"))
        assert result.is_empty
        assert result.error.code is ErrorCode.RELATION_FETCH_FAILURE

    def test_timeout_is_soft(self):
        def handler(request):
            raise httpx.ConnectTimeout("slow", request=request)

        service = HttpRelationService("http://kg.test", transport=_transport(handler))
        result = run(service.neighbors("k1"))
        assert result.error.code is ErrorCode.RELATION_FETCH_FAILURE

    def test_missing_data_is_empty_without_error(self):
        service = HttpRelationService("http://kg.test", transport=_transport(_json(200, {"success": True})))
        result = run(service.neighbors("k1"))
        assert result.is_empty and result.error is None

    def test_blank_id_short_circuits(self):
        def handler(request):
            raise AssertionError("no request expected")

        service = HttpRelationService("http://kg.test", transport=_transport(handler))
        assert run(service.neighbors("  ")).graph_id is None


class TestGraphRelationService:

    def test_neighbors_in_both_directions(self):
        service = GraphRelationService()
        service.add_entity("k1", name="Li Bai", record_uuid=1, labels=["Person"])
        service.add_entity("k2", name="Du Fu", record_uuid=2)
        service.add_entity(3, name="Chang'an")
        service.relate("k1", "friend", "k2")
        service.relate(3.0, "birthplace_of", "k1")

        result = run(service.neighbors("k1"))

        assert result.neighbor_ids == ("k2", "3")
        assert result.neighbors[0] == Neighbor("k2", "Du Fu", "2", ())
        assert result.triples == (
            Triple("Li Bai", "friend", "Du Fu"),
            Triple("Li Bai", "birthplace_of", "Chang'an"),
        )

    def test_unknown_node_is_empty(self):
        result = run(GraphRelationService().neighbors("nowhere"))
        assert result.is_empty and result.error is None

    def test_self_loops_ignored(self):
        service = GraphRelationService.from_triples([("a", "same_as", "a"), ("a", "r", "b")])
        assert run(service.neighbors("a")).neighbor_ids == ("b",)

    def test_empty_endpoint_rejected(self):
        with pytest.raises(ValueError):
            GraphRelationService().relate("", "r", "b")
