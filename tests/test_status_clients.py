"""
Tests for processing-status clients.

Covers the REST client's request shape and error mapping, the mock
client's simulated progression, and transport-level retry.
"""

import json

import httpx
import pytest

from compliance_console.processing.clients import create_status_client
from compliance_console.processing.clients.base import (
    StatusAPIError,
    StatusAuthenticationError,
    StatusConnectionError,
    StatusNotFoundError,
    StatusParseError,
)
from compliance_console.processing.clients.http_client import HttpStatusClient
from compliance_console.processing.clients.mock_client import (
    MONITORING_RULES,
    MockStatusClient,
)
from compliance_console.processing.config import RetryConfig, StatusClientConfig
from compliance_console.processing.models import ProcessingState
from compliance_console.processing.retry import retry_with_backoff

STATUS_PAYLOAD = {
    "transactionId": 123,
    "transactionID": "TXN-2024-000123",
    "processingStatus": 2,
    "processingStartedAt": "2024-05-01T10:00:00Z",
    "processingCompletedAt": "2024-05-01T10:00:03Z",
    "hasRuleMatches": True,
    "matchedRulesCount": 1,
    "totalRulesEvaluated": 2,
    "ruleMatches": [
        {
            "ruleId": 7,
            "ruleName": "High Value Transfer",
            "isMatched": True,
            "executedAt": "2024-05-01T10:00:01Z",
        },
        {
            "ruleId": 9,
            "ruleName": "Rapid Velocity",
            "isMatched": False,
            "executedAt": "2024-05-01T10:00:02Z",
        },
    ],
}


def make_client(handler, **kwargs) -> HttpStatusClient:
    return HttpStatusClient(
        base_url="https://console.example.com/api",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.mark.asyncio
class TestHttpStatusClient:
    """Tests for HttpStatusClient."""

    async def test_fetch_parses_payload(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=STATUS_PAYLOAD)

        client = make_client(handler, token="secret-token")
        snapshot = await client.get_processing_status(" 123 ")
        await client.aclose()

        assert seen["url"] == (
            "https://console.example.com/api/Transactions/123/processing-status"
        )
        assert seen["auth"] == "Bearer secret-token"
        assert snapshot.processing_state == ProcessingState.COMPLETED
        assert snapshot.transaction_reference == "TXN-2024-000123"
        assert snapshot.matched_count == 1
        assert [r.rule_name for r in snapshot.matched_rules] == ["High Value Transfer"]

    async def test_no_auth_header_without_token(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=STATUS_PAYLOAD)

        client = make_client(handler)
        await client.get_processing_status("123")

        assert seen["auth"] is None

    @pytest.mark.parametrize(
        "status_code,error",
        [
            (401, StatusAuthenticationError),
            (403, StatusAuthenticationError),
            (404, StatusNotFoundError),
            (500, StatusAPIError),
            (503, StatusAPIError),
        ],
    )
    async def test_error_status_mapping(self, status_code, error):
        client = make_client(lambda request: httpx.Response(status_code, text="nope"))

        with pytest.raises(error):
            await client.get_processing_status("123")

    async def test_api_error_keeps_status_code(self):
        client = make_client(lambda request: httpx.Response(502, text="bad gateway"))

        with pytest.raises(StatusAPIError) as exc_info:
            await client.get_processing_status("123")

        assert exc_info.value.status_code == 502

    async def test_non_json_response(self):
        client = make_client(
            lambda request: httpx.Response(200, content=b"<html>login</html>")
        )

        with pytest.raises(StatusParseError):
            await client.get_processing_status("123")

    async def test_schema_mismatch(self):
        payload = dict(STATUS_PAYLOAD, processingStatus=9)
        client = make_client(lambda request: httpx.Response(200, json=payload))

        with pytest.raises(StatusParseError):
            await client.get_processing_status("123")

    @pytest.mark.parametrize("state", [None, [1], {"a": 1}])
    async def test_non_scalar_state_is_parse_error(self, state):
        payload = dict(STATUS_PAYLOAD, processingStatus=state)
        client = make_client(lambda request: httpx.Response(200, json=payload))

        with pytest.raises(StatusParseError):
            await client.get_processing_status("123")

    @pytest.mark.parametrize(
        "transaction_id,segment",
        [
            ("../../admin", b"..%2F..%2Fadmin"),
            ("..", b"%2E%2E"),
            ("a/b", b"a%2Fb"),
            ("x#frag", b"x%23frag"),
            ("x?y=1", b"x%3Fy%3D1"),
        ],
    )
    async def test_id_is_single_path_segment(self, transaction_id, segment):
        seen = {}

        def handler(request):
            seen["path"] = request.url.raw_path
            return httpx.Response(200, json=STATUS_PAYLOAD)

        client = make_client(handler)
        await client.get_processing_status(transaction_id)

        assert seen["path"] == (
            b"/api/Transactions/" + segment + b"/processing-status"
        )

    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(StatusConnectionError):
            await client.get_processing_status("123")

    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        client = make_client(handler)

        with pytest.raises(StatusConnectionError, match="timed out"):
            await client.get_processing_status("123")

    async def test_retries_transport_errors_when_configured(self):
        calls = 0

        def handler(request):
            nonlocal calls
            calls += 1
            if calls < 3:
                raise httpx.ConnectError("flaky", request=request)
            return httpx.Response(200, content=json.dumps(STATUS_PAYLOAD))

        client = make_client(
            handler,
            retry=RetryConfig(max_attempts=3, initial_delay=0.01, jitter=False),
        )
        snapshot = await client.get_processing_status("123")

        assert calls == 3
        assert snapshot.transaction_id == 123

    async def test_does_not_retry_by_default(self):
        calls = 0

        def handler(request):
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("down", request=request)

        client = make_client(handler)

        with pytest.raises(StatusConnectionError):
            await client.get_processing_status("123")
        assert calls == 1

    async def test_does_not_retry_error_responses(self):
        calls = 0

        def handler(request):
            nonlocal calls
            calls += 1
            return httpx.Response(404)

        client = make_client(
            handler, retry=RetryConfig(max_attempts=3, initial_delay=0.01)
        )

        with pytest.raises(StatusNotFoundError):
            await client.get_processing_status("123")
        assert calls == 1


@pytest.mark.asyncio
class TestMockStatusClient:
    """Tests for MockStatusClient."""

    async def test_progression(self):
        client = MockStatusClient(
            pending_polls=1,
            processing_polls=2,
            matched_rules=["Rapid Velocity"],
            latency_ms=0,
        )

        states = [
            (await client.get_processing_status("5")).processing_state
            for _ in range(5)
        ]

        assert states == [
            ProcessingState.PENDING,
            ProcessingState.PROCESSING,
            ProcessingState.PROCESSING,
            ProcessingState.COMPLETED,
            ProcessingState.COMPLETED,
        ]

    async def test_final_snapshot_evaluates_all_rules(self):
        client = MockStatusClient(
            pending_polls=0,
            processing_polls=0,
            matched_rules=["Rapid Velocity", "PEP Counterparty"],
            latency_ms=0,
        )

        snapshot = await client.get_processing_status("5")

        assert snapshot.total_evaluated == len(MONITORING_RULES)
        assert snapshot.matched_count == 2
        assert snapshot.passed_count == len(MONITORING_RULES) - 2
        assert snapshot.completed_at is not None
        assert [r.rule_name for r in snapshot.rule_matches] == MONITORING_RULES

    async def test_processing_snapshot_is_partial(self):
        client = MockStatusClient(pending_polls=0, processing_polls=2, latency_ms=0)

        snapshot = await client.get_processing_status("5")

        assert snapshot.processing_state == ProcessingState.PROCESSING
        assert 0 < snapshot.total_evaluated < len(MONITORING_RULES)
        assert snapshot.completed_at is None

    async def test_transactions_progress_independently(self):
        client = MockStatusClient(pending_polls=1, latency_ms=0)

        await client.get_processing_status("1")
        await client.get_processing_status("1")
        second = await client.get_processing_status("2")

        assert second.processing_state == ProcessingState.PENDING
        assert client.query_count("1") == 2
        assert client.query_count("2") == 1

    async def test_failed_final_state(self):
        client = MockStatusClient(
            pending_polls=0,
            processing_polls=0,
            final_state=ProcessingState.FAILED,
            latency_ms=0,
        )

        snapshot = await client.get_processing_status("5")

        assert snapshot.processing_state == ProcessingState.FAILED

    async def test_failure_simulation(self):
        client = MockStatusClient(failure_rate=1.0, latency_ms=0)

        with pytest.raises(StatusConnectionError):
            await client.get_processing_status("5")


class TestClientFactory:
    def test_mock_rejects_non_terminal_final_state(self):
        with pytest.raises(ValueError):
            MockStatusClient(final_state=ProcessingState.PROCESSING)

    def test_builds_mock_client(self):
        client = create_status_client(StatusClientConfig(client_type="mock"))
        assert isinstance(client, MockStatusClient)

    def test_builds_http_client(self):
        client = create_status_client(
            StatusClientConfig(client_type="http", base_url="https://api.test/api")
        )
        assert isinstance(client, HttpStatusClient)
        assert client.get_source_name() == "http"


class TestRetryLogic:
    """Tests for retry with exponential backoff."""

    @pytest.mark.asyncio
    async def test_retry_success_after_failures(self):
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise StatusConnectionError("Temporary failure")
            return "success"

        config = RetryConfig(max_attempts=5, initial_delay=0.01, jitter=False)
        result = await retry_with_backoff(operation, config)

        assert result == "success"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_retry_exhausted(self):
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            raise StatusConnectionError("Persistent failure")

        config = RetryConfig(max_attempts=3, initial_delay=0.01)

        with pytest.raises(StatusConnectionError):
            await retry_with_backoff(operation, config)

        assert call_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates(self):
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            raise StatusParseError("bad payload")

        config = RetryConfig(max_attempts=3, initial_delay=0.01)

        with pytest.raises(StatusParseError):
            await retry_with_backoff(
                operation, config, retry_on=(StatusConnectionError,)
            )

        assert call_count == 1
