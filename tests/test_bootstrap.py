"""Tests for squirt.endpoints.bootstrap — prioritized endpoint merge and config parsing."""

import pytest

from squirt.endpoints.bootstrap import DEFAULT_ENDPOINTS, parse_endpoint_config, resolve_bootstrap_endpoints
from squirt.endpoints.models import Credentials, Endpoint, EndpointStatus, EndpointType
from squirt.errors import ConfigurationError


def ep(url, label="", type="query", **kwargs) -> Endpoint:
    return Endpoint(url=url, label=label, type=type, **kwargs)


class TestResolveBootstrap:
    def test_defaults_when_everything_empty(self):
        result = resolve_bootstrap_endpoints()
        assert [e.url for e in result] == [e.url for e in DEFAULT_ENDPOINTS]
        assert result[0].credentials == Credentials(user="admin", password="admin123")

    def test_priority_order(self):
        result = resolve_bootstrap_endpoints(
            last_used=ep("http://c/"),
            persisted=[ep("http://b/"), ep("http://c/")],
            configured=[ep("http://a/"), ep("http://b/")],
        )
        assert [e.url for e in result] == ["http://c/", "http://b/", "http://a/"]

    def test_first_occurrence_wins(self):
        result = resolve_bootstrap_endpoints(
            persisted=[ep("http://x/", label="user edited")],
            configured=[ep("http://x/", label="from config")],
        )
        assert [e.label for e in result] == ["user edited"]

    def test_defaults_skipped_when_any_source_present(self):
        result = resolve_bootstrap_endpoints(configured=[ep("http://only/")])
        assert [e.url for e in result] == ["http://only/"]

    def test_last_used_alone_suppresses_defaults(self):
        result = resolve_bootstrap_endpoints(last_used=ep("http://last/"))
        assert [e.url for e in result] == ["http://last/"]

    def test_statuses_reset(self):
        stale = ep(
            "http://x/",
            status=EndpointStatus.ACTIVE,
            last_checked="2024-01-01T00:00:00.000Z",
            last_error="old",
        )
        [result] = resolve_bootstrap_endpoints(persisted=[stale])
        assert result.status == EndpointStatus.UNKNOWN
        assert result.last_checked is None
        assert result.last_error is None
        assert stale.status == EndpointStatus.ACTIVE

    def test_custom_defaults(self):
        result = resolve_bootstrap_endpoints(defaults=[ep("http://fallback/")])
        assert [e.url for e in result] == ["http://fallback/"]


class TestParseEndpointConfig:
    def test_list_with_name_alias(self):
        result = parse_endpoint_config([
            {"url": "http://q/", "name": "Query", "type": "query"},
            {"url": "http://u/", "label": "Update", "type": "update",
             "credentials": {"user": "u", "password": "p"}},
        ])
        assert [e.label for e in result] == ["Query", "Update"]
        assert result[1].type == EndpointType.UPDATE
        assert result[1].credentials == Credentials(user="u", password="p")

    def test_mapping_with_endpoints_key(self):
        result = parse_endpoint_config({"endpoints": [{"url": "http://q/", "type": "query"}]})
        assert [e.url for e in result] == ["http://q/"]

    def test_status_in_config_ignored(self):
        [result] = parse_endpoint_config([{"url": "http://q/", "status": "active"}])
        assert result.status == EndpointStatus.UNKNOWN

    @pytest.mark.parametrize(
        "data",
        [
            "not a list",
            {"no": "endpoints"},
            [42],
            [{"label": "missing url"}],
            [{"url": "http://q/", "type": "delete"}],
            [{"url": "http://q/", "credentials": {"user": "only-user"}}],
        ],
    )
    def test_invalid(self, data):
        with pytest.raises(ConfigurationError):
            parse_endpoint_config(data)
