from custom_components.easee_cloud.stats import ApiStats, endpoint_key


def test_endpoint_key_collapses_unique_parts():
    assert endpoint_key("GET", "/api/commands/EH1/48/637") == "get:/api/commands/EH1/..."
    assert endpoint_key("get", "/state/EH1/observations?ids=1,2,3") == "get:/state/EH1/observations?..."
    assert endpoint_key("post", "/api/accounts/token") == "post:/api/accounts/token"


def test_counts_and_reset():
    stats = ApiStats()
    stats.count_invocation("get:/api/accounts/products")
    stats.count_invocation("get:/api/accounts/products")
    stats.count_error("get:/api/accounts/products", "502 (rate_limited)")

    exported = stats.as_dict()
    assert exported["total_invocations"] == 2
    assert exported["invocations"] == {"get:/api/accounts/products": 2}
    assert exported["errors"] == {"get:/api/accounts/products": 1}
    assert [endpoint for _, endpoint in exported["error_log"]["502 (rate_limited)"]] == [
        "get:/api/accounts/products"
    ]

    stats.reset()
    assert stats.as_dict()["total_invocations"] == 0
    assert stats.as_dict()["error_log"] == {}


def test_error_log_is_bounded():
    stats = ApiStats()
    for _ in range(30):
        stats.count_error("get:/x", "500 (transient)")

    assert stats.errors["get:/x"] == 30
    assert len(stats.error_log["500 (transient)"]) == 20
