import pytest

from apicommon.permit import (
    add_domain_handler,
    add_permit_rule,
    all_rules,
    format_access,
    format_path,
    get_path_rule,
    read_access_key,
    read_path,
    select_domain,
)


@pytest.mark.parametrize(
    "path, method, rest",
    [
        ("GET:/api/v1/test", "GET", "/api/v1/test"),
        ("POST:/api/v1/test", "POST", "/api/v1/test"),
        ("PUT:/api/v1/test", "PUT", "/api/v1/test"),
        ("DELETE:/api/v1/test", "DELETE", "/api/v1/test"),
        ("/api/v1/test", "GET", "/api/v1/test"),
    ],
)
def test_read_path(path, method, rest):
    assert read_path(path) == (method, rest)


def test_read_path_uppercases_method():
    assert read_path("post:/x") == ("POST", "/x")


def test_format_path_normalises_slashes_and_method():
    assert format_path("get", "api/v1") == "GET:/api/v1"
    assert format_path("GET", "///api") == "GET:/api"


def test_read_access_key():
    assert read_access_key("team.project.view") == ("team", "project.view")
    assert read_access_key("plain") == ("unknown", "plain")


def test_format_access_round_trip():
    assert read_access_key(format_access("grp", "item.edit")) == ("grp", "item.edit")


def test_add_and_get_path_rule():
    add_permit_rule("ruletest.view", "GET:/ruletest/list", "/ruletest/info")
    add_permit_rule("ruletest.edit", "GET:/ruletest/list")
    assert get_path_rule("GET", "/ruletest/list") == {
        "ruletest": ["ruletest.view", "ruletest.edit"]
    }
    assert get_path_rule("get", "ruletest/info") == {"ruletest": ["ruletest.view"]}
    assert get_path_rule("POST", "/ruletest/list") is None


def test_all_rules_contains_added():
    add_permit_rule("alltest.view", "PUT:/alltest")
    assert all_rules()["PUT:/alltest"] == {"alltest": ["alltest.view"]}


def test_domain_handler_register_and_select():
    def handler(ctx):
        return [], [], True

    add_domain_handler("domain-test", handler)
    assert select_domain("domain-test") is handler
    assert select_domain("domain-missing") is None


def test_domain_handler_duplicate_raises():
    add_domain_handler("domain-dup", lambda ctx: ([], [], True))
    with pytest.raises(ValueError, match="domain-dup"):
        add_domain_handler("domain-dup", lambda ctx: ([], [], False))