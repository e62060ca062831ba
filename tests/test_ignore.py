from apicommon.ignore import ignore_path, is_ignore_path


def test_registered_path_is_ignored():
    ignore_path("svc-a", "GET", "/login")
    assert is_ignore_path("svc-a", "GET", "/login") is True


def test_other_method_is_not_ignored():
    ignore_path("svc-b", "GET", "/login")
    assert is_ignore_path("svc-b", "POST", "/login") is False


def test_wildcard_method_matches_any():
    ignore_path("svc-c", "*", "/health")
    assert is_ignore_path("svc-c", "GET", "/health") is True
    assert is_ignore_path("svc-c", "DELETE", "/health") is True
    assert is_ignore_path("svc-c", "*", "/health") is True


def test_wildcard_query_does_not_match_specific_method():
    ignore_path("svc-d", "GET", "/only-get")
    assert is_ignore_path("svc-d", "*", "/only-get") is False


def test_unknown_name_and_path():
    ignore_path("svc-e", "GET", "/x")
    assert is_ignore_path("svc-unknown", "GET", "/x") is False
    assert is_ignore_path("svc-e", "GET", "/y") is False


def test_multiple_paths_same_method():
    ignore_path("svc-f", "GET", "/a")
    ignore_path("svc-f", "GET", "/b")
    assert is_ignore_path("svc-f", "GET", "/a") and is_ignore_path("svc-f", "GET", "/b")