import pytest

from apicommon import access as ac
from apicommon import permit


def test_format_api_normalises_method_and_path():
    assert ac.format_api("  post : /api/x ") == "POST:/api/x"


@pytest.mark.parametrize("api", ["PATCH:/api/x", "no-colon-here", ":/api/x"])
def test_format_api_rejects_bad_input(api):
    with pytest.raises(ValueError):
        ac.format_api(api)


def test_format_group():
    assert ac.format_group("  Team-One.Sub. ") == "team_one_sub"


def test_format_group_is_idempotent():
    once = ac.format_group("A-b.C")
    assert ac.format_group(once) == once


def test_add_access_prefixes_names():
    group = "prefixgrp"
    ac.add_access(group, [
        ac.Access(name="View", value="view", apis=["GET:/api/prefixgrp/view"]),
        ac.Access(name=f"{group}.edit", value="edit"),
    ])
    names = [a.name for a in ac.get_access(group)]
    assert names == [f"{group}.view", f"{group}.edit"]
    assert group in ac.all_access()


def test_permits_of_leaf_access():
    group = "leafgrp"
    ac.add_access(group, [ac.Access(name="view", value="view", apis=["get:/api/leafgrp/a"])])
    p = ac.get_permit(group)
    key = f"{group}.view"
    assert p.access_keys() == [key]
    assert p.get_permits(key) == ["GET:/api/leafgrp/a"]
    p.valid("GET:/api/leafgrp/a")
    with pytest.raises(KeyError):
        p.valid("GET:/api/leafgrp/unknown")
    with pytest.raises(KeyError):
        p.get_permits(f"{group}.missing")


def test_invalid_api_is_skipped():
    group = "skipgrp"
    ac.add_access(group, [ac.Access(name="v", value="v", apis=["bad", "DELETE:/api/skipgrp/ok"])])
    assert ac.get_permit(group).get_permits(f"{group}.v") == ["DELETE:/api/skipgrp/ok"]


def test_children_build_nested_keys_templates_and_rules():
    group = "childgrp"
    ac.add_access(group, [
        ac.Access(
            name="Team",
            value="team",
            children=[ac.Access(name="edit", value="edit", apis=["PUT:/api/childgrp/edit"], guest_allow=True)],
        )
    ])
    key = f"{group}.team.edit"
    p = ac.get_permit(group)
    assert p.access_keys() == [key]
    assert ac.guest_access(group) == [key]
    assert p.template[0].name == f"{group}.team"
    assert p.template[0].children[0].name == "edit"
    rule = permit.get_path_rule("PUT", "/api/childgrp/edit")
    assert rule[group] == [key]


def test_unknown_group():
    assert ac.get_permit("no_such_group") is None
    assert ac.guest_access("no_such_group") is None
    assert ac.get_access("no_such_group") is None


def test_second_add_accumulates_access_but_replaces_permit():
    group = "twicegrp"
    ac.add_access(group, [ac.Access(name="a", value="a")])
    ac.add_access(group, [ac.Access(name="b", value="b")])
    assert len(ac.get_access(group)) == 2
    assert ac.get_permit(group).access_keys() == [f"{group}.b"]


def test_access_from_dict():
    a = ac.Access.from_dict({"name": "n", "value": "v", "guest_allow": True,
                             "children": [{"name": "c", "value": "cv"}]})
    assert a.guest_allow is True
    assert a.children[0].value == "cv"
    assert a.children[0].children is None


def test_roles_round_trip():
    ac.role_add({"rolegrp": [ac.Role(name="admin", supper=True, permits=["rolegrp.x"])]})
    got = ac.roles()["rolegrp"]
    assert got[0].name == "admin"
    assert got[0].supper is True
    assert got[0].permits == ["rolegrp.x"]