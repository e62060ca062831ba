# apicommon

Shared building blocks for HTTP API services that are assembled from plugins.

| Module | What it gives you |
| --- | --- |
| `apicommon.pm3_api` | `Api`, `ApiContext`, `Response`, `ApiError`; `create_api_with_doc`, `create_api_simple`, `create_api_with_error` |
| `apicommon.pm3_plugins` | plugin protocols, `EmptyDriver`, a driver registry (`register`, `create`, `all_names`, `list_drivers`) and ordered middlewares |
| `apicommon.server` | `create_server(...)` → `ServiceBuilder` → `Server`, a WSGI application |
| `apicommon.permit` | route rules (`"METHOD:/path"` → access keys per group) and per-group domain handlers |
| `apicommon.access` | access trees per group, the permits derived from them, guest access and roles |
| `apicommon.labels` | `Label` fields whose display names are filled in by registered services |
| `apicommon.idcheck` | checks that ids referenced by tagged fields exist |
| `apicommon.autovalue` | stamps a value into string fields with a matching `aovalue` tag |
| `apicommon.signature` | RSA PKCS#1 v1.5 signing of a subject map into PEM blocks, and verification |
| `apicommon.register` | handlers that run once a value of a given kind is published |
| `apicommon.ignore` | paths a named check should skip |
| `apicommon.jsoncodec` | `JsonCodec`, a value with JSON text/binary encode and decode |
| `apicommon.utils` | collection helpers, `Context` / `RequestContext`, `user_id` / `set_user_id` |

## Installation

```
pip install apicommon
```

Python 3.10 or later is required.

## Declaring an API

`create_api_with_doc` reads each handler argument as its input pattern says:
`context` (the `ApiContext`), `:name` (path parameter), `header:name`,
`query:name` and `body`, `body:json` or `body:yaml`. Path, header and query
values are converted to the annotated `str`, `int`, `bool` or `float`; JSON and
YAML bodies are bound to an annotated dataclass. The results fill the `data`
fields named by the outputs.

```python
from __future__ import annotations

from dataclasses import dataclass

from apicommon.pm3_api import ApiContext, ApiError, create_api_with_doc


@dataclass
class Body:
    name: str = ""


def update(ctx: ApiContext, id: int, body: Body) -> dict:
    if not body.name:
        raise ApiError("name is required", code=400)
    return {"id": id, "name": body.name}


api = create_api_with_doc("PUT", "/api/test/:id", ["context", ":id", "body"], ["item"], update)
```

A successful call answers `{"data": {"item": {...}}, "code": 0, "success": "success"}`.
An `ApiError` answers with its code, success value and message; any other
exception answers with code `-1`, success `"fail"` and the exception text.
An input that cannot be read answers `"invald request:..."` without calling
the handler.

## Building a server

```python
from apicommon import pm3_plugins, register, server
from apicommon.server import Server


class DemoPlugin:
    name = "demo"

    def apis(self):
        return [api]


pm3_plugins.register("demo", pm3_plugins.EmptyDriver(DemoPlugin()))
register.handle(Server, lambda srv: print("server ready"))

app = server.create_server("demo").build()   # a WSGI application
```

`create_server()` with no names uses every registered driver, after any plugins
added with `add_system_plugin`. Plugins may also provide `access()`,
`middlewares()` (sorted by their `sort` value and attached to the routes they
accept) and `files()` (`FrontendFiles` static directories). The built server
also answers `GET /_system/apis` with a YAML listing of each plugin's routes,
replies with JSON 404 under `/api`, and hands any other unmatched route to the
handler set with `set_index_html_handler`. Responses are gzip-compressed when
the client accepts it. `add_expires(ctx)` marks a response cacheable for a week.

## Route rules

```python
from apicommon import permit

permit.read_path("POST:/api/v1/test")   # ("POST", "/api/v1/test")
permit.read_path("/api/v1/test")        # ("GET", "/api/v1/test")
permit.format_path("get", "api/v1/x")   # "GET:/api/v1/x"
permit.read_access_key("team.member")   # ("team", "member")

permit.add_permit_rule("team.member.view", "GET:/api/team/members")
permit.get_path_rule("GET", "/api/team/members")   # {"team": ["team.member.view"]}
```

## Access definitions

```python
from apicommon import access

access.add_access("Team-Manager", [
    access.Access(
        name="member",
        value="member",
        children=[
            access.Access(name="view", value="view",
                          apis=["GET:/api/team/members"], guest_allow=True),
        ],
    ),
])

access.format_group("Team-Manager")   # "team_manager"
access.guest_access("team_manager")   # ["team_manager.member.view"]
access.get_permit("team_manager").get_permits("team_manager.member.view")
# ["GET:/api/team/members"]
```

Adding accesses also registers their route rules in `apicommon.permit`.

## Labels and id checks

```python
from dataclasses import dataclass, field

from apicommon import labels


class Users:
    def get_labels(self, ctx, *ids):
        return {i: f"user {i}" for i in ids}


@dataclass
class Item:
    creator: labels.Label = field(metadata={"aolabel": "user"})


labels.register_service("user", Users())
item = Item(creator=labels.label("7"))
labels.complete_labels(None, item)   # item.creator.name == "user 7"
```

Ids the service does not know get the name `"unknown"`.
`idcheck.check_ids(ctx, value)` raises `LookupError` when a registered service
does not know a string id held in a field tagged `aocheck`; JSON request bodies
read by `create_api_with_doc` are checked this way.

## Ignored paths

```python
from apicommon import ignore

ignore.ignore_path("login", "*", "/api/account/login")
ignore.is_ignore_path("login", "POST", "/api/account/login")   # True
```

## Signed subject files

```python
from apicommon import signature

subject, signed = signature.sign(private_key_der, "licence-id", {"company": "example"})
bundle = signature.encode_sign("demo", subject, signed)
claims, ok = signature.verify("demo", bundle, public_key_der)
```

`private_key_der` is a DER encoded RSA private key and `public_key_der` the
matching DER encoded public key. `sign` adds `id`, `hash` and `sign_time` to the
subject; `decode_pem` raises `InvalidCertificateError` on malformed PEM data.

## What this package does not do

It has no dependency container or YAML configuration loader, no cache or Redis
client, no log-file setup, and no database storage for permits: permissions,
access trees, roles and registries live in process memory only. It has no
command-line program; run the built `Server` with any WSGI server.

## Running the tests

```
pip install "apicommon[test]"
pytest
```