"""HTTP API definitions whose handlers receive typed inputs read from the request."""

from __future__ import annotations

import base64
import dataclasses
import json
import re
import types
import typing
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping, Sequence, Union

import yaml
from werkzeug.wrappers import Request
from werkzeug.wrappers import Response as HttpResponse

from .idcheck import check_ids
from .labels import TIME_FORMAT, TimeLabel, complete_labels
from .utils import Context, RequestContext

JSON_CONTENT_TYPE = "application/json; charset=utf-8"

_BUILTIN_TYPES: dict[str, type] = {
    "str": str,
    "int": int,
    "bool": bool,
    "float": float,
    "bytes": bytes,
    "dict": dict,
    "list": list,
}


def _jsonable(value: Any) -> Any:
    """Convert ``value`` into plain JSON data, honouring ``json`` field metadata."""
    if isinstance(value, Response):
        return value.to_dict()
    if isinstance(value, TimeLabel):
        return value.value.strftime(TIME_FORMAT)
    if isinstance(value, datetime):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        out: dict[str, Any] = {}
        for f in dataclasses.fields(value):
            name, _, options = f.metadata.get("json", "").partition(",")
            if name == "-":
                continue
            item = getattr(value, f.name)
            if "omitempty" in options.split(",") and not item:
                continue
            out[name or f.name] = _jsonable(item)
        return out
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    return value


def _base_type(kind: Any) -> Any:
    return typing.get_origin(kind) or kind


def _unwrap_optional(kind: Any) -> Any:
    if typing.get_origin(kind) in (Union, types.UnionType):
        args = [a for a in typing.get_args(kind) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return kind


def _build(kind: Any, raw: Any) -> Any:
    """Turn decoded body data into an instance of ``kind``."""
    if kind is None or kind is Any:
        return raw
    base = _base_type(kind)
    if isinstance(base, type) and dataclasses.is_dataclass(base):
        if not isinstance(raw, Mapping):
            raise ValueError(f"cannot bind {type(raw).__name__} to {base.__qualname__}")
        names = {
            (f.metadata.get("json", "").split(",", 1)[0] or f.name): f.name
            for f in dataclasses.fields(base)
            if f.init
        }
        try:
            return base(**{names[k]: v for k, v in raw.items() if k in names})
        except TypeError as exc:
            raise ValueError(str(exc)) from exc
    if isinstance(base, type) and not isinstance(raw, base):
        raise ValueError(f"cannot bind {type(raw).__name__} to {base.__qualname__}")
    return raw


class ApiContext(RequestContext):
    """One request being served, and the response being built for it."""

    def __init__(
        self,
        request: Request,
        params: Mapping[str, str] | None = None,
        parent: Context | None = None,
    ) -> None:
        super().__init__(parent)
        self.request = request
        self.params = dict(params or {})
        self.status = 200
        self.headers: dict[str, str] = {}
        self.body = b""
        self.aborted = False

    def param(self, name: str) -> str:
        """The path parameter ``name``, or an empty string."""
        return self.params.get(name, "")

    def header(self, name: str) -> str:
        return self.request.headers.get(name, "")

    def query(self, name: str) -> str:
        return self.request.args.get(name, "")

    def bind_json(self, kind: Any = None) -> Any:
        """Decode the JSON body, into an instance of ``kind`` when given."""
        try:
            raw = json.loads(self.request.get_data())
        except ValueError as exc:
            raise ValueError(f"invalid json body: {exc}") from exc
        return _build(kind, raw)

    def bind_yaml(self, kind: Any = None) -> Any:
        """Decode the YAML body, into an instance of ``kind`` when given."""
        try:
            raw = yaml.safe_load(self.request.get_data())
        except yaml.YAMLError as exc:
            raise ValueError(f"invalid yaml body: {exc}") from exc
        return _build(kind, raw)

    def json(self, status: int, body: Any) -> None:
        self.status = status
        self.headers["Content-Type"] = JSON_CONTENT_TYPE
        text = json.dumps(_jsonable(body), ensure_ascii=False, separators=(",", ":"))
        self.body = text.encode("utf-8")

    def data(self, status: int, content_type: str, body: bytes | str) -> None:
        self.status = status
        self.headers["Content-Type"] = content_type
        self.body = body.encode("utf-8") if isinstance(body, str) else bytes(body)

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    def abort(self) -> None:
        """Stop any further handlers for this request."""
        self.aborted = True

    def abort_with_json(self, status: int, body: Any) -> None:
        self.json(status, body)
        self.abort()

    def to_response(self) -> HttpResponse:
        return HttpResponse(self.body, status=self.status, headers=self.headers)


Handler = Callable[[ApiContext], None]


@dataclass(frozen=True)
class Api:
    """A handler bound to an HTTP method and a route path."""

    method: str
    path: str
    handler: Handler

    def handle(self, ctx: ApiContext) -> None:
        self.handler(ctx)


class ApiError(Exception):
    """An error that carries the code, success value and message of the reply."""

    def __init__(self, message: str, code: int = -1, success: Any = "fail") -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.success = success


@dataclass
class Response:
    """The JSON envelope of every API reply."""

    code: int = 0
    data: dict[str, Any] | None = None
    success: Any = None
    message: str = ""
    total: int = 0
    page_size: int = 0
    page: int = 0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.data:
            out["data"] = _jsonable(self.data)
        out["code"] = self.code
        if self.success is not None:
            out["success"] = _jsonable(self.success)
        if self.message:
            out["msg"] = self.message
        if self.total:
            out["tatal"] = self.total
        if self.page_size:
            out["pageSize"] = self.page_size
        if self.page:
            out["page"] = self.page
        return out


def parse_restful_params(path: str) -> set[str]:
    """Names of the ``:name`` and ``*name`` segments of a route path."""
    return {seg[1:] for seg in path.split("/") if len(seg) > 1 and seg[0] in ":*"}


_INT = re.compile(r"[+-]?[0-9]+")
_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def _parse_str(text: str) -> str:
    return text


def _parse_int(text: str) -> int:
    if not _INT.fullmatch(text):
        raise ValueError(f"parsing {text!r}: invalid syntax")
    return int(text)


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"parsing {text!r}: invalid syntax")


def _parse_float(text: str) -> float:
    if not text or text != text.strip() or "_" in text:
        raise ValueError(f"parsing {text!r}: invalid syntax")
    return float(text)


_PARSERS: dict[Any, Callable[[str], Any]] = {
    None: _parse_str,
    str: _parse_str,
    int: _parse_int,
    bool: _parse_bool,
    float: _parse_float,
}


def _string_parser(kind: Any) -> Callable[[str], Any]:
    parser = _PARSERS.get(kind) if isinstance(kind, type) or kind is None else None
    if parser is None:
        raise ValueError(f"not support type:{getattr(kind, '__qualname__', kind)}")
    return parser


def _resolve_annotation(hint: Any, namespace: Mapping[str, Any]) -> Any:
    """Look up a textual annotation such as ``"Body | None"`` by name."""
    if not isinstance(hint, str):
        return hint
    text = hint.strip()
    optional = False
    for prefix in ("typing.Optional[", "Optional["):
        if text.startswith(prefix) and text.endswith("]"):
            text = text[len(prefix) : -1].strip()
            optional = True
            break
    parts = [p.strip().strip("'\"") for p in text.split("|")]
    optional = optional or "None" in parts
    parts = [p for p in parts if p and p != "None"]
    if len(parts) != 1:
        return hint
    head, *rest = parts[0].split(".")
    if head in namespace:
        obj = namespace[head]
    elif head in _BUILTIN_TYPES:
        obj = _BUILTIN_TYPES[head]
    else:
        return hint
    for attr in rest:
        obj = getattr(obj, attr, None)
        if obj is None:
            return hint
    if optional and isinstance(obj, type):
        return typing.Optional[obj]
    return obj


def _parameter_kinds(func: Callable[..., Any]) -> list[Any]:
    """The annotated kinds of the positional parameters of ``func``."""
    target: Any = func
    skip = 0
    if isinstance(func, types.MethodType):
        target = func.__func__
        skip = 1
    elif not isinstance(func, types.FunctionType):
        call = getattr(type(func), "__call__", None)
        if not isinstance(call, types.FunctionType):
            raise ValueError(f"api handler must be a function but get :{type(func).__name__}")
        target = call
        skip = 1
    code = target.__code__
    names = code.co_varnames[: code.co_argcount][skip:]
    annotations = getattr(target, "__annotations__", {}) or {}
    namespace = getattr(target, "__globals__", {})
    return [_resolve_annotation(annotations.get(name), namespace) for name in names]


class _DocHandler:
    """Reads the declared inputs, calls the function, and writes the envelope."""

    def __init__(self, path: str, inputs: Sequence[str], outputs: Sequence[str], func: Any) -> None:
        if not callable(func):
            raise ValueError(f"api handler must be callable but get :{type(func).__name__}")
        self._path = path
        self._restful = parse_restful_params(path)
        self._func = func
        self.outputs = list(outputs)
        kinds = _parameter_kinds(func)
        if len(kinds) != len(inputs):
            raise ValueError(
                f"api handler[{getattr(func, '__qualname__', func)}] need {len(kinds)} "
                f"input arg but require {len(inputs)}"
            )
        self._readers = [self._reader(pattern, kind) for pattern, kind in zip(inputs, kinds)]

    def _reader(self, pattern: str, kind: Any) -> Callable[[ApiContext], Any]:
        parts = pattern.split(":")
        source = parts[0].lower()
        arg = parts[1] if len(parts) > 1 else ""
        if source in ("", "rest", "path", "restful") and arg:
            if arg not in self._restful:
                raise ValueError(f"restful parame not exist[{arg}] for api require")
            parse = _string_parser(kind)
            return lambda ctx: parse(ctx.param(arg))
        if source == "body":
            encoding = arg.lower()
            body_kind = _unwrap_optional(kind)
            if encoding in ("", "json"):

                def read_json(ctx: ApiContext) -> Any:
                    value = ctx.bind_json(body_kind)
                    check_ids(ctx, value)
                    return value

                return read_json
            if encoding == "yaml":
                return lambda ctx: ctx.bind_yaml(body_kind)
        if source == "context":
            return lambda ctx: ctx
        if source == "header" and arg:
            parse = _string_parser(kind)
            return lambda ctx: parse(ctx.header(arg))
        if source == "query" and arg:
            parse = _string_parser(kind)
            return lambda ctx: parse(ctx.query(arg))
        raise ValueError(f"invalid pattern for input reader [{pattern}]")

    def _results(self, result: Any) -> list[Any]:
        count = len(self.outputs)
        if count == 0:
            return []
        if count == 1:
            return [result]
        if not isinstance(result, tuple) or len(result) != count:
            raise TypeError(f"api handler must return {count} values")
        return list(result)

    def __call__(self, ctx: ApiContext) -> None:
        values: list[Any] = []
        for read in self._readers:
            try:
                values.append(read(ctx))
            except (ValueError, LookupError) as exc:
                ctx.json(200, Response(code=-1, success="fail", message=f"invald request:{exc}"))
                return
        try:
            result = self._func(*values)
        except ApiError as exc:
            ctx.json(200, Response(code=exc.code, success=exc.success, message=exc.message))
            return
        except Exception as exc:  # any failure of the handler becomes an error reply
            ctx.json(200, Response(code=-1, success="fail", message=str(exc)))
            return
        data: dict[str, Any] = {}
        for name, value in zip(self.outputs, self._results(result)):
            if name:
                complete_labels(ctx, value)
                data[name] = value
        ctx.json(200, Response(code=0, data=data, success="success"))


def _doc_api(method: str, path: str, inputs: Sequence[str], outputs: Sequence[str], handler: Any) -> Api:
    try:
        doc = _DocHandler(path, inputs, outputs, handler)
    except (ValueError, TypeError) as exc:
        raise ValueError(f"check api [{method} {path}] error:{exc}") from exc
    return Api(method, path, doc)


def create_api_with_doc(
    method: str, path: str, inputs: Sequence[str], outputs: Sequence[str], handler: Any
) -> Api:
    """An API whose ``handler`` arguments are read as ``inputs`` describes.

    Inputs are ``context``, ``:name`` (path), ``header:name``, ``query:name``
    and ``body[:json|yaml]``. The results fill the ``data`` fields named by
    ``outputs``; a raised exception becomes an error reply.
    """
    return _doc_api(method, path, inputs or [], outputs or [], handler)


def create_api_simple(method: str, path: str, handler: Handler) -> Api:
    return Api(method, path, handler)


def create_api_with_error(method: str, path: str, handler: Any) -> Api:
    """An API whose ``handler`` takes no inputs and returns nothing to report."""
    return _doc_api(method, path, [], [], handler)