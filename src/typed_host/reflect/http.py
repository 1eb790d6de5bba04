"""Reflectors of the HTTP types, and the http library.

Options and responses are exchanged with scripts as tables::

    local req = http.request({URL = "https://example.com", ResponseFormat = "json"})
    local resp = req:Resolve()
    print(resp.StatusCode, resp.Body)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from typed_host.dump import Function, Parameter, TypeDef
from typed_host.errors import CyclicValueError, HostError, TypeMismatchError, field_error
from typed_host.http import HTTPHeaders, HTTPOptions, HTTPRequest, HTTPResponse
from typed_host.reflect.base import describe, pull_arg, pull_userdata, push_userdata
from typed_host.reflect.selector import format_selector
from typed_host.reflector import Method, Reflector
from typed_host.types import Bool, Int, String

if TYPE_CHECKING:
    from typed_host.state import State


def _table(s: State, lv: Any, type_name: str) -> dict[Any, Any]:
    if not isinstance(lv, dict):
        raise TypeMismatchError.expected(type_name, describe(lv))
    if s.cycle_mark(lv):
        raise CyclicValueError(f"{type_name} is cyclic")
    return lv


# ---- HTTPHeaders ----


def push_headers(s: State, v: HTTPHeaders) -> dict[str, list[str]]:
    return {name: list(values) for name, values in v.items()}


def pull_headers(s: State, lv: Any) -> HTTPHeaders:
    with s.cycle_guard():
        table = _table(s, lv, "HTTPHeaders")
        headers = HTTPHeaders()
        for name, value in table.items():
            if not isinstance(name, str):
                raise TypeMismatchError(f"string expected for header name, got {describe(name)}")
            if isinstance(value, str):
                headers[name] = [value]
            elif isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
                headers[name] = list(value)
            else:
                raise TypeMismatchError(
                    f"field {name}: string or table of strings expected, got {describe(value)}"
                )
        return headers


def http_headers() -> Reflector:
    return Reflector(
        name="HTTPHeaders",
        push=push_headers,
        pull=pull_headers,
        dump=lambda: TypeDef(
            underlying="table",
            summary="Header names mapped to a string, or to a list of strings.",
        ),
    )


# ---- HTTPOptions ----


def push_options(s: State, v: HTTPOptions) -> dict[str, Any]:
    table: dict[str, Any] = {}
    s.push_to_table(table, "URL", String(v.url))
    s.push_to_table(table, "Method", String(v.method))
    if v.request_format is not None:
        s.push_to_table(table, "RequestFormat", v.request_format)
    if v.response_format is not None:
        s.push_to_table(table, "ResponseFormat", v.response_format)
    s.push_to_table(table, "Headers", v.headers)
    if v.body is not None:
        s.push_to_table(table, "Body", v.body)
    return table


def pull_options(s: State, lv: Any) -> HTTPOptions:
    with s.cycle_guard():
        table = _table(s, lv, "HTTPOptions")
        body = table.get("Body")
        try:
            body_value = s.pull_variant(body) if body is not None else None
        except HostError as err:
            raise field_error("Body", err) from err
        return HTTPOptions(
            url=s.pull_from_table(table, "URL", "string").value,
            method=s.pull_from_table_opt(table, "Method", "string", String("GET")).value.upper(),
            request_format=s.pull_from_table_opt(table, "RequestFormat", "FormatSelector", None),
            response_format=s.pull_from_table_opt(table, "ResponseFormat", "FormatSelector", None),
            headers=s.pull_from_table_opt(table, "Headers", "HTTPHeaders", None) or HTTPHeaders(),
            body=body_value,
        )


def http_options() -> Reflector:
    return Reflector(
        name="HTTPOptions",
        push=push_options,
        pull=pull_options,
        types=[format_selector, http_headers],
        dump=lambda: TypeDef(
            underlying="table",
            summary=(
                "Options of a request: URL, Method, RequestFormat, ResponseFormat, "
                "Headers and Body."
            ),
        ),
    )


# ---- HTTPResponse ----


def push_response(s: State, v: HTTPResponse) -> dict[str, Any]:
    table: dict[str, Any] = {}
    s.push_to_table(table, "Success", Bool(v.success))
    s.push_to_table(table, "StatusCode", Int(v.status_code))
    s.push_to_table(table, "StatusMessage", String(v.status_message))
    s.push_to_table(table, "Headers", v.headers)
    if v.body is not None:
        s.push_to_table(table, "Body", v.body)
    return table


def pull_response(s: State, lv: Any) -> HTTPResponse:
    with s.cycle_guard():
        table = _table(s, lv, "HTTPResponse")
        body = table.get("Body")
        try:
            body_value = s.pull_variant(body) if body is not None else None
        except HostError as err:
            raise field_error("Body", err) from err
        return HTTPResponse(
            success=s.pull_from_table(table, "Success", "bool").value,
            status_code=s.pull_from_table(table, "StatusCode", "int").value,
            status_message=s.pull_from_table(table, "StatusMessage", "string").value,
            headers=s.pull_from_table_opt(table, "Headers", "HTTPHeaders", None) or HTTPHeaders(),
            body=body_value,
        )


def http_response() -> Reflector:
    return Reflector(
        name="HTTPResponse",
        push=push_response,
        pull=pull_response,
        types=[http_headers],
        dump=lambda: TypeDef(
            underlying="table",
            summary="A response: Success, StatusCode, StatusMessage, Headers and Body.",
        ),
    )


# ---- HTTPRequest ----


def _request(s: State, *args: Any) -> Any:
    options: HTTPOptions = pull_arg(s, args, 0, "HTTPOptions")
    return s.push(HTTPRequest.begin(s.world, options))


def _install_http(s: State, env: dict[str, Any]) -> None:
    env["http"] = {"request": lambda *args: _request(s.world.state(), *args)}


def http_request() -> Reflector:
    return Reflector(
        name="HTTPRequest",
        push=push_userdata("HTTPRequest"),
        pull=pull_userdata("HTTPRequest", HTTPRequest),
        methods={
            "Resolve": Method(
                lambda s, v, *args: s.push(v.resolve()),
                dump=lambda: Function(
                    returns=[Parameter("", "HTTPResponse")],
                    can_error=True,
                    summary="Blocks until the response is available.",
                ),
            ),
            "Cancel": Method(
                lambda s, v, *args: v.cancel(),
                dump=lambda: Function(summary="Aborts the request if it has not completed."),
            ),
        },
        metatable={"__tostring": lambda s, v: repr(v)},
        environment=_install_http,
        types=[http_options, http_response],
        dump=lambda: TypeDef(summary="An HTTP request running in the background."),
    )
