"""Tests for the credential-provider protocol handler."""

from __future__ import annotations

import json
from io import StringIO
from pathlib import Path
from typing import Any, Optional

import pytest

from netrc_credential.exceptions import (
    ConfigurationError,
    MalformedRequestError,
    NoCredentialsError,
    UnsupportedActionError,
    UrlNotSupportedError,
)
from netrc_credential.exit_codes import (
    EXIT_CONFIGURATION_ERROR,
    EXIT_NO_CREDENTIALS,
    EXIT_PROTOCOL_ERROR,
    EXIT_SUCCESS,
    EXIT_TEMPLATE_ERROR,
)
from netrc_credential.models import CacheControl, ProviderConfig
from netrc_credential.protocol import (
    HELLO,
    HandlerState,
    ProtocolHandler,
    encode_error,
    encode_success,
    parse_request,
    registry_host,
)
from netrc_credential.resolver import CredentialResolver
from netrc_credential.store import NetrcStore


def _request(
    kind: str = "get",
    index_url: str = "sparse+https://example.com/index/",
    **extra: Any,
) -> str:
    data: dict[str, Any] = {
        "v": 1,
        "registry": {"index-url": index_url, "name": "corp"},
        "kind": kind,
        "operation": "read",
        "args": [],
    }
    data.update(extra)
    return json.dumps(data)


def _handler(
    store: NetrcStore,
    format: Optional[str] = "Bearer {{password}}",
    stdin: str = "",
    **config: Any,
) -> tuple[ProtocolHandler, StringIO]:
    stdout = StringIO()
    handler = ProtocolHandler(
        ProviderConfig(format=format, netrc_path=Path("/unused"), **config),
        resolver=CredentialResolver(store),
        stdin=StringIO(stdin),
        stdout=stdout,
    )
    return handler, stdout


class TestParseRequest:
    def test_valid_request(self) -> None:
        request = parse_request(_request(args=["--format", "x"]))
        assert request.kind == "get"
        assert request.registry.index_url == "sparse+https://example.com/index/"
        assert request.registry.name == "corp"
        assert request.args == ["--format", "x"]

    def test_unknown_fields_are_ignored(self) -> None:
        request = parse_request(_request(future_field={"a": 1}))
        assert request.kind == "get"

    def test_invalid_json(self) -> None:
        with pytest.raises(MalformedRequestError, match="not valid JSON"):
            parse_request('{"v": 1, "registry":')

    def test_not_an_object(self) -> None:
        with pytest.raises(MalformedRequestError, match="JSON object"):
            parse_request("[1, 2]")

    def test_missing_registry(self) -> None:
        with pytest.raises(MalformedRequestError, match="no 'registry' field"):
            parse_request(json.dumps({"v": 1, "kind": "get"}))

    def test_missing_index_url(self) -> None:
        with pytest.raises(MalformedRequestError, match="registry.index-url"):
            parse_request(json.dumps({"v": 1, "kind": "get", "registry": {}}))

    def test_validation_error_does_not_echo_values(self) -> None:
        line = json.dumps({"v": 1, "kind": "get", "registry": {"index-url": "x"}, "args": "hunter2"})
        with pytest.raises(MalformedRequestError) as exc_info:
            parse_request(line)
        assert "hunter2" not in str(exc_info.value)

    def test_unsupported_version(self) -> None:
        with pytest.raises(MalformedRequestError, match="protocol version 2"):
            parse_request(_request(v=2))


class TestRegistryHost:
    @pytest.mark.parametrize(
        ("url", "host"),
        [
            ("sparse+https://example.com/index/", "example.com"),
            ("https://example.com/git/index", "example.com"),
            ("https://Example.COM:8443/index", "Example.COM"),
            ("https://user:pw@Example.com:8443/index", "Example.com"),
            ("https://user@example.com/index", "example.com"),
            ("https://10.0.0.1/index", "10.0.0.1"),
            ("sparse+https://[::1]:8080/index/", "::1"),
        ],
    )
    def test_hosts(self, url: str, host: str) -> None:
        assert registry_host(url) == host

    @pytest.mark.parametrize("url", ["file:///srv/index", "not a url", "https://[::1/index"])
    def test_no_host(self, url: str) -> None:
        with pytest.raises(UrlNotSupportedError):
            registry_host(url)


class TestEncoding:
    def test_success(self) -> None:
        assert encode_success("tok", CacheControl.SESSION) == {
            "Ok": {
                "kind": "get",
                "token": "tok",
                "cache": "session",
                "operation_independent": True,
            }
        }

    @pytest.mark.parametrize(
        ("exc", "kind"),
        [
            (NoCredentialsError("h"), "not-found"),
            (UnsupportedActionError("login"), "operation-not-supported"),
            (UrlNotSupportedError("no host"), "url-not-supported"),
            (MalformedRequestError("bad"), "other"),
            (ConfigurationError("missing"), "other"),
        ],
    )
    def test_error_kinds(self, exc: Exception, kind: str) -> None:
        encoded = encode_error(exc)  # type: ignore[arg-type]
        assert encoded == {"Err": {"kind": kind, "message": str(exc)}}


class TestHandleLine:
    def test_initial_state(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store)
        assert handler.state is HandlerState.AWAITING_REQUEST

    def test_get_success(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store)
        response = handler.handle_line(_request())
        assert response["Ok"]["token"] == "Bearer secret"
        assert handler.state is HandlerState.EMITTED_RESPONSE
        assert handler.exit_code == EXIT_SUCCESS

    def test_cache_policy_is_reported(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store, cache=CacheControl.NEVER)
        assert handler.handle_line(_request())["Ok"]["cache"] == "never"

    def test_mixed_case_machine_matches_exactly(self) -> None:
        store = NetrcStore.from_text(
            "machine Artifactory.Example.com login ci password tok\n"
        )
        handler, _ = _handler(store)
        response = handler.handle_line(
            _request(index_url="sparse+https://Artifactory.Example.com/index/")
        )
        assert response["Ok"]["token"] == "Bearer tok"

        lowered = handler.handle_line(
            _request(index_url="sparse+https://artifactory.example.com/index/")
        )
        assert lowered["Err"]["kind"] == "not-found"

    def test_unknown_host(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store)
        response = handler.handle_line(_request(index_url="https://other.com/index"))
        assert response["Err"]["kind"] == "not-found"
        assert handler.state is HandlerState.EMITTED_ERROR
        assert handler.exit_code == EXIT_NO_CREDENTIALS

    def test_missing_registry_is_malformed(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store)
        response = handler.handle_line(json.dumps({"v": 1, "kind": "get"}))
        assert response["Err"]["kind"] == "other"
        assert "registry" in response["Err"]["message"]
        assert "Ok" not in response
        assert handler.exit_code == EXIT_PROTOCOL_ERROR

    @pytest.mark.parametrize("kind", ["login", "logout", "store", "erase"])
    def test_unsupported_actions(self, sample_store: NetrcStore, kind: str) -> None:
        handler, _ = _handler(sample_store)
        response = handler.handle_line(_request(kind=kind))
        assert response["Err"]["kind"] == "operation-not-supported"
        assert handler.exit_code == EXIT_PROTOCOL_ERROR

    def test_url_without_host(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store)
        response = handler.handle_line(_request(index_url="file:///srv/index"))
        assert response["Err"]["kind"] == "url-not-supported"

    def test_missing_required_password(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store)
        response = handler.handle_line(
            _request(index_url="https://nopass.example.com/index")
        )
        assert response["Err"]["kind"] == "other"
        assert "password" in response["Err"]["message"]
        assert handler.exit_code == EXIT_TEMPLATE_ERROR

    def test_required_fields_can_be_relaxed(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store, required_fields=frozenset())
        response = handler.handle_line(
            _request(index_url="https://nopass.example.com/index")
        )
        assert response["Ok"]["token"] == "Bearer "

    def test_bad_startup_format(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store, format="{{token}}")
        response = handler.handle_line(_request())
        assert "token" in response["Err"]["message"]
        assert handler.exit_code == EXIT_TEMPLATE_ERROR

    def test_format_from_request_args(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store, format=None)
        response = handler.handle_line(_request(args=["--format", "{{login}}:{{password}}"]))
        assert response["Ok"]["token"] == "alice:secret"

    def test_format_from_request_args_equals_form(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store, format=None)
        response = handler.handle_line(_request(args=["--format={{login}}"]))
        assert response["Ok"]["token"] == "alice"

    def test_startup_format_wins_over_request_args(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store)
        response = handler.handle_line(_request(args=["--format", "{{login}}"]))
        assert response["Ok"]["token"] == "Bearer secret"

    def test_no_format_anywhere(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store, format=None)
        response = handler.handle_line(_request())
        assert "no token format configured" in response["Err"]["message"]
        assert handler.exit_code == EXIT_CONFIGURATION_ERROR

    def test_dangling_format_flag_in_args(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store, format=None)
        response = handler.handle_line(_request(args=["--format"]))
        assert response["Err"]["kind"] == "other"

    def test_unsupported_action_checked_before_format(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store, format=None)
        response = handler.handle_line(_request(kind="login"))
        assert response["Err"]["kind"] == "operation-not-supported"

    def test_errors_never_contain_secrets(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store, format="{{login}}:{{account}}:{{password}}")
        response = handler.handle_line(
            _request(index_url="https://nopass.example.com/index")
        )
        assert "Err" in response
        assert "bob" not in json.dumps(response)


class TestLazyStore:
    def test_missing_netrc_file_is_reported(self, tmp_path: Path) -> None:
        stdout = StringIO()
        handler = ProtocolHandler(
            ProviderConfig(format="{{password}}", netrc_path=tmp_path / "absent"),
            stdin=StringIO(_request() + "\n"),
            stdout=stdout,
        )
        assert handler.run() == EXIT_CONFIGURATION_ERROR
        lines = stdout.getvalue().splitlines()
        assert json.loads(lines[1])["Err"]["message"].startswith("netrc file not found")

    def test_unsupported_action_does_not_need_netrc(self, tmp_path: Path) -> None:
        handler = ProtocolHandler(
            ProviderConfig(format="{{password}}", netrc_path=tmp_path / "absent"),
            stdin=StringIO(),
            stdout=StringIO(),
        )
        response = handler.handle_line(_request(kind="logout"))
        assert response["Err"]["kind"] == "operation-not-supported"

    def test_store_is_loaded_from_config(self, netrc_file: Path) -> None:
        handler = ProtocolHandler(
            ProviderConfig(format="{{login}}", netrc_path=netrc_file),
            stdin=StringIO(),
            stdout=StringIO(),
        )
        assert handler.handle_line(_request())["Ok"]["token"] == "alice"


class TestRun:
    def test_hello_then_response(self, sample_store: NetrcStore) -> None:
        handler, stdout = _handler(sample_store, stdin=_request() + "\n")
        assert handler.run() == EXIT_SUCCESS
        lines = stdout.getvalue().splitlines()
        assert json.loads(lines[0]) == HELLO == {"v": [1]}
        assert json.loads(lines[1])["Ok"]["token"] == "Bearer secret"
        assert len(lines) == 2

    def test_hello_is_compact(self, sample_store: NetrcStore) -> None:
        handler, stdout = _handler(sample_store)
        handler.run()
        assert stdout.getvalue() == '{"v":[1]}\n'

    def test_no_requests(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store)
        assert handler.run() == EXIT_SUCCESS

    def test_one_response_per_request(self, sample_store: NetrcStore) -> None:
        stdin = "\n".join(
            [_request(), "", _request(index_url="https://other.com/"), _request()]
        )
        handler, stdout = _handler(sample_store, stdin=stdin)
        assert handler.run() == EXIT_SUCCESS
        responses = [json.loads(line) for line in stdout.getvalue().splitlines()[1:]]
        assert [next(iter(r)) for r in responses] == ["Ok", "Err", "Ok"]

    def test_exit_code_of_last_exchange(self, sample_store: NetrcStore) -> None:
        handler, _ = _handler(sample_store, stdin=_request() + "\n{truncated")
        assert handler.run() == EXIT_PROTOCOL_ERROR

    def test_truncated_request_emits_no_token(self, sample_store: NetrcStore) -> None:
        handler, stdout = _handler(sample_store, stdin=_request()[:-5])
        assert handler.run() == EXIT_PROTOCOL_ERROR
        assert "secret" not in stdout.getvalue()
        assert handler.state is HandlerState.EMITTED_ERROR
