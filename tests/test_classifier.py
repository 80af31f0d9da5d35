"""
Unit tests for error classification.
"""

from types import SimpleNamespace

import pytest
import requests

from milvet_nav.error_handling import (
    ERROR_MESSAGES,
    ClassifiedError,
    ErrorKind,
    classify_error,
    default_should_retry,
    get_error_message,
    is_recoverable,
)


class TestErrorKinds:
    """Test the fixed message and recoverability of every kind."""

    def test_every_kind_has_a_message(self):
        for kind in ErrorKind:
            assert ERROR_MESSAGES[kind]
            assert get_error_message(kind) == ERROR_MESSAGES[kind]

    def test_only_permissions_and_not_found_are_unrecoverable(self):
        unrecoverable = {kind for kind in ErrorKind if not is_recoverable(kind)}
        assert unrecoverable == {ErrorKind.INSUFFICIENT_PERMISSIONS, ErrorKind.DATA_NOT_FOUND}

    def test_kind_count(self):
        assert len(ErrorKind) == 18


class TestClassifyNetworkAndTimeout:
    """Test transport-level failures."""

    @pytest.mark.parametrize("error", [
        ConnectionError("refused"),
        ConnectionRefusedError(),
        ConnectionResetError(),
        requests.ConnectionError("Failed to establish a new connection"),
        {'name': 'NetworkError', 'message': 'Failed to fetch'},
        {'code': 'ECONNREFUSED'},
        {'code': 'ENOTFOUND'},
    ])
    def test_network_errors(self, error):
        assert classify_error(error).kind == ErrorKind.NETWORK_ERROR

    @pytest.mark.parametrize("error", [
        TimeoutError(),
        requests.ReadTimeout("read timed out"),
        requests.ConnectTimeout("connect timed out"),
        {'code': 'ETIMEDOUT'},
        {'name': 'TimeoutError'},
    ])
    def test_timeout_errors(self, error):
        assert classify_error(error).kind == ErrorKind.TIMEOUT_ERROR

    def test_network_wins_over_message(self):
        error = ConnectionError("session expired")
        assert classify_error(error).kind == ErrorKind.NETWORK_ERROR

    def test_non_string_code_is_ignored(self):
        assert classify_error({'code': ['ECONNREFUSED']}).kind == ErrorKind.UNKNOWN_ERROR


class TestClassifyMessages:
    """Test message substring matching."""

    def test_invalid_credentials(self):
        error = {'message': 'Invalid login credentials', 'status': 400}
        assert classify_error(error).kind == ErrorKind.AUTH_INVALID

    def test_expired_session(self):
        assert classify_error({'message': 'JWT expired'}).kind == ErrorKind.AUTH_EXPIRED
        assert classify_error(Exception("SESSION_TIMEOUT")).kind == ErrorKind.AUTH_EXPIRED

    def test_permission_messages(self):
        error = {'message': 'new row violates row-level security policy for table "profiles"'}
        assert classify_error(error).kind == ErrorKind.INSUFFICIENT_PERMISSIONS
        assert classify_error({'message': 'permission denied'}).kind == ErrorKind.INSUFFICIENT_PERMISSIONS

    def test_message_wins_over_status(self):
        error = {'message': 'permission denied for relation', 'status': 404}
        assert classify_error(error).kind == ErrorKind.INSUFFICIENT_PERMISSIONS

    def test_matching_is_case_insensitive(self):
        assert classify_error({'message': 'INVALID CREDENTIALS'}).kind == ErrorKind.AUTH_INVALID


class TestClassifyStatus:
    """Test HTTP status mapping."""

    @pytest.mark.parametrize("status,kind", [
        (401, ErrorKind.AUTH_REQUIRED),
        (403, ErrorKind.INSUFFICIENT_PERMISSIONS),
        (404, ErrorKind.DATA_NOT_FOUND),
        (409, ErrorKind.DATA_CONFLICT),
        (422, ErrorKind.VALIDATION_ERROR),
        (429, ErrorKind.RATE_LIMITED),
        (503, ErrorKind.SERVICE_UNAVAILABLE),
        (400, ErrorKind.CLIENT_ERROR),
        (418, ErrorKind.CLIENT_ERROR),
        (500, ErrorKind.SERVER_ERROR),
        (502, ErrorKind.SERVER_ERROR),
    ])
    def test_status_mapping(self, status, kind):
        assert classify_error({'status': status}).kind == kind

    def test_status_code_attribute(self):
        response = SimpleNamespace(status_code=401)
        assert classify_error(response).kind == ErrorKind.AUTH_REQUIRED

    def test_boolean_status_is_ignored(self):
        assert classify_error({'status': True}).kind == ErrorKind.UNKNOWN_ERROR


class TestClassifiedError:
    """Test ClassifiedError behavior."""

    def test_unknown_inputs(self):
        assert classify_error(ValueError("boom")).kind == ErrorKind.UNKNOWN_ERROR
        assert classify_error(None).kind == ErrorKind.UNKNOWN_ERROR
        assert classify_error("something odd").kind == ErrorKind.UNKNOWN_ERROR

    def test_already_classified_passes_through(self):
        original = ClassifiedError(ErrorKind.RATE_LIMITED)
        assert classify_error(original) is original

    def test_message_is_user_safe(self):
        raw = {'message': 'duplicate key value violates unique constraint "users_pkey"', 'status': 409}
        classified = classify_error(raw)
        assert classified.message == ERROR_MESSAGES[ErrorKind.DATA_CONFLICT]
        assert classified.details is raw
        assert str(classified) == classified.message

    def test_recoverable_follows_kind(self):
        assert classify_error({'status': 404}).recoverable is False
        assert classify_error({'status': 403}).recoverable is False
        assert classify_error({'status': 500}).recoverable is True
        assert classify_error(ConnectionError()).recoverable is True

    def test_context_fields(self):
        classified = classify_error({'status': 500}, actor_id="user-1", operation_label="load cycles")
        assert classified.actor_id == "user-1"
        assert classified.operation_label == "load cycles"

    def test_to_dict(self):
        classified = classify_error({'status': 429, 'hint': None}, actor_id="user-1")
        data = classified.to_dict()

        assert set(data) == {'kind', 'message', 'details', 'occurred_at',
                             'actor_id', 'operation_label', 'recoverable'}
        assert data['kind'] == "RATE_LIMITED"
        assert data['recoverable'] is True
        assert data['details'] == {'status': 429, 'hint': None}
        assert data['actor_id'] == "user-1"

    def test_is_raisable(self):
        with pytest.raises(ClassifiedError) as exc_info:
            raise ClassifiedError(ErrorKind.AUTH_REQUIRED, operation_label="save")
        assert exc_info.value.kind == ErrorKind.AUTH_REQUIRED


class BrokenStr(Exception):
    def __str__(self):
        raise RuntimeError("cannot render")


class TestUnprintableErrors:
    """Errors whose text cannot be rendered."""

    def test_broken_str_is_unknown(self):
        classified = classify_error(BrokenStr())
        assert classified.kind == ErrorKind.UNKNOWN_ERROR
        assert classified.message == ERROR_MESSAGES[ErrorKind.UNKNOWN_ERROR]

    def test_broken_str_details_serialize(self):
        data = classify_error(BrokenStr()).to_dict()
        assert data['details'] == {'type': 'BrokenStr', 'message': None}

    def test_retry_predicate_does_not_raise(self):
        assert default_should_retry(BrokenStr()) is True
