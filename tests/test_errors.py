import copy
import json
import pickle

import pytest

from service_errors.declaration import declare, declare_error
from service_errors.errors import TRACE_DIVIDER, CustomError, StatusCode, serialize_error
from service_errors.registry import ErrorRegistry
from service_errors.schemas.error import SerializedError
from tests.factories import chained_suffix, last_frame, raised, unique_prefix


class QuotaError(CustomError, error_name="Billing_QuotaError", status=403):
    pass


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------
def test_defaults_to_status_500() -> None:
    err = CustomError("boom")
    assert err.message == "boom"
    assert str(err) == "boom"
    assert err.status == 500
    assert err.status is StatusCode.INTERNAL_ERROR
    assert err.inner_error is None
    assert err.name == "CustomError"


def test_status_keyword() -> None:
    assert CustomError("nope", status=404).status == 404


def test_inner_error_keyword_keeps_default_status() -> None:
    inner = ValueError("bad input")
    err = CustomError("wrapped", inner_error=inner)
    assert err.inner_error is inner
    assert err.__cause__ is inner
    assert err.status == 500


def test_inner_error_and_status() -> None:
    inner = ValueError("bad input")
    err = CustomError("wrapped", inner_error=inner, status=400)
    assert err.inner_error is inner
    assert err.status == 400


def test_status_outside_the_closed_set_is_rejected() -> None:
    with pytest.raises(ValueError):
        CustomError("teapot", status=418)


def test_subclass_name_and_status_are_declared() -> None:
    err = QuotaError("over quota")
    assert err.name == "Billing_QuotaError"
    assert err.status == 403
    assert isinstance(err, CustomError)


def test_subclass_without_error_name_is_rejected() -> None:
    with pytest.raises(TypeError, match="error_name"):

        class Unnamed(CustomError):
            pass


def test_fields_become_attributes_except_reserved() -> None:
    err = CustomError(
        "with fields",
        fields={"user_id": 7, "name": "ignored", "status": 400, "message": "x", "inner_error": 1},
    )
    assert err.user_id == 7  # type: ignore[attr-defined]
    assert err.fields == {"user_id": 7}
    assert err.name == "CustomError"
    assert err.status == 500
    assert err.message == "with fields"
    assert err.inner_error is None


@pytest.mark.parametrize("key", ["stack", "fields", "to_json", "args"])
def test_fields_may_not_replace_error_attributes(key: str) -> None:
    with pytest.raises(TypeError, match=key):
        CustomError("clash", fields={key: "value"})


# ---------------------------------------------------------------------------
# Stack and cause chain
# ---------------------------------------------------------------------------
def test_stack_ends_at_construction_site() -> None:
    err = CustomError("boom")
    lines = err.stack.splitlines()
    assert lines[0] == "Stack (most recent call last):"
    assert lines[-1] == "CustomError: boom"
    assert last_frame(err.stack).endswith("in test_stack_ends_at_construction_site")


def test_stack_without_inner_error_has_no_divider() -> None:
    assert TRACE_DIVIDER not in CustomError("boom").stack


def test_inner_declared_error_stack_is_indented_suffix() -> None:
    inner = QuotaError("over quota")
    outer = CustomError("request failed", inner_error=inner)
    assert outer.stack.endswith(chained_suffix(inner.stack))
    assert outer.stack.count(TRACE_DIVIDER) == 1


def test_native_inner_error_traceback_is_appended() -> None:
    inner = raised(KeyError("missing"))
    outer = CustomError("lookup failed", inner_error=inner)
    assert "\n    Traceback (most recent call last):\n" in outer.stack
    assert outer.stack.endswith("\n    KeyError: 'missing'")


def test_chain_of_three_keeps_every_level() -> None:
    root = raised(OSError("disk full"))
    middle = QuotaError("cannot write", inner_error=root)
    outer = CustomError("upload failed", inner_error=middle)

    assert outer.stack.endswith(chained_suffix(middle.stack))
    assert outer.stack.count(TRACE_DIVIDER) == 2
    assert "        OSError: disk full" in outer.stack


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------
def test_to_dict_includes_message_name_status_and_stack() -> None:
    data = QuotaError("over quota", fields={"plan": "free"}).to_dict()
    assert data["message"] == "over quota"
    assert data["name"] == "Billing_QuotaError"
    assert data["status"] == 403
    assert data["stack"].endswith("Billing_QuotaError: over quota")
    assert data["plan"] == "free"
    assert "inner_error" not in data


def test_to_dict_serializes_the_cause_chain() -> None:
    root = raised(ValueError("bad"))
    data = CustomError("outer", inner_error=QuotaError("middle", inner_error=root)).to_dict()

    middle = data["inner_error"]
    assert middle["name"] == "Billing_QuotaError"
    assert middle["message"] == "middle"
    assert middle["inner_error"]["name"] == "ValueError"
    assert middle["inner_error"]["message"] == "bad"
    assert "Traceback" in middle["inner_error"]["stack"]


def test_to_json_round_trips_through_the_schema() -> None:
    err = CustomError("outer", inner_error=QuotaError("inner"), fields={"attempt": 3})
    payload = SerializedError.model_validate_json(err.to_json())

    assert payload.name == "CustomError"
    assert payload.status == 500
    assert payload.inner_error is not None
    assert payload.inner_error.name == "Billing_QuotaError"
    assert payload.model_extra == {"attempt": 3}
    assert json.loads(err.to_json())["stack"] == err.stack


def test_serialize_native_error() -> None:
    data = serialize_error(RuntimeError("plain"))
    assert data == {"name": "RuntimeError", "message": "plain", "stack": "RuntimeError: plain"}


def test_to_json_keeps_fields_set_to_none(registry: ErrorRegistry) -> None:
    NotOwner = declare_error(
        "Owners_NotOwnerError", 403, lambda user: f"{user} not owner", registry=registry
    )

    data = json.loads(NotOwner(user=None).to_json())

    assert data["user"] is None
    assert data["status"] == 403
    assert "inner_error" not in data


def test_to_json_native_inner_error_has_no_status() -> None:
    data = json.loads(CustomError("outer", inner_error=ValueError("bad")).to_json())
    assert data["inner_error"] == {
        "name": "ValueError",
        "message": "bad",
        "stack": "ValueError: bad",
    }


# ---------------------------------------------------------------------------
# Copying and pickling
# ---------------------------------------------------------------------------
def test_copy_keeps_message_fields_and_cause(registry: ErrorRegistry) -> None:
    Missing = declare_error(
        "Items_MissingError", 404, lambda item_id: f"Item {item_id} missing", registry=registry
    )
    inner = ValueError("gone")
    err = Missing(inner, item_id=3)

    for duplicate in (copy.copy(err), copy.deepcopy(err)):
        assert type(duplicate) is Missing
        assert duplicate.message == "Item 3 missing"
        assert duplicate.fields == {"item_id": 3}
        assert duplicate.status == 404
        assert duplicate.stack == err.stack
        assert str(duplicate) == "Item 3 missing"
        assert isinstance(duplicate.__cause__, ValueError)


def test_pickle_round_trip_of_a_declared_kind() -> None:
    Error = declare(
        unique_prefix("Pick"), {"Missing": (404, lambda item_id: f"Item {item_id} missing")}
    )
    err = Error.Missing(raised(KeyError("item")), item_id=3, status=400)

    restored = pickle.loads(pickle.dumps(err))

    assert type(restored) is Error.Missing
    assert isinstance(restored, Error.base)
    assert restored.name == err.name
    assert restored.status == 400
    assert restored.item_id == 3  # type: ignore[attr-defined]
    assert restored.stack == err.stack
    assert restored.to_dict()["inner_error"]["name"] == "KeyError"


def test_pickle_round_trip_of_an_importable_kind() -> None:
    err = CustomError("plain", status=401, fields={"attempt": 2})

    restored = pickle.loads(pickle.dumps(err))

    assert type(restored) is CustomError
    assert restored.to_dict() == err.to_dict()


# ---------------------------------------------------------------------------
# Status codes
# ---------------------------------------------------------------------------
@pytest.mark.parametrize(
    "value, expected",
    [
        (400, StatusCode.BAD_REQUEST),
        (401, StatusCode.UNAUTHORIZED),
        (403, StatusCode.FORBIDDEN),
        (404, StatusCode.NOT_FOUND),
        (500, StatusCode.INTERNAL_ERROR),
        (418, StatusCode.INTERNAL_ERROR),
        (None, StatusCode.INTERNAL_ERROR),
        ("404", StatusCode.INTERNAL_ERROR),
        ([404], StatusCode.INTERNAL_ERROR),
    ],
)
def test_status_coerce(value: object, expected: StatusCode) -> None:
    assert StatusCode.coerce(value) is expected
