from __future__ import annotations

import dataclasses

import pytest

from ssr_bridge.errors import InvalidModuleShapeError, RenderThrewError, error_from_dict
from ssr_bridge.models import PagePayload, RenderResult


def test_from_mapping_treats_absent_props_as_empty() -> None:
    page = PagePayload.from_mapping({"component": "Home", "url": "/"})
    assert dict(page.props) == {}
    assert page.version is None


@pytest.mark.parametrize("props", [None, {}])
def test_from_mapping_empty_props_variants(props) -> None:
    page = PagePayload.from_mapping({"component": "Home", "url": "/", "props": props})
    assert dict(page.props) == {}


@pytest.mark.parametrize("props", [[], "", 0, False])
def test_from_mapping_rejects_empty_non_mapping_props(props) -> None:
    with pytest.raises(ValueError, match="props must be a mapping"):
        PagePayload.from_mapping({"component": "Home", "url": "/", "props": props})


def test_from_mapping_keeps_extra_page_fields() -> None:
    raw = {
        "component": "Users/Show",
        "props": {"user": {"id": 1}},
        "url": "/users/1",
        "version": "abc123",
        "encryptHistory": False,
        "clearHistory": True,
    }
    page = PagePayload.from_mapping(raw)
    assert page.version == "abc123"
    assert dict(page.extra) == {"encryptHistory": False, "clearHistory": True}
    assert page.to_dict() == raw


@pytest.mark.parametrize(
    "raw,match",
    [
        ("not a page", "page must be an object"),
        ({"url": "/"}, "component is required"),
        ({"component": "", "url": "/"}, "component must be a non-empty string"),
        ({"component": "Home"}, "url is required"),
        ({"component": "Home", "url": "/", "props": ["a"]}, "props must be a mapping"),
        ({"component": "Home", "url": "/", "version": True}, "version must be a string or number"),
    ],
)
def test_from_mapping_rejects_malformed_pages(raw, match: str) -> None:
    with pytest.raises(ValueError, match=match):
        PagePayload.from_mapping(raw)


def test_payload_is_immutable() -> None:
    page = PagePayload(component="Home", url="/", props={"content": "Hello"})
    with pytest.raises(dataclasses.FrozenInstanceError):
        page.url = "/other"  # type: ignore[misc]
    with pytest.raises(TypeError):
        page.props["content"] = "changed"  # type: ignore[index]


def test_payload_does_not_share_containers_with_source() -> None:
    props = {"items": [1], "user": {"name": "Ada"}}
    extra = {"deferredProps": {"default": ["stats"]}}
    page = PagePayload(component="Home", url="/", props=props, extra=extra)
    props["items"].append(2)
    props["user"]["name"] = "Grace"
    extra["deferredProps"]["default"].append("chart")
    assert page.to_dict()["props"] == {"items": [1], "user": {"name": "Ada"}}
    assert page.to_dict()["deferredProps"] == {"default": ["stats"]}


def test_to_dict_is_a_private_copy() -> None:
    page = PagePayload(component="Home", url="/", props={"items": [1, 2]}, version=3)
    data = page.to_dict()
    data["props"]["items"].append(3)
    data["component"] = "Other"
    assert page.to_dict() == {"component": "Home", "props": {"items": [1, 2]}, "url": "/", "version": 3}


def test_render_result_wire_shape() -> None:
    result = RenderResult(head=("<title>a</title>", "<title>a</title>"), body="<div></div>")
    assert result.to_dict() == {"head": ["<title>a</title>", "<title>a</title>"], "body": "<div></div>"}


def test_error_round_trips_through_dict() -> None:
    err = RenderThrewError("render raised", url="/x", component="X", detail="RuntimeError: boom")
    rebuilt = error_from_dict(err.to_dict())
    assert isinstance(rebuilt, RenderThrewError)
    assert str(rebuilt) == "render raised"
    assert (rebuilt.url, rebuilt.component, rebuilt.detail) == ("/x", "X", "RuntimeError: boom")


def test_error_from_dict_restores_shape_reason() -> None:
    err = InvalidModuleShapeError("render.py", "render is not defined")
    rebuilt = error_from_dict(err.to_dict())
    assert isinstance(rebuilt, InvalidModuleShapeError)
    assert rebuilt.reference == "render.py"


def test_error_from_dict_unknown_code() -> None:
    assert error_from_dict({"error": "SOMETHING_ELSE"}) is None
