# tests/test_access.py
import pytest

from shopify_dam.access import AccessController, Permission
from shopify_dam.exceptions import AccessDeniedError


@pytest.fixture
def access(mock_settings):
    return AccessController(mock_settings)


@pytest.mark.parametrize(
    "tags, can_read, can_write",
    [
        (["admin"], True, True),
        (["ADMIN "], True, True),
        (["affiliate"], True, False),
        (["customer", "affiliate"], True, False),
        (["customer"], False, False),
        ([], False, False),
        (None, False, False),
    ],
)
def test_capabilities_from_tags(access, tags, can_read, can_write):
    assert access.can_read(tags) is can_read
    assert access.can_write(tags) is can_write


def test_write_tag_grants_read_even_when_not_listed(mock_settings):
    mock_settings.DAM_READ_TAGS = ["affiliate"]
    mock_settings.DAM_WRITE_TAGS = ["editor"]
    access = AccessController(mock_settings)

    assert access.can_read(["editor"]) is True


def test_require_raises_access_denied(access):
    access.require(Permission.READ, ["affiliate"])

    with pytest.raises(AccessDeniedError, match="write permission required"):
        access.require(Permission.WRITE, ["affiliate"])
    with pytest.raises(AccessDeniedError, match="read permission required"):
        access.require(Permission.READ, [])


def test_access_controller_defaults_to_global_settings(mock_settings):
    # get_settings() returns mock_settings through the patched Settings class.
    access = AccessController()
    assert access.write_tags == {"admin"}
