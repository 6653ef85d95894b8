import httpx
import pytest

from ferrisbot.bot import EMBED_COLOR
from ferrisbot.man import (
    FETCH_FAILED_MESSAGE,
    FOOTER,
    MANPAGES_URL,
    NOT_FOUND_MESSAGE,
    fetch_man_page,
    man_embed,
    man_page_url,
    validate_section,
)


def test_validate_section_default():
    assert validate_section(None) == "1"


@pytest.mark.parametrize("section", ["0", "3", "255", "+8"])
def test_validate_section_accepts_numbers(section):
    assert validate_section(section) == section


@pytest.mark.parametrize("section", ["256", "-1", "abc", "", "3p", " 3"])
def test_validate_section_rejects(section):
    with pytest.raises(ValueError, match="Invalid section number"):
        validate_section(section)


def test_man_page_url_layout():
    url = man_page_url("ls", "1")
    assert url.startswith(MANPAGES_URL + "/")
    assert url.split("/")[-2:] == ["1", "ls"]


def test_man_embed_contents():
    embed = man_embed("printf", "3")
    assert embed["title"] == "man printf(3)"
    assert embed["url"] == man_page_url("printf", "3") + ".html"
    assert embed["fields"] == [("Section", "3", True), ("Page", "printf", True)]
    assert embed["footer"] == FOOTER
    assert embed["color"] == EMBED_COLOR
    assert "`printf`" in embed["description"]


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fetch_man_page_found():
    requested = []

    def handler(request):
        requested.append(str(request.url))
        return httpx.Response(200)

    embed = await fetch_man_page(_client(handler), "ls")
    assert requested == [man_page_url("ls", "1")]
    assert embed["url"] == man_page_url("ls", "1") + ".html"


@pytest.mark.asyncio
async def test_fetch_man_page_not_found():
    result = await fetch_man_page(_client(lambda request: httpx.Response(404)), "nope", "2")
    assert result == NOT_FOUND_MESSAGE


@pytest.mark.asyncio
async def test_fetch_man_page_network_failure():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    assert await fetch_man_page(_client(handler), "ls", "1") == FETCH_FAILED_MESSAGE


@pytest.mark.asyncio
async def test_fetch_man_page_invalid_section_makes_no_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200)

    with pytest.raises(ValueError):
        await fetch_man_page(_client(handler), "ls", "x")
    assert calls == []