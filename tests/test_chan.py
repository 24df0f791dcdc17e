from __future__ import annotations

import asyncio

import aiohttp
from aiohttp import web
from aiohttp.test_utils import TestServer

from thread_locator.chan import ChanClient, parse_cross_thread_ids, parse_post, parse_thread_payload
from thread_locator.models import FetchStatus

LAST_MODIFIED = "Mon, 01 Jan 2024 00:00:00 GMT"


def test_cross_thread_ids_from_comment_markup() -> None:
    comment = (
        '<a href="#p123" class="quotelink">&gt;&gt;123</a><br>'
        '<a href="/mlp/thread/555#p556" class="quotelink">&gt;&gt;556</a><br>'
        '<a href="/mlp/res/777#p777" class="quotelink">&gt;&gt;&gt;/mlp/777</a><br>'
        '<a href="/a/thread/888#p888" class="quotelink">&gt;&gt;&gt;/a/888</a><br>'
        '<a href="/mlp/thread/555#p560" class="quotelink">&gt;&gt;560</a>'
        '<a href="https://example.com/999">link</a>'
    )

    assert parse_cross_thread_ids(comment, "mlp") == ("555", "777")


def test_parse_post_reads_image_and_subject() -> None:
    unit = parse_post(
        {
            "no": 42,
            "sub": "MLP General &amp; friends",
            "com": '<a href="/mlp/thread/9#p9" class="quotelink">&gt;&gt;9</a>',
            "md5": "abc==",
        },
        "mlp",
    )

    assert unit.post_id == "42"
    assert unit.is_post
    assert unit.has_image
    assert unit.image_md5 == "abc=="
    assert unit.subject == "MLP General & friends"
    assert tuple(unit.cross_thread_ids) == ("9",)


def test_malformed_payloads_produce_no_posts() -> None:
    assert parse_thread_payload(None, "mlp") == ()
    assert parse_thread_payload({"posts": "nope"}, "mlp") == ()
    units = parse_thread_payload({"posts": [{"com": "text"}, "junk"]}, "mlp")
    assert len(units) == 1
    assert not units[0].is_post
    assert not units[0].has_image


async def _thread_handler(request: web.Request) -> web.StreamResponse:
    thread_id = request.match_info["thread_id"]
    if thread_id == "404":
        return web.Response(status=404)
    if thread_id == "500":
        return web.Response(text="{broken", content_type="application/json")
    if request.headers.get("If-Modified-Since") == LAST_MODIFIED:
        return web.Response(status=304)
    payload = {"posts": [{"no": int(thread_id), "sub": "MLP General", "md5": "m=="}]}
    return web.json_response(payload, headers={"Last-Modified": LAST_MODIFIED})


def test_fetch_thread_outcomes() -> None:
    async def runner() -> None:
        app = web.Application()
        app.router.add_get(r"/mlp/thread/{thread_id:\d+}.json", _thread_handler)
        server = TestServer(app)
        await server.start_server()
        try:
            async with aiohttp.ClientSession() as session:
                client = ChanClient(
                    session, board="mlp", api_base=str(server.make_url("/"))
                )

                result = await client.fetch_thread("123", timeout=5.0)
                assert result.status is FetchStatus.FRESH
                assert result.last_modified == LAST_MODIFIED
                assert [post.post_id for post in result.posts] == ["123"]

                again = await client.fetch_thread(
                    "123", timeout=5.0, if_modified_since=result.last_modified
                )
                assert again.status is FetchStatus.NOT_MODIFIED
                assert again.last_modified == LAST_MODIFIED

                missing = await client.fetch_thread("404", timeout=5.0)
                assert missing.status is FetchStatus.FAILED
                assert missing.gone

                broken = await client.fetch_thread("500", timeout=5.0)
                assert broken.status is FetchStatus.FRESH
                assert broken.posts == ()
        finally:
            await server.close()

    asyncio.run(runner())


def test_fetch_thread_transport_failure() -> None:
    async def runner() -> None:
        async with aiohttp.ClientSession() as session:
            client = ChanClient(session, api_base="http://127.0.0.1:9")
            result = await client.fetch_thread("1", timeout=2.0)

        assert result.status is FetchStatus.FAILED
        assert not result.gone
        assert result.error

    asyncio.run(runner())
