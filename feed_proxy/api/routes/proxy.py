"""Read-only resource routes backed by the proxy service.

Routes only translate HTTP to core calls: status and body of the returned
result are written back verbatim.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from feed_proxy.api.dependencies import get_proxy_service
from feed_proxy.core.logging import get_request_id
from feed_proxy.schemas.proxy import JobResult
from feed_proxy.services.proxy_service import ProxyService

router = APIRouter(tags=["Proxy"])

ProxyDep = Annotated[ProxyService, Depends(get_proxy_service)]


def to_response(result: JobResult) -> Response:
    """Render a JobResult: JSON body, plain text body, or empty body."""

    if result.data is None:
        return Response(status_code=result.status)
    if isinstance(result.data, str):
        return PlainTextResponse(result.data, status_code=result.status)
    return JSONResponse(result.data, status_code=result.status)


@router.get("/user/{username}")
async def get_user(username: str, proxy: ProxyDep) -> Response:
    """Resolve a user by username."""

    result = await proxy.lookup_user(username, request_id=get_request_id())
    return to_response(result)


@router.get("/user/{user_id}/tweets")
async def get_user_tweets(
    user_id: str,
    proxy: ProxyDep,
    cursor: Annotated[
        str | None,
        Query(description="Paging cursor returned by a previous page; omit for the latest page."),
    ] = None,
) -> Response:
    """Fetch a page of a user's timeline."""

    # An empty ?cursor= is the same request as no cursor
    result = await proxy.lookup_user_timeline(
        user_id,
        cursor or None,
        request_id=get_request_id(),
    )
    return to_response(result)


@router.get("/tweet/{post_id}")
async def get_tweet(post_id: str, proxy: ProxyDep) -> Response:
    """Fetch a single post by id."""

    result = await proxy.lookup_post(post_id, request_id=get_request_id())
    return to_response(result)
