"""
Static content delivery: HTML with script injection, streamed files and
directory listings.
"""

import asyncio
import logging
import os
import stat

from aiohttp import web

from .client import inject_script
from .listing import render_listing, scan_directory
from .mime import get_content_type, is_html

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
HTML_TYPE = "text/html; charset=utf-8"
TEXT_TYPE = "text/plain; charset=utf-8"


def error_response(status: int, reason: str) -> web.Response:
    response = web.Response(
        status=status,
        body=f"{status} {reason}\n".encode(),
        headers={"Content-Type": TEXT_TYPE},
    )
    response.force_close()
    return response


def not_found() -> web.Response:
    return error_response(404, "Not Found")


def success_headers(instance, content_type: str) -> dict:
    headers = dict(instance.headers)
    headers["Content-Type"] = content_type
    if instance.cors_origin:
        headers["Access-Control-Allow-Origin"] = instance.cors_origin
    return headers


def html_response(instance, body: bytes) -> web.Response:
    if instance.inject_script:
        body = inject_script(body)
    response = web.Response(body=body, headers=success_headers(instance, HTML_TYPE))
    response.force_close()
    return response


def _read_bytes(path):
    with open(path, "rb") as f:
        return f.read()


async def respond(instance, resolved: str, request: web.BaseRequest) -> web.StreamResponse:
    loop = asyncio.get_running_loop()
    try:
        st = await loop.run_in_executor(None, os.stat, resolved)
    except OSError:
        return not_found()

    if stat.S_ISDIR(st.st_mode):
        return await respond_directory(instance, resolved, request)
    if stat.S_ISREG(st.st_mode):
        return await serve_file(instance, resolved, request)
    return not_found()


def index_candidates(instance, directory: str):
    if instance.default_index and directory == instance.root_real:
        yield instance.default_index
    for name in instance.index_names:
        yield os.path.join(directory, name)


async def respond_directory(instance, directory: str, request: web.BaseRequest) -> web.StreamResponse:
    loop = asyncio.get_running_loop()
    for candidate in index_candidates(instance, directory):
        if await loop.run_in_executor(None, os.path.isfile, candidate):
            return await serve_file(instance, candidate, request)

    if not instance.dir_listing_enabled:
        return not_found()

    try:
        entries = await loop.run_in_executor(None, scan_directory, directory, instance.show_hidden)
    except OSError:
        return not_found()
    page = render_listing(entries, request.path, at_root=directory == instance.root_real)
    return html_response(instance, page.encode("utf-8"))


async def serve_file(instance, path: str, request: web.BaseRequest) -> web.StreamResponse:
    content_type = get_content_type(path)
    if is_html(content_type):
        try:
            body = await asyncio.get_running_loop().run_in_executor(None, _read_bytes, path)
        except OSError:
            return not_found()
        return html_response(instance, body)
    return await stream_file(instance, path, request, content_type)


async def stream_file(instance, path: str, request: web.BaseRequest, content_type: str) -> web.StreamResponse:
    """Send ``path`` in CHUNK_SIZE pieces with the size taken at open time."""
    loop = asyncio.get_running_loop()
    try:
        f = await loop.run_in_executor(None, open, path, "rb")
    except OSError:
        return not_found()

    try:
        try:
            st = os.fstat(f.fileno())
        except OSError:
            return not_found()
        if not stat.S_ISREG(st.st_mode):
            return not_found()

        response = web.StreamResponse(status=200, headers=success_headers(instance, content_type))
        response.content_length = st.st_size
        response.force_close()
        await response.prepare(request)
        if request.method == "HEAD":
            return response

        try:
            while True:
                chunk = await loop.run_in_executor(None, f.read, CHUNK_SIZE)
                if chunk:
                    await response.write(chunk)
                if len(chunk) < CHUNK_SIZE:
                    break
        except OSError as e:
            logger.warning(f"Aborted sending {path}: {e}")
            if request.transport is not None:
                request.transport.abort()
        return response
    finally:
        f.close()
