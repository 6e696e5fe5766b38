"""HTTP server that stores photos uploaded by headsets."""

from __future__ import annotations

import os
import sys
from pathlib import Path

from aiohttp import web

from muco.discovery import local_ip, register_service

PHOTO_PORT = 3030
FOLDER_NAME = "photos"
SERVICE_NAME = "muco-photo"
TRAILER_SIZE = 48
"""Bytes of closing multipart boundary that follow the uploaded file."""
MAX_BODY_SIZE = 256 * 1024 * 1024


def find_subsequence(haystack, needle) -> int | None:
    """Index of the first occurrence of ``needle`` in ``haystack``, or None."""
    if not needle:
        raise ValueError("needle must not be empty")
    index = bytes(haystack).find(bytes(needle))
    return None if index < 0 else index


def extract_upload(body) -> tuple[str, bytes]:
    """Pull the file name and contents out of a multipart upload body."""
    body = bytes(body)
    end_header = find_subsequence(body, b"\r\n\r\n")
    if end_header is None:
        raise ValueError("upload has no end of header")
    try:
        header = body[:end_header].decode("utf-8")
    except UnicodeDecodeError as err:
        raise ValueError(f"upload header is not utf-8: {err}") from None

    lines = [line.removesuffix("\r") for line in header.split("\n")]
    if len(lines) < 4:
        raise ValueError("upload header is too short")
    parts = lines[3].split(";")
    if len(parts) < 3:
        raise ValueError("upload header has no file name")
    quoted = parts[2].split('"')
    if len(quoted) < 2:
        raise ValueError("upload file name is not quoted")
    name = quoted[1]
    if not name or name in (".", "..") or "/" in name or "\\" in name:
        raise ValueError(f"invalid file name: {name!r}")

    begin = end_header + 4
    end = len(body) - TRAILER_SIZE
    if end < begin:
        raise ValueError("upload body is too short")
    return name, body[begin:end]


def make_app(folder) -> web.Application:
    """The web application that saves uploads into ``folder``."""
    folder = Path(folder)

    async def hello(request: web.Request) -> web.Response:
        return web.Response(text=f"Hello, {request.match_info['name']}!")

    async def upload_photo(request: web.Request) -> web.Response:
        body = await request.read()
        try:
            name, data = extract_upload(body)
        except ValueError as err:
            raise web.HTTPBadRequest(text=str(err)) from None
        (folder / name).write_bytes(data)
        return web.Response()

    app = web.Application(client_max_size=MAX_BODY_SIZE)
    app.router.add_route("*", "/hello/{name}", hello)
    app.router.add_post("/upload_photo", upload_photo)
    return app


def main(argv=None) -> int:
    """Announce the photo service and serve uploads into ``photos``."""
    ip = local_ip()
    with register_service(ip, PHOTO_PORT, SERVICE_NAME):
        os.makedirs(FOLDER_NAME, exist_ok=True)
        web.run_app(make_app(FOLDER_NAME), host="0.0.0.0", port=PHOTO_PORT)
    return 0


if __name__ == "__main__":
    sys.exit(main())