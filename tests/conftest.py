# tests/conftest.py
import io

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from PIL import Image


def make_png(size=(32, 24), color=(200, 40, 40, 255)) -> bytes:
    bio = io.BytesIO()
    Image.new("RGBA", size, color).save(bio, format="PNG")
    return bio.getvalue()


def make_gif(frames=3, size=(20, 20)) -> bytes:
    images = [Image.new("RGB", size, (i * 60 % 256, 100, 200)) for i in range(frames)]
    bio = io.BytesIO()
    images[0].save(bio, format="GIF", save_all=True, append_images=images[1:], duration=50, loop=0)
    return bio.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def gif_bytes() -> bytes:
    return make_gif()


@pytest.fixture
async def serve():
    """
    Start a throwaway aiohttp server: `server = await serve({"/path": handler})`.
    Every request path is recorded in `server.hits`.
    """
    servers = []

    async def _serve(routes):
        hits = []

        @web.middleware
        async def record(request, handler):
            hits.append(request.path)
            return await handler(request)

        app = web.Application(middlewares=[record])
        for path, handler in routes.items():
            app.router.add_get(path, handler)
        server = TestServer(app)
        await server.start_server()
        server.hits = hits
        servers.append(server)
        return server

    yield _serve

    for server in servers:
        await server.close()
