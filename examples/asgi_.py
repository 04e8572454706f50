# /// script
# requires-python = ">=3.9"
# dependencies = [
#     "easycache",
#     "httpx",
# ]
#
# [tool.uv.sources]
# easycache = { path = "../", editable = true }
# ///


import asyncio
import logging
from datetime import timedelta

import httpx

from easycache import CacheConfig, CacheOptions
from easycache.asgi import ConditionalCacheMiddleware

logging.basicConfig(level=logging.DEBUG)


async def app(scope, receive, send):
    await send({"type": "http.response.start", "status": 200, "headers": [(b"content-type", b"text/plain")]})
    await send({"type": "http.response.body", "body": b"Hello, World!"})


middleware = ConditionalCacheMiddleware(
    app=app,
    config=CacheConfig.build(
        etag=lambda context: context.headers.get("accept-language"),
        expires_in=timedelta(minutes=5),
    ),
    options=CacheOptions.from_environ(),
)


async def main():
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=middleware), base_url="http://testserver") as client:
        response = await client.get("/", headers={"Accept-Language": "en"})
        print(f"First request: status={response.status_code}, headers={dict(response.headers)}")

        headers = {"Accept-Language": "en", "If-None-Match": response.headers["etag"]}
        response = await client.get("/", headers=headers)
        print(f"Revalidation: status={response.status_code}")


if __name__ == "__main__":
    asyncio.run(main())
