# /// script
# requires-python = ">=3.9"
# dependencies = [
#     "easycache[fastapi]",
#     "httpx",
# ]
#
# [tool.uv.sources]
# easycache = { path = "../", editable = true }
# ///


import asyncio
from datetime import datetime, timezone

import httpx
from fastapi import FastAPI

from easycache.fastapi import ConditionalCacheHeadersMiddleware, conditional_cache

app = FastAPI()
app.add_middleware(ConditionalCacheHeadersMiddleware)

processed_requests = 0
last_change = datetime.now(timezone.utc)


@app.get("/items/")
async def read_items(_: None = conditional_cache(last_modified=lambda: last_change, control="public")):
    global processed_requests
    processed_requests += 1
    return {"processed_requests": processed_requests}


async def main():
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        response = await client.get("/items/")
        print(f"First request: status={response.status_code}, body={response.json()}")

        headers = {"If-Modified-Since": response.headers["last-modified"]}
        response = await client.get("/items/", headers=headers)
        print(f"Revalidation: status={response.status_code}, processed_requests={processed_requests}")


if __name__ == "__main__":
    asyncio.run(main())
