import asyncio


async def render(page):
    await asyncio.sleep(5)
    return {"head": [], "body": ""}
