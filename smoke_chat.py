"""Manual smoke test against a running server: pair two strangers and chat.

Usage:
    duochat &            # or: uvicorn duochat.main:app --port 3000
    python smoke_chat.py [ws://localhost:3000/ws]
"""
import asyncio
import json
import sys

import websockets


async def recv(ws):
    return json.loads(await ws.recv())


async def test(url):
    async with websockets.connect(url) as alice, websockets.connect(url) as bob:
        print(f"Alice: {await recv(alice)}")
        print(f"Bob: {await recv(bob)}")

        await alice.send(json.dumps({"type": "find"}))
        print(f"Alice: {await recv(alice)}")
        await bob.send(json.dumps({"type": "find"}))
        print(f"Bob: {await recv(bob)}")
        print(f"Alice: {await recv(alice)}")

        await alice.send(json.dumps({"type": "message", "text": "Hello from Python!"}))
        print(f"Bob received: {await recv(bob)}")
        print(f"Alice echo: {await recv(alice)}")

        await bob.send(json.dumps({"type": "leave"}))
        print(f"Alice: {await recv(alice)}")
        print(f"Alice: {await recv(alice)}")


asyncio.run(test(sys.argv[1] if len(sys.argv) > 1 else "ws://localhost:3000/ws"))
