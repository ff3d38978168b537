"""Drives a few fake students against a running server.

Each student opens the signaling WebSocket, joins the queue over HTTP,
waits for its group, enters the room and exchanges a fake offer/answer with
every peer, with the smaller connection id sending the offer.

    python simulate.py --students 4 --size 2 --subject algebra
"""

import argparse
import asyncio
import json
import uuid

import aiohttp
import websockets

from studymatch.core.relay import should_initiate

BASE_URL = "http://localhost:3000"
WS_URL = "ws://localhost:3000/ws"


async def join_queue(session, name: str, subject: str, size: int, connection_id: str, client_id: str):
    payload = {
        "name": name,
        "subject": subject,
        "desiredSize": size,
        "connectionId": connection_id,
        "clientId": client_id,
    }
    async with session.post(f"{BASE_URL}/api/join", json=payload) as resp:
        data = await resp.json()
        print(f"[{name}] join → HTTP {resp.status}:", data)
        return data


async def student(name: str, subject: str, size: int, run_seconds: float):
    client_id = uuid.uuid4().hex
    async with websockets.connect(f"{WS_URL}?clientId={client_id}") as ws:
        hello = json.loads(await ws.recv())
        me = hello["connectionId"]
        print(f"[{name}] connected as {me}")

        async with aiohttp.ClientSession() as session:
            reply = await join_queue(session, name, subject, size, me, client_id)

        room_id = reply.get("roomId")
        while room_id is None:
            data = json.loads(await ws.recv())
            if data.get("type") == "matched":
                room_id = data["roomId"]
        print(f"[{name}] matched into room {room_id}")

        await ws.send(json.dumps({"type": "enterRoom", "roomId": room_id}))

        async def handle_events():
            async for raw in ws:
                data = json.loads(raw)
                kind = data.get("type")
                if kind == "peerArrived":
                    peer = data["connectionId"]
                    if should_initiate(me, peer):
                        print(f"[{name}] sending offer to {peer}")
                        await ws.send(json.dumps({
                            "type": "signal",
                            "toConnectionId": peer,
                            "payload": {"type": "offer", "sdp": f"v=0 fake offer from {me}"},
                        }))
                elif kind == "signal":
                    sender, payload = data["fromConnectionId"], data["payload"]
                    print(f"[{name}] got {payload.get('type')} from {sender}")
                    if payload.get("type") == "offer":
                        await ws.send(json.dumps({
                            "type": "signal",
                            "toConnectionId": sender,
                            "payload": {"type": "answer", "sdp": f"v=0 fake answer from {me}"},
                        }))
                elif kind == "peerLeft":
                    print(f"[{name}] peer {data['connectionId']} left")

        try:
            await asyncio.wait_for(handle_events(), timeout=run_seconds)
        except asyncio.TimeoutError:
            pass
        await ws.send(json.dumps({"type": "exitRoom", "roomId": room_id}))


async def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--students", type=int, default=4)
    parser.add_argument("--size", type=int, default=2)
    parser.add_argument("--subject", default="algebra")
    parser.add_argument("--seconds", type=float, default=5.0)
    args = parser.parse_args()

    await asyncio.gather(*(
        student(f"Student{i + 1}", args.subject, args.size, args.seconds)
        for i in range(args.students)
    ))


if __name__ == "__main__":
    asyncio.run(main())
