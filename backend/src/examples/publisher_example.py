import asyncio
import json
import os
import websockets  # lightweight client; to install: pip install websockets

async def main():
    uri = "ws://localhost:3000/ws"
    password = os.environ.get("PASSWORD", "hunter2")
    async with websockets.connect(uri) as ws:
        # authenticate, then bind a publisher name
        await ws.send(f"pub auth {password}")
        await ws.send("pub name orders-service")

        # publish a few messages to topic 'orders'; the relay sends nothing back
        for i in range(3):
            msg = {
                "topic": "orders",
                "data": json.dumps({"order_id": f"ORD-{i}", "amount": 9.99, "currency": "USD"}),
            }
            print("Client Message: ", msg)
            await ws.send(json.dumps(msg))
            await asyncio.sleep(1)

if __name__ == "__main__":
    asyncio.run(main())
