import asyncio
import json
import websockets

async def main():
    uri = "ws://localhost:3000/ws"
    async with websockets.connect(uri) as ws:
        sub = {"publisher": "orders-service", "topic": "orders"}
        await ws.send(json.dumps(sub))
        # the relay only ever sends the raw data of matching messages
        print("Awaiting messages... (press Ctrl+C to exit)")
        try:
            async for msg in ws:
                print("Received:", msg)
        except websockets.ConnectionClosed as e:
            print("Relay closed the connection:", e)

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("Bye.")
