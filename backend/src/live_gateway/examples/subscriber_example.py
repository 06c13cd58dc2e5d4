import asyncio
import json
import sys
import websockets  # lightweight client; to install: pip install websockets

async def main(topic: str):
    uri = "ws://localhost:5000/ws"
    async with websockets.connect(uri) as ws:
        await ws.send(json.dumps({"event": "subscribeToTopic", "data": topic}))
        print("Awaiting live messages... (press Ctrl+C to exit)")
        try:
            while True:
                frame = json.loads(await ws.recv())
                if frame["event"] == "liveMessage":
                    print("Live:", frame["data"]["message"])
                elif frame["event"] == "error":
                    print("Error:", frame["data"]["message"])
                    break
        except KeyboardInterrupt:
            await ws.send(json.dumps({"event": "unsubscribeFromTopic"}))
            print("Unsubscribed.")

if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "sensor/1"))
