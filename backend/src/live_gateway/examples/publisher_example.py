import json
import random
import sys
import time
import paho.mqtt.client as mqtt
from paho.mqtt.client import CallbackAPIVersion

# Plays the role of a device publishing straight to the broker the gateway listens on.
def main(topic: str):
    client = mqtt.Client(CallbackAPIVersion.VERSION2, client_id="example-publisher")
    client.connect("localhost", 1883, 60)
    client.loop_start()
    try:
        while True:
            payload = {"temp": round(random.uniform(18, 24), 1), "ts": time.time()}
            client.publish(topic, json.dumps(payload), qos=0, retain=True)
            print("Published:", payload)
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        client.loop_stop()
        client.disconnect()

if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else "sensor/1")
