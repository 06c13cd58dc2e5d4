import os
from dotenv import load_dotenv

load_dotenv()

# ------------ Broker ------------
MQTT_HOST = os.getenv("MQTT_HOST", "127.0.0.1")
MQTT_PORT = int(os.getenv("MQTT_PORT", "1883"))
MQTT_USERNAME = os.getenv("MQTT_USERNAME") or None
MQTT_PASSWORD = os.getenv("MQTT_PASSWORD") or None
MQTT_CLIENT_ID = os.getenv("MQTT_CLIENT_ID", "")
MQTT_KEEPALIVE = int(os.getenv("MQTT_KEEPALIVE", "60"))

# ------------ Delivery ------------
DELIVERY_INTERVAL_MS = int(os.getenv("DELIVERY_INTERVAL_MS", "100"))   # per (client, topic) tick
SESSION_QUEUE_SIZE = int(os.getenv("SESSION_QUEUE_SIZE", "50"))        # bounded per-connection outbound queue
STALE_AFTER_SECONDS = float(os.getenv("STALE_AFTER_SECONDS", "0"))     # 0 disables stale marking

# ------------ Persistence ------------
TOPIC_STORE_PATH = os.getenv("TOPIC_STORE_PATH", "subscribed_topics.json")

# ------------ Server ------------
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5000"))
GATEWAY_DEBUG = os.getenv("GATEWAY_DEBUG", "0") == "1"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("LOG_DIR") or None
# --------------------------------
