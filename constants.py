import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3001))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

GM_LIST_PATH = os.getenv("GM_LIST_PATH", "GM_list.json")

# localhost plus private LAN ranges (192.168/16, 10/8, 172.16/12), any port
CORS_ORIGIN_REGEX = os.getenv(
    "CORS_ORIGIN_REGEX",
    r"^http://(localhost|127\.0\.0\.1|192\.168\.\d+\.\d+|10\.\d+\.\d+\.\d+|172\.(1[6-9]|2[0-9]|3[01])\.\d+\.\d+):\d+$",
)

MONSTER_ROLL_MIN = 7
MONSTER_ROLL_MAX = 27

ROOM_CODE_LENGTH = 4
