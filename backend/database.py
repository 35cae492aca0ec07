from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path
import os

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'presence_engine')

# motor لا يتصل فعلياً حتى أول استعلام
client = AsyncIOMotorClient(MONGO_URL)
db = client[DB_NAME]
