"""
Replay Guard - منع إعادة استخدام الرموز ذات الاستخدام الواحد
============================================================
يحفظ الرموز المستخدمة في ذاكرة مشتركة مع مدة صلاحية (30 يوم)
حتى لا تنمو البيانات بلا حدود.

المفاتيح:
    code_used:{token_id}    TTL = 30 يوم

التزامن:
- try_consume ذري إذا كانت الذاكرة تدعم الإضافة الشرطية (add)
  MemoryCodeCache و MongoCodeCache يدعمانها
- غير ذلك: فحص ثم كتابة، ويبقى احتمال أن يقبل طلبان متزامنان
  نفس الرمز (يتم تسجيل تحذير عند التشغيل)

أخطاء الذاكرة نفسها (مثل انقطاع MongoDB) لا يتم التقاطها هنا.
"""
import logging
import threading
from datetime import datetime, timezone, timedelta
from typing import Callable, Dict, Optional
from pymongo.errors import DuplicateKeyError

logger = logging.getLogger(__name__)

USED_CODE_RETENTION = timedelta(days=30)
USED_CODE_KEY_PREFIX = "code_used:"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CodeCache:
    """واجهة الذاكرة المشتركة"""

    # هل تدعم add ذرياً؟
    supports_atomic_add = False

    async def put(self, key: str, value: Dict, ttl: timedelta) -> None:
        raise NotImplementedError

    async def has(self, key: str) -> bool:
        raise NotImplementedError

    async def add(self, key: str, value: Dict, ttl: timedelta) -> bool:
        """يكتب فقط إذا لم يكن المفتاح موجوداً - True إذا تمت الكتابة"""
        raise NotImplementedError


class MemoryCodeCache(CodeCache):
    """In-process cache (tests and single-worker deployments)."""

    supports_atomic_add = True

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._entries: Dict[str, tuple] = {}
        self._lock = threading.Lock()

    def _live(self, key: str, now: datetime) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry[1] <= now:
            del self._entries[key]
            return False
        return True

    async def put(self, key: str, value: Dict, ttl: timedelta) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)

    async def has(self, key: str) -> bool:
        with self._lock:
            return self._live(key, self._clock())

    async def add(self, key: str, value: Dict, ttl: timedelta) -> bool:
        with self._lock:
            now = self._clock()
            if self._live(key, now):
                return False
            self._entries[key] = (value, now + ttl)
            return True

    def get(self, key: str) -> Optional[Dict]:
        with self._lock:
            if not self._live(key, self._clock()):
                return None
            return self._entries[key][0]

    def clear(self) -> None:
        """For testing: simulate process restart."""
        with self._lock:
            self._entries.clear()


class MongoCodeCache(CodeCache):
    """
    MongoDB-backed cache (motor collection).

    المفتاح هو _id، والإضافة الذرية تعتمد على فهرس _id الفريد.
    الوثيقة المنتهية التي لم يحذفها فهرس TTL بعد يتم استرجاعها
    بتحديث مشروط (find_one_and_update) وهو ذري أيضاً.
    """

    supports_atomic_add = True

    def __init__(self, collection, clock: Callable[[], datetime] = utc_now) -> None:
        self.collection = collection
        self._clock = clock

    async def ensure_indexes(self) -> None:
        # MongoDB يحذف الوثيقة عند الوصول إلى expires_at
        await self.collection.create_index("expires_at", expireAfterSeconds=0)

    async def put(self, key: str, value: Dict, ttl: timedelta) -> None:
        await self.collection.update_one(
            {"_id": key},
            {"$set": {"value": value, "expires_at": self._clock() + ttl}},
            upsert=True
        )

    async def has(self, key: str) -> bool:
        doc = await self.collection.find_one(
            {"_id": key, "expires_at": {"$gt": self._clock()}},
            {"_id": 1}
        )
        return doc is not None

    async def add(self, key: str, value: Dict, ttl: timedelta) -> bool:
        now = self._clock()
        try:
            await self.collection.insert_one({"_id": key, "value": value, "expires_at": now + ttl})
            return True
        except DuplicateKeyError:
            pass

        reclaimed = await self.collection.find_one_and_update(
            {"_id": key, "expires_at": {"$lte": now}},
            {"$set": {"value": value, "expires_at": now + ttl}}
        )
        return reclaimed is not None


class ReplayGuard:
    """تتبع الرموز المستخدمة (unused -> used فقط، حتى انتهاء المدة)"""

    def __init__(
        self,
        cache: CodeCache,
        clock: Callable[[], datetime] = utc_now,
        retention: timedelta = USED_CODE_RETENTION
    ) -> None:
        self.cache = cache
        self.clock = clock
        self.retention = retention

        if not cache.supports_atomic_add:
            logger.warning(
                f"{type(cache).__name__} has no atomic add: concurrent scans of the same "
                "one-time code may both be accepted"
            )

    @staticmethod
    def key(token_id: str) -> str:
        return f"{USED_CODE_KEY_PREFIX}{token_id}"

    def _record(self, who: Optional[str], when: Optional[datetime]) -> Dict:
        when = when or self.clock()
        return {"used_by": who, "used_at": when.isoformat()}

    async def is_used(self, token_id: str) -> bool:
        return await self.cache.has(self.key(token_id))

    async def mark_used(self, token_id: str, who: Optional[str] = None, when: Optional[datetime] = None) -> None:
        await self.cache.put(self.key(token_id), self._record(who, when), self.retention)

    async def try_consume(self, token_id: str, who: Optional[str] = None, when: Optional[datetime] = None) -> bool:
        """
        استهلاك الرمز مرة واحدة

        Returns:
            True إذا كان هذا الطلب أول من استخدم الرمز
        """
        key = self.key(token_id)
        record = self._record(who, when)

        if self.cache.supports_atomic_add:
            consumed = await self.cache.add(key, record, self.retention)
        else:
            # فحص ثم كتابة - غير ذري
            consumed = not await self.cache.has(key)
            if consumed:
                await self.cache.put(key, record, self.retention)

        if not consumed:
            logger.info(f"Replay rejected for code {token_id}")
        return consumed
