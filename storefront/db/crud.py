from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.models import StoredValue


async def get_value(db: AsyncSession, key: str) -> str | None:
    entry = await db.get(StoredValue, key)
    return entry.value if entry else None


async def set_value(db: AsyncSession, key: str, value: str):
    entry = await db.get(StoredValue, key)
    if entry:
        entry.value = value
    else:
        db.add(StoredValue(key=key, value=value))
    await db.commit()


async def delete_values(db: AsyncSession, keys: list[str]):
    if not keys:
        return
    await db.execute(delete(StoredValue).where(StoredValue.key.in_(keys)))
    await db.commit()


async def delete_prefixed(db: AsyncSession, prefix: str) -> int:
    result = await db.execute(select(StoredValue.key).where(StoredValue.key.startswith(prefix, autoescape=True)))
    keys = [row[0] for row in result.fetchall()]
    await delete_values(db, keys)
    return len(keys)
