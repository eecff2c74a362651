from tortoise import Tortoise

from config import settings

MODELS = ['apps.uploader.models']


async def init_db(db_url: str | None = None) -> None:
    await Tortoise.init(db_url=db_url or settings.DATABASE_URL, modules={'models': MODELS})
    await Tortoise.generate_schemas(safe=True)


async def close_db() -> None:
    await Tortoise.close_connections()
