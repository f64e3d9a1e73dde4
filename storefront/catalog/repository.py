from typing import Any, Dict, Optional
from sqlalchemy import desc, select, update
from sqlalchemy.exc import IntegrityError
from storefront.common.custom_exceptions import InvalidRequest, NotFound
from storefront.common.utils import money_str, now
from storefront.schema.full_schema import Character, Comic, Company
from storefront.catalog.constants import logger


def comic_out(comic: Comic) -> Dict[str, Any]:
    return {
        "id": comic.id,
        "title": comic.title,
        "issue": comic.issue,
        "publisher": comic.publisher,
        "unitPrice": money_str(comic.price),
        "image": comic.image,
        "description": comic.description,
        "updatedAt": comic.updated_at.isoformat() if comic.updated_at else None,
    }


async def get_comic(session, comic_id: int) -> Optional[Comic]:
    res = await session.execute(select(Comic).where(Comic.id == comic_id))
    return res.scalar_one_or_none()


async def require_comic(session, comic_id: int) -> Comic:
    comic = await get_comic(session, comic_id)
    if comic is None:
        raise NotFound("Comic not found")
    return comic


async def fetch_comics(session):
    res = await session.execute(select(Comic).order_by(Comic.title, Comic.id))
    return res.scalars().all()


async def fetch_recent_comics(session, limit: int):
    stmt = select(Comic).order_by(desc(Comic.updated_at), desc(Comic.id)).limit(limit)
    res = await session.execute(stmt)
    return res.scalars().all()


async def create_comic(session, data: Dict[str, Any]) -> Comic:
    comic = Comic(**data)
    session.add(comic)
    await session.flush()
    logger.info("comic.created", extra={"comic_id": comic.id})
    return comic


async def patch_comic(session, comic_id: int, updates: Dict[str, Any]) -> Comic:
    for field in ("title", "price"):
        if field in updates and updates[field] is None:
            raise InvalidRequest(f"{field} cannot be null")

    if not updates:
        return await require_comic(session, comic_id)

    updates["updated_at"] = now()
    stmt = (
        update(Comic)
        .where(Comic.id == comic_id)
        .values(**updates)
        .returning(Comic.id)
    )
    res = await session.execute(stmt)
    if res.scalar_one_or_none() is None:
        raise NotFound("Comic not found")

    # existing carts keep pointing at the comic; checkout re-reads the new price
    logger.info("comic.updated", extra={"comic_id": comic_id, "fields": sorted(updates)})
    comic = await session.get(Comic, comic_id, populate_existing=True)
    return comic


# Companies and characters ---------------------------------------------------------------------------

def company_out(company: Company) -> Dict[str, Any]:
    return {"id": company.id, "name": company.name, "image": company.image}


def character_out(character: Character) -> Dict[str, Any]:
    return {
        "id": character.id,
        "name": character.name,
        "image": character.image,
        "firstAppearance": character.first_appearance,
    }


async def fetch_companies(session):
    res = await session.execute(select(Company).order_by(Company.name))
    return res.scalars().all()


async def create_company(session, data: Dict[str, Any]) -> Company:
    company = Company(**data)
    session.add(company)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise InvalidRequest("company already exists", name=data.get("name"))
    logger.info("company.created", extra={"company_id": company.id})
    return company


async def fetch_characters(session):
    res = await session.execute(select(Character).order_by(Character.name, Character.id))
    return res.scalars().all()


async def require_character(session, character_id: int) -> Character:
    character = await session.get(Character, character_id)
    if character is None:
        raise NotFound("Character not found")
    return character


async def create_character(session, data: Dict[str, Any]) -> Character:
    character = Character(**data)
    session.add(character)
    await session.flush()
    logger.info("character.created", extra={"character_id": character.id})
    return character


async def patch_character(session, character_id: int, updates: Dict[str, Any]) -> Character:
    if "name" in updates and updates["name"] is None:
        raise InvalidRequest("name cannot be null")

    character = await require_character(session, character_id)
    for field, value in updates.items():
        setattr(character, field, value)
    await session.flush()
    logger.info("character.updated", extra={"character_id": character_id, "fields": sorted(updates)})
    return character
