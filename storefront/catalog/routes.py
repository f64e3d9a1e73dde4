from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.catalog.constants import RECENT_DEFAULT_LIMIT, RECENT_MAX_LIMIT
from storefront.catalog.models import CharacterCreateIn, CharacterUpdateIn, ComicCreateIn, ComicUpdateIn, CompanyCreateIn
from storefront.catalog.repository import (character_out, comic_out, company_out, create_character, create_comic, create_company,
                                           fetch_characters, fetch_comics, fetch_companies, fetch_recent_comics,
                                           patch_character, patch_comic, require_character, require_comic)
from storefront.common.constants import request_id_ctx
from storefront.common.utils import success_response
from storefront.db.dependencies import get_session

comics_public_router=APIRouter()
comics_admin_router=APIRouter()


@comics_public_router.get("")
async def list_comics(session: AsyncSession = Depends(get_session)):
    comics = await fetch_comics(session)
    return success_response({"items": [comic_out(c) for c in comics]}, request_id=request_id_ctx.get())


# declared before /{comic_id} so the literal path wins
@comics_public_router.get("/recent-updated")
async def recent_comics(limit: int = Query(RECENT_DEFAULT_LIMIT), session: AsyncSession = Depends(get_session)):
    limit = max(1, min(limit, RECENT_MAX_LIMIT))
    comics = await fetch_recent_comics(session, limit)
    return success_response({"items": [comic_out(c) for c in comics]}, request_id=request_id_ctx.get())


@comics_public_router.get("/{comic_id}")
async def get_comic_details(comic_id: int, session: AsyncSession = Depends(get_session)):
    comic = await require_comic(session, comic_id)
    return success_response(comic_out(comic), request_id=request_id_ctx.get())


@comics_admin_router.post("")
async def add_comic(payload: ComicCreateIn, session: AsyncSession = Depends(get_session)):
    comic = await create_comic(session, payload.model_dump())
    await session.commit()
    return success_response(comic_out(comic), status_code=status.HTTP_201_CREATED, request_id=request_id_ctx.get())


@comics_admin_router.patch("/{comic_id}")
async def update_comic(comic_id: int, payload: ComicUpdateIn, session: AsyncSession = Depends(get_session)):
    updates = payload.model_dump(exclude_unset=True)
    comic = await patch_comic(session, comic_id, updates)
    await session.commit()
    return success_response(comic_out(comic), request_id=request_id_ctx.get())


#--------------------------------------------------------------------------------------------------------

companies_public_router=APIRouter()
companies_admin_router=APIRouter()
characters_public_router=APIRouter()
characters_admin_router=APIRouter()


@companies_public_router.get("")
async def list_companies(session: AsyncSession = Depends(get_session)):
    companies = await fetch_companies(session)
    return success_response({"items": [company_out(c) for c in companies]}, request_id=request_id_ctx.get())


@companies_admin_router.post("")
async def add_company(payload: CompanyCreateIn, session: AsyncSession = Depends(get_session)):
    company = await create_company(session, payload.model_dump())
    await session.commit()
    return success_response(company_out(company), status_code=status.HTTP_201_CREATED, request_id=request_id_ctx.get())


@characters_public_router.get("")
async def list_characters(session: AsyncSession = Depends(get_session)):
    characters = await fetch_characters(session)
    return success_response({"items": [character_out(c) for c in characters]}, request_id=request_id_ctx.get())


@characters_public_router.get("/{character_id}")
async def get_character_details(character_id: int, session: AsyncSession = Depends(get_session)):
    character = await require_character(session, character_id)
    return success_response(character_out(character), request_id=request_id_ctx.get())


@characters_admin_router.post("")
async def add_character(payload: CharacterCreateIn, session: AsyncSession = Depends(get_session)):
    character = await create_character(session, payload.model_dump())
    await session.commit()
    return success_response(character_out(character), status_code=status.HTTP_201_CREATED, request_id=request_id_ctx.get())


@characters_admin_router.patch("/{character_id}")
async def update_character(character_id: int, payload: CharacterUpdateIn, session: AsyncSession = Depends(get_session)):
    character = await patch_character(session, character_id, payload.model_dump(exclude_unset=True))
    await session.commit()
    return success_response(character_out(character), request_id=request_id_ctx.get())
