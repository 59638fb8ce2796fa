from fastapi import APIRouter, Depends

from api.dependencies import get_category_service, get_current_user
from db.models.user import UserRecord
from schemas.category_schema import Category, CategoryCreate
from services.category_service import CategoryService
from utils.responses import envelope, no_store_json

router = APIRouter()


@router.get("/all")
async def list_categories(service: CategoryService = Depends(get_category_service)):
    categories = await service.list_categories()
    return envelope("Categories fetched successfully", [Category.from_record(c) for c in categories])


@router.post("/create", status_code=201)
async def create_category(
    payload: CategoryCreate,
    current_user: UserRecord = Depends(get_current_user),
    service: CategoryService = Depends(get_category_service),
):
    category = await service.create_category(payload.category_name)
    return no_store_json(envelope("Category created successfully", Category.from_record(category)), status_code=201)
