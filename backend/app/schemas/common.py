from pydantic import BaseModel


class PaginationMeta(BaseModel):
    total_items: int
    total_pages: int
    page: int
    limit: int
