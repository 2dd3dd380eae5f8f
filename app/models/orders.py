from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Customer(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    full_name: str = Field(..., alias="fullName")
    email: str


class Product(BaseModel):
    name: str
    price: float


class ProductQuantity(BaseModel):
    product: Product
    quantity: float


class Order(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    date: str
    total_amount: float = Field(..., alias="totalAmount")
    customer: Optional[Customer] = None
    products: Optional[list[ProductQuantity]] = None

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class GraphQLRequest(BaseModel):
    query: str
    operation_name: Optional[str] = Field(default=None, alias="operationName")
    variables: Optional[dict[str, Any]] = None


class GraphQLError(BaseModel):
    message: str


class GraphQLResponse(BaseModel):
    data: Optional[dict[str, Any]] = None
    errors: Optional[list[GraphQLError]] = None
