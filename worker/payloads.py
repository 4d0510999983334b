"""Storefront (Shopify) product payloads validated into CatalogItem.

Webhook bodies and listing pages share this shape; anything the core needs is
normalised here so downstream code never deals with missing keys.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from worker.models import MAX_VARIANT_OPTIONS, CatalogItem, ItemOption, ItemStatus, ItemVariant

PASSTHROUGH_VARIANT_FIELDS = ("compare_at_price", "inventory_quantity", "barcode", "weight", "weight_unit")


class ShopifyOption(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    values: list[str] = Field(default_factory=list)


class ShopifyVariant(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int | str
    option1: str | None = None
    option2: str | None = None
    option3: str | None = None
    price: str | None = None
    sku: str | None = None

    @field_validator("price", mode="before")
    @classmethod
    def _price_as_text(cls, value: object) -> object:
        return None if value is None else str(value)


class ShopifyImage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    src: str


class ShopifyProductPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | str
    title: str = ""
    body_html: str | None = None
    vendor: str | None = None
    product_type: str | None = None
    status: str = "active"
    tags: str | list[str] = ""
    options: list[ShopifyOption] = Field(default_factory=list)
    variants: list[ShopifyVariant] = Field(default_factory=list)
    images: list[ShopifyImage] = Field(default_factory=list)
    image: ShopifyImage | None = None

    def to_item(self) -> CatalogItem:
        return CatalogItem(
            id=str(self.id),
            title=self.title.strip(),
            description=self.body_html or "",
            options=[ItemOption(name=option.name, values=list(option.values)) for option in self.options if option.name],
            variants=[self._variant(variant) for variant in self.variants],
            tags=split_tags(self.tags),
            status=_status(self.status),
            image_url=self._image_url(),
            vendor=self.vendor,
            product_type=self.product_type,
        )

    def _variant(self, variant: ShopifyVariant) -> ItemVariant:
        raw = (variant.option1, variant.option2, variant.option3)[: max(len(self.options), 1)]
        extra = {key: value for key, value in (variant.model_extra or {}).items() if key in PASSTHROUGH_VARIANT_FIELDS}
        return ItemVariant(
            id=str(variant.id),
            options=tuple(raw[:MAX_VARIANT_OPTIONS]),
            price=variant.price,
            sku=variant.sku,
            extra=extra,
        )

    def _image_url(self) -> str | None:
        if self.images:
            return self.images[0].src
        if self.image:
            return self.image.src
        return None


class DeletedProductPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | str


def split_tags(value: str | list[str] | None) -> list[str]:
    if not value:
        return []
    parts = value if isinstance(value, list) else value.split(",")
    return [part.strip() for part in parts if part and part.strip()]


def _status(value: str | None) -> ItemStatus:
    try:
        return ItemStatus((value or "active").strip().lower())
    except ValueError:
        return ItemStatus.DRAFT
