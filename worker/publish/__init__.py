from worker.publish.publisher import Publisher, has_social_refs
from worker.publish.shopify import ShopifyClient
from worker.publish.social import MetaPublisher

__all__ = ["MetaPublisher", "Publisher", "ShopifyClient", "has_social_refs"]
