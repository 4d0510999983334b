from pydantic import BaseModel


class WebhookAck(BaseModel):
    status: str
    item_id: str
    event: str
