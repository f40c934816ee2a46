from pydantic import BaseModel, ConfigDict


class PubSubMessage(BaseModel):
    data: str
    attributes: dict[str, str] = {}
    messageId: str | None = None
    publishTime: str | None = None


class PushEnvelope(BaseModel):
    message: PubSubMessage
    subscription: str | None = None


class BuildEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    build_id: str | None = None
    project_id: str | None = None
    trigger_id: str | None = None
    status: str | None = None
    start_time: str | None = None
    end_time: str | None = None


class TriggerMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str | None = None
    branch_name: str | None = None

    @classmethod
    def from_resource(cls, resource: dict) -> "TriggerMetadata":
        """Build from a Cloud Build ``BuildTrigger`` resource."""
        template = resource.get("triggerTemplate") or {}
        return cls(name=resource.get("name"), branch_name=template.get("branchName"))


class KeyValue(BaseModel):
    topLabel: str
    content: str


class WidgetMarkup(BaseModel):
    keyValue: KeyValue


class Section(BaseModel):
    widgets: list[WidgetMarkup]


class CardHeader(BaseModel):
    title: str
    imageUrl: str | None = None


class Card(BaseModel):
    header: CardHeader
    sections: list[Section]


class ChatMessage(BaseModel):
    cards: list[Card]
