from build_relay.models import (
    BuildEvent,
    Card,
    CardHeader,
    ChatMessage,
    KeyValue,
    Section,
    TriggerMetadata,
    WidgetMarkup,
)

CARD_TITLE = "Debo - The Deployer Bot"
CARD_IMAGE_URL = "https://goo.gl/aeDtrS"

PLACEHOLDER = " - "


def _key_value(label: str, content: str | None) -> WidgetMarkup:
    return WidgetMarkup(
        keyValue=KeyValue(
            topLabel=label,
            content=content if content is not None else PLACEHOLDER,
        )
    )


def format_message(
    event: BuildEvent, trigger: TriggerMetadata | None
) -> ChatMessage:
    """Build the chat card summarizing a build.

    The card always carries the same six labels in the same order; values
    that are unknown are shown as a placeholder.
    """
    trigger_name = trigger.name if trigger is not None else None
    branch_name = trigger.branch_name if trigger is not None else None

    widgets = [
        _key_value("Project id", event.project_id),
        _key_value("Trigger Name", trigger_name),
        _key_value("Branch Name", branch_name),
        _key_value("Status", event.status),
        _key_value("Start Time", event.start_time),
        _key_value("Finish Time", event.end_time),
    ]

    card = Card(
        header=CardHeader(title=CARD_TITLE, imageUrl=CARD_IMAGE_URL),
        sections=[Section(widgets=widgets)],
    )
    return ChatMessage(cards=[card])
