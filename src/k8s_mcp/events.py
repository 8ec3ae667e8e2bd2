from dataclasses import dataclass
from typing import Any, cast

from databind.json import dump as ser

from k8s_mcp.backend import EventsSurface
from k8s_mcp.manifest import Manifest


@dataclass
class EventRecord:
    """
    A condensed view of a `v1/Event`.
    """

    name: str
    namespace: str | None
    reason: str | None
    message: str | None
    source: str | None
    """ The component that reported the event. """

    type: str | None
    count: int | None
    firstTime: str | None
    lastTime: str | None

    @staticmethod
    def from_manifest(event: Manifest) -> "EventRecord":
        metadata = event.get("metadata") or {}
        return EventRecord(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace"),
            reason=event.get("reason"),
            message=event.get("message"),
            source=(event.get("source") or {}).get("component"),
            type=event.get("type"),
            count=event.get("count"),
            # Events reported through the events.k8s.io API only carry an eventTime.
            firstTime=event.get("firstTimestamp") or event.get("eventTime"),
            lastTime=event.get("lastTimestamp") or event.get("eventTime"),
        )

    def dump(self) -> dict[str, Any]:
        return cast(dict[str, Any], ser(self, EventRecord))


def get_events(
    events: EventsSurface, namespace: str | None = None, label_selector: str | None = None
) -> list[EventRecord]:
    """
    List the events in a namespace, or in all namespaces if none is given.
    """

    return [EventRecord.from_manifest(event) for event in events.list_events(namespace, label_selector)]
