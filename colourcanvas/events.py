"""
Canvas Events

Observer notifications emitted by the canvas loader.

    CanvasLoaded        exactly once per loader, when the canvas is found
    LocationColoured    once per (location, colour) discovered by a resolve

Observers subscribe to an EventBus. A failing handler is counted and
reported through ``on_error``; it never interrupts the scan that published
the event.

Usage
─────

    bus = EventBus()

    @bus.subscribe(LocationColoured)
    def paint(event: LocationColoured):
        screen.set(event.location, event.colour)

    loader = CanvasLoader(factory, record_hash, bus=bus)

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set, Type

from colourcanvas.model import Canvas, Colour, Location
from colourcanvas.observability import Layer, get_logger

logger = get_logger("events", Layer.EVENTS)


# ════════════════════════════════════════════════════════════════════════════
# EVENTS
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class Event:
    """Base class for all events."""

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    event_timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def event_type(self) -> str:
        return self.__class__.__name__


@dataclass
class CanvasLoaded(Event):
    """Emitted when a loader finds its canvas."""
    canvas: Optional[Canvas] = None


@dataclass
class LocationColoured(Event):
    """Emitted for each resolved location."""
    canvas_id: str = ""
    location: Optional[Location] = None
    colour: Optional[Colour] = None


EventHandler = Callable[[Event], None]


@dataclass
class EventHandlerRegistration:
    """Registration for an event handler."""
    handler: EventHandler
    event_types: Set[Type[Event]]
    priority: int = 0


class EventHandlerError(Exception):
    """Error during event handling."""
    def __init__(self, event: Event, handler: EventHandler, cause: Exception):
        self.event = event
        self.handler = handler
        self.cause = cause
        name = getattr(handler, "__name__", repr(handler))
        super().__init__(f"Handler {name} failed for {event.event_type}: {cause}")


# ════════════════════════════════════════════════════════════════════════════
# EVENT BUS
# ════════════════════════════════════════════════════════════════════════════


class EventBus:
    """
    Synchronous in-memory event bus.

    Handlers run in the publishing thread, highest priority first.

    Example:
        bus = EventBus()

        @bus.subscribe(CanvasLoaded)
        def on_loaded(event):
            print(event.canvas.dimensions)
    """

    def __init__(self, on_error: Optional[Callable[[EventHandlerError], None]] = None):
        self._handlers: List[EventHandlerRegistration] = []
        self._lock = threading.RLock()
        self._on_error = on_error
        self._published_count = 0
        self._handled_count = 0
        self._error_count = 0

    def subscribe(
        self,
        *event_types: Type[Event],
        priority: int = 0,
    ) -> Callable[[EventHandler], EventHandler]:
        """Decorator to subscribe a handler to event types (all events if none given)."""
        def decorator(handler: EventHandler) -> EventHandler:
            registration = EventHandlerRegistration(
                handler=handler,
                event_types=set(event_types) if event_types else {Event},
                priority=priority,
            )
            with self._lock:
                self._handlers.append(registration)
                self._handlers.sort(key=lambda r: -r.priority)
            return handler
        return decorator

    def unsubscribe(self, handler: EventHandler) -> bool:
        with self._lock:
            original_len = len(self._handlers)
            self._handlers = [r for r in self._handlers if r.handler != handler]
            return len(self._handlers) < original_len

    def publish(self, event: Event) -> None:
        """Publish an event to all matching subscribers."""
        with self._lock:
            self._published_count += 1
            handlers_to_call = [
                r for r in self._handlers
                if any(isinstance(event, t) for t in r.event_types)
            ]

        for registration in handlers_to_call:
            self._call_handler(registration.handler, event)

    def _call_handler(self, handler: EventHandler, event: Event) -> None:
        try:
            handler(event)
            with self._lock:
                self._handled_count += 1
        except Exception as e:
            with self._lock:
                self._error_count += 1
            error = EventHandlerError(event, handler, e)
            logger.error(str(error), event_type=event.event_type)
            if self._on_error:
                try:
                    self._on_error(error)
                except Exception as callback_error:
                    logger.error(
                        f"on_error callback failed: {callback_error}",
                        event_type=event.event_type,
                    )

    @property
    def metrics(self) -> Dict[str, int]:
        with self._lock:
            return {
                "published_count": self._published_count,
                "handled_count": self._handled_count,
                "error_count": self._error_count,
                "handler_count": len(self._handlers),
            }
