"""
Scheduler Service

Team calendar bookings: creation, moves, experiment binding and deletion,
with team scoping and ownership rules.
"""

import logging
import re
from typing import Optional, List

from ..core.database import Database
from ..core.exceptions import BookingConflict, Forbidden, NotFound
from ..core.models import (
    Actor,
    BookingEvent,
    ItemCalendarEvent,
    TeamCalendarEvent,
    to_instant,
)
from ..config import settings

logger = logging.getLogger(__name__)

# An unclosed tag swallows the rest of the string
_TAG_RE = re.compile(r"<[^>]*>?")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")


def sanitize_title(title: str) -> str:
    """Strip markup tags and control characters from a booking title."""
    title = _TAG_RE.sub("", title)
    title = _CONTROL_RE.sub("", title)
    return title.strip()


class Scheduler:
    """
    Manages the team's booking events.

    Features:
    - Bookings of an item scoped to the booker's team
    - Team-wide and per-item calendar views with composed titles
    - Drag/resize updates and experiment binding, silently team scoped
    - Deletion by the owner, or by an admin of the owner's team
    - Optional rejection of overlapping bookings on the same item

    Every operation takes the acting user and the targeted ids explicitly.
    """

    def __init__(
        self,
        db: Database,
        scope_lookup_by_team: Optional[bool] = None,
        reject_overlaps: Optional[bool] = None
    ):
        self.db = db
        self.scope_lookup_by_team = (
            settings.scope_event_lookup_by_team
            if scope_lookup_by_team is None else scope_lookup_by_team
        )
        self.reject_overlaps = (
            settings.reject_overlapping_bookings
            if reject_overlaps is None else reject_overlaps
        )

    async def create(
        self,
        actor: Actor,
        item_id: int,
        start: str,
        end: str,
        title: str
    ) -> int:
        """
        Add a booking for an item in the actor's team.

        Args:
            actor: The booking user
            item_id: The booked item
            start: e.g. 2016-07-22T13:37:00
            end: e.g. 2016-07-22T19:42:00
            title: The comment entered by the user

        Returns:
            The new booking id
        """
        if self.reject_overlaps:
            await self._ensure_free(actor, item_id, start, end)

        event_id = await self.db.create_team_event({
            "team": actor.team_id,
            "item": item_id,
            "start": start,
            "end": end,
            "userid": actor.user_id,
            "title": sanitize_title(title),
        })
        logger.info(
            f"Booking {event_id} created by user {actor.user_id} "
            f"for item {item_id} ({start} -> {end})"
        )
        return event_id

    async def read_all_from_team(self, actor: Actor) -> List[TeamCalendarEvent]:
        """Bookings for all items of the actor's team."""
        rows = await self.db.get_all_team_events(actor.team_id)
        return [TeamCalendarEvent(**r) for r in rows]

    async def read(self, actor: Actor, item_id: int) -> List[ItemCalendarEvent]:
        """Bookings of one item in the actor's team."""
        rows = await self.db.get_item_events(actor.team_id, item_id)
        return [ItemCalendarEvent(**r) for r in rows]

    async def read_from_id(
        self,
        booking_id: int,
        actor: Optional[Actor] = None
    ) -> BookingEvent:
        """
        Read a single booking.

        The lookup is limited to the actor's team when scoping is enabled
        and an actor is given.

        Raises:
            NotFound: no visible booking has this id
        """
        team_id = actor.team_id if (actor and self.scope_lookup_by_team) else None
        row = await self.db.get_team_event(booking_id, team_id)
        if row is None:
            raise NotFound(f"No booking with id {booking_id}")
        return BookingEvent(**row)

    async def find_conflicts(
        self,
        actor: Actor,
        item_id: int,
        start: str,
        end: str,
        exclude_id: Optional[int] = None
    ) -> List[BookingEvent]:
        """
        Bookings of the item that intersect [start, end).

        Timestamps are compared as instants, so offsets and second
        precision may differ between bookings.

        Raises:
            ValueError: start or end is not an ISO 8601 date-time
        """
        lo, hi = to_instant(start), to_instant(end)
        rows = await self.db.get_item_bookings(actor.team_id, item_id, exclude_id)

        conflicts = []
        for row in rows:
            try:
                row_start, row_end = to_instant(row["start"]), to_instant(row["end"])
            except ValueError:
                logger.debug(f"Booking {row['id']} has unreadable times, skipped")
                continue
            if row_start < hi and row_end > lo:
                conflicts.append((row_start, BookingEvent(**row)))

        conflicts.sort(key=lambda c: c[0])
        return [event for _, event in conflicts]

    async def update_start(
        self,
        actor: Actor,
        booking_id: int,
        start: str,
        end: str
    ) -> None:
        """Move a booking (drag and drop). A booking of another team is left untouched."""
        if self.reject_overlaps:
            await self._ensure_free_for(actor, booking_id, start, end)

        await self.db.update_team_event_times(booking_id, actor.team_id, start, end)
        logger.info(f"Booking {booking_id} moved to {start} -> {end} by user {actor.user_id}")

    async def update_end(self, actor: Actor, booking_id: int, end: str) -> None:
        """Resize a booking."""
        if self.reject_overlaps:
            await self._ensure_free_for(actor, booking_id, None, end)

        await self.db.update_team_event_end(booking_id, actor.team_id, end)
        logger.info(f"Booking {booking_id} now ends at {end}")

    async def bind(self, actor: Actor, booking_id: int, experiment_id: int) -> None:
        """Bind an experiment to a booking."""
        await self.db.set_team_event_experiment(booking_id, actor.team_id, experiment_id)
        logger.info(f"Experiment {experiment_id} bound to booking {booking_id}")

    async def unbind(self, actor: Actor, booking_id: int) -> None:
        """Unbind the experiment from a booking."""
        await self.db.set_team_event_experiment(booking_id, actor.team_id, None)
        logger.info(f"Booking {booking_id} unbound")

    async def destroy(self, actor: Actor, booking_id: int) -> None:
        """
        Remove a booking.

        The owner may always delete. Anybody else needs an admin role and
        must be in the same team as the owner. The check and the delete
        run in one transaction.

        Raises:
            NotFound: no booking has this id
            Forbidden: the actor may not delete this booking
        """

        def authorize(event: dict, owner: Optional[dict]) -> None:
            if event["userid"] == actor.user_id:
                return
            if actor.is_admin and owner is not None and owner["team"] == actor.team_id:
                return
            logger.warning(
                f"User {actor.user_id} (rank {actor.role_rank}) refused "
                f"deletion of booking {booking_id} owned by user {event['userid']}"
            )
            raise Forbidden("You don't have the rights to delete this booking.")

        await self.db.delete_team_event_checked(booking_id, authorize)
        logger.info(f"Booking {booking_id} deleted by user {actor.user_id}")

    async def _ensure_free(
        self,
        actor: Actor,
        item_id: int,
        start: str,
        end: str,
        exclude_id: Optional[int] = None
    ) -> None:
        conflicts = await self.find_conflicts(actor, item_id, start, end, exclude_id)
        if conflicts:
            ids = tuple(c.id for c in conflicts)
            raise BookingConflict(
                f"Item {item_id} is already booked between {start} and {end}",
                conflicting_ids=ids
            )

    async def _ensure_free_for(
        self,
        actor: Actor,
        booking_id: int,
        start: Optional[str],
        end: str
    ) -> None:
        current = await self.db.get_team_event(booking_id, actor.team_id)
        if current is None:
            # update will match no row
            return
        await self._ensure_free(
            actor, current["item"], start or current["start"], end, exclude_id=booking_id
        )
