"""
Reminder scheduling core for Hydrate & Stretch.

Owns the reminder preferences, the per-kind due timestamps and the
debounce ledger.  Everything that decides *whether* a reminder fires lives
here; showing it is delegated to a NotificationSink.
"""
from __future__ import annotations

import dataclasses
import datetime
import enum
import logging
import math
from typing import Any, Callable, Mapping, Optional

logger = logging.getLogger(__name__)

# ─── Named Constants ─────────────────────────────────────────
TICK_MS = 1000                                  # scheduler poll cadence
MIN_GAP = datetime.timedelta(milliseconds=5000)  # debounce between fires of one kind
NEVER = datetime.datetime.min                    # ledger value before the first fire
MAX_INTERVAL_MINUTES = 24 * 60                   # longest allowed reminder interval


class ReminderKind(enum.Enum):
    HYDRATE = "hydration"
    STRETCH = "stretch"

    @property
    def title(self) -> str:
        return "Time to stretch" if self is ReminderKind.STRETCH else "Time to hydrate"

    @property
    def label(self) -> str:
        return "Stretch" if self is ReminderKind.STRETCH else "Hydration"


class TestFirePolicy(enum.Enum):
    """Whether a forced test fire stamps the debounce ledger."""
    ISOLATED = "isolated"   # test fires leave the autonomous path untouched
    SHARED = "shared"       # test fires also debounce the autonomous path

    __test__ = False


class FireStatus(enum.Enum):
    FIRED = "fired"
    FORCED = "forced"
    DISABLED = "disabled"
    NOT_DUE = "not_due"
    GATED = "gated"
    DEBOUNCED = "debounced"


@dataclasses.dataclass(frozen=True)
class FireOutcome:
    kind: ReminderKind
    status: FireStatus
    due_at: Optional[datetime.datetime] = None

    @property
    def fired(self) -> bool:
        return self.status in (FireStatus.FIRED, FireStatus.FORCED)


# ─── Preferences ─────────────────────────────────────────────
def parse_hhmm(s: Any) -> datetime.time:
    """Parse time string (HH:MM) to datetime.time. Raises ValueError if invalid."""
    if isinstance(s, datetime.time):
        return s
    if not isinstance(s, str):
        raise ValueError(f"not a time string: {s!r}")
    h, m = s.strip().split(":")
    return datetime.time(int(h), int(m))


def format_hhmm(t: datetime.time) -> str:
    return f"{t.hour:02d}:{t.minute:02d}"


def clamp_interval(value: Any) -> int:
    """Round an interval to whole minutes, never below 1.

    Raises ValueError on non-numbers and on values above MAX_INTERVAL_MINUTES.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"not a number: {value!r}")
    minutes = float(value)
    if not math.isfinite(minutes):
        raise ValueError(f"not a finite number: {value!r}")
    if minutes > MAX_INTERVAL_MINUTES:
        raise ValueError(f"longer than {MAX_INTERVAL_MINUTES} min: {value!r}")
    return max(1, int(round(minutes)))


@dataclasses.dataclass(frozen=True)
class ReminderSettings:
    interval_minutes: int
    message: str
    enabled: bool = True

    @property
    def interval(self) -> datetime.timedelta:
        return datetime.timedelta(minutes=self.interval_minutes)


@dataclasses.dataclass(frozen=True)
class Preferences:
    hydration: ReminderSettings = ReminderSettings(30, "Grab some water ✨")
    stretch: ReminderSettings = ReminderSettings(45, "Stand up, loosen shoulders & hips 🧘")
    weekdays_only: bool = False
    work_hours_only: bool = False
    work_start: datetime.time = datetime.time(9, 0)
    work_end: datetime.time = datetime.time(17, 0)

    def settings(self, kind: ReminderKind) -> ReminderSettings:
        return getattr(self, kind.value)

    def to_dict(self) -> dict[str, Any]:
        """Flat key/value form used for the JSON config file."""
        out: dict[str, Any] = {}
        for kind in ReminderKind:
            s = self.settings(kind)
            out[f"{kind.value}_interval"] = s.interval_minutes
            out[f"{kind.value}_message"] = s.message
            out[f"{kind.value}_enabled"] = s.enabled
        out["weekdays_only"] = self.weekdays_only
        out["work_hours_only"] = self.work_hours_only
        out["work_start"] = format_hhmm(self.work_start)
        out["work_end"] = format_hhmm(self.work_end)
        return out

    def merged(self, partial: Mapping[str, Any]) -> Preferences:
        """Return a copy with every valid field of *partial* applied.

        Fields are validated one at a time; a bad value is logged and
        skipped so the rest of the update still lands.  Intervals below one
        minute are clamped to one; intervals over a day are rejected.
        """
        top: dict[str, Any] = {}
        per_kind: dict[ReminderKind, dict[str, Any]] = {k: {} for k in ReminderKind}

        for key, value in partial.items():
            try:
                for kind in ReminderKind:
                    if key == f"{kind.value}_interval":
                        per_kind[kind]["interval_minutes"] = clamp_interval(value)
                        break
                    if key == f"{kind.value}_message":
                        if not isinstance(value, str):
                            raise ValueError(f"not a string: {value!r}")
                        per_kind[kind]["message"] = value
                        break
                    if key == f"{kind.value}_enabled":
                        per_kind[kind]["enabled"] = _as_bool(value)
                        break
                else:
                    if key in ("weekdays_only", "work_hours_only"):
                        top[key] = _as_bool(value)
                    elif key in ("work_start", "work_end"):
                        top[key] = parse_hhmm(value)
                    else:
                        logger.debug("Ignoring unknown preference %r", key)
            except (ValueError, TypeError) as e:
                logger.warning("Rejected preference %s=%r: %s", key, value, e)

        for kind, fields in per_kind.items():
            if fields:
                top[kind.value] = dataclasses.replace(self.settings(kind), **fields)
        return dataclasses.replace(self, **top)


def _as_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"not a boolean: {value!r}")
    return value


# ─── Gate ────────────────────────────────────────────────────
def is_allowed(now: datetime.datetime, prefs: Preferences) -> bool:
    """Whether reminders may fire at *now* under the weekday / work-hour rules."""
    if prefs.weekdays_only and now.weekday() >= 5:
        return False
    if not prefs.work_hours_only:
        return True
    start = datetime.datetime.combine(now.date(), prefs.work_start, tzinfo=now.tzinfo)
    end = datetime.datetime.combine(now.date(), prefs.work_end, tzinfo=now.tzinfo)
    if start <= end:
        return start <= now <= end
    return now >= start or now <= end


# ─── Due Times ───────────────────────────────────────────────
class DueTimeTracker:
    """Per-kind due timestamps, each anchored to a baseline (last fire or reset)."""

    def __init__(self):
        self._baseline: dict[ReminderKind, datetime.datetime] = {}
        self._due: dict[ReminderKind, Optional[datetime.datetime]] = {k: None for k in ReminderKind}

    def due_at(self, kind: ReminderKind) -> Optional[datetime.datetime]:
        return self._due[kind]

    def baseline(self, kind: ReminderKind) -> Optional[datetime.datetime]:
        return self._baseline.get(kind)

    def sync(self, kind: ReminderKind, now: datetime.datetime, interval_minutes: int) -> None:
        """Start the countdown the first time preferences are known."""
        if self._due[kind] is None:
            self.reset_baseline(kind, now, interval_minutes)

    def on_interval_changed(self, kind: ReminderKind, interval_minutes: int) -> None:
        base = self._baseline.get(kind)
        if base is None:
            return
        self._due[kind] = base + datetime.timedelta(minutes=interval_minutes)

    def reset_baseline(self, kind: ReminderKind, now: datetime.datetime, interval_minutes: int) -> None:
        self._baseline[kind] = now
        self._due[kind] = now + datetime.timedelta(minutes=interval_minutes)

    def advance(self, kind: ReminderKind, now: datetime.datetime, interval_minutes: int) -> datetime.datetime:
        self.reset_baseline(kind, now, interval_minutes)
        return self._due[kind]

    def set_due(self, kind: ReminderKind, when: Any) -> bool:
        """Override a due time. Returns False (and keeps the old value) if *when* is malformed."""
        ref = self._due[kind] or self._baseline.get(kind)
        tz = ref.tzinfo if ref is not None else None
        if isinstance(when, (int, float)) and not isinstance(when, bool):
            if not math.isfinite(when):
                return False
            try:
                when = datetime.datetime.fromtimestamp(when / 1000.0, tz=tz)
            except (OverflowError, OSError, ValueError):
                return False
        if not isinstance(when, datetime.datetime):
            return False
        # Naive and aware timestamps cannot be compared on later ticks
        if ref is not None and (when.tzinfo is None) != (ref.tzinfo is None):
            return False
        self._due[kind] = when
        return True

    def time_remaining(self, kind: ReminderKind, now: datetime.datetime) -> datetime.timedelta:
        due = self._due[kind]
        if due is None:
            return datetime.timedelta(0)
        return max(datetime.timedelta(0), due - now)


# ─── Fire Controller ─────────────────────────────────────────
class FireController:
    """Decides whether a reminder fires, debounces it, and advances its due time."""

    def __init__(self, tracker: DueTimeTracker, sink,
                 min_gap: datetime.timedelta = MIN_GAP,
                 test_fire_policy: TestFirePolicy = TestFirePolicy.ISOLATED):
        self.tracker = tracker
        self.sink = sink
        self.min_gap = min_gap
        self.test_fire_policy = test_fire_policy
        self.last_fired: dict[ReminderKind, datetime.datetime] = {k: NEVER for k in ReminderKind}

    def evaluate(self, kind: ReminderKind, now: datetime.datetime, settings: ReminderSettings,
                 allowed: bool, force: bool = False) -> FireOutcome:
        if force:
            self._show(kind, settings)
            if self.test_fire_policy is TestFirePolicy.SHARED:
                self.last_fired[kind] = now
            return FireOutcome(kind, FireStatus.FORCED, self.tracker.due_at(kind))

        due = self.tracker.due_at(kind)
        if not settings.enabled:
            return FireOutcome(kind, FireStatus.DISABLED, due)
        if due is None or now < due:
            return FireOutcome(kind, FireStatus.NOT_DUE, due)
        if not allowed:
            # Stays pending; fires on the first tick after the gate reopens
            return FireOutcome(kind, FireStatus.GATED, due)
        if now - self.last_fired[kind] < self.min_gap:
            logger.info("Skip duplicate %s (<%d ms)", kind.value, self.min_gap // datetime.timedelta(milliseconds=1))
            return FireOutcome(kind, FireStatus.DEBOUNCED, due)

        nxt = now + settings.interval  # raises before anything is shown or stamped
        self._show(kind, settings)
        self.last_fired[kind] = now
        self.tracker.advance(kind, now, settings.interval_minutes)
        logger.info("Fired %s -> next at %s", kind.value, nxt.strftime("%H:%M:%S"))
        return FireOutcome(kind, FireStatus.FIRED, nxt)

    def _show(self, kind: ReminderKind, settings: ReminderSettings) -> None:
        try:
            self.sink.show(kind.title, settings.message)
        except Exception:
            logger.exception("Notification for %s could not be shown", kind.value)


# ─── Scheduler ───────────────────────────────────────────────
class Scheduler:
    """Single owner of preferences, due times and the fire ledger."""

    def __init__(self, sink, prefs: Optional[Preferences] = None,
                 clock: Callable[[], datetime.datetime] = datetime.datetime.now,
                 test_fire_policy: TestFirePolicy = TestFirePolicy.ISOLATED):
        self.clock = clock
        self.prefs = prefs or Preferences()
        self.tracker = DueTimeTracker()
        self.controller = FireController(self.tracker, sink, test_fire_policy=test_fire_policy)
        self._after = None
        self._cancel = None
        self._pending = None
        now = self.clock()
        for kind in ReminderKind:
            self.tracker.sync(kind, now, self.prefs.settings(kind).interval_minutes)

    # ── Preferences ──
    def update_preferences(self, partial: Mapping[str, Any]) -> Preferences:
        old = self.prefs
        new = old.merged(partial)
        now = self.clock()
        # Work out every due-time change before committing anything
        changes = []
        for kind in ReminderKind:
            s = new.settings(kind)
            base = self.tracker.baseline(kind)
            if self.tracker.due_at(kind) is None or base is None:
                base = now
            elif s.interval_minutes == old.settings(kind).interval_minutes:
                continue
            due = base + s.interval  # an OverflowError here leaves prefs and due times untouched
            changes.append((kind, base, s.interval_minutes, due))
        self.prefs = new
        for kind, base, minutes, due in changes:
            self.tracker.reset_baseline(kind, base, minutes)
            logger.debug("%s now due at %s", kind.value, due.strftime("%H:%M:%S"))
        return self.prefs

    def set_next_due(self, kind: ReminderKind, when: Any) -> bool:
        ok = self.tracker.set_due(kind, when)
        if not ok:
            logger.debug("Ignored malformed due override for %s: %r", kind.value, when)
        return ok

    def reset_timers(self) -> None:
        now = self.clock()
        for kind in ReminderKind:
            self.tracker.reset_baseline(kind, now, self.prefs.settings(kind).interval_minutes)

    def time_remaining(self, kind: ReminderKind) -> datetime.timedelta:
        return self.tracker.time_remaining(kind, self.clock())

    def is_allowed_now(self) -> bool:
        return is_allowed(self.clock(), self.prefs)

    # ── Firing ──
    def evaluate(self, kind: ReminderKind, force: bool = False) -> FireOutcome:
        now = self.clock()
        return self.controller.evaluate(kind, now, self.prefs.settings(kind),
                                        is_allowed(now, self.prefs), force=force)

    def trigger_now(self, kind: ReminderKind) -> FireOutcome:
        """Treat *kind* as due right now; enable flag, gate and debounce still apply."""
        now = self.clock()
        saved = self.tracker.due_at(kind)
        if saved is None or saved > now:
            self.tracker.set_due(kind, now)
        outcome = self.controller.evaluate(kind, now, self.prefs.settings(kind),
                                           is_allowed(now, self.prefs))
        if not outcome.fired and saved is not None:
            self.tracker.set_due(kind, saved)
        return outcome

    def test_fire(self, kind: ReminderKind) -> FireOutcome:
        return self.evaluate(kind, force=True)

    def tick(self) -> list[FireOutcome]:
        outcomes = []
        for kind in ReminderKind:
            try:
                outcomes.append(self.evaluate(kind))
            except Exception:
                logger.exception("Scheduler tick failed for %s", kind.value)
        return outcomes

    # ── Loop ──
    def start(self, after: Callable[[int, Callable[[], None]], Any],
              cancel: Optional[Callable[[Any], None]] = None) -> None:
        """Poll every TICK_MS through *after* (e.g. tkinter's ``root.after``)."""
        self._after, self._cancel = after, cancel
        self._pending = self._after(TICK_MS, self._loop)

    def stop(self) -> None:
        if self._pending is not None and self._cancel is not None:
            self._cancel(self._pending)
        self._pending = None
        self._after = None

    @property
    def running(self) -> bool:
        return self._after is not None

    def _loop(self) -> None:
        try:
            self.tick()
        finally:
            if self._after is not None:
                self._pending = self._after(TICK_MS, self._loop)
