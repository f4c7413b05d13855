"""
Wearable Data Provider

The capability the dawn pipeline reads daily physiology from. The core
never talks to a wearable directly: it receives a ``WearableProvider``
(injected by the API dependency or the Celery task) and treats it as an
opaque daily-metrics supplier.

Contract:
    - Every field may be zero or absent. Zero means "not recorded".
    - "No answer" and "empty answer" are the same thing: a timeout or an
      empty body degrades to empty values, never an exception.
    - The only terminal errors are a permission refusal
      (PermissionDeniedError) and an unreachable provider during the
      permission handshake (WearableProviderError).

Historical backfill is implemented once, here, on top of the per-day
fetches: reads are issued in bounded batches of 7 days with
asyncio.gather, results are returned in date order so the caller can write
them sequentially.

Implementations:
    HttpWearableProvider: talks to the wearable bridge service over HTTP
    (httpx.AsyncClient). Tests substitute an in-memory fixture provider.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from core.config import settings
from core.exceptions import PermissionDeniedError, WearableProviderError
from services.statistics import MetricAggregate, aggregate

logger = logging.getLogger(__name__)


HISTORY_BATCH_SIZE = 7
DEFAULT_HISTORY_DAYS = 30


class SleepSource(str, Enum):
    MEASURED = "MEASURED"
    ESTIMATED_7D = "ESTIMATED_7D"
    DEFAULT_6H = "DEFAULT_6H"
    MANUAL = "MANUAL"


# ---------------------------------------------------------------------------
# Daily metric shapes
# ---------------------------------------------------------------------------

@dataclass
class BiometricData:
    hrv: float = 0.0                       # SDNN, ms
    resting_heart_rate: float = 0.0        # bpm
    respiratory_rate: float = 0.0
    vo2_max: Optional[float] = None
    oxygen_saturation: Optional[float] = None
    blood_glucose: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "BiometricData":
        data = data or {}
        return cls(
            hrv=float(data.get("hrv") or 0),
            resting_heart_rate=float(data.get("resting_heart_rate") or 0),
            respiratory_rate=float(data.get("respiratory_rate") or 0),
            vo2_max=_optional_float(data.get("vo2_max")),
            oxygen_saturation=_optional_float(data.get("oxygen_saturation")),
            blood_glucose=_optional_float(data.get("blood_glucose")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Workout:
    id: str
    type: str
    duration_seconds: float = 0.0
    active_calories: float = 0.0
    distance_m: Optional[float] = None
    start_date: Optional[datetime] = None
    avg_heart_rate: Optional[float] = None
    max_heart_rate: Optional[float] = None

    @property
    def duration_minutes(self) -> float:
        return self.duration_seconds / 60.0

    @property
    def end_date(self) -> Optional[datetime]:
        if self.start_date is None:
            return None
        return self.start_date + timedelta(seconds=self.duration_seconds)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Workout":
        start = data.get("start_date")
        if isinstance(start, str):
            start = datetime.fromisoformat(start.replace("Z", "+00:00"))
        return cls(
            id=str(data["id"]),
            type=str(data.get("type") or "unknown"),
            duration_seconds=float(data.get("duration_seconds") or 0),
            active_calories=float(data.get("active_calories") or 0),
            distance_m=_optional_float(data.get("distance_m")),
            start_date=start,
            avg_heart_rate=_optional_float(data.get("avg_heart_rate")),
            max_heart_rate=_optional_float(data.get("max_heart_rate")),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["start_date"] = self.start_date.isoformat() if self.start_date else None
        return data


@dataclass
class ActivityData:
    steps: float = 0.0
    active_calories: float = 0.0
    resting_calories: float = 0.0
    exercise_minutes: float = 0.0
    workouts: List[Workout] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ActivityData":
        data = data or {}
        return cls(
            steps=float(data.get("steps") or 0),
            active_calories=float(data.get("active_calories") or 0),
            resting_calories=float(data.get("resting_calories") or 0),
            exercise_minutes=float(data.get("exercise_minutes") or 0),
            workouts=[Workout.from_dict(w) for w in data.get("workouts") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "steps": self.steps,
            "active_calories": self.active_calories,
            "resting_calories": self.resting_calories,
            "exercise_minutes": self.exercise_minutes,
            "workouts": [w.to_dict() for w in self.workouts],
        }


@dataclass
class SleepData:
    total_duration_seconds: float = 0.0
    awake_seconds: float = 0.0
    rem_seconds: float = 0.0
    core_seconds: float = 0.0
    deep_seconds: float = 0.0
    score: float = 0.0                     # 0-100, 0 = not scored
    source: SleepSource = SleepSource.MEASURED

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SleepData":
        data = data or {}
        duration = float(data.get("total_duration_seconds") or 0)
        try:
            source = SleepSource(data.get("source") or SleepSource.MEASURED.value)
        except ValueError:
            # Unknown bridge label: a real duration is a measurement, otherwise nothing
            logger.warning(f"Unknown sleep source {data.get('source')!r}")
            if duration <= 0:
                return cls()
            source = SleepSource.MEASURED
        return cls(
            total_duration_seconds=duration,
            awake_seconds=float(data.get("awake_seconds") or 0),
            rem_seconds=float(data.get("rem_seconds") or 0),
            core_seconds=float(data.get("core_seconds") or 0),
            deep_seconds=float(data.get("deep_seconds") or 0),
            score=float(data.get("score") or 0),
            source=source,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["source"] = self.source.value
        return data


@dataclass
class HistoricalDay:
    date: date
    biometrics: BiometricData
    activity: ActivityData
    sleep: SleepData
    mindful_minutes: float = 0.0

    @property
    def has_data(self) -> bool:
        return bool(
            self.biometrics.hrv
            or self.biometrics.resting_heart_rate
            or self.sleep.total_duration_seconds
            or self.activity.steps
            or self.activity.active_calories
        )

    @property
    def workout_minutes(self) -> float:
        return sum(w.duration_minutes for w in self.activity.workouts)


@dataclass
class HistoricalData:
    per_day: List[HistoricalDay]
    averages: Dict[str, MetricAggregate]


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def summarize_history(per_day: List[HistoricalDay], window_days: int) -> Dict[str, MetricAggregate]:
    """Rolling aggregates for every baseline metric."""
    return {
        "hrv": aggregate((d.biometrics.hrv for d in per_day), window_days),
        "resting_heart_rate": aggregate((d.biometrics.resting_heart_rate for d in per_day), window_days),
        "sleep_seconds": aggregate((d.sleep.total_duration_seconds for d in per_day), window_days),
        "steps": aggregate((d.activity.steps for d in per_day), window_days),
        "active_calories": aggregate((d.activity.active_calories for d in per_day), window_days),
        "vo2_max": aggregate((d.biometrics.vo2_max for d in per_day), window_days),
        "workout_minutes": aggregate((d.workout_minutes for d in per_day), window_days),
    }


# ---------------------------------------------------------------------------
# Provider capability
# ---------------------------------------------------------------------------

class WearableProvider(ABC):
    """Opaque daily-metrics supplier."""

    @abstractmethod
    async def request_permissions(self) -> bool:
        """Return True when health-data access is granted."""

    @abstractmethod
    async def fetch_biometrics(self, day: date) -> BiometricData:
        ...

    @abstractmethod
    async def fetch_activity_data(self, day: date) -> ActivityData:
        ...

    @abstractmethod
    async def fetch_sleep(self, day: date) -> SleepData:
        ...

    async def fetch_mindful_minutes(self, day: date) -> float:
        return 0.0

    async def detect_location_change(self, day: date) -> bool:
        return False

    async def fetch_day(self, day: date) -> HistoricalDay:
        biometrics, activity, sleep, mindful = await asyncio.gather(
            self.fetch_biometrics(day),
            self.fetch_activity_data(day),
            self.fetch_sleep(day),
            self.fetch_mindful_minutes(day),
        )
        return HistoricalDay(
            date=day,
            biometrics=biometrics,
            activity=activity,
            sleep=sleep,
            mindful_minutes=mindful,
        )

    async def fetch_historical_data(
        self,
        days: int = DEFAULT_HISTORY_DAYS,
        end_date: Optional[date] = None,
    ) -> HistoricalData:
        """
        Fetch the ``days`` closed days before ``end_date`` (default today).

        Reads run HISTORY_BATCH_SIZE days at a time; per_day is returned in
        ascending date order.
        """
        end_date = end_date or date.today()
        targets = [end_date - timedelta(days=offset) for offset in range(days, 0, -1)]

        per_day: List[HistoricalDay] = []
        for start in range(0, len(targets), HISTORY_BATCH_SIZE):
            batch = targets[start:start + HISTORY_BATCH_SIZE]
            results = await asyncio.gather(*(self.fetch_day(d) for d in batch))
            per_day.extend(results)

        logger.info(
            f"Historical fetch complete: {len(per_day)} days, "
            f"{sum(1 for d in per_day if d.has_data)} with data"
        )
        return HistoricalData(per_day=per_day, averages=summarize_history(per_day, days))


# ---------------------------------------------------------------------------
# HTTP implementation
# ---------------------------------------------------------------------------

class HttpWearableProvider(WearableProvider):
    """
    Wearable bridge client.

    The bridge exposes one JSON document per metric per day:
        POST /v1/permissions                -> {"granted": bool}
        GET  /v1/biometrics?date=YYYY-MM-DD
        GET  /v1/activity?date=YYYY-MM-DD
        GET  /v1/sleep?date=YYYY-MM-DD
        GET  /v1/mindful?date=YYYY-MM-DD    -> {"minutes": float}
        GET  /v1/context?date=YYYY-MM-DD    -> {"location_changed": bool}
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout_s: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.WEARABLE_API_BASE_URL).rstrip("/")
        self.token = token if token is not None else settings.WEARABLE_API_TOKEN
        self.timeout_s = timeout_s or settings.WEARABLE_API_TIMEOUT_S
        self._client = client

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers(),
                timeout=self.timeout_s,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request_permissions(self) -> bool:
        try:
            response = await self._http().post("/v1/permissions")
        except httpx.HTTPError as e:
            raise WearableProviderError(f"Wearable bridge unreachable: {e}") from e
        if response.status_code in (401, 403):
            return False
        if response.status_code >= 400:
            raise WearableProviderError(
                f"Wearable bridge permission check failed: HTTP {response.status_code}"
            )
        return bool((response.json() or {}).get("granted", False))

    async def _get_json(self, path: str, day: date) -> Dict[str, Any]:
        try:
            response = await self._http().get(path, params={"date": day.isoformat()})
        except httpx.HTTPError as e:
            logger.warning(f"Wearable fetch {path} for {day} failed, treating as empty: {e}")
            return {}
        if response.status_code in (401, 403):
            raise PermissionDeniedError(f"Wearable bridge refused {path}")
        if response.status_code >= 400 or not response.content:
            logger.warning(f"Wearable fetch {path} for {day} returned HTTP {response.status_code}")
            return {}
        try:
            body = response.json()
        except ValueError:
            logger.warning(f"Wearable fetch {path} for {day} returned non-JSON body")
            return {}
        return body if isinstance(body, dict) else {}

    async def fetch_biometrics(self, day: date) -> BiometricData:
        return BiometricData.from_dict(await self._get_json("/v1/biometrics", day))

    async def fetch_activity_data(self, day: date) -> ActivityData:
        return ActivityData.from_dict(await self._get_json("/v1/activity", day))

    async def fetch_sleep(self, day: date) -> SleepData:
        return SleepData.from_dict(await self._get_json("/v1/sleep", day))

    async def fetch_mindful_minutes(self, day: date) -> float:
        body = await self._get_json("/v1/mindful", day)
        return float(body.get("minutes") or 0)

    async def detect_location_change(self, day: date) -> bool:
        body = await self._get_json("/v1/context", day)
        return bool(body.get("location_changed", False))
