from __future__ import annotations

from typing import Any, Dict, List, Optional

from distance_resolver import DistanceCostResolver, DistanceStatus
from geocoding import DistanceResolutionError, GeocodingClient, MapboxGeocoder, RouteDistance
from lead_submission import build_submission_payload, validate_before_submit
from quote_engine import QuoteBreakdown, aggregate
from selection_state import DistanceResult, SelectionState
from step_sequencer import StepSequencer
from widget_config import StepDefinition, WidgetConfiguration, load_widget_configuration

ORIGIN_STEP_KEY = "origin-location"
DESTINATION_STEP_KEY = "target-location"

# Form fields the address inputs are mirrored into, matching what lead endpoints expect.
_ORIGIN_FIELDS = ("origin-location", "origin-location-field", "origin")
_DESTINATION_FIELDS = ("target-location", "target-location-field", "destination")
_ORIGIN_ZIP_FIELDS = ("fromZip", "from-zip", "origin-zip")
_DESTINATION_ZIP_FIELDS = ("toZip", "target-zip", "destination-zip")


class _UnconfiguredGeocoder:
    def __init__(self, message: str) -> None:
        self.message = message

    async def geocode_distance(self, origin: str, destination: str) -> RouteDistance:
        raise DistanceResolutionError(self.message)


class WidgetSession:
    """
    One customer's pass through a widget.

    The session owns the `SelectionState` and replaces it wholesale on every
    change; the quote is recomputed from scratch on each `get_quote_breakdown`.
    """

    def __init__(self, config: WidgetConfiguration, geocoder: Optional[GeocodingClient] = None) -> None:
        self.config = config
        self._sequencer = StepSequencer(config)
        self._selections = SelectionState()
        if geocoder is None:
            try:
                geocoder = MapboxGeocoder.from_env()
            except DistanceResolutionError as exc:
                geocoder = _UnconfiguredGeocoder(str(exc))
        self._distance = DistanceCostResolver(geocoder, config.distance_rate())
        self.origin_address = ""
        self.destination_address = ""

    @classmethod
    def from_document(cls, data: Any, geocoder: Optional[GeocodingClient] = None) -> "WidgetSession":
        return cls(load_widget_configuration(data), geocoder=geocoder)

    # Navigation

    def get_visible_order(self) -> List[str]:
        return list(self._sequencer.order)

    def get_current_step(self) -> Optional[StepDefinition]:
        return self._sequencer.current_step

    @property
    def current_step_key(self) -> Optional[str]:
        return self._sequencer.current_step_key

    @property
    def current_index(self) -> int:
        return self._sequencer.index

    @property
    def has_next(self) -> bool:
        return self._sequencer.has_next

    @property
    def has_previous(self) -> bool:
        return self._sequencer.has_previous

    @property
    def is_last_step(self) -> bool:
        return self._sequencer.is_last_step

    def can_advance(self) -> bool:
        return self._sequencer.can_advance(self._selections)

    def advance(self) -> bool:
        return self._sequencer.advance(self._selections)

    def retreat(self) -> bool:
        return self._sequencer.retreat()

    # Answers

    @property
    def selections(self) -> SelectionState:
        return self._selections

    def _require_step(self, step_key: str) -> StepDefinition:
        step = self.config.steps.get(step_key)
        if step is None:
            raise KeyError(f"Unknown step key: {step_key!r}")
        return step

    def select_option(self, step_key: str, value: Any) -> None:
        self._require_step(step_key)
        self._selections = self._selections.with_answer(step_key, value).with_form_fields({step_key: value})

    def select_quantity(self, step_key: str, units: int, option: Optional[str] = None) -> None:
        """
        Record a quantity answer (e.g. flights of stairs) for a per-unit step.
        """
        self._require_step(step_key)
        answer: Any = {"option": option, "units": int(units)} if option is not None else int(units)
        self._selections = self._selections.with_answer(step_key, answer).with_form_fields({step_key: units})

    def clear_answer(self, step_key: str) -> None:
        self._selections = self._selections.without_answer(step_key)

    def set_form_field(self, step_key: str, field: str, value: Any) -> None:
        self._require_step(step_key)
        fields: Dict[str, Any] = {field: value}
        if step_key == ORIGIN_STEP_KEY:
            self.origin_address = str(value or "")
            fields.update({f: value for f in _ORIGIN_FIELDS})
        elif step_key == DESTINATION_STEP_KEY:
            self.destination_address = str(value or "")
            fields.update({f: value for f in _DESTINATION_FIELDS})
        self._selections = self._selections.with_answer(step_key, value).with_form_fields(fields)

    def set_address(self, kind: str, value: str, step_key: Optional[str] = None) -> None:
        """
        Update the origin or destination address typed by the customer.
        """
        if kind == "origin":
            self.origin_address = value
            fields = {f: value for f in _ORIGIN_FIELDS}
        elif kind == "destination":
            self.destination_address = value
            fields = {f: value for f in _DESTINATION_FIELDS}
        else:
            raise ValueError(f"kind must be 'origin' or 'destination' (got {kind!r})")
        state = self._selections.with_form_fields(fields)
        if step_key is not None and step_key in self.config.steps:
            state = state.with_answer(step_key, value)
        self._selections = state

    # Distance

    @property
    def distance_status(self) -> DistanceStatus:
        return self._distance.status

    @property
    def distance_error(self) -> Optional[str]:
        return self._distance.error

    @property
    def distance_result(self) -> Optional[DistanceResult]:
        return self._selections.distance_result(self.config.distance_key())

    @property
    def distance_resolver(self) -> DistanceCostResolver:
        return self._distance

    def should_resolve_distance(self) -> bool:
        return self._distance.should_resolve(self.origin_address, self.destination_address)

    async def resolve_distance(self, origin: Optional[str] = None, destination: Optional[str] = None) -> None:
        """
        Resolve the trip distance and fold its cost into the answers.

        Errors are reported through `distance_status` / `distance_error`, never raised.
        """
        start = (origin if origin is not None else self.origin_address).strip()
        end = (destination if destination is not None else self.destination_address).strip()
        result = await self._distance.resolve(start, end)
        if result is None:
            return

        fields: Dict[str, Any] = {}
        fields.update({f: result.origin for f in _ORIGIN_FIELDS})
        fields.update({f: result.destination for f in _DESTINATION_FIELDS})
        if result.origin_postal_code:
            fields.update({f: result.origin_postal_code for f in _ORIGIN_ZIP_FIELDS})
        if result.destination_postal_code:
            fields.update({f: result.destination_postal_code for f in _DESTINATION_ZIP_FIELDS})
        # Single assignment: readers see either the old state or the complete new one.
        self._selections = self._selections.with_answer(self.config.distance_key(), result).with_form_fields(fields)

    async def maybe_resolve_distance(self) -> bool:
        """
        Auto-trigger: resolve only when both addresses are set and changed since the
        last resolution. Returns whether a resolution was attempted.
        """
        if not self.should_resolve_distance():
            return False
        await self.resolve_distance()
        return True

    # Quote + submission

    def get_quote_breakdown(self) -> QuoteBreakdown:
        return aggregate(self.config, self._selections)

    def submission_problems(self) -> List[str]:
        return validate_before_submit(self._selections.form_data, origin_address=self.origin_address)

    def build_submission(self, *, source_host: Optional[str] = None) -> Dict[str, Any]:
        return build_submission_payload(
            widget_id=self.config.widget_id,
            selections=self._selections,
            breakdown=self.get_quote_breakdown(),
            source_host=source_host,
        )

    def reset(self) -> None:
        self._selections = SelectionState()
        self._sequencer.reset()
        self._distance.reset()
        self.origin_address = ""
        self.destination_address = ""
