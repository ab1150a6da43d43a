"""Fuel transaction to fleet vehicle matching.

The matcher runs an ordered cascade and stops at the first stage that decides:

1. direct asset id match
2. no odometer reading -> unmatched
3. odometer window filter
4. fuel type filter
5. single candidate within the tight threshold
6. several candidates -> external disambiguation, closest odometer on failure
7. single candidate outside the tight threshold

Stages 1-5 and 7 are deterministic. Only stage 6 talks to the text-generation
service, and every failure there takes a fixed fallback. match_vehicle never
raises for data problems; only ConfigurationError escapes.
"""

import re
from collections.abc import Iterable, Mapping
from typing import NamedTuple

from pydantic import ValidationError

from app.agents.base import BaseDisambiguator
from app.agents.prompts import CANDIDATE_LINE_TEMPLATE, VEHICLE_MATCH_USER_TEMPLATE
from app.core.errors import ConfigurationError, ExternalServiceError, InputError
from app.core.models import FuelTransaction, FuelType, MatchMethod, MatchResult, ReferenceVehicle
from app.core.utils import get_logger
from app.rules.config import Lexicon, RuleConfig

logger = get_logger("apnexus.rules.vehicle_matcher")

REPLY_PATTERN = re.compile(r"(\d+)\s+(\d+)")


class Candidate(NamedTuple):
    """A reference vehicle together with its odometer distance from the transaction."""

    vehicle: ReferenceVehicle
    odometer_delta: int


def coerce_vehicles(vehicles: Iterable[ReferenceVehicle | Mapping] | None) -> tuple[list[ReferenceVehicle], int]:
    """Validate the reference set, returning usable vehicles and the number of skipped entries.

    Raises InputError when nothing usable remains.
    """
    usable: list[ReferenceVehicle] = []
    skipped = 0
    for entry in vehicles or []:
        if isinstance(entry, ReferenceVehicle):
            usable.append(entry)
            continue
        try:
            usable.append(ReferenceVehicle.model_validate(entry))
        except ValidationError:
            skipped += 1
            logger.warning(f"Skipping malformed reference vehicle: {entry!r}")
    if not usable:
        if skipped:
            msg = f"no usable reference vehicles ({skipped} malformed)"
        else:
            msg = "no reference vehicles available"
        raise InputError(msg)
    return usable, skipped


def _mentions(text: str | None, keywords: Iterable[str]) -> bool:
    lowered = (text or "").lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def transaction_fuel_type(transaction: FuelTransaction, lexicon: Lexicon) -> FuelType:
    """Fuel dispensed, taken from the transaction or derived from its product code and description."""
    if transaction.fuel_type is not None:
        return transaction.fuel_type
    code = (transaction.product_code or "").upper()
    if any(diesel_code.upper() in code for diesel_code in lexicon.diesel_product_codes):
        return FuelType.DIESEL
    if _mentions(transaction.product_description, lexicon.diesel_keywords):
        return FuelType.DIESEL
    return FuelType.GAS


def vehicle_fuel_type(vehicle: ReferenceVehicle, lexicon: Lexicon) -> FuelType:
    """Fuel a vehicle burns, taken from the record or derived from its make and model."""
    if vehicle.fuel_type is not None:
        return vehicle.fuel_type
    if _mentions(vehicle.make, lexicon.diesel_keywords) or _mentions(vehicle.model, lexicon.diesel_keywords):
        return FuelType.DIESEL
    return FuelType.GAS


def odometer_candidates(odometer: int, vehicles: Iterable[ReferenceVehicle], window: int) -> list[Candidate]:
    """Vehicles whose current odometer is strictly within the window, closest first."""
    candidates = [Candidate(vehicle, abs((vehicle.current_odometer or 0) - odometer)) for vehicle in vehicles]
    within = [candidate for candidate in candidates if candidate.odometer_delta < window]
    # sorted() is stable, so equal deltas keep reference order
    return sorted(within, key=lambda candidate: candidate.odometer_delta)


def filter_fuel_compatible(candidates: Iterable[Candidate], fuel_type: FuelType, lexicon: Lexicon) -> list[Candidate]:
    """Keep candidates that burn the given fuel. Applying it twice changes nothing."""
    return [candidate for candidate in candidates if vehicle_fuel_type(candidate.vehicle, lexicon) is fuel_type]


def build_disambiguation_prompt(transaction: FuelTransaction, candidates: list[Candidate]) -> str:
    """Render the numbered candidate list the text-generation service chooses from."""
    lines = [
        CANDIDATE_LINE_TEMPLATE.format(
            position=position,
            label=candidate.vehicle.display_name,
            odometer=candidate.vehicle.current_odometer,
            delta=candidate.odometer_delta,
        )
        for position, candidate in enumerate(candidates, start=1)
    ]
    location = ", ".join(part for part in (transaction.merchant_city, transaction.merchant_state) if part)
    return VEHICLE_MATCH_USER_TEMPLATE.format(
        odometer=transaction.odometer,
        fuel_type=transaction.product_description or "Unknown",
        driver=transaction.employee_name or "Unknown",
        location=location or "Unknown",
        vehicle_id=transaction.vehicle_id or "none",
        vehicle_description=transaction.vehicle_description or "none",
        candidates="\n".join(lines),
        count=len(candidates),
    )


def parse_disambiguation_reply(reply: object, candidate_count: int) -> tuple[int, int] | None:
    """Parse an "index confidence" reply into a zero-based index and a 0-100 confidence.

    Returns None when the reply has no such pair or the index is out of range.
    """
    if not isinstance(reply, str):
        return None
    match = REPLY_PATTERN.search(reply)
    if not match:
        return None
    index = int(match.group(1)) - 1
    if not 0 <= index < candidate_count:
        return None
    confidence = min(int(match.group(2)), 100)
    return index, confidence


def _result(
    config: RuleConfig,
    method: MatchMethod,
    confidence: int,
    reasons: list[str],
    vehicle: ReferenceVehicle | None = None,
    force_review: bool = False,
) -> MatchResult:
    thresholds = config.thresholds
    needs_review = (
        force_review or method is MatchMethod.UNMATCHED or confidence < thresholds.review_confidence_threshold
    )
    return MatchResult(
        matched_id=vehicle.identifier if vehicle else None,
        matched_record_id=vehicle.record_id if vehicle else None,
        confidence=confidence,
        method=method,
        needs_review=needs_review,
        reasons=reasons,
    )


def _unmatched(config: RuleConfig, reasons: list[str]) -> MatchResult:
    return _result(config, MatchMethod.UNMATCHED, 0, reasons)


def _disambiguate(
    transaction: FuelTransaction,
    candidates: list[Candidate],
    config: RuleConfig,
    disambiguator: BaseDisambiguator | None,
    notes: list[str],
) -> MatchResult:
    thresholds = config.thresholds
    closest = candidates[0].vehicle
    if disambiguator is None:
        logger.warning(f"{len(candidates)} candidates and no disambiguator configured, using closest odometer")
        return _result(
            config,
            MatchMethod.ODOMETER_PROXIMITY,
            thresholds.fallback_unavailable_confidence,
            [*notes, "multiple candidates, external matching unavailable; using closest odometer match"],
            closest,
            force_review=True,
        )
    prompt = build_disambiguation_prompt(transaction, candidates)
    try:
        reply = disambiguator.disambiguate(prompt)
    except Exception as exc:
        if not isinstance(exc, ExternalServiceError):
            logger.exception("Disambiguator raised an unexpected error")
        logger.warning(f"Disambiguation failed, using closest odometer match: {exc}")
        return _result(
            config,
            MatchMethod.ODOMETER_PROXIMITY,
            thresholds.fallback_error_confidence,
            [*notes, f"external matching failed ({exc}); using closest odometer match"],
            closest,
            force_review=True,
        )
    parsed = parse_disambiguation_reply(reply, len(candidates))
    if parsed is None:
        logger.warning(f"Could not parse disambiguation reply {reply!r}, using closest odometer match")
        return _result(
            config,
            MatchMethod.ODOMETER_PROXIMITY,
            thresholds.fallback_unparseable_confidence,
            [*notes, "external matching reply unclear; using closest odometer match"],
            closest,
            force_review=True,
        )
    index, confidence = parsed
    # a model pick never outranks a deterministic near-exact match
    confidence = min(confidence, thresholds.near_match_confidence - 1)
    chosen = candidates[index]
    logger.info(f"External model selected {chosen.vehicle.identifier} with confidence {confidence}")
    return _result(
        config,
        MatchMethod.EXTERNAL_MODEL,
        confidence,
        [*notes, f"external model chose candidate {index + 1} of {len(candidates)} (difference: {chosen.odometer_delta} miles)"],
        chosen.vehicle,
    )


def _match(
    transaction: FuelTransaction,
    vehicles: Iterable[ReferenceVehicle | Mapping] | None,
    config: RuleConfig,
    disambiguator: BaseDisambiguator | None,
) -> MatchResult:
    thresholds = config.thresholds
    notes: list[str] = []
    try:
        fleet, skipped = coerce_vehicles(vehicles)
    except InputError as exc:
        logger.warning(f"Cannot match vehicle: {exc}")
        return _unmatched(config, [str(exc)])
    if skipped:
        notes.append(f"skipped {skipped} malformed reference vehicle(s)")

    asset_id = (transaction.vehicle_id or "").strip()
    if asset_id:
        for vehicle in fleet:
            if vehicle.identifier.strip() == asset_id:
                logger.info(f"Direct asset id match: {asset_id}")
                return _result(
                    config,
                    MatchMethod.DIRECT_ID,
                    thresholds.direct_id_confidence,
                    [*notes, f"asset id {asset_id} matched directly"],
                    vehicle,
                )
        notes.append(f"asset id {asset_id} not found in fleet")

    if not transaction.odometer or transaction.odometer <= 0:
        return _unmatched(config, [*notes, "no odometer reading"])

    candidates = odometer_candidates(transaction.odometer, fleet, thresholds.odometer_window)
    logger.info(f"Found {len(candidates)} candidates within {thresholds.odometer_window} miles")
    if not candidates:
        return _unmatched(config, [*notes, "no candidate within odometer window"])

    fuel_type = transaction_fuel_type(transaction, config.lexicon)
    compatible = filter_fuel_compatible(candidates, fuel_type, config.lexicon)
    logger.info(f"{len(compatible)} {fuel_type.value} compatible candidates")
    if not compatible:
        return _unmatched(config, [*notes, "no fuel-compatible candidate within odometer window"])

    if len(compatible) > 1:
        return _disambiguate(transaction, compatible, config, disambiguator, notes)

    only = compatible[0]
    if only.odometer_delta < thresholds.tight_odometer_threshold:
        return _result(
            config,
            MatchMethod.ODOMETER_PROXIMITY,
            thresholds.near_match_confidence,
            [*notes, f"single fuel-compatible candidate {only.odometer_delta} miles away"],
            only.vehicle,
        )
    return _result(
        config,
        MatchMethod.ODOMETER_PROXIMITY,
        thresholds.loose_match_confidence,
        [*notes, "single candidate, odometer delta exceeds tight threshold"],
        only.vehicle,
        force_review=True,
    )


def match_vehicle(
    transaction: FuelTransaction | Mapping,
    vehicles: Iterable[ReferenceVehicle | Mapping] | None,
    config: RuleConfig,
    disambiguator: BaseDisambiguator | None = None,
) -> MatchResult:
    """Match a fuel transaction to a fleet vehicle.

    Always returns a MatchResult; data problems and service failures end in a
    conservative needs_review outcome. Raises ConfigurationError when config is
    not a RuleConfig.

    The direct asset id match compares identifiers after stripping surrounding
    whitespace on both sides, as statement exports often pad the asset id
    column; otherwise the comparison is exact and case-sensitive.
    """
    if not isinstance(config, RuleConfig):
        msg = f"match_vehicle needs a RuleConfig, got {type(config).__name__}"
        raise ConfigurationError(msg)
    try:
        if not isinstance(transaction, FuelTransaction):
            try:
                transaction = FuelTransaction.model_validate(transaction)
            except ValidationError as exc:
                msg = f"malformed transaction: {exc.error_count()} invalid field(s)"
                raise InputError(msg) from exc
        return _match(transaction, vehicles, config, disambiguator)
    except ConfigurationError:
        raise
    except InputError as exc:
        logger.warning(f"Cannot match vehicle: {exc}")
        return _unmatched(config, [str(exc)])
    except Exception as exc:
        logger.exception("Vehicle matching failed, degrading to manual review")
        return _unmatched(config, [f"evaluation error: {exc}"])
