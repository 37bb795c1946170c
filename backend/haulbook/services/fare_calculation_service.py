"""
Fare calculation for charter requests.

A charter is priced from the center's rate table (CenterFare):

    base_fare          BASIC rate for (center, vehicle type, first region)
    extra_stop_fare    (stops - 1) * extra_stop_fee
    extra_region_fare  (regions - 1) * extra_region_fee
    total_fare         base + extras + extra_adjustment

When no rate matches, a tonnage-based estimate is used and flagged with
is_fallback, unless strict pricing is on, in which case RateNotFoundError
is raised.
"""
import logging
import re
from decimal import Decimal
from typing import List, Optional, Tuple
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from haulbook.core.config import settings
from haulbook.core.exceptions import AppError, RateNotFoundError
from haulbook.models.center_fare import CenterFare, FareType
from haulbook.models.charter import CharterRequest
from haulbook.models.loading_point import LoadingPoint
from haulbook.schemas.center_fare import AppliedRate, FareCalculationInput, FareCalculationResult
from haulbook.services.region_normalize_service import normalize_region

logger = logging.getLogger(__name__)

# (max tonnage, vehicle type label, fallback base fare in KRW)
TONNAGE_TABLE = (
    (Decimal("1.0"), "1톤", 80000),
    (Decimal("2.5"), "2.5톤", 120000),
    (Decimal("3.5"), "3.5톤", 150000),
    (Decimal("5.0"), "5톤", 200000),
    (Decimal("8.0"), "8톤", 300000),
    (Decimal("11.0"), "11톤", 400000),
)
LARGE_VEHICLE_TYPE = "대형"
LARGE_FALLBACK_FARE = 400000


def extract_center_name(center_car_no: str) -> str:
    """Leading letters of a center car number ("c001" -> "C"), else its first character."""
    text = center_car_no.strip()
    match = re.match(r"^([A-Za-z]+)", text)
    return match.group(1).upper() if match else text[:1].upper()


def vehicle_type_for_tonnage(tonnage) -> str:
    tonnage = Decimal(str(tonnage))
    for max_ton, label, _ in TONNAGE_TABLE:
        if tonnage <= max_ton:
            return label
    return LARGE_VEHICLE_TYPE


def fallback_base_fare(tonnage) -> int:
    tonnage = Decimal(str(tonnage))
    for max_ton, _, fare in TONNAGE_TABLE:
        if tonnage <= max_ton:
            return fare
    return LARGE_FALLBACK_FARE


def find_applicable_rate(db: Session, center_name: str, vehicle_type: str, region: Optional[str]) -> Optional[CenterFare]:
    """Active rate for the center; BASIC before STOP_FEE, newest first."""
    query = (
        db.query(CenterFare)
        .join(LoadingPoint, CenterFare.loading_point_id == LoadingPoint.id)
        .filter(
            func.upper(LoadingPoint.center_name) == center_name.upper(),
            CenterFare.vehicle_type == vehicle_type,
            CenterFare.is_active.is_(True),
        )
    )
    if region:
        query = query.filter(CenterFare.region == region)
    else:
        query = query.filter(CenterFare.region.is_(None))
    return query.order_by(CenterFare.fare_type.asc(), CenterFare.created_at.desc(), CenterFare.id.desc()).first()


def _extra_fees(db: Session, rate: CenterFare, center_name: str) -> Tuple[int, int]:
    """Per-stop and per-region fees; a BASIC row without fees borrows them from the STOP_FEE row."""
    stop_fee, region_fee = rate.extra_stop_fee, rate.extra_region_fee
    if rate.fare_type == FareType.BASIC and stop_fee is None and region_fee is None:
        stop_rate = find_applicable_rate(db, center_name, rate.vehicle_type, None)
        if stop_rate:
            stop_fee, region_fee = stop_rate.extra_stop_fee, stop_rate.extra_region_fee
    return stop_fee or 0, region_fee or 0


def _resolve_center_name(db: Session, data: FareCalculationInput) -> str:
    if data.loading_point_id:
        loading_point = db.query(LoadingPoint).filter(LoadingPoint.id == data.loading_point_id).first()
        if loading_point:
            return loading_point.center_name
    return extract_center_name(data.center_car_no or "")


def _fallback(data: FareCalculationInput, vehicle_type: str, region: Optional[str], warnings: List[str]) -> FareCalculationResult:
    extra_stops = max(0, data.stops - 1)
    extra_regions = max(0, len(data.regions) - 1)
    base_fare = fallback_base_fare(data.vehicle_ton)
    extra_stop_fare = extra_stops * settings.FARE_FALLBACK_EXTRA_STOP
    extra_region_fare = extra_regions * settings.FARE_FALLBACK_EXTRA_REGION
    subtotal = base_fare + extra_stop_fare + extra_region_fare
    breakdown = [f"Estimated base: {base_fare:,} KRW ({data.vehicle_ton} t)"]
    if extra_stop_fare:
        breakdown.append(f"Extra stops: {extra_stops} x {settings.FARE_FALLBACK_EXTRA_STOP:,} = {extra_stop_fare:,} KRW")
    if extra_region_fare:
        breakdown.append(
            f"Extra regions: {extra_regions} x {settings.FARE_FALLBACK_EXTRA_REGION:,} = {extra_region_fare:,} KRW"
        )
    return FareCalculationResult(
        base_fare=base_fare,
        extra_stop_fare=extra_stop_fare,
        extra_region_fare=extra_region_fare,
        subtotal=subtotal,
        extra_adjustment=data.extra_adjustment,
        total_fare=subtotal + data.extra_adjustment,
        vehicle_type=vehicle_type,
        region=region,
        applied_rate=None,
        is_fallback=True,
        breakdown=breakdown,
        warnings=warnings,
    )


def calculate_fare(db: Session, data: FareCalculationInput) -> FareCalculationResult:
    """
    Price a charter.

    Default mode never raises: a missing rate or a database error yields the
    fallback estimate with a warning. Strict mode (setting or data.strict)
    raises RateNotFoundError for a missing rate and lets database errors through.
    """
    strict = settings.FARE_STRICT_MODE if data.strict is None else data.strict
    vehicle_type = vehicle_type_for_tonnage(data.vehicle_ton)
    warnings: List[str] = []
    region = None

    db.flush()
    try:
        # Lookup errors roll back only this savepoint.
        with db.begin_nested():
            center_name = _resolve_center_name(db, data)
            region = normalize_region(db, data.regions[0]) or None
            rate = find_applicable_rate(db, center_name, vehicle_type, region)
            if not rate and region:
                rate = find_applicable_rate(db, center_name, vehicle_type, None)
            stop_fee, region_fee = _extra_fees(db, rate, center_name) if rate else (0, 0)

        if not rate:
            message = f"No rate found for center: {center_name}, vehicle: {vehicle_type}, region: {region or '-'}"
            if strict:
                raise RateNotFoundError(
                    message,
                    details={"center_name": center_name, "vehicle_type": vehicle_type, "region": region},
                )
            logger.warning(f"{message}; using estimate")
            warnings.append(message)
            return _fallback(data, vehicle_type, region, warnings)

        extra_stops = max(0, data.stops - 1)
        extra_regions = max(0, len(data.regions) - 1)
        base_fare = rate.base_fare or 0
        extra_stop_fare = extra_stops * stop_fee
        extra_region_fare = extra_regions * region_fee
    except AppError:
        raise
    except SQLAlchemyError:
        if strict:
            raise
        logger.error("Fare calculation failed, using estimate", exc_info=True)
        warnings.append("An error occurred while looking up rates; the fare is an estimate")
        return _fallback(data, vehicle_type, region, warnings)

    if rate.fare_type == FareType.STOP_FEE:
        warnings.append(f"No base rate for region {region or '-'}; only stop and region fees applied")

    breakdown = [f"Base: {base_fare:,} KRW"]
    breakdown.append(
        f"Extra stops: {extra_stops} x {stop_fee:,} = {extra_stop_fare:,} KRW" if extra_stop_fare else "Extra stops: none"
    )
    breakdown.append(
        f"Extra regions: {extra_regions} x {region_fee:,} = {extra_region_fare:,} KRW"
        if extra_region_fare else "Extra regions: none"
    )
    subtotal = base_fare + extra_stop_fare + extra_region_fare
    return FareCalculationResult(
        base_fare=base_fare,
        extra_stop_fare=extra_stop_fare,
        extra_region_fare=extra_region_fare,
        subtotal=subtotal,
        extra_adjustment=data.extra_adjustment,
        total_fare=subtotal + data.extra_adjustment,
        vehicle_type=vehicle_type,
        region=region,
        applied_rate=AppliedRate(
            id=rate.id,
            center_name=rate.center_name,
            vehicle_type=rate.vehicle_type,
            region=rate.region,
            fare_type=rate.fare_type,
            base_fare=base_fare,
            extra_stop_fee=stop_fee,
            extra_region_fee=region_fee,
        ),
        is_fallback=False,
        breakdown=breakdown,
        warnings=warnings,
    )


def charter_fare_input(charter: CharterRequest, strict: Optional[bool] = None) -> FareCalculationInput:
    return FareCalculationInput(
        loading_point_id=charter.loading_point_id,
        vehicle_ton=charter.vehicle_ton,
        regions=charter.regions,
        stops=charter.stops,
        extra_adjustment=charter.extra_fare or 0,
        strict=strict,
    )


def apply_fare(charter: CharterRequest, result: FareCalculationResult) -> None:
    """Copy a calculation onto a charter; a negotiated amount overrides the total."""
    charter.base_fare = result.base_fare
    charter.region_fare = result.extra_region_fare
    charter.stop_fare = result.extra_stop_fare
    if charter.is_negotiated and charter.negotiated_fare is not None:
        charter.total_fare = charter.negotiated_fare
        charter.is_estimated = False
    else:
        charter.total_fare = result.total_fare
        charter.is_estimated = result.is_fallback


def recalculate_charter_fares(db: Session, charter_ids: List[int], strict: Optional[bool] = None) -> dict:
    """Reprice stored charters one by one, committing each; failures are collected."""
    success = 0
    failed = 0
    errors = []
    for charter_id in charter_ids:
        charter = db.query(CharterRequest).filter(CharterRequest.id == charter_id).first()
        if not charter:
            failed += 1
            errors.append({"charter_id": charter_id, "error": "Charter not found"})
            continue
        try:
            result = calculate_fare(db, charter_fare_input(charter, strict))
            apply_fare(charter, result)
            db.commit()
            success += 1
        except (AppError, SQLAlchemyError) as e:
            db.rollback()
            failed += 1
            errors.append({"charter_id": charter_id, "error": getattr(e, "message", str(e))})
            logger.error(f"Recalculating charter {charter_id} failed: {e}")
    logger.info(f"Recalculated charter fares: {success} succeeded, {failed} failed")
    return {"success": success, "failed": failed, "errors": errors}
