"""
Region normalization.

Turns raw region spellings ("강남구", "GANGNAM", "gangnam") into the short
form used in fare tables ("강남"). Lookup order:

1. active alias whose raw_text matches (case-insensitive)
2. text that already is the normalized form of some alias
3. built-in rules: strip one administrative suffix, map English names
4. alias whose normalized form matches the rule output

normalize(normalize(x)) == normalize(x) holds for every alias-table input
because alias targets are resolved to their final form when stored.
"""
import logging
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from haulbook.models.charter import CharterDestination
from haulbook.models.region_alias import RegionAlias

logger = logging.getLogger(__name__)

ADMIN_SUFFIXES = ("구", "시", "군", "동", "면", "읍", "리")

ENGLISH_REGIONS = {
    "gangnam": "강남",
    "suwon": "수원",
    "incheon": "인천",
    "busan": "부산",
    "daegu": "대구",
    "gwangju": "광주",
    "daejeon": "대전",
    "ulsan": "울산",
    "sejong": "세종",
    "gyeonggi": "경기",
    "jeju": "제주",
}

COMMON_ALIASES = (
    ("강남구", "강남"),
    ("GANGNAM", "강남"),
    ("수원시", "수원"),
    ("SUWON", "수원"),
    ("인천시", "인천"),
    ("INCHEON", "인천"),
    ("부산시", "부산"),
    ("BUSAN", "부산"),
    ("서초구", "서초"),
    ("송파구", "송파"),
    ("영등포구", "영등포"),
    ("마포구", "마포"),
    ("용산구", "용산"),
    ("성남시", "성남"),
    ("고양시", "고양"),
    ("안양시", "안양"),
    ("광명시", "광명"),
)


def _alias_by_raw(db: Session, text: str) -> Optional[RegionAlias]:
    return (
        db.query(RegionAlias)
        .filter(func.lower(RegionAlias.raw_text) == text.lower(), RegionAlias.is_active.is_(True))
        .first()
    )


def _alias_by_normalized(db: Session, text: str) -> Optional[RegionAlias]:
    return (
        db.query(RegionAlias)
        .filter(func.lower(RegionAlias.normalized_text) == text.lower(), RegionAlias.is_active.is_(True))
        .first()
    )


def apply_rules(text: str) -> str:
    """Built-in rules only, no database access."""
    normalized = text.strip()
    for suffix in ADMIN_SUFFIXES:
        if normalized.endswith(suffix) and len(normalized) > len(suffix):
            normalized = normalized[: -len(suffix)]
            break
    return ENGLISH_REGIONS.get(normalized.lower(), normalized)


def normalize_region(db: Session, raw_text: Optional[str]) -> str:
    """Normalize one region; empty input gives an empty string."""
    if not raw_text or not raw_text.strip():
        return ""
    text = raw_text.strip()

    alias = _alias_by_raw(db, text)
    if alias:
        return alias.normalized_text

    known = _alias_by_normalized(db, text)
    if known:
        return known.normalized_text

    normalized = apply_rules(text)
    alias = _alias_by_normalized(db, normalized)
    return alias.normalized_text if alias else normalized


def normalize_regions(db: Session, raw_texts: List[str]) -> List[str]:
    """Normalize a list, dropping empty entries and keeping order."""
    results = [normalize_region(db, text) for text in raw_texts]
    return [r for r in results if r]


def add_region_alias(db: Session, raw_text: str, normalized_text: str) -> RegionAlias:
    """
    Insert or update an alias (no commit).

    The target is first resolved through existing aliases, and aliases that
    pointed at raw_text are re-pointed to the new target, so no chain of
    aliases is ever stored.
    """
    raw_text = raw_text.strip()
    normalized_text = normalized_text.strip()

    target_alias = _alias_by_raw(db, normalized_text)
    if target_alias and target_alias.raw_text.lower() != raw_text.lower():
        normalized_text = target_alias.normalized_text

    alias = db.query(RegionAlias).filter(RegionAlias.raw_text == raw_text).first()
    if alias:
        alias.normalized_text = normalized_text
        alias.is_active = True
    else:
        alias = RegionAlias(raw_text=raw_text, normalized_text=normalized_text, is_active=True)
        db.add(alias)

    repointed = (
        db.query(RegionAlias)
        .filter(func.lower(RegionAlias.normalized_text) == raw_text.lower())
        .filter(RegionAlias.raw_text != raw_text)
        .all()
    )
    for other in repointed:
        other.normalized_text = normalized_text
    db.flush()
    if repointed:
        logger.info(f"Re-pointed {len(repointed)} aliases from '{raw_text}' to '{normalized_text}'")
    return alias


def list_aliases(db: Session, search: Optional[str] = None, is_active: Optional[bool] = None):
    query = db.query(RegionAlias)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter((RegionAlias.raw_text.ilike(term)) | (RegionAlias.normalized_text.ilike(term)))
    if is_active is not None:
        query = query.filter(RegionAlias.is_active == is_active)
    return query.order_by(RegionAlias.normalized_text.asc(), RegionAlias.raw_text.asc())


def initialize_common_aliases(db: Session) -> int:
    """Seed well-known aliases; returns how many were new. Caller commits."""
    added = 0
    for raw_text, normalized_text in COMMON_ALIASES:
        exists = db.query(RegionAlias.id).filter(RegionAlias.raw_text == raw_text).first()
        add_region_alias(db, raw_text, normalized_text)
        if not exists:
            added += 1
    logger.info(f"Seeded {added} region aliases")
    return added


def get_stats(db: Session, top: int = 10) -> dict:
    total = db.query(func.count(RegionAlias.id)).scalar() or 0
    active = db.query(func.count(RegionAlias.id)).filter(RegionAlias.is_active.is_(True)).scalar() or 0
    distinct_regions = (
        db.query(func.count(func.distinct(RegionAlias.normalized_text)))
        .filter(RegionAlias.is_active.is_(True))
        .scalar()
        or 0
    )
    top_rows = (
        db.query(CharterDestination.region, func.count(CharterDestination.id).label("count"))
        .group_by(CharterDestination.region)
        .order_by(func.count(CharterDestination.id).desc())
        .limit(top)
        .all()
    )
    return {
        "total_aliases": total,
        "active_aliases": active,
        "distinct_regions": distinct_regions,
        "top_regions": [{"region": region, "count": count} for region, count in top_rows],
    }
